"""Unit tests for campusnav.custom_layout."""

from __future__ import annotations

import pytest

from campusnav.config import DEFAULT_LAYOUT_CONFIG, load_custom_layout, parse_custom_layout
from campusnav.custom_layout import NAV_PATH_STYLE, CustomLayoutView
from campusnav.geometry import bounding_box
from campusnav.map_engine import InMemoryMapEngine
from campusnav.models import Coordinate, CustomLayout


@pytest.fixture()
def layout() -> CustomLayout:
    return load_custom_layout(DEFAULT_LAYOUT_CONFIG)


@pytest.fixture()
def view(layout: CustomLayout) -> CustomLayoutView:
    engine = InMemoryMapEngine(layout.center, layout.zoom)
    view = CustomLayoutView(engine, layout)
    view.render()
    return view


def test_render_draws_features_extra_paths_and_fits(view: CustomLayoutView, layout: CustomLayout) -> None:
    engine = view.engine

    assert len(engine.layers_of_kind("polygon")) == len(layout.rooms) + len(layout.corridors)
    assert len(engine.layers_of_kind("polyline")) == len(layout.paths)
    assert view.nav_path is None

    points = [p for room in layout.rooms for p in room.polygon]
    points += [p for corridor in layout.corridors for p in corridor.polygon]
    points += [p for path in layout.paths for p in path.points]
    assert engine.center == bounding_box(points).center()


def test_render_twice_does_not_duplicate(view: CustomLayoutView) -> None:
    created = view.engine.created_count
    view.render()
    assert view.engine.created_count == created


def test_room_pair_replaces_extra_paths_with_nav_path(view: CustomLayoutView) -> None:
    """Picking both rooms draws one NavPath through the shared corridor."""
    assert view.select_source("A") is True
    assert view.select_target("B") is True

    lines = view.engine.layers_of_kind("polyline")
    assert len(lines) == 1
    assert lines[0].style == NAV_PATH_STYLE
    assert len(view.nav_path) == 3
    assert view.nav_path[1].lat == pytest.approx(13.16800)
    assert view.nav_path[1].lng == pytest.approx(77.55835)


def test_clearing_a_room_restores_extra_paths(view: CustomLayoutView, layout: CustomLayout) -> None:
    view.select_source("A")
    view.select_target("B")

    view.select_target("")

    assert view.nav_path is None
    assert len(view.engine.layers_of_kind("polyline")) == len(layout.paths)


def test_pickers_exclude_each_others_choice(view: CustomLayoutView) -> None:
    view.select_source("A")

    assert [o["id"] for o in view.target_options()] == ["B", "C"]
    assert view.select_target("A") is False
    assert view.select_target("Z") is False
    assert view.target_room_id is None

    view.select_target("C")
    assert [o["id"] for o in view.source_options()] == ["A", "B"]


def test_fixed_source_and_target_draw_straight_line(layout: CustomLayout) -> None:
    source, target = Coordinate(13.16790, 77.55820), Coordinate(13.16812, 77.55848)
    fixed = CustomLayout(layout.center, layout.zoom, layout.rooms, layout.corridors, layout.paths, source, target)
    view = CustomLayoutView(InMemoryMapEngine(fixed.center, fixed.zoom), fixed)

    view.render()

    assert view.nav_path == [source, target]
    assert [line.points for line in view.engine.layers_of_kind("polyline")] == [[source, target]]


def test_teardown_removes_all_layers(view: CustomLayoutView) -> None:
    view.select_source("A")
    view.select_target("C")

    view.teardown()

    assert view.engine.layers == []


def test_malformed_corridor_is_dropped_and_rooms_still_route() -> None:
    """An empty corridor ring is removed before any path is planned."""
    raw = {
        "center": [13.168, 77.5583],
        "zoom": 20,
        "rooms": [
            {"id": "A", "polygon": [[13.1681, 77.5580], [13.1681, 77.5581], [13.1682, 77.5581]]},
            {"id": "B", "polygon": [[13.1681, 77.5586], [13.1681, 77.5587], [13.1682, 77.5587]]},
        ],
        "corridors": [{"polygon": []}],
    }
    view = CustomLayoutView(InMemoryMapEngine(Coordinate(13.168, 77.5583), 20), parse_custom_layout(raw))

    view.render()
    view.select_source("A")
    view.select_target("B")

    assert [v.kind for v in view.violations] == ["corridor_polygon_invalid"]
    assert view.layout.corridors == ()
    assert len(view.engine.layers_of_kind("polygon")) == 2
    assert len(view.nav_path) == 2
