"""Unit tests for campusnav.viewport."""

from __future__ import annotations

from campusnav.map_engine import CLICK, ZOOM_END, InMemoryMapEngine
from campusnav.models import Building, Coordinate
from campusnav.overlays import OverlayManager
from campusnav.spatial_model import SpatialModel
from campusnav.viewport import (
    DEFAULT_TARGET,
    JUMP_VIEW_ZOOM,
    BuildingFocused,
    Overview,
    ViewportController,
)


def _controller(engine: InMemoryMapEngine, model: SpatialModel, clicks: list | None = None) -> ViewportController:
    handler = clicks.append if clicks is not None else None
    return ViewportController(engine, model, OverlayManager(engine), on_building_click=handler)


def test_zoom_past_threshold_inside_building_focuses_it(
    engine: InMemoryMapEngine, spatial_model: SpatialModel, admin_block: Building
) -> None:
    """Zoom 18 -> 20 centered in a building focuses it on its first floor."""
    viewport = _controller(engine, spatial_model)
    engine.set_view(engine.center, 18)
    assert isinstance(viewport.state, Overview)

    engine.set_view(engine.center, 20)

    assert viewport.state == BuildingFocused(admin_block)
    assert viewport.selected_floor == admin_block.floors[0].level
    ground = admin_block.floors[0]
    assert len(engine.layers_of_kind("polygon")) == len(ground.rooms) + len(ground.corridors)
    assert viewport.indoor_controls_visible


def test_repeated_transitions_render_identical_layer_sets(
    engine: InMemoryMapEngine, spatial_model: SpatialModel
) -> None:
    """Entering, leaving and re-entering focus creates and destroys the same count."""
    viewport = _controller(engine, spatial_model)

    engine.set_view(engine.center, 20)
    first_created = engine.created_count
    first_layers = sorted((layer.kind, layer.style.get("popup", "")) for layer in engine.layers)

    engine.set_view(engine.center, 21)
    assert engine.created_count == first_created

    engine.set_view(engine.center, 18)
    assert isinstance(viewport.state, Overview)
    assert engine.layers == []
    assert engine.removed_count == first_created

    engine.set_view(engine.center, 20)
    assert engine.created_count == 2 * first_created
    assert sorted((layer.kind, layer.style.get("popup", "")) for layer in engine.layers) == first_layers


def test_zoom_out_clears_floor_and_hides_controls(engine: InMemoryMapEngine, spatial_model: SpatialModel) -> None:
    viewport = _controller(engine, spatial_model)
    engine.set_view(engine.center, 20)
    viewport.select_floor("2")

    engine.set_view(engine.center, 17)

    assert viewport.selected_floor is None
    assert viewport.focused_building is None
    assert not viewport.indoor_controls_visible


def test_zoom_in_outside_buildings_stays_in_overview(engine: InMemoryMapEngine, spatial_model: SpatialModel) -> None:
    viewport = _controller(engine, spatial_model)
    engine.set_view(Coordinate(13.1600, 77.5500), 20)

    assert isinstance(viewport.state, Overview)
    assert viewport.indoor_controls_visible
    assert engine.layers == []


def test_click_inside_building_focuses_and_fits_view(
    engine: InMemoryMapEngine, spatial_model: SpatialModel, library: Building
) -> None:
    """A click focuses immediately, notifies the listener and fits to the bounds."""
    clicks: list = []
    viewport = _controller(engine, spatial_model, clicks)

    engine.click(Coordinate(13.1685, 77.5590))

    assert viewport.focused_building == library
    assert clicks == [library]
    assert engine.zoom == 20
    assert engine.center == library.bounds.center()
    assert len(engine.layers_of_kind("image")) == 1


def test_click_outside_buildings_notifies_none(engine: InMemoryMapEngine, spatial_model: SpatialModel) -> None:
    clicks: list = []
    viewport = _controller(engine, spatial_model, clicks)

    engine.click(Coordinate(13.1600, 77.5500))

    assert clicks == [None]
    assert isinstance(viewport.state, Overview)


def test_jump_to_target_in_building(
    engine: InMemoryMapEngine, spatial_model: SpatialModel, admin_block: Building
) -> None:
    viewport = _controller(engine, spatial_model)

    viewport.jump_to_target()
    viewport.jump_to_target()

    assert viewport.focused_building == admin_block
    assert viewport.selected_floor == "1"
    assert engine.zoom == 21
    targets = [m for m in engine.layers_of_kind("marker") if m.style["popup"] == "Target Location"]
    assert len(targets) == 1
    assert targets[0].points == [DEFAULT_TARGET]


def test_jump_to_target_outside_buildings_sets_view(engine: InMemoryMapEngine, spatial_model: SpatialModel) -> None:
    viewport = _controller(engine, spatial_model)
    target = Coordinate(13.1600, 77.5500)

    assert viewport.jump_to_target(target) is None
    assert engine.center == target
    assert engine.zoom == JUMP_VIEW_ZOOM
    assert isinstance(viewport.state, Overview)


def test_select_floor_only_for_known_levels(
    engine: InMemoryMapEngine, spatial_model: SpatialModel, admin_block: Building
) -> None:
    viewport = _controller(engine, spatial_model)
    assert viewport.select_floor("1") is False

    engine.set_view(engine.center, 20)
    assert viewport.select_floor("2") is True
    assert len(engine.layers_of_kind("polygon")) == len(admin_block.floors[1].rooms)
    assert viewport.select_floor("9") is False
    assert viewport.selected_floor == "2"


def test_teardown_unsubscribes_and_releases_layers(engine: InMemoryMapEngine, spatial_model: SpatialModel) -> None:
    viewport = _controller(engine, spatial_model)
    viewport.jump_to_target()

    viewport.teardown()

    assert engine.subscriber_count(ZOOM_END) == 0
    assert engine.subscriber_count(CLICK) == 0
    assert engine.layers == []
