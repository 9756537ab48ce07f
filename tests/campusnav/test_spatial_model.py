"""Unit tests for campusnav.spatial_model."""

from __future__ import annotations

from dataclasses import replace

from campusnav.models import (
    Bounds,
    Building,
    CampusConfig,
    Coordinate,
    Corridor,
    CustomLayout,
    Floor,
    Location,
    NamedPath,
    Room,
)
from campusnav.spatial_model import SpatialModel, sanitize, sanitize_layout, validate


def _ring(*pairs: tuple[float, float]) -> tuple[Coordinate, ...]:
    return tuple(Coordinate(lat, lng) for lat, lng in pairs)


def test_find_building_containing_inside_and_outside(spatial_model: SpatialModel) -> None:
    """Points inside bounds resolve to the building, points outside to None."""
    inside = spatial_model.find_building_containing(Coordinate(13.1680, 77.5583))
    outside = spatial_model.find_building_containing(Coordinate(13.1600, 77.5500))

    assert inside is not None and inside.id == "admin-block"
    assert outside is None


def test_find_building_containing_includes_bounds_edges(spatial_model: SpatialModel) -> None:
    corner = spatial_model.find_building_containing(Coordinate(13.16770, 77.55800))
    assert corner is not None and corner.id == "admin-block"


def test_overlapping_bounds_resolve_to_first_declared(spatial_model: SpatialModel) -> None:
    """Overlap is broken by declaration order, identically on every call."""
    point = Coordinate(13.16825, 77.55865)
    results = {spatial_model.find_building_containing(point).id for _ in range(5)}
    assert results == {"admin-block"}


def test_find_floor_and_room_return_none_on_miss(spatial_model: SpatialModel) -> None:
    building = spatial_model.find_building("admin-block")

    assert spatial_model.find_floor(building, "1").name == "Ground Floor"
    assert spatial_model.find_floor(building, "99") is None
    assert spatial_model.find_floor(None, "1") is None
    assert spatial_model.find_room(spatial_model.find_floor(building, "1"), "101").name == "Room 101"
    assert spatial_model.find_room(None, "101") is None
    assert spatial_model.find_building("nope") is None
    assert spatial_model.find_location("nope") is None
    assert spatial_model.find_location("") is None


def test_validate_accepts_clean_config(campus_config: CampusConfig) -> None:
    assert validate(campus_config) == []


def test_degenerate_room_is_dropped_but_floor_survives(campus_config: CampusConfig, admin_block: Building) -> None:
    """A room with fewer than 3 distinct vertices is removed on its own."""
    ground = admin_block.floors[0]
    bad_room = Room("bad", "Bad", _ring((13.168, 77.558), (13.168, 77.558), (13.1681, 77.558)))
    broken = replace(admin_block, floors=(replace(ground, rooms=ground.rooms + (bad_room,)),) + admin_block.floors[1:])
    config = replace(campus_config, buildings=(broken,))

    clean, issues = sanitize(config)

    assert [i.kind for i in issues] == ["room_polygon_invalid"]
    assert [r.id for r in clean.buildings[0].floors[0].rooms] == ["101", "102"]


def test_degenerate_bounds_drop_only_that_building(campus_config: CampusConfig, library: Building) -> None:
    corner = Coordinate(13.1685, 77.5590)
    broken = replace(library, bounds=Bounds(corner, corner))
    config = replace(campus_config, buildings=(campus_config.buildings[0], broken))

    model = SpatialModel.from_config(config)

    assert [b.id for b in model.buildings] == ["admin-block"]
    assert any(v.kind == "bounds_degenerate" for v in model.violations)


def test_duplicate_floor_level_and_room_id_are_reported(campus_config: CampusConfig, admin_block: Building) -> None:
    ground = admin_block.floors[0]
    duplicate_room = replace(ground.rooms[0], name="Copy")
    floors = (
        replace(ground, rooms=ground.rooms + (duplicate_room,)),
        replace(admin_block.floors[1], level="1"),
    )
    config = replace(campus_config, buildings=(replace(admin_block, floors=floors),))

    clean, issues = sanitize(config)
    kinds = {i.kind for i in issues}

    assert kinds == {"room_duplicate_id", "floor_duplicate_level"}
    assert len(clean.buildings[0].floors) == 1
    assert len(clean.buildings[0].floors[0].rooms) == 2


def test_building_without_floors_is_dropped(campus_config: CampusConfig, library: Building) -> None:
    config = replace(campus_config, buildings=(replace(library, floors=()),))
    clean, issues = sanitize(config)

    assert clean.buildings == ()
    assert issues[0].kind == "building_without_floors"


def test_out_of_range_location_and_corridor_are_dropped(campus_config: CampusConfig, admin_block: Building) -> None:
    ground = admin_block.floors[0]
    bad_corridor = Corridor(_ring((95.0, 77.0), (13.1, 77.0), (13.2, 77.1)))
    building = replace(admin_block, floors=(replace(ground, corridors=ground.corridors + (bad_corridor,)),))
    config = replace(
        campus_config,
        predefined_locations=campus_config.predefined_locations + (Location("x", "X", Coordinate(13.0, 200.0)),),
        buildings=(building,),
    )

    clean, issues = sanitize(config)

    assert {i.kind for i in issues} == {"location_out_of_range", "corridor_polygon_invalid"}
    assert [loc.id for loc in clean.predefined_locations] == ["main-gate", "library"]
    assert len(clean.buildings[0].floors[0].corridors) == 1


def test_collinear_room_is_kept_with_warning(campus_config: CampusConfig, admin_block: Building) -> None:
    ground = admin_block.floors[0]
    flat = Room("flat", "Flat", _ring((13.1680, 77.5581), (13.1681, 77.5581), (13.1682, 77.5581)))
    building = replace(admin_block, floors=(replace(ground, rooms=(flat,)),))

    clean, issues = sanitize(replace(campus_config, buildings=(building,)))

    assert [i.severity for i in issues] == ["warning"]
    assert clean.buildings[0].floors[0].rooms == (flat,)


def test_sanitize_layout_drops_bad_rooms_corridors_and_paths() -> None:
    good = Room("A", "A", _ring((13.1681, 77.5580), (13.1681, 77.5581), (13.1682, 77.5581)))
    layout = CustomLayout(
        center=Coordinate(13.168, 77.558),
        zoom=20,
        rooms=(good, replace(good, name="Copy"), Room("B", "B", _ring((13.1681, 77.5586), (13.1681, 77.5586)))),
        corridors=(Corridor(()), Corridor(_ring((13.1679, 77.5580), (13.1679, 77.5590), (13.1680, 77.5590)))),
        paths=(NamedPath(_ring((13.168, 77.558))),),
        source=Coordinate(13.168, 77.558),
        target=Coordinate(13.168, 190.0),
    )

    clean, issues = sanitize_layout(layout)

    assert [i.kind for i in issues] == [
        "room_duplicate_id",
        "room_polygon_invalid",
        "corridor_polygon_invalid",
        "path_invalid",
        "endpoint_out_of_range",
    ]
    assert clean.rooms == (good,)
    assert len(clean.corridors) == 1
    assert clean.paths == ()
    assert clean.source == layout.source and clean.target is None
