"""Read-only query layer over the campus config.

Validation runs once at load time. Entities that break an invariant are
dropped individually so that one malformed building never disables the map;
queries afterwards never raise and return `None` on a miss.
"""

from __future__ import annotations

from dataclasses import replace

from loguru import logger

from campusnav.geometry import coordinate_in_range, distinct_vertex_count, ring_area
from campusnav.models import (
    Building,
    CampusConfig,
    Coordinate,
    Corridor,
    CustomLayout,
    Floor,
    Location,
    NamedPath,
    Ring,
    Room,
    Violation,
)


def _ring_issue(ring: Ring) -> str | None:
    if any(not coordinate_in_range(p) for p in ring):
        return "Polygon has a vertex outside geographic range"
    if distinct_vertex_count(ring) < 3:
        return "Polygon has fewer than 3 distinct vertices"
    return None


def _check_rooms(rooms: tuple[Room, ...], where: str, issues: list[Violation]) -> tuple[Room, ...]:
    kept: list[Room] = []
    seen: set[str] = set()
    for room in rooms:
        entity = f"{where}/room:{room.id}"
        if room.id in seen:
            issues.append(Violation("room_duplicate_id", entity, "Room id is not unique within floor"))
            continue
        problem = _ring_issue(room.polygon)
        if problem:
            issues.append(Violation("room_polygon_invalid", entity, problem))
            continue
        if ring_area(room.polygon) == 0.0:
            issues.append(
                Violation("room_polygon_flat", entity, "Polygon vertices are collinear", severity="warning")
            )
        seen.add(room.id)
        kept.append(room)
    return tuple(kept)


def _check_corridors(
    corridors: tuple[Corridor, ...], where: str, issues: list[Violation]
) -> tuple[Corridor, ...]:
    kept: list[Corridor] = []
    for idx, corridor in enumerate(corridors):
        problem = _ring_issue(corridor.polygon)
        if problem:
            issues.append(Violation("corridor_polygon_invalid", f"{where}/corridor:{idx}", problem))
            continue
        kept.append(corridor)
    return tuple(kept)


def _check_building(building: Building, issues: list[Violation]) -> Building | None:
    where = f"building:{building.id}"
    bounds = building.bounds

    if not (coordinate_in_range(bounds.first) and coordinate_in_range(bounds.second)):
        issues.append(Violation("bounds_out_of_range", where, "Bounds corner outside geographic range"))
        return None
    if bounds.first == bounds.second:
        issues.append(Violation("bounds_degenerate", where, "Bounds corners are identical"))
        return None

    floors: list[Floor] = []
    levels: set[str] = set()
    for floor in building.floors:
        floor_where = f"{where}/floor:{floor.level}"
        if floor.level in levels:
            issues.append(Violation("floor_duplicate_level", floor_where, "Floor level is not unique"))
            continue
        levels.add(floor.level)
        rooms = _check_rooms(floor.rooms, floor_where, issues)
        corridors = _check_corridors(floor.corridors, floor_where, issues)
        floors.append(replace(floor, rooms=rooms, corridors=corridors))

    if not floors:
        issues.append(Violation("building_without_floors", where, "Building has no usable floors"))
        return None
    return replace(building, floors=tuple(floors))


def sanitize(config: CampusConfig) -> tuple[CampusConfig, list[Violation]]:
    """Return a copy of `config` holding only valid entities, plus the violations."""
    issues: list[Violation] = []

    locations: list[Location] = []
    location_ids: set[str] = set()
    for location in config.predefined_locations:
        where = f"location:{location.id}"
        if location.id in location_ids:
            issues.append(Violation("location_duplicate_id", where, "Location id is not unique"))
            continue
        if not coordinate_in_range(location.coordinates):
            issues.append(Violation("location_out_of_range", where, "Coordinates outside geographic range"))
            continue
        location_ids.add(location.id)
        locations.append(location)

    buildings: list[Building] = []
    building_ids: set[str] = set()
    for building in config.buildings:
        if building.id in building_ids:
            issues.append(
                Violation("building_duplicate_id", f"building:{building.id}", "Building id is not unique")
            )
            continue
        checked = _check_building(building, issues)
        if checked is not None:
            building_ids.add(building.id)
            buildings.append(checked)

    for issue in issues:
        logger.warning(f"Config {issue.severity} [{issue.kind}] {issue.entity}: {issue.message}")

    clean = replace(config, predefined_locations=tuple(locations), buildings=tuple(buildings))
    return clean, issues


def validate(config: CampusConfig) -> list[Violation]:
    """List every invariant violation in `config` without modifying it."""
    _, issues = sanitize(config)
    return issues


def sanitize_layout(layout: CustomLayout) -> tuple[CustomLayout, list[Violation]]:
    """Apply the room and corridor checks to a flat custom layout.

    Paths with fewer than 2 in-range points and out-of-range fixed
    endpoints are dropped as well.
    """
    issues: list[Violation] = []
    rooms = _check_rooms(layout.rooms, "layout", issues)
    corridors = _check_corridors(layout.corridors, "layout", issues)

    paths: list[NamedPath] = []
    for idx, path in enumerate(layout.paths):
        if len(path.points) < 2 or any(not coordinate_in_range(p) for p in path.points):
            issues.append(Violation("path_invalid", f"layout/path:{idx}", "Path needs 2 or more in-range points"))
            continue
        paths.append(path)

    endpoints: dict[str, Coordinate | None] = {"source": layout.source, "target": layout.target}
    for name, point in endpoints.items():
        if point is not None and not coordinate_in_range(point):
            issues.append(
                Violation("endpoint_out_of_range", f"layout/{name}", "Coordinates outside geographic range")
            )
            endpoints[name] = None

    for issue in issues:
        logger.warning(f"Layout {issue.severity} [{issue.kind}] {issue.entity}: {issue.message}")

    clean = replace(
        layout,
        rooms=rooms,
        corridors=corridors,
        paths=tuple(paths),
        source=endpoints["source"],
        target=endpoints["target"],
    )
    return clean, issues


class SpatialModel:
    """Query layer over a sanitized campus config."""

    def __init__(self, config: CampusConfig, violations: list[Violation] | None = None) -> None:
        self.config = config
        self.violations = list(violations or [])

    @classmethod
    def from_config(cls, config: CampusConfig) -> "SpatialModel":
        clean, issues = sanitize(config)
        logger.info(
            f"Spatial model ready: {len(clean.buildings)} buildings, "
            f"{len(clean.predefined_locations)} locations, {len(issues)} violations"
        )
        return cls(clean, issues)

    @property
    def buildings(self) -> tuple[Building, ...]:
        return self.config.buildings

    @property
    def locations(self) -> tuple[Location, ...]:
        return self.config.predefined_locations

    def find_building_containing(self, point: Coordinate) -> Building | None:
        """First building in declaration order whose bounds contain `point`."""
        for building in self.config.buildings:
            if building.bounds.contains(point):
                return building
        return None

    def find_building(self, building_id: str) -> Building | None:
        for building in self.config.buildings:
            if building.id == building_id:
                return building
        return None

    @staticmethod
    def find_floor(building: Building | None, level: str | None) -> Floor | None:
        if building is None or level is None:
            return None
        for floor in building.floors:
            if floor.level == level:
                return floor
        return None

    @staticmethod
    def find_room(floor: Floor | None, room_id: str | None) -> Room | None:
        if floor is None or not room_id:
            return None
        for room in floor.rooms:
            if room.id == room_id:
                return room
        return None

    def find_location(self, location_id: str | None) -> Location | None:
        if not location_id:
            return None
        for location in self.config.predefined_locations:
            if location.id == location_id:
                return location
        return None
