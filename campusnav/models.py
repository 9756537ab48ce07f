"""Campus spatial data model.

Purpose:
- Describe buildings, floors, rooms, corridors and named locations.
- Keep every config entity immutable once loaded.

Conventions:
- Coordinates are geographic `(lat, lng)` degrees.
- A polygon ring is an ordered tuple of coordinates; closure is implicit.
- Floor levels are strings, matching what the floor selector submits.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Geographic point in degrees."""

    lat: float
    lng: float

    def as_pair(self) -> tuple[float, float]:
        return self.lat, self.lng


Ring = tuple[Coordinate, ...]
NavPath = list[Coordinate]


@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned rectangle given by two opposite corners."""

    first: Coordinate
    second: Coordinate

    @property
    def south(self) -> float:
        return min(self.first.lat, self.second.lat)

    @property
    def north(self) -> float:
        return max(self.first.lat, self.second.lat)

    @property
    def west(self) -> float:
        return min(self.first.lng, self.second.lng)

    @property
    def east(self) -> float:
        return max(self.first.lng, self.second.lng)

    def contains(self, point: Coordinate) -> bool:
        """Closed-rectangle containment, edges included."""
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east

    def center(self) -> Coordinate:
        return Coordinate((self.south + self.north) / 2.0, (self.west + self.east) / 2.0)


@dataclass(frozen=True, slots=True)
class Location:
    """Named outdoor endpoint (predefined or user-submitted)."""

    id: str
    name: str
    coordinates: Coordinate


@dataclass(frozen=True, slots=True)
class Room:
    id: str
    name: str
    polygon: Ring
    color: str = "#3388ff"


@dataclass(frozen=True, slots=True)
class Corridor:
    """Connective floor region used only as a path waypoint."""

    polygon: Ring
    color: str = "#ff9800"


@dataclass(frozen=True, slots=True)
class Floor:
    level: str
    name: str
    image_url: str | None = None
    rooms: tuple[Room, ...] = ()
    corridors: tuple[Corridor, ...] = ()


@dataclass(frozen=True, slots=True)
class Building:
    id: str
    name: str
    bounds: Bounds
    floors: tuple[Floor, ...] = ()


@dataclass(frozen=True, slots=True)
class MapLayerDef:
    """Base tile layer definition offered in the layer switcher."""

    name: str
    url: str
    attribution: str = ""
    max_zoom: int = 19


@dataclass(frozen=True, slots=True)
class CampusConfig:
    """Process-wide campus config, loaded once at startup."""

    default_center: Coordinate
    default_zoom: int
    map_layers: tuple[MapLayerDef, ...] = ()
    predefined_locations: tuple[Location, ...] = ()
    buildings: tuple[Building, ...] = ()


@dataclass(frozen=True, slots=True)
class NamedPath:
    """Pre-drawn polyline shown by the custom-layout view."""

    points: tuple[Coordinate, ...]
    color: str = "#43a047"


@dataclass(frozen=True, slots=True)
class CustomLayout:
    """Flat single-floor layout rendered without a base tile layer."""

    center: Coordinate
    zoom: int
    rooms: tuple[Room, ...] = ()
    corridors: tuple[Corridor, ...] = ()
    paths: tuple[NamedPath, ...] = ()
    source: Coordinate | None = None
    target: Coordinate | None = None


@dataclass(slots=True)
class Violation:
    """One failed invariant found while validating a config."""

    kind: str
    entity: str
    message: str
    severity: str = "error"
    extra: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, str]:
        payload = {
            "kind": self.kind,
            "entity": self.entity,
            "severity": self.severity,
            "message": self.message,
        }
        payload.update(self.extra)
        return payload
