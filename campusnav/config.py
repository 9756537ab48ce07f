"""Config documents and runtime settings.

Two JSON documents are read once at startup:
- campus config: default view, base layers, named locations and buildings.
- custom layout config: a flat room/corridor layout with optional paths.

Document structure is checked with pydantic; geometric invariants are
checked later by `campusnav.spatial_model.sanitize`. A building or location
whose structure cannot be parsed is dropped on its own and reported as a
violation; only an unreadable root document raises `ValidationError`.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import pydantic
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from campusnav.errors import ValidationError
from campusnav.models import (
    Bounds,
    Building,
    CampusConfig,
    Coordinate,
    Corridor,
    CustomLayout,
    Floor,
    Location,
    MapLayerDef,
    NamedPath,
    Room,
    Violation,
)

PACKAGE_DATA = Path(__file__).parent / "data"
DEFAULT_CAMPUS_CONFIG = PACKAGE_DATA / "campus.json"
DEFAULT_LAYOUT_CONFIG = PACKAGE_DATA / "floor_plan.json"
DEFAULT_OSRM_URL = "https://router.project-osrm.org/route/v1"

LatLngPair = tuple[float, float]


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LatLngSchema(_Schema):
    lat: float
    lng: float


class MapLayerSchema(_Schema):
    name: str
    url: str
    attribution: str = ""
    max_zoom: int = Field(default=19, alias="maxZoom")


class LocationSchema(_Schema):
    id: str
    name: str
    coordinates: LatLngSchema


class RoomSchema(_Schema):
    id: str
    name: str = ""
    polygon: list[LatLngPair]
    color: str | None = None


class CorridorSchema(_Schema):
    polygon: list[LatLngPair]
    color: str | None = None


class FloorSchema(_Schema):
    level: str
    name: str
    image_url: str | None = Field(default=None, alias="imageUrl")
    rooms: list[RoomSchema] = Field(default_factory=list)
    corridors: list[CorridorSchema] = Field(default_factory=list)

    @field_validator("level", mode="before")
    @classmethod
    def _level_as_text(cls, value: Any) -> str:
        return str(value)


class BuildingSchema(_Schema):
    id: str
    name: str
    bounds: tuple[LatLngPair, LatLngPair]
    floors: list[FloorSchema] = Field(default_factory=list)


class CampusConfigSchema(_Schema):
    default_center: LatLngSchema = Field(alias="defaultCenter")
    default_zoom: int = Field(alias="defaultZoom")
    map_layers: list[MapLayerSchema] = Field(default_factory=list, alias="mapLayers")
    predefined_locations: list[dict[str, Any]] = Field(default_factory=list, alias="predefinedLocations")
    buildings: list[dict[str, Any]] = Field(default_factory=list)


class NamedPathSchema(_Schema):
    points: list[LatLngPair]
    color: str | None = None


class CustomLayoutSchema(_Schema):
    center: LatLngPair
    zoom: int
    rooms: list[RoomSchema] = Field(default_factory=list)
    corridors: list[CorridorSchema] = Field(default_factory=list)
    paths: list[NamedPathSchema] = Field(default_factory=list)
    source: LatLngPair | None = None
    target: LatLngPair | None = None


def _coord(pair: LatLngPair) -> Coordinate:
    return Coordinate(float(pair[0]), float(pair[1]))


def _ring(points: list[LatLngPair]) -> tuple[Coordinate, ...]:
    return tuple(_coord(p) for p in points)


def _room(schema: RoomSchema) -> Room:
    return Room(
        id=schema.id,
        name=schema.name or schema.id,
        polygon=_ring(schema.polygon),
        color=schema.color or "#3388ff",
    )


def _corridor(schema: CorridorSchema) -> Corridor:
    return Corridor(polygon=_ring(schema.polygon), color=schema.color or "#ff9800")


def _building(schema: BuildingSchema) -> Building:
    return Building(
        id=schema.id,
        name=schema.name,
        bounds=Bounds(_coord(schema.bounds[0]), _coord(schema.bounds[1])),
        floors=tuple(
            Floor(
                level=f.level,
                name=f.name,
                image_url=f.image_url,
                rooms=tuple(_room(r) for r in f.rooms),
                corridors=tuple(_corridor(c) for c in f.corridors),
            )
            for f in schema.floors
        ),
    )


def parse_campus_config(raw: dict[str, Any]) -> tuple[CampusConfig, list[Violation]]:
    """Convert a raw campus document to the dataclass model.

    Returns:
        Tuple of the parsed config and structural violations for entities
        that were dropped because they could not be parsed.

    Raises:
        ValidationError: If the root document itself is malformed.
    """
    try:
        root = CampusConfigSchema.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Campus config is malformed: {exc}") from exc

    issues: list[Violation] = []

    locations: list[Location] = []
    for idx, item in enumerate(root.predefined_locations):
        try:
            loc = LocationSchema.model_validate(item)
        except pydantic.ValidationError as exc:
            issues.append(Violation("location_malformed", f"location[{idx}]", str(exc)))
            continue
        locations.append(Location(loc.id, loc.name, Coordinate(loc.coordinates.lat, loc.coordinates.lng)))

    buildings: list[Building] = []
    for idx, item in enumerate(root.buildings):
        try:
            buildings.append(_building(BuildingSchema.model_validate(item)))
        except pydantic.ValidationError as exc:
            issues.append(Violation("building_malformed", f"building[{idx}]", str(exc)))

    for issue in issues:
        logger.warning(f"Config entity dropped [{issue.kind}] {issue.entity}")

    config = CampusConfig(
        default_center=Coordinate(root.default_center.lat, root.default_center.lng),
        default_zoom=root.default_zoom,
        map_layers=tuple(
            MapLayerDef(name=m.name, url=m.url, attribution=m.attribution, max_zoom=m.max_zoom)
            for m in root.map_layers
        ),
        predefined_locations=tuple(locations),
        buildings=tuple(buildings),
    )
    return config, issues


def parse_custom_layout(raw: dict[str, Any]) -> CustomLayout:
    """Convert a raw custom-layout document to the dataclass model."""
    try:
        root = CustomLayoutSchema.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Custom layout config is malformed: {exc}") from exc

    return CustomLayout(
        center=_coord(root.center),
        zoom=root.zoom,
        rooms=tuple(_room(r) for r in root.rooms),
        corridors=tuple(_corridor(c) for c in root.corridors),
        paths=tuple(NamedPath(_ring(p.points), p.color or "#43a047") for p in root.paths),
        source=_coord(root.source) if root.source else None,
        target=_coord(root.target) if root.target else None,
    )


def _read_json(path: str | Path) -> dict[str, Any]:
    file_path = Path(path)
    if not file_path.exists():
        raise ValidationError(f"Config file not found: {file_path}")
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Config file is not valid JSON: {file_path}") from exc
    if not isinstance(data, dict):
        raise ValidationError(f"Config root must be a JSON object: {file_path}")
    return data


def load_campus_config(path: str | Path) -> tuple[CampusConfig, list[Violation]]:
    """Read and parse a campus config file."""
    config, issues = parse_campus_config(_read_json(path))
    logger.info(f"Loaded campus config from {path}: {len(config.buildings)} buildings")
    return config, issues


def load_custom_layout(path: str | Path) -> CustomLayout:
    """Read and parse a custom-layout config file."""
    layout = parse_custom_layout(_read_json(path))
    logger.info(f"Loaded custom layout from {path}: {len(layout.rooms)} rooms")
    return layout


DEFAULT_ENV_FILES = (Path("campusnav/.env"), Path(".env"))


def read_env_files(paths: Sequence[Path] = DEFAULT_ENV_FILES) -> dict[str, str]:
    """Collect `KEY=value` pairs from local env files.

    Earlier files win for a key defined more than once. Blank lines, comments
    and lines without `=` are skipped; surrounding quotes are stripped.
    """
    values: dict[str, str] = {}
    for env_path in paths:
        if not env_path.exists():
            continue
        for raw in env_path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = (part.strip() for part in line.split("=", 1))
            if key:
                values.setdefault(key, value.strip("'\""))
    return values


@dataclass(slots=True)
class Settings:
    """Runtime settings from the process environment over local `.env` files."""

    campus_config_path: Path = DEFAULT_CAMPUS_CONFIG
    layout_config_path: Path = DEFAULT_LAYOUT_CONFIG
    osrm_url: str = DEFAULT_OSRM_URL
    routing_timeout_s: float = 10.0
    cors_origins: str = "*"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True

    @classmethod
    def from_env(cls, env_files: Sequence[Path] = DEFAULT_ENV_FILES) -> "Settings":
        env = {**read_env_files(env_files), **os.environ}

        timeout_raw = env.get("CAMPUSNAV_ROUTING_TIMEOUT_S", "10")
        try:
            timeout = float(timeout_raw)
        except ValueError:
            logger.warning(f"Ignoring invalid CAMPUSNAV_ROUTING_TIMEOUT_S={timeout_raw!r}")
            timeout = 10.0

        port_raw = env.get("API_PORT", "8000")
        try:
            port = int(port_raw)
        except ValueError:
            logger.warning(f"Ignoring invalid API_PORT={port_raw!r}")
            port = 8000

        return cls(
            campus_config_path=Path(env.get("CAMPUSNAV_CONFIG", str(DEFAULT_CAMPUS_CONFIG))),
            layout_config_path=Path(env.get("CAMPUSNAV_LAYOUT_CONFIG", str(DEFAULT_LAYOUT_CONFIG))),
            osrm_url=env.get("CAMPUSNAV_OSRM_URL", DEFAULT_OSRM_URL).rstrip("/"),
            routing_timeout_s=timeout if timeout > 0 else 10.0,
            cors_origins=env.get("CAMPUSNAV_CORS_ORIGINS", "*").strip(),
            log_level=env.get("CAMPUSNAV_LOG_LEVEL", "INFO").upper(),
            api_host=env.get("API_HOST", "0.0.0.0"),
            api_port=port,
            api_reload=env.get("API_RELOAD", "true").lower() == "true",
        )
