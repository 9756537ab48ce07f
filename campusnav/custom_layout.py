"""Flat custom-layout view: rooms, corridors, room pickers and the NavPath.

The NavPath layer is derived from the current `(source room, target room)`
pair and replaced on every change. Without a room pair, a layout that
declares fixed source/target points draws the straight line between them.
The configured extra paths are shown only while no NavPath exists.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from campusnav.geometry import bounding_box
from campusnav.map_engine import LayerHandle, MapEngine
from campusnav.models import Coordinate, CustomLayout, NavPath, Room
from campusnav.planner import plan_indoor_path
from campusnav.spatial_model import sanitize_layout

LAYOUT_FIT_PADDING = 40

NAV_PATH_STYLE: dict[str, Any] = {"color": "#43a047", "weight": 6, "dashArray": "10 10"}


def layout_room_style(color: str) -> dict[str, Any]:
    return {"color": color or "#3388ff", "fillOpacity": 0.7, "weight": 3}


def layout_corridor_style(color: str) -> dict[str, Any]:
    return {"color": color or "#ff9800", "fillOpacity": 0.4, "weight": 2, "dashArray": "6 6"}


def extra_path_style(color: str) -> dict[str, Any]:
    return {"color": color or "#43a047", "weight": 4, "dashArray": "6 6"}


def room_options(rooms: tuple[Room, ...], exclude_id: str | None) -> list[dict[str, str]]:
    """Dropdown entries, leaving out the room picked in the other dropdown."""
    return [{"id": r.id, "name": r.name or r.id} for r in rooms if r.id != exclude_id]


class CustomLayoutView:
    """Renders a custom layout onto one engine and tracks room selection.

    Invalid rooms, corridors and paths are dropped at construction and
    reported in `violations`.
    """

    def __init__(self, engine: MapEngine, layout: CustomLayout) -> None:
        self.engine = engine
        self.layout, self.violations = sanitize_layout(layout)
        self.source_room_id: str | None = None
        self.target_room_id: str | None = None
        self.nav_path: NavPath | None = None
        self._static_layers: list[LayerHandle] = []
        self._path_layers: list[LayerHandle] = []
        self._rendered = False

    def render(self) -> None:
        """Draw rooms and corridors, fit the viewport, then draw paths."""
        if self._rendered:
            return
        for room in self.layout.rooms:
            self._static_layers.append(self.engine.add_polygon(room.polygon, layout_room_style(room.color)))
        for corridor in self.layout.corridors:
            self._static_layers.append(
                self.engine.add_polygon(corridor.polygon, layout_corridor_style(corridor.color))
            )
        self._rendered = True
        self.fit_to_features()
        self._refresh_paths()

    def fit_to_features(self) -> None:
        points: list[Coordinate] = []
        for room in self.layout.rooms:
            points.extend(room.polygon)
        for corridor in self.layout.corridors:
            points.extend(corridor.polygon)
        for path in self.layout.paths:
            points.extend(path.points)
        if self.layout.source is not None:
            points.append(self.layout.source)
        if self.layout.target is not None:
            points.append(self.layout.target)
        if points:
            self.engine.fit_bounds(bounding_box(points), padding=LAYOUT_FIT_PADDING)

    def room(self, room_id: str | None) -> Room | None:
        if not room_id:
            return None
        for room in self.layout.rooms:
            if room.id == room_id:
                return room
        return None

    def source_options(self) -> list[dict[str, str]]:
        return room_options(self.layout.rooms, self.target_room_id)

    def target_options(self) -> list[dict[str, str]]:
        return room_options(self.layout.rooms, self.source_room_id)

    def select_source(self, room_id: str | None) -> bool:
        """Pick the source room; the current target room cannot be picked."""
        if room_id and (self.room(room_id) is None or room_id == self.target_room_id):
            return False
        self.source_room_id = room_id or None
        self._refresh_paths()
        return True

    def select_target(self, room_id: str | None) -> bool:
        """Pick the target room; the current source room cannot be picked."""
        if room_id and (self.room(room_id) is None or room_id == self.source_room_id):
            return False
        self.target_room_id = room_id or None
        self._refresh_paths()
        return True

    def teardown(self) -> None:
        for handle in self._path_layers + self._static_layers:
            self.engine.remove_layer(handle)
        self._path_layers = []
        self._static_layers = []
        self._rendered = False
        self.nav_path = None

    def _refresh_paths(self) -> None:
        for handle in self._path_layers:
            self.engine.remove_layer(handle)
        self._path_layers = []

        self.nav_path = plan_indoor_path(
            self.room(self.source_room_id),
            self.room(self.target_room_id),
            self.layout.corridors,
        )
        if self.nav_path is None and self.layout.source is not None and self.layout.target is not None:
            self.nav_path = [self.layout.source, self.layout.target]
        if not self._rendered:
            return

        if self.nav_path is not None:
            self._path_layers.append(self.engine.add_polyline(self.nav_path, NAV_PATH_STYLE))
            logger.debug(f"NavPath {self.source_room_id} -> {self.target_room_id}: {len(self.nav_path)} points")
            return

        for path in self.layout.paths:
            self._path_layers.append(self.engine.add_polyline(list(path.points), extra_path_style(path.color)))
