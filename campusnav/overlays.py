"""Indoor overlay lifecycle for one map engine.

The rendered layer set is a function of the `(building, floor)` key. Every
key change releases all handles of the previous key before acquiring the new
ones, so no layer outlives the key that produced it. Re-applying the current
key is a no-op.
"""

from __future__ import annotations

from loguru import logger

from campusnav.geometry import box_center
from campusnav.map_engine import LayerHandle, MapEngine
from campusnav.models import Building, Floor

DEFAULT_OPACITY = 0.7
IMAGE_Z_INDEX = 1000

OverlayKey = tuple[str, str]


def room_style(color: str) -> dict[str, object]:
    return {"color": "black", "weight": 2, "fillColor": color, "fillOpacity": 0.5}


def corridor_style(color: str) -> dict[str, object]:
    return {"color": color, "fillOpacity": 0.4, "weight": 2, "dashArray": "6 6"}


def room_label_icon(name: str) -> dict[str, object]:
    return {
        "className": "room-label",
        "html": name,
        "iconSize": [60, 20],
        "iconAnchor": [30, 10],
    }


class OverlayManager:
    """Owns the floor-plan image, room and corridor layers of one map."""

    def __init__(self, engine: MapEngine, opacity: float = DEFAULT_OPACITY) -> None:
        self.engine = engine
        self._opacity = _clamp(opacity)
        self._key: OverlayKey | None = None
        self._image: LayerHandle | None = None
        self._room_layers: list[LayerHandle] = []
        self._label_layers: list[LayerHandle] = []
        self._corridor_layers: list[LayerHandle] = []

    @property
    def key(self) -> OverlayKey | None:
        return self._key

    @property
    def opacity(self) -> float:
        return self._opacity

    @property
    def opacity_control_visible(self) -> bool:
        return self._image is not None

    @property
    def handles(self) -> list[LayerHandle]:
        owned = [self._image] if self._image is not None else []
        return owned + self._room_layers + self._label_layers + self._corridor_layers

    @property
    def polygon_count(self) -> int:
        return len(self._room_layers) + len(self._corridor_layers)

    def show(self, building: Building | None, floor: Floor | None) -> None:
        """Render exactly the layers for `(building, floor)`.

        Absent building or floor renders nothing.
        """
        if building is None or floor is None:
            self.clear()
            return

        key = (building.id, floor.level)
        if key == self._key:
            return

        self.clear()
        self._key = key

        if floor.image_url:
            self._image = self.engine.add_image_overlay(
                floor.image_url, building.bounds, self._opacity, z_index=IMAGE_Z_INDEX
            )

        for room in floor.rooms:
            self._room_layers.append(self.engine.add_polygon(room.polygon, room_style(room.color)))
            self._label_layers.append(
                self.engine.add_marker(box_center(room.polygon), popup=room.name, icon=room_label_icon(room.name))
            )

        for corridor in floor.corridors:
            self._corridor_layers.append(self.engine.add_polygon(corridor.polygon, corridor_style(corridor.color)))

        logger.debug(
            f"Overlays for {building.id}/{floor.level}: image={self._image is not None} "
            f"rooms={len(self._room_layers)} corridors={len(self._corridor_layers)}"
        )

    def set_opacity(self, value: float) -> float:
        """Update the image overlay in place; the value persists across keys."""
        self._opacity = _clamp(value)
        if self._image is not None:
            self.engine.set_image_opacity(self._image, self._opacity)
        return self._opacity

    def clear(self) -> None:
        """Release every owned layer."""
        for handle in self.handles:
            self.engine.remove_layer(handle)
        self._image = None
        self._room_layers = []
        self._label_layers = []
        self._corridor_layers = []
        self._key = None


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))
