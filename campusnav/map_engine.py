"""Map rendering collaborator contract and an in-memory engine.

The core never draws tiles or projects coordinates. It talks to a map engine
through `MapEngine`: create/remove layers, subscribe to viewport events and
command the viewport. `InMemoryMapEngine` keeps the layer registry and view
state as plain data so the API can serialize it for a browser client.

Icon defaults are passed once through `MapOptions` at engine construction;
there is no process-wide mutable icon state.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from loguru import logger

from campusnav.models import Bounds, Coordinate

LayerHandle = int
EventHandler = Callable[[dict[str, Any]], None]
Unsubscribe = Callable[[], None]

ZOOM_END = "zoomend"
CLICK = "click"


@dataclass(frozen=True, slots=True)
class MapOptions:
    """Engine-wide marker icon defaults."""

    icon_url: str = "/static/marker-icon.png"
    icon_retina_url: str = "/static/marker-icon-2x.png"
    shadow_url: str = "/static/marker-shadow.png"


@dataclass(slots=True)
class Layer:
    """One rendered layer as stored by the in-memory engine."""

    handle: LayerHandle
    kind: str
    points: list[Coordinate]
    style: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "kind": self.kind,
            "points": [{"lat": p.lat, "lng": p.lng} for p in self.points],
            "style": dict(self.style),
        }


class MapEngine(Protocol):
    """Operations the core consumes from the map rendering collaborator."""

    @property
    def zoom(self) -> float: ...

    @property
    def center(self) -> Coordinate: ...

    def add_image_overlay(self, url: str, bounds: Bounds, opacity: float, z_index: int = 1000) -> LayerHandle: ...

    def set_image_opacity(self, handle: LayerHandle, opacity: float) -> None: ...

    def add_polygon(self, ring: tuple[Coordinate, ...], style: dict[str, Any]) -> LayerHandle: ...

    def add_polyline(self, points: list[Coordinate], style: dict[str, Any]) -> LayerHandle: ...

    def add_marker(self, point: Coordinate, popup: str = "", icon: dict[str, Any] | None = None) -> LayerHandle: ...

    def remove_layer(self, handle: LayerHandle) -> None: ...

    def subscribe(self, event: str, handler: EventHandler) -> Unsubscribe: ...

    def fit_bounds(self, bounds: Bounds, max_zoom: float | None = None, padding: int = 0) -> None: ...

    def set_view(self, point: Coordinate, zoom: float) -> None: ...


class InMemoryMapEngine:
    """Map engine that records layers and view state without drawing."""

    def __init__(self, center: Coordinate, zoom: float, options: MapOptions | None = None) -> None:
        self.options = options or MapOptions()
        self._center = center
        self._zoom = float(zoom)
        self._layers: dict[LayerHandle, Layer] = {}
        self._handles = itertools.count(1)
        self._handlers: dict[str, list[EventHandler]] = {}
        self.created_count = 0
        self.removed_count = 0

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def center(self) -> Coordinate:
        return self._center

    @property
    def layers(self) -> list[Layer]:
        return list(self._layers.values())

    def layers_of_kind(self, kind: str) -> list[Layer]:
        return [layer for layer in self._layers.values() if layer.kind == kind]

    def get_layer(self, handle: LayerHandle) -> Layer | None:
        return self._layers.get(handle)

    def _add(self, kind: str, points: list[Coordinate], style: dict[str, Any]) -> LayerHandle:
        handle = next(self._handles)
        self._layers[handle] = Layer(handle=handle, kind=kind, points=points, style=style)
        self.created_count += 1
        return handle

    def add_image_overlay(self, url: str, bounds: Bounds, opacity: float, z_index: int = 1000) -> LayerHandle:
        return self._add(
            "image",
            [bounds.first, bounds.second],
            {"url": url, "opacity": float(opacity), "zIndex": int(z_index)},
        )

    def set_image_opacity(self, handle: LayerHandle, opacity: float) -> None:
        layer = self._layers.get(handle)
        if layer is None or layer.kind != "image":
            raise KeyError(f"No image overlay with handle {handle}")
        layer.style["opacity"] = float(opacity)

    def add_polygon(self, ring: tuple[Coordinate, ...], style: dict[str, Any]) -> LayerHandle:
        return self._add("polygon", list(ring), dict(style))

    def add_polyline(self, points: list[Coordinate], style: dict[str, Any]) -> LayerHandle:
        return self._add("polyline", list(points), dict(style))

    def add_marker(self, point: Coordinate, popup: str = "", icon: dict[str, Any] | None = None) -> LayerHandle:
        style: dict[str, Any] = {"popup": popup}
        style["icon"] = dict(icon) if icon else {
            "iconUrl": self.options.icon_url,
            "iconRetinaUrl": self.options.icon_retina_url,
            "shadowUrl": self.options.shadow_url,
        }
        return self._add("marker", [point], style)

    def remove_layer(self, handle: LayerHandle) -> None:
        if self._layers.pop(handle, None) is None:
            logger.debug(f"remove_layer: handle {handle} already removed")
            return
        self.removed_count += 1

    def subscribe(self, event: str, handler: EventHandler) -> Unsubscribe:
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Dispatch an event to its subscribers in subscription order."""
        for handler in list(self._handlers.get(event, [])):
            handler(payload)

    def fit_bounds(self, bounds: Bounds, max_zoom: float | None = None, padding: int = 0) -> None:
        # No projection here: building-sized bounds always fit at max_zoom.
        zoom = self._zoom if max_zoom is None else float(max_zoom)
        self.set_view(bounds.center(), zoom)

    def set_view(self, point: Coordinate, zoom: float) -> None:
        self._center = point
        self._zoom = float(zoom)
        self.emit(ZOOM_END, {"zoom": self._zoom})

    def click(self, point: Coordinate) -> None:
        """Simulate a user click at `point`."""
        self.emit(CLICK, {"latlng": point, "zoom": self._zoom})

    def snapshot(self) -> dict[str, Any]:
        return {
            "center": {"lat": self._center.lat, "lng": self._center.lng},
            "zoom": self._zoom,
            "layers": [layer.as_dict() for layer in self._layers.values()],
        }
