"""Main-map session: wires pickers, viewport, overlays, routing and modal.

One session owns one main map engine. User actions arrive as method calls
and run to completion; the only suspended work is the outdoor routing
request owned by `RoutingRequestLifecycle`.
"""

from __future__ import annotations

import math
from typing import Any

from loguru import logger

from campusnav.errors import InvalidInputError, NotFoundError
from campusnav.geometry import coordinate_in_range
from campusnav.map_engine import InMemoryMapEngine, LayerHandle, MapOptions
from campusnav.modal import ModalController
from campusnav.models import Building, Coordinate, Location
from campusnav.overlays import OverlayManager
from campusnav.routing import MAIN_ROUTE_STYLE, RoutingRequestLifecycle, RoutingService
from campusnav.spatial_model import SpatialModel
from campusnav.viewport import ZOOM_FOCUS_THRESHOLD, BuildingFocused, ViewportController

CUSTOM_SOURCE_ID = "custom-source"
CUSTOM_DESTINATION_ID = "custom-destination"


def parse_coordinate_input(lat_raw: Any, lng_raw: Any) -> Coordinate:
    """Parse free-form lat/lng entry.

    Raises:
        InvalidInputError: If either value is missing, non-numeric, not
            finite or outside geographic range.
    """
    values: list[float] = []
    for label, raw in (("latitude", lat_raw), ("longitude", lng_raw)):
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raise InvalidInputError(f"{label} is required")
        try:
            value = float(raw)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"{label} must be a number") from exc
        if not math.isfinite(value):
            raise InvalidInputError(f"{label} must be finite")
        values.append(value)

    point = Coordinate(values[0], values[1])
    if not coordinate_in_range(point):
        raise InvalidInputError("Coordinates are outside geographic range")
    return point


def custom_location(location_id: str, label: str, point: Coordinate) -> Location:
    return Location(location_id, f"Custom {label} ({point.lat:.4f}, {point.lng:.4f})", point)


class CampusMapSession:
    """State behind the main map view and its controls."""

    def __init__(
        self,
        model: SpatialModel,
        routing_service: RoutingService,
        options: MapOptions | None = None,
        routing_timeout_s: float | None = None,
    ) -> None:
        self.model = model
        config = model.config
        self.engine = InMemoryMapEngine(config.default_center, config.default_zoom, options)
        self.overlays = OverlayManager(self.engine)
        self.modal = ModalController(model, routing_service, options, routing_timeout_s)
        self.viewport = ViewportController(
            self.engine, model, self.overlays, on_building_click=self._on_building_click
        )
        self.routing = RoutingRequestLifecycle(
            self.engine, routing_service, line_style=MAIN_ROUTE_STYLE, timeout_s=routing_timeout_s
        )
        self.source: Location | None = None
        self.destination: Location | None = None
        self.show_inputs = True
        self._endpoint_markers: list[LayerHandle] = []
        self.base_layer: str | None = config.map_layers[0].name if config.map_layers else None

    @property
    def destination_picker_visible(self) -> bool:
        return self.show_inputs and self.source is not None

    def select_source(self, location_id: str | None) -> Location | None:
        """Pick a predefined source; an empty id clears it."""
        location = self._lookup(location_id)
        self.source = location
        self._sync_endpoints()
        return location

    def select_destination(self, location_id: str | None) -> Location | None:
        """Pick a predefined destination; ignored until a source is set."""
        if not self.destination_picker_visible:
            logger.debug("Destination picker hidden; selection ignored")
            return self.destination
        location = self._lookup(location_id)
        self.destination = location
        self._sync_endpoints()
        return location

    def submit_custom_source(self, lat_raw: Any, lng_raw: Any) -> bool:
        """Set the source from free-form coordinates; invalid input is ignored."""
        try:
            point = parse_coordinate_input(lat_raw, lng_raw)
        except InvalidInputError as exc:
            logger.debug(f"Custom source ignored: {exc}")
            return False
        self.source = custom_location(CUSTOM_SOURCE_ID, "Source", point)
        self._sync_endpoints()
        return True

    def submit_custom_destination(self, lat_raw: Any, lng_raw: Any) -> bool:
        """Set the destination from free-form coordinates and hide the inputs."""
        if not self.destination_picker_visible:
            return False
        try:
            point = parse_coordinate_input(lat_raw, lng_raw)
        except InvalidInputError as exc:
            logger.debug(f"Custom destination ignored: {exc}")
            return False
        self.destination = custom_location(CUSTOM_DESTINATION_ID, "Destination", point)
        self.show_inputs = False
        self._sync_endpoints()
        return True

    def select_base_layer(self, name: str) -> bool:
        """Switch the active tile layer; unknown names are ignored."""
        if not any(layer.name == name for layer in self.model.config.map_layers):
            return False
        self.base_layer = name
        return True

    def reset(self) -> None:
        self.source = None
        self.destination = None
        self.show_inputs = True
        self._sync_endpoints()

    def zoom_to(self, zoom: float, center: Coordinate | None = None) -> None:
        """Apply a viewport change reported by the client."""
        self.engine.set_view(center or self.engine.center, zoom)

    def click(self, point: Coordinate) -> Building | None:
        """Forward a map click; returns the building hit, if any."""
        self.engine.click(point)
        return self.model.find_building_containing(point)

    def teardown(self) -> None:
        self.viewport.teardown()
        self.routing.clear()
        self.modal.close()
        for handle in self._endpoint_markers:
            self.engine.remove_layer(handle)
        self._endpoint_markers = []

    def snapshot(self) -> dict[str, Any]:
        state = self.viewport.state
        floor = self.viewport.current_floor
        return {
            "state": state.name,
            "focused_building": state.building.id if isinstance(state, BuildingFocused) else None,
            "selected_floor": floor.level if floor is not None else None,
            "indoor_controls_visible": self.viewport.indoor_controls_visible,
            "zoom_threshold": ZOOM_FOCUS_THRESHOLD,
            "base_layers": [layer.name for layer in self.model.config.map_layers],
            "base_layer": self.base_layer,
            "opacity": self.overlays.opacity,
            "opacity_control_visible": self.overlays.opacity_control_visible,
            "source": _location_payload(self.source),
            "destination": _location_payload(self.destination),
            "show_inputs": self.show_inputs,
            "destination_picker_visible": self.destination_picker_visible,
            "route_pending": self.routing.pending,
            "route_notice": self.routing.notice,
            "map": self.engine.snapshot(),
        }

    def _lookup(self, location_id: str | None) -> Location | None:
        if not location_id:
            return None
        location = self.model.find_location(location_id)
        if location is None:
            raise NotFoundError(f"Location '{location_id}' was not found")
        return location

    def _on_building_click(self, building: Building | None) -> None:
        if building is None:
            self.modal.close()
            return
        self.modal.open(building)

    def _sync_endpoints(self) -> None:
        for handle in self._endpoint_markers:
            self.engine.remove_layer(handle)
        self._endpoint_markers = []
        if self.source is not None:
            self._endpoint_markers.append(
                self.engine.add_marker(self.source.coordinates, popup=f"Source: {self.source.name}")
            )
        if self.destination is not None:
            self._endpoint_markers.append(
                self.engine.add_marker(self.destination.coordinates, popup=f"Destination: {self.destination.name}")
            )
        self.routing.update(self.source, self.destination)


def _location_payload(location: Location | None) -> dict[str, Any] | None:
    if location is None:
        return None
    return {
        "id": location.id,
        "name": location.name,
        "coordinates": {"lat": location.coordinates.lat, "lng": location.coordinates.lng},
    }
