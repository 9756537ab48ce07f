"""Building detail modal with its own mini-map.

The modal owns a separate map engine, overlay manager and routing lifecycle;
nothing it renders touches the main map. While open it always routes a fixed
sample pair (entrance to room 101) for illustration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from loguru import logger

from campusnav.map_engine import InMemoryMapEngine, LayerHandle, MapOptions
from campusnav.models import Building, Coordinate, Floor, Location
from campusnav.overlays import OverlayManager
from campusnav.routing import MODAL_ROUTE_STYLE, RoutingRequestLifecycle, RoutingService
from campusnav.spatial_model import SpatialModel

MODAL_ZOOM = 20

SAMPLE_SOURCE = Location("sample-source", "Entrance", Coordinate(13.16791, 77.558363))
SAMPLE_DESTINATION = Location("sample-destination", "Room 101", Coordinate(13.16806, 77.558283))


@dataclass(frozen=True, slots=True)
class Closed:
    name = "closed"


@dataclass(frozen=True, slots=True)
class Open:
    building: Building
    selected_floor: str | None
    name = "open"


ModalState = Closed | Open


class ModalController:
    """Open/closed state machine for the building detail view."""

    def __init__(
        self,
        model: SpatialModel,
        routing_service: RoutingService,
        options: MapOptions | None = None,
        routing_timeout_s: float | None = None,
        engine_factory: Callable[[Coordinate, float], InMemoryMapEngine] | None = None,
    ) -> None:
        self.model = model
        self.state: ModalState = Closed()
        self._routing_service = routing_service
        self._routing_timeout_s = routing_timeout_s
        self._engine_factory = engine_factory or (lambda center, zoom: InMemoryMapEngine(center, zoom, options))
        self.engine: InMemoryMapEngine | None = None
        self.overlays: OverlayManager | None = None
        self.routing: RoutingRequestLifecycle | None = None
        self._markers: list[LayerHandle] = []

    @property
    def is_open(self) -> bool:
        return isinstance(self.state, Open)

    @property
    def building(self) -> Building | None:
        return self.state.building if isinstance(self.state, Open) else None

    @property
    def current_floor(self) -> Floor | None:
        if not isinstance(self.state, Open):
            return None
        return self.model.find_floor(self.state.building, self.state.selected_floor)

    def floor_image(self) -> tuple[str, str] | None:
        """`(floor name, image url)` of the selected floor, when it has an image."""
        floor = self.current_floor
        if floor is None or not floor.image_url:
            return None
        return floor.name, floor.image_url

    def open(self, building: Building | None) -> bool:
        """Open for `building`; must run inside the event loop (starts a route)."""
        if building is None:
            return False
        if self.building == building:
            return True
        if self.is_open:
            self.close()

        first_level = building.floors[0].level if building.floors else None
        self.state = Open(building, first_level)

        self.engine = self._engine_factory(building.bounds.center(), MODAL_ZOOM)
        self.overlays = OverlayManager(self.engine)
        self.routing = RoutingRequestLifecycle(
            self.engine,
            self._routing_service,
            line_style=MODAL_ROUTE_STYLE,
            timeout_s=self._routing_timeout_s,
        )
        self._markers = [
            self.engine.add_marker(SAMPLE_SOURCE.coordinates, popup=SAMPLE_SOURCE.name),
            self.engine.add_marker(SAMPLE_DESTINATION.coordinates, popup=SAMPLE_DESTINATION.name),
        ]
        self.overlays.show(building, self.current_floor)
        self.routing.update(SAMPLE_SOURCE, SAMPLE_DESTINATION)
        logger.info(f"Opened building modal for {building.id}")
        return True

    def select_floor(self, level: str) -> bool:
        if not isinstance(self.state, Open) or self.overlays is None:
            return False
        floor = self.model.find_floor(self.state.building, level)
        if floor is None:
            return False
        self.state = Open(self.state.building, floor.level)
        self.overlays.show(self.state.building, floor)
        return True

    def set_opacity(self, value: float) -> float | None:
        if self.overlays is None:
            return None
        return self.overlays.set_opacity(value)

    def close(self) -> None:
        """Release every modal layer and cancel the sample route."""
        if self.routing is not None:
            self.routing.clear()
        if self.overlays is not None:
            self.overlays.clear()
        if self.engine is not None:
            for handle in self._markers:
                self.engine.remove_layer(handle)
        if isinstance(self.state, Open):
            logger.info(f"Closed building modal for {self.state.building.id}")
        self._markers = []
        self.routing = None
        self.overlays = None
        self.engine = None
        self.state = Closed()
