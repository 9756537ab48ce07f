"""Viewport-driven building focus state machine.

States:
- `Overview`: no building focused, indoor controls hidden.
- `BuildingFocused(building)`: indoor overlays for the selected floor are live.

Transitions:
- zoom end at or above `ZOOM_FOCUS_THRESHOLD` with the view center inside a
  building focuses it (default floor = first floor).
- a click inside a building focuses it immediately and fits the view to it.
- zoom end below the threshold returns to Overview and clears the floor.

The overlay set is keyed by `(building, floor)`, so repeating a transition
with the same inputs renders nothing new.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from campusnav.map_engine import CLICK, ZOOM_END, LayerHandle, MapEngine, Unsubscribe
from campusnav.models import Building, Coordinate, Floor
from campusnav.overlays import OverlayManager
from campusnav.spatial_model import SpatialModel

ZOOM_FOCUS_THRESHOLD = 19
CLICK_FIT_MAX_ZOOM = 20
JUMP_FIT_MAX_ZOOM = 21
JUMP_VIEW_ZOOM = 22
FIT_PADDING = 50
DEFAULT_TARGET = Coordinate(13.168000, 77.558353)


@dataclass(frozen=True, slots=True)
class Overview:
    name = "overview"


@dataclass(frozen=True, slots=True)
class BuildingFocused:
    building: Building
    name = "building_focused"


ViewState = Overview | BuildingFocused
BuildingClickHandler = Callable[[Building | None], None]


class ViewportController:
    """Derives building focus from viewport events and drives overlays."""

    def __init__(
        self,
        engine: MapEngine,
        model: SpatialModel,
        overlays: OverlayManager,
        on_building_click: BuildingClickHandler | None = None,
    ) -> None:
        self.engine = engine
        self.model = model
        self.overlays = overlays
        self.on_building_click = on_building_click
        self.state: ViewState = Overview()
        self.selected_floor: str | None = None
        self.indoor_controls_visible = engine.zoom >= ZOOM_FOCUS_THRESHOLD
        self._target_marker: LayerHandle | None = None
        self._subscriptions: list[Unsubscribe] = [
            engine.subscribe(ZOOM_END, self._handle_zoom_end),
            engine.subscribe(CLICK, self._handle_click),
        ]

    @property
    def focused_building(self) -> Building | None:
        return self.state.building if isinstance(self.state, BuildingFocused) else None

    @property
    def current_floor(self) -> Floor | None:
        return self.model.find_floor(self.focused_building, self.selected_floor)

    def on_zoom_end(self, zoom: float) -> None:
        if zoom < ZOOM_FOCUS_THRESHOLD:
            self.indoor_controls_visible = False
            if isinstance(self.state, BuildingFocused):
                logger.info(f"Leaving building {self.state.building.id} (zoom {zoom})")
            self.state = Overview()
            self.selected_floor = None
            self._render()
            return

        self.indoor_controls_visible = True
        building = self.model.find_building_containing(self.engine.center)
        if building is None:
            return
        self._focus(building)

    def on_click(self, point: Coordinate) -> Building | None:
        building = self.model.find_building_containing(point)
        if building is None:
            if self.on_building_click is not None:
                self.on_building_click(None)
            return None

        logger.info(f"Clicked on building {building.id}")
        self._focus(building)
        if self.on_building_click is not None:
            self.on_building_click(building)
        self.engine.fit_bounds(building.bounds, max_zoom=CLICK_FIT_MAX_ZOOM, padding=FIT_PADDING)
        return building

    def jump_to_target(self, target: Coordinate = DEFAULT_TARGET) -> Building | None:
        """Focus the building under `target`, or fly to the point itself."""
        if self._target_marker is not None:
            self.engine.remove_layer(self._target_marker)
            self._target_marker = None

        building = self.model.find_building_containing(target)
        if building is not None:
            self._focus(building, reset_floor=True)
            self.engine.fit_bounds(building.bounds, max_zoom=JUMP_FIT_MAX_ZOOM, padding=FIT_PADDING)
        else:
            self.engine.set_view(target, JUMP_VIEW_ZOOM)

        self._target_marker = self.engine.add_marker(target, popup="Target Location")
        return building

    def select_floor(self, level: str) -> bool:
        """Select a floor of the focused building; unknown levels are ignored."""
        floor = self.model.find_floor(self.focused_building, level)
        if floor is None:
            return False
        self.selected_floor = floor.level
        self._render()
        return True

    def teardown(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []
        if self._target_marker is not None:
            self.engine.remove_layer(self._target_marker)
            self._target_marker = None
        self.overlays.clear()

    def _focus(self, building: Building, reset_floor: bool = False) -> None:
        if self.focused_building == building and self.selected_floor is not None and not reset_floor:
            return
        self.state = BuildingFocused(building)
        self.selected_floor = building.floors[0].level
        logger.info(f"Focused building {building.id}, floor {self.selected_floor}")
        self._render()

    def _render(self) -> None:
        self.overlays.show(self.focused_building, self.current_floor)

    def _handle_zoom_end(self, event: dict[str, Any]) -> None:
        self.on_zoom_end(float(event["zoom"]))

    def _handle_click(self, event: dict[str, Any]) -> None:
        self.on_click(event["latlng"])
