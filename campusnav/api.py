"""FastAPI routes for the campus map controls.

The browser client draws whatever layer set the server reports; every user
control (pickers, floor selector, opacity slider, reset, building detail,
custom layout room pickers) is an endpoint that mutates the in-memory
session and returns its new snapshot.

Endpoints that can start an outdoor routing request wait for it to settle,
so the returned snapshot already holds the route overlay or failure notice.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from campusnav.config import Settings, load_campus_config, load_custom_layout
from campusnav.custom_layout import CustomLayoutView
from campusnav.errors import NotFoundError, ValidationError
from campusnav.map_engine import InMemoryMapEngine
from campusnav.models import Building, Coordinate, Violation
from campusnav.planner import plan_indoor_path
from campusnav.routing import OsrmRoutingService, RoutingService
from campusnav.session import CampusMapSession
from campusnav.spatial_model import SpatialModel
from campusnav.viewport import DEFAULT_TARGET


@dataclass
class ServiceState:
    """In-memory state for the loaded campus and the live map session."""

    settings: Settings | None = None
    model: SpatialModel | None = None
    violations: list[Violation] = field(default_factory=list)
    session: CampusMapSession | None = None
    layout_view: CustomLayoutView | None = None
    routing_service: RoutingService | None = None


STATE = ServiceState()


class LatLng(BaseModel):
    """Geographic coordinate in degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


class ZoomRequest(BaseModel):
    """Viewport change reported by the client after a zoom."""

    zoom: float = Field(..., ge=0, le=30)
    center: LatLng | None = None


class JumpRequest(BaseModel):
    target: LatLng | None = None


class FloorRequest(BaseModel):
    level: str


class OpacityRequest(BaseModel):
    value: float = Field(..., ge=0.0, le=1.0)


class LocationRequest(BaseModel):
    """Predefined location pick; empty or missing id clears the endpoint."""

    location_id: str | None = None


class CustomCoordinateRequest(BaseModel):
    """Free-form coordinate entry, validated by the session."""

    lat: str | float | None = None
    lng: str | float | None = None


class BaseLayerRequest(BaseModel):
    name: str


class ModalOpenRequest(BaseModel):
    building_id: str


class RoomPickRequest(BaseModel):
    source_room_id: str | None = None
    target_room_id: str | None = None


def _serialize_building(building: Building) -> dict[str, Any]:
    return {
        "id": building.id,
        "name": building.name,
        "bounds": [
            [building.bounds.first.lat, building.bounds.first.lng],
            [building.bounds.second.lat, building.bounds.second.lng],
        ],
        "floors": [
            {
                "level": floor.level,
                "name": floor.name,
                "image_url": floor.image_url,
                "rooms": [{"id": r.id, "name": r.name} for r in floor.rooms],
                "corridor_count": len(floor.corridors),
            }
            for floor in building.floors
        ],
    }


def _points(path: list[Coordinate]) -> list[dict[str, float]]:
    return [{"lat": p.lat, "lng": p.lng} for p in path]


def initialize_state(settings: Settings, routing_service: RoutingService | None = None) -> None:
    """Load config files and build a fresh session into `STATE`.

    A config that cannot be read leaves `STATE.model` empty; the API then
    answers 400 instead of failing to start.
    """
    STATE.settings = settings
    service = routing_service or OsrmRoutingService(settings.osrm_url, timeout_s=settings.routing_timeout_s)
    STATE.routing_service = service

    try:
        config, structural = load_campus_config(settings.campus_config_path)
    except ValidationError as exc:
        logger.error(f"Campus config unavailable: {exc}")
        STATE.model = None
        STATE.session = None
        STATE.violations = []
    else:
        model = SpatialModel.from_config(config)
        STATE.model = model
        STATE.violations = structural + model.violations
        STATE.session = CampusMapSession(model, service, routing_timeout_s=settings.routing_timeout_s)

    try:
        layout = load_custom_layout(settings.layout_config_path)
    except ValidationError as exc:
        logger.error(f"Custom layout unavailable: {exc}")
        STATE.layout_view = None
    else:
        view = CustomLayoutView(InMemoryMapEngine(layout.center, layout.zoom), layout)
        view.render()
        STATE.layout_view = view
        STATE.violations = STATE.violations + view.violations


def _session_or_400() -> CampusMapSession:
    """Get the live map session or raise 400."""
    if STATE.session is None:
        raise HTTPException(status_code=400, detail="No campus config loaded")
    return STATE.session


def _layout_or_400() -> CustomLayoutView:
    if STATE.layout_view is None:
        raise HTTPException(status_code=400, detail="No custom layout loaded")
    return STATE.layout_view


def _modal_payload(session: CampusMapSession) -> dict[str, Any]:
    modal = session.modal
    floor = modal.current_floor
    image = modal.floor_image()
    return {
        "open": modal.is_open,
        "building": _serialize_building(modal.building) if modal.building is not None else None,
        "selected_floor": floor.level if floor is not None else None,
        "floor_image": {"name": image[0], "url": image[1]} if image else None,
        "route_notice": modal.routing.notice if modal.routing is not None else None,
        "map": modal.engine.snapshot() if modal.engine is not None else None,
    }


def _layout_payload(view: CustomLayoutView) -> dict[str, Any]:
    return {
        "source_room_id": view.source_room_id,
        "target_room_id": view.target_room_id,
        "source_options": view.source_options(),
        "target_options": view.target_options(),
        "nav_path": _points(view.nav_path) if view.nav_path else None,
        "map": view.engine.snapshot() if isinstance(view.engine, InMemoryMapEngine) else None,
    }


async def _settle(session: CampusMapSession) -> None:
    await session.routing.settle()
    if session.modal.routing is not None:
        await session.modal.routing.settle()


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the shared OSRM client on shutdown."""
    yield
    if isinstance(STATE.routing_service, OsrmRoutingService):
        await STATE.routing_service.aclose()


def create_app(settings: Settings | None = None, routing_service: RoutingService | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is not None or STATE.settings is None:
        initialize_state(settings or Settings.from_env(), routing_service)

    app = FastAPI(title="Campus Navigation API", version="1.0.0", lifespan=_lifespan)

    raw_origins = (STATE.settings.cors_origins if STATE.settings else "*") or "*"
    if raw_origins == "*":
        cors_origins = ["*"]
        allow_credentials = False
    else:
        cors_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        allow_credentials = True

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Health endpoint with config load status."""
        return {
            "status": "ok",
            "version": app.version,
            "config_loaded": STATE.model is not None,
            "layout_loaded": STATE.layout_view is not None,
            "violations": len(STATE.violations),
        }

    @app.get("/config")
    async def get_config() -> dict[str, Any]:
        """Return the sanitized campus config and the dropped-entity report."""
        if STATE.model is None:
            raise HTTPException(status_code=400, detail="No campus config loaded")
        config = STATE.model.config
        return {
            "default_center": {"lat": config.default_center.lat, "lng": config.default_center.lng},
            "default_zoom": config.default_zoom,
            "map_layers": [
                {"name": m.name, "url": m.url, "attribution": m.attribution, "max_zoom": m.max_zoom}
                for m in config.map_layers
            ],
            "predefined_locations": [
                {"id": loc.id, "name": loc.name, "coordinates": {"lat": loc.coordinates.lat, "lng": loc.coordinates.lng}}
                for loc in config.predefined_locations
            ],
            "buildings": [_serialize_building(b) for b in config.buildings],
            "violations": [v.as_dict() for v in STATE.violations],
        }

    @app.get("/session")
    async def get_session() -> dict[str, Any]:
        return _session_or_400().snapshot()

    @app.post("/viewport/zoom")
    async def zoom(payload: ZoomRequest) -> dict[str, Any]:
        session = _session_or_400()
        session.zoom_to(payload.zoom, payload.center.to_coordinate() if payload.center else None)
        return session.snapshot()

    @app.post("/viewport/click")
    async def click(payload: LatLng) -> dict[str, Any]:
        """Click on the main map; a building hit focuses it and opens its modal."""
        session = _session_or_400()
        building = session.click(payload.to_coordinate())
        await _settle(session)
        return {
            "building_id": building.id if building is not None else None,
            "session": session.snapshot(),
            "modal": _modal_payload(session),
        }

    @app.post("/viewport/jump")
    async def jump(payload: JumpRequest) -> dict[str, Any]:
        session = _session_or_400()
        target = payload.target.to_coordinate() if payload.target else DEFAULT_TARGET
        session.viewport.jump_to_target(target)
        return session.snapshot()

    @app.post("/floor")
    async def select_floor(payload: FloorRequest) -> dict[str, Any]:
        session = _session_or_400()
        if session.viewport.focused_building is None:
            raise HTTPException(status_code=400, detail="No building is focused")
        if not session.viewport.select_floor(payload.level):
            raise HTTPException(status_code=404, detail=f"Floor '{payload.level}' was not found")
        return session.snapshot()

    @app.post("/opacity")
    async def set_opacity(payload: OpacityRequest) -> dict[str, Any]:
        session = _session_or_400()
        session.overlays.set_opacity(payload.value)
        return session.snapshot()

    @app.post("/source")
    async def select_source(payload: LocationRequest) -> dict[str, Any]:
        session = _session_or_400()
        try:
            session.select_source(payload.location_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        await _settle(session)
        return session.snapshot()

    @app.post("/destination")
    async def select_destination(payload: LocationRequest) -> dict[str, Any]:
        session = _session_or_400()
        try:
            session.select_destination(payload.location_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        await _settle(session)
        return session.snapshot()

    @app.post("/source/custom")
    async def custom_source(payload: CustomCoordinateRequest) -> dict[str, Any]:
        session = _session_or_400()
        accepted = session.submit_custom_source(payload.lat, payload.lng)
        await _settle(session)
        return {"accepted": accepted, "session": session.snapshot()}

    @app.post("/destination/custom")
    async def custom_destination(payload: CustomCoordinateRequest) -> dict[str, Any]:
        session = _session_or_400()
        accepted = session.submit_custom_destination(payload.lat, payload.lng)
        await _settle(session)
        return {"accepted": accepted, "session": session.snapshot()}

    @app.post("/base-layer")
    async def select_base_layer(payload: BaseLayerRequest) -> dict[str, Any]:
        session = _session_or_400()
        if not session.select_base_layer(payload.name):
            raise HTTPException(status_code=404, detail=f"Base layer '{payload.name}' was not found")
        return session.snapshot()

    @app.post("/reset")
    async def reset() -> dict[str, Any]:
        session = _session_or_400()
        session.reset()
        return session.snapshot()

    @app.get("/modal")
    async def get_modal() -> dict[str, Any]:
        return _modal_payload(_session_or_400())

    @app.post("/modal/open")
    async def open_modal(payload: ModalOpenRequest) -> dict[str, Any]:
        session = _session_or_400()
        building = session.model.find_building(payload.building_id)
        if building is None:
            raise HTTPException(status_code=404, detail=f"Building '{payload.building_id}' was not found")
        session.modal.open(building)
        await _settle(session)
        return _modal_payload(session)

    @app.post("/modal/floor")
    async def modal_floor(payload: FloorRequest) -> dict[str, Any]:
        session = _session_or_400()
        if not session.modal.is_open:
            raise HTTPException(status_code=400, detail="Building modal is not open")
        if not session.modal.select_floor(payload.level):
            raise HTTPException(status_code=404, detail=f"Floor '{payload.level}' was not found")
        return _modal_payload(session)

    @app.post("/modal/opacity")
    async def modal_opacity(payload: OpacityRequest) -> dict[str, Any]:
        session = _session_or_400()
        if session.modal.set_opacity(payload.value) is None:
            raise HTTPException(status_code=400, detail="Building modal is not open")
        return _modal_payload(session)

    @app.post("/modal/close")
    async def close_modal() -> dict[str, Any]:
        session = _session_or_400()
        session.modal.close()
        return _modal_payload(session)

    @app.get("/indoor-path")
    async def indoor_path(
        building_id: str = Query(...),
        level: str = Query(...),
        source_room_id: str = Query(...),
        target_room_id: str = Query(...),
    ) -> dict[str, Any]:
        """Corridor-stitched path between two rooms of one floor."""
        if STATE.model is None:
            raise HTTPException(status_code=400, detail="No campus config loaded")
        model = STATE.model
        floor = model.find_floor(model.find_building(building_id), level)
        if floor is None:
            raise HTTPException(status_code=404, detail=f"Floor '{building_id}/{level}' was not found")
        source = model.find_room(floor, source_room_id)
        target = model.find_room(floor, target_room_id)
        if source is None or target is None:
            raise HTTPException(status_code=404, detail="Room was not found on this floor")

        path = plan_indoor_path(source, target, floor.corridors)
        if path is None:
            raise HTTPException(status_code=404, detail="No indoor path for this room pair")
        return {"building_id": building_id, "level": level, "nav_path": _points(path)}

    @app.get("/custom-layout")
    async def get_custom_layout() -> dict[str, Any]:
        return _layout_payload(_layout_or_400())

    @app.post("/custom-layout/rooms")
    async def pick_rooms(payload: RoomPickRequest) -> dict[str, Any]:
        """Update the source/target room pickers of the custom layout."""
        view = _layout_or_400()
        fields = payload.model_fields_set
        if "source_room_id" in fields and not view.select_source(payload.source_room_id):
            raise HTTPException(status_code=404, detail="Source room is unknown or already picked as target")
        if "target_room_id" in fields and not view.select_target(payload.target_room_id):
            raise HTTPException(status_code=404, detail="Target room is unknown or already picked as source")
        return _layout_payload(view)

    return app
