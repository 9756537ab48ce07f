"""Pytest global fixtures and test isolation hooks."""

from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from campusnav.api import STATE
from campusnav.errors import RoutingRequestFailure
from campusnav.map_engine import InMemoryMapEngine
from campusnav.models import (
    Bounds,
    Building,
    CampusConfig,
    Coordinate,
    Corridor,
    Floor,
    Location,
    MapLayerDef,
    Room,
)
from campusnav.spatial_model import SpatialModel


def square(lat: float, lng: float, size: float = 0.0001) -> tuple[Coordinate, ...]:
    """Axis-aligned square ring with its south-west corner at `(lat, lng)`."""
    return (
        Coordinate(lat, lng),
        Coordinate(lat, lng + size),
        Coordinate(lat + size, lng + size),
        Coordinate(lat + size, lng),
    )


class FakeRoutingService:
    """Routing service whose calls stay pending until resolved by the test."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[Coordinate], str, asyncio.Future]] = []

    async def route(self, waypoints: Sequence[Coordinate], profile: str) -> list[Coordinate]:
        future = asyncio.get_running_loop().create_future()
        self.calls.append((list(waypoints), profile, future))
        return await future

    def resolve(self, index: int, geometry: list[Coordinate]) -> None:
        future = self.calls[index][2]
        if not future.done():
            future.set_result(geometry)


class StraightLineRoutingService:
    """Routing service that answers immediately with the waypoints themselves."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[Coordinate], str]] = []

    async def route(self, waypoints: Sequence[Coordinate], profile: str) -> list[Coordinate]:
        self.calls.append((list(waypoints), profile))
        return list(waypoints)


class FailingRoutingService:
    async def route(self, waypoints: Sequence[Coordinate], profile: str) -> list[Coordinate]:
        raise RoutingRequestFailure("service unavailable")


@pytest.fixture(autouse=True)
def reset_service_state() -> None:
    """Reset in-memory API state before each test."""
    if STATE.session is not None:
        STATE.session.viewport.teardown()
    STATE.settings = None
    STATE.model = None
    STATE.violations = []
    STATE.session = None
    STATE.layout_view = None
    STATE.routing_service = None


@pytest.fixture()
def admin_block() -> Building:
    """Building with an imaged ground floor (2 rooms, 1 corridor) and a plain first floor."""
    ground = Floor(
        level="1",
        name="Ground Floor",
        image_url="/static/floorplans/admin-ground.png",
        rooms=(
            Room("101", "Room 101", square(13.16800, 77.55810), "#4caf50"),
            Room("102", "Room 102", square(13.16800, 77.55845), "#2196f3"),
        ),
        corridors=(Corridor(square(13.16790, 77.55830, 0.00004)),),
    )
    first = Floor(
        level="2",
        name="First Floor",
        rooms=(Room("201", "Room 201", square(13.16800, 77.55810)),),
    )
    return Building(
        id="admin-block",
        name="Admin Block",
        bounds=Bounds(Coordinate(13.16770, 77.55800), Coordinate(13.16830, 77.55870)),
        floors=(ground, first),
    )


@pytest.fixture()
def library() -> Building:
    """Building whose bounds overlap the admin block's north-east corner."""
    return Building(
        id="library",
        name="Central Library",
        bounds=Bounds(Coordinate(13.16820, 77.55860), Coordinate(13.16900, 77.55950)),
        floors=(Floor(level="G", name="Reading Hall", image_url="/static/floorplans/library.png"),),
    )


@pytest.fixture()
def campus_config(admin_block: Building, library: Building) -> CampusConfig:
    return CampusConfig(
        default_center=Coordinate(13.1680, 77.5583),
        default_zoom=17,
        map_layers=(MapLayerDef("OpenStreetMap", "https://tile.example/{z}/{x}/{y}.png", "OSM", 22),),
        predefined_locations=(
            Location("main-gate", "Main Gate", Coordinate(13.1665, 77.5570)),
            Location("library", "Central Library", Coordinate(13.1690, 77.5592)),
        ),
        buildings=(admin_block, library),
    )


@pytest.fixture()
def spatial_model(campus_config: CampusConfig) -> SpatialModel:
    return SpatialModel.from_config(campus_config)


@pytest.fixture()
def engine() -> InMemoryMapEngine:
    return InMemoryMapEngine(Coordinate(13.1680, 77.5583), 17)


@pytest.fixture()
def fake_router() -> FakeRoutingService:
    return FakeRoutingService()


@pytest.fixture()
def straight_router() -> StraightLineRoutingService:
    return StraightLineRoutingService()


@pytest.fixture()
def failing_router() -> FailingRoutingService:
    return FailingRoutingService()
