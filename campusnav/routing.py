"""Outdoor routing: OSRM client and the single-route request lifecycle.

Each map context owns one `RoutingRequestLifecycle`. At most one route
overlay exists per lifecycle. On every endpoint change the old overlay is
removed and the in-flight request cancelled before a new request is issued;
a superseded request never renders its result.

Failure policy: a failed or timed-out request leaves zero overlays and sets
`notice` to a message for the UI. It is never raised to the caller and is
not retried.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, Sequence

import httpx
from loguru import logger

from campusnav.config import DEFAULT_OSRM_URL
from campusnav.errors import RoutingRequestFailure
from campusnav.map_engine import LayerHandle, MapEngine
from campusnav.models import Coordinate, Location
from campusnav.planner import RouteRequest, plan_outdoor_route

MAIN_ROUTE_STYLE: dict[str, Any] = {"color": "#6FA1EC", "weight": 4}
MODAL_ROUTE_STYLE: dict[str, Any] = {"color": "#FF6B6B", "weight": 4}


class RoutingService(Protocol):
    """Outdoor routing collaborator."""

    async def route(self, waypoints: Sequence[Coordinate], profile: str) -> list[Coordinate]: ...


class OsrmRoutingService:
    """OSRM HTTP routing client.

    One `httpx.AsyncClient` is created lazily on the first request and reused
    until `aclose()`. An injected client is used as-is and never closed here.

    Args:
        base_url: Service root up to and including `/route/v1`.
        timeout_s: Per-request HTTP timeout.
        client: Optional shared `httpx.AsyncClient`.
        transport: Optional transport for the lazily created client.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OSRM_URL,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None
        self._transport = transport

    @property
    def client(self) -> httpx.AsyncClient | None:
        return self._client

    async def __aenter__(self) -> "OsrmRoutingService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the owned client; the next request opens a fresh one."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("OSRM client closed")

    def build_url(self, waypoints: Sequence[Coordinate], profile: str) -> str:
        # OSRM expects lng,lat order.
        coords = ";".join(f"{p.lng:.6f},{p.lat:.6f}" for p in waypoints)
        return f"{self.base_url}/{profile}/{coords}"

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)
        return self._client

    async def route(self, waypoints: Sequence[Coordinate], profile: str) -> list[Coordinate]:
        if len(waypoints) < 2:
            raise RoutingRequestFailure("At least two waypoints are required")

        url = self.build_url(waypoints, profile)
        try:
            response = await self._http().get(url, params={"overview": "full", "geometries": "geojson"})
        except httpx.HTTPError as exc:
            raise RoutingRequestFailure(f"Routing request failed: {exc}") from exc

        if response.status_code != 200:
            raise RoutingRequestFailure(f"Routing service returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise RoutingRequestFailure("Routing service returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise RoutingRequestFailure("Routing service returned a non-object JSON body")

        routes = payload.get("routes") or []
        if payload.get("code") != "Ok" or not routes:
            raise RoutingRequestFailure(f"No route found ({payload.get('code', 'unknown')})")

        try:
            coords = routes[0]["geometry"]["coordinates"]
            return [Coordinate(float(lat), float(lng)) for lng, lat in coords]
        except (KeyError, TypeError, ValueError) as exc:
            raise RoutingRequestFailure("Routing service returned malformed geometry") from exc


class RoutingRequestLifecycle:
    """Keeps at most one outdoor route overlay in step with its endpoints."""

    def __init__(
        self,
        engine: MapEngine,
        service: RoutingService,
        line_style: dict[str, Any] | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self.engine = engine
        self.service = service
        self.line_style = dict(line_style or MAIN_ROUTE_STYLE)
        self.timeout_s = timeout_s
        self.notice: str | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._overlay: LayerHandle | None = None
        self._endpoints: tuple[Location | None, Location | None] = (None, None)

    @property
    def overlay(self) -> LayerHandle | None:
        return self._overlay

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def generation(self) -> int:
        return self._generation

    def update(self, source: Location | None, destination: Location | None) -> asyncio.Task[None] | None:
        """Apply a new endpoint pair; must be called from the running event loop.

        Returns:
            The newly scheduled request task, or None if no request was issued.
        """
        if (source, destination) == self._endpoints and (self._overlay is not None or self.pending):
            return self._task

        self._release()
        self._endpoints = (source, destination)
        self.notice = None

        request = plan_outdoor_route(source, destination)
        if request is None:
            return None

        generation = self._generation
        self._task = asyncio.get_running_loop().create_task(self._run(generation, request))
        logger.debug(f"Routing request #{generation} issued: {request.waypoints}")
        return self._task

    def clear(self) -> None:
        """Drop the overlay and cancel any in-flight request."""
        self._release()
        self._endpoints = (None, None)
        self.notice = None

    async def settle(self) -> None:
        """Wait until the current request finishes, is cancelled or fails."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    def _release(self) -> None:
        self._generation += 1
        if self._overlay is not None:
            self.engine.remove_layer(self._overlay)
            self._overlay = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, generation: int, request: RouteRequest) -> None:
        try:
            call = self.service.route(list(request.waypoints), request.profile)
            if self.timeout_s is not None:
                geometry = await asyncio.wait_for(call, timeout=self.timeout_s)
            else:
                geometry = await call
        except asyncio.TimeoutError:
            self._fail(generation, "Routing request timed out")
            return
        except RoutingRequestFailure as exc:
            self._fail(generation, str(exc))
            return

        if generation != self._generation:
            logger.debug(f"Discarding stale routing result #{generation}")
            return
        if len(geometry) < 2:
            self._fail(generation, "Routing service returned an empty route")
            return

        self._overlay = self.engine.add_polyline(geometry, self.line_style)
        logger.info(f"Route #{generation} rendered with {len(geometry)} points")

    def _fail(self, generation: int, message: str) -> None:
        if generation != self._generation:
            return
        self.notice = message
        logger.warning(f"Routing request #{generation} failed: {message}")
