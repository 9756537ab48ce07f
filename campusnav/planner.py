"""Indoor path stitching and outdoor route requests.

Purpose:
- Build a room-to-room NavPath through the nearest corridor anchors.
- Describe outdoor routes as waypoint requests for the routing service.

Paths are recomputed from the current inputs on every call; nothing is cached.

Usage example:
    >>> path = plan_indoor_path(source_room, target_room, floor.corridors)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from campusnav.geometry import nearest_index, polygon_centroid
from campusnav.models import Coordinate, Corridor, Location, NavPath, Room

PEDESTRIAN_PROFILE = "foot"


@dataclass(frozen=True, slots=True)
class RouteRequest:
    """Waypoints and travel profile handed to the routing service."""

    waypoints: tuple[Coordinate, ...]
    profile: str = PEDESTRIAN_PROFILE


def nearest_corridor(point: Coordinate, corridors: Sequence[Corridor]) -> Corridor | None:
    """Corridor whose vertex-mean centroid is closest to `point` (planar).

    The first corridor in iteration order wins when distances tie.
    """
    idx = nearest_index(point, [polygon_centroid(c.polygon) for c in corridors])
    return None if idx is None else corridors[idx]


def plan_indoor_path(
    source_room: Room | None,
    target_room: Room | None,
    corridors: Sequence[Corridor],
) -> NavPath | None:
    """Stitch source centroid -> corridor anchors -> target centroid.

    Returns:
        Ordered coordinates (length 2 to 4), or None if an endpoint is unset
        or both endpoints are the same room.
    """
    if source_room is None or target_room is None:
        return None
    if source_room == target_room:
        return None

    source = polygon_centroid(source_room.polygon)
    target = polygon_centroid(target_room.polygon)

    path: NavPath = [source]
    if corridors:
        near_source = polygon_centroid(nearest_corridor(source, corridors).polygon)
        near_target = polygon_centroid(nearest_corridor(target, corridors).polygon)
        path.append(near_source)
        if near_target != near_source:
            path.append(near_target)
    path.append(target)
    return path


def plan_outdoor_route(source: Location | None, destination: Location | None) -> RouteRequest | None:
    """Waypoint request for the routing service, or None if an endpoint is unset."""
    if source is None or destination is None:
        return None
    return RouteRequest(waypoints=(source.coordinates, destination.coordinates))
