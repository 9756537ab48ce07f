"""Planar geometry helpers over `(lat, lng)` coordinates.

Purpose:
- Vertex-mean centroids used for path anchors.
- Bounding boxes for labels and viewport fitting.
- Planar (not geodesic) distance for nearest-corridor lookup.

Usage example:
    >>> from campusnav.models import Coordinate
    >>> ring = (Coordinate(0, 0), Coordinate(0, 2), Coordinate(2, 2), Coordinate(2, 0))
    >>> polygon_centroid(ring)
    Coordinate(lat=1.0, lng=1.0)
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np
from shapely.geometry import Polygon

from campusnav.models import Bounds, Coordinate


def coordinate_in_range(point: Coordinate) -> bool:
    """Return True when lat/lng are finite and within geographic range."""
    if not (math.isfinite(point.lat) and math.isfinite(point.lng)):
        return False
    return -90.0 <= point.lat <= 90.0 and -180.0 <= point.lng <= 180.0


def distinct_vertex_count(ring: Sequence[Coordinate]) -> int:
    return len({p.as_pair() for p in ring})


def ring_area(ring: Sequence[Coordinate]) -> float:
    """Planar ring area in squared degrees (0.0 for degenerate rings)."""
    if distinct_vertex_count(ring) < 3:
        return 0.0
    return float(Polygon([(p.lng, p.lat) for p in ring]).area)


def polygon_centroid(ring: Sequence[Coordinate]) -> Coordinate:
    """Arithmetic mean of the ring vertices.

    This is not the area-weighted centroid; nearest-corridor tie-breaks depend
    on this exact formula.
    """
    if not ring:
        raise ValueError("ring must contain at least one vertex")
    arr = np.array([p.as_pair() for p in ring], dtype=float)
    lat, lng = arr.mean(axis=0)
    return Coordinate(float(lat), float(lng))


def bounding_box(points: Iterable[Coordinate]) -> Bounds:
    """Axis-aligned box enclosing all points."""
    pts = list(points)
    if not pts:
        raise ValueError("points cannot be empty")
    arr = np.array([p.as_pair() for p in pts], dtype=float)
    south, west = arr.min(axis=0)
    north, east = arr.max(axis=0)
    return Bounds(Coordinate(float(south), float(west)), Coordinate(float(north), float(east)))


def box_center(ring: Sequence[Coordinate]) -> Coordinate:
    """Center of the ring's bounding box, used for room labels."""
    return bounding_box(ring).center()


def planar_distance(a: Coordinate, b: Coordinate) -> float:
    return math.hypot(a.lat - b.lat, a.lng - b.lng)


def nearest_index(point: Coordinate, candidates: Sequence[Coordinate]) -> int | None:
    """Index of the candidate closest to `point`; first wins on ties."""
    if not candidates:
        return None
    arr = np.array([c.as_pair() for c in candidates], dtype=float)
    dists = np.hypot(arr[:, 0] - point.lat, arr[:, 1] - point.lng)
    # argmin returns the first occurrence of the minimum.
    return int(np.argmin(dists))
