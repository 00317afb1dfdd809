"""
Geometric Utility Functions
=============================

Polyline measurements on WGS84 longitude/latitude coordinates used
throughout waynet: great-circle lengths, vertex lookup by position and
polyline comparison.

All polylines are ``(N, 2)`` numpy arrays ordered as ``(lon, lat)``.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

EARTH_RADIUS_M = 6371008.8

# Vertices closer than this (in degrees) are considered the same location.
COORDINATE_TOLERANCE = 1e-9


def as_polyline(coords: Sequence[Tuple[float, float]]) -> np.ndarray:
    """Convert a coordinate sequence into an ``(N, 2)`` float array."""
    arr = np.asarray(coords, dtype=np.float64)
    if arr.size == 0:
        return np.empty((0, 2), dtype=np.float64)
    return arr.reshape(-1, 2)


def polyline_length(polyline: np.ndarray) -> float:
    """Compute the total great-circle length of a lon/lat polyline.

    Args:
        polyline: (N, 2) array of (lon, lat) points in degrees.

    Returns:
        Total length in meters. Returns 0.0 if fewer than 2 points.
    """
    if len(polyline) < 2:
        return 0.0
    rad = np.radians(polyline)
    lon, lat = rad[:, 0], rad[:, 1]
    dlon = np.diff(lon)
    dlat = np.diff(lat)
    h = (
        np.sin(dlat / 2.0) ** 2
        + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(dlon / 2.0) ** 2
    )
    h = np.clip(h, 0.0, 1.0)
    return float(np.sum(2.0 * EARTH_RADIUS_M * np.arcsin(np.sqrt(h))))


def find_vertex_index(
    polyline: np.ndarray,
    position: Tuple[float, float],
    interior_only: bool = True,
) -> Optional[int]:
    """Locate the first vertex of a polyline matching a position.

    Args:
        polyline: (N, 2) array of points.
        position: (lon, lat) to look for.
        interior_only: When True, the first and last vertex are ignored.

    Returns:
        Index of the matching vertex, or None when the position is not a
        vertex of the polyline.
    """
    if len(polyline) == 0:
        return None
    hits = np.all(
        np.abs(polyline - np.asarray(position, dtype=np.float64))
        <= COORDINATE_TOLERANCE,
        axis=1,
    )
    if interior_only:
        hits[0] = False
        hits[-1] = False
    indices = np.flatnonzero(hits)
    if len(indices) == 0:
        return None
    return int(indices[0])


def polylines_equal(a: np.ndarray, b: np.ndarray) -> bool:
    """Whether two polylines have the same vertices in the same order."""
    if a.shape != b.shape:
        return False
    return bool(np.all(np.abs(a - b) <= COORDINATE_TOLERANCE))
