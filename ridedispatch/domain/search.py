"""
H3 Search-Cell Pre-filter
=========================

Rides and user locations carry the H3 cell (``CELL_RESOLUTION`` 7,
~5.16 km²) of their position.  The resolution is part of the stored
data, not a setting: rows written at one resolution are invisible to a
disk built at another.  A radius query first asks the store only
for rows whose cell lies in the ``grid_disk`` around the origin cell,
then refines the survivors with the haversine metric.

Ring count
----------
Neighbouring cell centres are ``sqrt(3) x edge`` apart, and local edge
lengths stay within roughly 0.7-1.4x of the resolution average, so

    k = ceil(radius / average_edge) + 1

rings always cover every point within *radius* of the origin.  The
pre-filter may return extra cells, never fewer.

Complexity
----------
``grid_disk(k)`` has ``3k(k+1) + 1`` cells.  Above ``max_cells`` the
pre-filter is skipped (``None``) and the caller scans by status only.
"""

from __future__ import annotations

import math
from typing import Optional

import h3

CELL_RESOLUTION = 7


def point_cell(lat: float, lng: float, resolution: int = CELL_RESOLUTION) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def ring_count(radius_km: float, resolution: int = CELL_RESOLUTION) -> int:
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    return math.ceil(radius_km / edge_km) + 1


def disk_size(k: int) -> int:
    return 3 * k * (k + 1) + 1


def search_cells(
    lat: float,
    lng: float,
    radius_km: float,
    resolution: int = CELL_RESOLUTION,
    max_cells: int = 5000,
) -> Optional[set[str]]:
    """
    Return the set of cells that covers the circle, or ``None`` when the
    disk would exceed *max_cells* and a full scan is cheaper.
    """
    k = ring_count(radius_km, resolution)
    if disk_size(k) > max_cells:
        return None
    origin = point_cell(lat, lng, resolution)
    return set(h3.grid_disk(origin, k))
