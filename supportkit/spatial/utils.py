"""General spatial utilities.

This module provides small helpers shared by the models and the engine:
- Coercion of loose geometry inputs into GeoSeries
- Precision model application (for stable geometry comparison)
- Order-insensitive geometry identity checks
"""

from collections.abc import Iterable

import geopandas as gpd
from shapely import set_precision
from shapely.geometry.base import BaseGeometry


def as_geoseries(geometry, crs: str | None = None) -> gpd.GeoSeries:
    """Coerce a geometry-like input into a GeoSeries.

    Accepts a GeoSeries, a GeoDataFrame (its active geometry column), a single
    shapely geometry, or an iterable of shapely geometries.

    Raises:
        TypeError: If the input cannot be interpreted as geometry
    """
    if isinstance(geometry, gpd.GeoDataFrame):
        return geometry.geometry
    if isinstance(geometry, gpd.GeoSeries):
        return geometry
    if isinstance(geometry, BaseGeometry):
        return gpd.GeoSeries([geometry], crs=crs)
    if isinstance(geometry, Iterable) and not isinstance(geometry, str | bytes):
        geoms = list(geometry)
        if not all(isinstance(g, BaseGeometry) for g in geoms):
            msg = "Expected an iterable of shapely geometries"
            raise TypeError(msg)
        return gpd.GeoSeries(geoms, crs=crs)

    msg = f"Cannot interpret {type(geometry).__name__} as geometry"
    raise TypeError(msg)


def apply_precision(geoms: gpd.GeoSeries, grid_size: float = 1e-6) -> gpd.GeoSeries:
    """Snap geometry coordinates to a precision grid.

    Args:
        geoms: Input geometries
        grid_size: Precision grid size in coordinate units

    Returns:
        GeoSeries with precision-snapped geometries
    """
    return geoms.apply(lambda geom: set_precision(geom, grid_size=grid_size) if geom else geom)


def match_geometries(
    left: gpd.GeoSeries,
    right: gpd.GeoSeries,
    grid_size: float = 1e-6,
) -> list[int] | None:
    """Pair up two geometry collections describing the same units.

    Comparison is order-insensitive and tolerant to coordinate noise below
    ``grid_size``. Each unit on the left must match exactly one unit on the
    right (topological equality after snapping).

    Args:
        left: First set of unit geometries
        right: Second set of unit geometries
        grid_size: Precision grid used before comparison

    Returns:
        For each left unit, the position of its match on the right, or None
        if the two collections are not the same set of geometries
    """
    if len(left) != len(right):
        return None

    left_snapped = list(apply_precision(left.reset_index(drop=True), grid_size))
    right_snapped = list(apply_precision(right.reset_index(drop=True), grid_size))

    unmatched = list(range(len(right_snapped)))
    positions = []
    for geom in left_snapped:
        match = next((j for j in unmatched if right_snapped[j].equals(geom)), None)
        if match is None:
            return None
        unmatched.remove(match)
        positions.append(match)

    return positions


def same_geometries(left: gpd.GeoSeries, right: gpd.GeoSeries, grid_size: float = 1e-6) -> bool:
    """True if both collections are the same set of unit geometries."""
    return match_geometries(left, right, grid_size) is not None
