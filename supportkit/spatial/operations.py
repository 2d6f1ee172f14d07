"""Geometry backend operations.

This module provides the narrow geometric interface the support-type models
and the engine consume:
- Union of geometry collections
- Window inference from arbitrary geometry (pluggable strategy)
- Boundary-inclusive containment tests with tolerance
- Location of query geometries within target geometries (cell/unit lookup)
"""

import logging

import geopandas as gpd
import numpy as np
import shapely
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from supportkit.models.enums import WindowInference

logger = logging.getLogger(__name__)


def union_geometry(geoms: gpd.GeoSeries) -> BaseGeometry:
    """Union a collection of geometries into a single geometry."""
    return shapely.union_all(np.asarray(geoms.values))


def infer_window_geometry(
    geoms: gpd.GeoSeries,
    strategy: WindowInference = WindowInference.CONVEX_HULL,
    margin: float = 1e-6,
) -> BaseGeometry:
    """Derive an implicit window from geometry.

    The result is not authoritative: it only claims completeness over the
    region spanned by the input itself.

    Args:
        geoms: Geometry to derive the window from
        strategy: Convex hull, bounding box, or plain union
        margin: Buffer applied if the derived region has no area

    Returns:
        Areal geometry covering all input geometries
    """
    merged = union_geometry(geoms)

    if strategy == WindowInference.CONVEX_HULL:
        region = merged.convex_hull
    elif strategy == WindowInference.BOUNDING_BOX:
        region = box(*merged.bounds)
    elif strategy == WindowInference.UNION:
        region = merged
    else:
        msg = f"Unknown window inference strategy: {strategy}"
        raise ValueError(msg)

    if region.area == 0:
        logger.debug(f"Inferred {strategy.value} window is degenerate; buffering by {margin}")
        region = region.buffer(margin)

    return region


def _grow(region: BaseGeometry, tolerance: float) -> BaseGeometry:
    return region.buffer(tolerance) if tolerance > 0 else region


def uncovered(region: BaseGeometry, geoms: gpd.GeoSeries, tolerance: float = 0.0) -> gpd.GeoSeries:
    """Flag geometries not covered by a region.

    Containment is boundary-inclusive: a point on the region's boundary is
    covered.

    Returns:
        Boolean Series, True where a geometry is (partly) outside the region
    """
    return ~geoms.covered_by(_grow(region, tolerance))


def covers(region: BaseGeometry, geometry: BaseGeometry, tolerance: float = 0.0) -> bool:
    """Boundary-inclusive containment of a single geometry."""
    return bool(_grow(region, tolerance).covers(geometry))


def representative_points(geoms: gpd.GeoSeries) -> gpd.GeoSeries:
    """One point per geometry: points stay as-is, others use a point on the surface."""
    return geoms.representative_point()


def locate(
    queries: gpd.GeoSeries,
    targets: gpd.GeoSeries,
    tolerance: float = 0.0,
) -> np.ndarray:
    """Find, for each query geometry, the first target geometry it touches.

    Used both for containment lookup (queries are points, targets polygons)
    and for coincidence lookup (both are points, matched within tolerance).

    Args:
        queries: Query geometries
        targets: Geometries to search
        tolerance: Query growth before the intersection test

    Returns:
        Array of positional target indices, -1 where a query hits nothing
    """
    result = np.full(len(queries), -1, dtype=int)
    if len(queries) == 0 or len(targets) == 0:
        return result

    search = queries.buffer(tolerance) if tolerance > 0 else queries
    query_idx, target_idx = targets.sindex.query(
        np.asarray(search.values), predicate="intersects"
    )

    # sindex results are not ordered by target; keep the lowest target position per query
    order = np.lexsort((target_idx, query_idx))
    query_idx = query_idx[order]
    target_idx = target_idx[order]
    first = np.unique(query_idx, return_index=True)[1]
    result[query_idx[first]] = target_idx[first]

    return result


def discretise(geometry: BaseGeometry, n: int) -> np.ndarray:
    """Approximate a block by a set of points.

    Areal geometry uses the centres of an n x n subdivision of its bounding
    box that fall inside it; lines use n * n evenly spaced points along their
    length; points are returned as-is.

    Returns:
        Array of shape (k, 2) with k >= 1
    """
    if geometry.geom_type in ("Point", "MultiPoint"):
        return np.array([(p.x, p.y) for p in getattr(geometry, "geoms", [geometry])])

    if geometry.geom_type in ("LineString", "MultiLineString", "LinearRing"):
        distances = (np.arange(n * n) + 0.5) / (n * n)
        points = [geometry.interpolate(d, normalized=True) for d in distances]
        return np.array([(p.x, p.y) for p in points])

    xmin, ymin, xmax, ymax = geometry.bounds
    xs = xmin + (np.arange(n) + 0.5) * (xmax - xmin) / n
    ys = ymin + (np.arange(n) + 0.5) * (ymax - ymin) / n
    gx, gy = np.meshgrid(xs, ys)
    gx, gy = gx.ravel(), gy.ravel()
    inside = shapely.intersects_xy(geometry, gx, gy)

    if not inside.any():
        point = geometry.representative_point()
        return np.array([(point.x, point.y)])

    return np.column_stack([gx[inside], gy[inside]])
