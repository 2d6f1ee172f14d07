"""Geometry backend for the support-type models.

This package provides the spatial primitives the models and engine consume:
- Regular grids (cell lookup, cell centres, cell polygons)
- Window inference and boundary-inclusive containment
- Query location within targets (unit lookup, sample coincidence)
- Block discretisation for block-support prediction
- General utilities (geometry coercion, precision, identity)

Commonly used exports:
- Grid: Regular grid geometry
- infer_window_geometry: Implicit window from arbitrary geometry
- uncovered: Flag geometries outside a region
- locate: First target touched by each query geometry
- same_geometries: Order-insensitive unit identity
"""

from supportkit.spatial.grid import Grid
from supportkit.spatial.operations import (
    covers,
    discretise,
    infer_window_geometry,
    locate,
    representative_points,
    uncovered,
    union_geometry,
)
from supportkit.spatial.utils import (
    apply_precision,
    as_geoseries,
    match_geometries,
    same_geometries,
)

__all__ = [
    "Grid",
    "covers",
    "discretise",
    "infer_window_geometry",
    "locate",
    "representative_points",
    "uncovered",
    "union_geometry",
    "apply_precision",
    "as_geoseries",
    "match_geometries",
    "same_geometries",
]
