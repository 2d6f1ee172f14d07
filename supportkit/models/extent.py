"""Spatial window (extent) model.

An Extent is the closed region over which a dataset claims coverage or
completeness. It is built once, validated, and never mutated.
"""

from dataclasses import dataclass

import geopandas as gpd
from shapely.geometry.base import BaseGeometry

from supportkit.errors import InvalidGeometry
from supportkit.models.enums import WindowInference
from supportkit.spatial.grid import Grid
from supportkit.spatial.operations import covers, infer_window_geometry, uncovered, union_geometry
from supportkit.spatial.utils import as_geoseries

AREAL_TYPES = {"Polygon", "MultiPolygon"}


@dataclass(frozen=True)
class Extent:
    """Observation window.

    Attributes:
        geometry: Areal region (Polygon or MultiPolygon)
        kind: "polygons" for polygon-built windows, "grid" for grid bounds
        grid: Grid the extent was built from, if any
        crs: Coordinate reference system (carried through, never transformed)
    """

    geometry: BaseGeometry
    kind: str = "polygons"
    grid: Grid | None = None
    crs: str | None = None

    @classmethod
    def from_geometry(cls, geometry, crs: str | None = None) -> "Extent":
        """Build a window from explicit geometry.

        Grid extents use the cell bounds; polygon extents use the union of
        the input polygons.

        Args:
            geometry: Grid, shapely geometry, iterable of geometries,
                GeoSeries or GeoDataFrame
            crs: CRS to record when the input does not carry one

        Raises:
            InvalidGeometry: If the geometry is empty, invalid, or has no area
        """
        if isinstance(geometry, Extent):
            return geometry
        if isinstance(geometry, Grid):
            return cls(geometry=geometry.envelope, kind="grid", grid=geometry, crs=geometry.crs)

        try:
            geoms = as_geoseries(geometry, crs=crs)
        except TypeError as e:
            raise InvalidGeometry(str(e)) from e

        geoms = geoms[geoms.notna()]
        if len(geoms) == 0 or geoms.is_empty.all():
            msg = "Cannot build an extent from empty geometry"
            raise InvalidGeometry(msg)

        invalid = ~geoms.is_valid
        if invalid.any():
            msg = f"Found {int(invalid.sum())} invalid geometries (self-intersections, etc.)"
            raise InvalidGeometry(msg)

        region = union_geometry(geoms)
        if region.is_empty or region.area <= 0:
            msg = f"Extent geometry is degenerate ({region.geom_type} without area)"
            raise InvalidGeometry(msg)

        return cls(geometry=region, kind="polygons", crs=geoms.crs or crs)

    @classmethod
    def infer(
        cls,
        geometry,
        strategy: WindowInference = WindowInference.CONVEX_HULL,
        margin: float = 1e-6,
        crs: str | None = None,
    ) -> "Extent":
        """Derive a non-authoritative window from data geometry.

        Grids always use their bounds; any other geometry uses the strategy.

        Raises:
            InvalidGeometry: If there is no geometry to derive a window from
        """
        if isinstance(geometry, Grid):
            return cls.from_geometry(geometry)

        geoms = as_geoseries(geometry, crs=crs)
        geoms = geoms[geoms.notna() & ~geoms.is_empty]
        if len(geoms) == 0:
            msg = "Cannot infer an extent from empty geometry"
            raise InvalidGeometry(msg)

        region = infer_window_geometry(geoms, strategy=strategy, margin=margin)
        return cls(geometry=region, kind="polygons", crs=geoms.crs or crs)

    @property
    def area(self) -> float:
        return self.geometry.area

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return self.geometry.bounds

    def to_geoseries(self) -> gpd.GeoSeries:
        return gpd.GeoSeries([self.geometry], crs=self.crs)

    def contains(self, geometry, tolerance: float = 0.0) -> bool:
        """Exact, boundary-inclusive containment test.

        Args:
            geometry: Shapely geometry, collection of geometries, Grid, or Extent
            tolerance: Distance by which the window is grown before testing

        Returns:
            True if every part of the geometry lies within the window
        """
        if isinstance(geometry, Extent):
            geometry = geometry.geometry
        elif isinstance(geometry, Grid):
            geometry = geometry.envelope

        if isinstance(geometry, BaseGeometry):
            return covers(self.geometry, geometry, tolerance)

        return not self.outside(geometry, tolerance).any()

    def outside(self, geometry, tolerance: float = 0.0) -> gpd.GeoSeries:
        """Boolean mask of geometries not contained in the window."""
        return uncovered(self.geometry, as_geoseries(geometry), tolerance)

    def intersects(self, geometry) -> bool:
        return bool(as_geoseries(geometry).intersects(self.geometry).any())
