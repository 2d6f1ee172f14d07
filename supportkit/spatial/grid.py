"""Regular grid geometry.

A grid is described by its lower-left corner, cell size and shape. Row 0 is
the bottom row (smallest y) and column 0 the leftmost column, so a value
array of shape ``(ny, nx)`` is indexed as ``values[row, col]``.
"""

from dataclasses import dataclass

import geopandas as gpd
import numpy as np
from shapely.geometry import Point, box


@dataclass(frozen=True)
class Grid:
    """Axis-aligned regular grid.

    Attributes:
        xmin: x coordinate of the lower-left corner
        ymin: y coordinate of the lower-left corner
        dx: Cell width
        dy: Cell height
        nx: Number of columns
        ny: Number of rows
        crs: Coordinate reference system (carried through, never transformed)
    """

    xmin: float
    ymin: float
    dx: float
    dy: float
    nx: int
    ny: int
    crs: str | None = None

    def __post_init__(self):
        if self.dx <= 0 or self.dy <= 0:
            msg = f"Grid cell size must be positive, got dx={self.dx}, dy={self.dy}"
            raise ValueError(msg)
        if self.nx < 1 or self.ny < 1:
            msg = f"Grid must have at least one cell, got nx={self.nx}, ny={self.ny}"
            raise ValueError(msg)

    @classmethod
    def from_bounds(
        cls,
        xmin: float,
        ymin: float,
        xmax: float,
        ymax: float,
        nx: int,
        ny: int,
        crs: str | None = None,
    ) -> "Grid":
        return cls(
            xmin=xmin,
            ymin=ymin,
            dx=(xmax - xmin) / nx,
            dy=(ymax - ymin) / ny,
            nx=nx,
            ny=ny,
            crs=crs,
        )

    @property
    def shape(self) -> tuple[int, int]:
        return (self.ny, self.nx)

    @property
    def n_cells(self) -> int:
        return self.nx * self.ny

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return (
            self.xmin,
            self.ymin,
            self.xmin + self.nx * self.dx,
            self.ymin + self.ny * self.dy,
        )

    @property
    def envelope(self):
        return box(*self.bounds)

    def cell_centre(self, row: int, col: int) -> Point:
        return Point(self.xmin + (col + 0.5) * self.dx, self.ymin + (row + 0.5) * self.dy)

    def cell_lookup(self, x: float, y: float) -> tuple[int, int] | None:
        """Find the cell containing a point.

        Cell edges belong to the cell above/right of them, except on the
        grid's upper and right boundary, which belong to the last row/column.

        Returns:
            (row, col) of the containing cell, or None outside the grid
        """
        xmin, ymin, xmax, ymax = self.bounds
        if not (xmin <= x <= xmax and ymin <= y <= ymax):
            return None
        col = min(int(np.floor((x - self.xmin) / self.dx)), self.nx - 1)
        row = min(int(np.floor((y - self.ymin) / self.dy)), self.ny - 1)
        return row, col

    def centre_lookup(self, x: float, y: float, tolerance: float = 0.0) -> tuple[int, int] | None:
        """Find the cell whose centre coincides with a point.

        Returns:
            (row, col) if the point lies within tolerance of a cell centre, else None
        """
        cell = self.cell_lookup(x, y)
        if cell is None:
            return None
        centre = self.cell_centre(*cell)
        if abs(centre.x - x) <= tolerance and abs(centre.y - y) <= tolerance:
            return cell
        return None

    def _index_frame(self) -> dict:
        rows, cols = np.indices(self.shape)
        return {"row": rows.ravel(), "col": cols.ravel()}

    def centres(self) -> gpd.GeoDataFrame:
        """Cell centres as points, in row-major order."""
        index = self._index_frame()
        xs = self.xmin + (index["col"] + 0.5) * self.dx
        ys = self.ymin + (index["row"] + 0.5) * self.dy
        return gpd.GeoDataFrame(index, geometry=gpd.points_from_xy(xs, ys), crs=self.crs)

    def to_polygons(self) -> gpd.GeoDataFrame:
        """Cells as polygons, in row-major order."""
        index = self._index_frame()
        geoms = [
            box(
                self.xmin + c * self.dx,
                self.ymin + r * self.dy,
                self.xmin + (c + 1) * self.dx,
                self.ymin + (r + 1) * self.dy,
            )
            for r, c in zip(index["row"], index["col"], strict=True)
        ]
        return gpd.GeoDataFrame(index, geometry=geoms, crs=self.crs)
