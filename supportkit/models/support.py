"""Support-type data models: Field, Objects and Lattice.

All three are immutable value types. Input frames are copied on construction
and accessors hand out copies, so a built instance can never be changed
through an alias. Derived results are always new instances.

Construction-time invariants:
- Field: observation geometry intersects the domain
- Objects: every entity lies within the window (or the window is inferred
  and flagged non-authoritative)
- Lattice: none; the union of unit geometries is the domain
"""

import logging
import warnings
from dataclasses import InitVar, dataclass, field
from typing import ClassVar

import geopandas as gpd
import numpy as np

from supportkit.config import DEFAULT_CONFIG, EngineConfig
from supportkit.errors import (
    EntitiesOutsideWindow,
    InvalidGeometry,
    MeaningfulnessError,
    NoWindowWarning,
)
from supportkit.models.diagnostics import Diagnostic
from supportkit.models.enums import (
    DiagnosticCode,
    DiagnosticKind,
    Reduction,
    SupportKind,
    WindowInference,
)
from supportkit.models.extent import AREAL_TYPES, Extent
from supportkit.spatial.grid import Grid
from supportkit.spatial.operations import union_geometry
from supportkit.spatial.utils import as_geoseries

logger = logging.getLogger(__name__)

ENTITY_TYPES = {"Point", "MultiPoint", "Polygon", "MultiPolygon"}


def _as_frame(data, crs=None) -> gpd.GeoDataFrame:
    """Copy geometry-like input into a fresh GeoDataFrame."""
    if isinstance(data, gpd.GeoDataFrame):
        return data.copy()
    return gpd.GeoDataFrame(geometry=as_geoseries(data, crs=crs).copy(), crs=crs)


def _check_entities(frame: gpd.GeoDataFrame, value_column: str | None) -> None:
    if value_column is not None and value_column not in frame.columns:
        msg = f"Entities missing mark column '{value_column}'"
        raise ValueError(msg)

    bad_types = set(frame.geom_type.dropna().unique()) - ENTITY_TYPES
    if bad_types:
        msg = f"Entities must be point or polygon geometries, found: {', '.join(sorted(bad_types))}"
        raise InvalidGeometry(msg)


@dataclass(frozen=True, eq=False)
class Field:
    """Continuous variable believed to exist at every point of its domain.

    Observations are either point samples or, when ``cells_are_points`` is
    False or the observations are polygons, constant values filling each
    cell's full area.

    Attributes:
        domain: Region over which the field is defined
        cells_are_points: Grid cells are point samples (True) or constant areas (False)
        value_column: Column holding observed values
        grid: Grid the observations came from, if any
        domain_authoritative: False when the domain was inferred from the data
    """

    _frame: gpd.GeoDataFrame = field(repr=False)
    domain: Extent
    cells_are_points: bool = True
    value_column: str = "value"
    grid: Grid | None = None
    domain_authoritative: bool = True

    support_kind: ClassVar[SupportKind] = SupportKind.FIELD

    def __post_init__(self):
        frame = _as_frame(self._frame)
        if self.value_column not in frame.columns:
            msg = f"Observations missing value column '{self.value_column}'"
            raise ValueError(msg)

        domain = Extent.from_geometry(self.domain, crs=frame.crs)
        if len(frame) > 0 and not domain.intersects(frame.geometry):
            msg = "Observation geometry does not intersect the field domain"
            raise InvalidGeometry(msg)

        object.__setattr__(self, "_frame", frame)
        object.__setattr__(self, "domain", domain)

    @classmethod
    def from_grid(
        cls,
        grid: Grid,
        values,
        domain=None,
        cells_are_points: bool = True,
        value_column: str = "value",
    ) -> "Field":
        """Build a field from gridded values.

        Args:
            grid: Grid geometry
            values: Array of shape (ny, nx) indexed [row, col], or flat row-major
            domain: Explicit domain; defaults to the grid bounds
            cells_are_points: Interpret cells as centre samples or constant areas
            value_column: Name of the value column

        Raises:
            ValueError: If the number of values does not match the grid
        """
        values = np.asarray(values, dtype=float)
        if values.size != grid.n_cells:
            msg = f"Expected {grid.n_cells} values for a {grid.ny}x{grid.nx} grid, got {values.size}"
            raise ValueError(msg)

        frame = grid.centres() if cells_are_points else grid.to_polygons()
        frame[value_column] = values.reshape(grid.shape).ravel()

        return make_field(
            frame,
            domain=domain if domain is not None else grid,
            cells_are_points=cells_are_points,
            value_column=value_column,
            _grid=grid,
            _authoritative=domain is not None,
        )

    @property
    def observations(self) -> gpd.GeoDataFrame:
        return self._frame.copy()

    @property
    def geometry(self) -> gpd.GeoSeries:
        return self._frame.geometry.copy()

    @property
    def values(self) -> np.ndarray:
        return self._frame[self.value_column].to_numpy(dtype=float, copy=True)

    @property
    def crs(self):
        return self._frame.crs

    @property
    def is_areal(self) -> bool:
        """True when observations are polygons holding constant values."""
        return bool(self._frame.geom_type.isin(AREAL_TYPES).all())

    @property
    def point_support(self) -> bool:
        """True when observations are point samples rather than constant areas."""
        return self.cells_are_points and not self.is_areal

    def __len__(self) -> int:
        return len(self._frame)


@dataclass(frozen=True, eq=False)
class Objects:
    """Discrete entities, claimed complete within a window.

    Attributes:
        window: Region within which the entity set is complete
        window_authoritative: False when the window was inferred from the entities
        value_column: Optional mark column (e.g. tree height); None for a bare pattern
        diagnostics: Construction-time diagnostics (NoWindowWarning)
        tolerance: Containment tolerance (init only; defaults to DEFAULT_CONFIG)
    """

    _frame: gpd.GeoDataFrame = field(repr=False)
    window: Extent
    window_authoritative: bool = True
    value_column: str | None = None
    diagnostics: tuple[Diagnostic, ...] = ()
    tolerance: InitVar[float | None] = None

    support_kind: ClassVar[SupportKind] = SupportKind.OBJECTS

    def __post_init__(self, tolerance: float | None):
        frame = _as_frame(self._frame)
        _check_entities(frame, self.value_column)

        window = Extent.from_geometry(self.window, crs=frame.crs)
        if tolerance is None:
            tolerance = DEFAULT_CONFIG.containment_tolerance
        outside = window.outside(frame.geometry, tolerance=tolerance)
        if outside.any():
            offending = list(frame.index[outside.to_numpy()])
            logger.error(f"{len(offending)} entities fall outside the window")
            raise EntitiesOutsideWindow(offending)

        object.__setattr__(self, "_frame", frame)
        object.__setattr__(self, "window", window)

    @property
    def entities(self) -> gpd.GeoDataFrame:
        return self._frame.copy()

    @property
    def geometry(self) -> gpd.GeoSeries:
        return self._frame.geometry.copy()

    @property
    def marks(self) -> np.ndarray:
        """Entity marks, or an indicator of 1.0 per entity for an unmarked pattern."""
        if self.value_column is None:
            return np.ones(len(self._frame))
        return self._frame[self.value_column].to_numpy(dtype=float, copy=True)

    @property
    def crs(self):
        return self._frame.crs

    def __len__(self) -> int:
        return len(self._frame)


@dataclass(frozen=True, eq=False)
class Lattice:
    """Areal data whose unit values are aggregates over the whole unit.

    There is no separate window: the union of the unit geometries is the
    domain. Values are never decomposed back to points.

    Attributes:
        value_column: Column holding unit values
        reduction: Which aggregate the values represent (None when unvalued)
        source_kind: Support kind the values were derived from, if known
        grid: Grid the units came from, if any
    """

    _frame: gpd.GeoDataFrame = field(repr=False)
    value_column: str = "value"
    reduction: Reduction | None = None
    source_kind: SupportKind | None = None
    grid: Grid | None = None

    support_kind: ClassVar[SupportKind] = SupportKind.LATTICE

    def __post_init__(self):
        object.__setattr__(self, "_frame", _as_frame(self._frame))

    @property
    def units(self) -> gpd.GeoDataFrame:
        return self._frame.copy()

    @property
    def geometry(self) -> gpd.GeoSeries:
        return self._frame.geometry.copy()

    @property
    def has_values(self) -> bool:
        return self.value_column in self._frame.columns

    @property
    def values(self) -> np.ndarray | None:
        if not self.has_values:
            return None
        return self._frame[self.value_column].to_numpy(dtype=float, copy=True)

    @property
    def domain(self):
        """Union of the unit geometries."""
        return union_geometry(self._frame.geometry)

    @property
    def crs(self):
        return self._frame.crs

    def with_values(
        self,
        values,
        reduction: Reduction | None,
        source_kind: SupportKind | None = None,
        extra: dict | None = None,
    ) -> "Lattice":
        """New lattice on the same units carrying new aggregate values.

        Args:
            values: One value per unit, in unit order
            reduction: Aggregate the values represent
            source_kind: Support kind the values were derived from
            extra: Additional per-unit columns (e.g. prediction variance)
        """
        frame = self._frame.copy()
        frame[self.value_column] = np.asarray(values, dtype=float)
        for name, column in (extra or {}).items():
            frame[name] = np.asarray(column)
        return Lattice(
            frame,
            value_column=self.value_column,
            reduction=reduction,
            source_kind=source_kind,
            grid=self.grid,
        )

    def __len__(self) -> int:
        return len(self._frame)


def make_extent(geometry, crs: str | None = None) -> Extent:
    """Build an explicit window; raises InvalidGeometry for degenerate input."""
    return Extent.from_geometry(geometry, crs=crs)


def make_field(
    observations,
    domain=None,
    cells_are_points: bool = True,
    value_column: str = "value",
    config: EngineConfig = DEFAULT_CONFIG,
    _grid: Grid | None = None,
    _authoritative: bool | None = None,
) -> Field:
    """Build a Field from observation geometry and values.

    Construction never fails because of containment: a field is assumed to
    be defined everywhere in its domain. If the domain is omitted it is
    inferred from the observations and flagged non-authoritative.

    Args:
        observations: GeoDataFrame with geometry and a value column
        domain: Explicit domain (any input accepted by Extent.from_geometry)
        cells_are_points: Point samples (True) or constant-valued areas (False)
        value_column: Column holding observed values
        config: Engine configuration (window inference strategy)

    Returns:
        Immutable Field

    Raises:
        ValueError: If the value column is missing
        InvalidGeometry: If the domain is degenerate or misses every observation
    """
    frame = _as_frame(observations)
    if domain is None:
        extent = Extent.infer(
            frame.geometry,
            strategy=config.window_inference,
            margin=config.degenerate_window_margin,
        )
        authoritative = False
        logger.info(f"Field domain inferred from observations ({config.window_inference.value})")
    else:
        extent = Extent.from_geometry(domain, crs=frame.crs)
        authoritative = True

    if _authoritative is not None:
        authoritative = _authoritative

    return Field(
        frame,
        domain=extent,
        cells_are_points=cells_are_points,
        value_column=value_column,
        grid=_grid,
        domain_authoritative=authoritative,
    )


def make_objects(
    entities,
    window=None,
    value_column: str | None = None,
    inference: WindowInference | None = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Objects:
    """Build an Objects pattern, validated against its window.

    Args:
        entities: Point or polygon geometries, one per object
        window: Region within which the set is complete; inferred if omitted
        value_column: Optional mark column
        inference: Window inference strategy (defaults to config.window_inference)
        config: Engine configuration (tolerance, inference defaults)

    Returns:
        Immutable Objects

    Raises:
        InvalidGeometry: If entities are not points/polygons or the window is degenerate
        EntitiesOutsideWindow: If any entity is not contained in the window
        MeaningfulnessError: If no window was supplied and NoWindowWarning is fatal

    Warns:
        NoWindowWarning: If no window was supplied
    """
    frame = _as_frame(entities)
    _check_entities(frame, value_column)

    if window is not None:
        return Objects(
            frame,
            window=Extent.from_geometry(window, crs=frame.crs),
            window_authoritative=True,
            value_column=value_column,
            tolerance=config.containment_tolerance,
        )

    strategy = inference or config.window_inference
    extent = Extent.infer(
        frame.geometry,
        strategy=strategy,
        margin=config.degenerate_window_margin,
    )
    msg = (
        f"No window supplied for {len(frame)} entities; using inferred {strategy.value} "
        "window, which is not authoritative"
    )
    diagnostic = Diagnostic(
        kind=DiagnosticKind.WARNING,
        code=DiagnosticCode.NO_WINDOW,
        message=msg,
        rule_id="A5",
    )
    if config.is_fatal(DiagnosticCode.NO_WINDOW):
        logger.error(msg)
        raise MeaningfulnessError([diagnostic])

    logger.warning(msg)
    warnings.warn(msg, NoWindowWarning, stacklevel=2)

    return Objects(
        frame,
        window=extent,
        window_authoritative=False,
        value_column=value_column,
        diagnostics=(diagnostic,),
        tolerance=config.containment_tolerance,
    )


def make_lattice(
    units,
    value_column: str = "value",
    reduction: Reduction | None = None,
    source_kind: SupportKind | None = None,
) -> Lattice:
    """Build a Lattice from unit geometry; always succeeds.

    Args:
        units: Grid, Extent, GeoDataFrame, GeoSeries or geometries
        value_column: Column holding unit values (may be absent for unvalued units)
        reduction: Aggregate the values represent
        source_kind: Support kind the values were derived from
    """
    grid = None
    if isinstance(units, Lattice):
        return units
    if isinstance(units, Grid):
        grid = units
        frame = units.to_polygons()
    elif isinstance(units, Extent):
        frame = gpd.GeoDataFrame(geometry=units.to_geoseries())
    else:
        frame = _as_frame(units)

    return Lattice(
        frame,
        value_column=value_column,
        reduction=reduction,
        source_kind=source_kind,
        grid=grid,
    )
