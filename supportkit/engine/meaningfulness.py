"""Meaningfulness engine: query, aggregate, interpolate and density.

Each operation classifies its source/target support pair against the rule
table, turns the verdict into diagnostics, and only then forwards to a
numeric backend. A refused operation returns no value at all; advisory
findings travel with a best-effort result. No state is kept between calls.
"""

import logging

import geopandas as gpd
import numpy as np
import pandas as pd
import shapely

from supportkit.backends.density import QuadratDensity
from supportkit.backends.kriging import OrdinaryKriging, VariogramModel
from supportkit.backends.protocols import DensityBackend, PredictionBackend, ReductionBackend
from supportkit.backends.reduction import PandasReduction
from supportkit.config import DEFAULT_CONFIG, EngineConfig
from supportkit.engine.rules import RULES, Finding, Rule, Verdict, classify
from supportkit.errors import MeaningfulnessError, OperationRefused
from supportkit.models.diagnostics import Diagnostic, OperationResult
from supportkit.models.enums import (
    DiagnosticCode,
    Operation,
    Outcome,
    Reduction,
    SupportKind,
    TargetKind,
)
from supportkit.models.extent import AREAL_TYPES, Extent
from supportkit.models.support import Field, Lattice, Objects, make_lattice
from supportkit.spatial.grid import Grid
from supportkit.spatial.operations import locate, representative_points
from supportkit.spatial.utils import as_geoseries, match_geometries

logger = logging.getLogger(__name__)

UNIT_TYPES = AREAL_TYPES | {"LineString", "MultiLineString"}


def _points(geometry) -> gpd.GeoSeries:
    """Coerce query locations into a GeoSeries of points."""
    geoms = as_geoseries(geometry).reset_index(drop=True)
    if not (geoms.geom_type == "Point").all():
        msg = "Query locations must be point geometries"
        raise TypeError(msg)
    return geoms


def _units(units, crs=None) -> Lattice:
    """Coerce aggregation units or blocks into a Lattice."""
    if isinstance(units, Lattice | Grid | Extent):
        return make_lattice(units)
    if isinstance(units, Field | Objects):
        msg = f"{type(units).__name__} cannot be used as aggregation units"
        raise TypeError(msg)

    lattice = make_lattice(units)
    if not lattice.geometry.geom_type.isin(UNIT_TYPES).all():
        msg = "Aggregation units must be line or polygon geometries"
        raise TypeError(msg)
    return lattice


def _target_support(target) -> tuple[TargetKind, gpd.GeoSeries, Lattice | None]:
    """Classify a prediction target as point or block support.

    Returns:
        Tuple of (target kind, target geometry, lattice template for block targets)
    """
    if isinstance(target, Lattice | Grid | Extent):
        lattice = make_lattice(target)
        return TargetKind.UNITS, lattice.geometry.reset_index(drop=True), lattice
    if isinstance(target, Field):
        if target.point_support:
            return TargetKind.POINTS, target.geometry.reset_index(drop=True), None
        lattice = make_lattice(target.geometry)
        return TargetKind.UNITS, lattice.geometry.reset_index(drop=True), lattice

    geoms = target.geometry if isinstance(target, Objects) else as_geoseries(target)
    geoms = geoms.reset_index(drop=True)
    types = set(geoms.geom_type.unique())
    if types == {"Point"}:
        return TargetKind.POINTS, geoms, None
    if types <= UNIT_TYPES:
        lattice = make_lattice(geoms)
        return TargetKind.UNITS, geoms, lattice

    msg = f"Cannot interpret target geometry types {sorted(types)} as point or block support"
    raise TypeError(msg)


class MeaningfulnessEngine:
    """Rule-governed dispatcher for operations on Field, Objects and Lattice.

    Args:
        config: Engine configuration (escalation policy and tolerances)
        predictor: Prediction backend (defaults to OrdinaryKriging)
        reducer: Reduction backend (defaults to PandasReduction)
        density_estimator: Density backend (defaults to QuadratDensity)
        rules: Rule table (defaults to RULES)
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        predictor: PredictionBackend | None = None,
        reducer: ReductionBackend | None = None,
        density_estimator: DensityBackend | None = None,
        rules: tuple[Rule, ...] = RULES,
    ):
        self.config = config
        self.predictor = predictor or OrdinaryKriging(config.kriging)
        self.reducer = reducer or PandasReduction()
        self.density_estimator = density_estimator or QuadratDensity()
        self.rules = rules

    def _classify(
        self, operation: Operation, source: SupportKind, target: TargetKind, **facts: bool
    ) -> Verdict:
        verdict = classify(operation, source, target, rules=self.rules, **facts)
        logger.debug(
            f"{operation.value}({source.value} -> {target.value}) classified "
            f"{verdict.outcome.name} by {[r.rule_id for r in verdict.matched]}"
        )
        return verdict

    def _diagnose(
        self, verdict: Verdict, details: dict[DiagnosticCode, str] | None = None
    ) -> tuple[Diagnostic, ...]:
        """Turn a verdict into diagnostics, applying the escalation policy.

        Raises:
            OperationRefused: If the verdict is a refusal and raise_on_refuse is set
            MeaningfulnessError: If any advisory diagnostic is configured as fatal
        """
        details = details or {}
        diagnostics = tuple(
            Finding(rule=f.rule, detail=details.get(f.rule.code)).to_diagnostic()
            for f in verdict.findings
        )

        for diagnostic in diagnostics:
            if diagnostic.is_error:
                logger.error(f"[{diagnostic.rule_id}] {diagnostic.code.value}: {diagnostic.message}")
            else:
                logger.warning(f"[{diagnostic.rule_id}] {diagnostic.code.value}: {diagnostic.message}")

        if verdict.outcome == Outcome.REFUSE:
            if self.config.raise_on_refuse:
                raise OperationRefused([d for d in diagnostics if d.is_error])
            return diagnostics

        fatal = [d for d in diagnostics if self.config.is_fatal(d.code)]
        if fatal:
            raise MeaningfulnessError(fatal)

        return diagnostics

    def query(self, source: Field | Objects | Lattice, points) -> OperationResult:
        """Evaluate a source at point locations.

        Field with point support yields a value only where a query point
        coincides with a sample location; area-constant fields yield the
        containing cell's value. Outside the domain there is no value (NaN).
        Lattice and Objects values are returned with a warning.

        Args:
            source: Data to evaluate
            points: Point geometries (GeoSeries, GeoDataFrame, geometry or list)

        Returns:
            OperationResult whose value is a GeoDataFrame with a "value" column
        """
        query_points = _points(points)
        if not isinstance(source, Field | Objects | Lattice):
            msg = f"Cannot query {type(source).__name__}"
            raise TypeError(msg)

        logger.info(f"Querying {source.support_kind.value} at {len(query_points)} points")
        verdict = self._classify(Operation.QUERY, source.support_kind, TargetKind.POINTS)
        diagnostics = self._diagnose(verdict)

        if isinstance(source, Field):
            values = self._query_field(source, query_points)
        elif isinstance(source, Lattice):
            values = self._lookup(query_points, source.geometry, source.values, 0.0)
        else:
            values = self._lookup(
                query_points, source.geometry, source.marks, self.config.coincidence_tolerance
            )

        result = gpd.GeoDataFrame({"value": values}, geometry=query_points, crs=source.crs)
        return OperationResult(result, diagnostics)

    def _lookup(
        self,
        query_points: gpd.GeoSeries,
        targets: gpd.GeoSeries,
        values: np.ndarray | None,
        tolerance: float,
    ) -> np.ndarray:
        result = np.full(len(query_points), np.nan)
        if values is None:
            return result
        hit = locate(query_points, targets.reset_index(drop=True), tolerance)
        found = hit >= 0
        result[found] = values[hit[found]]
        return result

    def _query_field(self, source: Field, query_points: gpd.GeoSeries) -> np.ndarray:
        values = source.values
        tolerance = self.config.coincidence_tolerance

        if source.grid is not None:
            grid = source.grid
            result = np.full(len(query_points), np.nan)
            for i, point in enumerate(query_points):
                if source.point_support:
                    cell = grid.centre_lookup(point.x, point.y, tolerance)
                else:
                    cell = grid.cell_lookup(point.x, point.y)
                if cell is not None:
                    row, col = cell
                    result[i] = values[row * grid.nx + col]
        elif source.point_support:
            result = self._lookup(query_points, source.geometry, values, tolerance)
        else:
            result = self._lookup(query_points, source.geometry, values, 0.0)

        outside = source.domain.outside(query_points, self.config.containment_tolerance).to_numpy()
        result[outside] = np.nan
        return result

    def aggregate(
        self, source: Field | Objects | Lattice, units, reduction: Reduction | str = Reduction.MEAN
    ) -> OperationResult:
        """Reduce source values over each target unit.

        Args:
            source: Data to aggregate
            units: Lattice, Grid, Extent, or line/polygon geometries
            reduction: mean, sum, count, median, min or max

        Returns:
            OperationResult whose value is a Lattice on the target units, or
            None if the aggregation was refused

        Raises:
            ValueError: If the reduction is density (use density() instead)
        """
        reduction = Reduction(reduction)
        if reduction == Reduction.DENSITY:
            msg = "Density is not a reduction; use density() for entity density"
            raise ValueError(msg)

        target = _units(units)
        logger.info(
            f"Aggregating {type(source).__name__} to {len(target)} units with {reduction.value}"
        )

        if isinstance(source, Field):
            verdict = self._classify(Operation.AGGREGATE, SupportKind.FIELD, TargetKind.UNITS)
            diagnostics = self._diagnose(verdict)
            return OperationResult(self._aggregate_field(source, target, reduction), diagnostics)

        if isinstance(source, Objects):
            return self._aggregate_objects(source, target, reduction)

        if isinstance(source, Lattice):
            return self._aggregate_lattice(source, target, reduction)

        msg = f"Cannot aggregate {type(source).__name__}"
        raise TypeError(msg)

    def _aggregate_field(self, source: Field, target: Lattice, reduction: Reduction) -> Lattice:
        unit_geoms = target.geometry.reset_index(drop=True)
        n = len(unit_geoms)

        if source.point_support:
            groups = locate(representative_points(source.geometry), unit_geoms)
            values = self.reducer.reduce_groups(source.values, groups, n, reduction)
        else:
            observations = gpd.GeoDataFrame(
                {"_value": source.values, "_obs_dim": shapely.get_dimensions(source.geometry.values)},
                geometry=source.geometry.values,
                crs=source.crs,
            )
            unit_frame = gpd.GeoDataFrame(
                {"_unit": np.arange(n), "_unit_dim": shapely.get_dimensions(unit_geoms.values)},
                geometry=unit_geoms.values,
                crs=source.crs,
            )
            pieces = gpd.overlay(observations, unit_frame, how="intersection", keep_geom_type=False)

            # Cells that only touch a unit leave lower-dimensional slivers; drop them
            dims = shapely.get_dimensions(pieces.geometry.values)
            expected = np.minimum(pieces["_obs_dim"], pieces["_unit_dim"]).to_numpy()
            pieces = pieces[dims == expected]
            dims = dims[dims == expected]

            weights = np.select(
                [dims == 2, dims == 1],
                [pieces.geometry.area.to_numpy(), pieces.geometry.length.to_numpy()],
                default=1.0,
            )
            values = self.reducer.reduce_groups(
                pieces["_value"].to_numpy(dtype=float),
                pieces["_unit"].to_numpy(dtype=int),
                n,
                reduction,
                weights=weights,
            )

        return target.with_values(values, reduction, source_kind=SupportKind.FIELD)

    def _aggregate_objects(self, source: Objects, target: Lattice, reduction: Reduction) -> OperationResult:
        unit_geoms = target.geometry.reset_index(drop=True)
        outside = source.window.outside(unit_geoms, self.config.containment_tolerance)

        details = {}
        if outside.any():
            excess = unit_geoms.difference(source.window.geometry).area.sum()
            details[DiagnosticCode.TARGET_EXCEEDS_WINDOW] = (
                f"{int(outside.sum())} of {len(unit_geoms)} units extend beyond the window "
                f"({excess:.6g} area units unobserved)"
            )
        if not source.window_authoritative:
            details[DiagnosticCode.NO_WINDOW] = "window was inferred from the entities"

        verdict = self._classify(
            Operation.AGGREGATE,
            SupportKind.OBJECTS,
            TargetKind.UNITS,
            extensive=reduction.is_extensive,
            intensive=reduction.is_intensive,
            beyond_window=bool(outside.any()),
            window_inferred=not source.window_authoritative,
            strict_window=self.config.refuse_beyond_window,
        )
        diagnostics = self._diagnose(verdict, details)
        if verdict.outcome == Outcome.REFUSE:
            return OperationResult(None, diagnostics)

        groups = locate(representative_points(source.geometry), unit_geoms)
        values = self.reducer.reduce_groups(source.marks, groups, len(unit_geoms), reduction)
        result = target.with_values(values, reduction, source_kind=SupportKind.OBJECTS)
        return OperationResult(result, diagnostics)

    def _aggregate_lattice(self, source: Lattice, target: Lattice, reduction: Reduction) -> OperationResult:
        positions = match_geometries(
            target.geometry, source.geometry, self.config.precision_grid_size
        )
        verdict = self._classify(
            Operation.AGGREGATE,
            SupportKind.LATTICE,
            TargetKind.UNITS,
            identical_units=positions is not None,
        )
        details = {
            DiagnosticCode.CANNOT_REAGGREGATE_LATTICE: (
                f"{len(target)} target units differ from the {len(source)} source units"
            )
        }
        diagnostics = self._diagnose(verdict, details)
        if verdict.outcome == Outcome.REFUSE:
            return OperationResult(None, diagnostics)

        # Relabelling keeps the source values and what they aggregate
        source_values = source.values
        values = (
            np.full(len(target), np.nan)
            if source_values is None
            else source_values[np.asarray(positions, dtype=int)]
        )
        result = target.with_values(
            values,
            source.reduction or reduction,
            source_kind=source.source_kind or SupportKind.LATTICE,
        )
        return OperationResult(result, diagnostics)

    def interpolate(
        self,
        source: Field | Objects | Lattice,
        target,
        model: VariogramModel | None = None,
    ) -> OperationResult:
        """Predict source values at point or block support.

        Point targets produce a Field of point predictions; block targets
        produce a Lattice of block means. Both carry a "variance" column.

        Args:
            source: Field (or Objects, with a warning) to predict from
            target: Points, blocks, Lattice, Grid, Extent, Objects or Field
            model: Variogram model; scaled to the data when omitted

        Returns:
            OperationResult whose value is a Field or Lattice, or None if refused
        """
        kind, geoms, template = _target_support(target)
        if not isinstance(source, Field | Objects | Lattice):
            msg = f"Cannot interpolate from {type(source).__name__}"
            raise TypeError(msg)

        logger.info(
            f"Interpolating {source.support_kind.value} to {len(geoms)} {kind.value} targets"
        )

        if isinstance(source, Lattice):
            verdict = self._classify(Operation.INTERPOLATE, SupportKind.LATTICE, kind)
            return OperationResult(None, self._diagnose(verdict))

        domain = source.domain if isinstance(source, Field) else source.window
        outside = domain.outside(geoms, self.config.containment_tolerance)
        details = {}
        if outside.any():
            details[DiagnosticCode.EXTRAPOLATION_BEYOND_DOMAIN] = (
                f"{int(outside.sum())} of {len(geoms)} targets lie (partly) outside the domain"
            )

        verdict = self._classify(
            Operation.INTERPOLATE, source.support_kind, kind, beyond_domain=bool(outside.any())
        )
        diagnostics = self._diagnose(verdict, details)

        sample_points = representative_points(source.geometry)
        coords = np.column_stack([sample_points.x.to_numpy(), sample_points.y.to_numpy()])
        observed = source.values if isinstance(source, Field) else source.marks
        model = model or VariogramModel.default_for(coords, observed)

        try:
            handle = self.predictor.fit(model, coords, observed)
            predictions, variances = self.predictor.predict(
                handle, geoms, block=kind == TargetKind.UNITS
            )
        except ValueError as e:
            logger.error(f"Prediction backend failed: {e}")
            raise

        if kind == TargetKind.POINTS:
            frame = gpd.GeoDataFrame(
                {"value": predictions, "variance": variances}, geometry=geoms.values, crs=source.crs
            )
            authoritative = (
                source.domain_authoritative
                if isinstance(source, Field)
                else source.window_authoritative
            )
            if outside.any():
                # Extrapolated targets widen the domain
                domain = Extent.infer(
                    pd.concat([domain.to_geoseries(), geoms], ignore_index=True),
                    strategy=self.config.window_inference,
                    margin=self.config.degenerate_window_margin,
                    crs=source.crs,
                )
                authoritative = False
            result = Field(frame, domain=domain, domain_authoritative=authoritative)
        else:
            result = template.with_values(
                predictions,
                Reduction.MEAN,
                source_kind=source.support_kind,
                extra={"variance": variances},
            )

        return OperationResult(result, diagnostics)

    def density(self, objects: Objects, newdata) -> OperationResult:
        """Estimate entity density over units.

        Density is a neighbourhood aggregate, so the result is always a
        Lattice, whatever the resolution of ``newdata``.

        Args:
            objects: Entity pattern
            newdata: Lattice, Grid, Extent, or polygon geometries

        Returns:
            OperationResult whose value is a Lattice tagged with the density reduction
        """
        if not isinstance(objects, Objects):
            msg = f"Density requires Objects, got {type(objects).__name__}"
            raise TypeError(msg)

        target = _units(newdata)
        logger.info(f"Estimating density of {len(objects)} entities over {len(target)} units")

        verdict = self._classify(Operation.DENSITY, SupportKind.OBJECTS, TargetKind.UNITS)
        diagnostics = self._diagnose(verdict)

        marks = None if objects.value_column is None else objects.marks
        values = self.density_estimator.estimate(
            objects.geometry, target.geometry.reset_index(drop=True), marks
        )
        result = target.with_values(values, Reduction.DENSITY, source_kind=SupportKind.OBJECTS)
        return OperationResult(result, diagnostics)


def query(source, points, config: EngineConfig = DEFAULT_CONFIG) -> OperationResult:
    """Evaluate a source at point locations with a default engine."""
    return MeaningfulnessEngine(config).query(source, points)


def aggregate(
    source, units, reduction: Reduction | str = Reduction.MEAN, config: EngineConfig = DEFAULT_CONFIG
) -> OperationResult:
    """Reduce a source over units with a default engine."""
    return MeaningfulnessEngine(config).aggregate(source, units, reduction)


def interpolate(
    source, target, model: VariogramModel | None = None, config: EngineConfig = DEFAULT_CONFIG
) -> OperationResult:
    """Predict a source at point or block support with a default engine."""
    return MeaningfulnessEngine(config).interpolate(source, target, model)


def density(objects, newdata, config: EngineConfig = DEFAULT_CONFIG) -> OperationResult:
    """Estimate entity density over units with a default engine."""
    return MeaningfulnessEngine(config).density(objects, newdata)
