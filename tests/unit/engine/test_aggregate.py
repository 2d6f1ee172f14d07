"""Unit tests for aggregation over units."""

import warnings

import numpy as np
import pytest
from shapely import affinity
from shapely.geometry import LineString, Point, box

from supportkit.config import EngineConfig
from supportkit.engine import MeaningfulnessEngine, aggregate
from supportkit.errors import MeaningfulnessError, NoWindowWarning, OperationRefused
from supportkit.models.enums import DiagnosticCode, DiagnosticKind, Reduction, SupportKind
from supportkit.models.support import Field, Lattice, make_field, make_lattice, make_objects
from supportkit.spatial.grid import Grid


@pytest.fixture
def objects(five_entities, hull_window):
    return make_objects(five_entities, window=hull_window)


@pytest.fixture
def expanded_window(hull_window):
    """The convex hull scaled by 50% about its centroid."""
    return affinity.scale(hull_window, xfact=1.5, yfact=1.5, origin="centroid")


class TestAggregateObjects:
    """Entity counts within and beyond the observation window."""

    def test_sum_over_own_window_counts_entities(self, engine, objects, hull_window):
        result, diagnostics = engine.aggregate(objects, hull_window, Reduction.SUM)

        assert isinstance(result, Lattice)
        np.testing.assert_array_equal(result.values, [5.0])
        assert result.reduction == Reduction.SUM
        assert result.source_kind == SupportKind.OBJECTS
        assert diagnostics == ()

    def test_sum_over_expanded_window_warns(self, engine, objects, expanded_window):
        result = engine.aggregate(objects, expanded_window, "sum")

        assert result.value.values == pytest.approx([5.0])
        assert result.codes == [DiagnosticCode.TARGET_EXCEEDS_WINDOW]
        assert result.diagnostics[0].rule_id == "A2"
        assert "beyond the window" in result.diagnostics[0].message

    def test_sum_over_expanded_window_refused_when_strict(
        self, strict_engine, objects, expanded_window
    ):
        result, diagnostics = strict_engine.aggregate(objects, expanded_window, Reduction.SUM)

        assert result is None
        assert diagnostics[0].kind == DiagnosticKind.ERROR
        assert diagnostics[0].code == DiagnosticCode.TARGET_EXCEEDS_WINDOW

    def test_strict_refusal_can_raise(self, objects, expanded_window):
        engine = MeaningfulnessEngine(EngineConfig(refuse_beyond_window=True, raise_on_refuse=True))

        with pytest.raises(OperationRefused, match="TargetExceedsWindow"):
            engine.aggregate(objects, expanded_window, Reduction.SUM)

    def test_units_inside_window_are_silent(self, engine, objects):
        units = [box(0, 0, 2, 2), box(2, 0, 4, 2)]

        result, diagnostics = engine.aggregate(objects, units, Reduction.COUNT)

        # (2, 2) sits on the corner of both boxes and goes to the first
        np.testing.assert_array_equal(result.values, [2.0, 1.0])
        assert diagnostics == ()

    def test_mean_always_flags_mean_of_counts(self, engine, objects, hull_window, expanded_window):
        for units in (hull_window, expanded_window):
            result = engine.aggregate(objects, units, Reduction.MEAN)

            assert result.has(DiagnosticCode.MEAN_OF_COUNTS)
            assert not result.has(DiagnosticCode.TARGET_EXCEEDS_WINDOW)

    def test_sum_never_flags_mean_of_counts(self, engine, objects, hull_window, expanded_window):
        for units in (hull_window, expanded_window):
            result = engine.aggregate(objects, units, Reduction.SUM)

            assert not result.has(DiagnosticCode.MEAN_OF_COUNTS)

    def test_median_is_intensive(self, engine, objects, hull_window):
        result = engine.aggregate(objects, hull_window, Reduction.MEDIAN)

        assert result.codes == [DiagnosticCode.MEAN_OF_COUNTS]

    @pytest.mark.parametrize("reduction", [Reduction.MIN, Reduction.MAX])
    def test_min_max_proceed_silently(self, engine, five_entities, hull_window, reduction):
        objects = make_objects(five_entities, window=hull_window, value_column="height")

        result = engine.aggregate(objects, hull_window, reduction)

        expected = 8.0 if reduction == Reduction.MIN else 15.0
        assert result.value.values == pytest.approx([expected])
        assert result.clean

    def test_marked_sum(self, engine, five_entities, hull_window):
        objects = make_objects(five_entities, window=hull_window, value_column="height")

        result, _ = engine.aggregate(objects, hull_window, Reduction.SUM)

        assert result.values == pytest.approx([56.0])

    def test_empty_units_sum_to_zero(self, engine, objects):
        result, _ = engine.aggregate(objects, [box(0.5, 0.5, 1.5, 1.5)], Reduction.SUM)

        assert result.values == pytest.approx([0.0])

    def test_count_includes_entities_with_missing_marks(self, engine, five_entities, hull_window):
        entities = five_entities.assign(height=[10.0, np.nan, 8.0, np.nan, 11.0])
        objects = make_objects(entities, window=hull_window, value_column="height")

        result, _ = engine.aggregate(objects, hull_window, Reduction.COUNT)

        assert result.values == pytest.approx([5.0])

    def test_inferred_window_flags_sum(self, engine, five_entities):
        with pytest.warns(NoWindowWarning):
            objects = make_objects(five_entities)
        units = Grid.from_bounds(0, 0, 4, 4, nx=2, ny=2)

        result = engine.aggregate(objects, units, Reduction.SUM)

        np.testing.assert_array_equal(result.value.values, [2.0, 1.0, 1.0, 1.0])
        assert result.codes == [DiagnosticCode.NO_WINDOW]
        assert result.diagnostics[0].rule_id == "A5"

    def test_inferred_window_does_not_warn_at_aggregation(self, engine, five_entities):
        with pytest.warns(NoWindowWarning):
            objects = make_objects(five_entities)

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            engine.aggregate(objects, box(0, 0, 4, 4), Reduction.SUM)


class TestAggregateField:
    """Field summaries over units."""

    def test_point_samples_by_quadrant(self, engine, sample_points, square_domain, quadrant_units):
        field = make_field(sample_points, domain=square_domain)

        result, diagnostics = engine.aggregate(field, quadrant_units, Reduction.MEAN)

        # (5, 5) is shared by all quadrants and counted in the first (SW)
        np.testing.assert_allclose(result.values, [9.0, 12.0, 17.0, 27.0])
        assert result.reduction == Reduction.MEAN
        assert result.source_kind == SupportKind.FIELD
        assert list(result.units["unit"]) == ["SW", "SE", "NW", "NE"]
        assert diagnostics == ()

    def test_point_sample_sum_is_total(self, engine, sample_points, square_domain, quadrant_units):
        field = make_field(sample_points, domain=square_domain)

        result, _ = engine.aggregate(field, quadrant_units, Reduction.SUM)

        assert result.values.sum() == pytest.approx(sample_points["value"].sum())

    def test_area_constant_mean_is_area_weighted(self, engine, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)
        # Full first column and half of the second
        unit = box(-0.5, -0.5, 1.0, 2.5)

        result, diagnostics = engine.aggregate(field, unit, Reduction.MEAN)

        expected = ((1 + 4 + 7) * 1.0 + (2 + 5 + 8) * 0.5) / 4.5
        assert result.values == pytest.approx([expected])
        assert diagnostics == ()

    def test_area_constant_mean_over_whole_grid(self, engine, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)

        result, _ = engine.aggregate(field, grid_3x3.envelope, Reduction.MEAN)

        assert result.values == pytest.approx([5.0])

    def test_area_constant_max(self, engine, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)

        result, _ = engine.aggregate(field, box(-0.5, -0.5, 1.0, 1.0), Reduction.MAX)

        assert result.values == pytest.approx([5.0])

    @pytest.mark.parametrize("reduction", [Reduction.MEAN, Reduction.MAX, Reduction.MIN])
    def test_area_constant_single_cell_unit(self, engine, grid_3x3, grid_values, reduction):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)

        result, _ = engine.aggregate(field, box(-0.5, -0.5, 0.5, 0.5), reduction)

        assert result.values == pytest.approx([1.0])

    def test_area_constant_sum_over_own_cells(self, engine, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)

        result, _ = engine.aggregate(field, grid_3x3, Reduction.SUM)

        np.testing.assert_allclose(result.values, grid_values.ravel())

    def test_area_constant_cell_aligned_block(self, engine, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)
        block = box(-0.5, -0.5, 1.5, 1.5)

        mean, _ = engine.aggregate(field, block, Reduction.MEAN)
        count, _ = engine.aggregate(field, block, Reduction.COUNT)

        assert mean.values == pytest.approx([3.0])
        assert count.values == pytest.approx([4.0])

    def test_area_constant_line_unit_is_length_weighted(self, engine, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)
        # Runs along the middle row, touching no other cell's interior
        line = LineString([(-0.5, 1.0), (2.5, 1.0)])

        result, _ = engine.aggregate(field, [line], Reduction.MEAN)

        assert result.values == pytest.approx([5.0])

    def test_empty_unit_mean_is_nan(self, engine, sample_points, square_domain):
        field = make_field(sample_points, domain=square_domain)

        result, _ = engine.aggregate(field, box(2, 2, 3, 3), Reduction.MEAN)

        assert np.isnan(result.values[0])

    def test_module_level_aggregate(self, sample_points, square_domain):
        field = make_field(sample_points, domain=square_domain)

        result, diagnostics = aggregate(field, square_domain, "count")

        assert result.values == pytest.approx([7.0])
        assert diagnostics == ()


class TestAggregateLattice:
    """Lattices are only ever relabelled, never re-aggregated."""

    @pytest.fixture
    def lattice(self, quadrant_units):
        return make_lattice(quadrant_units).with_values(
            [1, 2, 3, 4], Reduction.SUM, source_kind=SupportKind.OBJECTS
        )

    def test_identical_units_relabel(self, engine, lattice, quadrant_units):
        reordered = quadrant_units.iloc[::-1].reset_index(drop=True)

        result, diagnostics = engine.aggregate(lattice, reordered, Reduction.MEAN)

        np.testing.assert_array_equal(result.values, [4.0, 3.0, 2.0, 1.0])
        assert result.reduction == Reduction.SUM
        assert result.source_kind == SupportKind.OBJECTS
        assert diagnostics == ()

    def test_coarsening_refused(self, engine, lattice, square_domain):
        result, diagnostics = engine.aggregate(lattice, square_domain, Reduction.SUM)

        assert result is None
        assert [d.code for d in diagnostics] == [DiagnosticCode.CANNOT_REAGGREGATE_LATTICE]
        assert diagnostics[0].kind == DiagnosticKind.ERROR
        assert diagnostics[0].rule_id == "A4"

    def test_refinement_refused(self, engine, lattice):
        result = engine.aggregate(lattice, Grid.from_bounds(0, 0, 10, 10, nx=4, ny=4), "sum")

        assert result.refused
        assert result.value is None

    def test_refusal_can_raise(self, lattice, square_domain):
        engine = MeaningfulnessEngine(EngineConfig(raise_on_refuse=True))

        with pytest.raises(OperationRefused) as exc_info:
            engine.aggregate(lattice, square_domain, Reduction.SUM)

        assert exc_info.value.diagnostics[0].code == DiagnosticCode.CANNOT_REAGGREGATE_LATTICE


class TestAggregatePolicy:
    """Input validation and escalation."""

    def test_density_is_not_a_reduction(self, engine, objects, hull_window):
        with pytest.raises(ValueError, match="use density"):
            engine.aggregate(objects, hull_window, Reduction.DENSITY)

    def test_unknown_reduction(self, engine, objects, hull_window):
        with pytest.raises(ValueError):
            engine.aggregate(objects, hull_window, "mode")

    def test_point_units_rejected(self, engine, objects):
        with pytest.raises(TypeError, match="line or polygon"):
            engine.aggregate(objects, [Point(1, 1)], Reduction.SUM)

    def test_field_units_rejected(self, engine, objects, sample_points):
        with pytest.raises(TypeError, match="cannot be used as aggregation units"):
            engine.aggregate(objects, make_field(sample_points), Reduction.SUM)

    def test_warnings_as_errors(self, objects, hull_window):
        engine = MeaningfulnessEngine(EngineConfig(warnings_as_errors=True))

        with pytest.raises(MeaningfulnessError) as exc_info:
            engine.aggregate(objects, hull_window, Reduction.MEAN)

        assert exc_info.value.diagnostics[0].code == DiagnosticCode.MEAN_OF_COUNTS

    def test_fatal_codes_are_selective(self, objects, hull_window, expanded_window):
        engine = MeaningfulnessEngine(EngineConfig(fatal_codes=["TargetExceedsWindow"]))

        assert engine.aggregate(objects, hull_window, Reduction.MEAN).has(
            DiagnosticCode.MEAN_OF_COUNTS
        )
        with pytest.raises(MeaningfulnessError, match="TargetExceedsWindow"):
            engine.aggregate(objects, expanded_window, Reduction.SUM)
