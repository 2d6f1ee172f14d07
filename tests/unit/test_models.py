"""Unit tests for Extent, Field, Objects and Lattice construction."""

import warnings

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import LineString, Point, box

from supportkit.config import EngineConfig
from supportkit.errors import (
    EntitiesOutsideWindow,
    InvalidGeometry,
    MeaningfulnessError,
    NoWindowWarning,
)
from supportkit.models.enums import DiagnosticCode, Reduction, SupportKind, WindowInference
from supportkit.models.extent import Extent
from supportkit.models.support import (
    Field,
    Lattice,
    Objects,
    make_extent,
    make_field,
    make_lattice,
    make_objects,
)


class TestExtent:
    """Tests for window construction and containment."""

    def test_from_polygons_uses_union(self):
        extent = Extent.from_geometry([box(0, 0, 1, 1), box(1, 0, 2, 1)])

        assert extent.kind == "polygons"
        assert extent.area == pytest.approx(2.0)

    def test_from_grid_uses_cell_bounds(self, grid_3x3):
        extent = Extent.from_geometry(grid_3x3)

        assert extent.kind == "grid"
        assert extent.grid is grid_3x3
        assert extent.bounds == pytest.approx((-0.5, -0.5, 2.5, 2.5))

    def test_empty_geometry_rejected(self):
        with pytest.raises(InvalidGeometry, match="empty"):
            make_extent([])

    def test_self_intersecting_geometry_rejected(self, bowtie):
        with pytest.raises(InvalidGeometry, match="invalid"):
            make_extent(bowtie)

    def test_degenerate_geometry_rejected(self):
        with pytest.raises(InvalidGeometry, match="degenerate"):
            make_extent(LineString([(0, 0), (1, 1)]))

    def test_contains_is_boundary_inclusive(self):
        extent = make_extent(box(0, 0, 4, 4))

        assert extent.contains(Point(0, 0))
        assert extent.contains(Point(2, 2))
        assert not extent.contains(Point(5, 5))
        assert extent.contains(box(1, 1, 4, 4))
        assert not extent.contains(box(1, 1, 5, 5))

    def test_contains_with_tolerance(self):
        extent = make_extent(box(0, 0, 4, 4))

        assert not extent.contains(Point(4.05, 2))
        assert extent.contains(Point(4.05, 2), tolerance=0.1)

    def test_infer_strategies(self):
        points = [Point(0, 0), Point(4, 0), Point(0, 4)]

        hull = Extent.infer(points, strategy=WindowInference.CONVEX_HULL)
        bbox = Extent.infer(points, strategy=WindowInference.BOUNDING_BOX)

        assert hull.area == pytest.approx(8.0)
        assert bbox.area == pytest.approx(16.0)

    def test_infer_from_collinear_points_has_area(self):
        extent = Extent.infer([Point(0, 0), Point(1, 0), Point(2, 0)], margin=0.01)

        assert extent.area > 0
        assert extent.contains(Point(1, 0))

    def test_extent_is_immutable(self):
        extent = make_extent(box(0, 0, 1, 1))

        with pytest.raises(AttributeError):
            extent.geometry = box(0, 0, 2, 2)


class TestField:
    """Tests for Field construction."""

    def test_from_grid_point_support(self, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=True)

        assert len(field) == 9
        assert field.point_support is True
        assert set(field.geometry.geom_type) == {"Point"}
        assert field.domain.kind == "grid"
        assert field.domain_authoritative is False

    def test_from_grid_area_support(self, grid_3x3, grid_values):
        field = Field.from_grid(grid_3x3, grid_values, cells_are_points=False)

        assert field.point_support is False
        assert field.is_areal is True
        assert field.geometry.area.sum() == pytest.approx(9.0)

    def test_from_grid_wrong_size(self, grid_3x3):
        with pytest.raises(ValueError, match="Expected 9 values"):
            Field.from_grid(grid_3x3, np.ones(4))

    def test_explicit_domain_is_authoritative(self, sample_points, square_domain):
        field = make_field(sample_points, domain=square_domain)

        assert field.domain_authoritative is True
        assert field.domain.area == pytest.approx(100.0)

    def test_inferred_domain(self, sample_points):
        field = make_field(sample_points)

        assert field.domain_authoritative is False
        assert field.domain.contains(sample_points.geometry)

    def test_no_containment_check(self, sample_points):
        """Fields are defined everywhere in the domain; partial overlap is fine."""
        field = make_field(sample_points, domain=box(0, 0, 6, 6))

        assert len(field) == len(sample_points)

    def test_domain_must_intersect_observations(self, sample_points):
        with pytest.raises(InvalidGeometry, match="does not intersect"):
            make_field(sample_points, domain=box(100, 100, 110, 110))

    def test_missing_value_column(self, sample_points):
        with pytest.raises(ValueError, match="value column 'depth'"):
            make_field(sample_points, value_column="depth")

    def test_polygon_observations_are_area_constant(self, quadrant_units):
        observations = quadrant_units.assign(value=[1.0, 2.0, 3.0, 4.0])
        field = make_field(observations, cells_are_points=True)

        assert field.point_support is False

    def test_observations_are_copied(self, sample_points):
        field = make_field(sample_points)
        sample_points.loc[0, "value"] = -999

        assert field.values[0] != -999.0
        field.observations.loc[0, "value"] = -999
        assert field.values[0] != -999.0

    def test_direct_construction_copies_frame(self, sample_points, square_domain):
        field = Field(sample_points, domain=make_extent(square_domain))
        sample_points.loc[0, "value"] = -999.0
        sample_points.loc[0, "geometry"] = Point(50, 50)

        assert field.values[0] != -999.0
        assert field.geometry.iloc[0].equals(Point(1, 1))

    def test_direct_construction_checks_domain(self, sample_points):
        with pytest.raises(InvalidGeometry, match="does not intersect"):
            Field(sample_points, domain=box(100, 100, 110, 110))

    def test_direct_construction_accepts_raw_domain(self, sample_points, square_domain):
        field = Field(sample_points, domain=square_domain)

        assert isinstance(field.domain, Extent)
        assert field.domain.area == pytest.approx(100.0)


class TestObjects:
    """Tests for Objects construction (window containment)."""

    def test_entities_within_window(self, five_entities, hull_window):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            objects = make_objects(five_entities, window=hull_window)

        assert len(objects) == 5
        assert objects.window_authoritative is True
        assert objects.diagnostics == ()

    def test_entity_outside_window_fails(self, five_entities):
        with pytest.raises(EntitiesOutsideWindow) as exc_info:
            make_objects(five_entities, window=box(0, 0, 3, 3))

        # (4, 0), (4, 4) and (0, 4) are outside the 3x3 window
        assert sorted(exc_info.value.indices) == [1, 2, 3]

    @pytest.mark.parametrize(
        "window",
        [box(0, 0, 4, 4), box(-1, -1, 5, 5)],
    )
    def test_entities_on_or_inside_boundary_pass(self, five_entities, window):
        objects = make_objects(five_entities, window=window)

        assert objects.window_authoritative is True

    def test_missing_window_warns(self, five_entities):
        with pytest.warns(NoWindowWarning, match="not authoritative"):
            objects = make_objects(five_entities)

        assert objects.window_authoritative is False
        assert objects.diagnostics[0].code == DiagnosticCode.NO_WINDOW
        assert objects.diagnostics[0].rule_id == "A5"
        assert objects.window.area == pytest.approx(16.0)

    def test_inference_strategy_is_injectable(self):
        entities = gpd.GeoDataFrame(geometry=[Point(0, 0), Point(4, 0), Point(0, 4)])

        with pytest.warns(NoWindowWarning):
            hull = make_objects(entities)
        with pytest.warns(NoWindowWarning):
            bbox = make_objects(entities, inference=WindowInference.BOUNDING_BOX)

        assert hull.window.area == pytest.approx(8.0)
        assert bbox.window.area == pytest.approx(16.0)

    def test_line_entities_rejected(self):
        with pytest.raises(InvalidGeometry, match="point or polygon"):
            make_objects([LineString([(0, 0), (1, 1)])], window=box(0, 0, 2, 2))

    def test_marks(self, five_entities, hull_window):
        bare = make_objects(five_entities, window=hull_window)
        marked = make_objects(five_entities, window=hull_window, value_column="height")

        np.testing.assert_array_equal(bare.marks, np.ones(5))
        np.testing.assert_array_equal(marked.marks, five_entities["height"].to_numpy())

    def test_support_kind(self, five_entities, hull_window):
        objects = make_objects(five_entities, window=hull_window)

        assert objects.support_kind == SupportKind.OBJECTS

    def test_direct_construction_checks_window(self):
        entities = gpd.GeoDataFrame(geometry=[Point(50, 50)])

        with pytest.raises(EntitiesOutsideWindow) as exc_info:
            Objects(entities, window=make_extent(box(0, 0, 1, 1)))

        assert exc_info.value.indices == [0]

    def test_direct_construction_rejects_lines(self):
        entities = gpd.GeoDataFrame(geometry=[LineString([(0, 0), (1, 1)])])

        with pytest.raises(InvalidGeometry, match="point or polygon"):
            Objects(entities, window=make_extent(box(0, 0, 2, 2)))

    def test_direct_construction_copies_frame(self, five_entities, hull_window):
        objects = Objects(five_entities, window=make_extent(hull_window), value_column="height")
        five_entities.loc[0, "height"] = -1.0
        five_entities.loc[0, "geometry"] = Point(50, 50)

        assert objects.marks[0] == 10.0
        assert objects.geometry.iloc[0].equals(Point(0, 0))

    def test_missing_window_fatal_under_warnings_as_errors(self, five_entities):
        with pytest.raises(MeaningfulnessError) as exc_info:
            make_objects(five_entities, config=EngineConfig(warnings_as_errors=True))

        assert exc_info.value.diagnostics[0].code == DiagnosticCode.NO_WINDOW

    def test_missing_window_fatal_when_code_listed(self, five_entities):
        config = EngineConfig(fatal_codes=["NoWindowWarning"])

        with pytest.raises(MeaningfulnessError, match="NoWindowWarning"):
            make_objects(five_entities, config=config)

    def test_missing_window_not_fatal_for_other_codes(self, five_entities):
        config = EngineConfig(fatal_codes=["MeanOfCounts"])

        with pytest.warns(NoWindowWarning):
            objects = make_objects(five_entities, config=config)

        assert objects.window_authoritative is False


class TestLattice:
    """Tests for Lattice construction."""

    def test_from_grid(self, grid_3x3):
        lattice = make_lattice(grid_3x3)

        assert len(lattice) == 9
        assert lattice.grid is grid_3x3
        assert lattice.has_values is False
        assert lattice.values is None

    def test_domain_is_union_of_units(self, quadrant_units):
        lattice = make_lattice(quadrant_units)

        assert lattice.domain.area == pytest.approx(100.0)

    def test_with_values_returns_new_instance(self, quadrant_units):
        lattice = make_lattice(quadrant_units)
        valued = lattice.with_values([1, 2, 3, 4], Reduction.SUM, source_kind=SupportKind.OBJECTS)

        assert valued is not lattice
        assert lattice.has_values is False
        np.testing.assert_array_equal(valued.values, [1.0, 2.0, 3.0, 4.0])
        assert valued.reduction == Reduction.SUM
        assert valued.source_kind == SupportKind.OBJECTS

    def test_line_units_accepted(self):
        lattice = make_lattice([LineString([(0, 0), (1, 0)]), LineString([(1, 0), (2, 0)])])

        assert len(lattice) == 2

    def test_direct_construction_copies_frame(self, quadrant_units):
        units = quadrant_units.assign(value=[1.0, 2.0, 3.0, 4.0])
        lattice = Lattice(units, reduction=Reduction.SUM)
        units.loc[0, "value"] = -1.0
        units.loc[0, "geometry"] = box(50, 50, 60, 60)

        np.testing.assert_array_equal(lattice.values, [1.0, 2.0, 3.0, 4.0])
        assert lattice.domain.area == pytest.approx(100.0)
