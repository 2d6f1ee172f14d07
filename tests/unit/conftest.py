"""Shared fixtures for unit tests."""

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import MultiPoint, Point, Polygon, box

from supportkit.config import EngineConfig
from supportkit.engine import MeaningfulnessEngine
from supportkit.spatial.grid import Grid


@pytest.fixture
def grid_3x3():
    """3x3 grid of unit cells whose centres sit on integer coordinates 0..2."""
    return Grid(xmin=-0.5, ymin=-0.5, dx=1.0, dy=1.0, nx=3, ny=3)


@pytest.fixture
def grid_values():
    """Values indexed [row, col]; row 0 is the bottom row."""
    return np.array(
        [
            [1.0, 2.0, 3.0],
            [4.0, 5.0, 6.0],
            [7.0, 8.0, 9.0],
        ]
    )


@pytest.fixture
def five_entities():
    """Five point entities: the corners of a 4x4 square plus its centre."""
    return gpd.GeoDataFrame(
        {"tree_id": [1, 2, 3, 4, 5], "height": [10.0, 12.0, 8.0, 15.0, 11.0]},
        geometry=[Point(0, 0), Point(4, 0), Point(4, 4), Point(0, 4), Point(2, 2)],
    )


@pytest.fixture
def hull_window(five_entities):
    """Convex hull of the five entities."""
    return MultiPoint(list(five_entities.geometry)).convex_hull


@pytest.fixture
def sample_points():
    """Point observations of a smooth surface on a 10x10 square."""
    coords = [(1, 1), (9, 1), (5, 5), (1, 9), (9, 9), (3, 6), (7, 3)]
    values = [x + 2 * y for x, y in coords]
    return gpd.GeoDataFrame(
        {"value": values},
        geometry=[Point(x, y) for x, y in coords],
    )


@pytest.fixture
def square_domain():
    return box(0, 0, 10, 10)


@pytest.fixture
def quadrant_units():
    """Four 5x5 quadrants partitioning the 10x10 square."""
    return gpd.GeoDataFrame(
        {"unit": ["SW", "SE", "NW", "NE"]},
        geometry=[
            box(0, 0, 5, 5),
            box(5, 0, 10, 5),
            box(0, 5, 5, 10),
            box(5, 5, 10, 10),
        ],
    )


@pytest.fixture
def bowtie():
    """Self-intersecting polygon."""
    return Polygon([(0, 0), (2, 2), (2, 0), (0, 2)])


@pytest.fixture
def engine():
    return MeaningfulnessEngine(EngineConfig())


@pytest.fixture
def strict_engine():
    return MeaningfulnessEngine(EngineConfig(refuse_beyond_window=True))
