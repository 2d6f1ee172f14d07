"""Backend protocol definitions.

The engine decides *whether* a numeric backend may be invoked and on which
support; these protocols describe the narrow interface it invokes them
through. Any object with matching methods can be injected.
"""

from typing import Any, Protocol

import geopandas as gpd
import numpy as np

from supportkit.models.enums import Reduction


class PredictionBackend(Protocol):
    """Protocol for spatial prediction (kriging) backends."""

    def fit(self, model: Any, coords: np.ndarray, values: np.ndarray) -> Any:
        """Fit a predictor to point observations.

        Args:
            model: Variogram model (backend-specific)
            coords: Observation coordinates, shape (n, 2)
            values: Observed values, shape (n,)

        Returns:
            Opaque predictor handle
        """
        ...

    def predict(
        self, handle: Any, targets: gpd.GeoSeries, block: bool = False
    ) -> tuple[np.ndarray, np.ndarray]:
        """Predict at point or block support.

        Args:
            handle: Handle returned by fit()
            targets: Target points (block=False) or blocks (block=True)
            block: Predict block-averaged values instead of point values

        Returns:
            Tuple of (predictions, variances), one entry per target
        """
        ...


class ReductionBackend(Protocol):
    """Protocol for reduction functions (mean, sum, count, ...)."""

    def reduce(self, values: np.ndarray, kind: Reduction, weights: np.ndarray | None = None) -> float:
        """Reduce a set of values to a scalar."""
        ...

    def reduce_groups(
        self,
        values: np.ndarray,
        groups: np.ndarray,
        n_groups: int,
        kind: Reduction,
        weights: np.ndarray | None = None,
    ) -> np.ndarray:
        """Reduce values per group; groups are positional indices in [0, n_groups)."""
        ...


class DensityBackend(Protocol):
    """Protocol for entity density estimation over units."""

    def estimate(
        self,
        entities: gpd.GeoSeries,
        units: gpd.GeoSeries,
        marks: np.ndarray | None = None,
    ) -> np.ndarray:
        """Estimate entity density (per unit area) for each unit."""
        ...
