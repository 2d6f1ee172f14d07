"""Ordinary kriging backend for point and block support.

The engine only selects support and attaches diagnostics; this module does
the numeric work. Block predictions average the point kriging system over a
discretisation of each block, which yields the block mean and the block
(area-to-point) kriging variance.
"""

import logging
from dataclasses import dataclass

import geopandas as gpd
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from supportkit.config import KrigingConfig
from supportkit.spatial.operations import discretise

logger = logging.getLogger(__name__)


def _distances(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    diff = a[:, None, :] - b[None, :, :]
    return np.sqrt((diff**2).sum(axis=-1))


class VariogramModel(BaseModel):
    """Isotropic variogram model.

    Attributes:
        kind: Model family (spherical, exponential, gaussian)
        sill: Partial sill (structured variance)
        range: Range parameter (practical range for exponential/gaussian)
        nugget: Nugget variance
    """

    model_config = ConfigDict(frozen=True)

    kind: str = Field(default="spherical", pattern="^(spherical|exponential|gaussian)$")
    sill: float = Field(default=1.0, gt=0, description="Partial sill")
    range: float = Field(default=1.0, gt=0, description="Range")
    nugget: float = Field(default=0.0, ge=0, description="Nugget")

    @classmethod
    def default_for(cls, coords: np.ndarray, values: np.ndarray) -> "VariogramModel":
        """A spherical model scaled to the data: sill = variance, range = a third of the span."""
        variance = float(np.var(values)) if len(values) > 1 else 0.0
        span = float(np.ptp(coords, axis=0).max()) if len(coords) > 1 else 0.0
        return cls(
            kind="spherical",
            sill=variance if variance > 0 else 1.0,
            range=span / 3 if span > 0 else 1.0,
        )

    def semivariance(self, h: np.ndarray) -> np.ndarray:
        h = np.asarray(h, dtype=float)
        r = h / self.range
        if self.kind == "spherical":
            structured = np.where(r < 1, 1.5 * r - 0.5 * r**3, 1.0)
        elif self.kind == "exponential":
            structured = 1 - np.exp(-3 * r)
        else:
            structured = 1 - np.exp(-3 * r**2)
        return np.where(h > 0, self.nugget + self.sill * structured, 0.0)

    def covariance(self, h: np.ndarray) -> np.ndarray:
        return self.nugget + self.sill - self.semivariance(h)


@dataclass(frozen=True)
class KrigingHandle:
    """Fitted ordinary kriging system."""

    model: VariogramModel
    coords: np.ndarray
    values: np.ndarray
    lhs: np.ndarray


class OrdinaryKriging:
    """Ordinary kriging predictor (point and block support)."""

    def __init__(self, config: KrigingConfig | None = None):
        self.config = config or KrigingConfig()

    def fit(self, model: VariogramModel, coords: np.ndarray, values: np.ndarray) -> KrigingHandle:
        """Build the ordinary kriging system for a set of observations.

        Raises:
            ValueError: If there are no observations or too many for one system
        """
        coords = np.asarray(coords, dtype=float)
        values = np.asarray(values, dtype=float)
        n = len(values)
        if n == 0:
            msg = "Cannot fit a kriging predictor without observations"
            raise ValueError(msg)
        if n > self.config.max_points:
            msg = f"{n} observations exceed the kriging limit of {self.config.max_points}"
            raise ValueError(msg)

        lhs = np.ones((n + 1, n + 1))
        lhs[:n, :n] = model.covariance(_distances(coords, coords))
        lhs[n, n] = 0.0

        logger.debug(f"Fitted {model.kind} kriging system with {n} observations")
        return KrigingHandle(model=model, coords=coords, values=values, lhs=lhs)

    def _solve(self, handle: KrigingHandle, rhs: np.ndarray) -> np.ndarray:
        try:
            return np.linalg.solve(handle.lhs, rhs)
        except np.linalg.LinAlgError as e:
            msg = "Kriging system is singular (duplicate observation locations?)"
            raise ValueError(msg) from e

    def predict(
        self, handle: KrigingHandle, targets: gpd.GeoSeries, block: bool = False
    ) -> tuple[np.ndarray, np.ndarray]:
        """Predict at target points or blocks.

        Args:
            handle: Fitted system
            targets: Points (block=False) or block geometries (block=True)
            block: Predict block means instead of point values

        Returns:
            Tuple of (predictions, kriging variances)
        """
        n = len(handle.values)
        model = handle.model

        if not block:
            points = np.column_stack([targets.x.to_numpy(), targets.y.to_numpy()])
            rhs = np.ones((n + 1, len(points)))
            rhs[:n, :] = model.covariance(_distances(handle.coords, points))
            solution = self._solve(handle, rhs)
            weights, mu = solution[:n, :], solution[n, :]
            predictions = weights.T @ handle.values
            variances = model.covariance(np.zeros(1))[0] - (weights * rhs[:n, :]).sum(axis=0) - mu
            return predictions, np.maximum(variances, 0.0)

        k = self.config.block_discretisation
        predictions = np.empty(len(targets))
        variances = np.empty(len(targets))
        for i, geom in enumerate(targets):
            points = discretise(geom, k)
            rhs = np.ones(n + 1)
            rhs[:n] = model.covariance(_distances(handle.coords, points)).mean(axis=1)
            solution = self._solve(handle, rhs)
            weights, mu = solution[:n], solution[n]
            block_cov = model.covariance(_distances(points, points)).mean()
            predictions[i] = weights @ handle.values
            variances[i] = max(block_cov - weights @ rhs[:n] - mu, 0.0)

        return predictions, variances
