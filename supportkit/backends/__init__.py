"""Numeric backends consumed by the meaningfulness engine.

This package provides default implementations of the backend protocols:
- OrdinaryKriging: point and block prediction with a variogram model
- PandasReduction: mean/sum/count/median/min/max reductions
- QuadratDensity / KernelDensity: entity density per unit
"""

from supportkit.backends.density import KernelDensity, QuadratDensity
from supportkit.backends.kriging import KrigingHandle, OrdinaryKriging, VariogramModel
from supportkit.backends.protocols import DensityBackend, PredictionBackend, ReductionBackend
from supportkit.backends.reduction import PandasReduction

__all__ = [
    "DensityBackend",
    "PredictionBackend",
    "ReductionBackend",
    "KernelDensity",
    "QuadratDensity",
    "KrigingHandle",
    "OrdinaryKriging",
    "VariogramModel",
    "PandasReduction",
]
