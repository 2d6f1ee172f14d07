"""Semantic support-type layer for spatial data.

Classifies spatial data as a continuous Field, discrete Objects or an areal
Lattice, and checks at every query, aggregation, interpolation and density
estimation whether the requested change of support is meaningful.
"""

from supportkit.config import DEFAULT_CONFIG, EngineConfig, KrigingConfig
from supportkit.engine import (
    MeaningfulnessEngine,
    aggregate,
    classify,
    density,
    interpolate,
    query,
)
from supportkit.errors import (
    EntitiesOutsideWindow,
    InvalidGeometry,
    MeaningfulnessError,
    NoWindowWarning,
    OperationRefused,
    SupportError,
    SupportWarning,
)
from supportkit.models import Diagnostic, DiagnosticCode, OperationResult, Outcome, Reduction
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
from supportkit.spatial.grid import Grid

__all__ = [
    "DEFAULT_CONFIG",
    "EngineConfig",
    "KrigingConfig",
    "MeaningfulnessEngine",
    "aggregate",
    "classify",
    "density",
    "interpolate",
    "query",
    "EntitiesOutsideWindow",
    "InvalidGeometry",
    "MeaningfulnessError",
    "NoWindowWarning",
    "OperationRefused",
    "SupportError",
    "SupportWarning",
    "Diagnostic",
    "DiagnosticCode",
    "OperationResult",
    "Outcome",
    "Reduction",
    "Extent",
    "Field",
    "Lattice",
    "Objects",
    "make_extent",
    "make_field",
    "make_lattice",
    "make_objects",
    "Grid",
]
