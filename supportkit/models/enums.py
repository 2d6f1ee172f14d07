"""Enumerations shared by the support-type models and the rule engine."""

from enum import Enum, StrEnum


class SupportKind(StrEnum):
    """The three support-type categories a dataset can be classified into."""

    FIELD = "field"  # continuous variable defined at every point
    OBJECTS = "objects"  # discrete entities, complete within a window
    LATTICE = "lattice"  # areal aggregates over units


class TargetKind(StrEnum):
    """Kind of target support an operation is asked to produce or evaluate."""

    POINTS = "points"
    UNITS = "units"  # aggregation units or blocks (polygons, lines, grid cells)


class Operation(StrEnum):
    """Operations governed by the meaningfulness rules."""

    QUERY = "query"
    AGGREGATE = "aggregate"
    INTERPOLATE = "interpolate"
    DENSITY = "density"


class Reduction(StrEnum):
    """Reduction functions available to aggregate."""

    SUM = "sum"
    COUNT = "count"
    MEAN = "mean"
    MEDIAN = "median"
    MIN = "min"
    MAX = "max"
    DENSITY = "density"

    @property
    def is_extensive(self) -> bool:
        """True for reductions that accumulate over area (sum, count)."""
        return self in (Reduction.SUM, Reduction.COUNT)

    @property
    def is_intensive(self) -> bool:
        """True for per-area normalising statistics (mean, median)."""
        return self in (Reduction.MEAN, Reduction.MEDIAN)


class Outcome(Enum):
    """Disposition of a classified operation, ordered by severity."""

    PROCEED = 0
    WARN = 1
    REFUSE = 2


class DiagnosticKind(StrEnum):
    """Severity of a diagnostic record."""

    WARNING = "Warning"
    ERROR = "Error"


class DiagnosticCode(StrEnum):
    """Machine-readable diagnostic codes."""

    NO_WINDOW = "NoWindowWarning"
    TARGET_EXCEEDS_WINDOW = "TargetExceedsWindow"
    CANNOT_REAGGREGATE_LATTICE = "CannotReaggregateLattice"
    CANNOT_DISAGGREGATE_LATTICE = "CannotDisaggregateLattice"
    EXTRAPOLATION_BEYOND_DOMAIN = "ExtrapolationBeyondDomain"
    MEAN_OF_COUNTS = "MeanOfCounts"
    INTERPOLATING_ENTITY_PATTERN = "InterpolatingEntityPattern"
    QUERYING_ENTITY_PATTERN = "QueryingEntityPattern"
    AGGREGATE_QUERIED_AT_POINT = "AggregateQueriedAtPoint"


class WindowInference(StrEnum):
    """Strategies for deriving an implicit window from geometry."""

    CONVEX_HULL = "convex_hull"
    BOUNDING_BOX = "bounding_box"
    UNION = "union"
