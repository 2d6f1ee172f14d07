"""Value types for support-type classification.

The data types themselves live in their own modules (extent, support) so the
geometry backend can depend on these enums without import cycles.
"""

from supportkit.models.diagnostics import Diagnostic, OperationResult
from supportkit.models.enums import (
    DiagnosticCode,
    DiagnosticKind,
    Operation,
    Outcome,
    Reduction,
    SupportKind,
    TargetKind,
    WindowInference,
)

__all__ = [
    "Diagnostic",
    "OperationResult",
    "DiagnosticCode",
    "DiagnosticKind",
    "Operation",
    "Outcome",
    "Reduction",
    "SupportKind",
    "TargetKind",
    "WindowInference",
]
