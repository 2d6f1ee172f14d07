"""Exception and warning taxonomy.

Construction-time structural violations are exceptions and always fatal.
Operation-time meaningfulness findings are diagnostics; they only become
exceptions when a refusal is configured to raise or a warning is escalated.
"""

from supportkit.models.diagnostics import Diagnostic


class SupportError(Exception):
    """Base class for all supportkit errors."""


class InvalidGeometry(SupportError, ValueError):
    """Raised for empty, invalid or degenerate window geometry."""


class EntitiesOutsideWindow(SupportError, ValueError):
    """Raised when entities are not contained in their declared window.

    Attributes:
        indices: Index labels of the offending entities
    """

    def __init__(self, indices: list):
        self.indices = list(indices)
        shown = ", ".join(str(i) for i in self.indices[:10])
        if len(self.indices) > 10:
            shown += ", ..."
        super().__init__(f"{len(self.indices)} entities fall outside the window: [{shown}]")


class MeaningfulnessError(SupportError):
    """Raised when an operation's diagnostics are escalated to fatal.

    Attributes:
        diagnostics: The diagnostics that caused the escalation
    """

    def __init__(self, diagnostics: list[Diagnostic]):
        self.diagnostics = list(diagnostics)
        codes = ", ".join(d.code.value for d in self.diagnostics)
        super().__init__(f"Operation is not meaningful: {codes}")


class OperationRefused(MeaningfulnessError):
    """Raised for a refused operation when the engine is configured to raise."""


class SupportWarning(UserWarning):
    """Base class for supportkit warnings."""


class NoWindowWarning(SupportWarning):
    """Emitted when Objects are built without an authoritative window."""
