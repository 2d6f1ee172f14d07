"""Diagnostic records and operation results."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from supportkit.models.enums import DiagnosticCode, DiagnosticKind


class Diagnostic(BaseModel):
    """A single meaningfulness finding attached to a result.

    Attributes:
        kind: Warning (advisory) or Error (refused / escalated)
        code: Machine-readable diagnostic code
        message: Human-readable explanation
        rule_id: Meaningfulness rule that produced the finding (A1-A7)
    """

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind = Field(description="Warning or Error")
    code: DiagnosticCode = Field(description="Diagnostic code")
    message: str = Field(description="Explanation of the finding")
    rule_id: str | None = Field(default=None, description="Rule that fired")

    @property
    def is_error(self) -> bool:
        return self.kind == DiagnosticKind.ERROR


@dataclass(frozen=True)
class OperationResult:
    """Result of a governed operation together with its diagnostics.

    Unpacks as a ``(value, diagnostics)`` pair. ``value`` is None when the
    operation was refused.
    """

    value: Any
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    def __iter__(self):
        yield self.value
        yield self.diagnostics

    @property
    def refused(self) -> bool:
        return any(d.is_error for d in self.diagnostics)

    @property
    def clean(self) -> bool:
        """True when the operation proceeded without any diagnostic."""
        return not self.diagnostics

    @property
    def codes(self) -> list[DiagnosticCode]:
        return [d.code for d in self.diagnostics]

    def has(self, code: DiagnosticCode) -> bool:
        return code in self.codes
