"""Meaningfulness rule table and classifier.

Every decision the engine makes is a lookup into RULES. A rule fires when
its operation and source kind match, its target kind matches (or is None for
any target), and every condition holds. Conditions name boolean facts about
the call; a leading "!" negates a fact. Facts not supplied are False.

Facts used by the table:
- extensive: reduction accumulates over area (sum, count)
- intensive: reduction is a per-area statistic (mean, median)
- beyond_window: target units extend beyond the Objects window
- window_inferred: the Objects window was inferred, not declared
- strict_window: configuration refuses entity sums beyond the window
- identical_units: target units equal the Lattice's own units
- beyond_domain: prediction target extends beyond the source domain
"""

from pydantic import BaseModel, ConfigDict, Field

from supportkit.models.diagnostics import Diagnostic
from supportkit.models.enums import (
    DiagnosticCode,
    DiagnosticKind,
    Operation,
    Outcome,
    SupportKind,
    TargetKind,
)


class Rule(BaseModel):
    """One row of the meaningfulness rule table."""

    model_config = ConfigDict(frozen=True)

    rule_id: str | None = Field(default=None, description="Rule label (A1-A7)")
    operation: Operation
    source: SupportKind
    target: TargetKind | None = Field(default=None, description="None matches any target")
    conditions: tuple[str, ...] = ()
    outcome: Outcome
    code: DiagnosticCode | None = None
    description: str

    def matches(self, operation: Operation, source: SupportKind, target: TargetKind, facts: dict) -> bool:
        if self.operation != operation or self.source != source:
            return False
        if self.target is not None and self.target != target:
            return False
        for condition in self.conditions:
            negated = condition.startswith("!")
            value = bool(facts.get(condition.lstrip("!"), False))
            if value == negated:
                return False
        return True


RULES: tuple[Rule, ...] = (
    # Field: point-defined everywhere, so evaluating or summarising it is meaningful
    Rule(
        operation=Operation.QUERY,
        source=SupportKind.FIELD,
        target=TargetKind.POINTS,
        outcome=Outcome.PROCEED,
        description="Field evaluated at points",
    ),
    Rule(
        operation=Operation.AGGREGATE,
        source=SupportKind.FIELD,
        target=TargetKind.UNITS,
        outcome=Outcome.PROCEED,
        description="Field summarised over units",
    ),
    Rule(
        operation=Operation.INTERPOLATE,
        source=SupportKind.FIELD,
        conditions=("!beyond_domain",),
        outcome=Outcome.PROCEED,
        description="Field predicted within its domain",
    ),
    Rule(
        operation=Operation.AGGREGATE,
        source=SupportKind.OBJECTS,
        target=TargetKind.UNITS,
        outcome=Outcome.PROCEED,
        description="Entities summarised over units",
    ),
    Rule(
        rule_id="A1",
        operation=Operation.QUERY,
        source=SupportKind.OBJECTS,
        target=TargetKind.POINTS,
        outcome=Outcome.WARN,
        code=DiagnosticCode.QUERYING_ENTITY_PATTERN,
        description="Entity pattern queried as if it were a field",
    ),
    Rule(
        rule_id="A1",
        operation=Operation.INTERPOLATE,
        source=SupportKind.OBJECTS,
        outcome=Outcome.WARN,
        code=DiagnosticCode.INTERPOLATING_ENTITY_PATTERN,
        description="Entity pattern interpolated as a field sample (density is not a value)",
    ),
    Rule(
        rule_id="A2",
        operation=Operation.AGGREGATE,
        source=SupportKind.OBJECTS,
        target=TargetKind.UNITS,
        conditions=("extensive", "beyond_window", "!strict_window"),
        outcome=Outcome.WARN,
        code=DiagnosticCode.TARGET_EXCEEDS_WINDOW,
        description="Entities summed over units extending beyond the observation window",
    ),
    Rule(
        rule_id="A2",
        operation=Operation.AGGREGATE,
        source=SupportKind.OBJECTS,
        target=TargetKind.UNITS,
        conditions=("extensive", "beyond_window", "strict_window"),
        outcome=Outcome.REFUSE,
        code=DiagnosticCode.TARGET_EXCEEDS_WINDOW,
        description="Entities summed over units extending beyond the observation window",
    ),
    Rule(
        rule_id="A3",
        operation=Operation.QUERY,
        source=SupportKind.LATTICE,
        target=TargetKind.POINTS,
        outcome=Outcome.WARN,
        code=DiagnosticCode.AGGREGATE_QUERIED_AT_POINT,
        description="Areal aggregate queried at a point; value is not point-valid",
    ),
    Rule(
        rule_id="A4",
        operation=Operation.AGGREGATE,
        source=SupportKind.LATTICE,
        target=TargetKind.UNITS,
        conditions=("identical_units",),
        outcome=Outcome.PROCEED,
        description="Lattice relabelled on its own units",
    ),
    Rule(
        rule_id="A4",
        operation=Operation.AGGREGATE,
        source=SupportKind.LATTICE,
        target=TargetKind.UNITS,
        conditions=("!identical_units",),
        outcome=Outcome.REFUSE,
        code=DiagnosticCode.CANNOT_REAGGREGATE_LATTICE,
        description="Aggregates cannot be re-aggregated to different units without disaggregation",
    ),
    Rule(
        rule_id="A4",
        operation=Operation.INTERPOLATE,
        source=SupportKind.LATTICE,
        outcome=Outcome.REFUSE,
        code=DiagnosticCode.CANNOT_DISAGGREGATE_LATTICE,
        description="Aggregates cannot be predicted at other supports without disaggregation",
    ),
    Rule(
        rule_id="A5",
        operation=Operation.AGGREGATE,
        source=SupportKind.OBJECTS,
        target=TargetKind.UNITS,
        conditions=("extensive", "window_inferred"),
        outcome=Outcome.WARN,
        code=DiagnosticCode.NO_WINDOW,
        description="Entities summed using an inferred, non-authoritative window",
    ),
    Rule(
        rule_id="A6",
        operation=Operation.INTERPOLATE,
        source=SupportKind.FIELD,
        conditions=("beyond_domain",),
        outcome=Outcome.WARN,
        code=DiagnosticCode.EXTRAPOLATION_BEYOND_DOMAIN,
        description="Prediction target extends beyond the observed domain",
    ),
    Rule(
        rule_id="A6",
        operation=Operation.INTERPOLATE,
        source=SupportKind.OBJECTS,
        conditions=("beyond_domain",),
        outcome=Outcome.WARN,
        code=DiagnosticCode.EXTRAPOLATION_BEYOND_DOMAIN,
        description="Prediction target extends beyond the observation window",
    ),
    Rule(
        rule_id="A7",
        operation=Operation.AGGREGATE,
        source=SupportKind.OBJECTS,
        target=TargetKind.UNITS,
        conditions=("intensive",),
        outcome=Outcome.WARN,
        code=DiagnosticCode.MEAN_OF_COUNTS,
        description="Per-area statistic of entity counts without area normalisation",
    ),
    Rule(
        rule_id="A7",
        operation=Operation.DENSITY,
        source=SupportKind.OBJECTS,
        target=TargetKind.UNITS,
        outcome=Outcome.PROCEED,
        description="Entity density estimated as an areal aggregate",
    ),
)


class Finding(BaseModel):
    """A rule that fired for a particular call."""

    model_config = ConfigDict(frozen=True)

    rule: Rule
    detail: str | None = None

    @property
    def outcome(self) -> Outcome:
        return self.rule.outcome

    def to_diagnostic(self) -> Diagnostic:
        message = self.rule.description
        if self.detail:
            message = f"{message}: {self.detail}"
        kind = DiagnosticKind.ERROR if self.outcome == Outcome.REFUSE else DiagnosticKind.WARNING
        return Diagnostic(kind=kind, code=self.rule.code, message=message, rule_id=self.rule.rule_id)


class Verdict(BaseModel):
    """Classification of one call: every matching rule and the overall outcome."""

    model_config = ConfigDict(frozen=True)

    operation: Operation
    source: SupportKind
    target: TargetKind
    matched: tuple[Rule, ...]

    @property
    def findings(self) -> tuple[Finding, ...]:
        return tuple(Finding(rule=rule) for rule in self.matched if rule.outcome != Outcome.PROCEED)

    @property
    def outcome(self) -> Outcome:
        return max((rule.outcome for rule in self.matched), key=lambda o: o.value)

    @property
    def codes(self) -> list[DiagnosticCode]:
        return [f.rule.code for f in self.findings]


def classify(
    operation: Operation,
    source: SupportKind,
    target: TargetKind,
    rules: tuple[Rule, ...] = RULES,
    **facts: bool,
) -> Verdict:
    """Classify a call against the rule table.

    Pure and memoryless: the verdict depends only on the arguments.

    Args:
        operation: Operation being performed
        source: Support kind of the source data
        target: Kind of target support
        rules: Rule table (defaults to RULES)
        **facts: Boolean facts referenced by rule conditions

    Returns:
        Verdict with all matching rules

    Raises:
        ValueError: If no rule covers the operation/source/target combination
    """
    matched = tuple(rule for rule in rules if rule.matches(operation, source, target, facts))
    if not matched:
        msg = (
            f"No meaningfulness rule covers {operation.value} on "
            f"{source.value} with {target.value} target"
        )
        raise ValueError(msg)

    return Verdict(operation=operation, source=source, target=target, matched=matched)
