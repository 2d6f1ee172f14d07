"""Command-line interface for auditing the meaningfulness rules.

Usage:
    supportkit rules
    supportkit classify aggregate objects units --reduction sum --beyond-window
    supportkit classify query lattice points
"""

import logging

import typer

from supportkit.config import EngineConfig
from supportkit.engine.rules import RULES, classify
from supportkit.models.enums import Operation, Outcome, Reduction, SupportKind, TargetKind

logger = logging.getLogger(__name__)

app = typer.Typer(help="Inspect support-type meaningfulness rules")


@app.callback()
def main():
    """Inspect support-type meaningfulness rules."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def rules():
    """Print the rule table."""
    for rule in RULES:
        conditions = " & ".join(rule.conditions) or "always"
        target = rule.target.value if rule.target else "any"
        code = rule.code.value if rule.code else "-"
        typer.echo(
            f"{rule.rule_id or '--':<3} {rule.operation.value:<11} {rule.source.value:<8} "
            f"{target:<6} {conditions:<45} {rule.outcome.name:<7} {code}"
        )


@app.command(name="classify")
def classify_command(
    operation: Operation = typer.Argument(..., help="Operation to classify"),
    source: SupportKind = typer.Argument(..., help="Support kind of the source"),
    target: TargetKind = typer.Argument(..., help="Kind of target support"),
    reduction: Reduction | None = typer.Option(
        None,
        "--reduction",
        "-r",
        help="Reduction used by aggregate",
    ),
    beyond_window: bool = typer.Option(
        False,
        "--beyond-window",
        help="Target units extend beyond the Objects window",
    ),
    no_window: bool = typer.Option(
        False,
        "--no-window",
        help="Objects window was inferred rather than declared",
    ),
    identical_units: bool = typer.Option(
        False,
        "--identical-units",
        help="Target units equal the Lattice's own units",
    ),
    beyond_domain: bool = typer.Option(
        False,
        "--beyond-domain",
        help="Prediction target extends beyond the source domain",
    ),
):
    """Classify one operation and print its verdict.

    Exits with status 1 when the operation would be refused.
    """
    config = EngineConfig()
    try:
        verdict = classify(
            operation,
            source,
            target,
            extensive=bool(reduction and reduction.is_extensive),
            intensive=bool(reduction and reduction.is_intensive),
            beyond_window=beyond_window,
            window_inferred=no_window,
            strict_window=config.refuse_beyond_window,
            identical_units=identical_units,
            beyond_domain=beyond_domain,
        )
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(2)

    typer.echo(f"Outcome: {verdict.outcome.name}")
    for finding in verdict.findings:
        diagnostic = finding.to_diagnostic()
        typer.echo(f"  [{diagnostic.rule_id}] {diagnostic.kind.value} {diagnostic.code.value}: {diagnostic.message}")

    if verdict.outcome == Outcome.REFUSE:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
