"""Meaningfulness engine.

This package provides the rule-governed dispatch for spatial operations:
- RULES / classify: the table-driven rule set (A1-A7) and pure classifier
- MeaningfulnessEngine: query, aggregate, interpolate and density dispatch
- query / aggregate / interpolate / density: module-level entry points
"""

from supportkit.engine.meaningfulness import (
    MeaningfulnessEngine,
    aggregate,
    density,
    interpolate,
    query,
)
from supportkit.engine.rules import RULES, Finding, Rule, Verdict, classify

__all__ = [
    "MeaningfulnessEngine",
    "aggregate",
    "density",
    "interpolate",
    "query",
    "RULES",
    "Finding",
    "Rule",
    "Verdict",
    "classify",
]
