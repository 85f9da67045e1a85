"""Readiness scoring: answers -> dimension aggregates -> overall readiness.

Architecture
------------
Scoring runs in three deterministic stages:

- **Answer scoring** turns one raw answer string into a numeric
  ``score_impact`` based on the question type and its options.
- **Dimension aggregation** groups scored answers by dimension and keeps
  the raw point total next to the maximum obtainable (the *ceiling*).
- **Readiness calculation** reduces the dimensions to an overall score and
  a tier.

Two conventions coexist and are never mixed silently:

- ``points150`` (canonical) -- raw points per dimension capped at 25,
  summed over the six dimensions, out of 150.  Tier labels use this scale.
- ``percentage`` -- ``round(100 * raw / ceiling)``, used for display and
  as the 0-100 input to investor matching.

Use :func:`percent_to_points150` / :func:`points150_to_percent` to cross
between them.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from readiness.models import DIMENSIONS
from readiness.utils import round_half_up

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BOOLEAN_TRUE_SCORE = 6
BOOLEAN_FALSE_SCORE = 1
NEUTRAL_SCORE = 3
DEFAULT_CEILING = 6
NUMBER_SCALE = 1_000_000
NUMBER_MIN, NUMBER_MAX = 1, 6

POINTS_PER_DIMENSION = 25
POINTS_MAX = POINTS_PER_DIMENSION * len(DIMENSIONS)  # 150

TIER_READY = "ready"
TIER_NEAR_READY = "near-ready"
TIER_NOT_READY = "not-ready"

CONVENTIONS = ("percentage", "points150")

_OPTION_TYPES = ("scale", "multiple_choice")


# ---------------------------------------------------------------------------
# Answer scoring
# ---------------------------------------------------------------------------


def _option_score(option: Mapping[str, Any]) -> float:
    score = option.get("score") or 0
    try:
        return float(score) if isinstance(score, str) else score
    except ValueError:
        return 0


def score_answer(
    raw_value: str | None,
    question_type: str,
    options: list[Mapping[str, Any]] | None = None,
) -> float:
    """Convert a raw answer into its ``score_impact``.

    Never raises for data-shape problems: unknown types score neutral,
    unmatched options and empty answers score 0, unparseable numbers are
    treated as 0 before clamping.  A non-string ``raw_value`` is a contract
    violation and raises ``TypeError``.
    """
    if raw_value is None:
        return 0
    if not isinstance(raw_value, str):
        raise TypeError(f"answer value must be a string, got {type(raw_value).__name__}")
    if not raw_value:
        return 0

    if question_type in _OPTION_TYPES:
        for opt in options or []:
            if str(opt.get("value")) == raw_value:
                return _option_score(opt)
        return 0

    if question_type == "boolean":
        return BOOLEAN_TRUE_SCORE if raw_value == "true" else BOOLEAN_FALSE_SCORE

    if question_type == "number":
        try:
            number = float(raw_value)
        except ValueError:
            log.warning("Unparseable number answer %r, treating as 0", raw_value)
            number = 0.0
        if not math.isfinite(number):
            number = 0.0
        return min(NUMBER_MAX, max(NUMBER_MIN, round_half_up(number / NUMBER_SCALE)))

    if question_type != "text":
        log.warning("Unknown question type %r, using neutral score", question_type)
    return NEUTRAL_SCORE


def question_ceiling(question_type: str, options: list[Mapping[str, Any]] | None = None) -> float:
    """Maximum obtainable score for a question (the normalization denominator)."""
    if question_type in _OPTION_TYPES and options:
        return max(_option_score(opt) for opt in options)
    return DEFAULT_CEILING


# ---------------------------------------------------------------------------
# Dimension aggregation
# ---------------------------------------------------------------------------


@dataclass
class DimensionScore:
    """Aggregated answers for one dimension."""
    dimension: str
    raw: float = 0
    ceiling: float = 0
    count: int = 0

    @property
    def percent(self) -> int:
        if self.ceiling <= 0:
            return 0
        return round_half_up(100 * self.raw / self.ceiling)

    @property
    def points(self) -> float:
        return min(self.raw, POINTS_PER_DIMENSION)

    @property
    def average(self) -> float:
        return self.raw / self.count if self.count else 0.0


def aggregate_dimension_scores(pairs: Iterable[tuple[Any, Any]]) -> dict[str, DimensionScore]:
    """Group ``(question, answer)`` pairs by dimension.

    Uses the answer's cached ``score_impact``; answers that were never
    scored are scored on the fly.  Pairs whose question has no dimension
    are skipped.
    """
    result: dict[str, DimensionScore] = {}
    for question, answer in pairs:
        dimension = getattr(question, "dimension", None)
        if not dimension:
            continue
        options = getattr(question, "options", None)
        impact = getattr(answer, "score_impact", None)
        if impact is None:
            impact = score_answer(answer.answer_value, question.question_type, options)
        agg = result.setdefault(dimension, DimensionScore(dimension))
        agg.raw += impact
        agg.ceiling += question_ceiling(question.question_type, options)
        agg.count += 1
    return result


def dimension_percentages(scores: Mapping[str, DimensionScore]) -> dict[str, int]:
    """Percentage view (0-100) of an aggregate, as consumed by investor matching."""
    return {dim: ds.percent for dim, ds in scores.items()}


def dimension_points(scores: Mapping[str, DimensionScore]) -> dict[str, float]:
    """Capped points view (0-25) of an aggregate."""
    return {dim: ds.points for dim, ds in scores.items()}


# ---------------------------------------------------------------------------
# Readiness calculation
# ---------------------------------------------------------------------------


def compute_overall_score(scores: Mapping[str, DimensionScore], convention: str = "points150") -> int:
    """Overall readiness under one named convention.

    ``percentage``: ``round(100 * total raw / total ceiling)`` (0 if nothing answered).
    ``points150``: per-dimension points capped at 25, summed over all six
    dimensions; missing dimensions contribute 0.
    """
    if convention == "percentage":
        total_ceiling = sum(ds.ceiling for ds in scores.values())
        if total_ceiling <= 0:
            return 0
        return round_half_up(100 * sum(ds.raw for ds in scores.values()) / total_ceiling)
    if convention == "points150":
        return round_half_up(sum(scores[d].points for d in DIMENSIONS if d in scores))
    raise ValueError(f"Unknown scoring convention: {convention!r}")


def readiness_tier(points: float) -> str:
    """Map a points150 overall to ready / near-ready / not-ready."""
    if points >= 90:
        return TIER_READY
    if points >= 75:
        return TIER_NEAR_READY
    return TIER_NOT_READY


def is_transaction_ready(scores: Mapping[str, DimensionScore], deliverables_complete: Iterable[bool] = ()) -> bool:
    """Compound certification on top of the ``ready`` tier.

    Requires overall >= 90 points, an average per-question score of at least
    4.0 across scored dimensions, every dimension at 40% of its 25-point cap
    or better, and every required deliverable complete.
    """
    if compute_overall_score(scores, "points150") < 90:
        return False
    scored = [ds for ds in scores.values() if ds.count]
    if not scored or sum(ds.average for ds in scored) / len(scored) < 4.0:
        return False
    floor = 0.4 * POINTS_PER_DIMENSION
    if any(d not in scores or scores[d].points < floor for d in DIMENSIONS):
        return False
    return all(deliverables_complete)


def percent_to_points150(percent: float) -> int:
    return round_half_up(percent * POINTS_MAX / 100)


def points150_to_percent(points: float) -> int:
    return round_half_up(points * 100 / POINTS_MAX)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

_ACTIONS: dict[str, dict[str, list[str]]] = {
    "financial": {
        "critical": [
            "Bring in a CFO or senior finance advisor",
            "Produce audited financial statements for the last two years",
            "Put financial controls and monthly reporting in place",
            "Resolve cash flow and runway concerns",
        ],
        "moderate": [
            "Review gross margin drivers",
            "Tighten KPI tracking and management reporting",
            "Look for working capital improvements",
        ],
    },
    "operational": {
        "critical": [
            "Document the critical business processes",
            "Create succession plans for key roles",
            "Reduce customer concentration",
        ],
        "moderate": [
            "Track operational efficiency metrics",
            "Upgrade management information systems",
            "Formalize supplier contracts",
        ],
    },
    "market": {
        "critical": [
            "Complete a market analysis with TAM/SAM/SOM",
            "Define competitive differentiation",
            "Address customer satisfaction issues",
        ],
        "moderate": [
            "Sharpen market positioning",
            "Strengthen customer retention",
            "Develop recurring revenue streams",
        ],
    },
    "technology": {
        "critical": [
            "Audit core technology infrastructure",
            "Implement baseline cybersecurity controls",
            "Secure intellectual property ownership",
        ],
        "moderate": [
            "Improve system scalability",
            "Automate key manual processes",
            "Harden backup and recovery procedures",
        ],
    },
    "legal": {
        "critical": [
            "Resolve pending legal issues",
            "Clean up the corporate structure",
            "Collect IP assignment agreements from all employees",
        ],
        "moderate": [
            "Review customer and supplier contracts",
            "Update employment agreements",
            "Strengthen compliance monitoring",
        ],
    },
    "strategic": {
        "critical": [
            "Write a 3-5 year strategic plan",
            "Strengthen the management team",
            "Establish a KPI framework",
        ],
        "moderate": [
            "Formalize strategic planning",
            "Add depth to the management team",
            "Articulate strategic value to acquirers",
        ],
    },
}


@dataclass
class Recommendation:
    priority: str  # high | medium
    dimension: str
    title: str
    description: str
    actions: list[str] = field(default_factory=list)


def build_recommendations(percentages: Mapping[str, float]) -> list[Recommendation]:
    """Recommendations for dimensions scoring under 65%."""
    recs: list[Recommendation] = []
    ordered = [d for d in DIMENSIONS if d in percentages]
    ordered += [d for d in percentages if d not in DIMENSIONS]
    for dim in ordered:
        score = percentages[dim]
        name = dim.capitalize()
        if score < 40:
            recs.append(Recommendation(
                priority="high", dimension=dim,
                title=f"Critical {name} Issues",
                description=f"{name} readiness is below an acceptable level and needs attention before any transaction.",
                actions=list(_ACTIONS.get(dim, {}).get("critical", [])),
            ))
        elif score < 65:
            recs.append(Recommendation(
                priority="medium", dimension=dim,
                title=f"{name} Improvements Needed",
                description=f"Strengthening the {dim} position would make the company more attractive to buyers and investors.",
                actions=list(_ACTIONS.get(dim, {}).get("moderate", [])),
            ))
    return recs
