"""Investor match scoring and match reasoning.

A match score is the weight-averaged company dimension score (0-100) under
the investor's criteria weights.  Weights arrive either as 0-1 decimals or
on a 1-10 scale; :func:`normalize_weights` is the only place that tells
them apart.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from readiness.utils import format_amount, round_half_up

log = logging.getLogger(__name__)

DEFAULT_WEIGHTS: dict[str, float] = {
    "financial": 0.25,
    "operational": 0.20,
    "market": 0.20,
    "technology": 0.15,
    "legal": 0.10,
    "strategic": 0.10,
}

IMPORTANT_WEIGHT = 0.2
STRONG_SCORE = 70
MODERATE_SCORE = 50


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------


def normalize_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Return decimal weights; a 1-10 scale is detected by any weight above 1.

    Entries without a usable number are dropped, so the dimension counts
    toward neither the weighted total nor the weight sum.
    """
    values = {}
    for dim, w in weights.items():
        try:
            values[dim] = float(w)
        except (TypeError, ValueError):
            log.warning("Ignoring unusable criteria weight %r for %s", w, dim)
    if any(w > 1 for w in values.values()):
        log.debug("Rescaling 1-10 criteria weights to decimals: %s", values)
        return {dim: w / 10 for dim, w in values.items()}
    return values


def resolve_weights(criteria_weights: Mapping[str, float] | None) -> dict[str, float]:
    """Normalized investor weights, or the default weights when the investor has none."""
    if criteria_weights is None:
        return dict(DEFAULT_WEIGHTS)
    return normalize_weights(criteria_weights)


# ---------------------------------------------------------------------------
# Match score
# ---------------------------------------------------------------------------


def compute_match_score(company_scores: Mapping[str, float], criteria_weights: Mapping[str, float] | None) -> int:
    """Weighted average of the company scores over the dimensions both sides share."""
    total = weight_sum = 0.0
    for dim, weight in resolve_weights(criteria_weights).items():
        if dim not in company_scores:
            continue
        total += company_scores[dim] * weight
        weight_sum += weight
    if weight_sum <= 0:
        return 0
    return round_half_up(total / weight_sum)


# ---------------------------------------------------------------------------
# Reasoning
# ---------------------------------------------------------------------------


@dataclass
class MatchReasoning:
    strengths: list[str] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)
    opportunities: list[str] = field(default_factory=list)
    focus_areas: list[str] = field(default_factory=list)
    investment_range: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strengths": list(self.strengths),
            "concerns": list(self.concerns),
            "opportunities": list(self.opportunities),
            "focus_areas": list(self.focus_areas),
            "investment_range": dict(self.investment_range),
        }


def format_investment_range(low: float | None, high: float | None) -> str:
    if low and high:
        return f"{format_amount(low)} - {format_amount(high)}"
    if low:
        return f"{format_amount(low)}+"
    if high:
        return f"Up to {format_amount(high)}"
    return "Not specified"


def _priority(weight: float) -> str:
    return f"{round_half_up(weight * 10)}/10"


def generate_match_reasoning(
    company_scores: Mapping[str, float],
    criteria_weights: Mapping[str, float] | None,
    investor: Any = None,
) -> MatchReasoning:
    """Sort every company dimension into strengths, concerns, or opportunities.

    A dimension is *important* to the investor when its normalized weight is
    at least 0.2.  Moderate scores (50-69) in unimportant dimensions produce
    no entry.
    """
    weights = resolve_weights(criteria_weights)
    reasoning = MatchReasoning()
    for dim, score in company_scores.items():
        weight = weights.get(dim, 0.0)
        important = weight >= IMPORTANT_WEIGHT
        if score >= STRONG_SCORE:
            if important:
                reasoning.strengths.append(
                    f"Strong {dim} performance ({score}/100) aligns with investor priority ({_priority(weight)})"
                )
            else:
                reasoning.strengths.append(f"Strong {dim} performance ({score}/100)")
        elif score >= MODERATE_SCORE:
            if important:
                reasoning.opportunities.append(
                    f"Moderate {dim} performance ({score}/100) could be improved given investor priority ({_priority(weight)})"
                )
        elif important:
            reasoning.concerns.append(
                f"Weak {dim} performance ({score}/100) in investor priority area ({_priority(weight)})"
            )
        else:
            reasoning.opportunities.append(f"{dim.capitalize()} improvement opportunity ({score}/100)")

    if investor is not None:
        low = getattr(investor, "investment_range_min", None)
        high = getattr(investor, "investment_range_max", None)
        reasoning.focus_areas = list(getattr(investor, "focus_areas", None) or [])
        reasoning.investment_range = {
            "min": low, "max": high, "formatted": format_investment_range(low, high),
        }
    return reasoning


# ---------------------------------------------------------------------------
# Investor match (score + reasoning) and ranking
# ---------------------------------------------------------------------------


@dataclass
class InvestorMatchResult:
    investor: Any
    score: int
    reasoning: MatchReasoning
    rank_position: int = 0


def compute_investor_match(company_scores: Mapping[str, float], investor: Any) -> InvestorMatchResult:
    """Score one investor; ``investor`` only needs a ``criteria_weights`` attribute."""
    weights = getattr(investor, "criteria_weights", None)
    return InvestorMatchResult(
        investor=investor,
        score=compute_match_score(company_scores, weights),
        reasoning=generate_match_reasoning(company_scores, weights, investor),
    )


def rank_matches(results: Iterable[InvestorMatchResult]) -> list[InvestorMatchResult]:
    """Stable descending sort by score; assigns 1-based ``rank_position``."""
    ranked = sorted(results, key=lambda r: r.score, reverse=True)
    for idx, result in enumerate(ranked, start=1):
        result.rank_position = idx
    return ranked


def match_investors(company_scores: Mapping[str, float], investors: Iterable[Any]) -> list[InvestorMatchResult]:
    """Score and rank a batch of investors against one company."""
    return rank_matches(compute_investor_match(company_scores, inv) for inv in investors)


# ---------------------------------------------------------------------------
# Evaluation-based matching (founder rates the investor, 1-10 per category)
# ---------------------------------------------------------------------------


@dataclass
class CategoryEvaluation:
    dimension: str
    score: float  # 1-10
    notes: str = ""


def score_investor_evaluations(evaluations: Sequence[CategoryEvaluation]) -> int:
    """Average 1-10 rating mapped to 0-100."""
    if not evaluations:
        return 0
    average = sum(e.score for e in evaluations) / len(evaluations)
    return round_half_up(average / 10 * 100)


def generate_evaluation_reasoning(evaluations: Sequence[CategoryEvaluation]) -> MatchReasoning:
    reasoning = MatchReasoning()
    for ev in evaluations:
        name = ev.dimension.replace("_", " ").lower()
        rating = f"({ev.score:g}/10)"
        suffix = f": {ev.notes}" if ev.notes else ""
        if ev.score >= 8:
            reasoning.strengths.append(f"Excellent {name} rating {rating}{suffix}")
        elif ev.score >= 6:
            if ev.notes:
                reasoning.opportunities.append(f"Good {name} rating {rating}{suffix}")
            else:
                reasoning.strengths.append(f"Good {name} rating {rating}")
        elif ev.score >= 4:
            reasoning.opportunities.append(f"Moderate {name} rating {rating}{suffix}")
        else:
            reasoning.concerns.append(f"Low {name} rating {rating}{suffix}")
    return reasoning
