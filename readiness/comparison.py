"""Side-by-side investor comparison: fit matrix plus radar chart series."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from readiness.matcher import DEFAULT_WEIGHTS, InvestorMatchResult, resolve_weights
from readiness.models import DIMENSIONS
from readiness.utils import round_half_up

MAX_COMPARE = 5

DIMENSION_LABELS: dict[str, str] = {
    "financial": "Financial",
    "operational": "Operational",
    "market": "Market",
    "technology": "Technology",
    "legal": "Legal",
    "strategic": "Strategic",
}

COMPANY_COLOR = {"background": "rgba(59, 130, 246, 0.2)", "border": "rgb(59, 130, 246)"}
SERIES_COLORS = [
    {"background": "rgba(16, 185, 129, 0.2)", "border": "rgb(16, 185, 129)"},
    {"background": "rgba(245, 101, 101, 0.2)", "border": "rgb(245, 101, 101)"},
    {"background": "rgba(251, 191, 36, 0.2)", "border": "rgb(251, 191, 36)"},
    {"background": "rgba(139, 92, 246, 0.2)", "border": "rgb(139, 92, 246)"},
    {"background": "rgba(236, 72, 153, 0.2)", "border": "rgb(236, 72, 153)"},
]


def alignment_level(company_score: float, weight: float) -> str:
    if weight < 0.1:
        return "low-priority"
    if company_score >= 70 and weight > 0.2:
        return "strong-alignment"
    if company_score >= 50 and weight > 0.15:
        return "good-alignment"
    if company_score < 40 and weight > 0.2:
        return "misalignment"
    return "moderate-alignment"


@dataclass
class ComparisonCell:
    investor_id: Any
    weight: float
    weight_percent: int
    company_score: float
    weighted_score: float
    alignment: str


@dataclass
class ComparisonRow:
    dimension: str
    label: str
    company_score: float
    cells: list[ComparisonCell] = field(default_factory=list)


@dataclass
class ChartSeries:
    label: str
    data: list[float]
    background_color: str
    border_color: str


@dataclass
class ComparisonMatrix:
    dimensions: list[str]
    rows: list[ComparisonRow]
    chart_labels: list[str]
    chart_series: list[ChartSeries]
    investors: list[dict[str, Any]]


def _comparison_weights(investor: Any) -> dict[str, float]:
    """Normalized investor weights with per-dimension fallback to the defaults."""
    own = resolve_weights(getattr(investor, "criteria_weights", None))
    return {dim: own.get(dim, DEFAULT_WEIGHTS[dim]) for dim in DIMENSIONS}


def build_comparison_matrix(
    shortlist: Sequence[InvestorMatchResult],
    company_scores: Mapping[str, float],
) -> ComparisonMatrix:
    """Build the dimension x investor fit matrix and chart-ready series.

    Rows follow the fixed dimension order; every series in ``chart_series``
    is aligned to ``chart_labels``.  Investor series show priorities on a
    0-100 scale (weight x 100).
    """
    weights_by_investor = [_comparison_weights(m.investor) for m in shortlist]

    rows: list[ComparisonRow] = []
    for dim in DIMENSIONS:
        score = company_scores.get(dim, 0)
        row = ComparisonRow(dimension=dim, label=DIMENSION_LABELS[dim], company_score=score)
        for match, weights in zip(shortlist, weights_by_investor):
            weight = weights[dim]
            row.cells.append(ComparisonCell(
                investor_id=getattr(match.investor, "id", None),
                weight=weight,
                weight_percent=round_half_up(weight * 100),
                company_score=score,
                weighted_score=score * weight,
                alignment=alignment_level(score, weight),
            ))
        rows.append(row)

    series = [ChartSeries(
        label="Company Performance",
        data=[company_scores.get(dim, 0) for dim in DIMENSIONS],
        background_color=COMPANY_COLOR["background"],
        border_color=COMPANY_COLOR["border"],
    )]
    for idx, (match, weights) in enumerate(zip(shortlist, weights_by_investor)):
        color = SERIES_COLORS[idx % len(SERIES_COLORS)]
        series.append(ChartSeries(
            label=f"{getattr(match.investor, 'name', 'Investor')} Priority",
            data=[round(weights[dim] * 100, 2) for dim in DIMENSIONS],
            background_color=color["background"],
            border_color=color["border"],
        ))

    investors = [
        {
            "investor_id": getattr(m.investor, "id", None),
            "name": getattr(m.investor, "name", ""),
            "match_score": m.score,
            "reasoning": m.reasoning.to_dict(),
        }
        for m in shortlist
    ]

    return ComparisonMatrix(
        dimensions=list(DIMENSIONS),
        rows=rows,
        chart_labels=[DIMENSION_LABELS[d] for d in DIMENSIONS],
        chart_series=series,
        investors=investors,
    )
