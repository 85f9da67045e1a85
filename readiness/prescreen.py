"""Profile-based investor prescreening.

Additive points per criterion over a fixed denominator.  Every criterion's
maximum is always counted, so a company profile with missing fields scores
lower rather than having the criterion dropped.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from readiness.utils import format_amount, round_half_up

log = logging.getLogger(__name__)

PRESCREEN_LIMIT = 10

# criterion -> max points
CRITERIA_MAX: dict[str, int] = {
    "industry": 30,
    "funding": 25,
    "stage": 20,
    "investment_type": 15,
    "business_model": 15,
    "revenue": 10,
    "growth": 10,
    "geography": 5,
}
INVESTMENT_TYPE_DEFAULT = 10

_PROFILE_FIELDS = (
    "industry", "annual_revenue", "funding_amount_sought", "investment_type",
    "company_stage", "geographic_location", "business_model",
)


@dataclass
class PrescreenResult:
    investor: Any
    match_score: int
    match_reasons: list[str] = field(default_factory=list)


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def has_complete_profile(profile: Any) -> bool:
    """True when every field prescreening relies on is filled in."""
    if profile is None:
        return False
    for name in _PROFILE_FIELDS:
        value = _get(profile, name)
        if value is None or value == "":
            return False
    return True


def funding_points(amount: float | None, low: float | None, high: float | None) -> int:
    """25 inside [min, max], 15 within 0.8x/1.2x, 8 within 0.5x/1.5x, bounds inclusive."""
    if not amount or not low or not high:
        return 0
    if low <= amount <= high:
        return 25
    if low * 0.8 <= amount <= high * 1.2:
        return 15
    if low * 0.5 <= amount <= high * 1.5:
        return 8
    return 0


def _revenue_points(revenue: float | None) -> int:
    if not revenue:
        return 0
    if revenue > 1_000_000:
        return 10
    if revenue > 100_000:
        return 6
    return 0


def _growth_points(growth: float | None) -> int:
    if not growth:
        return 0
    if growth >= 50:
        return 10
    if growth >= 20:
        return 6
    if growth >= 10:
        return 3
    return 0


def _geography_matches(location: str | None, focus: list[str]) -> bool:
    if not location or not focus:
        return False
    if "global" in focus:
        return True
    loc = location.lower()
    return any(geo and geo.lower() in loc for geo in focus)


def prescreening_score(profile: Any, investor: Any) -> int:
    """0-100 prescreening score of one investor for a company profile."""
    focus = list(_get(investor, "focus_areas") or [])
    geo_focus = list(_get(investor, "geographic_focus") or [])

    score = 0
    max_score = sum(CRITERIA_MAX.values())

    industry = _get(profile, "industry")
    if industry and industry in focus:
        score += CRITERIA_MAX["industry"]

    score += funding_points(
        _get(profile, "funding_amount_sought"),
        _get(investor, "investment_range_min"),
        _get(investor, "investment_range_max"),
    )

    stage = _get(profile, "company_stage")
    if stage and stage in focus:
        score += CRITERIA_MAX["stage"]

    # Investors are assumed flexible on instrument type.
    if _get(profile, "investment_type"):
        score += INVESTMENT_TYPE_DEFAULT

    model = _get(profile, "business_model")
    if model and model in focus:
        score += CRITERIA_MAX["business_model"]

    score += _revenue_points(_get(profile, "annual_revenue"))
    score += _growth_points(_get(profile, "growth_rate"))

    if _geography_matches(_get(profile, "geographic_location"), geo_focus):
        score += CRITERIA_MAX["geography"]

    return round_half_up(100 * score / max_score)


def prescreening_reasons(profile: Any, investor: Any) -> list[str]:
    focus = list(_get(investor, "focus_areas") or [])
    reasons: list[str] = []

    industry = _get(profile, "industry")
    if industry and industry in focus:
        reasons.append(f"Strong industry focus match: {industry}")

    amount = _get(profile, "funding_amount_sought")
    low = _get(investor, "investment_range_min")
    high = _get(investor, "investment_range_max")
    if funding_points(amount, low, high) == CRITERIA_MAX["funding"]:
        reasons.append(
            f"Investment size match: {format_amount(amount)} within range "
            f"{format_amount(low)}-{format_amount(high)}"
        )

    stage = _get(profile, "company_stage")
    if stage and stage in focus:
        reasons.append(f"Company stage alignment: {stage.replace('_', ' ')}")

    if _get(profile, "investment_type"):
        reasons.append(f"Investment type preference: {_get(profile, 'investment_type')}")

    model = _get(profile, "business_model")
    if model and model in focus:
        reasons.append(f"Business model focus: {model.replace('_', ' ')}")

    revenue = _get(profile, "annual_revenue")
    if revenue and revenue > 1_000_000:
        reasons.append(f"Strong revenue profile: {format_amount(revenue)} annual revenue")

    growth = _get(profile, "growth_rate")
    if growth and growth >= 20:
        reasons.append(f"Strong growth trajectory: {growth:g}% growth rate")

    if _get(profile, "geographic_location") and "global" in (_get(investor, "geographic_focus") or []):
        reasons.append("Global investment focus covers your location")

    return reasons


def prescreen_investors(profile: Any, investors: Iterable[Any], limit: int = PRESCREEN_LIMIT) -> list[PrescreenResult]:
    """Top ``limit`` investors by prescreening score, excluding zero scores.

    Ties keep the input order.
    """
    results = [
        PrescreenResult(inv, prescreening_score(profile, inv), prescreening_reasons(profile, inv))
        for inv in investors
    ]
    results = [r for r in results if r.match_score > 0]
    results.sort(key=lambda r: r.match_score, reverse=True)
    log.debug("Prescreening kept %d investors with a positive score", len(results))
    return results[:limit]
