"""Tests for investor match scoring, reasoning, ranking, and evaluations."""
from __future__ import annotations

from types import SimpleNamespace

from readiness.matcher import (
    DEFAULT_WEIGHTS,
    CategoryEvaluation,
    compute_investor_match,
    compute_match_score,
    format_investment_range,
    generate_evaluation_reasoning,
    generate_match_reasoning,
    match_investors,
    normalize_weights,
    score_investor_evaluations,
)

COMPANY = {"financial": 80, "operational": 40, "market": 90, "technology": 60, "legal": 30, "strategic": 70}
WEIGHTS_10 = {"financial": 8, "operational": 3, "market": 9, "technology": 5, "legal": 2, "strategic": 6}


def _investor(id, name="Fund", weights=None, **kw):
    return SimpleNamespace(
        id=id, name=name, criteria_weights=weights,
        investment_range_min=kw.get("low"), investment_range_max=kw.get("high"),
        focus_areas=kw.get("focus", []),
    )


class TestWeights:
    def test_ten_scale_detected(self):
        assert normalize_weights(WEIGHTS_10)["financial"] == 0.8

    def test_decimal_weights_unchanged(self):
        assert normalize_weights(DEFAULT_WEIGHTS) == DEFAULT_WEIGHTS

    def test_null_weight_dropped(self):
        assert normalize_weights({"financial": None, "market": 5, "legal": "high"}) == {"market": 0.5}

    def test_null_weight_excluded_from_match(self):
        investor = _investor(1, weights={"financial": None, "market": 5})
        result = compute_investor_match({"financial": 80, "market": 60}, investor)
        assert result.score == 60


class TestMatchScore:
    def test_end_to_end_example(self):
        # 235 / 3.3 = 71.2
        assert compute_match_score(COMPANY, WEIGHTS_10) == 71

    def test_decimal_and_ten_scale_agree(self):
        decimals = {k: v / 10 for k, v in WEIGHTS_10.items()}
        assert compute_match_score(COMPANY, decimals) == compute_match_score(COMPANY, WEIGHTS_10)

    def test_none_weights_use_defaults(self):
        assert compute_match_score(COMPANY, None) == compute_match_score(COMPANY, DEFAULT_WEIGHTS)

    def test_disjoint_dimensions_score_zero(self):
        assert compute_match_score({"financial": 90}, {"legal": 0.5}) == 0

    def test_empty_weights_score_zero(self):
        assert compute_match_score(COMPANY, {}) == 0

    def test_all_zero_weights_score_zero(self):
        assert compute_match_score(COMPANY, {d: 0 for d in COMPANY}) == 0

    def test_monotonic_in_company_score(self):
        base = compute_match_score(COMPANY, WEIGHTS_10)
        better = dict(COMPANY, legal=80)
        assert compute_match_score(better, WEIGHTS_10) >= base

    def test_bounded(self):
        assert compute_match_score({d: 100 for d in COMPANY}, WEIGHTS_10) == 100
        assert compute_match_score({d: 0 for d in COMPANY}, WEIGHTS_10) == 0


class TestReasoning:
    def test_strong_important_dimension(self):
        r = generate_match_reasoning({"financial": 75}, {"financial": 8})
        assert r.concerns == []
        assert r.opportunities == []
        assert len(r.strengths) == 1
        assert "75/100" in r.strengths[0]
        assert "8/10" in r.strengths[0]

    def test_strong_unimportant_dimension(self):
        r = generate_match_reasoning({"legal": 90}, {"legal": 0.1})
        assert r.strengths == ["Strong legal performance (90/100)"]

    def test_moderate_important_is_opportunity(self):
        r = generate_match_reasoning({"market": 60}, {"market": 0.3})
        assert len(r.opportunities) == 1
        assert r.strengths == r.concerns == []

    def test_moderate_unimportant_skipped(self):
        r = generate_match_reasoning({"market": 60}, {"market": 0.1})
        assert r.strengths == r.concerns == r.opportunities == []

    def test_weak_important_is_concern(self):
        r = generate_match_reasoning({"legal": 30}, {"legal": 0.2})
        assert r.concerns == ["Weak legal performance (30/100) in investor priority area (2/10)"]

    def test_weak_unimportant_is_opportunity(self):
        r = generate_match_reasoning({"legal": 30}, {"legal": 0.1})
        assert r.opportunities == ["Legal improvement opportunity (30/100)"]

    def test_investor_context(self):
        inv = _investor(1, low=1_000_000, high=5_000_000, focus=["saas"])
        r = generate_match_reasoning(COMPANY, None, inv)
        assert r.focus_areas == ["saas"]
        assert r.investment_range["formatted"] == "$1.0M - $5.0M"

    def test_range_formatting(self):
        assert format_investment_range(None, None) == "Not specified"
        assert format_investment_range(500_000, None) == "$500K+"
        assert format_investment_range(None, 2_000_000) == "Up to $2.0M"


class TestRanking:
    def test_ranked_descending_with_positions(self):
        investors = [
            _investor(1, weights={"legal": 1}),
            _investor(2, weights={"market": 1}),
            _investor(3, weights={"financial": 1}),
        ]
        ranked = match_investors(COMPANY, investors)
        assert [r.investor.id for r in ranked] == [2, 3, 1]
        assert [r.rank_position for r in ranked] == [1, 2, 3]

    def test_ties_keep_input_order(self):
        investors = [_investor(i) for i in (5, 3, 9)]
        ranked = match_investors(COMPANY, investors)
        assert [r.investor.id for r in ranked] == [5, 3, 9]

    def test_single_match(self):
        result = compute_investor_match(COMPANY, _investor(1, weights=WEIGHTS_10))
        assert result.score == 71


class TestEvaluations:
    def test_average_mapped_to_hundred(self):
        evs = [CategoryEvaluation("financial", 8), CategoryEvaluation("market", 6)]
        assert score_investor_evaluations(evs) == 70

    def test_empty_is_zero(self):
        assert score_investor_evaluations([]) == 0

    def test_reasoning_bands(self):
        r = generate_evaluation_reasoning([
            CategoryEvaluation("value_add", 9),
            CategoryEvaluation("network", 7, "Strong in EU"),
            CategoryEvaluation("terms", 5),
            CategoryEvaluation("speed", 2, "Slow process"),
        ])
        assert r.strengths == ["Excellent value add rating (9/10)"]
        assert r.opportunities == ["Good network rating (7/10): Strong in EU", "Moderate terms rating (5/10)"]
        assert r.concerns == ["Low speed rating (2/10): Slow process"]
