"""Shared business logic for the Readiness API: assessment lifecycle and match persistence.

The scoring modules are pure; everything here reads inputs from the record
store, calls them, and writes the derived results back.  Functions flush but
never commit -- the caller owns the transaction.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from readiness.comparison import MAX_COMPARE, ComparisonMatrix, build_comparison_matrix
from readiness.matcher import (
    CategoryEvaluation,
    InvestorMatchResult,
    generate_evaluation_reasoning,
    match_investors,
    score_investor_evaluations,
)
from readiness.models import Answer, Assessment, Investor, InvestorMatch, Question
from readiness.prescreen import PrescreenResult, has_complete_profile, prescreen_investors
from readiness.scorer import (
    aggregate_dimension_scores,
    build_recommendations,
    compute_overall_score,
    dimension_percentages,
    dimension_points,
    is_transaction_ready,
    readiness_tier,
    score_answer,
)
from readiness.utils import json_parse, round_half_up

log = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "industry", "annual_revenue", "funding_amount_sought", "investment_type",
    "company_stage", "geographic_location", "growth_rate", "business_model", "ebitda",
)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ServiceError(Exception):
    """Base class for errors the HTTP layer maps to a client error."""


class NotFoundError(ServiceError):
    pass


class AssessmentLockedError(ServiceError):
    """Answer submitted to a completed assessment outside the edit flow."""


class AssessmentIncompleteError(ServiceError):
    pass


class IncompleteProfileError(ServiceError):
    pass


class ComparisonLimitError(ServiceError):
    pass


class QuestionInUseError(ServiceError):
    """Core or already-answered questions cannot be deleted; deactivate them instead."""


# ---------------------------------------------------------------------------
# Lookup and serialization helpers
# ---------------------------------------------------------------------------


def get_entity(session: Session, model, entity_id: int):
    """Fetch a single ORM entity by ID, or None."""
    return session.execute(select(model).where(model.id == entity_id)).scalars().first()


def apply_updates(obj, updates: dict[str, Any], fields: tuple[str, ...]) -> None:
    """Apply non-None values from updates dict to an ORM object."""
    for field in fields:
        val = updates.get(field)
        if val is not None:
            setattr(obj, field, val)


def profile_dict(assessment: Assessment) -> dict[str, Any]:
    return {f: getattr(assessment, f) for f in PROFILE_FIELDS}


def assessment_summary(assessment: Assessment) -> dict[str, Any]:
    return {
        "id": assessment.id, "title": assessment.title,
        "company_name": assessment.company_name, "status": assessment.status,
        "progress_percentage": assessment.progress_percentage,
        "readiness_points": assessment.readiness_points,
        "readiness_percent": assessment.readiness_percent,
        "readiness_tier": assessment.readiness_tier,
        "transaction_ready": transaction_ready(assessment),
        "dimension_scores": json_parse(assessment.dimension_scores_json, {}),
        "dimension_points": json_parse(assessment.dimension_points_json, {}),
        "recommendations": json_parse(assessment.recommendations_json, []),
        "profile": profile_dict(assessment),
    }


def investor_summary(inv: Investor) -> dict[str, Any]:
    return {
        "id": inv.id, "name": inv.name, "investor_type": inv.investor_type,
        "focus_areas": inv.focus_areas, "geographic_focus": inv.geographic_focus,
        "investment_range_min": inv.investment_range_min,
        "investment_range_max": inv.investment_range_max,
        "description": inv.description, "website": inv.website,
    }


def match_summary(match: InvestorMatch) -> dict[str, Any]:
    reasoning = json_parse(match.match_reasoning_json, {})
    return {
        "investor": investor_summary(match.investor),
        "match_score": match.match_score,
        "match_reasoning": reasoning,
        "rank_position": match.rank_position,
    }


# ---------------------------------------------------------------------------
# Assessment lifecycle
# ---------------------------------------------------------------------------


@dataclass
class AssessmentState:
    """Assessment after an answer, plus the cursor to the next unanswered question."""
    assessment: Assessment
    next_question_id: int | None
    score_impact: float


def active_questions(session: Session) -> list[Question]:
    return list(session.execute(
        select(Question).where(Question.is_active.is_(True)).order_by(Question.order_index, Question.id)
    ).scalars().all())


def _answered_ids(assessment: Assessment) -> set[int]:
    return {a.question_id for a in assessment.answers}


def next_question(session: Session, assessment: Assessment) -> Question | None:
    answered = _answered_ids(assessment)
    return next((q for q in active_questions(session) if q.id not in answered), None)


def core_questions_answered(session: Session, assessment: Assessment) -> bool:
    answered = _answered_ids(assessment)
    return all(q.id in answered for q in active_questions(session) if q.is_core)


def record_answer(
    session: Session,
    assessment: Assessment,
    question: Question,
    value: str,
    *,
    edit: bool = False,
) -> AssessmentState:
    """Store (or replace) an answer and advance the assessment lifecycle.

    ``draft`` moves to ``in_progress`` on the first answer and to
    ``completed`` once every active core question is answered.  A completed
    assessment only accepts answers through the edit flow (``edit=True``),
    which recomputes its frozen scores.
    """
    if assessment.status == "completed" and not edit:
        raise AssessmentLockedError("Assessment is completed; use the edit flow to change answers")

    impact = score_answer(value, question.question_type, question.options)
    now = datetime.now(UTC)
    existing = next((a for a in assessment.answers if a.question_id == question.id), None)
    if existing is not None:
        existing.answer_value = value
        existing.score_impact = impact
        existing.updated_at = now
    else:
        answer = Answer(question_id=question.id, answer_value=value, score_impact=impact)
        answer.question = question
        assessment.answers.append(answer)

    if assessment.status == "draft":
        assessment.status = "in_progress"
        assessment.started_at = now
        log.info("Assessment %s started", assessment.id)

    questions = active_questions(session)
    answered = _answered_ids(assessment)
    if questions and assessment.status != "completed":
        assessment.progress_percentage = round_half_up(
            100 * sum(1 for q in questions if q.id in answered) / len(questions)
        )
    session.flush()

    if assessment.status == "completed":
        freeze_scores(assessment)
    elif core_questions_answered(session, assessment):
        complete_assessment(session, assessment)

    nxt = next_question(session, assessment) if assessment.status != "completed" else None
    return AssessmentState(assessment, nxt.id if nxt else None, impact)


def freeze_scores(assessment: Assessment) -> None:
    """Recompute and store dimension scores, overall scores, tier, and recommendations."""
    agg = aggregate_dimension_scores((a.question, a) for a in assessment.answers)
    percentages = dimension_percentages(agg)
    points = compute_overall_score(agg, "points150")
    assessment.dimension_scores_json = json.dumps(percentages)
    assessment.dimension_points_json = json.dumps(dimension_points(agg))
    assessment.readiness_points = points
    assessment.readiness_percent = compute_overall_score(agg, "percentage")
    assessment.readiness_tier = readiness_tier(points)
    assessment.recommendations_json = json.dumps([asdict(r) for r in build_recommendations(percentages)])


def complete_assessment(session: Session, assessment: Assessment) -> Assessment:
    if not core_questions_answered(session, assessment):
        raise AssessmentIncompleteError("Every active core question must be answered first")
    freeze_scores(assessment)
    assessment.status = "completed"
    assessment.completed_at = datetime.now(UTC)
    assessment.progress_percentage = 100
    session.flush()
    log.info("Assessment %s completed: %s points (%s)",
             assessment.id, assessment.readiness_points, assessment.readiness_tier)
    return assessment


def rescore_answers(assessment: Assessment) -> int:
    """Recompute every cached ``score_impact``; returns how many changed."""
    changed = 0
    for answer in assessment.answers:
        q = answer.question
        impact = score_answer(answer.answer_value, q.question_type, q.options)
        if impact != answer.score_impact:
            answer.score_impact = impact
            changed += 1
    if changed and assessment.status == "completed":
        freeze_scores(assessment)
    return changed


def transaction_ready(assessment: Assessment, deliverables_complete: tuple[bool, ...] = ()) -> bool:
    """Compound certification for a completed assessment; False while still in progress."""
    if assessment.status != "completed":
        return False
    agg = aggregate_dimension_scores((a.question, a) for a in assessment.answers)
    return is_transaction_ready(agg, deliverables_complete)


def update_profile(session: Session, assessment: Assessment, updates: dict[str, Any]) -> Assessment:
    """Apply company profile fields (and title / company name) to an assessment."""
    apply_updates(assessment, updates, PROFILE_FIELDS + ("title", "company_name"))
    session.flush()
    return assessment


def company_scores(assessment: Assessment) -> dict[str, int]:
    """Dimension percentages: frozen values once completed, live otherwise."""
    if assessment.status == "completed":
        return json_parse(assessment.dimension_scores_json, {})
    agg = aggregate_dimension_scores((a.question, a) for a in assessment.answers)
    return dimension_percentages(agg)


# ---------------------------------------------------------------------------
# Question administration
# ---------------------------------------------------------------------------

QUESTION_FIELDS = (
    "text", "question_type", "dimension", "module", "order_index", "help_text",
    "is_required", "is_active", "is_core",
)
# changes to these invalidate cached score_impact values and frozen scores
_SCORING_FIELDS = ("question_type", "options", "dimension")


def question_usage_counts(session: Session) -> dict[int, int]:
    rows = session.execute(
        select(Answer.question_id, func.count(Answer.id)).group_by(Answer.question_id)
    ).all()
    return {qid: count for qid, count in rows}


def question_summary(q: Question, usage_count: int = 0) -> dict[str, Any]:
    return {
        "id": q.id, "text": q.text, "question_type": q.question_type,
        "dimension": q.dimension, "module": q.module, "order_index": q.order_index,
        "help_text": q.help_text, "options": q.options, "is_required": q.is_required,
        "is_active": q.is_active, "is_core": q.is_core, "usage_count": usage_count,
    }


def list_questions(session: Session, include_inactive: bool = True) -> list[Question]:
    query = select(Question).order_by(Question.order_index, Question.id)
    if not include_inactive:
        query = query.where(Question.is_active.is_(True))
    return list(session.execute(query).scalars().all())


def create_question(session: Session, data: dict[str, Any]) -> Question:
    """Insert a question; without an ``order_index`` it goes to the end of the bank."""
    q = Question(options_json=json.dumps(data.get("options") or []))
    apply_updates(q, data, QUESTION_FIELDS)
    if data.get("order_index") is None:
        last = session.execute(select(func.max(Question.order_index))).scalar() or 0
        q.order_index = last + 1
    session.add(q)
    session.flush()
    log.info("Created question %s in %s", q.id, q.dimension)
    return q


def update_question(session: Session, question: Question, updates: dict[str, Any]) -> int:
    """Apply question edits; returns how many assessments were rescored.

    Editing the type, options or dimension rescores every assessment that
    answered the question and refreezes completed ones.
    """
    scoring_changed = any(updates.get(f) is not None for f in _SCORING_FIELDS)
    apply_updates(question, updates, QUESTION_FIELDS)
    if updates.get("options") is not None:
        question.options_json = json.dumps(updates["options"])
    session.flush()
    if not scoring_changed:
        return 0

    affected = session.execute(
        select(Assessment).join(Answer).where(Answer.question_id == question.id).distinct()
    ).scalars().all()
    for assessment in affected:
        rescore_answers(assessment)
        if assessment.status == "completed":
            freeze_scores(assessment)
    session.flush()
    log.info("Question %s edited; rescored %d assessments", question.id, len(affected))
    return len(affected)


def delete_question(session: Session, question: Question) -> None:
    if question.is_core:
        raise QuestionInUseError("Core questions cannot be deleted; deactivate them instead")
    used = question_usage_counts(session).get(question.id, 0)
    if used:
        raise QuestionInUseError(
            f"Question has been answered in {used} assessment(s); deactivate it instead"
        )
    session.delete(question)
    session.flush()


# ---------------------------------------------------------------------------
# Investor matches
# ---------------------------------------------------------------------------


def active_investors(session: Session) -> list[Investor]:
    return list(session.execute(
        select(Investor).where(Investor.is_active.is_(True)).order_by(Investor.id)
    ).scalars().all())


def replace_matches(session: Session, assessment_id: int, matches: list[InvestorMatch]) -> None:
    """Delete every stored match for the assessment and insert *matches* in its place."""
    session.execute(delete(InvestorMatch).where(InvestorMatch.assessment_id == assessment_id))
    for m in matches:
        session.add(m)
    session.flush()


def generate_matches(session: Session, assessment: Assessment) -> list[InvestorMatchResult]:
    """Score all active investors, rank them, and persist the ranking."""
    scores = company_scores(assessment)
    ranked = match_investors(scores, active_investors(session))
    replace_matches(session, assessment.id, [
        InvestorMatch(
            assessment_id=assessment.id, investor_id=r.investor.id,
            match_score=r.score, match_reasoning_json=json.dumps(r.reasoning.to_dict()),
            rank_position=r.rank_position,
        )
        for r in ranked
    ])
    log.info("Regenerated %d investor matches for assessment %s", len(ranked), assessment.id)
    return ranked


def list_matches(session: Session, assessment: Assessment) -> list[InvestorMatch]:
    return list(session.execute(
        select(InvestorMatch)
        .where(InvestorMatch.assessment_id == assessment.id)
        .order_by(InvestorMatch.rank_position, InvestorMatch.id)
    ).scalars().all())


def save_evaluations(
    session: Session,
    assessment: Assessment,
    evaluations: dict[int, list[CategoryEvaluation]],
    selected_categories: list[str] | None = None,
) -> list[dict[str, Any]]:
    """Replace the assessment's matches with founder evaluations of investors.

    Each investor's score is its average 1-10 category rating on 0-100.
    """
    for investor_id in evaluations:
        if get_entity(session, Investor, investor_id) is None:
            raise NotFoundError(f"Investor {investor_id} not found")

    scored = [
        (investor_id, score_investor_evaluations(evs), generate_evaluation_reasoning(evs), evs)
        for investor_id, evs in evaluations.items()
    ]
    ordered = sorted(scored, key=lambda item: item[1], reverse=True)
    rows = []
    for rank, (investor_id, score, reasoning, evs) in enumerate(ordered, start=1):
        payload = {
            "evaluation_based": True,
            "selected_categories": list(selected_categories or []),
            "evaluations": [asdict(e) for e in evs],
            **reasoning.to_dict(),
        }
        rows.append(InvestorMatch(
            assessment_id=assessment.id, investor_id=investor_id, match_score=score,
            match_reasoning_json=json.dumps(payload), rank_position=rank,
        ))
    replace_matches(session, assessment.id, rows)
    log.info("Saved evaluations for %d investors on assessment %s", len(rows), assessment.id)
    return [
        {"investor_id": investor_id, "overall_score": score, "evaluation_count": len(evs)}
        for investor_id, score, _, evs in scored
    ]


# ---------------------------------------------------------------------------
# Prescreening and comparison
# ---------------------------------------------------------------------------


def prescreen(session: Session, assessment: Assessment, profile: dict[str, Any] | None = None) -> tuple[list[PrescreenResult], int]:
    """Prescreen active investors; returns ``(top results, investors screened)``.

    A supplied *profile* is saved onto the assessment first.
    """
    if profile:
        apply_updates(assessment, profile, PROFILE_FIELDS)
    merged = profile_dict(assessment)
    if not has_complete_profile(merged):
        raise IncompleteProfileError(
            "Company profile data is required for investor prescreening; complete the profile first"
        )
    investors = active_investors(session)
    return prescreen_investors(merged, investors), len(investors)


def compare_investors(session: Session, assessment: Assessment, investor_ids: list[int]) -> ComparisonMatrix:
    if not investor_ids:
        raise ComparisonLimitError("No investors selected for comparison")
    if len(investor_ids) > MAX_COMPARE:
        raise ComparisonLimitError(f"Maximum {MAX_COMPARE} investors can be compared at once")
    investors = session.execute(select(Investor).where(Investor.id.in_(investor_ids))).scalars().all()
    by_id = {inv.id: inv for inv in investors}
    missing = [i for i in investor_ids if i not in by_id]
    if missing:
        raise NotFoundError(f"Investors not found: {missing}")
    scores = company_scores(assessment)
    shortlist = match_investors(scores, [by_id[i] for i in investor_ids])
    # Columns follow the caller's selection order, not the ranking.
    shortlist.sort(key=lambda r: investor_ids.index(r.investor.id))
    return build_comparison_matrix(shortlist, scores)
