from __future__ import annotations

import logging
import tempfile
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Generator

from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from readiness import services
from readiness.db import get_session, init_db
from readiness.importer import import_investors_xlsx
from readiness.matcher import CategoryEvaluation, InvestorMatchResult
from readiness.models import Assessment, Question
from readiness.schemas import (
    AnswerIn,
    AssessmentOut,
    AssessmentStateOut,
    AssessmentUpdate,
    CompanyProfile,
    CompareRequest,
    ComparisonOut,
    EvaluateRequest,
    EvaluationResultOut,
    InvestorImportResult,
    MatchListOut,
    PrescreenOut,
    QuestionCreate,
    QuestionOut,
    QuestionUpdate,
)

log = logging.getLogger(__name__)

MATCHES_RETURNED = 10


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Readiness",
    version="0.1.0",
    description=(
        "Transaction readiness scoring and investor matching. "
        "Score assessment answers, compute readiness tiers, and rank investors. "
        "All endpoints return JSON. No authentication required."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Assessments", "description": "Answer questions and read readiness scores."},
        {"name": "Questions", "description": "Administer the question bank."},
        {"name": "Investors", "description": "Investor matching, prescreening, comparison, and evaluation."},
        {"name": "Import", "description": "Bulk import investors from XLSX spreadsheets."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _get_or_404(session: Session, model, entity_id: int, label: str = "Entity"):
    obj = services.get_entity(session, model, entity_id)
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


def _http_error(exc: services.ServiceError) -> HTTPException:
    if isinstance(exc, services.NotFoundError):
        return HTTPException(404, str(exc))
    if isinstance(exc, (services.AssessmentLockedError, services.QuestionInUseError)):
        return HTTPException(409, str(exc))
    return HTTPException(400, str(exc))


def _match_out(result: InvestorMatchResult) -> dict:
    return {
        "investor": services.investor_summary(result.investor),
        "match_score": result.score,
        "match_reasoning": result.reasoning.to_dict(),
        "rank_position": result.rank_position,
    }


# ---------------------------------------------------------------------------
# Routes: Assessments
# ---------------------------------------------------------------------------


class AssessmentCreate(BaseModel):
    company_name: str
    title: str = ""
    profile: CompanyProfile = CompanyProfile()


@app.post("/api/assessments", response_model=AssessmentOut, status_code=201,
          tags=["Assessments"], summary="Create a draft assessment")
async def create_assessment(body: AssessmentCreate, session: Session = Depends(db_session)):
    assessment = Assessment(company_name=body.company_name, title=body.title or body.company_name)
    services.apply_updates(assessment, body.profile.model_dump(), services.PROFILE_FIELDS)
    session.add(assessment)
    session.commit()
    return services.assessment_summary(assessment)


@app.get("/api/assessments/{assessment_id}", response_model=AssessmentOut,
         tags=["Assessments"], summary="Get an assessment with its frozen scores")
async def get_assessment(assessment_id: int, session: Session = Depends(db_session)):
    return services.assessment_summary(_get_or_404(session, Assessment, assessment_id, "Assessment"))


@app.patch("/api/assessments/{assessment_id}", response_model=AssessmentOut,
           tags=["Assessments"], summary="Update the company profile of an assessment")
async def update_assessment(assessment_id: int, body: AssessmentUpdate, session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    services.update_profile(session, assessment, body.model_dump())
    session.commit()
    return services.assessment_summary(assessment)


@app.post("/api/assessments/{assessment_id}/answers", response_model=AssessmentStateOut,
          tags=["Assessments"], summary="Submit or edit an answer; returns the next question cursor")
async def submit_answer(assessment_id: int, body: AnswerIn, session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    question = _get_or_404(session, Question, body.question_id, "Question")
    try:
        state = services.record_answer(session, assessment, question, body.value, edit=body.edit)
    except services.ServiceError as exc:
        raise _http_error(exc) from exc
    session.commit()
    return {
        "assessment": services.assessment_summary(state.assessment),
        "next_question_id": state.next_question_id,
        "score_impact": state.score_impact,
    }


@app.post("/api/assessments/{assessment_id}/complete", response_model=AssessmentOut,
          tags=["Assessments"], summary="Complete the assessment and freeze its scores")
async def complete(assessment_id: int, session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    try:
        services.complete_assessment(session, assessment)
    except services.ServiceError as exc:
        raise _http_error(exc) from exc
    session.commit()
    return services.assessment_summary(assessment)


# ---------------------------------------------------------------------------
# Routes: Questions
# ---------------------------------------------------------------------------


@app.get("/api/questions", response_model=list[QuestionOut],
         tags=["Questions"], summary="List questions with how often each was answered")
async def list_questions(include_inactive: bool = Query(True), session: Session = Depends(db_session)):
    usage = services.question_usage_counts(session)
    return [
        services.question_summary(q, usage.get(q.id, 0))
        for q in services.list_questions(session, include_inactive)
    ]


@app.post("/api/questions", response_model=QuestionOut, status_code=201,
          tags=["Questions"], summary="Add a question to the bank")
async def create_question(body: QuestionCreate, session: Session = Depends(db_session)):
    q = services.create_question(session, body.model_dump())
    session.commit()
    return services.question_summary(q)


@app.put("/api/questions/{question_id}", response_model=QuestionOut,
         tags=["Questions"], summary="Edit a question; scoring edits rescore affected assessments")
async def update_question(question_id: int, body: QuestionUpdate, session: Session = Depends(db_session)):
    q = _get_or_404(session, Question, question_id, "Question")
    services.update_question(session, q, body.model_dump())
    session.commit()
    return services.question_summary(q, services.question_usage_counts(session).get(q.id, 0))


@app.delete("/api/questions/{question_id}", tags=["Questions"],
            summary="Delete an unused, non-core question")
async def delete_question(question_id: int, session: Session = Depends(db_session)):
    q = _get_or_404(session, Question, question_id, "Question")
    try:
        services.delete_question(session, q)
    except services.ServiceError as exc:
        raise _http_error(exc) from exc
    session.commit()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Investors
# ---------------------------------------------------------------------------


@app.get("/api/assessments/{assessment_id}/investors", response_model=MatchListOut,
         tags=["Investors"], summary="Score and rank all active investors (replaces stored matches)")
async def generate_matches(assessment_id: int, session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    ranked = services.generate_matches(session, assessment)
    session.commit()
    return {
        "assessment_id": assessment_id,
        "total_matches": len(ranked),
        "matches": [_match_out(r) for r in ranked[:MATCHES_RETURNED]],
        "dimension_scores": services.company_scores(assessment),
    }


@app.get("/api/assessments/{assessment_id}/investors/matches", response_model=MatchListOut,
         tags=["Investors"], summary="List stored investor matches")
async def list_matches(assessment_id: int, session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    matches = services.list_matches(session, assessment)
    if not matches:
        raise HTTPException(404, "No investor matches found; generate or evaluate matches first")
    return {
        "assessment_id": assessment_id,
        "total_matches": len(matches),
        "matches": [services.match_summary(m) for m in matches],
    }


@app.post("/api/assessments/{assessment_id}/investors/prescreening", response_model=PrescreenOut,
          tags=["Investors"], summary="Prescreen investors against the company profile")
async def prescreening(assessment_id: int, body: CompanyProfile | None = None,
                       session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    try:
        results, screened = services.prescreen(session, assessment, body.model_dump() if body else None)
    except services.ServiceError as exc:
        raise _http_error(exc) from exc
    session.commit()
    return {
        "assessment_id": assessment_id,
        "results": [
            {"investor": services.investor_summary(r.investor),
             "match_score": r.match_score, "match_reasons": r.match_reasons}
            for r in results
        ],
        "total_investors_screened": screened,
    }


@app.post("/api/assessments/{assessment_id}/investors/compare", response_model=ComparisonOut,
          tags=["Investors"], summary="Compare up to five investors side by side")
async def compare(assessment_id: int, body: CompareRequest, session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    try:
        matrix = services.compare_investors(session, assessment, body.investor_ids)
    except services.ServiceError as exc:
        raise _http_error(exc) from exc
    return {"assessment_id": assessment_id, **asdict(matrix)}


@app.post("/api/assessments/{assessment_id}/investors/evaluate", response_model=list[EvaluationResultOut],
          tags=["Investors"], summary="Save founder evaluations of investors as the assessment's matches")
async def evaluate(assessment_id: int, body: EvaluateRequest, session: Session = Depends(db_session)):
    assessment = _get_or_404(session, Assessment, assessment_id, "Assessment")
    evaluations = {
        investor_id: [CategoryEvaluation(e.dimension, e.score, e.notes) for e in evs]
        for investor_id, evs in body.investor_evaluations.items()
    }
    try:
        results = services.save_evaluations(session, assessment, evaluations, body.selected_categories)
    except services.ServiceError as exc:
        raise _http_error(exc) from exc
    session.commit()
    return results


# ---------------------------------------------------------------------------
# Routes: Import
# ---------------------------------------------------------------------------


@app.post("/api/investors/import", response_model=InvestorImportResult,
          tags=["Import"], summary="Import investors from an XLSX roster")
async def import_investors(file: UploadFile = File(...), session: Session = Depends(db_session)):
    if not file.filename or not file.filename.endswith(".xlsx"):
        raise HTTPException(400, "Only .xlsx files are supported")
    content = await file.read()
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as f:
            tmp_path = Path(f.name)
            f.write(content)
        return import_investors_xlsx(tmp_path, session)
    finally:
        if tmp_path:
            tmp_path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run("readiness.app:app", host="127.0.0.1", port=8001, reload=True)


if __name__ == "__main__":
    main()
