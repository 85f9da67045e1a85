"""Integration tests for the FastAPI endpoints.

Uses TestClient against an in-memory database seeded with the default
question bank.
"""
from __future__ import annotations

import json

import openpyxl
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from readiness.db import seed_questions
from readiness.models import Base, Investor, Question


@pytest.fixture()
def test_db():
    """Create a temporary SQLite in-memory database for testing.

    Uses StaticPool so all connections share the same in-memory database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    seed_questions(TestSession)
    return engine, TestSession


@pytest.fixture()
def client(test_db, tmp_path, monkeypatch):
    """FastAPI TestClient using in-memory database."""
    monkeypatch.setenv("READINESS_DB_PATH", str(tmp_path / "lifespan.db"))
    engine, TestSession = test_db
    from readiness.app import app, db_session

    def override_db_session():
        session = TestSession()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[db_session] = override_db_session
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c, TestSession
    app.dependency_overrides.clear()


PROFILE = {
    "industry": "fintech", "annual_revenue": 2_000_000, "funding_amount_sought": 5_000_000,
    "investment_type": "equity", "company_stage": "series_a",
    "geographic_location": "Berlin, Germany", "growth_rate": 30, "business_model": "saas",
}


@pytest.fixture()
def seeded_client(client):
    """Client with an assessment and three investors pre-seeded."""
    c, TestSession = client
    session = TestSession()
    session.add_all([
        Investor(name="Alpha Ventures", focus_areas_json=json.dumps(["fintech", "series_a"]),
                 investment_range_min=2_000_000, investment_range_max=10_000_000,
                 criteria_weights_json=json.dumps({"financial": 9, "market": 8})),
        Investor(name="Beta Capital", focus_areas_json=json.dumps(["healthcare"])),
        Investor(name="Gamma Partners"),
    ])
    session.commit()
    investor_ids = [inv.id for inv in session.execute(select(Investor).order_by(Investor.id)).scalars()]
    core_ids = [
        q.id for q in session.execute(
            select(Question).where(Question.is_core.is_(True)).order_by(Question.order_index)
        ).scalars()
    ]
    session.close()

    resp = c.post("/api/assessments", json={"company_name": "Acme", "profile": PROFILE})
    assert resp.status_code == 201
    return c, TestSession, resp.json()["id"], investor_ids, core_ids


def _answer_all(c, assessment_id, question_ids, value="4"):
    resp = None
    for qid in question_ids:
        resp = c.post(f"/api/assessments/{assessment_id}/answers", json={"question_id": qid, "value": value})
        assert resp.status_code == 200
    return resp


class TestAssessmentEndpoints:
    def test_create_and_get(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        resp = c.get(f"/api/assessments/{aid}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "draft"
        assert data["profile"]["industry"] == "fintech"

    def test_get_404(self, client):
        c, _ = client
        assert c.get("/api/assessments/9999").status_code == 404

    def test_answer_returns_cursor(self, seeded_client):
        c, _, aid, _, core_ids = seeded_client
        resp = c.post(f"/api/assessments/{aid}/answers", json={"question_id": core_ids[0], "value": "3"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["assessment"]["status"] == "in_progress"
        assert data["score_impact"] == 3
        assert data["next_question_id"] == core_ids[1]

    def test_answer_unknown_question(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        resp = c.post(f"/api/assessments/{aid}/answers", json={"question_id": 9999, "value": "3"})
        assert resp.status_code == 404

    def test_completion_and_lock(self, seeded_client):
        c, _, aid, _, core_ids = seeded_client
        data = _answer_all(c, aid, core_ids).json()
        assert data["assessment"]["status"] == "completed"
        assert data["next_question_id"] is None
        assert data["assessment"]["readiness_percent"] == 80
        assert data["assessment"]["readiness_tier"] == "ready"

        locked = c.post(f"/api/assessments/{aid}/answers", json={"question_id": core_ids[0], "value": "1"})
        assert locked.status_code == 409

        edited = c.post(f"/api/assessments/{aid}/answers",
                        json={"question_id": core_ids[0], "value": "1", "edit": True})
        assert edited.status_code == 200
        assert edited.json()["assessment"]["readiness_points"] == data["assessment"]["readiness_points"] - 3

    def test_update_profile(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        resp = c.patch(f"/api/assessments/{aid}", json={"industry": "healthcare", "growth_rate": 55})
        assert resp.status_code == 200
        profile = resp.json()["profile"]
        assert profile["industry"] == "healthcare"
        assert profile["growth_rate"] == 55
        assert profile["company_stage"] == "series_a"

    def test_update_profile_404(self, client):
        c, _ = client
        assert c.patch("/api/assessments/9999", json={"industry": "x"}).status_code == 404

    def test_transaction_ready_flag(self, seeded_client):
        c, _, aid, _, core_ids = seeded_client
        assert c.get(f"/api/assessments/{aid}").json()["transaction_ready"] is False
        data = _answer_all(c, aid, core_ids, "5").json()
        assert data["assessment"]["transaction_ready"] is True

    def test_complete_before_core_answered(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        assert c.post(f"/api/assessments/{aid}/complete").status_code == 400


class TestQuestionEndpoints:
    def test_list_questions(self, client):
        c, _ = client
        resp = c.get("/api/questions")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 30
        assert data[0]["options"][0] == {"value": "1", "label": "Not Ready", "score": 1}
        assert data[0]["usage_count"] == 0

    def test_create_question(self, client):
        c, _ = client
        resp = c.post("/api/questions", json={
            "text": "Is there a data room?", "question_type": "boolean", "dimension": "legal",
        })
        assert resp.status_code == 201
        assert resp.json()["order_index"] == 31

    def test_create_question_rejects_unknown_dimension(self, client):
        c, _ = client
        resp = c.post("/api/questions", json={"text": "Q", "dimension": "culture"})
        assert resp.status_code == 422

    def test_options_edit_rescores(self, seeded_client):
        c, _, aid, _, core_ids = seeded_client
        before = _answer_all(c, aid, core_ids, "5").json()["assessment"]["readiness_points"]
        options = [{"value": str(i), "label": f"L{i}", "score": 2 if i == 5 else i} for i in range(1, 6)]
        resp = c.put(f"/api/questions/{core_ids[0]}", json={"options": options})
        assert resp.status_code == 200
        assert resp.json()["usage_count"] == 1
        after = c.get(f"/api/assessments/{aid}").json()["readiness_points"]
        assert after == before - 3

    def test_toggle_active(self, client):
        c, _ = client
        qid = c.get("/api/questions").json()[0]["id"]
        resp = c.put(f"/api/questions/{qid}", json={"is_active": False})
        assert resp.json()["is_active"] is False
        active = c.get("/api/questions", params={"include_inactive": False}).json()
        assert qid not in [q["id"] for q in active]

    def test_delete_rules(self, seeded_client):
        c, _, aid, _, core_ids = seeded_client
        assert c.delete(f"/api/questions/{core_ids[0]}").status_code == 409
        non_core = next(q["id"] for q in c.get("/api/questions").json() if not q["is_core"])
        assert c.delete(f"/api/questions/{non_core}").status_code == 200
        assert c.delete(f"/api/questions/{non_core}").status_code == 404


class TestInvestorEndpoints:
    def test_generate_and_list_matches(self, seeded_client):
        c, _, aid, investor_ids, core_ids = seeded_client
        _answer_all(c, aid, core_ids)
        resp = c.get(f"/api/assessments/{aid}/investors")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_matches"] == 3
        assert [m["rank_position"] for m in data["matches"]] == [1, 2, 3]
        assert data["dimension_scores"]["financial"] == 80

        again = c.get(f"/api/assessments/{aid}/investors")
        assert again.json()["total_matches"] == 3

        stored = c.get(f"/api/assessments/{aid}/investors/matches")
        assert stored.status_code == 200
        assert stored.json()["total_matches"] == 3

    def test_list_matches_empty(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        assert c.get(f"/api/assessments/{aid}/investors/matches").status_code == 404

    def test_prescreening(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        resp = c.post(f"/api/assessments/{aid}/investors/prescreening")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_investors_screened"] == 3
        assert data["results"][0]["investor"]["name"] == "Alpha Ventures"
        assert all(r["match_score"] > 0 for r in data["results"])

    def test_prescreening_incomplete_profile(self, client):
        c, _ = client
        aid = c.post("/api/assessments", json={"company_name": "Bare"}).json()["id"]
        assert c.post(f"/api/assessments/{aid}/investors/prescreening").status_code == 400

    def test_compare(self, seeded_client):
        c, _, aid, investor_ids, core_ids = seeded_client
        _answer_all(c, aid, core_ids)
        resp = c.post(f"/api/assessments/{aid}/investors/compare", json={"investor_ids": investor_ids[:2]})
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["rows"]) == 6
        assert len(data["chart_series"]) == 3
        assert data["chart_series"][0]["label"] == "Company Performance"
        assert data["assessment_id"] == aid
        assert [inv["investor_id"] for inv in data["investors"]] == investor_ids[:2]
        cell = data["rows"][0]["cells"][0]
        assert set(cell) == {"investor_id", "weight", "weight_percent", "company_score", "weighted_score", "alignment"}

    def test_compare_too_many(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        resp = c.post(f"/api/assessments/{aid}/investors/compare", json={"investor_ids": [1, 2, 3, 4, 5, 6]})
        assert resp.status_code == 400

    def test_compare_requires_selection(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        resp = c.post(f"/api/assessments/{aid}/investors/compare", json={"investor_ids": []})
        assert resp.status_code == 422

    def test_evaluate(self, seeded_client):
        c, _, aid, investor_ids, _ = seeded_client
        body = {
            "investor_evaluations": {
                str(investor_ids[0]): [{"dimension": "terms", "score": 8}, {"dimension": "speed", "score": 6}],
                str(investor_ids[1]): [{"dimension": "terms", "score": 9, "notes": "Founder friendly"}],
            },
            "selected_categories": ["terms", "speed"],
        }
        resp = c.post(f"/api/assessments/{aid}/investors/evaluate", json=body)
        assert resp.status_code == 200
        scores = {r["investor_id"]: r["overall_score"] for r in resp.json()}
        assert scores == {investor_ids[0]: 70, investor_ids[1]: 90}

        stored = c.get(f"/api/assessments/{aid}/investors/matches").json()
        assert stored["matches"][0]["investor"]["id"] == investor_ids[1]
        reasoning = stored["matches"][0]["match_reasoning"]
        assert reasoning["evaluation_based"] is True
        assert reasoning["selected_categories"] == ["terms", "speed"]
        assert reasoning["evaluations"][0]["notes"] == "Founder friendly"

    def test_evaluate_empty(self, seeded_client):
        c, _, aid, _, _ = seeded_client
        resp = c.post(f"/api/assessments/{aid}/investors/evaluate", json={"investor_evaluations": {}})
        assert resp.status_code == 422


class TestImportEndpoint:
    def test_import_xlsx(self, client, tmp_path):
        c, TestSession = client
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Name", "Type", "Focus Areas"])
        ws.append(["Delta Fund", "angel", "fintech"])
        path = tmp_path / "roster.xlsx"
        wb.save(path)

        with open(path, "rb") as f:
            resp = c.post("/api/investors/import", files={"file": ("roster.xlsx", f)})
        assert resp.status_code == 200
        assert resp.json()["created"] == 1

        session = TestSession()
        assert session.execute(select(Investor).where(Investor.name == "Delta Fund")).scalars().one()
        session.close()

    def test_import_rejects_other_formats(self, client):
        c, _ = client
        resp = c.post("/api/investors/import", files={"file": ("roster.csv", b"a,b")})
        assert resp.status_code == 400
