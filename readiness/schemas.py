"""Pydantic request/response schemas for the Readiness API."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from readiness.models import DIMENSIONS, QUESTION_TYPES


class QuestionOption(BaseModel):
    value: str
    label: str = ""
    score: float = 0


class QuestionOut(BaseModel):
    id: int
    text: str
    question_type: str
    dimension: str
    module: str
    order_index: int
    help_text: str = ""
    options: list[QuestionOption] = []
    is_required: bool
    is_active: bool
    is_core: bool
    usage_count: int = 0


class QuestionCreate(BaseModel):
    text: str = Field(min_length=1)
    question_type: str = "scale"
    dimension: str
    module: str = "core"
    order_index: int | None = None
    help_text: str = ""
    options: list[QuestionOption] = []
    is_required: bool = True
    is_active: bool = True
    is_core: bool = False

    @field_validator("question_type")
    @classmethod
    def known_type(cls, v: str) -> str:
        if v not in QUESTION_TYPES:
            raise ValueError(f"question_type must be one of {', '.join(QUESTION_TYPES)}")
        return v

    @field_validator("dimension")
    @classmethod
    def known_dimension(cls, v: str) -> str:
        if v not in DIMENSIONS:
            raise ValueError(f"dimension must be one of {', '.join(DIMENSIONS)}")
        return v


class QuestionUpdate(BaseModel):
    text: str | None = None
    question_type: str | None = None
    dimension: str | None = None
    module: str | None = None
    order_index: int | None = None
    help_text: str | None = None
    options: list[QuestionOption] | None = None
    is_required: bool | None = None
    is_active: bool | None = None
    is_core: bool | None = None

    @field_validator("question_type")
    @classmethod
    def known_type(cls, v: str | None) -> str | None:
        if v is not None and v not in QUESTION_TYPES:
            raise ValueError(f"question_type must be one of {', '.join(QUESTION_TYPES)}")
        return v

    @field_validator("dimension")
    @classmethod
    def known_dimension(cls, v: str | None) -> str | None:
        if v is not None and v not in DIMENSIONS:
            raise ValueError(f"dimension must be one of {', '.join(DIMENSIONS)}")
        return v


class CompanyProfile(BaseModel):
    industry: str | None = None
    annual_revenue: float | None = None
    funding_amount_sought: float | None = None
    investment_type: str | None = None
    company_stage: str | None = None
    geographic_location: str | None = None
    growth_rate: float | None = None
    business_model: str | None = None
    ebitda: float | None = None


class AssessmentUpdate(CompanyProfile):
    title: str | None = None
    company_name: str | None = None


class AnswerIn(BaseModel):
    question_id: int
    value: str
    edit: bool = False


class AssessmentOut(BaseModel):
    id: int
    title: str
    company_name: str
    status: str
    progress_percentage: int
    readiness_points: int | None = None
    readiness_percent: int | None = None
    readiness_tier: str = ""
    transaction_ready: bool = False
    dimension_scores: dict[str, int] = {}
    dimension_points: dict[str, float] = {}
    recommendations: list[dict[str, Any]] = []
    profile: CompanyProfile


class AssessmentStateOut(BaseModel):
    assessment: AssessmentOut
    next_question_id: int | None = None
    score_impact: float


class InvestorOut(BaseModel):
    id: int
    name: str
    investor_type: str
    focus_areas: list[str] = []
    geographic_focus: list[str] = []
    investment_range_min: float | None = None
    investment_range_max: float | None = None
    description: str = ""
    website: str = ""


class MatchReasoningOut(BaseModel):
    strengths: list[str] = []
    concerns: list[str] = []
    opportunities: list[str] = []
    focus_areas: list[str] = []
    investment_range: dict[str, Any] = {}
    # set on matches saved from founder evaluations
    evaluation_based: bool = False
    selected_categories: list[str] = []
    evaluations: list[dict[str, Any]] = []


class MatchOut(BaseModel):
    investor: InvestorOut
    match_score: int
    match_reasoning: MatchReasoningOut
    rank_position: int


class MatchListOut(BaseModel):
    assessment_id: int
    total_matches: int
    matches: list[MatchOut]
    dimension_scores: dict[str, int] = {}


class PrescreenItemOut(BaseModel):
    investor: InvestorOut
    match_score: int
    match_reasons: list[str]


class PrescreenOut(BaseModel):
    assessment_id: int
    results: list[PrescreenItemOut]
    total_investors_screened: int


class CompareRequest(BaseModel):
    investor_ids: list[int] = Field(min_length=1)


class ComparisonCellOut(BaseModel):
    investor_id: int | None = None
    weight: float
    weight_percent: int
    company_score: float
    weighted_score: float
    alignment: str


class ComparisonRowOut(BaseModel):
    dimension: str
    label: str
    company_score: float
    cells: list[ComparisonCellOut]


class ChartSeriesOut(BaseModel):
    label: str
    data: list[float]
    background_color: str
    border_color: str


class ComparedInvestorOut(BaseModel):
    investor_id: int | None = None
    name: str
    match_score: int
    reasoning: MatchReasoningOut


class ComparisonOut(BaseModel):
    assessment_id: int
    dimensions: list[str]
    rows: list[ComparisonRowOut]
    chart_labels: list[str]
    chart_series: list[ChartSeriesOut]
    investors: list[ComparedInvestorOut]


class EvaluationIn(BaseModel):
    dimension: str
    score: float = Field(ge=1, le=10)
    notes: str = ""


class EvaluateRequest(BaseModel):
    investor_evaluations: dict[int, list[EvaluationIn]]
    selected_categories: list[str] = []

    @field_validator("investor_evaluations")
    @classmethod
    def must_not_be_empty(cls, v: dict[int, list[EvaluationIn]]) -> dict[int, list[EvaluationIn]]:
        if not v:
            raise ValueError("No investor evaluations provided")
        return v


class EvaluationResultOut(BaseModel):
    investor_id: int
    overall_score: int
    evaluation_count: int


class InvestorImportResult(BaseModel):
    total_imported: int
    created: int
    updated: int
    skipped: int
