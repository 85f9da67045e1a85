from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from readiness.utils import json_parse

DIMENSIONS = ("financial", "operational", "market", "technology", "legal", "strategic")
QUESTION_TYPES = ("scale", "boolean", "multiple_choice", "text", "number")
INVESTOR_TYPES = ("vc", "pe", "strategic", "angel", "family_office")
ASSESSMENT_STATUSES = ("draft", "in_progress", "completed")


class Base(DeclarativeBase):
    pass


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(30), nullable=False)  # scale | boolean | multiple_choice | text | number
    dimension: Mapped[str] = mapped_column(String(30), nullable=False)
    module: Mapped[str] = mapped_column(String(30), default="core")
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    help_text: Mapped[str] = mapped_column(Text, default="")
    options_json: Mapped[str] = mapped_column(Text, default="[]")
    is_required: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_core: Mapped[bool] = mapped_column(Boolean, default=False)

    @property
    def options(self) -> list[dict[str, Any]]:
        opts = json_parse(self.options_json, [])
        return opts if isinstance(opts, list) else []


class Assessment(Base):
    __tablename__ = "assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), default="")
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft")  # draft | in_progress | completed
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0)

    # Company profile
    industry: Mapped[str] = mapped_column(String(200), default="")
    annual_revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    funding_amount_sought: Mapped[float | None] = mapped_column(Float, nullable=True)
    investment_type: Mapped[str] = mapped_column(String(100), default="")
    company_stage: Mapped[str] = mapped_column(String(100), default="")
    geographic_location: Mapped[str] = mapped_column(String(200), default="")
    growth_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    business_model: Mapped[str] = mapped_column(String(100), default="")
    ebitda: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Frozen on completion
    readiness_points: Mapped[int | None] = mapped_column(Integer, nullable=True)  # out of 150
    readiness_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)  # out of 100
    readiness_tier: Mapped[str] = mapped_column(String(20), default="")
    dimension_scores_json: Mapped[str] = mapped_column(Text, default="{}")  # dimension -> percent
    dimension_points_json: Mapped[str] = mapped_column(Text, default="{}")  # dimension -> capped points
    recommendations_json: Mapped[str] = mapped_column(Text, default="[]")

    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    answers: Mapped[list[Answer]] = relationship("Answer", back_populates="assessment", cascade="all, delete-orphan")
    matches: Mapped[list[InvestorMatch]] = relationship("InvestorMatch", back_populates="assessment", cascade="all, delete-orphan")

    @property
    def dimension_scores(self) -> dict[str, int]:
        return json_parse(self.dimension_scores_json, {})


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (UniqueConstraint("assessment_id", "question_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assessment_id: Mapped[int] = mapped_column(Integer, ForeignKey("assessments.id"), nullable=False)
    question_id: Mapped[int] = mapped_column(Integer, ForeignKey("questions.id"), nullable=False)
    answer_value: Mapped[str] = mapped_column(Text, default="")
    score_impact: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    assessment: Mapped[Assessment] = relationship("Assessment", back_populates="answers")
    question: Mapped[Question] = relationship("Question")


class Investor(Base):
    __tablename__ = "investors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    investor_type: Mapped[str] = mapped_column(String(30), default="vc")
    focus_areas_json: Mapped[str] = mapped_column(Text, default="[]")
    geographic_focus_json: Mapped[str] = mapped_column(Text, default="[]")
    investment_range_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    investment_range_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    criteria_weights_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # NULL = use defaults
    description: Mapped[str] = mapped_column(Text, default="")
    website: Mapped[str] = mapped_column(String(500), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def focus_areas(self) -> list[str]:
        return json_parse(self.focus_areas_json, [])

    @property
    def geographic_focus(self) -> list[str]:
        return json_parse(self.geographic_focus_json, [])

    @property
    def criteria_weights(self) -> dict[str, float] | None:
        if self.criteria_weights_json is None:
            return None
        weights = json_parse(self.criteria_weights_json, None)
        return weights if isinstance(weights, dict) else None


class InvestorMatch(Base):
    __tablename__ = "investor_matches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assessment_id: Mapped[int] = mapped_column(Integer, ForeignKey("assessments.id"), nullable=False)
    investor_id: Mapped[int] = mapped_column(Integer, ForeignKey("investors.id"), nullable=False)
    match_score: Mapped[int] = mapped_column(Integer, default=0)
    match_reasoning_json: Mapped[str] = mapped_column(Text, default="{}")
    rank_position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    assessment: Mapped[Assessment] = relationship("Assessment", back_populates="matches")
    investor: Mapped[Investor] = relationship("Investor")
