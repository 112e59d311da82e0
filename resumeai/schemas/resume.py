from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ResumeStatus(str, Enum):
    DRAFT = "DRAFT"
    ANALYZING = "ANALYZING"
    OPTIMIZED = "OPTIMIZED"


class KeywordSet(BaseModel):
    required: list[str] = Field(default_factory=list)
    preferred: list[str] = Field(default_factory=list)
    soft: list[str] = Field(default_factory=list)

    def targets(self) -> list[str]:
        """Required then preferred terms, deduplicated case-insensitively."""
        seen: set[str] = set()
        ordered: list[str] = []
        for term in [*self.required, *self.preferred]:
            key = term.lower()
            if key in seen:
                continue
            seen.add(key)
            ordered.append(term)
        return ordered

    def all_terms(self) -> list[str]:
        seen: set[str] = set()
        ordered: list[str] = []
        for term in [*self.required, *self.preferred, *self.soft]:
            key = term.lower()
            if key in seen:
                continue
            seen.add(key)
            ordered.append(term)
        return ordered


class ScoreBreakdown(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    keyword_score: int = Field(ge=0, le=100)
    format_score: int = Field(ge=0, le=100)
    experience_score: int = Field(ge=0, le=100)
    skills_score: int = Field(ge=0, le=100)
    action_word_score: int = Field(ge=0, le=100)
    matched_keywords: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)


class Suggestion(BaseModel):
    icon: str
    color: str
    title: str
    body: str


class ResumeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    owner_id: str
    title: str
    original_text: str
    optimized_text: str | None = None
    current_score: int = 0
    status: ResumeStatus = ResumeStatus.DRAFT
    optimized_file_ref: str | None = None
    version: int = 0
    created_at: datetime
    updated_at: datetime


class AnalysisRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    resume_id: int
    job_description: str
    job_title: str
    company_name: str
    overall_score: int
    keyword_score: int
    format_score: int
    experience_score: int
    skills_score: int
    action_word_score: int
    previous_score: int = 0
    matched_keywords: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def delta(self) -> int:
        return self.overall_score - self.previous_score


class NewAnalysis(BaseModel):
    """Analysis fields known before the store assigns id and timestamp."""

    job_description: str
    job_title: str
    company_name: str
    breakdown: ScoreBreakdown
    previous_score: int = 0
    suggestions: list[Suggestion] = Field(default_factory=list)


class SkillGapOffer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    resume_id: int
    job_fingerprint: str
    keywords: KeywordSet
    unconfirmed_skills: list[str]
    created_at: datetime


class AnalysisOutcome(BaseModel):
    resume: ResumeRecord
    analysis: AnalysisRecord


class SkillGapReport(BaseModel):
    resume_id: int
    offer_id: int
    breakdown: ScoreBreakdown
    unconfirmed_skills: list[str]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def requires_confirmation(self) -> bool:
        return bool(self.unconfirmed_skills)
