from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from resumeai.schemas.resume import AnalysisRecord, ResumeRecord, ResumeStatus, Suggestion

CATEGORY_META = (
    ("Keyword Match", "keyword_score", "#B8FF00"),
    ("Format & Structure", "format_score", "#00D4FF"),
    ("Experience Align", "experience_score", "#7B2FFF"),
    ("Skills Coverage", "skills_score", "#FF8C42"),
    ("Action Words", "action_word_score", "#FF4D6D"),
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeRequest(ApiModel):
    resume_id: int | None = Field(default=None, ge=1)
    resume_text: str | None = Field(default=None, max_length=50000)
    job_description: str = Field(max_length=50000)
    job_title: str | None = Field(default=None, max_length=200)
    company: str | None = Field(default=None, max_length=200)


class AnalyzeResponse(ApiModel):
    analysis_id: int
    resume_id: int
    status: ResumeStatus
    ats_score: int
    previous_score: int
    delta: int
    keywords_found: list[str]
    keywords_missing: list[str]
    suggestions: list[Suggestion]

    @classmethod
    def from_records(cls, resume: ResumeRecord, analysis: AnalysisRecord) -> "AnalyzeResponse":
        return cls(
            analysis_id=analysis.id,
            resume_id=resume.id,
            status=resume.status,
            ats_score=analysis.overall_score,
            previous_score=analysis.previous_score,
            delta=analysis.delta,
            keywords_found=analysis.matched_keywords,
            keywords_missing=analysis.missing_keywords,
            suggestions=analysis.suggestions,
        )


class CategoryScore(ApiModel):
    label: str
    score: int
    note: str
    color: str


class AnalysisDetailResponse(ApiModel):
    analysis_id: int
    resume_id: int
    overall_score: int
    previous_score: int
    delta: int
    job_title: str
    company: str
    keywords_found: list[str]
    keywords_missing: list[str]
    suggestions: list[Suggestion]
    categories: list[CategoryScore]
    created_at: datetime

    @classmethod
    def from_record(cls, analysis: AnalysisRecord) -> "AnalysisDetailResponse":
        notes = {
            "keyword_score": f"{len(analysis.matched_keywords)} keywords",
            "format_score": "ATS-friendliness",
            "experience_score": "Level match",
            "skills_score": "Skills matched",
            "action_word_score": "Verb strength",
        }
        return cls(
            analysis_id=analysis.id,
            resume_id=analysis.resume_id,
            overall_score=analysis.overall_score,
            previous_score=analysis.previous_score,
            delta=analysis.delta,
            job_title=analysis.job_title,
            company=analysis.company_name,
            keywords_found=analysis.matched_keywords,
            keywords_missing=analysis.missing_keywords,
            suggestions=analysis.suggestions,
            categories=[
                CategoryScore(label=label, score=getattr(analysis, attr), note=notes[attr], color=color)
                for label, attr, color in CATEGORY_META
            ],
            created_at=analysis.created_at,
        )


class AnalysisSummary(ApiModel):
    analysis_id: int
    overall_score: int
    previous_score: int
    delta: int
    job_title: str
    company: str
    created_at: datetime

    @classmethod
    def from_record(cls, analysis: AnalysisRecord) -> "AnalysisSummary":
        return cls(
            analysis_id=analysis.id,
            overall_score=analysis.overall_score,
            previous_score=analysis.previous_score,
            delta=analysis.delta,
            job_title=analysis.job_title,
            company=analysis.company_name,
            created_at=analysis.created_at,
        )


class OptimizeRequest(ApiModel):
    job_description: str = Field(max_length=50000)


class OptimizeResponse(ApiModel):
    resume_id: int
    offer_id: int
    overall_score: int
    keyword_matches: list[str]
    missing_keywords: list[str]
    unconfirmed_skills: list[str]
    requires_confirmation: bool


class OptimizeConfirmedRequest(ApiModel):
    job_description: str = Field(max_length=50000)
    confirmed_skills: list[str] = Field(default_factory=list, max_length=100)
    job_title: str | None = Field(default=None, max_length=200)
    company: str | None = Field(default=None, max_length=200)


class OptimizeConfirmedResponse(ApiModel):
    resume_id: int
    analysis_id: int
    status: ResumeStatus
    overall_score: int
    previous_score: int
    delta: int
    optimized_file_ref: str | None
    keywords_found: list[str]
    keywords_missing: list[str]
    suggestions: list[Suggestion]


class ResumeCreateRequest(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    raw_text: str = Field(max_length=50000)


class ResumeUpdateRequest(ApiModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    raw_text: str | None = Field(default=None, max_length=50000)


class ResumeSummary(ApiModel):
    id: int
    title: str
    company: str | None
    status: ResumeStatus
    overall_score: int
    current_score: int
    delta: int
    updated_at: datetime


class ResumeListResponse(ApiModel):
    resumes: list[ResumeSummary]


class ResumeDetail(ApiModel):
    id: int
    title: str
    status: ResumeStatus
    original_text: str
    optimized_text: str | None
    current_score: int
    optimized_file_ref: str | None
    created_at: datetime
    updated_at: datetime
    analyses: list[AnalysisSummary] = Field(default_factory=list)

    @classmethod
    def from_records(cls, resume: ResumeRecord, analyses: list[AnalysisRecord]) -> "ResumeDetail":
        return cls(
            id=resume.id,
            title=resume.title,
            status=resume.status,
            original_text=resume.original_text,
            optimized_text=resume.optimized_text,
            current_score=resume.current_score,
            optimized_file_ref=resume.optimized_file_ref,
            created_at=resume.created_at,
            updated_at=resume.updated_at,
            analyses=[AnalysisSummary.from_record(item) for item in analyses],
        )


class AnalysisHistoryResponse(ApiModel):
    resume_id: int
    analyses: list[AnalysisSummary]


class ResumeStatsResponse(ApiModel):
    total_resumes: int
    avg_score: int
    optimized_today: int


class UploadResponse(ApiModel):
    resume_id: int
    source_type: str
    characters: int


class MessageResponse(ApiModel):
    message: str
