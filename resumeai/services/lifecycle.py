from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from resumeai.ai.reasoner import LanguageReasoner
from resumeai.core.errors import InputValidationError, ResumeNotFoundError
from resumeai.core.locks import ResumeLockRegistry
from resumeai.core.scoring_config import get_scoring_value
from resumeai.schemas.resume import (
    AnalysisOutcome,
    KeywordSet,
    NewAnalysis,
    ResumeRecord,
    ResumeStatus,
    ScoreBreakdown,
    SkillGapReport,
    Suggestion,
)
from resumeai.services.keyword_extractor import KeywordExtractor
from resumeai.services.renderer import Renderer
from resumeai.services.scoring_engine import ScoringEngine
from resumeai.services.skill_negotiator import SkillConfirmationNegotiator
from resumeai.services.suggestion_generator import SuggestionGenerator
from resumeai.store.record_store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_JOB_TITLE = "Unknown Role"
DEFAULT_COMPANY = "Unknown Company"
FREE_TEXT_RESUME_TITLE = "Pasted resume"


def validate_job_description(job_description: str | None) -> str:
    text = job_description or ""
    min_chars = int(get_scoring_value("validation.job_description_min_chars", 100))
    max_chars = int(get_scoring_value("validation.job_description_max_chars", 50000))
    if len(text) < min_chars:
        raise InputValidationError(
            f"Job description must be at least {min_chars} characters", code="job_description_too_short"
        )
    if len(text) > max_chars:
        raise InputValidationError(
            f"Job description must be at most {max_chars} characters", code="job_description_too_long"
        )
    if not text.strip():
        raise InputValidationError("Job description must not be blank", code="job_description_blank")
    return text


def validate_resume_text(resume_text: str | None) -> str:
    text = (resume_text or "").strip()
    min_chars = int(get_scoring_value("validation.resume_text_min_chars", 50))
    max_chars = int(get_scoring_value("validation.resume_text_max_chars", 50000))
    if len(text) < min_chars:
        raise InputValidationError(
            f"Resume text must be at least {min_chars} characters", code="resume_text_too_short"
        )
    if len(text) > max_chars:
        raise InputValidationError(
            f"Resume text must be at most {max_chars} characters", code="resume_text_too_long"
        )
    return text


def _label(value: str | None, default: str, field: str) -> str:
    text = " ".join((value or "").split())
    limit = int(get_scoring_value(f"validation.{field}_max_chars", 200))
    if len(text) > limit:
        label = field.replace("_", " ").capitalize()
        raise InputValidationError(f"{label} must be at most {limit} characters", code=f"{field}_too_long")
    return text or default


class ResumeLifecycleController:
    """Runs analyze / optimize requests and owns resume status transitions.

    DRAFT|OPTIMIZED -> ANALYZING -> OPTIMIZED on success; on any hard failure the
    status is restored to what it was before the request, best-effort.
    """

    def __init__(
        self,
        store: RecordStore,
        reasoner: LanguageReasoner,
        renderer: Renderer,
        *,
        locks: ResumeLockRegistry | None = None,
    ):
        self.store = store
        self.locks = locks or ResumeLockRegistry()
        self.renderer = renderer
        self.extractor = KeywordExtractor(reasoner)
        self.scorer = ScoringEngine(reasoner)
        self.suggester = SuggestionGenerator(reasoner)
        self.negotiator = SkillConfirmationNegotiator(reasoner, store)

    def _load(self, owner_id: str, resume_id: int) -> ResumeRecord:
        resume = self.store.get_resume(owner_id, resume_id)
        if resume is None:
            raise ResumeNotFoundError()
        return resume

    def _mark_analyzing(self, owner_id: str, resume: ResumeRecord) -> ResumeRecord:
        return self.store.update_resume(
            owner_id, resume.id, expected_version=resume.version, status=ResumeStatus.ANALYZING
        )

    def _rollback(self, owner_id: str, marked: ResumeRecord, prior_status: ResumeStatus, exc: BaseException) -> None:
        try:
            self.store.update_resume(
                owner_id, marked.id, expected_version=marked.version, status=prior_status
            )
            logger.info(
                "status_rolled_back resume_id=%s status=%s cause=%s",
                marked.id,
                prior_status.value,
                type(exc).__name__,
            )
        except Exception:
            logger.exception("status_rollback_failed resume_id=%s status=%s", marked.id, prior_status.value)

    def _discard_render(self, file_ref: str) -> None:
        try:
            self.renderer.discard(file_ref)
        except Exception:
            logger.exception("render_discard_failed ref=%s", file_ref)

    async def _score_and_suggest(
        self,
        resume_text: str,
        job_description: str,
        keywords: KeywordSet,
        job_title: str,
        company: str,
    ) -> tuple[ScoreBreakdown, list[Suggestion]]:
        breakdown = await self.scorer.score(resume_text, job_description, keywords)
        suggestions = await self.suggester.generate(breakdown, job_title, company)
        return breakdown, suggestions

    async def analyze(
        self,
        owner_id: str,
        *,
        job_description: str,
        resume_id: int | None = None,
        resume_text: str | None = None,
        job_title: str | None = None,
        company: str | None = None,
    ) -> AnalysisOutcome:
        jd = validate_job_description(job_description)
        title = _label(job_title, DEFAULT_JOB_TITLE, "job_title")
        company_name = _label(company, DEFAULT_COMPANY, "company")

        if resume_id is not None:
            return await self._analyze_resume(owner_id, resume_id, jd, title, company_name)
        if resume_text is None or not resume_text.strip():
            raise InputValidationError("Provide either resumeId or resumeText", code="missing_resume")
        return await self._analyze_free_text(owner_id, validate_resume_text(resume_text), jd, title, company_name)

    async def _analyze_resume(
        self, owner_id: str, resume_id: int, jd: str, job_title: str, company: str
    ) -> AnalysisOutcome:
        self._load(owner_id, resume_id)

        async with self.locks.hold(resume_id):
            resume = self._load(owner_id, resume_id)
            prior_status = resume.status
            marked = self._mark_analyzing(owner_id, resume)
            try:
                keywords = await self.extractor.extract(jd)
                breakdown, suggestions = await self._score_and_suggest(
                    marked.original_text, jd, keywords, job_title, company
                )
                latest = self.store.latest_analysis(owner_id, resume_id)
                changes: dict = {"status": ResumeStatus.OPTIMIZED}
                if marked.optimized_text is None:
                    changes["optimized_text"] = marked.original_text
                outcome = self.store.commit_analysis(
                    owner_id,
                    resume_id,
                    NewAnalysis(
                        job_description=jd,
                        job_title=job_title,
                        company_name=company,
                        breakdown=breakdown,
                        previous_score=latest.overall_score if latest else 0,
                        suggestions=suggestions,
                    ),
                    expected_version=marked.version,
                    resume_changes=changes,
                )
            except Exception as exc:
                self._rollback(owner_id, marked, prior_status, exc)
                raise

        logger.info(
            "analysis_completed resume_id=%s analysis_id=%s score=%s previous=%s",
            resume_id,
            outcome.analysis.id,
            outcome.analysis.overall_score,
            outcome.analysis.previous_score,
        )
        return outcome

    async def _analyze_free_text(
        self, owner_id: str, resume_text: str, jd: str, job_title: str, company: str
    ) -> AnalysisOutcome:
        keywords = await self.extractor.extract(jd)
        breakdown, suggestions = await self._score_and_suggest(resume_text, jd, keywords, job_title, company)
        outcome = self.store.create_resume_with_analysis(
            owner_id,
            title=FREE_TEXT_RESUME_TITLE,
            original_text=resume_text,
            status=ResumeStatus.OPTIMIZED,
            optimized_text=resume_text,
            new=NewAnalysis(
                job_description=jd,
                job_title=job_title,
                company_name=company,
                breakdown=breakdown,
                previous_score=0,
                suggestions=suggestions,
            ),
        )
        logger.info(
            "free_text_analysis_completed resume_id=%s analysis_id=%s score=%s",
            outcome.resume.id,
            outcome.analysis.id,
            outcome.analysis.overall_score,
        )
        return outcome

    async def optimize(self, owner_id: str, resume_id: int, *, job_description: str) -> SkillGapReport:
        """Initial optimize pass: diagnose the skill gap without touching the resume."""
        jd = validate_job_description(job_description)
        resume = self._load(owner_id, resume_id)

        keywords = await self.extractor.extract(jd)
        breakdown = await self.scorer.score(resume.original_text, jd, keywords)
        offer = self.negotiator.offer(owner_id, resume, jd, keywords)
        return SkillGapReport(
            resume_id=resume.id,
            offer_id=offer.id,
            breakdown=breakdown,
            unconfirmed_skills=offer.unconfirmed_skills,
        )

    async def optimize_confirmed(
        self,
        owner_id: str,
        resume_id: int,
        *,
        job_description: str,
        confirmed_skills: Sequence[str],
        job_title: str | None = None,
        company: str | None = None,
    ) -> AnalysisOutcome:
        jd = validate_job_description(job_description)
        title = _label(job_title, DEFAULT_JOB_TITLE, "job_title")
        company_name = _label(company, DEFAULT_COMPANY, "company")
        resume = self._load(owner_id, resume_id)
        offer, accepted = self.negotiator.resolve_confirmation(owner_id, resume, jd, confirmed_skills)

        async with self.locks.hold(resume_id):
            resume = self._load(owner_id, resume_id)
            prior_status = resume.status
            marked = self._mark_analyzing(owner_id, resume)
            file_ref = None
            try:
                rewritten = await self.negotiator.rewrite(marked, jd, accepted, offer.keywords)
                breakdown, suggestions = await self._score_and_suggest(
                    rewritten, jd, offer.keywords, title, company_name
                )
                file_ref = await asyncio.to_thread(self.renderer.render, resume_id, rewritten)
                outcome = self.store.commit_analysis(
                    owner_id,
                    resume_id,
                    NewAnalysis(
                        job_description=jd,
                        job_title=title,
                        company_name=company_name,
                        breakdown=breakdown,
                        previous_score=marked.current_score,
                        suggestions=suggestions,
                    ),
                    expected_version=marked.version,
                    resume_changes={
                        "optimized_text": rewritten,
                        "optimized_file_ref": file_ref,
                        "current_score": breakdown.overall_score,
                        "status": ResumeStatus.OPTIMIZED,
                    },
                )
            except Exception as exc:
                if file_ref is not None:
                    self._discard_render(file_ref)
                self._rollback(owner_id, marked, prior_status, exc)
                raise

        logger.info(
            "optimization_completed resume_id=%s analysis_id=%s score=%s previous=%s confirmed=%s",
            resume_id,
            outcome.analysis.id,
            outcome.analysis.overall_score,
            outcome.analysis.previous_score,
            len(accepted),
        )
        return outcome
