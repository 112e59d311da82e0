from __future__ import annotations

import logging
from datetime import datetime, timezone

from resumeai.core.errors import (
    AnalysisNotFoundError,
    ConcurrentUpdateError,
    InputValidationError,
    ResumeNotFoundError,
)
from resumeai.schemas.resume import AnalysisRecord, ResumeRecord, ResumeStatus
from resumeai.services.lifecycle import validate_resume_text
from resumeai.store.record_store import RecordStore

logger = logging.getLogger(__name__)


def _validate_title(title: str | None) -> str:
    text = " ".join((title or "").split())
    if not text:
        raise InputValidationError("Title is required", code="missing_title")
    if len(text) > 200:
        raise InputValidationError("Title must be at most 200 characters", code="title_too_long")
    return text


class ResumeService:
    """Owner-scoped resume CRUD and read models for the dashboard."""

    def __init__(self, store: RecordStore):
        self.store = store

    def create(self, owner_id: str, *, title: str, raw_text: str) -> ResumeRecord:
        resume = self.store.create_resume(
            owner_id, title=_validate_title(title), original_text=validate_resume_text(raw_text)
        )
        logger.info("resume_created resume_id=%s", resume.id)
        return resume

    def create_from_upload(self, owner_id: str, *, filename: str, text: str) -> ResumeRecord:
        if not text.strip():
            raise InputValidationError("No extractable text found in the uploaded file.", code="empty_document")
        resume = self.store.create_resume(owner_id, title=_validate_title(filename[:200]), original_text=text.strip())
        logger.info("resume_uploaded resume_id=%s chars=%s", resume.id, len(resume.original_text))
        return resume

    def get(self, owner_id: str, resume_id: int) -> ResumeRecord:
        resume = self.store.get_resume(owner_id, resume_id)
        if resume is None:
            raise ResumeNotFoundError()
        return resume

    def update(
        self,
        owner_id: str,
        resume_id: int,
        *,
        title: str | None = None,
        raw_text: str | None = None,
    ) -> ResumeRecord:
        resume = self.get(owner_id, resume_id)
        if resume.status == ResumeStatus.ANALYZING:
            raise ConcurrentUpdateError("Resume is being analyzed; try again when it finishes.")
        changes: dict = {}
        if title is not None:
            changes["title"] = _validate_title(title)
        if raw_text is not None:
            changes["original_text"] = validate_resume_text(raw_text)
        if not changes:
            return resume
        return self.store.update_resume(owner_id, resume_id, expected_version=resume.version, **changes)

    def delete(self, owner_id: str, resume_id: int) -> None:
        if not self.store.delete_resume(owner_id, resume_id):
            raise ResumeNotFoundError()
        logger.info("resume_deleted resume_id=%s", resume_id)

    def list_with_latest(self, owner_id: str) -> list[tuple[ResumeRecord, AnalysisRecord | None]]:
        return [
            (resume, self.store.latest_analysis(owner_id, resume.id))
            for resume in self.store.list_resumes(owner_id)
        ]

    def history(self, owner_id: str, resume_id: int, limit: int | None = None) -> list[AnalysisRecord]:
        self.get(owner_id, resume_id)
        return self.store.list_analyses(owner_id, resume_id, limit=limit)

    def get_analysis(self, owner_id: str, analysis_id: int) -> AnalysisRecord:
        analysis = self.store.get_analysis(owner_id, analysis_id)
        if analysis is None:
            raise AnalysisNotFoundError()
        return analysis

    def stats(self, owner_id: str, *, now: datetime | None = None) -> dict[str, int]:
        current = now or datetime.now(timezone.utc)
        start_of_day = current.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return self.store.stats(owner_id, since=start_of_day)

    def export_text(self, owner_id: str, resume_id: int) -> tuple[ResumeRecord, str]:
        resume = self.get(owner_id, resume_id)
        return resume, resume.optimized_text or resume.original_text
