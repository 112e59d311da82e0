from __future__ import annotations

import hashlib
import logging
from typing import Iterable, Sequence

from resumeai.ai.reasoner import LanguageReasoner
from resumeai.core.errors import FabricatedSkillsError, InputValidationError, ReasonerUnavailable
from resumeai.core.scoring_config import get_scoring_value
from resumeai.schemas.resume import KeywordSet, ResumeRecord, SkillGapOffer
from resumeai.services.scoring_engine import match_keywords
from resumeai.store.record_store import RecordStore

logger = logging.getLogger(__name__)


def job_fingerprint(job_description: str) -> str:
    normalized = " ".join((job_description or "").split()).lower()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def find_unconfirmed_skills(resume_text: str, keywords: KeywordSet) -> list[str]:
    """Required keywords that the resume text does not contain."""
    _, missing = match_keywords(resume_text, keywords.required)
    return missing


def detect_fabricated_terms(
    original_text: str,
    rewritten_text: str,
    vocabulary: Iterable[str],
    confirmed_skills: Sequence[str],
) -> list[str]:
    """Vocabulary terms present in the rewrite but in neither the original nor the confirmed set."""
    original = (original_text or "").lower()
    rewritten = (rewritten_text or "").lower()
    allowed = [skill.lower() for skill in confirmed_skills]
    fabricated: list[str] = []
    seen: set[str] = set()
    for term in vocabulary:
        needle = term.strip().lower()
        if not needle or needle in seen:
            continue
        seen.add(needle)
        if needle not in rewritten or needle in original:
            continue
        # "Lambda" is covered by a confirmed "AWS Lambda"
        if any(needle in skill for skill in allowed):
            continue
        fabricated.append(term.strip())
    return fabricated


class SkillConfirmationNegotiator:
    def __init__(self, reasoner: LanguageReasoner, store: RecordStore):
        self._reasoner = reasoner
        self._store = store

    def offer(self, owner_id: str, resume: ResumeRecord, job_description: str, keywords: KeywordSet) -> SkillGapOffer:
        unconfirmed = find_unconfirmed_skills(resume.original_text, keywords)
        offer = self._store.save_skill_offer(
            owner_id,
            resume.id,
            job_fingerprint=job_fingerprint(job_description),
            keywords=keywords,
            unconfirmed_skills=unconfirmed,
        )
        logger.info("skill_gap_offered resume_id=%s offer_id=%s skills=%s", resume.id, offer.id, len(unconfirmed))
        return offer

    def resolve_confirmation(
        self,
        owner_id: str,
        resume: ResumeRecord,
        job_description: str,
        confirmed_skills: Sequence[str],
    ) -> tuple[SkillGapOffer, list[str]]:
        """Return the matching offer and the confirmed skills spelled as they were offered."""
        offer = self._store.latest_skill_offer(owner_id, resume.id, job_fingerprint(job_description))
        if offer is None:
            raise InputValidationError(
                "No skill gap was offered for this job description. Run the initial optimize pass first.",
                code="missing_skill_offer",
            )

        offered = {skill.lower(): skill for skill in offer.unconfirmed_skills}
        accepted: list[str] = []
        rejected: list[str] = []
        for raw in confirmed_skills:
            skill = " ".join((raw or "").split())
            if not skill:
                continue
            canonical = offered.get(skill.lower())
            if canonical is None:
                rejected.append(skill)
            elif canonical not in accepted:
                accepted.append(canonical)
        if rejected:
            raise InputValidationError(
                "Confirmed skills must come from the offered skill gap: " + ", ".join(rejected),
                code="unknown_confirmed_skill",
            )
        return offer, accepted

    async def rewrite(
        self,
        resume: ResumeRecord,
        job_description: str,
        confirmed_skills: Sequence[str],
        keywords: KeywordSet,
    ) -> str:
        rewritten = await self._reasoner.rewrite(
            resume_text=resume.original_text,
            job_description=job_description,
            confirmed_skills=list(confirmed_skills),
        )
        if not rewritten.strip():
            raise ReasonerUnavailable("Language reasoner returned an empty rewrite.", code="rewrite_empty")

        if bool(get_scoring_value("optimize.enforce_no_fabrication", True)):
            fabricated = detect_fabricated_terms(
                resume.original_text, rewritten, keywords.all_terms(), confirmed_skills
            )
            if fabricated:
                logger.warning(
                    "rewrite_rejected_fabrication resume_id=%s terms=%s", resume.id, ", ".join(fabricated)
                )
                raise FabricatedSkillsError(fabricated)
        return rewritten
