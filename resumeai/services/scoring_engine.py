from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from resumeai.ai.reasoner import LanguageReasoner
from resumeai.ai.types import ParseFailed
from resumeai.core.scoring_config import get_scoring_value
from resumeai.schemas.resume import KeywordSet, ScoreBreakdown

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "keyword": 0.35,
    "format": 0.20,
    "experience": 0.20,
    "skills": 0.15,
    "action_word": 0.10,
}


@dataclass(frozen=True)
class ScoringWeights:
    keyword: float = 0.35
    format: float = 0.20
    experience: float = 0.20
    skills: float = 0.15
    action_word: float = 0.10

    @classmethod
    def from_config(cls) -> "ScoringWeights":
        configured = get_scoring_value("weights", {}) or {}
        values = {name: float(configured.get(name, default)) for name, default in DEFAULT_WEIGHTS.items()}
        total = sum(values.values())
        if abs(total - 1.0) > 1e-6:
            raise RuntimeError(f"Scoring weights must sum to 1.0, got {total:.4f}")
        return cls(**values)


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_score(value: int | float) -> int:
    return max(0, min(100, int(value)))


def combine_scores(
    *,
    keyword_score: int,
    format_score: int,
    experience_score: int,
    skills_score: int,
    action_word_score: int,
    weights: ScoringWeights | None = None,
) -> int:
    w = weights or ScoringWeights()
    total = (
        Decimal(str(keyword_score)) * Decimal(str(w.keyword))
        + Decimal(str(format_score)) * Decimal(str(w.format))
        + Decimal(str(experience_score)) * Decimal(str(w.experience))
        + Decimal(str(skills_score)) * Decimal(str(w.skills))
        + Decimal(str(action_word_score)) * Decimal(str(w.action_word))
    )
    return clamp_score(int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))


def match_keywords(resume_text: str, keywords: Iterable[str]) -> tuple[list[str], list[str]]:
    """Case-insensitive substring match; returns (matched, missing) in input order."""
    haystack = (resume_text or "").lower()
    matched: list[str] = []
    missing: list[str] = []
    seen: set[str] = set()
    for keyword in keywords:
        needle = (keyword or "").strip().lower()
        if not needle or needle in seen:
            continue
        seen.add(needle)
        if needle in haystack:
            matched.append(keyword.strip())
        else:
            missing.append(keyword.strip())
    return matched, missing


def keyword_coverage_score(matched: Sequence[str], total: int, *, baseline: int) -> int:
    if total <= 0:
        return clamp_score(baseline)
    return clamp_score(round_half_up(100 * len(matched) / total))


class ScoringEngine:
    def __init__(self, reasoner: LanguageReasoner, weights: ScoringWeights | None = None):
        self._reasoner = reasoner
        self._weights = weights or ScoringWeights.from_config()

    async def score(self, resume_text: str, job_description: str, keywords: KeywordSet) -> ScoreBreakdown:
        targets = keywords.targets()
        matched, missing = match_keywords(resume_text, targets)

        baseline = int(get_scoring_value("keywords.empty_baseline", 50))
        local_keyword_score = keyword_coverage_score(matched, len(matched) + len(missing), baseline=baseline)

        result = await self._reasoner.score_resume(resume_text, job_description, targets)
        if isinstance(result, ParseFailed):
            logger.warning("sub_score_parse_failed reason=%s", result.reason)
            sub_scores: dict[str, int] = {}
        else:
            sub_scores = result.value

        keyword_score = local_keyword_score
        blend = float(get_scoring_value("keywords.reasoner_blend_weight", 0.0) or 0.0)
        if blend > 0 and "keywordScore" in sub_scores:
            blend = min(1.0, blend)
            keyword_score = clamp_score(
                round_half_up(local_keyword_score * (1 - blend) + sub_scores["keywordScore"] * blend)
            )

        format_score = clamp_score(sub_scores.get("formatScore", 0))
        experience_score = clamp_score(sub_scores.get("experienceScore", 0))
        skills_score = clamp_score(sub_scores.get("skillsScore", 0))
        action_word_score = clamp_score(sub_scores.get("actionWordScore", 0))

        overall = combine_scores(
            keyword_score=keyword_score,
            format_score=format_score,
            experience_score=experience_score,
            skills_score=skills_score,
            action_word_score=action_word_score,
            weights=self._weights,
        )
        logger.info(
            "resume_scored overall=%s keyword=%s matched=%s missing=%s",
            overall,
            keyword_score,
            len(matched),
            len(missing),
        )
        return ScoreBreakdown(
            overall_score=overall,
            keyword_score=keyword_score,
            format_score=format_score,
            experience_score=experience_score,
            skills_score=skills_score,
            action_word_score=action_word_score,
            matched_keywords=matched,
            missing_keywords=missing,
        )
