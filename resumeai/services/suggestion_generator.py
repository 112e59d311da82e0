from __future__ import annotations

import logging
from typing import Any

from resumeai.ai.reasoner import LanguageReasoner
from resumeai.ai.types import ParseFailed
from resumeai.core.errors import ReasonerUnavailable
from resumeai.core.scoring_config import get_scoring_value
from resumeai.schemas.resume import ScoreBreakdown, Suggestion

logger = logging.getLogger(__name__)

DEFAULT_ICONS = ("📌", "⚙️", "📊")
DEFAULT_COLORS = ("#7B2FFF", "#00D4FF", "#FF4D6D")


def _truncate(text: str, limit: int) -> str:
    cleaned = " ".join(text.split())
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[: max(1, limit - 1)].rstrip() + "…"


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class SuggestionGenerator:
    def __init__(self, reasoner: LanguageReasoner):
        self._reasoner = reasoner
        self.count = int(get_scoring_value("suggestions.count", 3))
        self.title_max = int(get_scoring_value("suggestions.title_max_chars", 80))
        self.body_max = int(get_scoring_value("suggestions.body_max_chars", 120))
        self.icons = tuple(get_scoring_value("suggestions.icons", DEFAULT_ICONS) or DEFAULT_ICONS)
        self.colors = tuple(get_scoring_value("suggestions.colors", DEFAULT_COLORS) or DEFAULT_COLORS)

    def normalize(self, items: list[dict[str, Any]]) -> list[Suggestion]:
        suggestions: list[Suggestion] = []
        for item in items:
            if len(suggestions) >= self.count:
                break
            title = _as_text(item.get("title"))
            body = _as_text(item.get("body"))
            if not title or not body:
                continue
            position = len(suggestions)
            suggestions.append(
                Suggestion(
                    icon=_as_text(item.get("icon")) or self.icons[position % len(self.icons)],
                    color=_as_text(item.get("color")) or self.colors[position % len(self.colors)],
                    title=_truncate(title, self.title_max),
                    body=_truncate(body, self.body_max),
                )
            )
        return suggestions

    async def generate(self, breakdown: ScoreBreakdown, job_title: str, company: str) -> list[Suggestion]:
        """Never raises for reasoner problems; an empty list is a valid outcome."""
        try:
            result = await self._reasoner.suggest(
                job_title=job_title,
                company=company,
                overall_score=breakdown.overall_score,
                missing_keywords=breakdown.missing_keywords,
                category_scores={
                    "Keyword": breakdown.keyword_score,
                    "Format": breakdown.format_score,
                    "Experience": breakdown.experience_score,
                    "Skills": breakdown.skills_score,
                    "Action words": breakdown.action_word_score,
                },
                count=self.count,
                icons=self.icons,
                colors=self.colors,
                body_max=self.body_max,
            )
        except ReasonerUnavailable as exc:
            logger.warning("suggestions_unavailable code=%s: %s", exc.code, exc)
            return []

        if isinstance(result, ParseFailed):
            logger.warning("suggestions_degraded reason=%s", result.reason)
            return []
        return self.normalize(result.value)
