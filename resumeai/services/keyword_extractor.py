from __future__ import annotations

import logging

from resumeai.ai.reasoner import LanguageReasoner
from resumeai.ai.types import ParseFailed
from resumeai.schemas.resume import KeywordSet

logger = logging.getLogger(__name__)


class KeywordExtractor:
    """Turns a job description into required / preferred / soft keyword lists.

    Malformed reasoner output degrades to an empty KeywordSet so scoring can still
    run. Transport failures (ReasonerUnavailable) propagate to the caller.
    """

    def __init__(self, reasoner: LanguageReasoner):
        self._reasoner = reasoner

    async def extract(self, job_description: str) -> KeywordSet:
        result = await self._reasoner.extract_keywords(job_description)
        if isinstance(result, ParseFailed):
            logger.warning("keyword_extraction_degraded reason=%s", result.reason)
            return KeywordSet()
        keywords = result.value
        logger.info(
            "keywords_extracted required=%s preferred=%s soft=%s",
            len(keywords.required),
            len(keywords.preferred),
            len(keywords.soft),
        )
        return keywords
