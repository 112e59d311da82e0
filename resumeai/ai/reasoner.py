from __future__ import annotations

import asyncio
import json
import logging
import re
import time
import uuid
from typing import Any, Protocol, Sequence

from resumeai.ai import prompts
from resumeai.ai.types import (
    Capability,
    CompletionClient,
    CompletionRequest,
    ParseFailed,
    ParseOk,
    ParseResult,
)
from resumeai.analytics.db import log_reasoner_run
from resumeai.core.config import settings
from resumeai.core.errors import ReasonerUnavailable
from resumeai.core.scoring_config import get_scoring_value
from resumeai.schemas.resume import KeywordSet

logger = logging.getLogger(__name__)

SUB_SCORE_KEYS = ("keywordScore", "formatScore", "experienceScore", "skillsScore", "actionWordScore")

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class LanguageReasoner(Protocol):
    async def extract_keywords(self, job_description: str) -> ParseResult[KeywordSet]: ...

    async def score_resume(
        self,
        resume_text: str,
        job_description: str,
        target_keywords: Sequence[str],
    ) -> ParseResult[dict[str, int]]: ...

    async def suggest(
        self,
        *,
        job_title: str,
        company: str,
        overall_score: int,
        missing_keywords: Sequence[str],
        category_scores: dict[str, int],
        count: int,
        icons: Sequence[str],
        colors: Sequence[str],
        body_max: int,
    ) -> ParseResult[list[dict[str, Any]]]: ...

    async def rewrite(
        self,
        *,
        resume_text: str,
        job_description: str,
        confirmed_skills: Sequence[str],
    ) -> str: ...


def parse_json_object(raw: str) -> ParseResult[dict[str, Any]]:
    text = (raw or "").strip()
    if not text:
        return ParseFailed("empty_response", raw=raw or "")
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        return ParseFailed(f"invalid_json: {exc.msg}", raw=raw)
    if not isinstance(parsed, dict):
        return ParseFailed("invalid_schema: expected object", raw=raw)
    return ParseOk(parsed)


def _clean_terms(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    seen: set[str] = set()
    terms: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        term = " ".join(item.split())
        if not term or term.lower() in seen:
            continue
        seen.add(term.lower())
        terms.append(term)
    return terms


def parse_keyword_set(raw: str) -> ParseResult[KeywordSet]:
    result = parse_json_object(raw)
    if isinstance(result, ParseFailed):
        return result
    data = result.value
    if not any(isinstance(data.get(key), list) for key in ("required", "preferred", "soft")):
        return ParseFailed("invalid_schema: no keyword lists", raw=raw)
    return ParseOk(
        KeywordSet(
            required=_clean_terms(data.get("required")),
            preferred=_clean_terms(data.get("preferred")),
            soft=_clean_terms(data.get("soft")),
        )
    )


def _coerce_score(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    if number != number:  # NaN
        return None
    return max(0, min(100, int(round(number))))


def parse_sub_scores(raw: str) -> ParseResult[dict[str, int]]:
    result = parse_json_object(raw)
    if isinstance(result, ParseFailed):
        return result
    scores: dict[str, int] = {}
    for key in SUB_SCORE_KEYS:
        coerced = _coerce_score(result.value.get(key))
        if coerced is not None:
            scores[key] = coerced
    if not scores:
        return ParseFailed("invalid_schema: no sub-scores", raw=raw)
    return ParseOk(scores)


def parse_suggestions(raw: str) -> ParseResult[list[dict[str, Any]]]:
    result = parse_json_object(raw)
    if isinstance(result, ParseFailed):
        return result
    items = result.value.get("suggestions")
    if not isinstance(items, list):
        return ParseFailed("invalid_schema: suggestions must be a list", raw=raw)
    return ParseOk([item for item in items if isinstance(item, dict)])


def _strip_fences(text: str) -> str:
    cleaned = (text or "").strip()
    fenced = re.match(r"^```[a-zA-Z]*\s*(.*?)\s*```$", cleaned, re.DOTALL)
    return fenced.group(1).strip() if fenced else cleaned


class PromptedReasoner:
    """LanguageReasoner backed by a chat-completion client and fixed prompt templates."""

    def __init__(self, client: CompletionClient, *, timeout_s: float | None = None):
        self._client = client
        self._timeout_s = timeout_s if timeout_s is not None else settings.reasoner_timeout_s

    @property
    def model(self) -> str:
        return getattr(self._client, "model", "unknown")

    def _log_run(
        self,
        *,
        run_id: str,
        capability: Capability,
        schema_valid: bool,
        status: str,
        started: float,
        error_code: str | None = None,
    ) -> None:
        try:
            log_reasoner_run(
                run_id=run_id,
                capability=capability,
                model=self.model,
                schema_valid=schema_valid,
                status=status,
                error_code=error_code,
                latency_ms=int((time.perf_counter() - started) * 1000),
            )
        except Exception:  # pragma: no cover
            logger.debug("reasoner_run_logging_failed", exc_info=True)

    async def _complete(
        self,
        capability: Capability,
        request: CompletionRequest,
        run_id: str,
        started: float,
    ) -> str:
        try:
            result = await asyncio.wait_for(self._client.complete(request), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            logger.warning("reasoner_timeout capability=%s timeout_s=%s", capability, self._timeout_s)
            self._log_run(
                run_id=run_id,
                capability=capability,
                schema_valid=False,
                status="timeout",
                started=started,
                error_code="timeout",
            )
            raise ReasonerUnavailable(
                f"Language reasoner timed out during {capability}.", code="reasoner_timeout"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            logger.warning("reasoner_call_failed capability=%s model=%s: %s", capability, self.model, exc)
            self._log_run(
                run_id=run_id,
                capability=capability,
                schema_valid=False,
                status="error",
                started=started,
                error_code=type(exc).__name__,
            )
            raise ReasonerUnavailable(f"Language reasoner failed during {capability}.") from exc
        return result.text

    def _request(self, capability: Capability, messages, *, json_mode: bool) -> CompletionRequest:
        return CompletionRequest(
            messages=messages,
            temperature=float(get_scoring_value(f"reasoner.{capability}.temperature", 0.2)),
            max_tokens=int(get_scoring_value(f"reasoner.{capability}.max_tokens", 900)),
            json_mode=json_mode,
        )

    async def _structured(self, capability: Capability, messages, parser) -> ParseResult:
        run_id = uuid.uuid4().hex
        started = time.perf_counter()
        raw = await self._complete(
            capability, self._request(capability, messages, json_mode=True), run_id, started
        )
        parsed = parser(raw)
        if isinstance(parsed, ParseFailed):
            logger.warning("reasoner_parse_failed capability=%s reason=%s", capability, parsed.reason)
            self._log_run(
                run_id=run_id,
                capability=capability,
                schema_valid=False,
                status="empty" if parsed.reason == "empty_response" else "invalid_schema",
                started=started,
                error_code=parsed.reason.split(":", 1)[0],
            )
        else:
            self._log_run(
                run_id=run_id, capability=capability, schema_valid=True, status="success", started=started
            )
        return parsed

    async def extract_keywords(self, job_description: str) -> ParseResult[KeywordSet]:
        return await self._structured(
            "extract", prompts.build_keyword_messages(job_description), parse_keyword_set
        )

    async def score_resume(
        self,
        resume_text: str,
        job_description: str,
        target_keywords: Sequence[str],
    ) -> ParseResult[dict[str, int]]:
        messages = prompts.build_score_messages(resume_text, job_description, target_keywords)
        return await self._structured("score", messages, parse_sub_scores)

    async def suggest(
        self,
        *,
        job_title: str,
        company: str,
        overall_score: int,
        missing_keywords: Sequence[str],
        category_scores: dict[str, int],
        count: int,
        icons: Sequence[str],
        colors: Sequence[str],
        body_max: int,
    ) -> ParseResult[list[dict[str, Any]]]:
        messages = prompts.build_suggestion_messages(
            job_title=job_title,
            company=company,
            overall_score=overall_score,
            missing_keywords=missing_keywords,
            category_scores=category_scores,
            count=count,
            icons=icons,
            colors=colors,
            body_max=body_max,
        )
        return await self._structured("suggest", messages, parse_suggestions)

    async def rewrite(
        self,
        *,
        resume_text: str,
        job_description: str,
        confirmed_skills: Sequence[str],
    ) -> str:
        run_id = uuid.uuid4().hex
        started = time.perf_counter()
        messages = prompts.build_rewrite_messages(
            resume_text=resume_text,
            job_description=job_description,
            confirmed_skills=confirmed_skills,
        )
        raw = await self._complete(
            "rewrite", self._request("rewrite", messages, json_mode=False), run_id, started
        )
        text = _strip_fences(raw)
        if not text:
            self._log_run(
                run_id=run_id,
                capability="rewrite",
                schema_valid=False,
                status="empty",
                started=started,
                error_code="empty_response",
            )
            raise ReasonerUnavailable("Language reasoner returned an empty rewrite.", code="rewrite_empty")
        self._log_run(run_id=run_id, capability="rewrite", schema_valid=True, status="success", started=started)
        return text
