from __future__ import annotations

import logging
from functools import lru_cache
from typing import NoReturn

from fastapi import Depends, HTTPException, status

from resumeai.ai.factory import get_reasoner
from resumeai.ai.reasoner import LanguageReasoner
from resumeai.core.config import settings
from resumeai.core.errors import PipelineError
from resumeai.core.locks import ResumeLockRegistry
from resumeai.services.lifecycle import ResumeLifecycleController
from resumeai.services.renderer import LocalTextRenderer, Renderer
from resumeai.services.resume_service import ResumeService
from resumeai.store.record_store import RecordStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_store() -> RecordStore:
    store = RecordStore(settings.record_store_path)
    store.init_schema()
    return store


@lru_cache(maxsize=1)
def _configured_reasoner() -> LanguageReasoner:
    return get_reasoner()


def get_language_reasoner() -> LanguageReasoner:
    try:
        return _configured_reasoner()
    except (RuntimeError, ValueError) as exc:
        logger.error("reasoner_not_configured: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Language reasoner is not configured.",
        ) from exc


@lru_cache(maxsize=1)
def get_renderer() -> Renderer:
    return LocalTextRenderer(settings.export_dir)


@lru_cache(maxsize=1)
def get_lock_registry() -> ResumeLockRegistry:
    return ResumeLockRegistry()


def get_controller(
    store: RecordStore = Depends(get_store),
    reasoner: LanguageReasoner = Depends(get_language_reasoner),
    renderer: Renderer = Depends(get_renderer),
    locks: ResumeLockRegistry = Depends(get_lock_registry),
) -> ResumeLifecycleController:
    return ResumeLifecycleController(store, reasoner, renderer, locks=locks)


def get_resume_service(store: RecordStore = Depends(get_store)) -> ResumeService:
    return ResumeService(store)


def raise_http_error(exc: PipelineError) -> NoReturn:
    message = str(exc)
    if exc.status_code >= 500:
        logger.error("request_failed code=%s: %s", exc.code, exc)
        if exc.status_code != status.HTTP_503_SERVICE_UNAVAILABLE:
            message = "The request could not be completed. Please try again."
    raise HTTPException(status_code=exc.status_code, detail={"error": message, "code": exc.code}) from exc
