from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from resumeai.core.errors import RenderError

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    def render(self, resume_id: int, text: str) -> str: ...

    def discard(self, ref: str) -> None: ...


class LocalTextRenderer:
    """Writes the optimized resume as a UTF-8 text file and returns its path."""

    def __init__(self, export_dir: str):
        self._export_dir = Path(export_dir)

    def render(self, resume_id: int, text: str) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = self._export_dir / f"resume-{resume_id}-{stamp}.txt"
        try:
            self._export_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise RenderError(f"Failed to write optimized resume for {resume_id}: {exc}") from exc
        logger.info("resume_rendered resume_id=%s path=%s", resume_id, target)
        return target.as_posix()

    def discard(self, ref: str) -> None:
        try:
            Path(ref).unlink(missing_ok=True)
        except OSError as exc:
            raise RenderError(f"Failed to remove rendered file {ref}: {exc}") from exc
        logger.info("resume_render_discarded path=%s", ref)
