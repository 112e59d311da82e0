import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from resumeai.analytics.db import init_db, purge_old_records
from resumeai.api.v1.deps import get_store
from resumeai.core.config import settings
from resumeai.store.record_store import RecordStore

logger = logging.getLogger(__name__)

HOUSEKEEPING_INTERVAL_S = 300


def run_housekeeping(store: RecordStore) -> dict[str, int]:
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=max(1, settings.stale_analyzing_minutes))
    summary = {"stale_resumes": store.release_stale_analyzing(before=cutoff)}
    summary.update(purge_old_records())
    return summary


@asynccontextmanager
async def lifespan(app):
    store = get_store()
    store.init_schema()
    init_db()
    run_housekeeping(store)

    stop_event = asyncio.Event()

    async def housekeeping_loop() -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=HOUSEKEEPING_INTERVAL_S)
                break
            except asyncio.TimeoutError:
                pass
            try:
                summary = run_housekeeping(store)
            except Exception:
                logger.exception("housekeeping_failed")
                continue
            if any(summary.values()):
                logger.info("housekeeping_completed %s", summary)

    task = asyncio.create_task(housekeeping_loop())
    yield
    stop_event.set()
    if not task.done():
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    store.close()
