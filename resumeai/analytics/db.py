from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from resumeai.core.config import settings


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _get_db_path() -> Path:
    return Path(settings.analytics_db_path)


def init_db() -> None:
    if not settings.analytics_enabled:
        return
    db_path = _get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS reasoner_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TEXT NOT NULL,
                run_id TEXT NOT NULL,
                capability TEXT NOT NULL,
                model TEXT NOT NULL,
                schema_valid INTEGER NOT NULL,
                status TEXT NOT NULL,
                error_code TEXT,
                latency_ms INTEGER
            )
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_reasoner_runs_created_at
            ON reasoner_runs (created_at)
            """
        )
        conn.commit()


def log_reasoner_run(
    *,
    run_id: str,
    capability: str,
    model: str,
    schema_valid: bool,
    status: str,
    error_code: str | None = None,
    latency_ms: int | None = None,
) -> None:
    if not settings.analytics_enabled:
        return
    db_path = _get_db_path()
    if not db_path.exists():
        init_db()
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO reasoner_runs (
                created_at, run_id, capability, model, schema_valid, status, error_code, latency_ms
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                _utc_now(),
                run_id,
                capability,
                model,
                1 if schema_valid else 0,
                status,
                error_code,
                latency_ms,
            ),
        )
        conn.commit()


def purge_old_records() -> dict[str, int]:
    if not settings.analytics_enabled:
        return {"reasoner_runs": 0}

    db_path = _get_db_path()
    if not db_path.exists():
        return {"reasoner_runs": 0}
    retention = max(1, int(settings.analytics_retention_days))

    with sqlite3.connect(db_path) as conn:
        cur = conn.execute(
            "DELETE FROM reasoner_runs WHERE created_at < datetime('now', ?)",
            (f"-{retention} days",),
        )
        deleted = int(cur.rowcount or 0)
        conn.commit()

    return {"reasoner_runs": deleted}


def get_reasoner_summary() -> dict[str, Any]:
    if not settings.analytics_enabled:
        return {"enabled": False}
    db_path = _get_db_path()
    if not db_path.exists():
        return {"enabled": True, "total": 0, "by_capability": {}}
    with sqlite3.connect(db_path) as conn:
        total = conn.execute("SELECT COUNT(*) FROM reasoner_runs").fetchone()[0]
        cur = conn.execute(
            """
            SELECT capability, status, COUNT(*), AVG(latency_ms)
            FROM reasoner_runs
            GROUP BY capability, status
            ORDER BY capability, status
            """
        )
        by_capability: dict[str, dict[str, Any]] = {}
        for capability, status, count, avg_latency in cur.fetchall():
            bucket = by_capability.setdefault(capability, {})
            bucket[status] = {
                "count": int(count),
                "avg_latency_ms": int(avg_latency) if avg_latency is not None else None,
            }
    return {"enabled": True, "total": int(total), "by_capability": by_capability}


def get_latest_runs(limit: int = 20) -> list[dict[str, Any]]:
    if not settings.analytics_enabled:
        return []
    db_path = _get_db_path()
    if not db_path.exists():
        return []
    with sqlite3.connect(db_path) as conn:
        conn.row_factory = sqlite3.Row
        rows = conn.execute(
            """
            SELECT created_at, run_id, capability, model, schema_valid, status, error_code, latency_ms
            FROM reasoner_runs
            ORDER BY id DESC
            LIMIT ?
            """,
            (int(limit),),
        ).fetchall()
    return [{**dict(row), "schema_valid": bool(row["schema_valid"])} for row in rows]
