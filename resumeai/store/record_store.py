from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterator

from resumeai.core.errors import ConcurrentUpdateError, RecordStoreError, ResumeNotFoundError
from resumeai.schemas.resume import (
    AnalysisOutcome,
    AnalysisRecord,
    KeywordSet,
    NewAnalysis,
    ResumeRecord,
    ResumeStatus,
    SkillGapOffer,
    Suggestion,
)

logger = logging.getLogger(__name__)

_RESUME_COLUMNS = (
    "id, owner_id, title, original_text, optimized_text, current_score, status, "
    "optimized_file_ref, version, created_at, updated_at"
)
_ANALYSIS_COLUMNS = (
    "a.id, a.resume_id, a.job_description, a.job_title, a.company_name, a.overall_score, "
    "a.keyword_score, a.format_score, a.experience_score, a.skills_score, a.action_word_score, "
    "a.previous_score, a.matched_keywords_json, a.missing_keywords_json, a.suggestions_json, a.created_at"
)
_UPDATABLE_RESUME_FIELDS = {
    "title",
    "original_text",
    "optimized_text",
    "current_score",
    "status",
    "optimized_file_ref",
}

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS resumes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        owner_id TEXT NOT NULL,
        title TEXT NOT NULL,
        original_text TEXT NOT NULL,
        optimized_text TEXT,
        current_score INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'DRAFT',
        optimized_file_ref TEXT,
        version INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_resumes_owner_updated
    ON resumes (owner_id, updated_at);
    """,
    """
    CREATE TABLE IF NOT EXISTS analyses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        resume_id INTEGER NOT NULL REFERENCES resumes (id) ON DELETE CASCADE,
        job_description TEXT NOT NULL,
        job_title TEXT NOT NULL,
        company_name TEXT NOT NULL,
        overall_score INTEGER NOT NULL,
        keyword_score INTEGER NOT NULL,
        format_score INTEGER NOT NULL,
        experience_score INTEGER NOT NULL,
        skills_score INTEGER NOT NULL,
        action_word_score INTEGER NOT NULL,
        previous_score INTEGER NOT NULL DEFAULT 0,
        matched_keywords_json TEXT NOT NULL,
        missing_keywords_json TEXT NOT NULL,
        suggestions_json TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_analyses_resume_created
    ON analyses (resume_id, created_at, id);
    """,
    """
    CREATE TABLE IF NOT EXISTS skill_offers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        resume_id INTEGER NOT NULL REFERENCES resumes (id) ON DELETE CASCADE,
        job_fingerprint TEXT NOT NULL,
        keywords_json TEXT NOT NULL,
        unconfirmed_skills_json TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_skill_offers_lookup
    ON skill_offers (resume_id, job_fingerprint, id);
    """,
)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _row_to_resume(row: sqlite3.Row) -> ResumeRecord:
    return ResumeRecord(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        original_text=row["original_text"],
        optimized_text=row["optimized_text"],
        current_score=row["current_score"],
        status=ResumeStatus(row["status"]),
        optimized_file_ref=row["optimized_file_ref"],
        version=row["version"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_analysis(row: sqlite3.Row) -> AnalysisRecord:
    return AnalysisRecord(
        id=row["id"],
        resume_id=row["resume_id"],
        job_description=row["job_description"],
        job_title=row["job_title"],
        company_name=row["company_name"],
        overall_score=row["overall_score"],
        keyword_score=row["keyword_score"],
        format_score=row["format_score"],
        experience_score=row["experience_score"],
        skills_score=row["skills_score"],
        action_word_score=row["action_word_score"],
        previous_score=row["previous_score"],
        matched_keywords=json.loads(row["matched_keywords_json"] or "[]"),
        missing_keywords=json.loads(row["missing_keywords_json"] or "[]"),
        suggestions=[Suggestion(**item) for item in json.loads(row["suggestions_json"] or "[]")],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class RecordStore:
    """SQLite-backed store for resumes, analyses and skill-gap offers.

    Every read and write is scoped by owner id. A resume that belongs to another
    owner is indistinguishable from one that does not exist.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def _get_connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is not None:
                return self._conn

            if self._db_path != ":memory:":
                directory = os.path.dirname(self._db_path)
                if directory:
                    os.makedirs(directory, exist_ok=True)

            conn = sqlite3.connect(
                self._db_path,
                check_same_thread=False,
                timeout=5,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            if self._db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            conn.execute("PRAGMA foreign_keys=ON;")
            for statement in _SCHEMA:
                conn.execute(statement)
            self._conn = conn
            return conn

    def init_schema(self) -> None:
        self._get_connection()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_connection()
        with self._lock:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise RecordStoreError(f"Record store unavailable: {exc}") from exc
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    conn.execute("ROLLBACK")
                    raise RecordStoreError(f"Record store commit failed: {exc}") from exc

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn = self._get_connection()
        with self._lock:
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise RecordStoreError(f"Record store query failed: {exc}") from exc

    # resumes

    def create_resume(
        self,
        owner_id: str,
        *,
        title: str,
        original_text: str,
        status: ResumeStatus = ResumeStatus.DRAFT,
        optimized_text: str | None = None,
    ) -> ResumeRecord:
        try:
            with self._transaction() as conn:
                resume_id = self._insert_resume(
                    conn,
                    owner_id,
                    title=title,
                    original_text=original_text,
                    status=status,
                    optimized_text=optimized_text,
                )
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to create resume: {exc}") from exc
        return self._require_resume(owner_id, resume_id)

    def _insert_resume(
        self,
        conn: sqlite3.Connection,
        owner_id: str,
        *,
        title: str,
        original_text: str,
        status: ResumeStatus,
        optimized_text: str | None,
    ) -> int:
        now = _utc_now()
        cur = conn.execute(
            """
            INSERT INTO resumes (
                owner_id, title, original_text, optimized_text, current_score, status,
                optimized_file_ref, version, created_at, updated_at
            ) VALUES (?, ?, ?, ?, 0, ?, NULL, 0, ?, ?)
            """,
            (owner_id, title, original_text, optimized_text, status.value, now, now),
        )
        return int(cur.lastrowid)

    def get_resume(self, owner_id: str, resume_id: int) -> ResumeRecord | None:
        rows = self._query(
            f"SELECT {_RESUME_COLUMNS} FROM resumes WHERE id = ? AND owner_id = ?",
            (resume_id, owner_id),
        )
        return _row_to_resume(rows[0]) if rows else None

    def _require_resume(self, owner_id: str, resume_id: int) -> ResumeRecord:
        resume = self.get_resume(owner_id, resume_id)
        if resume is None:
            raise ResumeNotFoundError()
        return resume

    def list_resumes(self, owner_id: str) -> list[ResumeRecord]:
        rows = self._query(
            f"SELECT {_RESUME_COLUMNS} FROM resumes WHERE owner_id = ? ORDER BY updated_at DESC, id DESC",
            (owner_id,),
        )
        return [_row_to_resume(row) for row in rows]

    def _apply_resume_update(
        self,
        conn: sqlite3.Connection,
        owner_id: str,
        resume_id: int,
        changes: dict[str, Any],
        expected_version: int | None,
    ) -> None:
        unknown = set(changes) - _UPDATABLE_RESUME_FIELDS
        if unknown:
            raise ValueError(f"Unknown resume fields: {sorted(unknown)}")

        assignments = []
        params: list[Any] = []
        for field_name, value in changes.items():
            if isinstance(value, ResumeStatus):
                value = value.value
            assignments.append(f"{field_name} = ?")
            params.append(value)
        assignments.append("version = version + 1")
        assignments.append("updated_at = ?")
        params.append(_utc_now())

        where = "id = ? AND owner_id = ?"
        params.extend([resume_id, owner_id])
        if expected_version is not None:
            where += " AND version = ?"
            params.append(expected_version)

        cur = conn.execute(f"UPDATE resumes SET {', '.join(assignments)} WHERE {where}", tuple(params))
        if cur.rowcount:
            return

        exists = conn.execute(
            "SELECT version FROM resumes WHERE id = ? AND owner_id = ?", (resume_id, owner_id)
        ).fetchone()
        if exists is None:
            raise ResumeNotFoundError()
        raise ConcurrentUpdateError(
            f"Resume {resume_id} was modified concurrently "
            f"(expected version {expected_version}, found {exists['version']})."
        )

    def update_resume(
        self,
        owner_id: str,
        resume_id: int,
        *,
        expected_version: int | None = None,
        **changes: Any,
    ) -> ResumeRecord:
        try:
            with self._transaction() as conn:
                self._apply_resume_update(conn, owner_id, resume_id, changes, expected_version)
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to update resume {resume_id}: {exc}") from exc
        return self._require_resume(owner_id, resume_id)

    def delete_resume(self, owner_id: str, resume_id: int) -> bool:
        try:
            with self._transaction() as conn:
                cur = conn.execute(
                    "DELETE FROM resumes WHERE id = ? AND owner_id = ?", (resume_id, owner_id)
                )
                return bool(cur.rowcount)
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to delete resume {resume_id}: {exc}") from exc

    # analyses

    def _insert_analysis(self, conn: sqlite3.Connection, resume_id: int, new: NewAnalysis) -> int:
        breakdown = new.breakdown
        cur = conn.execute(
            """
            INSERT INTO analyses (
                resume_id, job_description, job_title, company_name, overall_score,
                keyword_score, format_score, experience_score, skills_score, action_word_score,
                previous_score, matched_keywords_json, missing_keywords_json, suggestions_json, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                resume_id,
                new.job_description,
                new.job_title,
                new.company_name,
                breakdown.overall_score,
                breakdown.keyword_score,
                breakdown.format_score,
                breakdown.experience_score,
                breakdown.skills_score,
                breakdown.action_word_score,
                new.previous_score,
                json.dumps(breakdown.matched_keywords, ensure_ascii=False),
                json.dumps(breakdown.missing_keywords, ensure_ascii=False),
                json.dumps([s.model_dump() for s in new.suggestions], ensure_ascii=False),
                _utc_now(),
            ),
        )
        return int(cur.lastrowid)

    def _require_analysis(self, owner_id: str, analysis_id: int) -> AnalysisRecord:
        analysis = self.get_analysis(owner_id, analysis_id)
        if analysis is None:
            raise RecordStoreError(f"Analysis {analysis_id} vanished after commit.")
        return analysis

    def commit_analysis(
        self,
        owner_id: str,
        resume_id: int,
        new: NewAnalysis,
        *,
        expected_version: int | None,
        resume_changes: dict[str, Any],
    ) -> AnalysisOutcome:
        """Insert an analysis and apply the resume update in one transaction."""
        try:
            with self._transaction() as conn:
                self._apply_resume_update(conn, owner_id, resume_id, resume_changes, expected_version)
                analysis_id = self._insert_analysis(conn, resume_id, new)
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to persist analysis for resume {resume_id}: {exc}") from exc
        return AnalysisOutcome(
            resume=self._require_resume(owner_id, resume_id),
            analysis=self._require_analysis(owner_id, analysis_id),
        )

    def create_resume_with_analysis(
        self,
        owner_id: str,
        *,
        title: str,
        original_text: str,
        status: ResumeStatus,
        optimized_text: str | None,
        new: NewAnalysis,
    ) -> AnalysisOutcome:
        try:
            with self._transaction() as conn:
                resume_id = self._insert_resume(
                    conn,
                    owner_id,
                    title=title,
                    original_text=original_text,
                    status=status,
                    optimized_text=optimized_text,
                )
                analysis_id = self._insert_analysis(conn, resume_id, new)
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to persist free-text analysis: {exc}") from exc
        return AnalysisOutcome(
            resume=self._require_resume(owner_id, resume_id),
            analysis=self._require_analysis(owner_id, analysis_id),
        )

    def get_analysis(self, owner_id: str, analysis_id: int) -> AnalysisRecord | None:
        rows = self._query(
            f"""
            SELECT {_ANALYSIS_COLUMNS}
            FROM analyses a JOIN resumes r ON r.id = a.resume_id
            WHERE a.id = ? AND r.owner_id = ?
            """,
            (analysis_id, owner_id),
        )
        return _row_to_analysis(rows[0]) if rows else None

    def list_analyses(self, owner_id: str, resume_id: int, limit: int | None = None) -> list[AnalysisRecord]:
        sql = f"""
            SELECT {_ANALYSIS_COLUMNS}
            FROM analyses a JOIN resumes r ON r.id = a.resume_id
            WHERE a.resume_id = ? AND r.owner_id = ?
            ORDER BY a.created_at DESC, a.id DESC
        """
        params: tuple = (resume_id, owner_id)
        if limit is not None:
            sql += " LIMIT ?"
            params = (resume_id, owner_id, int(limit))
        return [_row_to_analysis(row) for row in self._query(sql, params)]

    def latest_analysis(self, owner_id: str, resume_id: int) -> AnalysisRecord | None:
        analyses = self.list_analyses(owner_id, resume_id, limit=1)
        return analyses[0] if analyses else None

    # skill-gap offers

    def save_skill_offer(
        self,
        owner_id: str,
        resume_id: int,
        *,
        job_fingerprint: str,
        keywords: KeywordSet,
        unconfirmed_skills: list[str],
    ) -> SkillGapOffer:
        try:
            with self._transaction() as conn:
                owned = conn.execute(
                    "SELECT 1 FROM resumes WHERE id = ? AND owner_id = ?", (resume_id, owner_id)
                ).fetchone()
                if owned is None:
                    raise ResumeNotFoundError()
                cur = conn.execute(
                    """
                    INSERT INTO skill_offers (
                        resume_id, job_fingerprint, keywords_json, unconfirmed_skills_json, created_at
                    ) VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        resume_id,
                        job_fingerprint,
                        keywords.model_dump_json(),
                        json.dumps(unconfirmed_skills, ensure_ascii=False),
                        _utc_now(),
                    ),
                )
                offer_id = int(cur.lastrowid)
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to store skill offer for resume {resume_id}: {exc}") from exc
        offer = self.latest_skill_offer(owner_id, resume_id, job_fingerprint)
        if offer is None or offer.id != offer_id:
            raise RecordStoreError(f"Skill offer {offer_id} vanished after commit.")
        return offer

    def latest_skill_offer(self, owner_id: str, resume_id: int, job_fingerprint: str) -> SkillGapOffer | None:
        rows = self._query(
            """
            SELECT o.id, o.resume_id, o.job_fingerprint, o.keywords_json, o.unconfirmed_skills_json, o.created_at
            FROM skill_offers o JOIN resumes r ON r.id = o.resume_id
            WHERE o.resume_id = ? AND o.job_fingerprint = ? AND r.owner_id = ?
            ORDER BY o.id DESC
            LIMIT 1
            """,
            (resume_id, job_fingerprint, owner_id),
        )
        if not rows:
            return None
        row = rows[0]
        return SkillGapOffer(
            id=row["id"],
            resume_id=row["resume_id"],
            job_fingerprint=row["job_fingerprint"],
            keywords=KeywordSet.model_validate_json(row["keywords_json"]),
            unconfirmed_skills=json.loads(row["unconfirmed_skills_json"] or "[]"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # dashboard

    def stats(self, owner_id: str, *, since: datetime) -> dict[str, int]:
        total = self._query("SELECT COUNT(*) AS n FROM resumes WHERE owner_id = ?", (owner_id,))[0]["n"]
        avg_row = self._query(
            """
            SELECT AVG(a.overall_score) AS avg_score
            FROM analyses a JOIN resumes r ON r.id = a.resume_id
            WHERE r.owner_id = ?
            """,
            (owner_id,),
        )[0]
        optimized_today = self._query(
            """
            SELECT COUNT(*) AS n FROM resumes
            WHERE owner_id = ? AND status = ? AND updated_at >= ?
            """,
            (owner_id, ResumeStatus.OPTIMIZED.value, since.astimezone(timezone.utc).isoformat(timespec="microseconds")),
        )[0]["n"]
        avg_score = avg_row["avg_score"]
        return {
            "total_resumes": int(total),
            "avg_score": (
                int(Decimal(str(avg_score)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
                if avg_score is not None
                else 0
            ),
            "optimized_today": int(optimized_today),
        }

    # maintenance

    def release_stale_analyzing(self, *, before: datetime) -> int:
        """Settle resumes left in ANALYZING by a request that never finished.

        The version bump makes any request still holding the old version fail
        its final compare-and-set instead of overwriting the settled status.
        """
        try:
            with self._transaction() as conn:
                cur = conn.execute(
                    """
                    UPDATE resumes
                    SET status = CASE WHEN optimized_text IS NULL THEN ? ELSE ? END,
                        version = version + 1,
                        updated_at = ?
                    WHERE status = ? AND updated_at < ?
                    """,
                    (
                        ResumeStatus.DRAFT.value,
                        ResumeStatus.OPTIMIZED.value,
                        _utc_now(),
                        ResumeStatus.ANALYZING.value,
                        before.astimezone(timezone.utc).isoformat(timespec="microseconds"),
                    ),
                )
                released = int(cur.rowcount or 0)
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to release stale resumes: {exc}") from exc
        if released:
            logger.warning("stale_analyzing_released count=%s", released)
        return released
