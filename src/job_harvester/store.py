"""
Job Store - storage interface used by the persistence gate, with a SQLite default
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from job_harvester.errors import StoreError

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL UNIQUE,
    title TEXT,
    company TEXT,
    location TEXT,
    description TEXT,
    source TEXT,
    salary_raw TEXT,
    salary_min REAL,
    salary_max REAL,
    job_type TEXT,
    experience_level TEXT,
    is_remote INTEGER NOT NULL DEFAULT 0,
    tags TEXT,
    posted_date TEXT,
    extracted_data TEXT,
    collected_at TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_jobs_title_company ON jobs(title, company);
"""

COLUMNS = (
    "url",
    "title",
    "company",
    "location",
    "description",
    "source",
    "salary_raw",
    "salary_min",
    "salary_max",
    "job_type",
    "experience_level",
    "is_remote",
    "tags",
    "posted_date",
    "extracted_data",
    "collected_at",
)

JSON_COLUMNS = ("tags", "extracted_data")


class JobStore(ABC):
    """Minimal storage contract: lookup by URL, fuzzy lookup, insert."""

    @abstractmethod
    def find_by_url(self, url: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def find_similar(self, title: str, company: str) -> Optional[Dict[str, Any]]:
        """Return a stored job whose title and company contain the given ones (case-insensitive)."""

    @abstractmethod
    def insert(self, record: Dict[str, Any]) -> int:
        """Insert a job record and return its row id. Raises StoreError on failure."""

    @abstractmethod
    def count(self) -> int:
        ...

    def close(self) -> None:
        pass


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteJobStore(JobStore):
    """JobStore backed by a single SQLite file (or ':memory:')."""

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(self.path)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(SCHEMA)
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open job store at {self.path}: {exc}") from exc
        logger.info("Job store ready: %s", self.path)

    def _row_to_dict(self, row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
        if row is None:
            return None
        record = dict(row)
        for column in JSON_COLUMNS:
            raw = record.get(column)
            if raw:
                try:
                    record[column] = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Invalid JSON in %s for job %s", column, record.get("id"))
        record["is_remote"] = bool(record.get("is_remote"))
        return record

    def find_by_url(self, url: str) -> Optional[Dict[str, Any]]:
        try:
            cur = self.conn.execute("SELECT * FROM jobs WHERE url = ?", (url,))
            return self._row_to_dict(cur.fetchone())
        except sqlite3.Error as exc:
            raise StoreError(f"Lookup by url failed: {exc}") from exc

    def find_similar(self, title: str, company: str) -> Optional[Dict[str, Any]]:
        if not title or not company:
            return None
        try:
            cur = self.conn.execute(
                """
                SELECT * FROM jobs
                WHERE LOWER(title) LIKE ? ESCAPE '\\'
                  AND LOWER(company) LIKE ? ESCAPE '\\'
                LIMIT 1
                """,
                (
                    f"%{_escape_like(title.lower())}%",
                    f"%{_escape_like(company.lower())}%",
                ),
            )
            return self._row_to_dict(cur.fetchone())
        except sqlite3.Error as exc:
            raise StoreError(f"Similarity lookup failed: {exc}") from exc

    def insert(self, record: Dict[str, Any]) -> int:
        values = []
        for column in COLUMNS:
            value = record.get(column)
            if column in JSON_COLUMNS:
                value = json.dumps(value if value is not None else ([] if column == "tags" else {}), default=str)
            elif column == "is_remote":
                value = 1 if value else 0
            values.append(value)

        placeholders = ", ".join("?" for _ in COLUMNS)
        try:
            cur = self.conn.execute(
                f"INSERT INTO jobs ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreError(f"Insert failed for {record.get('url')}: {exc}") from exc
        return int(cur.lastrowid)

    def count(self) -> int:
        try:
            return int(self.conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0])
        except sqlite3.Error as exc:
            raise StoreError(f"Count failed: {exc}") from exc

    def close(self) -> None:
        try:
            self.conn.close()
        except sqlite3.Error:
            logger.debug("Closing job store failed", exc_info=True)
