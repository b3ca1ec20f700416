"""
Data models and options persistence for suggest-harvest.
"""

import base64
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .config import SearchOptions

logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 2


class Tag(str, Enum):
    """Provenance label for the strategy that produced a query."""

    SEED = "SEED"
    SCRIPT_ALPHABET = "FA-AZ"
    SCRIPT_DOUBLE = "FA-2CHAR"
    SCRIPT_GAP = "FA-GAP"
    GENERIC_GAP = "EN-GAP"
    GENERIC_SUFFIX = "A-Z"
    GENERIC_PREFIX = "PASF"
    QUESTION = "QUES"


class RunStatus(str, Enum):
    """Status of a harvesting run."""

    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


def normalize_keyword(text: str) -> str:
    """Lowercase and trim a raw suggestion."""
    return text.lower().strip()


def keyword_id(normalized: str) -> str:
    """
    Deterministic id for a normalized keyword.

    URL-safe base64 of the UTF-8 bytes: reversible, so two keywords share an
    id only when their normalized text is identical.
    """
    return base64.urlsafe_b64encode(normalized.encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class QueueItem:
    """A single query to send to every enabled provider."""

    query: str
    tag: str
    cursor_position: int | None = None


@dataclass(frozen=True)
class KeywordRecord:
    """
    An accepted suggestion.

    Identity fields are frozen; ``metadata`` is filled in later by
    collaborators such as the intent labeler.
    """

    id: str
    keyword: str
    sources: tuple[str, ...]
    parent_query: str
    tag: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "id": self.id,
            "keyword": self.keyword,
            "sources": list(self.sources),
            "parent_query": self.parent_query,
            "tag": self.tag,
        }
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result


@dataclass
class RunState:
    """Observable state of the harvester."""

    status: RunStatus = RunStatus.IDLE
    progress: float = 0.0  # Percent, 0-100

    @property
    def is_running(self) -> bool:
        return self.status == RunStatus.RUNNING

    @property
    def is_cancelled(self) -> bool:
        return self.status == RunStatus.CANCELLED


class OptionsStore:
    """Key-value persistence for :class:`SearchOptions` backed by SQLite."""

    OPTIONS_KEY = "search_options"

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    updated_ts TEXT NOT NULL
                )
                """
            )
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def load(self) -> SearchOptions:
        """Load saved options; missing or malformed data gives the defaults."""
        try:
            conn = self._connect()
        except sqlite3.Error:
            logger.warning(f"Could not open options store {self.db_path}, using defaults")
            return SearchOptions()

        try:
            row = conn.execute(
                "SELECT value_json FROM preferences WHERE key = ?",
                (self.OPTIONS_KEY,),
            ).fetchone()
        except sqlite3.Error:
            logger.warning("Could not read saved options, using defaults")
            return SearchOptions()
        finally:
            conn.close()

        if not row:
            return SearchOptions()

        try:
            return SearchOptions.from_dict(json.loads(row[0]))
        except (ValueError, TypeError):
            logger.warning("Saved options are malformed, using defaults")
            return SearchOptions()

    def save(self, options: SearchOptions) -> bool:
        """Persist options, replacing any previous value.

        Returns False, after logging a warning, if the store cannot be written.
        """
        now = datetime.now(UTC).isoformat()
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            logger.warning(f"Could not open options store {self.db_path}, options not saved: {e}")
            return False

        try:
            conn.execute(
                """
                INSERT INTO preferences (key, value_json, updated_ts)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_ts = excluded.updated_ts
                """,
                (self.OPTIONS_KEY, json.dumps(options.to_dict()), now),
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Could not save options: {e}")
            return False
        finally:
            conn.close()
        return True
