"""SQLite access layer for user preference vectors, libraries, and feedback."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Protocol

import numpy as np

from scout.config import PROFILE_DB_PATH, get_logger
from scout.core.errors import ProfileNotFoundError
from scout.core.models import FeedbackType, UserProfile

logger = get_logger(__name__)

EXCLUDING_FEEDBACK = tuple(f.value for f in FeedbackType if f.excludes)


class UserProfileStore(Protocol):
    def get(self, user_id: str) -> UserProfile:
        """Profile for ``user_id``; raises ProfileNotFoundError when absent."""
        ...


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_vector(vector) -> str | None:
    if vector is None:
        return None
    return json.dumps(np.asarray(vector, dtype=np.float32).tolist())


def _load_vector(raw: str | None) -> np.ndarray | None:
    if not raw:
        return None
    return np.asarray(json.loads(raw), dtype=np.float32)


class SQLiteProfileStore:
    def __init__(self, db_path: Path | str = PROFILE_DB_PATH) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One connection per operation: committed on success, always closed."""
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON;")
            with conn:
                yield conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS user_profiles (
                    user_id TEXT PRIMARY KEY,
                    preference_vector TEXT,
                    learned_vector TEXT,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS user_games (
                    user_id TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    playtime_minutes INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, item_id),
                    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS user_feedback (
                    user_id TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    feedback_type TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, item_id),
                    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_user_feedback_type
                    ON user_feedback(user_id, feedback_type);
                """
            )

    # -- reads ---------------------------------------------------------------

    def get(self, user_id: str) -> UserProfile:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT preference_vector, learned_vector FROM user_profiles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                raise ProfileNotFoundError(f"no profile for user {user_id}")

            owned = {
                r["item_id"]
                for r in conn.execute(
                    "SELECT item_id FROM user_games WHERE user_id = ?", (user_id,)
                )
            }
            placeholders = ",".join("?" for _ in EXCLUDING_FEEDBACK)
            not_interested = {
                r["item_id"]
                for r in conn.execute(
                    f"SELECT item_id FROM user_feedback "
                    f"WHERE user_id = ? AND feedback_type IN ({placeholders})",
                    (user_id, *EXCLUDING_FEEDBACK),
                )
            }

        return UserProfile(
            user_id=user_id,
            baseline_vector=_load_vector(row["preference_vector"]),
            learned_vector=_load_vector(row["learned_vector"]),
            owned_ids=owned,
            not_interested_ids=not_interested,
        )

    # -- writes (used by sync jobs and fixtures) -----------------------------

    def save_vectors(
        self,
        user_id: str,
        baseline_vector=None,
        learned_vector=None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_profiles (user_id, preference_vector, learned_vector, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    preference_vector = excluded.preference_vector,
                    learned_vector = excluded.learned_vector,
                    updated_at = excluded.updated_at
                """,
                (user_id, _dump_vector(baseline_vector), _dump_vector(learned_vector), _utc_now()),
            )

    def set_owned(self, user_id: str, item_ids: Iterable[str]) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM user_games WHERE user_id = ?", (user_id,))
            conn.executemany(
                "INSERT INTO user_games (user_id, item_id) VALUES (?, ?)",
                [(user_id, str(i)) for i in item_ids],
            )

    def record_feedback(self, user_id: str, item_id: str, feedback: FeedbackType | str) -> None:
        feedback = FeedbackType(feedback)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_feedback (user_id, item_id, feedback_type, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, item_id) DO UPDATE SET
                    feedback_type = excluded.feedback_type,
                    created_at = excluded.created_at
                """,
                (user_id, str(item_id), feedback.value, _utc_now()),
            )
        logger.debug("Recorded %s feedback for user %s on %s", feedback.value, user_id, item_id)


__all__ = ["UserProfileStore", "SQLiteProfileStore", "EXCLUDING_FEEDBACK"]
