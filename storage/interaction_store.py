"""
Interaction store for code review history.

This module provides persistent storage for every completed review
interaction, plus the read-only aggregate queries behind the admin
endpoints, using SQLite.
"""

import sqlite3
import math
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from models.data_models import (
    InteractionRecord,
    InteractionStats,
    LanguageStat,
    StoredInteraction,
)


class InteractionStore:
    """
    Append-only storage for review interactions.

    Uses SQLite with:
    - One row per interaction in ``code_interactions``
    - An (address, time DESC) index for per-address listings
    - A (time DESC) index for the recent-activity listing
    """

    def __init__(self, db_path: str = "code_interactions.db"):
        """
        Initialize the Interaction Store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._initialize_database()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        """Create database schema if it doesn't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS code_interactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_code TEXT NOT NULL,
                    ai_response TEXT NOT NULL,
                    user_ip TEXT NOT NULL,
                    user_agent TEXT NOT NULL DEFAULT '',
                    code_language TEXT NOT NULL DEFAULT 'unknown',
                    session_id TEXT NOT NULL DEFAULT '',
                    response_time INTEGER NOT NULL DEFAULT 0,
                    timestamp TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_interactions_ip_time
                ON code_interactions(user_ip, timestamp DESC)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_interactions_time
                ON code_interactions(timestamp DESC)
            """)

    def insert(self, record: InteractionRecord) -> int:
        """
        Store one interaction.

        Args:
            record: The interaction to store

        Returns:
            The id assigned to the new row
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO code_interactions (
                    user_code, ai_response, user_ip, user_agent,
                    code_language, session_id, response_time, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.user_code,
                record.ai_response,
                record.user_ip,
                record.user_agent,
                record.code_language,
                record.session_id,
                record.response_time,
                _to_utc(record.timestamp).isoformat(timespec="microseconds"),
            ))
            return cursor.lastrowid

    def get(self, interaction_id: int) -> Optional[StoredInteraction]:
        """
        Retrieve a single interaction by id.

        Args:
            interaction_id: The row id

        Returns:
            The StoredInteraction if found, None otherwise
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM code_interactions WHERE id = ?",
                (interaction_id,)
            )
            row = cursor.fetchone()
            return self._row_to_interaction(row) if row else None

    def count(self, user_ip: Optional[str] = None) -> int:
        """Count interactions, optionally for one address."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            if user_ip is None:
                cursor.execute("SELECT COUNT(*) FROM code_interactions")
            else:
                cursor.execute(
                    "SELECT COUNT(*) FROM code_interactions WHERE user_ip = ?",
                    (user_ip,)
                )
            return cursor.fetchone()[0]

    def list_recent(self, page: int = 1, limit: int = 10) -> Tuple[List[StoredInteraction], int]:
        """
        List interactions newest first.

        Args:
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (interactions on the page, total interaction count)
        """
        offset = (page - 1) * limit
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM code_interactions
                ORDER BY timestamp DESC, id DESC
                LIMIT ? OFFSET ?
            """, (limit, offset))
            rows = cursor.fetchall()
            cursor.execute("SELECT COUNT(*) FROM code_interactions")
            total = cursor.fetchone()[0]

        return [self._row_to_interaction(row) for row in rows], total

    def list_by_ip(
        self,
        user_ip: str,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[StoredInteraction], int]:
        """
        List interactions from one address, newest first.

        Args:
            user_ip: Originating address
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (interactions on the page, total for the address)
        """
        offset = (page - 1) * limit
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM code_interactions
                WHERE user_ip = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ? OFFSET ?
            """, (user_ip, limit, offset))
            rows = cursor.fetchall()
            cursor.execute(
                "SELECT COUNT(*) FROM code_interactions WHERE user_ip = ?",
                (user_ip,)
            )
            total = cursor.fetchone()[0]

        return [self._row_to_interaction(row) for row in rows], total

    def get_stats(self, now: Optional[datetime] = None) -> InteractionStats:
        """
        Aggregate statistics over all stored interactions.

        Args:
            now: Reference time for "today" (defaults to current UTC time)

        Returns:
            InteractionStats with totals, per-language counts and mean latency
        """
        now = _to_utc(now or datetime.now(timezone.utc))
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                SELECT COUNT(*), COUNT(DISTINCT user_ip), AVG(response_time)
                FROM code_interactions
            """)
            total, unique_users, avg_time = cursor.fetchone()

            cursor.execute(
                "SELECT COUNT(*) FROM code_interactions WHERE timestamp >= ?",
                (today_start.isoformat(timespec="microseconds"),)
            )
            today = cursor.fetchone()[0]

            cursor.execute("""
                SELECT code_language, COUNT(*) AS count
                FROM code_interactions
                GROUP BY code_language
                ORDER BY count DESC, code_language ASC
            """)
            language_stats = [
                LanguageStat(language=row["code_language"], count=row["count"])
                for row in cursor.fetchall()
            ]

        return InteractionStats(
            total_interactions=total,
            unique_users=unique_users,
            today_interactions=today,
            language_stats=language_stats,
            average_response_time=float(avg_time or 0.0),
        )

    @staticmethod
    def total_pages(total: int, limit: int) -> int:
        """Number of pages needed to show ``total`` items."""
        return math.ceil(total / limit) if limit > 0 else 0

    def _row_to_interaction(self, row: sqlite3.Row) -> StoredInteraction:
        """Convert a database row to a StoredInteraction."""
        return StoredInteraction(
            id=row["id"],
            user_code=row["user_code"],
            ai_response=row["ai_response"],
            user_ip=row["user_ip"],
            user_agent=row["user_agent"],
            code_language=row["code_language"],
            session_id=row["session_id"],
            response_time=row["response_time"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )


def _to_utc(value: datetime) -> datetime:
    """Normalise naive or offset datetimes to aware UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
