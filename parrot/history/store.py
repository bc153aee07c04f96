"""SQLite message store.

Holds imported contacts and their messages, and caches each contact's
style profile as JSON. Implements the HistorySource protocol consumed by
the analyzer, the RAG manager and the reply generator.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from parrot.contracts.messages import Contact, Message, Sender
from parrot.errors import HistoryError
from parrot.style_profile import StyleProfile

logger = logging.getLogger(__name__)

DB_FILE_NAME = "messages.sqlite"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS contacts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    auto_reply_enabled INTEGER NOT NULL DEFAULT 0,
    is_group INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    style_profile TEXT
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contact_id INTEGER NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
    sender TEXT NOT NULL,
    content TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    UNIQUE (contact_id, sender, content, timestamp)
);

CREATE INDEX IF NOT EXISTS idx_messages_contact_time ON messages(contact_id, timestamp);
"""

_CONTACT_COLUMNS = "id, name, auto_reply_enabled, is_group, created_at, style_profile"


def _row_to_contact(row: sqlite3.Row) -> Contact:
    profile = StyleProfile.from_json(row["style_profile"]) if row["style_profile"] else None
    return Contact(
        id=row["id"],
        name=row["name"],
        auto_reply_enabled=bool(row["auto_reply_enabled"]),
        is_group=bool(row["is_group"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        style_profile=profile,
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        correspondent_id=row["contact_id"],
        sender=Sender(row["sender"]),
        content=row["content"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


class MessageStore:
    """Thread-safe SQLite store of contacts and messages.

    Each thread gets its own connection; all of them are closed by ``close``.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._local = threading.local()
        self._all_connections: set[sqlite3.Connection] = set()
        self._connections_lock = threading.Lock()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)

    # =========================================================================
    # Connection management
    # =========================================================================

    def _get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            try:
                conn = sqlite3.connect(str(self.db_path), timeout=30.0, check_same_thread=False)
            except sqlite3.Error as e:
                raise HistoryError(
                    f"Cannot open message store: {e}", path=str(self.db_path), cause=e
                ) from e
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            self._local.connection = conn
            with self._connections_lock:
                self._all_connections.add(conn)
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield this thread's connection; commit on success, roll back on error.

        sqlite3 errors are re-raised as HistoryError.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise HistoryError(f"Message store error: {e}", path=str(self.db_path), cause=e) from e
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        with self._connections_lock:
            for conn in self._all_connections:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.debug("Error closing connection: %s", e)
            self._all_connections.clear()
        self._local.connection = None

    # =========================================================================
    # Contacts
    # =========================================================================

    def add_contact(
        self, name: str, is_group: bool = False, auto_reply_enabled: bool = False
    ) -> Contact:
        """Return the contact named ``name``, creating it if needed.

        ``is_group`` is updated on an existing contact; ``auto_reply_enabled``
        only applies to new ones.
        """
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO contacts (name, auto_reply_enabled, is_group, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET is_group = excluded.is_group
                """,
                (name, int(auto_reply_enabled), int(is_group), datetime.now().isoformat()),
            )
            row = conn.execute(
                f"SELECT {_CONTACT_COLUMNS} FROM contacts WHERE name = ?", (name,)
            ).fetchone()
        return _row_to_contact(row)

    def get_contact(self, contact_id: int) -> Contact | None:
        with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_CONTACT_COLUMNS} FROM contacts WHERE id = ?", (contact_id,)
            ).fetchone()
        return _row_to_contact(row) if row else None

    def get_contact_by_name(self, name: str) -> Contact | None:
        with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_CONTACT_COLUMNS} FROM contacts WHERE name = ?", (name,)
            ).fetchone()
        return _row_to_contact(row) if row else None

    def list_contacts(self) -> list[Contact]:
        with self.connection() as conn:
            rows = conn.execute(
                f"SELECT {_CONTACT_COLUMNS} FROM contacts ORDER BY name COLLATE NOCASE"
            ).fetchall()
        return [_row_to_contact(row) for row in rows]

    def set_auto_reply(self, contact_id: int, enabled: bool) -> bool:
        """Returns False if the contact does not exist."""
        with self.connection() as conn:
            cursor = conn.execute(
                "UPDATE contacts SET auto_reply_enabled = ? WHERE id = ?",
                (int(enabled), contact_id),
            )
        return cursor.rowcount > 0

    def delete_contact(self, contact_id: int) -> bool:
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM contacts WHERE id = ?", (contact_id,))
        return cursor.rowcount > 0

    # =========================================================================
    # Style profile cache
    # =========================================================================

    def save_style_profile(self, contact_id: int, profile: StyleProfile) -> None:
        with self.connection() as conn:
            conn.execute(
                "UPDATE contacts SET style_profile = ? WHERE id = ?",
                (profile.to_json(), contact_id),
            )

    def invalidate_style_profile(self, contact_id: int) -> None:
        with self.connection() as conn:
            conn.execute("UPDATE contacts SET style_profile = NULL WHERE id = ?", (contact_id,))

    # =========================================================================
    # Messages
    # =========================================================================

    def insert_messages(self, messages: list[Message]) -> int:
        """Insert messages, skipping exact duplicates. Returns the number added.

        Any contact that received new messages loses its cached style profile.
        """
        if not messages:
            return 0
        rows = [
            (m.correspondent_id, m.sender.value, m.content, m.timestamp.isoformat())
            for m in messages
        ]
        with self.connection() as conn:
            before = conn.total_changes
            conn.executemany(
                """
                INSERT OR IGNORE INTO messages (contact_id, sender, content, timestamp)
                VALUES (?, ?, ?, ?)
                """,
                rows,
            )
            added = conn.total_changes - before
            if added:
                contact_ids = sorted({m.correspondent_id for m in messages})
                conn.executemany(
                    "UPDATE contacts SET style_profile = NULL WHERE id = ?",
                    [(cid,) for cid in contact_ids],
                )
        logger.info("Inserted %d of %d messages", added, len(messages))
        return added

    def get_messages(self, correspondent_id: int, limit: int = 100) -> list[Message]:
        """The most recent ``limit`` messages, oldest first."""
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, contact_id, sender, content, timestamp FROM messages
                WHERE contact_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (correspondent_id, limit),
            ).fetchall()
        return [_row_to_message(row) for row in reversed(rows)]

    def get_message_count(self, correspondent_id: int) -> int:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM messages WHERE contact_id = ?", (correspondent_id,)
            ).fetchone()
        return int(row[0])

    def get_stats(self) -> dict[str, Any]:
        with self.connection() as conn:
            contacts = conn.execute("SELECT COUNT(*) FROM contacts").fetchone()[0]
            groups = conn.execute("SELECT COUNT(*) FROM contacts WHERE is_group = 1").fetchone()[0]
            enabled = conn.execute(
                "SELECT COUNT(*) FROM contacts WHERE auto_reply_enabled = 1"
            ).fetchone()[0]
            messages = conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
        return {
            "contacts": contacts,
            "groups": groups,
            "auto_reply_enabled": enabled,
            "messages": messages,
        }
