"""Read-only adapter over the WhatsApp desktop ``ChatStorage.sqlite``.

The database belongs to WhatsApp and its Core Data schema is not under our
control, so the adapter probes the columns it needs once, on first
connect, and builds its queries from what is actually there. Timestamps
are Core Data reference times: seconds since 2001-01-01.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from parrot.contracts.messages import Message, Sender
from parrot.errors import ErrorCode, HistoryError, history_db_not_found

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = (
    Path.home()
    / "Library"
    / "Group Containers"
    / "group.net.whatsapp.WhatsApp.shared"
    / "ChatStorage.sqlite"
)

# 2001-01-01 00:00:00 UTC as a Unix timestamp
CORE_DATA_EPOCH_UNIX = 978307200

MESSAGE_TABLE = "ZWAMESSAGE"
SESSION_TABLE = "ZWACHATSESSION"
REQUIRED_MESSAGE_COLUMNS = frozenset({"Z_PK", "ZTEXT", "ZISFROMME", "ZMESSAGEDATE", "ZCHATSESSION"})
REQUIRED_SESSION_COLUMNS = frozenset({"Z_PK", "ZPARTNERNAME"})
GROUP_SESSION_TYPE = 1


def core_data_to_datetime(value: float | None) -> datetime:
    """Local naive datetime for a Core Data timestamp; now() when missing."""
    if not value or value <= 0:
        return datetime.now()
    return datetime.fromtimestamp(CORE_DATA_EPOCH_UNIX + value)


@dataclass(frozen=True)
class WhatsAppChat:
    id: int
    name: str
    jid: str
    is_group: bool
    unread_count: int = 0


@dataclass(frozen=True)
class WhatsAppMessage:
    """A message row joined with its chat session."""

    id: int
    chat_id: int
    chat_name: str
    text: str
    is_from_me: bool
    timestamp: datetime
    sender_name: str | None
    is_group: bool

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            correspondent_id=self.chat_id,
            sender=Sender.SELF if self.is_from_me else Sender.OTHER,
            content=self.text,
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class SchemaInfo:
    message_columns: frozenset[str]
    session_columns: frozenset[str]

    def has_message(self, column: str) -> bool:
        return column in self.message_columns

    def has_session(self, column: str) -> bool:
        return column in self.session_columns


def probe_schema(conn: sqlite3.Connection) -> SchemaInfo:
    """Read the column sets of the message and chat-session tables.

    Raises:
        HistoryError: If a required column is missing.
    """
    message_columns = frozenset(
        row[1] for row in conn.execute(f"PRAGMA table_info({MESSAGE_TABLE})").fetchall()
    )
    session_columns = frozenset(
        row[1] for row in conn.execute(f"PRAGMA table_info({SESSION_TABLE})").fetchall()
    )
    missing = sorted(
        (REQUIRED_MESSAGE_COLUMNS - message_columns) | (REQUIRED_SESSION_COLUMNS - session_columns)
    )
    if missing:
        raise HistoryError(
            f"Unsupported WhatsApp schema, missing columns: {', '.join(missing)}",
            code=ErrorCode.STO_SCHEMA_UNSUPPORTED,
            details={"missing_columns": missing},
        )
    return SchemaInfo(message_columns, session_columns)


class WhatsAppDatabase:
    """Read-only access to WhatsApp chats and messages.

    Implements HistorySource with chat-session primary keys as
    correspondent ids.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH) -> None:
        self.db_path = db_path
        self._connection: sqlite3.Connection | None = None
        self._schema: SchemaInfo | None = None
        self._lock = threading.Lock()

    def is_accessible(self) -> bool:
        return self.db_path.is_file()

    def _connect(self) -> tuple[sqlite3.Connection, SchemaInfo]:
        with self._lock:
            if self._connection is not None and self._schema is not None:
                return self._connection, self._schema

            if not self.db_path.exists():
                raise history_db_not_found(str(self.db_path))

            try:
                conn = sqlite3.connect(
                    f"file:{self.db_path}?mode=ro", uri=True, timeout=5.0, check_same_thread=False
                )
                conn.row_factory = sqlite3.Row
            except sqlite3.Error as e:
                raise HistoryError(
                    f"Cannot open WhatsApp database: {e}", path=str(self.db_path), cause=e
                ) from e

            try:
                schema = probe_schema(conn)
            except HistoryError:
                conn.close()
                raise
            except sqlite3.Error as e:
                conn.close()
                raise HistoryError(
                    f"Cannot open WhatsApp database: {e}", path=str(self.db_path), cause=e
                ) from e

            logger.debug(
                "WhatsApp schema: %d message columns, %d session columns",
                len(schema.message_columns),
                len(schema.session_columns),
            )
            self._connection = conn
            self._schema = schema
            return conn, schema

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
            self._connection = None
            self._schema = None

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn, _ = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise HistoryError(
                f"WhatsApp query failed: {e}", path=str(self.db_path), cause=e
            ) from e

    def _message_select(self) -> str:
        _, schema = self._connect()
        push_name = "m.ZPUSHNAME" if schema.has_message("ZPUSHNAME") else "NULL"
        jid = "cs.ZCONTACTJID" if schema.has_session("ZCONTACTJID") else "''"
        session_type = "cs.ZSESSIONTYPE" if schema.has_session("ZSESSIONTYPE") else "0"
        return f"""
            SELECT m.Z_PK AS id, cs.Z_PK AS chat_id, cs.ZPARTNERNAME AS chat_name,
                   {jid} AS chat_jid, m.ZTEXT AS text, m.ZISFROMME AS is_from_me,
                   m.ZMESSAGEDATE AS message_date, {push_name} AS sender_name,
                   {session_type} AS session_type
            FROM {MESSAGE_TABLE} m
            JOIN {SESSION_TABLE} cs ON m.ZCHATSESSION = cs.Z_PK
            WHERE m.ZTEXT IS NOT NULL AND m.ZTEXT != ''
        """

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> WhatsAppMessage:
        return WhatsAppMessage(
            id=row["id"],
            chat_id=row["chat_id"],
            chat_name=row["chat_name"] or "Unknown",
            text=row["text"],
            is_from_me=row["is_from_me"] == 1,
            timestamp=core_data_to_datetime(row["message_date"]),
            sender_name=row["sender_name"],
            is_group=row["session_type"] == GROUP_SESSION_TYPE,
        )

    # =========================================================================
    # Chats
    # =========================================================================

    def list_chats(self) -> list[WhatsAppChat]:
        _, schema = self._connect()
        jid = "ZCONTACTJID" if schema.has_session("ZCONTACTJID") else "''"
        session_type = "ZSESSIONTYPE" if schema.has_session("ZSESSIONTYPE") else "0"
        unread = "ZUNREADCOUNT" if schema.has_session("ZUNREADCOUNT") else "0"
        order = "ZLASTMESSAGEDATE DESC" if schema.has_session("ZLASTMESSAGEDATE") else "Z_PK"
        rows = self._query(
            f"""
            SELECT Z_PK, ZPARTNERNAME, {jid} AS jid, {session_type} AS session_type,
                   {unread} AS unread
            FROM {SESSION_TABLE}
            WHERE ZPARTNERNAME IS NOT NULL
            ORDER BY {order}
            """
        )
        return [
            WhatsAppChat(
                id=row["Z_PK"],
                name=row["ZPARTNERNAME"],
                jid=row["jid"] or "",
                is_group=row["session_type"] == GROUP_SESSION_TYPE,
                unread_count=row["unread"] or 0,
            )
            for row in rows
        ]

    def find_chat(self, name: str) -> WhatsAppChat | None:
        return next((chat for chat in self.list_chats() if chat.name == name), None)

    def get_unread_chats(self) -> list[WhatsAppChat]:
        return [chat for chat in self.list_chats() if chat.unread_count > 0]

    # =========================================================================
    # Messages
    # =========================================================================

    def get_max_message_id(self) -> int:
        rows = self._query(f"SELECT MAX(Z_PK) FROM {MESSAGE_TABLE}")
        return int(rows[0][0] or 0)

    def fetch_new_messages(self, after_id: int, limit: int = 50) -> list[WhatsAppMessage]:
        """Text messages with id greater than ``after_id``, oldest first."""
        rows = self._query(
            self._message_select() + " AND m.Z_PK > ? ORDER BY m.Z_PK ASC LIMIT ?",
            (after_id, limit),
        )
        return [self._row_to_message(row) for row in rows]

    def get_chat_messages(self, chat_id: int, limit: int = 100) -> list[WhatsAppMessage]:
        """The most recent ``limit`` text messages of a chat, oldest first."""
        rows = self._query(
            self._message_select() + " AND cs.Z_PK = ? ORDER BY m.ZMESSAGEDATE DESC LIMIT ?",
            (chat_id, limit),
        )
        return [self._row_to_message(row) for row in reversed(rows)]

    def get_messages(self, correspondent_id: int, limit: int = 100) -> list[Message]:
        return [m.to_message() for m in self.get_chat_messages(correspondent_id, limit)]

    def get_message_count(self, correspondent_id: int) -> int:
        rows = self._query(
            f"""
            SELECT COUNT(*) FROM {MESSAGE_TABLE}
            WHERE ZCHATSESSION = ? AND ZTEXT IS NOT NULL AND ZTEXT != ''
            """,
            (correspondent_id,),
        )
        return int(rows[0][0])
