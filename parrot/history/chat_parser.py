"""WhatsApp chat export parser.

Parses the ``_chat.txt`` produced by "Export chat" on iOS, either directly
or from inside the exported ``.zip``. Lines look like:

    [10/03/2024, 18:55:04] Sender Name: message text

Lines that do not start with a timestamp continue the previous message.
Encryption notices and media placeholders are skipped.
"""

from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from parrot.contracts.messages import Message, Sender
from parrot.errors import ErrorCode, ParseError, export_not_found

logger = logging.getLogger(__name__)

CHAT_FILE_NAME = "_chat.txt"
EXPORT_NAME_PREFIX = "WhatsApp Chat - "

LINE_PATTERN = re.compile(r"^\[(\d{2}/\d{2}/\d{2,4}, \d{2}:\d{2}:\d{2})\] ([^:]+): (.+)$")
DATE_FORMATS = ("%d/%m/%Y, %H:%M:%S", "%d/%m/%y, %H:%M:%S")

# Direction marks WhatsApp puts in front of system lines and attachments
_DIRECTION_MARKS = re.compile("[\u200e\u200f\u202a-\u202e]")

SYSTEM_SENDER_MARKERS = (
    "Messages and calls are end-to-end encrypted",
    "As mensagens e ligações são protegidas",
)
MEDIA_MARKERS = ("<anexado:", "<attached:", "imagem ocultada", "image omitted")


@dataclass(frozen=True)
class ParsedMessage:
    timestamp: datetime
    sender: str
    content: str


def parse_export_date(value: str) -> datetime | None:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _is_skipped(sender: str, content: str) -> bool:
    if any(marker in sender or marker in content for marker in SYSTEM_SENDER_MARKERS):
        return True
    return any(marker in content for marker in MEDIA_MARKERS)


class ChatParser:
    """Parses WhatsApp exports for one profiled person.

    Args:
        user_name: Sender name of the profiled person in the export; their
            messages become ``Sender.SELF``.
    """

    def __init__(self, user_name: str = "Me") -> None:
        self.user_name = user_name

    def parse_chat(self, content: str) -> list[ParsedMessage]:
        """Parse raw ``_chat.txt`` content into messages, in file order."""
        messages: list[ParsedMessage] = []
        current: tuple[str, str, str] | None = None

        def flush() -> None:
            if current is None:
                return
            timestamp = parse_export_date(current[0])
            if timestamp is None:
                logger.debug("Skipping message with unparseable date: %s", current[0])
                return
            messages.append(ParsedMessage(timestamp, current[1], current[2]))

        for raw_line in content.splitlines():
            line = _DIRECTION_MARKS.sub("", raw_line)
            match = LINE_PATTERN.match(line)
            if match:
                flush()
                date_str, sender, text = match.groups()
                current = None if _is_skipped(sender, text) else (date_str, sender, text)
            elif current is not None:
                current = (current[0], current[1], current[2] + "\n" + line)

        flush()
        return messages

    def parse_file(self, path: Path) -> tuple[str, list[ParsedMessage]]:
        """Parse a ``.txt`` or ``.zip`` export.

        Returns:
            The chat name derived from the file name, and the messages.

        Raises:
            ParseError: If the file is missing, not a valid zip, has no
                ``_chat.txt`` or is not UTF-8.
        """
        if not path.exists():
            raise export_not_found(str(path))

        name = path.stem
        if name.startswith(EXPORT_NAME_PREFIX):
            name = name[len(EXPORT_NAME_PREFIX) :]

        if path.suffix.lower() == ".zip":
            raw = self._read_zip(path)
        else:
            try:
                raw = path.read_bytes()
            except OSError as e:
                raise ParseError(f"Cannot read {path}: {e}", path=str(path), cause=e) from e

        try:
            content = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(
                f"Export is not valid UTF-8: {path}",
                path=str(path),
                code=ErrorCode.PRS_INVALID_ENCODING,
                cause=e,
            ) from e

        messages = self.parse_chat(content)
        logger.info("Parsed %d messages from %s", len(messages), path.name)
        return name, messages

    @staticmethod
    def _read_zip(path: Path) -> bytes:
        try:
            with zipfile.ZipFile(path) as archive:
                member = next(
                    (n for n in archive.namelist() if Path(n).name == CHAT_FILE_NAME), None
                )
                if member is None:
                    raise ParseError(f"No {CHAT_FILE_NAME} inside {path}", path=str(path))
                return archive.read(member)
        except zipfile.BadZipFile as e:
            raise ParseError(f"Not a valid zip export: {path}", path=str(path), cause=e) from e

    # =========================================================================
    # Conversion
    # =========================================================================

    def convert_to_messages(
        self, parsed: list[ParsedMessage], correspondent_id: int
    ) -> list[Message]:
        """Map parsed lines to Messages; the profiled person's lines become SELF."""
        return [
            Message(
                id=0,
                correspondent_id=correspondent_id,
                sender=Sender.SELF if pm.sender == self.user_name else Sender.OTHER,
                content=pm.content,
                timestamp=pm.timestamp,
            )
            for pm in parsed
        ]

    @staticmethod
    def get_unique_senders(parsed: list[ParsedMessage]) -> list[str]:
        return sorted({pm.sender for pm in parsed})

    @staticmethod
    def is_group_chat(parsed: list[ParsedMessage]) -> bool:
        """More than two distinct senders means a group."""
        return len({pm.sender for pm in parsed}) > 2
