"""Tests for the WhatsApp export parser."""

from __future__ import annotations

import zipfile
from datetime import datetime

import pytest

from parrot.contracts.messages import Sender
from parrot.errors import ErrorCode, ParseError
from parrot.history.chat_parser import ChatParser, parse_export_date

EXPORT = (
    "[10/03/2024, 18:55:04] Bia: \u200eMessages and calls are end-to-end encrypted.\n"
    "[10/03/2024, 18:55:10] Bia: oi, tudo bem?\n"
    "[10/03/2024, 18:56:00] Ana Souza: oii tudo sim\n"
    "e vc?\n"
    "[10/03/2024, 18:57:30] Bia: \u200e<anexado: 00000012-PHOTO.jpg>\n"
    "[10/03/2024, 18:58:00] Bia: bora almoçar amanhã?\n"
)


@pytest.fixture
def parser() -> ChatParser:
    return ChatParser(user_name="Ana Souza")


class TestParseChat:
    """Tests for ChatParser.parse_chat."""

    def test_parses_messages(self, parser):
        messages = parser.parse_chat(EXPORT)
        assert [m.content for m in messages] == [
            "oi, tudo bem?",
            "oii tudo sim\ne vc?",
            "bora almoçar amanhã?",
        ]
        assert messages[0].timestamp == datetime(2024, 3, 10, 18, 55, 10)
        assert messages[1].sender == "Ana Souza"

    def test_two_digit_year(self, parser):
        messages = parser.parse_chat("[10/03/24, 08:00:00] Bia: bom dia\n")
        assert messages[0].timestamp == datetime(2024, 3, 10, 8, 0, 0)

    def test_leading_direction_mark(self, parser):
        messages = parser.parse_chat("\u200e[10/03/2024, 08:00:00] Bia: bom dia\n")
        assert len(messages) == 1

    def test_orphan_continuation_ignored(self, parser):
        assert parser.parse_chat("linha solta\n") == []

    def test_parse_export_date_invalid(self):
        assert parse_export_date("31/02/2024, 10:00:00") is None


class TestConversion:
    def test_self_messages(self, parser):
        messages = parser.convert_to_messages(parser.parse_chat(EXPORT), correspondent_id=7)
        assert [m.sender for m in messages] == [Sender.OTHER, Sender.SELF, Sender.OTHER]
        assert all(m.correspondent_id == 7 for m in messages)

    def test_group_detection(self, parser):
        parsed = parser.parse_chat(EXPORT)
        assert parser.get_unique_senders(parsed) == ["Ana Souza", "Bia"]
        assert not parser.is_group_chat(parsed)
        parsed += parser.parse_chat("[10/03/2024, 19:00:00] Caio: e aí\n")
        assert parser.is_group_chat(parsed)


class TestParseFile:
    """Tests for reading .txt and .zip exports."""

    def test_text_file(self, parser, tmp_path):
        path = tmp_path / "WhatsApp Chat - Bia.txt"
        path.write_text(EXPORT, encoding="utf-8")
        name, messages = parser.parse_file(path)
        assert name == "Bia"
        assert len(messages) == 3

    def test_zip_export(self, parser, tmp_path):
        path = tmp_path / "WhatsApp Chat - Bia.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("_chat.txt", EXPORT)
            archive.writestr("00000012-PHOTO.jpg", b"\xff\xd8")
        name, messages = parser.parse_file(path)
        assert name == "Bia"
        assert messages[-1].content == "bora almoçar amanhã?"

    def test_zip_without_chat(self, parser, tmp_path):
        path = tmp_path / "export.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("other.txt", "x")
        with pytest.raises(ParseError) as exc_info:
            parser.parse_file(path)
        assert exc_info.value.code is ErrorCode.PRS_INVALID_EXPORT

    def test_bad_zip(self, parser, tmp_path):
        path = tmp_path / "export.zip"
        path.write_bytes(b"not a zip")
        with pytest.raises(ParseError) as exc_info:
            parser.parse_file(path)
        assert exc_info.value.code is ErrorCode.PRS_INVALID_EXPORT

    def test_missing_file(self, parser, tmp_path):
        with pytest.raises(ParseError) as exc_info:
            parser.parse_file(tmp_path / "missing.txt")
        assert exc_info.value.code is ErrorCode.PRS_FILE_NOT_FOUND

    def test_not_utf8(self, parser, tmp_path):
        path = tmp_path / "latin.txt"
        path.write_bytes("[10/03/2024, 08:00:00] Bia: ação".encode("latin-1"))
        with pytest.raises(ParseError) as exc_info:
            parser.parse_file(path)
        assert exc_info.value.code is ErrorCode.PRS_INVALID_ENCODING
