"""Tests for the command-line interface."""

from __future__ import annotations

import sqlite3
from datetime import datetime

import pytest

from parrot import cli
from parrot.backends import OllamaClient
from parrot.cli import apply_setting, create_parser, main
from parrot.config import ParrotConfig, RAGConfig, load_config, save_config
from parrot.context import AppContext
from parrot.errors import ConfigurationError, ErrorCode, ParseError
from parrot.history.store import MessageStore
from parrot.history.whatsapp_db import CORE_DATA_EPOCH_UNIX
from tests.helpers import SAMPLE_EXCHANGES, FakeEmbeddingClient, FakeGenerationClient


def _export_text() -> str:
    lines = []
    minute = 0
    for other_text, self_text in SAMPLE_EXCHANGES:
        for sender, text in (("Bia", other_text), ("Ana Souza", self_text)):
            lines.append(f"[10/03/2024, 14:{minute:02d}:00] {sender}: {text}")
            minute += 1
    return "\n".join(lines) + "\n"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("OPENAI_API_KEY", "MARITACA_API_KEY", "PARROT_USER_NAME"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    save_config(
        ParrotConfig(data_dir=str(tmp_path / "data"), user_name="Ana Souza", smart_response=False),
        path,
    )
    return path


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "WhatsApp Chat - Bia.txt"
    path.write_text(_export_text(), encoding="utf-8")
    return path


def _run(config_path, *args: str) -> int:
    return main(["--config", str(config_path), *args])


def _store(tmp_path) -> MessageStore:
    return MessageStore(tmp_path / "data" / "messages.sqlite")


@pytest.fixture
def fake_context(monkeypatch):
    """Route commands through an AppContext with in-memory backends."""

    def build(args):
        config = load_config(args.config)
        config.rag = RAGConfig(batch_delay_seconds=0)
        return AppContext(
            config,
            embedding_client=FakeEmbeddingClient(),
            generation_client=FakeGenerationClient(),
        )

    monkeypatch.setattr(cli, "_context", build)


class TestParser:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: parrot" in capsys.readouterr().out

    def test_subcommands_registered(self):
        parser = create_parser()
        args = parser.parse_args(["reply", "Bia", "oi?"])
        assert args.func is cli.cmd_reply
        assert args.message == "oi?"


class TestImport:
    """Tests for the import command."""

    def test_import_export(self, tmp_path, config_path, export_file):
        assert _run(config_path, "import", str(export_file), "--enable-auto-reply") == 0

        store = _store(tmp_path)
        contact = store.get_contact_by_name("Bia")
        assert contact.auto_reply_enabled
        assert not contact.is_group
        assert store.get_message_count(contact.id) == 24
        store.close()

    def test_reimport_adds_nothing(self, tmp_path, config_path, export_file, capsys):
        _run(config_path, "import", str(export_file))
        _run(config_path, "import", str(export_file), "--name", "Bia")
        store = _store(tmp_path)
        assert store.get_stats()["messages"] == 24
        store.close()

    def test_nothing_to_import(self, config_path):
        assert _run(config_path, "import") == 1

    def test_import_from_whatsapp_db(self, tmp_path, config_path):
        db_path = tmp_path / "ChatStorage.sqlite"
        conn = sqlite3.connect(db_path)
        conn.execute("CREATE TABLE ZWACHATSESSION (Z_PK INTEGER PRIMARY KEY, ZPARTNERNAME TEXT)")
        conn.execute(
            "CREATE TABLE ZWAMESSAGE (Z_PK INTEGER PRIMARY KEY, ZTEXT TEXT, ZISFROMME INTEGER, "
            "ZMESSAGEDATE REAL, ZCHATSESSION INTEGER)"
        )
        day = datetime(2024, 3, 10, 14, 0).timestamp() - CORE_DATA_EPOCH_UNIX
        conn.execute("INSERT INTO ZWACHATSESSION VALUES (3, 'Caio')")
        conn.executemany(
            "INSERT INTO ZWAMESSAGE VALUES (?, ?, ?, ?, 3)",
            [(1, "e aí", 0, day), (2, "fala mano", 1, day + 30)],
        )
        conn.commit()
        conn.close()

        args = ["import", "--whatsapp-chat", "Caio", "--whatsapp-db", str(db_path)]
        assert _run(config_path, *args) == 0

        store = _store(tmp_path)
        contact = store.get_contact_by_name("Caio")
        assert [m.content for m in store.get_messages(contact.id)] == ["e aí", "fala mano"]
        store.close()

    def test_missing_export_raises(self, tmp_path, config_path):
        with pytest.raises(ParseError) as exc_info:
            _run(config_path, "import", str(tmp_path / "missing.txt"))
        assert exc_info.value.code is ErrorCode.PRS_FILE_NOT_FOUND


class TestContactCommands:
    """Tests for commands that act on an imported contact."""

    @pytest.fixture(autouse=True)
    def _imported(self, config_path, export_file):
        assert _run(config_path, "import", str(export_file), "--enable-auto-reply") == 0

    def test_profile_json(self, config_path, capsys):
        assert _run(config_path, "profile", "Bia", "--json") == 0
        assert '"avg_response_length"' in capsys.readouterr().out

    def test_profile_is_cached(self, tmp_path, config_path):
        _run(config_path, "profile", "Bia")
        store = _store(tmp_path)
        assert store.get_contact_by_name("Bia").style_profile is not None
        store.close()

    def test_unknown_contact(self, config_path, capsys):
        assert _run(config_path, "profile", "Ninguém") == 1
        assert "Unknown contact" in capsys.readouterr().out

    def test_decide(self, config_path, capsys):
        assert _run(config_path, "decide", "Bia", "ok") == 0
        assert "SKIP" in capsys.readouterr().out

    def test_stats(self, config_path, capsys):
        assert _run(config_path, "stats") == 0
        out = capsys.readouterr().out
        assert "Bia" in out
        assert "24" in out

    def test_stats_checks_local_backend(self, config_path, monkeypatch, capsys):
        async def reachable(self):
            return True

        monkeypatch.setattr(OllamaClient, "is_available", reachable)
        assert _run(config_path, "stats", "--check-backend") == 0
        out = capsys.readouterr().out
        assert "Ollama (Local)" in out
        assert "reachable" in out
        assert "unreachable" not in out

    def test_stats_reports_missing_cloud_key(self, config_path, capsys):
        _run(config_path, "config", "--set", "backend=openai")
        capsys.readouterr()
        assert _run(config_path, "stats", "--check-backend") == 0
        assert "missing API key" in capsys.readouterr().out

    def test_auto_reply_toggle(self, tmp_path, config_path):
        assert _run(config_path, "auto-reply", "Bia", "off") == 0
        store = _store(tmp_path)
        assert not store.get_contact_by_name("Bia").auto_reply_enabled
        store.close()

    def test_reply(self, config_path, fake_context, capsys):
        assert _run(config_path, "reply", "Bia", "tá em casa?") == 0
        assert "tô sim, bora" in capsys.readouterr().out

    def test_embed(self, config_path, fake_context, capsys):
        assert _run(config_path, "embed", "Bia") == 0
        assert "Threads embedded" in capsys.readouterr().out

    def test_embed_without_backend(self, config_path, capsys):
        assert _run(config_path, "embed", "Bia") == 1
        assert "not configured" in capsys.readouterr().out


class TestConfigCommand:
    """Tests for showing and changing settings."""

    def test_set_values(self, config_path):
        assert _run(config_path, "config", "--set", "use_rag=true", "--set", "backend=openai") == 0
        config = load_config(config_path)
        assert config.use_rag
        assert config.backend == "cloud-a"

    def test_env_secrets_not_saved(self, config_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        _run(config_path, "config", "--set", "use_rag=true")
        assert "sk-from-env" not in config_path.read_text()

    def test_api_key_masked(self, config_path, capsys):
        _run(config_path, "config", "--set", "openai.api_key=sk-secret")
        assert "sk-secret" not in capsys.readouterr().out

    def test_bad_assignment(self, config_path):
        with pytest.raises(ConfigurationError):
            _run(config_path, "config", "--set", "nope")


class TestApplySetting:
    def test_nested_key(self):
        config = apply_setting(ParrotConfig(), "group.relevance_threshold=0.6")
        assert config.group.relevance_threshold == 0.6

    def test_string_value(self):
        assert apply_setting(ParrotConfig(), "user_name=Ana Souza").user_name == "Ana Souza"

    @pytest.mark.parametrize(
        "assignment", ["unknown=1", "rag.nope=1", "nope.key=1", "rag.max_messages=0"]
    )
    def test_rejected(self, assignment):
        with pytest.raises(ConfigurationError):
            apply_setting(ParrotConfig(), assignment)
