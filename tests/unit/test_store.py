"""Tests for the SQLite message store."""

from __future__ import annotations

import dataclasses
import threading

import pytest

from parrot.contracts.messages import Sender
from parrot.history.store import MessageStore
from parrot.style_profile import StyleProfile
from tests.helpers import SAMPLE_EXCHANGES, build_conversation


@pytest.fixture
def store(tmp_path):
    message_store = MessageStore(tmp_path / "db" / "messages.sqlite")
    yield message_store
    message_store.close()


def _conversation_for(contact_id: int):
    return [
        dataclasses.replace(m, correspondent_id=contact_id)
        for m in build_conversation(SAMPLE_EXCHANGES[:3])
    ]


class TestContacts:
    """Tests for contact creation and flags."""

    def test_add_contact_is_idempotent(self, store):
        first = store.add_contact("Bia", auto_reply_enabled=True)
        second = store.add_contact("Bia", is_group=True, auto_reply_enabled=False)
        assert first.id == second.id
        assert second.is_group
        assert second.auto_reply_enabled

    def test_lookup(self, store):
        contact = store.add_contact("Bia")
        assert store.get_contact(contact.id).name == "Bia"
        assert store.get_contact_by_name("Bia").id == contact.id
        assert store.get_contact(999) is None

    def test_list_sorted_case_insensitive(self, store):
        for name in ("caio", "Bia", "ana"):
            store.add_contact(name)
        assert [c.name for c in store.list_contacts()] == ["ana", "Bia", "caio"]

    def test_set_auto_reply(self, store):
        contact = store.add_contact("Bia")
        assert store.set_auto_reply(contact.id, True)
        assert store.get_contact(contact.id).auto_reply_enabled
        assert not store.set_auto_reply(999, True)

    def test_delete_cascades(self, store):
        contact = store.add_contact("Bia")
        store.insert_messages(_conversation_for(contact.id))
        assert store.delete_contact(contact.id)
        assert store.get_message_count(contact.id) == 0


class TestMessages:
    """Tests for inserting and reading messages."""

    def test_insert_and_read_in_order(self, store):
        contact = store.add_contact("Bia")
        assert store.insert_messages(_conversation_for(contact.id)) == 6

        messages = store.get_messages(contact.id)
        assert [m.content for m in messages][:2] == ["oi, tudo bem?", "oii tudo sim e vc"]
        assert messages[1].sender is Sender.SELF
        assert all(m.id > 0 for m in messages)

    def test_duplicates_skipped(self, store):
        contact = store.add_contact("Bia")
        store.insert_messages(_conversation_for(contact.id))
        assert store.insert_messages(_conversation_for(contact.id)) == 0
        assert store.get_message_count(contact.id) == 6

    def test_limit_keeps_most_recent(self, store):
        contact = store.add_contact("Bia")
        store.insert_messages(_conversation_for(contact.id))
        messages = store.get_messages(contact.id, limit=2)
        assert [m.content for m in messages] == ["vc viu o jogo ontem?", "vi mano, q jogo"]

    def test_empty_insert(self, store):
        assert store.insert_messages([]) == 0

    def test_stats(self, store):
        contact = store.add_contact("Bia", auto_reply_enabled=True)
        store.add_contact("Amigos", is_group=True)
        store.insert_messages(_conversation_for(contact.id))
        assert store.get_stats() == {
            "contacts": 2,
            "groups": 1,
            "auto_reply_enabled": 1,
            "messages": 6,
        }


class TestStyleProfileCache:
    def test_save_and_load(self, store):
        contact = store.add_contact("Bia")
        store.save_style_profile(contact.id, StyleProfile(laugh_style="hahaha"))
        assert store.get_contact(contact.id).style_profile.laugh_style == "hahaha"

    def test_new_messages_invalidate_profile(self, store):
        contact = store.add_contact("Bia")
        store.save_style_profile(contact.id, StyleProfile())
        store.insert_messages(_conversation_for(contact.id))
        assert store.get_contact(contact.id).style_profile is None

    def test_duplicate_import_keeps_profile(self, store):
        contact = store.add_contact("Bia")
        store.insert_messages(_conversation_for(contact.id))
        store.save_style_profile(contact.id, StyleProfile())
        store.insert_messages(_conversation_for(contact.id))
        assert store.get_contact(contact.id).style_profile is not None

    def test_invalidate(self, store):
        contact = store.add_contact("Bia")
        store.save_style_profile(contact.id, StyleProfile())
        store.invalidate_style_profile(contact.id)
        assert store.get_contact(contact.id).style_profile is None


class TestThreading:
    def test_reads_from_other_threads(self, store):
        contact = store.add_contact("Bia")
        store.insert_messages(_conversation_for(contact.id))
        counts: list[int] = []

        def worker():
            counts.append(store.get_message_count(contact.id))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert counts == [6, 6, 6, 6]
