"""Tests for conversation sessions and their cache-backed store."""

from datetime import timedelta

import pytest

from product_assistant.cache import CacheService, LocalCache
from product_assistant.conversation import (
    MAX_HISTORY,
    ConversationSession,
    ConversationStore,
    conversation_key,
)
from product_assistant.errors import InvalidIdentifierError
from tests.fakes import FailingRedis


class TestConversationSession:

    def test_start_generates_unique_ids(self):
        assert ConversationSession.start().id != ConversationSession.start().id

    def test_start_keeps_given_id(self):
        session = ConversationSession.start("abc")
        assert session.id == "abc"
        assert session.history == []
        assert session.created_at == session.last_activity

    def test_start_rejects_blank_id(self):
        with pytest.raises(InvalidIdentifierError):
            ConversationSession.start("  ")

    def test_history_is_bounded_to_most_recent(self):
        session = ConversationSession.start()
        for index in range(15):
            session.append_query(f"q{index}", f"a{index}")
        assert len(session.history) == MAX_HISTORY
        assert [entry.query for entry in session.history] == [f"q{i}" for i in range(5, 15)]

    def test_recent_queries(self):
        session = ConversationSession.start()
        for query in ["one", "two", "three", "four"]:
            session.append_query(query)
        assert session.recent_queries() == ["two", "three", "four"]
        assert session.recent_queries(0) == []

    def test_set_last_product_bumps_activity(self):
        session = ConversationSession.start()
        before = session.last_activity
        session.set_last_product("6205")
        assert session.last_product == "6205"
        assert session.last_activity >= before

    def test_is_expired(self):
        session = ConversationSession.start()
        assert not session.is_expired(timedelta(minutes=5))
        session.last_activity = session.last_activity - timedelta(hours=2)
        assert session.is_expired(timedelta(hours=1))


class TestConversationStore:

    def test_get_or_create_without_id_starts_new(self):
        store = ConversationStore(CacheService())
        assert store.get_or_create(None).id

    def test_get_or_create_unknown_id_keeps_id(self):
        store = ConversationStore(CacheService())
        session = store.get_or_create("missing-id")
        assert session.id == "missing-id"
        assert session.history == []

    def test_save_and_reload(self, fake_redis):
        store = ConversationStore(CacheService(shared=fake_redis), ttl=timedelta(hours=24))
        session = store.start()
        session.append_query("width of 6205?", "15 mm")
        session.set_last_product("6205")
        store.save(session)

        reloaded = store.get_or_create(session.id)
        assert reloaded.model_dump() == session.model_dump()
        assert fake_redis.ttls[conversation_key(session.id)] == 24 * 3600

    def test_delete(self):
        store = ConversationStore(CacheService())
        session = store.start()
        store.delete(session.id)
        assert store.get(session.id) is None

    def test_shared_tier_failures_are_swallowed(self):
        failing = FailingRedis()
        store = ConversationStore(CacheService(local=LocalCache(), shared=failing))
        session = store.start()
        store.delete(session.id)
        assert store.get_or_create(session.id).id == session.id
        assert failing.attempts >= 2
