"""
Tests unitaires — normalisation des horodatages et stores d'historique.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shambasmart.services.entities import Alert
from shambasmart.services.history_store import (
    InMemoryHistoryStore,
    SqlHistoryStore,
    build_history_store,
    normalize_timestamp,
)
from shambasmart.services.models import Base

REFERENCE = datetime(2024, 3, 15, 8, 30, tzinfo=timezone.utc)


class TestNormalizeTimestamp:

    def test_aware_datetime_is_kept(self):
        assert normalize_timestamp(REFERENCE) == REFERENCE

    def test_naive_datetime_is_utc(self):
        result = normalize_timestamp(datetime(2024, 3, 15, 8, 30))
        assert result == REFERENCE
        assert result.tzinfo is not None

    def test_epoch_seconds_and_millis(self):
        seconds = REFERENCE.timestamp()
        assert normalize_timestamp(seconds) == REFERENCE
        assert normalize_timestamp(int(seconds * 1000)) == REFERENCE

    def test_iso_strings(self):
        assert normalize_timestamp("2024-03-15T08:30:00Z") == REFERENCE
        assert normalize_timestamp("2024-03-15T11:30:00+03:00") == REFERENCE

    def test_seconds_nanos_structures(self):
        seconds = int(REFERENCE.timestamp())
        assert normalize_timestamp({"seconds": seconds, "nanos": 0}) == REFERENCE
        assert normalize_timestamp({"_seconds": seconds, "_nanoseconds": 0}) == REFERENCE
        assert normalize_timestamp(SimpleNamespace(seconds=seconds, nanos=500_000_000)) == \
            REFERENCE + timedelta(milliseconds=500)

    @pytest.mark.parametrize("value", [None, "not a date", {"foo": 1}, True, object()])
    def test_garbage_becomes_now(self, value):
        before = datetime.now(timezone.utc)
        result = normalize_timestamp(value)
        assert before - timedelta(seconds=1) <= result <= datetime.now(timezone.utc) + timedelta(seconds=1)


class TestInMemoryHistoryStore:

    def test_get_or_create_is_idempotent(self, store):
        first = store.get_or_create_user("+254700000001")
        second = store.get_or_create_user("+254700000001")
        assert first.id == second.id
        assert first.preferred_language == "en"

    def test_messages_are_returned_newest_first(self, store):
        user = store.create_user("+254700000001")
        store.append_message(user.id, "sms", "inbound", "old", timestamp=REFERENCE.timestamp() * 1000)
        store.append_message(user.id, "sms", "outbound", "middle", timestamp="2024-03-15T09:00:00Z")
        store.append_message(user.id, "sms", "inbound", "new", timestamp={"seconds": REFERENCE.timestamp() + 7200})

        messages = store.get_messages(user.id, limit=2)
        assert [m.content for m in messages] == ["new", "middle"]
        assert all(m.timestamp.tzinfo is not None for m in messages)

    def test_add_interests_merges_without_duplicates(self, store):
        user = store.create_user("+254700000001", crops=["maize"])
        user = store.add_interests(user, ["maize", "beans"])
        assert user.crops == ["maize", "beans"]

    def test_region_helpers(self, store):
        store.create_user("+254700000001", county="Nakuru", crops=["maize"])
        store.create_user("+254700000002", county="Kisumu")
        store.create_user("+254700000003", region="nakuru")

        assert store.get_unique_regions() == ["Nakuru", "Kisumu", "nakuru"]
        assert len(store.get_users_by_region("NAKURU")) == 2
        assert [u.phone_number for u in store.get_users_with_crops()] == ["+254700000001"]

    def test_alerts_are_recorded(self, store):
        store.save_alert(Alert(type="pest", severity="high", title="t", message="m"))
        assert len(store.alerts) == 1

    def test_build_without_database_is_in_memory(self):
        assert isinstance(build_history_store(None), InMemoryHistoryStore)


class TestSqlHistoryStore:

    @pytest.fixture
    def sql_store(self):
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=engine)
        yield SqlHistoryStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
        engine.dispose()

    def test_user_round_trip(self, sql_store):
        created = sql_store.create_user("+254700000001", county="Nakuru", crops=["maize"])
        fetched = sql_store.get_user("+254700000001")
        assert fetched.id == created.id
        assert fetched.county == "Nakuru"
        assert fetched.crops == ["maize"]
        assert sql_store.get_user("+254799999999") is None

    def test_update_user(self, sql_store):
        user = sql_store.create_user("+254700000001")
        updated = sql_store.update_user(user.id, latitude=-0.3, longitude=36.1, county="Nakuru")
        assert (updated.latitude, updated.longitude, updated.county) == (-0.3, 36.1, "Nakuru")
        assert sql_store.update_user("missing", county="X") is None

    def test_messages_newest_first_with_utc_timestamps(self, sql_store):
        user = sql_store.create_user("+254700000001")
        sql_store.append_message(user.id, "web", "inbound", "first", timestamp=REFERENCE)
        sql_store.append_message(user.id, "web", "outbound", "second",
                                 timestamp=REFERENCE + timedelta(minutes=1))

        messages = sql_store.get_messages(user.id)
        assert [m.content for m in messages] == ["second", "first"]
        assert messages[1].timestamp == REFERENCE

    def test_save_alert(self, sql_store):
        user = sql_store.create_user("+254700000001")
        sql_store.save_alert(Alert(type="market", severity="medium", title="t", message="m", user_id=user.id))
