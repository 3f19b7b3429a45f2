"""Unit tests for ConversationStore expiry, recovery and enumeration."""

import json
from datetime import timedelta

import pytest
import pytest_check as check

from agent_chat.errors import StorageCapacityError, StorageUnavailableError
from agent_chat.models import Feedback, Message, MessageSource
from agent_chat.storage import STORAGE_PREFIX, ConversationStore, MemoryStorage
from tests.helpers import FakeClock

DAY = timedelta(hours=24)
ONE_MS = timedelta(milliseconds=1)


def sample_messages() -> list[Message]:
    return [
        Message(role="user", content="hello"),
        Message(
            role="assistant",
            content="Hi there",
            sources=[MessageSource(title="Guide", url="https://example.org", snippet="x")],
            feedback=Feedback(rating="positive"),
        ),
    ]


class FlakyStorage(MemoryStorage):
    """Memory storage that rejects the first ``failures`` writes."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def set(self, key: str, value: str) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise StorageCapacityError("quota exceeded")
        super().set(key, value)


class DisabledStorage(MemoryStorage):
    def get(self, key: str) -> str | None:
        raise StorageUnavailableError("storage disabled")


class TestSaveAndLoad:
    """Tests for round-trip persistence."""

    def test_round_trip_returns_equal_messages(self, store: ConversationStore) -> None:
        """Saved messages load back equal, including sources and feedback."""
        messages = sample_messages()
        store.save("t1", messages)

        assert store.load("t1") == messages

    def test_load_missing_thread_returns_none(self, store: ConversationStore) -> None:
        assert store.load("nope") is None

    def test_loaded_messages_are_fresh_objects(self, store: ConversationStore) -> None:
        """Mutating a loaded list does not affect the stored record."""
        store.save("t1", sample_messages())

        loaded = store.load("t1")
        loaded.append(Message(role="user", content="extra"))

        assert len(store.load("t1")) == 2

    def test_record_uses_prefixed_key(
        self, store: ConversationStore, memory_storage: MemoryStorage
    ) -> None:
        store.save("abc", sample_messages())

        assert memory_storage.keys() == [f"{STORAGE_PREFIX}abc"]
        record = json.loads(memory_storage.get(f"{STORAGE_PREFIX}abc"))
        check.equal(record["threadId"], "abc")
        check.is_in("expiresAt", record)
        check.is_in("createdAt", record)

    def test_created_at_kept_and_expiry_refreshed(
        self, store: ConversationStore, memory_storage: MemoryStorage, clock: FakeClock
    ) -> None:
        """createdAt is set on first write only; expiresAt moves with every save."""
        store.save("t1", sample_messages())
        first = json.loads(memory_storage.get(f"{STORAGE_PREFIX}t1"))

        clock.advance(timedelta(hours=5))
        store.save("t1", sample_messages())
        second = json.loads(memory_storage.get(f"{STORAGE_PREFIX}t1"))

        check.equal(second["createdAt"], first["createdAt"])
        check.equal(second["expiresAt"] - first["expiresAt"], 5 * 60 * 60 * 1000)

    def test_save_keeps_newest_messages_only(self, memory_storage: MemoryStorage, clock: FakeClock) -> None:
        store = ConversationStore(memory_storage, clock=clock, max_messages=3)
        messages = [Message(role="user", content=str(i)) for i in range(5)]

        store.save("t1", messages)

        assert [m.content for m in store.load("t1")] == ["2", "3", "4"]


class TestExpiry:
    """Tests for the 24-hour rolling expiry."""

    def test_loadable_just_before_expiry(self, store: ConversationStore, clock: FakeClock) -> None:
        store.save("t1", sample_messages())
        clock.advance(DAY - ONE_MS)

        assert store.load("t1") is not None

    def test_not_found_just_after_expiry(
        self, store: ConversationStore, memory_storage: MemoryStorage, clock: FakeClock
    ) -> None:
        """An expired thread reads as not found and is purged."""
        store.save("t1", sample_messages())
        clock.advance(DAY + ONE_MS)

        assert store.load("t1") is None
        assert memory_storage.keys() == []

    def test_save_extends_expiry(self, store: ConversationStore, clock: FakeClock) -> None:
        store.save("t1", sample_messages())
        clock.advance(timedelta(hours=20))
        store.save("t1", sample_messages())
        clock.advance(timedelta(hours=20))

        assert store.load("t1") is not None

    def test_time_remaining(self, store: ConversationStore, clock: FakeClock) -> None:
        store.save("t1", sample_messages())
        clock.advance(timedelta(hours=1))

        assert store.time_remaining("t1") == timedelta(hours=23)

    def test_time_remaining_floored_at_zero(self, store: ConversationStore, clock: FakeClock) -> None:
        store.save("t1", sample_messages())
        clock.advance(DAY * 2)

        assert store.time_remaining("t1") == timedelta(0)

    def test_time_remaining_missing_thread(self, store: ConversationStore) -> None:
        assert store.time_remaining("nope") is None


class TestCorruptRecords:
    """Parse failures degrade to not-found, never raise."""

    def test_corrupt_record_loads_as_none(
        self, store: ConversationStore, memory_storage: MemoryStorage
    ) -> None:
        memory_storage.set(f"{STORAGE_PREFIX}bad", "{not json")

        assert store.load("bad") is None

    def test_wrong_shape_loads_as_none(
        self, store: ConversationStore, memory_storage: MemoryStorage
    ) -> None:
        memory_storage.set(f"{STORAGE_PREFIX}bad", json.dumps({"messages": "oops"}))

        assert store.load("bad") is None

    def test_purge_removes_corrupt_and_expired(
        self, store: ConversationStore, memory_storage: MemoryStorage, clock: FakeClock
    ) -> None:
        store.save("old", sample_messages())
        clock.advance(DAY + ONE_MS)
        store.save("fresh", sample_messages())
        memory_storage.set(f"{STORAGE_PREFIX}bad", "garbage")
        memory_storage.set("unrelated-key", "garbage")

        removed = store.purge_expired()

        check.equal(removed, 2)
        check.equal(
            sorted(memory_storage.keys()),
            sorted([f"{STORAGE_PREFIX}fresh", "unrelated-key"]),
        )


class TestEnumerationAndDelete:
    def test_list_thread_ids_skips_expired_without_removing(
        self, store: ConversationStore, memory_storage: MemoryStorage, clock: FakeClock
    ) -> None:
        store.save("old", sample_messages())
        clock.advance(DAY + ONE_MS)
        store.save("new", sample_messages())

        assert store.list_thread_ids() == ["new"]
        assert len(memory_storage.keys()) == 2

    def test_delete_is_idempotent(self, store: ConversationStore) -> None:
        store.save("t1", sample_messages())

        store.delete("t1")
        store.delete("t1")

        assert store.load("t1") is None

    def test_purge_evicts_oldest_beyond_max_threads(
        self, memory_storage: MemoryStorage, clock: FakeClock
    ) -> None:
        store = ConversationStore(memory_storage, clock=clock, max_threads=2)
        for thread_id in ("a", "b", "c"):
            store.save(thread_id, sample_messages())
            clock.advance(timedelta(minutes=1))

        store.purge_expired()

        assert sorted(store.list_thread_ids()) == ["b", "c"]


class TestCapacityRecovery:
    """Tests for purge-and-retry on storage capacity failures."""

    def test_retries_once_after_capacity_error(self, clock: FakeClock) -> None:
        storage = FlakyStorage(failures=1)
        store = ConversationStore(storage, clock=clock)

        assert store.save("t1", sample_messages()) is True
        assert storage.attempts == 2
        assert store.load("t1") is not None

    def test_second_failure_is_swallowed(self, clock: FakeClock) -> None:
        storage = FlakyStorage(failures=2)
        store = ConversationStore(storage, clock=clock)

        assert store.save("t1", sample_messages()) is False
        assert storage.attempts == 2

    def test_retry_succeeds_after_purging_expired(self, clock: FakeClock) -> None:
        """Expired threads are purged to make room for the retry."""
        probe = ConversationStore(MemoryStorage(), clock=clock)
        probe.save("x", sample_messages())
        record_size = len(probe._storage.get(f"{STORAGE_PREFIX}x"))

        storage = MemoryStorage(capacity=record_size + record_size // 2)
        store = ConversationStore(storage, clock=clock)
        store.save("old", sample_messages())
        clock.advance(DAY + ONE_MS)

        assert store.save("new", sample_messages()) is True
        assert storage.keys() == [f"{STORAGE_PREFIX}new"]

    def test_unavailable_storage_raises(self, clock: FakeClock) -> None:
        store = ConversationStore(DisabledStorage(), clock=clock)

        with pytest.raises(StorageUnavailableError):
            store.load("t1")
