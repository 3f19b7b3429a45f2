"""TTL-scoped persistence of conversation threads.

Each thread is stored as one JSON record under ``<prefix><thread_id>`` with
an absolute expiry that is refreshed on every save. Expired and corrupt
records read as "not found" and are purged opportunistically.

Failure policy:
    - Parse failures never raise; they degrade to ``None`` / removal.
    - A capacity failure triggers one purge-and-retry; a second failure is
      logged and the conversation continues in memory only.
    - ``StorageUnavailableError`` from the backend propagates so callers can
      tell a disabled store from an empty one.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agent_chat.errors import StorageCapacityError
from agent_chat.models.schemas import Message, utcnow
from agent_chat.storage.backends import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "vecinita-thread-"
DEFAULT_TTL = timedelta(hours=24)
MAX_CONVERSATIONS = 20
MAX_MESSAGES_PER_THREAD = 100

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def _to_ms(moment: datetime) -> int:
    # Integer arithmetic keeps millisecond expiry boundaries exact.
    return (moment - _EPOCH) // _ONE_MS


class StoredConversation(BaseModel):
    """On-disk record for one thread.

    Attributes:
        thread_id: Thread identifier.
        messages: Persisted transcript.
        created_at: First save, epoch milliseconds.
        expires_at: Expiry instant, epoch milliseconds.
    """

    model_config = ConfigDict(populate_by_name=True)

    thread_id: str = Field(alias="threadId")
    messages: list[Message]
    created_at: int = Field(alias="createdAt")
    expires_at: int = Field(alias="expiresAt")


class ConversationStore:
    """Durable message log per thread with rolling expiry.

    Args:
        storage: Key-value backend.
        ttl: Lifetime of a thread after its last save.
        clock: Returns the current aware datetime.
        max_threads: Threads kept after purging; oldest are evicted.
        max_messages: Newest messages kept per thread.
        prefix: Key namespace for this store.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
        max_threads: int = MAX_CONVERSATIONS,
        max_messages: int = MAX_MESSAGES_PER_THREAD,
        prefix: str = STORAGE_PREFIX,
    ) -> None:
        self._storage = storage
        self._ttl_ms = ttl // _ONE_MS
        self._clock = clock
        self._max_threads = max_threads
        self._max_messages = max_messages
        self._prefix = prefix

    def _key(self, thread_id: str) -> str:
        return f"{self._prefix}{thread_id}"

    def _now_ms(self) -> int:
        return _to_ms(self._clock())

    def _read(self, key: str) -> StoredConversation | None:
        """Read and parse a record. Returns None if absent or corrupt."""
        raw = self._storage.get(key)
        if not raw:
            return None
        try:
            return StoredConversation.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Corrupt conversation record: {key}")
            return None

    def save(self, thread_id: str, messages: list[Message]) -> bool:
        """Persist the full message list for a thread.

        Args:
            thread_id: Thread to write.
            messages: Complete transcript; only the newest are kept.

        Returns:
            True if written, False if storage stayed full after one retry.

        Raises:
            StorageUnavailableError: If the backend cannot be used at all.
        """
        key = self._key(thread_id)
        now = self._now_ms()
        existing = self._read(key)
        record = StoredConversation(
            thread_id=thread_id,
            messages=messages[-self._max_messages :],
            created_at=existing.created_at if existing else now,
            expires_at=now + self._ttl_ms,
        )
        payload = record.model_dump_json(by_alias=True)

        try:
            self._storage.set(key, payload)
            return True
        except StorageCapacityError:
            logger.warning(f"Storage full saving thread {thread_id}, purging expired")

        self.purge_expired()
        try:
            self._storage.set(key, payload)
            return True
        except StorageCapacityError as e:
            logger.warning(f"Thread {thread_id} kept in memory only: {e}")
            return False

    def load(self, thread_id: str) -> list[Message] | None:
        """Load a thread's messages.

        Returns:
            The messages, or None if absent, corrupt or expired. An expired
            record is removed.
        """
        key = self._key(thread_id)
        record = self._read(key)
        if record is None:
            return None
        if record.expires_at < self._now_ms():
            logger.debug(f"Thread {thread_id} expired, removing")
            self._storage.remove(key)
            return None
        return record.messages

    def delete(self, thread_id: str) -> None:
        self._storage.remove(self._key(thread_id))

    def list_thread_ids(self) -> list[str]:
        """Return ids of all non-expired threads. Does not mutate storage."""
        now = self._now_ms()
        thread_ids: list[str] = []
        for key in self._storage.keys():
            if not key.startswith(self._prefix):
                continue
            record = self._read(key)
            if record is not None and record.expires_at >= now:
                thread_ids.append(record.thread_id)
        return thread_ids

    def time_remaining(self, thread_id: str) -> timedelta | None:
        """Return time until the thread expires, floored at zero."""
        record = self._read(self._key(thread_id))
        if record is None:
            return None
        remaining = max(0, record.expires_at - self._now_ms())
        return timedelta(milliseconds=remaining)

    def purge_expired(self) -> int:
        """Remove expired and corrupt records, then evict the oldest threads
        beyond ``max_threads``.

        Returns:
            Number of records removed.
        """
        now = self._now_ms()
        survivors: list[tuple[int, str]] = []
        removed = 0

        for key in self._storage.keys():
            if not key.startswith(self._prefix):
                continue
            record = self._read(key)
            if record is None or record.expires_at < now:
                self._storage.remove(key)
                removed += 1
            else:
                survivors.append((record.created_at, key))

        if len(survivors) > self._max_threads:
            survivors.sort()
            for _, key in survivors[: len(survivors) - self._max_threads]:
                self._storage.remove(key)
                removed += 1

        if removed:
            logger.info(f"Purged {removed} conversation record(s)")
        return removed
