"""Local conversation storage with automatic 24-hour expiry.

Responsibilities:
    - Persist one message list per thread under a fixed key prefix
    - Refresh expiry on every save and purge expired or corrupt records
    - Recover from capacity failures with one purge-and-retry

Backends are pluggable: in-memory for tests and ephemeral sessions,
one-file-per-thread JSON for a local data directory.
"""

from agent_chat.storage.backends import FileStorage, KeyValueStorage, MemoryStorage
from agent_chat.storage.conversation_store import (
    DEFAULT_TTL,
    STORAGE_PREFIX,
    ConversationStore,
    StoredConversation,
)

__all__ = [
    "DEFAULT_TTL",
    "STORAGE_PREFIX",
    "ConversationStore",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "StoredConversation",
]
