"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - isolate_environment: Clears AGENT_* preferences for every test
    - clock: Controllable clock for expiry tests
    - memory_storage: Empty in-memory key-value backend
    - store: ConversationStore over memory_storage and clock
    - client_config: ChatClientConfig pointing at a test gateway
    - make_controller: Factory wiring a controller to a scripted transport

Scripted transports replay lists of event payloads so controller behaviour
can be tested without a network.
"""

from collections.abc import Callable
from typing import Any

import pytest

from agent_chat.agent import AgentChatController
from agent_chat.config import ChatClientConfig
from agent_chat.storage import ConversationStore, MemoryStorage
from tests.helpers import FakeClock, ScriptedTransport


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's .env preferences out of the tests."""
    for name in ("AGENT_LANGUAGE", "AGENT_PROVIDER", "AGENT_MODEL", "AGENT_CHAT_STORAGE_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    """Return a clock fixed at a known instant."""
    return FakeClock()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(memory_storage: MemoryStorage, clock: FakeClock) -> ConversationStore:
    """Return a conversation store over in-memory storage and the fake clock."""
    return ConversationStore(memory_storage, clock=clock)


@pytest.fixture
def client_config() -> ChatClientConfig:
    """Return configuration pointing at the test gateway.

    Returns:
        Config with explicit preferences so environment variables don't leak in.
    """
    return ChatClientConfig(
        gateway_url="http://test",
        language="en",
        provider="groq",
        model="llama-3.1",
        storage_dir=None,
    )


@pytest.fixture
def make_controller(
    store: ConversationStore,
    client_config: ChatClientConfig,
) -> Callable[..., tuple[AgentChatController, ScriptedTransport]]:
    """Return a factory building a controller around scripted turns.

    Usage:
        controller, transport = make_controller([thinking(...), complete(...)])
    """

    def factory(*turns: list[Any], **kwargs: Any) -> tuple[AgentChatController, ScriptedTransport]:
        transport = ScriptedTransport(*turns)
        controller = AgentChatController(
            transport=transport,
            store=store,
            config=client_config,
            **kwargs,
        )
        return controller, transport

    return factory
