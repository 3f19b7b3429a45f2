"""Client configuration with environment variable loading.

Pydantic-based configuration for the agent chat client.
Points at the agent gateway and sizes the local conversation store.
"""

import os
from datetime import timedelta
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file
load_dotenv()


class ChatClientConfig(BaseModel):
    """Configuration for the agent chat client.

    Attributes:
        gateway_url: Base URL of the agent gateway.
        request_timeout: Seconds allowed for non-streaming requests.
        stream_timeout: Seconds allowed for a whole streamed turn.
        language: Preferred answer language.
        provider: LLM provider requested from the agent.
        model: Model requested from the agent.
        storage_dir: Directory for persisted threads (None keeps them in memory).
        thread_ttl_hours: Lifetime of a thread after its last save.
        max_threads: Threads retained after purging.
        max_messages_per_thread: Newest messages retained per thread.
    """

    # Environment-backed defaults go through the same validators as arguments
    model_config = ConfigDict(validate_default=True)

    gateway_url: str = Field(
        default_factory=lambda: os.getenv("AGENT_GATEWAY_URL", "http://localhost:8002"),
        description="Agent gateway base URL",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout for non-streaming requests, in seconds",
    )
    stream_timeout: float = Field(
        default=120.0,
        gt=0.0,
        description="Overall budget for one streamed turn, in seconds",
    )
    language: Literal["en", "es"] | None = Field(
        default_factory=lambda: os.getenv("AGENT_LANGUAGE") or None,
        description="Preferred answer language",
    )
    provider: str | None = Field(
        default_factory=lambda: os.getenv("AGENT_PROVIDER") or None,
        description="LLM provider requested from the agent",
    )
    model: str | None = Field(
        default_factory=lambda: os.getenv("AGENT_MODEL") or None,
        description="Model requested from the agent",
    )
    storage_dir: str | None = Field(
        default_factory=lambda: os.getenv("AGENT_CHAT_STORAGE_DIR") or None,
        description="Directory for persisted threads (None for in-memory)",
    )
    thread_ttl_hours: float = Field(default=24.0, gt=0.0)
    max_threads: int = Field(default=20, ge=1)
    max_messages_per_thread: int = Field(default=100, ge=1)

    @field_validator("gateway_url")
    @classmethod
    def validate_gateway_url(cls, v: str) -> str:
        """Validate that the gateway URL is http(s) and drop the trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                "Gateway URL must start with http:// or https://. Set AGENT_GATEWAY_URL in .env"
            )
        return v.rstrip("/")

    @property
    def thread_ttl(self) -> timedelta:
        return timedelta(hours=self.thread_ttl_hours)


def get_client_config() -> ChatClientConfig:
    """Create client configuration from environment.

    Returns:
        Configured ChatClientConfig instance.

    Raises:
        ValueError: If an environment value is invalid.
    """
    return ChatClientConfig()
