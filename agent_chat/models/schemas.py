import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]
Rating = Literal["positive", "negative", "none"]


def new_id() -> str:
    """Return a fresh opaque identifier for messages and threads."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressStatus(str, Enum):
    """Status values reported alongside progress updates."""

    WORKING = "working"
    WAITING = "waiting"
    ERROR = "error"


class TurnStatus(str, Enum):
    """What the UI should show for the most recent turn."""

    IDLE = "idle"
    STREAMING = "streaming"
    ANSWERED = "answered"
    ERROR = "error"


class MessageSource(BaseModel):
    """A source attached to an assistant message.

    Attributes:
        title: Display title of the source.
        url: Link to the source document or page.
        snippet: Optional excerpt shown under the title.
    """

    title: str
    url: str
    snippet: str | None = None


class Feedback(BaseModel):
    """User feedback on an assistant message."""

    rating: Rating
    comment: str | None = None


class Message(BaseModel):
    """One turn in a conversation.

    ``id``, ``role`` and ``timestamp`` are frozen once the message exists;
    ``content``, ``sources`` and ``feedback`` may still be amended.

    Attributes:
        id: Opaque unique identifier.
        role: Speaker, either ``user`` or ``assistant``.
        content: Display text.
        sources: Ordered sources, assistant messages only.
        timestamp: Creation instant (timezone-aware UTC).
        feedback: Optional rating set after creation.
    """

    id: str = Field(default_factory=new_id, frozen=True)
    role: Role = Field(..., frozen=True)
    content: str
    sources: list[MessageSource] | None = None
    timestamp: datetime = Field(default_factory=utcnow, frozen=True)
    feedback: Feedback | None = None


class AgentSource(BaseModel):
    """A source as reported by the remote agent."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = ""
    url: str = ""
    type: str | None = None
    is_download: bool | None = Field(None, alias="isDownload")
    chunk_index: int | None = Field(None, alias="chunkIndex")
    metadata: dict[str, Any] | None = None
    snippet: str | None = None

    def to_message_source(self) -> MessageSource:
        """Map to the message format, taking the snippet from ``metadata.content``."""
        snippet = self.snippet
        if self.metadata and isinstance(self.metadata.get("content"), str):
            snippet = self.metadata["content"]
        return MessageSource(title=self.title, url=self.url, snippet=snippet)


class ProgressState(BaseModel):
    """Live progress of the turn in flight. Never persisted.

    ``percent`` is clamped into [0, 100] but is not forced to increase.
    """

    stage: str = "Connecting"
    percent: int = Field(default=0, ge=0, le=100)
    waiting: bool = False
    status: ProgressStatus = ProgressStatus.WORKING


class PendingClarification(BaseModel):
    """An outstanding agent request for more input.

    Attributes:
        original_question: The question that triggered the clarification.
        prompt: Clarification text shown to the user.
        questions: Up to three suggested follow-up questions.
    """

    original_question: str
    prompt: str
    questions: list[str] = Field(default_factory=list, max_length=3)


class AskRequest(BaseModel):
    """Payload sent to the transport for one turn."""

    question: str = Field(..., min_length=1)
    thread_id: str
    lang: Literal["en", "es"] | None = None
    provider: str | None = None
    model: str | None = None
    clarification_response: str | None = None

    def to_query_params(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class AgentResponse(BaseModel):
    """Non-streaming answer from ``GET /ask``."""

    model_config = ConfigDict(extra="ignore")

    answer: str
    sources: list[AgentSource] = Field(default_factory=list)
    thread_id: str | None = None
    language: str | None = None
    model: str | None = None


class ProviderInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    models: list[str] = Field(default_factory=list)
    default: bool = False


class AgentConfigResponse(BaseModel):
    """Providers and models offered by the agent gateway."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    providers: list[ProviderInfo] = Field(default_factory=list)
    models: dict[str, list[str]] = Field(default_factory=dict)
    default_provider: str | None = Field(None, alias="defaultProvider")
    default_model: str | None = Field(None, alias="defaultModel")


class ChatError(BaseModel):
    message: str
    code: str | None = None


class ChatState(BaseModel):
    """Snapshot of everything a presentation layer needs to render a chat.

    Attributes:
        thread_id: Active thread identifier.
        messages: Transcript of the active thread.
        is_loading: Whether a turn is in flight.
        streaming_message: Live hint text ("what the agent is doing").
        progress_log: Rolling log of recent progress lines.
        progress: Structured progress of the turn in flight.
        pending_clarification: Outstanding clarification, if any.
        error: Error that ended the last turn, if any.
        turn_status: Streaming, answered, errored or idle.
    """

    thread_id: str
    messages: list[Message]
    is_loading: bool
    streaming_message: str | None = None
    progress_log: list[str] = Field(default_factory=list)
    progress: ProgressState | None = None
    pending_clarification: PendingClarification | None = None
    error: ChatError | None = None
    turn_status: TurnStatus = TurnStatus.IDLE
