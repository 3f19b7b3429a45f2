"""Stream events emitted by the remote agent.

Each SSE ``data:`` payload is a JSON object tagged by ``type``. The tagged
union is validated with a pydantic discriminated union; unknown keys are
ignored so the agent can add fields without breaking older clients.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from agent_chat.errors import ProtocolError
from agent_chat.models.schemas import AgentSource, ProgressStatus


class _ProgressFields(BaseModel):
    """Optional progress fields shared by most event kinds."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    stage: str | None = None
    progress: float | None = None
    waiting: bool | None = None
    status: ProgressStatus | None = None
    timestamp: str | None = None


class ThinkingEvent(_ProgressFields):
    type: Literal["thinking"]
    message: str = ""
    tool: str | None = None
    tool_name: str | None = Field(None, alias="toolName")


class TokenEvent(_ProgressFields):
    type: Literal["token"]
    content: str = ""
    cumulative: str | None = None


class SourceEvent(_ProgressFields):
    type: Literal["source"]
    url: str
    title: str
    source_type: str | None = None


class ToolEvent(_ProgressFields):
    """Tool invocation notice. ``phase`` is kept open: unknown phases log as errors."""

    type: Literal["tool_event"]
    phase: str
    tool: str | None = None
    message: str = ""
    transient: bool | None = None


class ClarificationEvent(_ProgressFields):
    type: Literal["clarification"]
    message: str | None = None
    questions: list[str] | None = None
    suggested_questions: list[str] | None = Field(None, alias="suggestedQuestions")
    context: str | None = None


class CompleteMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    model_used: str | None = None
    tokens: int | None = None
    progress: float | None = None
    stage: str | None = None


class CompleteEvent(_ProgressFields):
    type: Literal["complete"]
    answer: str = ""
    sources: list[AgentSource] | None = None
    thread_id: str | None = None
    plan: str | None = None
    metadata: CompleteMetadata | None = None


class ErrorEvent(_ProgressFields):
    type: Literal["error"]
    message: str
    code: str | None = None


StreamEvent = Annotated[
    Union[
        ThinkingEvent,
        TokenEvent,
        SourceEvent,
        ToolEvent,
        ClarificationEvent,
        CompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = frozenset({"complete", "error"})

_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_event(data: Any) -> StreamEvent:
    """Validate a decoded SSE payload into a typed stream event.

    Args:
        data: Decoded JSON payload.

    Returns:
        The matching event model.

    Raises:
        ProtocolError: If the payload is not a known, well-formed event.
    """
    try:
        return _event_adapter.validate_python(data)
    except ValidationError as e:
        raise ProtocolError(
            f"Malformed stream event: {e.error_count()} validation error(s)",
            code="MALFORMED_EVENT",
        ) from e


def is_terminal(event: StreamEvent) -> bool:
    """Return True for events that end a turn."""
    return event.type in TERMINAL_EVENT_TYPES
