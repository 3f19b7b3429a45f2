"""Pydantic models for messages, stream events and chat state.

Provides type safety and validation at the boundaries: events decoded from
the agent stream, records read back from storage, and state snapshots handed
to the presentation layer.

Models:
    - Message: One turn in a conversation
    - StreamEvent: Tagged union of agent stream events
    - ProgressState: Live progress of the turn in flight
    - PendingClarification: Outstanding agent request for more input
    - AskRequest: Transport payload for one turn
    - ChatState: Snapshot exposed by the controller
"""

from agent_chat.models.events import (
    ClarificationEvent,
    CompleteEvent,
    CompleteMetadata,
    ErrorEvent,
    SourceEvent,
    StreamEvent,
    ThinkingEvent,
    TokenEvent,
    ToolEvent,
    is_terminal,
    parse_event,
)
from agent_chat.models.schemas import (
    AgentConfigResponse,
    AgentResponse,
    AgentSource,
    AskRequest,
    ChatError,
    ChatState,
    Feedback,
    Message,
    MessageSource,
    PendingClarification,
    ProgressState,
    ProgressStatus,
    TurnStatus,
)

__all__ = [
    "AgentConfigResponse",
    "AgentResponse",
    "AgentSource",
    "AskRequest",
    "ChatError",
    "ChatState",
    "ClarificationEvent",
    "CompleteEvent",
    "CompleteMetadata",
    "ErrorEvent",
    "Feedback",
    "Message",
    "MessageSource",
    "PendingClarification",
    "ProgressState",
    "ProgressStatus",
    "SourceEvent",
    "StreamEvent",
    "ThinkingEvent",
    "TokenEvent",
    "ToolEvent",
    "TurnStatus",
    "is_terminal",
    "parse_event",
]
