"""Stream event reducer: folds one turn's agent events into chat state.

The reducer is a state machine over a single in-flight turn::

    IDLE -> STREAMING -> COMPLETED | ERRORED
              |   ^
              v   |
      AWAITING_CLARIFICATION

It performs no I/O. The controller feeds events in arrival order and
persists whatever messages each ``apply`` call returns.
"""

import logging
from collections import deque
from enum import Enum

from agent_chat.errors import ProtocolError
from agent_chat.models.events import (
    ClarificationEvent,
    CompleteEvent,
    ErrorEvent,
    SourceEvent,
    StreamEvent,
    ThinkingEvent,
    TokenEvent,
    ToolEvent,
)
from agent_chat.models.schemas import (
    AgentSource,
    Message,
    PendingClarification,
    ProgressState,
    ProgressStatus,
)
from agent_chat.streaming.formatting import format_clarification, format_tool_summary

logger = logging.getLogger(__name__)

PROGRESS_LOG_SIZE = 8
PREVIEW_LENGTH = 100
MAX_SUGGESTED_QUESTIONS = 3

_TOOL_PHASE_ICONS = {"start": "⏳", "result": "✅"}
_TOOL_ERROR_ICON = "⚠️"


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    AWAITING_CLARIFICATION = "awaiting_clarification"
    COMPLETED = "completed"
    ERRORED = "errored"


def clamp_percent(value: float) -> int:
    """Clamp a reported progress value into [0, 100]."""
    return int(round(min(100.0, max(0.0, value))))


class StreamReducer:
    """Incrementally reduce one turn's event stream.

    Args:
        question: Question sent to the agent for this turn.
        thread_id: Thread the turn belongs to.
        pending_clarification: Clarification carried over from the previous
            turn, cleared when this turn completes.

    Attributes:
        state: Current turn state.
        progress: Latest structured progress.
        streaming_message: Live hint text for the UI.
        tool_results: Last result message per tool, in first-seen order.
        sources: Sources announced by ``source`` events.
        messages: Every message produced so far in this turn.
    """

    def __init__(
        self,
        question: str,
        thread_id: str,
        pending_clarification: PendingClarification | None = None,
    ) -> None:
        self.question = question
        self.thread_id = thread_id
        self.pending_clarification = pending_clarification
        self.state = TurnState.IDLE
        self.progress = ProgressState()
        self.streaming_message: str | None = None
        self.tool_results: dict[str, str] = {}
        self.sources: list[AgentSource] = []
        self.messages: list[Message] = []
        self._answer_parts: list[str] = []
        self._log: deque[str] = deque(maxlen=PROGRESS_LOG_SIZE)

    @property
    def progress_log(self) -> list[str]:
        return list(self._log)

    @property
    def answer_buffer(self) -> str:
        return "".join(self._answer_parts)

    @property
    def is_finished(self) -> bool:
        return self.state in (TurnState.COMPLETED, TurnState.ERRORED)

    def apply(self, event: StreamEvent) -> list[Message]:
        """Fold one event into the turn.

        Args:
            event: Next event, in arrival order.

        Returns:
            Messages produced by this event that must be persisted.

        Raises:
            ProtocolError: On an ``error`` event, or any event after the turn
                has ended.
        """
        if self.is_finished:
            raise ProtocolError(
                f"Received '{event.type}' event after the turn ended",
                code="UNEXPECTED_EVENT",
            )
        if self.state in (TurnState.IDLE, TurnState.AWAITING_CLARIFICATION):
            self.state = TurnState.STREAMING

        self._update_progress(event)
        handler = getattr(self, f"_on_{event.type}")
        produced: list[Message] = handler(event)
        self.messages.extend(produced)
        return produced

    def _update_progress(self, event: StreamEvent) -> None:
        updates: dict[str, object] = {}
        if event.stage:
            updates["stage"] = event.stage
        if event.progress is not None:
            updates["percent"] = clamp_percent(event.progress)
        if event.waiting is not None:
            updates["waiting"] = event.waiting
        if event.status is not None:
            updates["status"] = event.status
        elif event.waiting is not None:
            updates["status"] = (
                ProgressStatus.WAITING if event.waiting else ProgressStatus.WORKING
            )
        if updates:
            self.progress = self.progress.model_copy(update=updates)

    def _on_thinking(self, event: ThinkingEvent) -> list[Message]:
        self.streaming_message = event.message
        if event.message:
            self._log.append(event.message)
        return []

    def _on_token(self, event: TokenEvent) -> list[Message]:
        self._answer_parts.append(event.content)
        self.streaming_message = self.answer_buffer[:PREVIEW_LENGTH] + "..."
        return []

    def _on_source(self, event: SourceEvent) -> list[Message]:
        self.sources.append(
            AgentSource(
                url=event.url,
                title=event.title,
                type=event.source_type or "document",
            )
        )
        return []

    def _on_tool_event(self, event: ToolEvent) -> list[Message]:
        icon = _TOOL_PHASE_ICONS.get(event.phase, _TOOL_ERROR_ICON)
        self._log.append(f"{icon} {event.message}")
        self.streaming_message = event.message
        if event.phase == "result":
            self.tool_results[event.tool or "tool"] = event.message
        return []

    def _on_clarification(self, event: ClarificationEvent) -> list[Message]:
        questions = [q.strip() for q in event.questions or [] if q and q.strip()]
        prompt = (event.message or "").strip() or "\n".join(questions)
        candidates = event.suggested_questions or event.questions or []
        suggested = [q.strip() for q in candidates if q and q.strip()]
        suggested = suggested[:MAX_SUGGESTED_QUESTIONS]

        self.pending_clarification = PendingClarification(
            original_question=self.question,
            prompt=prompt,
            questions=suggested,
        )
        self.state = TurnState.AWAITING_CLARIFICATION
        self.streaming_message = prompt
        self.progress = self.progress.model_copy(
            update={"waiting": True, "status": ProgressStatus.WAITING}
        )
        logger.debug(f"Agent requested clarification: {prompt!r}")
        return [
            Message(role="assistant", content=format_clarification(prompt, suggested))
        ]

    def _on_complete(self, event: CompleteEvent) -> list[Message]:
        self.pending_clarification = None
        self.state = TurnState.COMPLETED
        self.streaming_message = None
        produced: list[Message] = []

        if self.tool_results:
            produced.append(
                Message(role="assistant", content=format_tool_summary(self.tool_results))
            )

        answer = event.answer if event.answer.strip() else self.answer_buffer
        if answer.strip():
            sources = event.sources if event.sources is not None else self.sources
            produced.append(
                Message(
                    role="assistant",
                    content=answer,
                    sources=[s.to_message_source() for s in sources],
                )
            )

        if event.thread_id and event.thread_id != self.thread_id:
            logger.info(f"Agent reassigned thread {self.thread_id} -> {event.thread_id}")
            self.thread_id = event.thread_id

        metadata = event.metadata
        percent = 100
        if metadata is not None and metadata.progress is not None:
            percent = clamp_percent(metadata.progress)
        self.progress = ProgressState(
            stage=(metadata.stage if metadata and metadata.stage else "Complete"),
            percent=percent,
            waiting=False,
            status=ProgressStatus.WORKING,
        )
        return produced

    def _on_error(self, event: ErrorEvent) -> list[Message]:
        self.state = TurnState.ERRORED
        self.streaming_message = None
        self.progress = self.progress.model_copy(
            update={"status": ProgressStatus.ERROR, "waiting": False}
        )
        raise ProtocolError(event.message, code=event.code)
