"""Agent chat controller: the conversational API the UI talks to.

One controller owns one active thread. A turn runs from ``send_message``
until the agent's terminal event:

1. The user message is appended and persisted before any network activity.
2. One transport stream is opened; every event is folded by a fresh
   ``StreamReducer`` and the messages it produces are persisted as soon as
   the event has been applied.
3. Failures of any kind end the turn with a uniform ``AgentServiceError``,
   recorded as ``error`` and appended to the transcript.

Turns are single-flight per controller. Thread switches
(``start_new_conversation``, ``load_thread``) bump a generation counter and
cancel the stream task; events from a turn tagged with an older generation
are discarded without touching state.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import timedelta

from pydantic import ValidationError

from agent_chat.api.client import AgentServiceClient, Transport
from agent_chat.config import ChatClientConfig, get_client_config
from agent_chat.errors import AgentServiceError, ProtocolError, StorageError
from agent_chat.models.schemas import (
    AskRequest,
    ChatError,
    ChatState,
    Feedback,
    Message,
    PendingClarification,
    ProgressState,
    ProgressStatus,
    Rating,
    TurnStatus,
    new_id,
)
from agent_chat.storage.backends import FileStorage, MemoryStorage
from agent_chat.storage.conversation_store import ConversationStore
from agent_chat.streaming.reducer import StreamReducer, TurnState

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[AgentServiceError], None]

ERROR_MESSAGE_PREFIX = "Sorry, I encountered an error: "


class AgentChatController:
    """Orchestrates question/answer turns against a remote agent.

    Args:
        transport: Source of agent events.
        store: Persistence for the thread's messages.
        config: Client configuration. Loads from environment if not provided.
        on_error: Called with the error whenever a turn fails.
        initial_thread_id: Thread to open; a fresh id is allocated if omitted.

    Attributes:
        thread_id: Active thread identifier.
        messages: Transcript of the active thread.
        is_loading: Whether a turn is in flight.
        streaming_message: Live hint text for the turn in flight.
        progress_log: Rolling log of the current or last turn.
        progress: Structured progress of the turn in flight.
        pending_clarification: Outstanding clarification request, if any.
        error: Error that ended the last turn, if any.
    """

    def __init__(
        self,
        transport: Transport,
        store: ConversationStore,
        config: ChatClientConfig | None = None,
        on_error: ErrorCallback | None = None,
        initial_thread_id: str | None = None,
    ) -> None:
        self._transport = transport
        self._store = store
        self._config = config or get_client_config()
        self._on_error = on_error
        self._generation = 0
        self._turn_lock = asyncio.Lock()
        self._stream_task: asyncio.Task[None] | None = None

        self.thread_id: str = initial_thread_id or new_id()
        self.messages: list[Message] = self._load(self.thread_id)
        self.is_loading = False
        self.streaming_message: str | None = None
        self.progress_log: list[str] = []
        self.progress: ProgressState | None = None
        self.pending_clarification: PendingClarification | None = None
        self.error: AgentServiceError | None = None

    # === Derived state ===

    @property
    def turn_status(self) -> TurnStatus:
        if self.is_loading:
            return TurnStatus.STREAMING
        if self.error is not None:
            return TurnStatus.ERROR
        if self.messages and self.messages[-1].role == "assistant":
            return TurnStatus.ANSWERED
        return TurnStatus.IDLE

    @property
    def can_retry(self) -> bool:
        return not self.is_loading and self.error is not None

    @property
    def state(self) -> ChatState:
        """Snapshot of the controller for rendering."""
        error = None
        if self.error is not None:
            error = ChatError(message=self.error.message, code=self.error.code)
        return ChatState(
            thread_id=self.thread_id,
            messages=list(self.messages),
            is_loading=self.is_loading,
            streaming_message=self.streaming_message,
            progress_log=list(self.progress_log),
            progress=self.progress,
            pending_clarification=self.pending_clarification,
            error=error,
            turn_status=self.turn_status,
        )

    # === Operations ===

    async def send_message(self, text: str) -> None:
        """Send a user message and stream the agent's answer.

        Blank input is ignored. A call made while a turn is in flight waits
        for that turn to finish.

        Args:
            text: The user's message.
        """
        if not text.strip():
            return
        async with self._turn_lock:
            await self._run_turn(text)

    async def retry_last_message(self) -> None:
        """Resend the most recent user message.

        Discards the single most recent message after it (the failed reply)
        and submits the user's original text again. No-op without a prior
        user message.
        """
        async with self._turn_lock:
            last_user = next(
                (i for i in range(len(self.messages) - 1, -1, -1)
                 if self.messages[i].role == "user"),
                None,
            )
            if last_user is None:
                return
            text = self.messages[last_user].content
            if last_user < len(self.messages) - 1:
                self.messages = self.messages[:-1]
                self._persist()
            logger.info(f"Retrying last message on thread {self.thread_id}")
            await self._run_turn(text)

    def start_new_conversation(self) -> None:
        """Delete the active thread and start an empty one.

        Safe to call while a turn is in flight: the stream is cancelled and
        its remaining events are discarded. Never calls the agent.
        """
        self._abandon_turn()
        self._delete(self.thread_id)
        self.thread_id = new_id()
        self.messages = []
        self.pending_clarification = None
        self.error = None
        logger.info(f"Started new conversation {self.thread_id}")

    clear_thread = start_new_conversation

    def load_thread(self, thread_id: str) -> None:
        """Switch to another thread and load its messages from the store.

        An absent or expired thread loads as an empty transcript.
        """
        self._abandon_turn()
        self.thread_id = thread_id
        self.messages = self._load(thread_id)
        self.pending_clarification = None
        self.error = None

    def submit_feedback(
        self,
        message_id: str,
        rating: Rating,
        comment: str | None = None,
    ) -> bool:
        """Attach feedback to a message and persist the thread.

        Returns:
            True if the message was found.
        """
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                updated = message.model_copy(
                    update={"feedback": Feedback(rating=rating, comment=comment)}
                )
                self.messages = [*self.messages[:i], updated, *self.messages[i + 1 :]]
                self._persist()
                return True
        return False

    def list_thread_ids(self) -> list[str]:
        try:
            return self._store.list_thread_ids()
        except StorageError as e:
            logger.warning(f"Cannot list threads: {e}")
            return []

    def time_remaining(self) -> timedelta | None:
        """Time until the active thread expires, or None if it is not stored."""
        try:
            return self._store.time_remaining(self.thread_id)
        except StorageError as e:
            logger.warning(f"Cannot read expiry of thread {self.thread_id}: {e}")
            return None

    # === Turn execution ===

    async def _run_turn(self, text: str) -> None:
        generation = self._generation
        pending = self.pending_clarification

        self._append(Message(role="user", content=text))

        question, clarification_response = text, None
        if pending is not None:
            question, clarification_response = pending.original_question, text

        try:
            request = AskRequest(
                question=question,
                thread_id=self.thread_id,
                lang=self._config.language,
                provider=self._config.provider,
                model=self._config.model,
                clarification_response=clarification_response,
            )
        except ValidationError as e:
            self._fail_turn(
                AgentServiceError(
                    f"Invalid request: {e.error_count()} validation error(s)",
                    code="INVALID_REQUEST",
                )
            )
            return
        reducer = StreamReducer(question, self.thread_id, pending_clarification=pending)

        self.is_loading = True
        self.error = None
        self.streaming_message = None
        self.progress_log = []
        self.progress = reducer.progress
        logger.info(f"Turn started on thread {self.thread_id}")

        self._stream_task = asyncio.create_task(self._consume(request, reducer, generation))
        try:
            await self._stream_task
            if not self._is_stale(generation):
                self.pending_clarification = reducer.pending_clarification
                logger.info(f"Turn finished on thread {self.thread_id} ({reducer.state.value})")
        except asyncio.CancelledError:
            if not self._is_stale(generation):
                raise
            logger.debug(f"Turn on thread {request.thread_id} abandoned")
        except Exception as e:
            if self._is_stale(generation):
                logger.debug(f"Ignoring failure of abandoned turn: {e}")
            else:
                self.pending_clarification = reducer.pending_clarification
                self._fail_turn(e)
        finally:
            self._stream_task = None
            if not self._is_stale(generation):
                self.is_loading = False
                self.streaming_message = None
                self.progress = None

    async def _consume(
        self,
        request: AskRequest,
        reducer: StreamReducer,
        generation: int,
    ) -> None:
        events = self._transport.stream(request)
        try:
            async for event in events:
                if self._is_stale(generation):
                    logger.debug(
                        f"Discarding '{event.type}' event for abandoned thread {request.thread_id}"
                    )
                    return
                try:
                    produced = reducer.apply(event)
                finally:
                    self._sync_progress(reducer)
                if produced or reducer.thread_id != self.thread_id:
                    self._adopt(reducer.thread_id, produced)
                if reducer.is_finished:
                    break
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        if reducer.state in (TurnState.IDLE, TurnState.STREAMING):
            raise ProtocolError(
                "Stream ended before the agent finished", code="STREAM_INCOMPLETE"
            )

    def _sync_progress(self, reducer: StreamReducer) -> None:
        self.progress = reducer.progress
        self.progress_log = reducer.progress_log
        self.streaming_message = reducer.streaming_message

    def _adopt(self, thread_id: str, produced: list[Message]) -> None:
        """Append produced messages, following a server-assigned thread id."""
        if thread_id != self.thread_id:
            self._delete(self.thread_id)
            self.thread_id = thread_id
        self.messages = [*self.messages, *produced]
        self._persist()

    def _fail_turn(self, exc: Exception) -> None:
        if isinstance(exc, AgentServiceError):
            error = exc
            logger.warning(f"Turn failed on thread {self.thread_id}: {error.message} ({error.code})")
        else:
            logger.exception("Unexpected error during turn")
            error = AgentServiceError("An unexpected error occurred", code="UNKNOWN")

        self.error = error
        if self.progress is not None:
            self.progress = self.progress.model_copy(update={"status": ProgressStatus.ERROR})
        self._append(Message(role="assistant", content=f"{ERROR_MESSAGE_PREFIX}{error.message}"))
        if self._on_error is not None:
            self._on_error(error)

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _abandon_turn(self) -> None:
        self._generation += 1
        if self._stream_task is not None and not self._stream_task.done():
            self._stream_task.cancel()
        self.is_loading = False
        self.streaming_message = None
        self.progress_log = []
        self.progress = None

    # === Storage ===

    def _append(self, message: Message) -> None:
        self.messages = [*self.messages, message]
        self._persist()

    def _persist(self) -> None:
        try:
            self._store.save(self.thread_id, self.messages)
        except StorageError as e:
            logger.warning(f"Thread {self.thread_id} kept in memory only: {e}")

    def _load(self, thread_id: str) -> list[Message]:
        try:
            return self._store.load(thread_id) or []
        except StorageError as e:
            logger.warning(f"Cannot load thread {thread_id}: {e}")
            return []

    def _delete(self, thread_id: str) -> None:
        try:
            self._store.delete(thread_id)
        except StorageError as e:
            logger.warning(f"Cannot delete thread {thread_id}: {e}")


def create_chat_controller(
    config: ChatClientConfig | None = None,
    on_error: ErrorCallback | None = None,
) -> AgentChatController:
    """Build a controller wired to the HTTP gateway and the configured store.

    Args:
        config: Client configuration. Loads from environment if not provided.
        on_error: Optional failure callback.

    Returns:
        A ready AgentChatController.
    """
    config = config or get_client_config()
    storage = FileStorage(config.storage_dir) if config.storage_dir else MemoryStorage()
    store = ConversationStore(
        storage,
        ttl=config.thread_ttl,
        max_threads=config.max_threads,
        max_messages=config.max_messages_per_thread,
    )
    store.purge_expired()
    return AgentChatController(
        transport=AgentServiceClient(config),
        store=store,
        config=config,
        on_error=on_error,
    )
