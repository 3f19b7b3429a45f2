"""HTTP client for the agent gateway with SSE streaming support."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

import httpx
from pydantic import ValidationError

from agent_chat.config import ChatClientConfig, get_client_config
from agent_chat.errors import (
    AgentServiceError,
    NetworkError,
    ProtocolError,
    StreamTimeoutError,
)
from agent_chat.models.events import StreamEvent, is_terminal, parse_event
from agent_chat.models.schemas import AgentConfigResponse, AgentResponse, AskRequest

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"


class Transport(Protocol):
    """Source of agent events for one turn.

    Yields events in emission order, ending after one ``complete`` or
    ``error`` event (or a clarification that leaves the agent waiting).
    Connection failures surface as ``AgentServiceError`` subclasses.
    """

    def stream(self, request: AskRequest) -> AsyncIterator[StreamEvent]: ...


def decode_sse_line(line: str) -> StreamEvent | None:
    """Decode one SSE line into an event.

    Returns:
        The event, or None for blank, comment and non-data lines.

    Raises:
        ProtocolError: If the data payload is not valid JSON or not a known event.
    """
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    payload = line[len(SSE_DATA_PREFIX) :].strip()
    if not payload:
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProtocolError(
            f"Malformed stream payload: {e.msg}", code="MALFORMED_EVENT"
        ) from e
    return parse_event(data)


async def _next_line(lines: AsyncIterator[str]) -> str | None:
    try:
        return await anext(lines)
    except StopAsyncIteration:
        return None


class AgentServiceClient:
    """Client for the agent gateway's ``/ask`` endpoints.

    Implements ``Transport`` over Server-Sent Events and adds the
    non-streaming helpers the gateway exposes.

    Args:
        config: Client configuration. Loads from environment if not provided.
        client: Optional shared ``httpx.AsyncClient``. When omitted, a client
            is opened per call.
    """

    def __init__(
        self,
        config: ChatClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_client_config()
        self._client = client

    def _url(self, path: str) -> str:
        return f"{self._config.gateway_url}{path}"

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient() as client:
            yield client

    async def stream(self, request: AskRequest) -> AsyncIterator[StreamEvent]:
        """Ask a question and stream the agent's events.

        Args:
            request: Question, thread and model preferences for this turn.

        Yields:
            Stream events in emission order.

        Raises:
            StreamTimeoutError: If the turn exceeds ``stream_timeout``.
            NetworkError: If the gateway cannot be reached.
            ProtocolError: If the stream carries a malformed event.
            AgentServiceError: If the gateway answers with an HTTP error.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.stream_timeout

        try:
            async with (
                self._http() as client,
                client.stream(
                    "GET",
                    self._url("/ask/stream"),
                    params=request.to_query_params(),
                    headers={"Accept": "text/event-stream"},
                    timeout=self._config.stream_timeout,
                ) as response,
            ):
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise AgentServiceError(
                        f"Agent request failed: {body or response.reason_phrase}",
                        status_code=response.status_code,
                        code="HTTP_ERROR",
                    )

                lines = response.aiter_lines()
                while True:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise StreamTimeoutError()
                    try:
                        line = await asyncio.wait_for(_next_line(lines), remaining)
                    except TimeoutError:
                        raise StreamTimeoutError() from None
                    if line is None:
                        return

                    event = decode_sse_line(line)
                    if event is None:
                        continue
                    yield event
                    if is_terminal(event):
                        return
        except httpx.TimeoutException as e:
            logger.warning(f"Stream timed out for thread {request.thread_id}")
            raise StreamTimeoutError() from e
        except httpx.RequestError as e:
            logger.error(f"Stream connection failed: {e}")
            raise NetworkError(f"Stream connection failed: {e}", code="STREAM_ERROR") from e

    async def ask(self, request: AskRequest) -> AgentResponse:
        """Ask a question and wait for the complete answer (non-streaming).

        Raises:
            AgentServiceError: On HTTP errors or timeouts.
            NetworkError: If the gateway cannot be reached.
            ProtocolError: If the response body is not a valid answer.
        """
        try:
            async with self._http() as client:
                response = await client.get(
                    self._url("/ask"),
                    params=request.to_query_params(),
                    headers={"Accept": "application/json"},
                    timeout=self._config.request_timeout,
                )
        except httpx.TimeoutException as e:
            raise AgentServiceError(
                "Request timeout - please try again", status_code=504, code="TIMEOUT"
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e

        if response.is_error:
            raise AgentServiceError(
                f"Agent request failed: {response.text}",
                status_code=response.status_code,
            )
        try:
            return AgentResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProtocolError("Malformed agent response", code="MALFORMED_RESPONSE") from e

    async def get_config(self) -> AgentConfigResponse:
        """Fetch the providers and models offered by the gateway."""
        try:
            async with self._http() as client:
                response = await client.get(
                    self._url("/ask/config"),
                    headers={"Accept": "application/json"},
                    timeout=self._config.request_timeout,
                )
        except httpx.RequestError as e:
            raise NetworkError("Failed to connect to agent service") from e

        if response.is_error:
            raise AgentServiceError(
                "Failed to fetch agent configuration",
                status_code=response.status_code,
            )
        try:
            return AgentConfigResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProtocolError(
                "Malformed agent configuration", code="MALFORMED_RESPONSE"
            ) from e

    async def health_check(self) -> bool:
        """Return True if the gateway reports healthy."""
        try:
            async with self._http() as client:
                response = await client.get(
                    self._url("/health"), timeout=self._config.request_timeout
                )
        except httpx.HTTPError as e:
            logger.warning(f"Health check failed: {e}")
            return False
        return response.is_success
