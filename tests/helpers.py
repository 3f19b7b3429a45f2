"""Test doubles and event payload builders shared across test modules."""

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any

from agent_chat.models import AskRequest, StreamEvent, parse_event


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class ScriptedTransport:
    """Transport replaying one scripted list of events per call.

    Script items are event payload dicts, exceptions (raised in place) or
    ``asyncio.Event`` gates (awaited before continuing).
    """

    def __init__(self, *turns: list[Any]) -> None:
        self.turns = list(turns)
        self.requests: list[AskRequest] = []
        self.closed = 0

    async def stream(self, request: AskRequest) -> AsyncIterator[StreamEvent]:
        self.requests.append(request)
        script = self.turns.pop(0) if self.turns else []
        try:
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                if isinstance(item, asyncio.Event):
                    await item.wait()
                    continue
                yield parse_event(item)
        finally:
            self.closed += 1


def thinking(message: str, **fields: Any) -> dict[str, Any]:
    return {"type": "thinking", "message": message, **fields}


def token(content: str) -> dict[str, Any]:
    return {"type": "token", "content": content}


def tool_event(phase: str, tool: str, message: str) -> dict[str, Any]:
    return {"type": "tool_event", "phase": phase, "tool": tool, "message": message}


def clarification(message: str | None = None, **fields: Any) -> dict[str, Any]:
    return {"type": "clarification", "message": message, **fields}


def complete(answer: str, sources: list[dict] | None = None, **fields: Any) -> dict[str, Any]:
    return {"type": "complete", "answer": answer, "sources": sources or [], **fields}


def error(message: str, code: str | None = None, **fields: Any) -> dict[str, Any]:
    return {"type": "error", "message": message, "code": code, **fields}
