"""Reduction of the agent's event stream into conversation state.

Responsibilities:
    - Track live progress (stage, percent, waiting, status)
    - Keep a bounded rolling log of what the agent is doing
    - Accumulate tokens, sources and tool results for the turn
    - Synthesize clarification, tool-summary and answer messages

Pure state machine; no I/O.
"""

from agent_chat.streaming.formatting import (
    format_clarification,
    format_tool_summary,
    title_case_tool_name,
)
from agent_chat.streaming.reducer import (
    PROGRESS_LOG_SIZE,
    StreamReducer,
    TurnState,
    clamp_percent,
)

__all__ = [
    "PROGRESS_LOG_SIZE",
    "StreamReducer",
    "TurnState",
    "clamp_percent",
    "format_clarification",
    "format_tool_summary",
    "title_case_tool_name",
]
