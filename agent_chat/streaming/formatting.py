"""Text rendering for messages synthesized from structured stream data."""

import re
from collections.abc import Mapping, Sequence

_WORD_SPLIT = re.compile(r"[_\s-]+")


def title_case_tool_name(tool: str) -> str:
    """Render a tool identifier for display: ``db_search`` -> ``Db Search``."""
    words = [w for w in _WORD_SPLIT.split(tool.strip()) if w]
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def format_tool_summary(tool_results: Mapping[str, str]) -> str:
    """Build the "Tool Summary" message body, one line per tool."""
    lines = ["Tool Summary"]
    for tool, summary in tool_results.items():
        lines.append(f"- {title_case_tool_name(tool)}: {summary}")
    return "\n".join(lines)


def format_clarification(prompt: str, questions: Sequence[str]) -> str:
    """Build the "Clarification needed" message body."""
    content = f"Clarification needed:\n{prompt}"
    if questions:
        numbered = "\n".join(f"{i}. {q}" for i, q in enumerate(questions, start=1))
        content = f"{content}\n\n{numbered}"
    return content
