"""Conversation orchestration on top of the agent transport.

Handles question/answer turns with local persistence, clarification
resumption, retry and cancellation.

Responsibilities:
    - Appending and persisting user messages before any network activity
    - Feeding stream events through the reducer and persisting results
    - Thread identity, including server-assigned thread ids
    - Uniform error reporting into state, transcript and callback

Exposes the state bundle and operations a presentation layer needs.
"""

from agent_chat.agent.chat_controller import (
    AgentChatController,
    ErrorCallback,
    create_chat_controller,
)

__all__ = ["AgentChatController", "ErrorCallback", "create_chat_controller"]
