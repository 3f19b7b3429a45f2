"""Agent Chat - streaming client for a remote conversational agent.

Combines httpx for Server-Sent Event streaming, Pydantic for event and
state validation, and a TTL-scoped local store for conversation history.

Components:
    - api: Transport to the agent gateway (SSE and plain HTTP)
    - streaming: Reducer folding agent events into conversation state
    - storage: Local conversation store with 24-hour expiry
    - agent: Controller exposing send/retry/new-conversation/load-thread
    - models: Messages, stream events and state schemas
"""

__version__ = "0.1.0"
