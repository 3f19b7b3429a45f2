"""Transport to the remote agent gateway.

HTTP and Server-Sent Event access to the agent with async request handling.
Low-level failures (connection drops, timeouts, malformed payloads) are
translated into the client's error taxonomy here; nothing above this layer
sees raw wire bytes.

Endpoints consumed:
    - GET /ask/stream: Streamed answer as SSE events
    - GET /ask: Complete answer in one response
    - GET /ask/config: Available providers and models
    - GET /health: Gateway health status
"""

from agent_chat.api.client import AgentServiceClient, Transport, decode_sse_line

__all__ = ["AgentServiceClient", "Transport", "decode_sse_line"]
