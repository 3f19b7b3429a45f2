"""Integration tests for components working together as a system.

Coverage:
    - AgentServiceClient against a FastAPI gateway over httpx ASGITransport
    - Failure mapping with httpx MockTransport (refused, stalled, HTTP errors)
    - Full chat turns from send_message to persisted transcript

No live services required.
"""
