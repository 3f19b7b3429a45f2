"""Test package for Agent Chat.

Unit tests cover isolated logic; integration tests drive the HTTP client
and controller through an in-process gateway.

Structure:
    - unit/: Store, reducer, config and controller tests
    - integration/: SSE client and full chat turns over ASGI
    - helpers.py: Fake clock, scripted transport and event builders

Leverages pytest with pytest-asyncio for coroutine tests and pytest-check
for soft assertions.
"""
