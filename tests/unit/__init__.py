"""Unit tests for individual components in isolation.

Ensures fast execution with no network access.

Coverage:
    - storage/: Expiry, purge, capacity recovery and file backend
    - streaming/: Event reduction and message formatting
    - agent/: Turn orchestration over a scripted transport
    - config: Validation and environment loading

Uses a fake clock and scripted transports instead of sleeping or serving.
Leverages pytest-check for multiple assertions per test.
"""
