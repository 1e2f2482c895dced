"""Pytest fixtures for httpbuilder tests.

Fixtures (use with pytest):
    mock_server: Fresh MockServer for the test.
    recording_observer: Fresh RecordingObserver for the test.
    request_counters: Fresh RequestCounters, isolated from the process-wide ones.
    mock_client: httpx.AsyncClient routed to mock_server (async; closed after the test).
"""

from collections.abc import AsyncIterator

import httpx
import pytest

from httpbuilder.testing.mocks import MockServer, RecordingObserver
from httpbuilder.transport.counters import RequestCounters


@pytest.fixture
def mock_server() -> MockServer:
    return MockServer()


@pytest.fixture
def recording_observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def request_counters() -> RequestCounters:
    return RequestCounters()


@pytest.fixture
async def mock_client(mock_server: MockServer) -> AsyncIterator[httpx.AsyncClient]:
    """Provide an AsyncClient whose requests are answered by mock_server."""
    async with mock_server.client() as client:
        yield client


__all__ = [
    "mock_client",
    "mock_server",
    "recording_observer",
    "request_counters",
]
