"""Shared pytest fixtures for httpbuilder tests.

Loads the httpbuilder.testing fixtures (mock_server, recording_observer,
request_counters, mock_client) and adds builders wired to them.
"""

from __future__ import annotations

import httpx
import pytest

from httpbuilder.request.builder import RequestBuilder
from httpbuilder.testing.mocks import RecordingObserver
from httpbuilder.transport.counters import RequestCounters

pytest_plugins = ["httpbuilder.testing.fixtures"]


@pytest.fixture
def make_builder(
    mock_client: httpx.AsyncClient,
    recording_observer: RecordingObserver,
    request_counters: RequestCounters,
):
    """Factory creating builders on the mock client with isolated counters."""

    def _make(path: str = "") -> RequestBuilder:
        return RequestBuilder(recording_observer, mock_client, path, counters=request_counters)

    return _make
