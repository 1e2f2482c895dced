"""httpbuilder testing utilities for easier test authoring.

This package provides pytest fixtures, a mock server, a recording observer,
and custom assertions to reduce boilerplate when testing code built on
httpbuilder.

Modules:
    fixtures: Pytest fixtures (mock_server, recording_observer,
              request_counters, mock_client).
    mocks: MockServer (pre-set responses, request recording) and
           RecordingObserver (records observer hook calls).
    assertions: Custom assertions (assert_hooks_called_in_order,
              assert_hooks_not_called, assert_query_equals).

Example:
    >>> from httpbuilder.testing import MockServer, RecordingObserver
    >>> server = MockServer()
    >>> server.set_response("GET", "/users/1", json={"id": 1})
"""

from httpbuilder.testing.assertions import (
    assert_hooks_called_in_order,
    assert_hooks_not_called,
    assert_query_equals,
)
from httpbuilder.testing.mocks import MockServer, ObserverCall, RecordingObserver

__all__ = [
    "MockServer",
    "ObserverCall",
    "RecordingObserver",
    "assert_hooks_called_in_order",
    "assert_hooks_not_called",
    "assert_query_equals",
]
