"""Process-scoped request counters.

RequestCounters hands out sequential request identifiers and tracks how many
dispatched requests have not settled yet. Builders share the process-wide
instance returned by get_request_counters() unless given their own.

The counters only ever move forward (dispatched) or up and down by one per
request (in flight); they are never reset.
"""

from __future__ import annotations

import threading


class RequestCounters:
    """Thread-safe dispatch and in-flight counters.

    Example:
        >>> counters = RequestCounters()
        >>> counters.begin_request()
        0
        >>> counters.in_flight
        1
        >>> counters.end_request()
        >>> counters.in_flight, counters.dispatched
        (0, 1)
    """

    def __init__(self) -> None:
        self._dispatched = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    def begin_request(self) -> int:
        """Draw the next request id and count the request as in flight.

        Returns:
            The id of the new request (0-based, unique for this instance)
        """
        with self._lock:
            request_id = self._dispatched
            self._dispatched += 1
            self._in_flight += 1
            return request_id

    def end_request(self) -> None:
        with self._lock:
            self._in_flight -= 1

    @property
    def dispatched(self) -> int:
        """Number of requests dispatched so far."""
        with self._lock:
            return self._dispatched

    @property
    def in_flight(self) -> int:
        """Number of dispatched requests that have not settled yet."""
        with self._lock:
            return self._in_flight


_default_counters = RequestCounters()


def get_request_counters() -> RequestCounters:
    """Get the process-wide request counters."""
    return _default_counters
