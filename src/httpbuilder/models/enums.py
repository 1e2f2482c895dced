"""Enumerations for httpbuilder.

This module defines all enum types used by the request pipeline to ensure
type safety and prevent magic strings.
"""

from enum import Enum


class HttpMethod(str, Enum):
    """HTTP methods a request builder can send.

    Example:
        >>> HttpMethod.POST.value
        'POST'
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"


class CompletionOption(str, Enum):
    """When a dispatched request is considered complete.

    RESPONSE_CONTENT_READ: the whole body is read before the first step runs
    RESPONSE_HEADERS_READ: the first step runs once headers arrive; the body
        is streamed lazily
    """

    RESPONSE_CONTENT_READ = "response_content_read"
    RESPONSE_HEADERS_READ = "response_headers_read"

    @property
    def streams_body(self) -> bool:
        return self is CompletionOption.RESPONSE_HEADERS_READ


class OutcomeKind(str, Enum):
    """The three ways a chain step can settle."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
