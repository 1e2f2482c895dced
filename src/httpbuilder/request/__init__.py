"""Request building and response chaining.

Public exports:
    RequestBuilder: Fluent builder of a single HTTP request
    RequestHandler: Chainable handle on an intermediate result
    RequestObserver: Lifecycle hooks with no-op defaults
    LoggingObserver: Observer that logs every lifecycle point
    ContentStream: Readable view over a response body
    copy_with_progress: Chunked copy with progress callbacks
    ProgressHandler: Type of the progress callback
"""

from httpbuilder.request.builder import RequestBuilder
from httpbuilder.request.handler import RequestHandler
from httpbuilder.request.observer import LoggingObserver, RequestObserver
from httpbuilder.request.streaming import ContentStream, ProgressHandler, copy_with_progress

__all__ = [
    "ContentStream",
    "LoggingObserver",
    "ProgressHandler",
    "RequestBuilder",
    "RequestHandler",
    "RequestObserver",
    "copy_with_progress",
]
