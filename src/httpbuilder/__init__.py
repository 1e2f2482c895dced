"""httpbuilder: fluent HTTP requests with chained response processing.

Public exports:
    HttpService / ServiceConfig: Client-owning service base class and its config
    RequestBuilder: Fluent builder of a single request
    RequestHandler: Chainable handle on an intermediate result
    RequestObserver / LoggingObserver: Lifecycle hooks
    CancellationToken: Cooperative cancellation signal
    CompletionOption / HttpMethod / FileContent / Outcome: Models
    HttpBuilderError and subclasses: Error taxonomy
"""

from httpbuilder.errors import (
    DeserializationError,
    HttpBuilderError,
    HttpStatusError,
    InvalidHeaderError,
    NoConnectionError,
)
from httpbuilder.models import CompletionOption, FileContent, HttpMethod, Outcome, OutcomeKind
from httpbuilder.request import (
    ContentStream,
    LoggingObserver,
    RequestBuilder,
    RequestHandler,
    RequestObserver,
    copy_with_progress,
)
from httpbuilder.service import HttpService, ServiceConfig
from httpbuilder.transport import (
    CancellationToken,
    JsonSettings,
    RequestCounters,
    get_request_counters,
    with_blocking_cancellation,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "CompletionOption",
    "ContentStream",
    "DeserializationError",
    "FileContent",
    "HttpBuilderError",
    "HttpMethod",
    "HttpService",
    "HttpStatusError",
    "InvalidHeaderError",
    "JsonSettings",
    "LoggingObserver",
    "NoConnectionError",
    "Outcome",
    "OutcomeKind",
    "RequestBuilder",
    "RequestCounters",
    "RequestHandler",
    "RequestObserver",
    "ServiceConfig",
    "copy_with_progress",
    "get_request_counters",
    "with_blocking_cancellation",
    "__version__",
]
