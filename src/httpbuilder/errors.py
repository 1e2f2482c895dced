"""httpbuilder Error Taxonomy.

This module defines the error hierarchy raised by the request pipeline,
providing structured error handling with specific error codes and
context information.

Cancellation is not part of this hierarchy: a cancelled chain raises
``asyncio.CancelledError`` and is never converted into a failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

    from httpbuilder.request.builder import RequestBuilder


class HttpBuilderError(Exception):
    """Base exception for all httpbuilder errors.

    Attributes:
        code: Error code following the httpbuilder:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NoConnectionError(HttpBuilderError):
    """Raised when sending a request fails before a response is received.

    Wraps any non-cancellation exception raised by the transport. The
    original exception is kept on ``native_error`` instead of being chained
    as the cause, so tracebacks end at this error.

    Attributes:
        native_error: Exception raised by the transport
    """

    def __init__(
        self,
        message: str,
        native_error: BaseException,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="httpbuilder:transport/no_connection",
            message=message,
            details={"error_type": type(native_error).__name__, **(details or {})},
        )
        self.native_error = native_error


class HttpStatusError(HttpBuilderError):
    """Raised when a response carries a non-success status code.

    Attributes:
        builder: Builder of the request that produced the response
        response: The offending response
        status_code: HTTP status code of the response
    """

    def __init__(
        self,
        message: str,
        builder: RequestBuilder,
        response: httpx.Response,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="httpbuilder:response/status",
            message=message,
            details={"status_code": response.status_code, **(details or {})},
        )
        self.builder = builder
        self.response = response
        self.status_code = response.status_code


class InvalidHeaderError(HttpBuilderError, ValueError):
    """Raised when a header name or value is not well-formed.

    Attributes:
        name: Header name
        reason: Why the header was rejected
    """

    def __init__(self, name: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="httpbuilder:request/invalid_header",
            message=f"Invalid header '{name}': {reason}",
            details={"name": name, "reason": reason, **(details or {})},
        )
        self.name = name
        self.reason = reason


class DeserializationError(HttpBuilderError):
    """Raised when a JSON payload cannot be decoded into the requested type.

    Attributes:
        target: Name of the type the payload was decoded into
    """

    def __init__(self, target: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="httpbuilder:codec/deserialization",
            message=f"Cannot deserialize payload into {target}: {reason}",
            details={"target": target, **(details or {})},
        )
        self.target = target
        self.reason = reason
