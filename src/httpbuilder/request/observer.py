"""Lifecycle hooks of the request pipeline.

A RequestObserver is injected into every RequestBuilder and passed along each
RequestHandler of a chain. The pipeline calls it synchronously at fixed
points:

- on_request_created: URI finalized, before-send hooks not yet run
- transform_send_task: wraps the transport call (must call ``send()``)
- on_request_started: the first handler exists
- on_request_finished: the first handler settled (success, failure or cancel)
- on_before_continue / on_after_continue: around each continue_with step
- on_validation_failed: a validate step rejected its value
- build_http_error_message / build_connection_error_message: error texts

Every hook has a no-op (or identity) default, so ``RequestObserver()`` is a
valid observer. Hooks may be called from whichever task settles a step.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import httpx

from httpbuilder.observability import get_logger
from httpbuilder.utils.sanitization import sanitize_url

if TYPE_CHECKING:
    from httpbuilder.request.builder import RequestBuilder
    from httpbuilder.request.handler import RequestHandler

SendFunction = Callable[[], Awaitable[httpx.Response]]


def failed_request(error: BaseException) -> httpx.Request | None:
    """Return the request an httpx transport error is attached to, if any."""
    if not isinstance(error, httpx.RequestError):
        return None
    try:
        return error.request
    except RuntimeError:
        # httpx raises when no request was attached
        return None


class RequestObserver:
    """Default observer: every hook does nothing.

    Subclass and override the hooks you need.

    Example:
        >>> class AuthObserver(RequestObserver):
        ...     def on_request_created(self, builder):
        ...         builder.add_header_if_not_added("Authorization", "Bearer abc")
    """

    def on_request_created(self, builder: RequestBuilder) -> None:
        pass

    def transform_send_task(
        self,
        builder: RequestBuilder,
        request: httpx.Request,
        send: SendFunction,
    ) -> Awaitable[httpx.Response]:
        """Wrap the transport call before its result enters the chain.

        Overrides must call ``send()`` exactly once and return an awaitable
        of the response, otherwise the request is never sent.
        """
        return send()

    def on_request_started(self, handler: RequestHandler[httpx.Response]) -> None:
        pass

    def on_request_finished(self, handler: RequestHandler[httpx.Response]) -> None:
        pass

    def on_before_continue(self, handler: RequestHandler[Any], result: Any) -> None:
        pass

    def on_after_continue(self, handler: RequestHandler[Any], result: Any) -> None:
        pass

    def on_validation_failed(
        self,
        handler: RequestHandler[Any],
        result: Any,
        error: Exception,
        revalidate: Callable[[], Any],
    ) -> None:
        """Called when a validate step rejects its value.

        The error is re-raised after this hook returns; the hook cannot
        swallow it. ``revalidate()`` runs the same check on the same value
        again.
        """

    def build_http_error_message(
        self,
        builder: RequestBuilder,
        response: httpx.Response,
        error: httpx.HTTPStatusError,
    ) -> str:
        return str(error)

    def build_connection_error_message(self, builder: RequestBuilder, error: Exception) -> str:
        """Describe a failed send.

        Names the URL the request was sent to, which later changes to the
        builder do not affect.
        """
        request = failed_request(error)
        url = request.url if request is not None else builder.request_url
        return f"No connection to {sanitize_url(str(url))}: {error}"


class LoggingObserver(RequestObserver):
    """Observer that logs every lifecycle point with structlog.

    Credentials in the logged URL, headers and properties are masked by the
    logging pipeline unless HTTPBUILDER_DEBUG is set.

    Args:
        logger_name: Name of the structlog logger to write to
    """

    def __init__(self, logger_name: str = "httpbuilder.requests") -> None:
        self.logger = get_logger(logger_name)

    def on_request_created(self, builder: RequestBuilder) -> None:
        self.logger.debug(
            "httpbuilder.request.created",
            method=builder.method.value,
            url=builder.uri_string,
            headers=dict(builder.headers.multi_items()),
            properties=dict(builder.properties),
        )

    def on_request_started(self, handler: RequestHandler[httpx.Response]) -> None:
        self.logger.info(
            "httpbuilder.request.started",
            request_id=handler.request_id,
            method=handler.builder.method.value,
            url=handler.builder.uri_string,
        )

    def on_request_finished(self, handler: RequestHandler[httpx.Response]) -> None:
        outcome = handler.settled_outcome()
        fields: dict[str, Any] = {
            "request_id": handler.request_id,
            "outcome": outcome.kind.value,
        }
        if outcome.is_success and outcome.value is not None:
            fields["status_code"] = outcome.value.status_code
        elif outcome.is_failure:
            fields["error"] = str(outcome.error)
            fields["error_type"] = type(outcome.error).__name__
        self.logger.info("httpbuilder.request.finished", **fields)

    def on_validation_failed(
        self,
        handler: RequestHandler[Any],
        result: Any,
        error: Exception,
        revalidate: Callable[[], Any],
    ) -> None:
        self.logger.warning(
            "httpbuilder.request.validation_failed",
            request_id=handler.request_id,
            error=str(error),
            error_type=type(error).__name__,
        )
