"""Fluent builder of a single HTTP request.

A RequestBuilder accumulates the method, URI, query parameters, headers and
body of a request. send() snapshots that state into an ``httpx.Request``,
dispatches it through the observer and the cancellation bridge, and returns
the first RequestHandler of the response chain.

Dispatch order:
    1. the request URI is finalized from the current parameters
    2. observer.on_request_created(builder)
    3. before-send hooks, in registration order
    4. a request id is drawn and the request counted as in flight
    5. observer.transform_send_task(...) wrapped by with_blocking_cancellation
    6. observer.on_request_started(handler)
    7. after-send hooks, in registration order
    8. once the first handler settles: in-flight count decremented and
       observer.on_request_finished(handler)

Example:
    >>> handler = (
    ...     RequestBuilder(observer, client, "search")
    ...     .with_parameter("q", "httpx")
    ...     .with_header("Accept", "application/json")
    ...     .send()
    ... )
    >>> response = await handler.as_validated_success()
"""

from __future__ import annotations

import asyncio
import functools
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from httpbuilder.errors import InvalidHeaderError, NoConnectionError
from httpbuilder.models.constants import DEFAULT_ENCODING, JSON_MEDIA_TYPE, QUERY_SEPARATOR
from httpbuilder.models.content import FileContent
from httpbuilder.models.enums import CompletionOption, HttpMethod
from httpbuilder.observability import get_logger
from httpbuilder.request.handler import RequestHandler
from httpbuilder.request.observer import RequestObserver, failed_request
from httpbuilder.transport.cancellation import CancellationToken, with_blocking_cancellation
from httpbuilder.transport.codec import JsonSettings, serialize
from httpbuilder.transport.counters import RequestCounters, get_request_counters
from httpbuilder.transport.mime import filename_to_mime_type
from httpbuilder.utils.sanitization import sanitize_url

logger = get_logger(__name__)

BuilderHook = Callable[["RequestBuilder"], None]

# RFC 7230 token characters
_HEADER_NAME_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_VALUE_CHARS = ("\r", "\n", "\0")


def _as_values(value: str | Iterable[str]) -> list[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


def _validate_header(name: str, values: list[str]) -> None:
    if not _HEADER_NAME_PATTERN.match(name):
        raise InvalidHeaderError(name, "name is not a valid HTTP token")
    for value in values:
        if any(char in value for char in _FORBIDDEN_VALUE_CHARS):
            raise InvalidHeaderError(name, "value contains CR, LF or NUL")
        if not value.isascii():
            raise InvalidHeaderError(name, "value contains non-ASCII characters")


def _resolve_url(client: httpx.AsyncClient, path: str) -> httpx.URL:
    url = httpx.URL(path)
    if url.is_absolute_url:
        return url
    if not client.base_url.is_absolute_url:
        raise ValueError(
            f"Cannot resolve relative path '{path}': the client has no absolute base_url"
        )
    return client.base_url.join(url)


class RequestBuilder:
    """Builder of an HTTP request.

    Attributes:
        observer: Observer notified through the request lifecycle
        client: Transport used to send the request
        method: HTTP method (GET by default)
        headers: Request headers declared so far
        properties: Request properties, sent as httpx request extensions
        request_id: Identifier assigned by the last send(), None before
        request_url: URL finalized by the last send(), None before
    """

    def __init__(
        self,
        observer: RequestObserver,
        client: httpx.AsyncClient,
        path: str = "",
        counters: RequestCounters | None = None,
    ) -> None:
        """Create a builder for ``path``.

        Args:
            observer: Observer notified through the request lifecycle
            client: Transport used to send the request
            path: Absolute URL, or path relative to ``client.base_url``. Its
                query string seeds the structured parameters.
            counters: Dispatch counters (defaults to the process-wide ones)

        Raises:
            ValueError: If ``path`` is relative and the client has no base_url
        """
        self.observer = observer
        self.client = client

        parts = urlsplit(str(_resolve_url(client, path)))
        self._base = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
        self._parameters: dict[str, str] = dict(parse_qsl(parts.query, keep_blank_values=True))
        self._additional_query: str | None = None

        self.method = HttpMethod.GET
        self.headers = httpx.Headers()
        self.properties: dict[str, Any] = {}
        self._body: dict[str, Any] = {}
        self._body_headers: dict[str, str] = {}

        self._before_send: list[BuilderHook] = []
        self._after_send: list[BuilderHook] = []

        self._counters = counters or get_request_counters()
        self.request_id: int | None = None
        self.request_url: httpx.URL | None = None

    # URI

    @property
    def query_string(self) -> str:
        """Query built from the structured parameters and the additional query."""
        structured = urlencode(self._parameters)
        additional = self._additional_query or ""
        if structured and additional:
            return f"{structured}{QUERY_SEPARATOR}{additional}"
        return structured or additional

    @property
    def uri(self) -> httpx.URL:
        """Final request URI for the current state of the builder."""
        query = self.query_string
        return httpx.URL(f"{self._base}?{query}" if query else self._base)

    @property
    def uri_string(self) -> str:
        return str(self.uri)

    @property
    def parameters(self) -> dict[str, str]:
        """Copy of the structured query parameters."""
        return dict(self._parameters)

    @property
    def has_additional_query(self) -> bool:
        return bool(self._additional_query and self._additional_query.strip())

    @property
    def counters(self) -> RequestCounters:
        return self._counters

    def has_parameter(self, name: str) -> bool:
        """Return True if a non-blank value is set for ``name``."""
        value = self._parameters.get(name)
        return bool(value and value.strip())

    def has_header(self, name: str) -> bool:
        return name in self.headers

    def with_parameter(self, key: str, value: Any) -> RequestBuilder:
        """Set a query parameter, replacing any previous value.

        A ``None`` value leaves the builder unchanged. Other values are
        converted with ``str()``.
        """
        if value is None:
            return self
        self._parameters[key] = value if isinstance(value, str) else str(value)
        return self

    def with_parameters(self, parameters: Mapping[str, Any] | None) -> RequestBuilder:
        """Set several query parameters; ``None`` values are skipped."""
        if parameters is None:
            return self
        for key, value in parameters.items():
            self.with_parameter(key, value)
        return self

    def with_additional_query(self, query: str | None) -> RequestBuilder:
        """Append a raw query fragment after the structured parameters."""
        self._additional_query = query
        return self

    # Headers

    def _append_header(self, key: str, values: list[str]) -> None:
        try:
            self.headers = httpx.Headers([*self.headers.raw, *((key, value) for value in values)])
        except UnicodeEncodeError:
            raise InvalidHeaderError(key, "header is not ASCII encodable") from None

    def with_header(self, key: str, value: str | Iterable[str]) -> RequestBuilder:
        """Set a header, replacing all existing values under ``key``.

        Raises:
            InvalidHeaderError: If the name is not a token or a value holds CR/LF/NUL
                or non-ASCII characters
        """
        values = _as_values(value)
        _validate_header(key, values)
        if key in self.headers:
            del self.headers[key]
        self._append_header(key, values)
        return self

    def add_header_if_not_added(self, key: str, value: str | Iterable[str]) -> RequestBuilder:
        """Add a header only if no value is set under ``key`` yet.

        Raises:
            InvalidHeaderError: If the header is added and is not well-formed
        """
        if key in self.headers:
            return self
        values = _as_values(value)
        _validate_header(key, values)
        self._append_header(key, values)
        return self

    def with_header_without_validation(
        self, key: str, value: str | Iterable[str]
    ) -> RequestBuilder:
        """Add header values without checking that they are well-formed.

        Raises:
            InvalidHeaderError: If the name or a value cannot be encoded as ASCII
        """
        self._append_header(key, _as_values(value))
        return self

    # Method

    def with_method(self, method: HttpMethod | str) -> RequestBuilder:
        self.method = HttpMethod(method.upper() if isinstance(method, str) else method)
        return self

    def get(self) -> RequestBuilder:
        return self.with_method(HttpMethod.GET)

    def post(self) -> RequestBuilder:
        return self.with_method(HttpMethod.POST)

    def put(self) -> RequestBuilder:
        return self.with_method(HttpMethod.PUT)

    def delete(self) -> RequestBuilder:
        return self.with_method(HttpMethod.DELETE)

    def head(self) -> RequestBuilder:
        return self.with_method(HttpMethod.HEAD)

    def options(self) -> RequestBuilder:
        return self.with_method(HttpMethod.OPTIONS)

    def trace(self) -> RequestBuilder:
        return self.with_method(HttpMethod.TRACE)

    # Body

    def with_property(self, key: str, value: Any) -> RequestBuilder:
        self.properties[key] = value
        return self

    def with_content(self, content: bytes | str, content_type: str | None = None) -> RequestBuilder:
        """Use raw bytes or text as the request body.

        Text is encoded as UTF-8 and defaults to ``text/plain; charset=utf-8``.
        """
        if isinstance(content, str):
            content = content.encode(DEFAULT_ENCODING)
            content_type = content_type or f"text/plain; charset={DEFAULT_ENCODING}"
        self._body = {"content": content}
        self._body_headers = {"Content-Type": content_type} if content_type else {}
        return self

    def with_json_content(
        self,
        content: Any,
        settings: JsonSettings | None = None,
        encoding: str = DEFAULT_ENCODING,
    ) -> RequestBuilder:
        """Serialize ``content`` to JSON and use it as the request body.

        Args:
            content: Object to serialize (models, dataclasses, containers, ...)
            settings: Serialization options
            encoding: Text encoding of the body
        """
        text = serialize(content, settings)
        self._body = {"content": text.encode(encoding)}
        self._body_headers = {"Content-Type": f"{JSON_MEDIA_TYPE}; charset={encoding}"}
        return self

    def with_form_data_content(
        self,
        *files: FileContent,
        fields: Mapping[str, str] | None = None,
    ) -> RequestBuilder:
        """Use a multipart/form-data body made of ``files`` and plain ``fields``.

        Each file part is typed from its filename extension and carries an
        explicit Content-Length.
        """
        parts = [
            (
                file.name,
                (
                    file.filename,
                    file.content,
                    filename_to_mime_type(file.filename),
                    {"Content-Length": str(len(file.content))},
                ),
            )
            for file in files
        ]
        self._body = {"files": parts}
        if fields:
            self._body["data"] = dict(fields)
        self._body_headers = {}
        return self

    def with_form_data_file(self, content: bytes, name: str, filename: str) -> RequestBuilder:
        """Use a multipart/form-data body holding a single file."""
        return self.with_form_data_content(
            FileContent(content=content, name=name, filename=filename)
        )

    # Hooks

    def before_send(self, hook: BuilderHook) -> RequestBuilder:
        """Register a hook called right before the request is sent."""
        self._before_send.append(hook)
        return self

    def after_send(self, hook: BuilderHook) -> RequestBuilder:
        """Register a hook called right after the request is sent."""
        self._after_send.append(hook)
        return self

    # Dispatch

    def _merge_onto_body_headers(self) -> httpx.Headers:
        """Copy the declared headers over the body's own headers.

        Each declared header first removes the body header of the same name,
        so the caller's Content-Type, Content-Length, etc. win.
        """
        merged = httpx.Headers(self._body_headers)
        for key in {key for key, _ in self.headers.multi_items()}:
            if key in merged:
                del merged[key]
        return httpx.Headers([*merged.raw, *self.headers.raw])

    def _build_request(self, url: httpx.URL) -> httpx.Request:
        body = dict(self._body)
        # POST always carries a body, empty when none was set
        if self.method is HttpMethod.POST and not body:
            body = {"content": b""}
        return self.client.build_request(
            self.method.value,
            url,
            headers=self._merge_onto_body_headers(),
            extensions=dict(self.properties),
            **body,
        )

    async def _send_request(
        self,
        request: httpx.Request,
        request_id: int,
        token: CancellationToken | None,
        option: CompletionOption,
    ) -> httpx.Response:
        if token is not None:
            token.raise_if_cancelled()
        try:
            return await self.client.send(request, stream=option.streams_body)
        except Exception as e:
            if isinstance(e, httpx.RequestError) and failed_request(e) is None:
                e.request = request
            logger.debug(
                "httpbuilder.request.send_failed",
                request_id=request_id,
                url=str(request.url),
                error=str(e),
                error_type=type(e).__name__,
            )
            message = self.observer.build_connection_error_message(self, e)
            raise NoConnectionError(message, e) from None

    def send(
        self,
        token: CancellationToken | None = None,
        option: CompletionOption = CompletionOption.RESPONSE_CONTENT_READ,
    ) -> RequestHandler[httpx.Response]:
        """Send the request built so far.

        Must be called while an event loop is running. Later changes to the
        builder do not affect a request that was already sent.

        Args:
            token: Cancellation signal for the send
            option: Whether the body is read before the chain continues

        Returns:
            The first handler of the response chain
        """
        url = self.request_url = self.uri

        self.observer.on_request_created(self)

        for hook in self._before_send:
            hook(self)

        request_id = self.request_id = self._counters.begin_request()

        try:
            request = self._build_request(url)
            sending = self.observer.transform_send_task(
                self,
                request,
                lambda: self._send_request(request, request_id, token, option),
            )
            task = asyncio.ensure_future(with_blocking_cancellation(sending, token))
        except BaseException:
            self._counters.end_request()
            raise

        logger.debug(
            "httpbuilder.request.dispatched",
            request_id=request_id,
            method=self.method.value,
            url=str(url),
            in_flight=self._counters.in_flight,
        )

        handler = RequestHandler(self, self.observer, task, request_id)
        try:
            self.observer.on_request_started(handler)
            for hook in self._after_send:
                hook(self)
        finally:
            task.add_done_callback(functools.partial(self._on_request_settled, handler))

        return handler

    def _on_request_settled(
        self, handler: RequestHandler[httpx.Response], task: asyncio.Future[httpx.Response]
    ) -> None:
        self._counters.end_request()
        try:
            self.observer.on_request_finished(handler)
        except Exception:
            # Detached callback: nothing can receive this error.
            logger.exception(
                "httpbuilder.request.finished_hook_failed",
                request_id=handler.request_id,
            )

    def __repr__(self) -> str:
        return f"RequestBuilder(method={self.method.value}, uri={sanitize_url(self.uri_string)!r})"
