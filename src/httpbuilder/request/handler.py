"""Chainable handle on an intermediate result of a request.

A RequestHandler wraps one asyncio future. Every chain operation schedules a
new task that waits for this one and returns a new handler, so a chain reads
top to bottom like the processing it describes:

    >>> user = await (
    ...     service.build("users/42")
    ...     .send()
    ...     .as_validated_success()
    ...     .as_json(User)
    ... )

Rules every step follows:

- a step starts only after the previous one settled
- a failed or cancelled previous step is propagated as-is; the step's
  function and the observer's continue hooks are not called
- cancelling a downstream step (or the caller awaiting it) does not cancel
  the upstream task, which other branches may share
- handlers are never mutated; chaining always creates a new one

Chain operations create tasks, so they must be called while an event loop
is running.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Coroutine, Generator
from typing import TYPE_CHECKING, Any, Generic, TypeVar, Union

import httpx

from httpbuilder.errors import HttpStatusError
from httpbuilder.models.constants import DEFAULT_BUFFER_SIZE, DEFAULT_READS_PER_UPDATE
from httpbuilder.models.outcome import Outcome
from httpbuilder.request.streaming import (
    ContentStream,
    ProgressHandler,
    SinkT,
    copy_with_progress,
)
from httpbuilder.transport.codec import deserialize

if TYPE_CHECKING:
    from httpbuilder.request.builder import RequestBuilder
    from httpbuilder.request.observer import RequestObserver
    from httpbuilder.transport.cancellation import CancellationToken

T = TypeVar("T")
U = TypeVar("U")

Converter = Callable[[T], Union[U, Awaitable[U]]]


class RequestHandler(Generic[T]):
    """An intermediate result of processing an HTTP request.

    Attributes:
        builder: Builder of the request this chain belongs to
        observer: Observer notified by every step
        task: Future of this step's result
        request_id: Identifier assigned to the request at dispatch
    """

    def __init__(
        self,
        builder: RequestBuilder,
        observer: RequestObserver,
        task: asyncio.Future[T],
        request_id: int | None = None,
    ) -> None:
        self.builder = builder
        self.observer = observer
        self.task = task
        self.request_id = builder.request_id if request_id is None else request_id

    def _chain(self, step: Coroutine[Any, Any, U]) -> RequestHandler[U]:
        return RequestHandler(
            self.builder, self.observer, asyncio.ensure_future(step), self.request_id
        )

    async def _result(self) -> T:
        return await asyncio.shield(self.task)

    def continue_with(self, converter: Converter[T, U]) -> RequestHandler[U]:
        """Convert the result with ``converter``.

        ``converter`` may return the new value or an awaitable of it.

        Args:
            converter: Function from this step's value to the next one

        Returns:
            Handler of the converted result
        """
        return self._chain(self._convert(converter))

    async def _convert(self, converter: Converter[T, U]) -> U:
        result = await self._result()
        self.observer.on_before_continue(self, result)
        converted = converter(result)
        if inspect.isawaitable(converted):
            converted = await converted
        self.observer.on_after_continue(self, converted)
        return converted  # type: ignore[return-value]

    def validate(self, validator: Callable[[T], Any]) -> RequestHandler[T]:
        """Check the result with ``validator`` and pass it on unchanged.

        ``validator`` signals failure by raising. The observer's
        on_validation_failed hook sees the error first, then it propagates.
        An awaitable returned by ``validator`` is awaited.

        Args:
            validator: Check to run on this step's value

        Returns:
            Handler of the same, validated result
        """
        return self._chain(self._validate(validator))

    async def _validate(self, validator: Callable[[T], Any]) -> T:
        result = await self._result()
        try:
            checked = validator(result)
            if inspect.isawaitable(checked):
                await checked
        except Exception as e:
            self.observer.on_validation_failed(self, result, e, lambda: validator(result))
            raise
        return result

    def as_validated_success(self: RequestHandler[httpx.Response]) -> RequestHandler[httpx.Response]:
        """Fail the chain unless the response status is 2xx.

        Raises (in the resulting handler):
            HttpStatusError: With the message built by the observer's
                build_http_error_message hook
        """

        def ensure_success(response: httpx.Response) -> None:
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                message = self.observer.build_http_error_message(self.builder, response, e)
                raise HttpStatusError(message, self.builder, response) from e

        return self.validate(ensure_success)

    def as_string(self: RequestHandler[httpx.Response]) -> RequestHandler[str]:
        """Read the response body as text."""

        async def read_text(response: httpx.Response) -> str:
            await response.aread()
            return response.text

        return self.continue_with(read_text)

    def as_bytes(self: RequestHandler[httpx.Response]) -> RequestHandler[bytes]:
        """Read the response body as bytes."""

        async def read_bytes(response: httpx.Response) -> bytes:
            return await response.aread()

        return self.continue_with(read_bytes)

    def as_stream(self: RequestHandler[httpx.Response]) -> RequestHandler[ContentStream]:
        """Expose the response body as a ContentStream."""
        return self.continue_with(ContentStream)

    def as_json(self, type_: type[U] | Any = Any) -> RequestHandler[U]:
        """Decode the result as JSON and validate it as ``type_``.

        Works on a response (its body is read) as well as on text or bytes
        produced by an earlier step.

        Args:
            type_: Target type (Pydantic model, ``list[Model]``, ``dict``, ...)

        Raises (in the resulting handler):
            DeserializationError: If the payload does not decode into ``type_``
        """

        async def decode(value: Any) -> U:
            if isinstance(value, httpx.Response):
                value = await value.aread()
            return deserialize(value, type_)

        return self.continue_with(decode)

    def with_progress(
        self: RequestHandler[ContentStream],
        token: CancellationToken | None,
        destination: SinkT,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        progress: ProgressHandler | None = None,
        reads_per_update: int = DEFAULT_READS_PER_UPDATE,
    ) -> RequestHandler[SinkT]:
        """Copy the body into ``destination``, reporting progress.

        See copy_with_progress for the callback cadence. The resulting
        handler resolves to ``destination``.

        Args:
            token: Cancellation signal checked between reads
            destination: Sink with ``write(bytes)`` (sync or async)
            buffer_size: Maximum bytes per read
            progress: Callback ``(total, bytes_so_far, fraction)``
            reads_per_update: Number of reads between two progress callbacks
        """

        async def copy(source: ContentStream | httpx.Response) -> SinkT:
            if isinstance(source, httpx.Response):
                source = ContentStream(source)
            return await copy_with_progress(
                source,
                destination,
                buffer_size=buffer_size,
                progress=progress,
                reads_per_update=reads_per_update,
                token=token,
            )

        return self.continue_with(copy)

    def unwrap(self) -> asyncio.Future[T]:
        """Return the underlying future."""
        return self.task

    def done(self) -> bool:
        return self.task.done()

    async def outcome(self) -> Outcome[T]:
        """Wait for this step and describe how it settled.

        Unlike awaiting the handler, this never raises for a failed or
        cancelled step.
        """
        await asyncio.wait((self.task,))
        return Outcome.from_future(self.task)

    def settled_outcome(self) -> Outcome[T]:
        """Describe how this already settled step ended.

        Raises:
            asyncio.InvalidStateError: If the step has not settled yet
        """
        return Outcome.from_future(self.task)

    def __await__(self) -> Generator[Any, None, T]:
        return asyncio.shield(self.task).__await__()

    def __repr__(self) -> str:
        state = "pending" if not self.task.done() else self.settled_outcome().kind.value
        return f"RequestHandler(request_id={self.request_id}, state={state})"
