"""Chunked copy of a response body with progress reporting.

copy_with_progress reads the body buffer by buffer, writes each buffer to a
destination sink and calls a progress callback every ``reads_per_update``
reads, plus once more with a fraction of 1.0 at the end of the stream. The
cancellation token is checked before every read and once after the loop.

Example:
    >>> def on_progress(total, so_far, fraction):
    ...     print(f"{so_far}/{total} ({fraction:.0%})")
    >>>
    >>> with open("report.pdf", "wb") as sink:
    ...     await (
    ...         builder.send(option=CompletionOption.RESPONSE_HEADERS_READ)
    ...         .as_validated_success()
    ...         .as_stream()
    ...         .with_progress(token, sink, buffer_size=65536, progress=on_progress)
    ...     )
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol, TypeVar

import httpx

from httpbuilder.models.constants import DEFAULT_BUFFER_SIZE, DEFAULT_READS_PER_UPDATE
from httpbuilder.transport.cancellation import CancellationToken

ProgressHandler = Callable[[int | None, int, float], None]
"""Progress callback: (total bytes or None, bytes copied so far, fraction)."""


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class Writable(Protocol):
    def write(self, data: bytes, /) -> Any: ...


SinkT = TypeVar("SinkT", bound=Writable)


def content_length(response: httpx.Response) -> int | None:
    """Return the declared body length of a response, if any.

    Bodies are read decoded, so a length is only reported when no
    Content-Encoding applies; a compressed body has an unknown length.
    """
    encoding = response.headers.get("Content-Encoding", "identity").strip().lower()
    value = response.headers.get("Content-Length")
    if value is None or encoding not in ("", "identity"):
        return None
    try:
        return int(value)
    except ValueError:
        return None


class ContentStream:
    """Readable view over a response body.

    Works on both fully read responses and responses sent with
    ``CompletionOption.RESPONSE_HEADERS_READ``. read(size) returns exactly
    ``size`` bytes until the body runs short, then the remainder, then b"".

    Attributes:
        response: The response whose body is read
        length: Declared body length (Content-Length), None when unknown or compressed
    """

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.length = content_length(response)
        self._chunks: AsyncIterator[bytes] = response.aiter_bytes()
        self._buffer = bytearray()
        self._exhausted = False

    async def read(self, size: int = -1) -> bytes:
        while not self._exhausted and (size < 0 or len(self._buffer) < size):
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                break
            self._buffer.extend(chunk)

        if size < 0 or size > len(self._buffer):
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    async def aclose(self) -> None:
        await self.response.aclose()


def _fraction(bytes_read: int, total: int | None) -> float:
    if not total:
        return 0.0
    return round(bytes_read / total, 2)


def _check(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


async def copy_with_progress(
    source: AsyncReadable,
    destination: SinkT,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    progress: ProgressHandler | None = None,
    reads_per_update: int = DEFAULT_READS_PER_UPDATE,
    token: CancellationToken | None = None,
    total_bytes: int | None = None,
) -> SinkT:
    """Copy ``source`` into ``destination`` reporting progress.

    Args:
        source: Object with an async ``read(size)`` (e.g. ContentStream)
        destination: Sink with ``write(bytes)``; an awaitable result is awaited
        buffer_size: Maximum bytes per read
        progress: Callback ``(total, bytes_so_far, fraction)``
        reads_per_update: Number of reads between two progress callbacks
        token: Cancellation signal checked before every read and at the end
        total_bytes: Expected total; defaults to ``source.length`` when present

    Returns:
        The destination sink

    Raises:
        ValueError: If buffer_size or reads_per_update is not positive
        asyncio.CancelledError: If the token is cancelled during the copy
    """
    if buffer_size <= 0:
        raise ValueError(f"buffer_size must be positive, got {buffer_size}")
    if reads_per_update <= 0:
        raise ValueError(f"reads_per_update must be positive, got {reads_per_update}")

    total = total_bytes if total_bytes is not None else getattr(source, "length", None)
    bytes_read = 0
    read_count = 0

    while True:
        _check(token)

        chunk = await source.read(buffer_size)
        if not chunk:
            if progress is not None:
                progress(total, bytes_read, 1.0)
            break

        written = destination.write(chunk)
        if inspect.isawaitable(written):
            await written

        bytes_read += len(chunk)
        read_count += 1

        if progress is not None and read_count % reads_per_update == 0:
            progress(total, bytes_read, _fraction(bytes_read, total))

    _check(token)

    return destination
