"""Cooperative cancellation for dispatched requests.

A CancellationToken is a signal shared between the caller and the pipeline.
Cancelling it never aborts work by force: it takes effect where the pipeline
checks it, at the send boundary (with_blocking_cancellation) and between
buffer reads of a streaming copy.

with_blocking_cancellation races an in-flight operation against the token.
Whichever settles first decides the result:

- the token fires first: the caller is released at once with
  ``asyncio.CancelledError``; the operation keeps running unobserved
- the operation settles first: its value, cancellation or exception is
  forwarded unchanged

Example:
    >>> token = CancellationToken()
    >>> token.cancel_after(5.0)
    >>> response = await with_blocking_cancellation(client.send(request), token)
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import TypeVar

from httpbuilder.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _complete_future(future: asyncio.Future[None]) -> None:
    """Resolve a future from any thread."""
    loop = future.get_loop()

    def _set() -> None:
        if not future.done():
            future.set_result(None)

    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None

    if running is loop:
        _set()
    elif not loop.is_closed():
        loop.call_soon_threadsafe(_set)


class CancellationRegistration:
    """Handle returned by CancellationToken.register().

    Disposing it removes the callback if it has not run yet. Usable as a
    context manager.
    """

    def __init__(self, token: CancellationToken, callback: Callable[[], None]) -> None:
        self._token = token
        self.callback = callback

    def dispose(self) -> None:
        self._token._unregister(self)

    def __enter__(self) -> CancellationRegistration:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.dispose()


class CancellationToken:
    """A one-shot, thread-safe cancellation signal.

    Attributes:
        is_cancelled: Whether cancel() has been called
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._registrations: list[CancellationRegistration] = []
        self._lock = threading.Lock()
        self._timer: asyncio.TimerHandle | None = None

    @property
    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> None:
        """Signal cancellation and run registered callbacks once.

        Calling it again has no effect. Callbacks run on the calling thread,
        in registration order.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            registrations = self._registrations
            self._registrations = []
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()
        for registration in registrations:
            registration.callback()

    def cancel_after(self, delay: float) -> None:
        """Schedule cancel() on the running loop after ``delay`` seconds."""
        loop = asyncio.get_running_loop()
        handle = loop.call_later(delay, self.cancel)
        with self._lock:
            if self._cancelled:
                handle.cancel()
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = handle

    def register(self, callback: Callable[[], None]) -> CancellationRegistration:
        """Run ``callback`` when the token is cancelled.

        If the token is already cancelled the callback runs immediately.

        Returns:
            A registration whose dispose() removes the callback
        """
        registration = CancellationRegistration(self, callback)
        with self._lock:
            if not self._cancelled:
                self._registrations.append(registration)
                return registration
        callback()
        return registration

    def _unregister(self, registration: CancellationRegistration) -> None:
        with self._lock:
            if registration in self._registrations:
                self._registrations.remove(registration)

    def raise_if_cancelled(self) -> None:
        """Raise asyncio.CancelledError if the token has been cancelled."""
        if self.is_cancelled:
            raise asyncio.CancelledError()

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        with self.register(lambda: _complete_future(waiter)):
            await waiter

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


def _observe_abandoned(task: asyncio.Future[T]) -> None:
    """Retrieve the outcome of an operation nobody awaits anymore."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(
            "httpbuilder.cancellation.abandoned_operation_failed",
            error=str(error),
            error_type=type(error).__name__,
        )


async def with_blocking_cancellation(
    operation: Awaitable[T], token: CancellationToken | None
) -> T:
    """Await an operation, giving up as soon as the token is cancelled.

    Args:
        operation: Awaitable to run (scheduled as a task if it is a coroutine)
        token: Cancellation signal; None awaits the operation directly

    Returns:
        The operation's result

    Raises:
        asyncio.CancelledError: If the token fired before the operation settled,
            or the operation itself was cancelled
        Exception: Whatever the operation raised, unchanged
    """
    task = asyncio.ensure_future(operation)
    if token is None:
        return await task

    loop = asyncio.get_running_loop()
    cancel_waiter: asyncio.Future[None] = loop.create_future()

    try:
        with token.register(lambda: _complete_future(cancel_waiter)):
            await asyncio.wait((task, cancel_waiter), return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.add_done_callback(_observe_abandoned)
        raise
    finally:
        cancel_waiter.cancel()

    if not task.done():
        task.add_done_callback(_observe_abandoned)
        raise asyncio.CancelledError()

    return task.result()
