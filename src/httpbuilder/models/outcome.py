"""Tagged result of a settled chain step.

An Outcome keeps success, failure and cancellation apart, so callers that
want to branch on how a chain ended do not have to catch
``asyncio.CancelledError`` next to ordinary exceptions.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Generic, TypeVar

from httpbuilder.models.enums import OutcomeKind

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """How a chain step settled.

    Attributes:
        kind: SUCCESS, FAILURE or CANCELLED
        value: Resolved value (only for SUCCESS)
        error: Raised exception (only for FAILURE)
    """

    kind: OutcomeKind
    value: T | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(OutcomeKind.SUCCESS, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> Outcome[T]:
        return cls(OutcomeKind.FAILURE, error=error)

    @classmethod
    def cancelled(cls) -> Outcome[T]:
        return cls(OutcomeKind.CANCELLED)

    @classmethod
    def from_future(cls, future: asyncio.Future[T]) -> Outcome[T]:
        """Build an outcome from a settled future.

        Raises:
            asyncio.InvalidStateError: If the future has not settled yet
        """
        if future.cancelled():
            return cls.cancelled()
        error = future.exception()
        if error is not None:
            return cls.failure(error)
        return cls.success(future.result())

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.kind is OutcomeKind.FAILURE

    @property
    def is_cancelled(self) -> bool:
        return self.kind is OutcomeKind.CANCELLED

    def unwrap(self) -> T:
        """Return the value, re-raise the error, or raise CancelledError."""
        if self.kind is OutcomeKind.CANCELLED:
            raise asyncio.CancelledError()
        if self.kind is OutcomeKind.FAILURE:
            assert self.error is not None
            raise self.error
        return self.value  # type: ignore[return-value]
