"""Retry of operations that failed on a temporary backend condition."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from sqlbridge.core.exceptions import DriverError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryWrapper(Generic[T]):
    """Wrap *func* so it is re-invoked after a retryable :class:`DriverError`.

    Only deadlocks, lock wait timeouts and lost connections are retried. Any
    other error, and the last retryable one once *max_retries* is used up,
    propagates unchanged.

    Args:
        func: The operation, typically a whole transaction.
        max_retries: Re-invocations allowed after the first attempt.
        retry_delay: Pause between attempts, in milliseconds.
        sleep: Called with the pause in seconds. Defaults to ``time.sleep``.
    """

    def __init__(
        self,
        func: Callable[..., T],
        max_retries: int = 3,
        retry_delay: int = 100,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._func = func
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._retries: int | None = None

    @property
    def retries(self) -> int | None:
        """Retries used by the last call, ``None`` before the first call."""
        return self._retries

    def __call__(self, *args: Any, **kwargs: Any) -> T:
        self._retries = 0
        while True:
            try:
                return self._func(*args, **kwargs)
            except DriverError as exc:
                if not exc.is_retryable or self._retries >= self.max_retries:
                    raise
                self._retries += 1
                logger.warning(
                    "Retrying after %s (attempt %d of %d)",
                    exc.kind.value,
                    self._retries,
                    self.max_retries,
                )
                self._sleep(self.retry_delay / 1000)
