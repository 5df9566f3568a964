"""Bounded retry for open-ended producers.

The failure counter is cumulative for the whole run: successes in between do
not reset it. There is no backoff; a failed step is retried immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from letovo_archive.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_FAILURES = 100


class BoundedRetry:
    """Retry async steps until a shared failure budget is spent.

    Usage:
        retry = BoundedRetry(max_failures=100, label="ddg_doc")
        while await retry.call(fetch_and_commit_page):
            pass
    """

    def __init__(self, max_failures: int = DEFAULT_MAX_FAILURES, *, label: str = "") -> None:
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        self._max_failures = max_failures
        self._label = label
        self.failures = 0

    @property
    def max_failures(self) -> int:
        return self._max_failures

    async def call(self, step: Callable[[], Awaitable[T]]) -> T:
        """Run ``step``, retrying on any exception.

        Raises:
            RetryExhaustedError: On the failure that reaches ``max_failures``,
                chained from that failure.
        """
        while True:
            try:
                return await step()
            except Exception as e:
                self.failures += 1
                if self.failures >= self._max_failures:
                    logger.error(
                        "%s: giving up after %d failures", self._label or "retry", self.failures
                    )
                    raise RetryExhaustedError(self.failures, e) from e
                logger.warning(
                    "%s: step failed (%d/%d): %s",
                    self._label or "retry", self.failures, self._max_failures, e,
                )
