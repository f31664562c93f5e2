"""Retry with exponential backoff for model calls.

Failures are classified into :class:`~agent_loop.errors.ModelError` and only
transient kinds (rate limits, network errors, timeouts) are retried. The delay
before retry ``n`` (1-based) is::

    delay = min(max_delay_ms, base_delay_ms * 2 ** (n - 1))

With jitter enabled the delay is drawn uniformly from ``[0, delay]`` (full
jitter). A provider ``Retry-After`` hint replaces the computed delay for that
attempt. For ``base_delay_ms=100`` and no jitter, three retries wait 100 ms,
200 ms and 400 ms.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..config import RetryPolicy
from ..errors import AgentErrorCode, ModelError, RunAborted, to_model_error
from ..logging import get_logger
from .cancellation import AbortSignal, run_cancellable, sleep_cancellable

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryContext:
    """Details of an upcoming retry, passed to the ``on_retry`` observer.

    Attributes:
        attempt: Retry number, starting at 1
        max_retries: Configured retry budget
        delay_ms: Delay before the retry
        error: Kind of the failure being retried
        message: Message of the failure being retried
    """
    attempt: int
    max_retries: int
    delay_ms: int
    error: AgentErrorCode
    message: str


def compute_backoff_ms(
    attempt: int,
    policy: RetryPolicy,
    rng: Callable[[float, float], float] = random.uniform,
) -> int:
    """Compute the delay before retry ``attempt`` (1-based) under ``policy``."""
    delay = min(policy.max_delay_ms, policy.base_delay_ms * (2 ** (attempt - 1)))
    if policy.enable_jitter:
        delay = rng(0, delay)
    return int(delay)


class RetryExecutor:
    """Runs an async operation with bounded, observable retries.

    ``on_retry`` fires once per retry, before sleeping; it is the only place
    retries are visible. ``on_error`` fires exactly once when the operation
    finally fails, never for intermediate failures.

    Example:
        >>> executor = RetryExecutor(RetryPolicy(max_retries=2, base_delay_ms=100))
        >>> response = await executor.execute(lambda: provider.invoke(messages))
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        on_retry: Optional[Callable[[RetryContext], Any]] = None,
        on_error: Optional[Callable[[ModelError], Any]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.policy = policy or RetryPolicy()
        self.on_retry = on_retry
        self.on_error = on_error
        self._sleep = sleep

    def _should_retry(self, error: ModelError, retries_done: int) -> bool:
        return (
            self.policy.enabled
            and retries_done < self.policy.max_retries
            and error.retryable
        )

    def _notify(self, callback: Optional[Callable[..., Any]], name: str, payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception:
            logger.warning("retry_observer_failed", observer=name, exc_info=True)

    async def _wait(self, delay_ms: int, abort_signal: Optional[AbortSignal]) -> None:
        delay_s = delay_ms / 1000
        if self._sleep is None:
            await sleep_cancellable(delay_s, abort_signal)
        else:
            await run_cancellable(self._sleep(delay_s), abort_signal)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        abort_signal: Optional[AbortSignal] = None,
    ) -> T:
        """Run ``operation`` until it succeeds or retrying is no longer allowed.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt.
            abort_signal: Run abort signal; an abort during the backoff sleep
                stops retrying immediately.

        Returns:
            The operation's result.

        Raises:
            ModelError: The last classified failure, unchanged.
            RunAborted: The abort signal fired.
        """
        retries_done = 0
        while True:
            try:
                return await operation()
            except (RunAborted, asyncio.CancelledError):
                raise
            except Exception as exc:
                error = to_model_error(exc)

            if not self._should_retry(error, retries_done):
                if retries_done:
                    logger.error(
                        "retries_exhausted",
                        attempts=retries_done + 1,
                        error_code=error.code.value,
                        error=error.message,
                    )
                else:
                    logger.error(
                        "operation_failed",
                        error_code=error.code.value,
                        error=error.message,
                        retryable=error.retryable,
                    )
                self._notify(self.on_error, "on_error", error)
                raise error

            retries_done += 1
            if error.retry_after_ms is not None:
                delay_ms = error.retry_after_ms
            else:
                delay_ms = compute_backoff_ms(retries_done, self.policy)

            logger.warning(
                "retrying_operation",
                attempt=retries_done,
                max_retries=self.policy.max_retries,
                delay_ms=delay_ms,
                error_code=error.code.value,
                error=error.message,
            )
            self._notify(
                self.on_retry,
                "on_retry",
                RetryContext(
                    attempt=retries_done,
                    max_retries=self.policy.max_retries,
                    delay_ms=delay_ms,
                    error=error.code,
                    message=error.message,
                ),
            )
            await self._wait(delay_ms, abort_signal)
