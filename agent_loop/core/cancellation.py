"""Cooperative cancellation for agent runs.

Each run owns one :class:`AbortSignal`. Suspension points (model calls, tool
calls, retry sleeps) await their operation through :func:`run_cancellable`,
which cancels the operation's task and raises :class:`RunAborted` as soon as
the signal fires.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from ..errors import RunAborted

T = TypeVar("T")


class AbortSignal:
    """One-shot cancellation signal shared by everything in a single run.

    ``aborted`` may be polled from worker threads running synchronous tools.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def abort(self, reason: str = "Run aborted") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_aborted(self) -> None:
        if self.aborted:
            raise RunAborted(self._reason or "Run aborted")


async def run_cancellable(awaitable: Awaitable[T], signal: Optional[AbortSignal]) -> T:
    """Await ``awaitable`` unless ``signal`` fires first.

    Raises:
        RunAborted: The signal fired before the operation finished. The
            operation's task is cancelled and awaited before raising.
    """
    if signal is None:
        return await awaitable
    if signal.aborted:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        signal.raise_if_aborted()

    op_task = asyncio.ensure_future(awaitable)
    abort_task = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({op_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        op_task.cancel()
        raise
    finally:
        abort_task.cancel()

    if op_task.done():
        return op_task.result()

    op_task.cancel()
    try:
        await op_task
    except asyncio.CancelledError:
        pass
    except Exception:
        # The run is being torn down; the abort is what gets reported.
        pass
    raise RunAborted(signal.reason or "Run aborted")


async def sleep_cancellable(delay_s: float, signal: Optional[AbortSignal]) -> None:
    """Sleep for ``delay_s`` seconds, waking early with RunAborted on abort."""
    await run_cancellable(asyncio.sleep(delay_s), signal)
