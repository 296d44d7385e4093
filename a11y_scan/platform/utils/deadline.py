import asyncio
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Deadline:
    """Wall-clock budget measured on the monotonic clock."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.started_at = time.monotonic()
        self.expires_at = self.started_at + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0

    def budget(self, step_timeout: float) -> float:
        """Time a step may take: its own timeout, capped by what is left overall."""
        return min(step_timeout, self.remaining())

    def is_binding(self, step_timeout: float) -> bool:
        """True when the overall deadline, not the step timeout, limits the step."""
        return self.remaining() <= step_timeout

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


async def run_with_deadline(
    awaitable: Awaitable[T],
    timeout: float,
    on_timeout: Callable[[], Exception],
) -> T:
    """
    Race `awaitable` against a timer. Whichever finishes first wins; losing to the
    timer raises the exception built by `on_timeout` instead of asyncio's TimeoutError.
    """
    if timeout <= 0:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise on_timeout()
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        raise on_timeout() from None


async def run_blocking_with_deadline(
    func: Callable[..., T],
    *args: Any,
    timeout: float,
    on_timeout: Callable[[], Exception],
    on_late_result: Optional[Callable[[T], None]] = None,
    on_late_settled: Optional[Callable[[], None]] = None,
) -> T:
    """
    Run a blocking call in a worker thread and race it against `timeout`.

    A thread cannot be interrupted, so on timeout the call keeps running in the
    background. `on_late_result` receives its value if it eventually succeeds,
    which is how a browser that finished launching too late still gets closed.
    `on_late_settled` runs after that call finishes, whether it succeeded or failed.
    """
    if timeout <= 0:
        raise on_timeout()

    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, functools.partial(func, *args))
    try:
        return await asyncio.wait_for(asyncio.shield(future), timeout)
    except asyncio.TimeoutError:
        future.add_done_callback(
            functools.partial(_deliver_late_result, on_late_result, on_late_settled)
        )
        raise on_timeout() from None


def _deliver_late_result(
    callback: Optional[Callable[[Any], None]],
    settled: Optional[Callable[[], None]],
    future: "asyncio.Future",
) -> None:
    try:
        # reading exception() marks it retrieved so asyncio does not warn about it
        if future.cancelled() or future.exception() is not None or callback is None:
            return
        callback(future.result())
    except Exception as e:
        logger.warning(f"Late result cleanup failed: {e}")
    finally:
        if settled is not None:
            try:
                settled()
            except Exception as e:
                logger.warning(f"Late result cleanup failed: {e}")
