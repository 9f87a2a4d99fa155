"""Debounce bursts of recommendation requests into a single computation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WINDOW_SECONDS = 0.1


class RequestCoalescer(Generic[T]):
    """Run ``compute`` once per burst of calls, with the latest arguments.

    Every call made while the quiet window is still open joins the pending
    batch and restarts the window. When the window elapses, ``compute`` runs
    with the arguments of the most recent call and all callers in the batch
    receive that result (or its exception). Calls arriving while a batch is
    already computing start a new batch.
    """

    def __init__(
        self,
        compute: Callable[..., Awaitable[T]],
        *,
        window: float = DEFAULT_WINDOW_SECONDS,
    ) -> None:
        self._compute = compute
        self.window = max(0.0, window)
        self._waiters: List[asyncio.Future] = []
        self._latest: Tuple[Tuple[Any, ...], Dict[str, Any]] = ((), {})
        self._timer: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return len(self._waiters)

    async def submit(self, *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._waiters.append(future)
        self._latest = (args, kwargs)

        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
            LOGGER.debug("Request superseded, %d callers waiting", len(self._waiters))
        self._timer = loop.create_task(self._fire_after_window())
        return await future

    async def _fire_after_window(self) -> None:
        await asyncio.sleep(self.window)

        # detach the batch so new calls start a fresh one
        waiters, self._waiters = self._waiters, []
        args, kwargs = self._latest
        self._timer = None

        try:
            result = await self._compute(*args, **kwargs)
        except Exception as exc:
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(exc)
            return
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(result)
