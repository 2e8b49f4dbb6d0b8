"""In-process recurring trigger for server contexts.

Timing is best-effort: a tick that fires while the previous callback is still
running is not skipped, so callbacks may overlap.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Set, Union

from ..logging import get_logger

LOG = get_logger("alert-scheduler")

TriggerCallback = Callable[[], Union[Awaitable[Any], Any]]


class RecurringTrigger:
    def __init__(self, interval_sec: float, callback: TriggerCallback, *, name: str = "recurring") -> None:
        if interval_sec <= 0:
            raise ValueError("interval_sec must be positive")
        self.interval_sec = float(interval_sec)
        self.callback = callback
        self.name = name
        self.fired = 0
        self._task: Optional["asyncio.Task[None]"] = None
        self._inflight: Set["asyncio.Task[None]"] = set()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin ticking; must be called from inside a running event loop."""
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"trigger-{self.name}")
        LOG.info(f"Trigger {self.name!r} scheduled every {self.interval_sec:.0f}s")

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            LOG.info(f"Trigger {self.name!r} cancelled")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            self.fired += 1
            LOG.debug(f"Trigger {self.name!r} fired (#{self.fired})")
            task = asyncio.get_running_loop().create_task(self._invoke())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _invoke(self) -> None:
        try:
            result = self.callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOG.exception(f"Trigger {self.name!r} callback failed")
