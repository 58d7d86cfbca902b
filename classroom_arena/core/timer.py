"""
Countdown reconciliation

Every observer derives its own "displayed remaining" from the session
document and its own wall clock. There is no server-pushed tick stream:
a late joiner computes from `endTime`, not from the moment it joined.
"""
import asyncio
import logging
from typing import Callable, Optional, Tuple

from classroom_arena.models import SessionConfig, SessionStatus
from classroom_arena.utils import Clock


logger = logging.getLogger(__name__)


def displayed_remaining(config: Optional[SessionConfig], now_ms: int) -> int:
    """
    Seconds left as an observer should render them

    - not active: 0
    - running: max(0, floor((endTime - now) / 1000))
    - paused: the frozen remainingSeconds (endTime is ignored)
    """
    if config is None or config.status != SessionStatus.ACTIVE:
        return 0
    if config.is_running:
        if config.end_time is None:
            return 0
        return max(0, (config.end_time - now_ms) // 1000)
    return max(0, config.remaining_seconds or 0)


class CountdownTicker:
    """
    Cancellable periodic task recomputing the displayed remaining

    reconcile() is called with every new session snapshot. It recomputes at
    once, and restarts the loop only when (status, isRunning) changes, so two
    loops never tick side by side. The loop stops by itself at zero.
    """

    def __init__(self, clock: Clock, on_tick: Callable[[int], None], interval: float = 1.0):
        self.clock = clock
        self.on_tick = on_tick
        self.interval = interval
        self.remaining = 0
        self._config: Optional[SessionConfig] = None
        self._mode: Optional[Tuple[SessionStatus, bool]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_ticking(self) -> bool:
        return self._task is not None and not self._task.done()

    def reconcile(self, config: SessionConfig) -> int:
        self._config = config
        mode = (config.status, config.is_running)
        running = config.is_active and config.is_running
        if mode != self._mode or (running and not self.is_ticking):
            self._cancel()
            self._mode = mode
            if running:
                self._task = asyncio.get_running_loop().create_task(self._run())
        return self._emit()

    def close(self) -> None:
        self._cancel()
        self._mode = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self._emit() <= 0:
                return

    def _emit(self) -> int:
        self.remaining = displayed_remaining(self._config, self.clock())
        self.on_tick(self.remaining)
        return self.remaining

    def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
