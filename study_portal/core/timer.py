"""
Cancellable repeating timer used by the OTP resend countdown
"""
import asyncio
from typing import Callable, Optional

from study_portal.logging_config import get_logger

logger = get_logger(__name__)

# Returns False to stop ticking
TickCallback = Callable[[], bool]


class CountdownTimer:
    """
    Calls on_tick every `interval` seconds on the running event loop
    until the callback returns False or cancel() is called.
    """

    def __init__(self, on_tick: TickCallback, interval: float = 1.0):
        self.on_tick = on_tick
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """(Re)start ticking; a previous run is cancelled first."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self):
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            self._task = None

    async def _run(self):
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not self.on_tick():
                    break
        except Exception:
            # Nobody awaits this task; a failing tick stops the countdown here
            logger.exception("countdown_tick_failed")


TimerFactory = Callable[[TickCallback], CountdownTimer]


def default_timer_factory(on_tick: TickCallback) -> CountdownTimer:
    return CountdownTimer(on_tick)
