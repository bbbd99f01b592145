"""Periodic tick that reports the live elapsed time of the active timer."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from studybook.config import settings
from studybook.services.study_plan_service import StudyPlanService

logger = logging.getLogger(__name__)

TickCallback = Callable[[str, int], None]


class TimerTicker:
    """Calls back once per tick with the active task and its elapsed seconds.

    The ticker only reads the study plan; it never changes task state.
    """

    def __init__(
        self,
        service: StudyPlanService,
        callback: TickCallback,
        interval: Optional[float] = None,
    ):
        """Initialize the ticker for a study plan service."""
        self.service = service
        self.callback = callback
        self.interval = interval if interval is not None else settings.timer.tick_seconds
        self.task: Optional[asyncio.Task] = None
        self.running = False

    async def start(self) -> None:
        """Start ticking."""
        if self.running:
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.debug("Timer ticker started (interval %.2fs)", self.interval)

    async def stop(self) -> None:
        """Stop ticking and wait for the tick task to finish."""
        if not self.running:
            return

        self.running = False
        self.task.cancel()
        await asyncio.gather(self.task, return_exceptions=True)
        self.task = None
        logger.debug("Timer ticker stopped")

    async def _run(self) -> None:
        while self.running:
            task_id = self.service.active_timer_id
            if task_id is not None:
                try:
                    self.callback(task_id, self.service.get_current_elapsed(task_id))
                except Exception as e:
                    logger.error("Timer tick callback failed for %s: %s", task_id, e)
            await asyncio.sleep(self.interval)


@asynccontextmanager
async def ticking(
    service: StudyPlanService,
    callback: TickCallback,
    interval: Optional[float] = None,
) -> AsyncIterator[TimerTicker]:
    """Run a ticker for the duration of the block; it is always stopped on exit."""
    ticker = TimerTicker(service, callback, interval)
    await ticker.start()
    try:
        yield ticker
    finally:
        await ticker.stop()
