import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Set


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class CycleAlreadyRunning(Exception):
    pass


class PollScheduler:
    """
    Fires a cycle immediately, then every `interval` seconds, forever.

    Only one cycle runs at a time: a tick that arrives while a cycle is in
    flight is skipped. Each cycle is bounded by `cycle_timeout` seconds.
    """

    def __init__(
            self,
            cycle: Callable[[], Awaitable[Any]],
            interval: float,
            cycle_timeout: Optional[float] = None
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._cycle = cycle
        self.interval = interval
        self.cycle_timeout = cycle_timeout
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.RUNNING if self._lock.locked() else SchedulerState.IDLE

    async def run_once(self) -> Any:
        """Runs one cycle in the single slot. Raises CycleAlreadyRunning if the slot is taken."""
        if self._lock.locked():
            raise CycleAlreadyRunning("A polling cycle is already in progress.")
        async with self._lock:
            return await asyncio.wait_for(self._cycle(), timeout=self.cycle_timeout)

    async def tick(self) -> bool:
        """Scheduled entry point. Never raises, returns False when the tick was skipped or failed."""
        try:
            result = await self.run_once()
        except CycleAlreadyRunning:
            self.logger.warning("Previous cycle still running, skipping this tick.")
            return False
        except asyncio.TimeoutError:
            self.logger.error(f"Cycle did not finish within {self.cycle_timeout} seconds, cancelled.")
            return False
        except Exception as e:
            self.logger.critical(f"Error in polling cycle: {e}", exc_info=True)
            return False
        self.logger.debug(f"Cycle finished: {result}")
        return True

    async def run_forever(self, max_ticks: Optional[int] = None) -> None:
        fired = 0
        try:
            while max_ticks is None or fired < max_ticks:
                self.logger.info("===== New round =====")
                task = asyncio.create_task(self.tick())
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                fired += 1
                if max_ticks is not None and fired >= max_ticks:
                    break
                self.logger.info(f"Next round in {self.interval} seconds.")
                await asyncio.sleep(self.interval)
            if self._tasks:
                await asyncio.gather(*self._tasks)
        finally:
            pending = list(self._tasks)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
