from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[str], Awaitable[None]]


class DeclareScheduler:
    """One deadline timer per room.

    ``schedule`` replaces any live timer for the room and ``cancel`` may be
    called any number of times. The callback never fires before the deadline.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._tasks: Dict[str, asyncio.Task] = {}
        self._deadlines: Dict[str, float] = {}

    def is_scheduled(self, room_id: str) -> bool:
        task = self._tasks.get(room_id)
        return task is not None and not task.done()

    def deadline(self, room_id: str) -> Optional[float]:
        return self._deadlines.get(room_id) if self.is_scheduled(room_id) else None

    def schedule(self, room_id: str, deadline: float, callback: TimerCallback) -> None:
        if self.deadline(room_id) == deadline:
            logger.info("[timer-skip] room=%s deadline=%s already scheduled", room_id, deadline)
            return
        self.cancel(room_id)
        delay = max(0.0, deadline - self._clock())
        self._deadlines[room_id] = deadline
        self._tasks[room_id] = asyncio.create_task(self._run(room_id, deadline, callback))
        logger.info("[timer-set] room=%s delay=%.2fs deadline=%s", room_id, delay, deadline)

    async def _run(self, room_id: str, deadline: float, callback: TimerCallback) -> None:
        # sleep in a loop: the event loop clock and the wall clock can drift apart
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await asyncio.sleep(remaining)
        if self._tasks.get(room_id) is asyncio.current_task():
            self._tasks.pop(room_id, None)
            self._deadlines.pop(room_id, None)
        logger.info("[timer-fire] room=%s deadline=%s", room_id, deadline)
        try:
            await callback(room_id)
        except Exception:
            logger.exception("[timer-error] room=%s", room_id)

    def cancel(self, room_id: str) -> bool:
        task = self._tasks.pop(room_id, None)
        self._deadlines.pop(room_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("[timer-cancel] room=%s", room_id)
        return True

    def cancel_all(self) -> None:
        for room_id in list(self._tasks):
            self.cancel(room_id)
