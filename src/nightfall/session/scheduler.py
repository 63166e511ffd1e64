"""Real-time tick scheduling for live matches."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

TickFn = Callable[[str], bool]


class MatchScheduler:
    """Runs one asyncio task per match that calls ``tick(match_id)`` every
    *interval* seconds until it returns False.

    Must be used from inside a running event loop.
    """

    def __init__(self, interval: float = 1.0) -> None:
        self.interval = interval
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def __contains__(self, match_id: object) -> bool:
        return match_id in self._tasks

    def start(self, match_id: str, tick: TickFn) -> None:
        """Start ticking *match_id*; raises ``ValueError`` if already running."""
        if match_id in self._tasks:
            raise ValueError(f"Match {match_id} is already scheduled")
        loop = asyncio.get_running_loop()
        self._tasks[match_id] = loop.create_task(
            self._run(match_id, tick), name=f"match-timer-{match_id}"
        )
        logger.debug("Scheduled match %s every %.2fs", match_id, self.interval)

    def stop(self, match_id: str) -> bool:
        """Stop the timer for *match_id*. Only the first call has an effect."""
        task = self._tasks.pop(match_id, None)
        if task is None:
            return False
        # A timer tearing down its own match just stops looping.
        if task is not asyncio.current_task():
            task.cancel()
        logger.debug("Stopped timer for match %s", match_id)
        return True

    def stop_all(self) -> None:
        for match_id in list(self._tasks):
            self.stop(match_id)

    async def _run(self, match_id: str, tick: TickFn) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not tick(match_id):
                    break
        except Exception:
            logger.exception("Timer for match %s failed; it will not tick again", match_id)
        finally:
            if self._tasks.get(match_id) is asyncio.current_task():
                del self._tasks[match_id]
