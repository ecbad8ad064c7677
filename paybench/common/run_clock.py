"""
Run clock for scheduling stage start offsets and measuring stage durations.
"""

import asyncio
import time
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class RunClock:
    """Monotonic clock anchored at the start of a run."""

    def __init__(self):
        self.run_start: Optional[float] = None

    def now(self) -> float:
        """Current monotonic time in seconds."""
        return time.monotonic()

    def start(self) -> float:
        """Anchor the clock at the current instant.

        Returns:
            The monotonic run start time
        """
        self.run_start = self.now()
        logger.debug(f"Run clock started at {self.run_start:.3f}")
        return self.run_start

    def elapsed(self) -> float:
        """Seconds since the run started."""
        if self.run_start is None:
            return 0.0
        return self.now() - self.run_start

    def absolute(self, offset: float) -> float:
        """Monotonic time of an offset relative to run start."""
        if self.run_start is None:
            raise RuntimeError("Run clock has not been started")
        return self.run_start + offset

    async def sleep_until(self, offset: float) -> None:
        """Suspend until `offset` seconds after run start (returns at once if already past)."""
        remaining = self.absolute(offset) - self.now()
        if remaining > 0:
            await asyncio.sleep(remaining)

    def __repr__(self) -> str:
        return f"RunClock(run_start={self.run_start}, elapsed={self.elapsed():.3f})"
