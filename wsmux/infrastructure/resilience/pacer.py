"""Launch pacing for newly admitted requests.

Spaces out connection launches so a large backlog does not open many
connections in the same instant.
"""

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_LAUNCH_PACING_INTERVAL = 0.0


class LaunchPacer:
    """Blocks for a fixed interval after each launch."""

    def __init__(
        self,
        interval: float = DEFAULT_LAUNCH_PACING_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initializes the pacer.

        Args:
            interval: Seconds to wait after each launch. 0 disables pacing.
            sleep: Blocking sleep function (injectable for tests).
        """
        self.interval = interval
        self._sleep = sleep
        self.launches = 0
        self.total_wait = 0.0

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        if value < 0:
            raise ValueError(f"Launch pacing interval must be >= 0, got {value}")
        self._interval = float(value)

    def pace(self) -> None:
        """Records a launch and waits the pacing interval."""
        self.launches += 1
        if self._interval <= 0:
            return
        logger.debug(f"Pacing launch #{self.launches}: waiting {self._interval:.3f}s")
        self._sleep(self._interval)
        self.total_wait += self._interval
