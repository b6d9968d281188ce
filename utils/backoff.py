"""
Exponential backoff policy for transient I/O failures.

Used when deleting temporary artifacts that may still be held open by
the operating system or an antivirus scanner right after a subprocess
exits.
"""

import time
from dataclasses import dataclass
from typing import Callable, Iterator, Tuple, Type
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry schedule: attempt count, base delay, growth factor and wait budget."""
    attempts: int = 5
    base_delay: float = 0.1          # seconds
    multiplier: float = 2.0
    max_total_wait: float = 3.3      # seconds

    def delays(self) -> Iterator[float]:
        """
        Yield the sleep before each retry (attempts - 1 values).

        The sum of the yielded delays never exceeds ``max_total_wait``;
        the last delay is truncated to fit the budget and the schedule
        stops once the budget is spent.
        """
        waited = 0.0
        delay = self.base_delay
        for _ in range(max(self.attempts - 1, 0)):
            remaining = self.max_total_wait - waited
            if remaining <= 0:
                return
            step = min(delay, remaining)
            waited += step
            yield step
            delay *= self.multiplier

    def run(self, func: Callable[[], None],
            retry_on: Tuple[Type[BaseException], ...] = (OSError,),
            sleep: Callable[[float], None] = time.sleep,
            description: str = "operation") -> bool:
        """
        Call ``func`` until it succeeds or the policy is exhausted.

        Args:
            func: Zero-argument callable to attempt
            retry_on: Exception types considered transient
            sleep: Sleep function (injectable for tests)
            description: Text used in log messages

        Returns:
            True if an attempt succeeded, False if every attempt failed
        """
        delays = self.delays()
        attempt = 1
        while True:
            try:
                func()
                if attempt > 1:
                    logger.debug(f"{description} succeeded on attempt {attempt}")
                return True
            except retry_on as e:
                delay = next(delays, None)
                if delay is None:
                    logger.warning(f"{description} failed after {attempt} attempts: {e}")
                    return False
                logger.debug(f"{description} attempt {attempt} failed ({e}), retrying in {delay * 1000:.0f}ms")
                sleep(delay)
                attempt += 1


# Retries after 100, 200, 400 and 800 ms
DEFAULT_CLEANUP_POLICY = BackoffPolicy()
