"""
Retry backoff shared by the connectivity check and query failure escalation.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from job_harvester.cancel import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class BackoffPolicy:
    """Exponential backoff with jitter and a bounded attempt count."""

    base_seconds: float = 15.0
    factor: float = 2.0
    max_seconds: float = 120.0
    jitter: float = 0.2
    max_attempts: int = 3

    def delay_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Delay before retry number `attempt` (1-based)."""
        if attempt <= 0 or self.base_seconds <= 0:
            return 0.0
        delay = min(self.base_seconds * (self.factor ** (attempt - 1)), self.max_seconds)
        if self.jitter > 0:
            spread = delay * self.jitter
            delay += (rng or random).uniform(-spread, spread)
        return max(delay, 0.0)

    def wait(self, attempt: int, token: CancellationToken) -> bool:
        """Sleep for the attempt's delay. Returns False if cancelled."""
        delay = self.delay_for(attempt)
        if delay <= 0:
            return not token.cancelled
        logger.info("Backing off %.1fs (attempt %s)", delay, attempt)
        print(f"   ⏳ Backing off {delay:.0f}s...")
        return token.sleep(delay)
