"""
Cooperative cancellation for long-running scrapes.
"""

import threading

from job_harvester.errors import RunCancelled


class CancellationToken:
    """Thread-safe flag checked between queries and challenge-poll ticks."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled(self.reason or "cancelled")

    def sleep(self, seconds: float) -> bool:
        """
        Wait up to `seconds`, waking early on cancellation.

        Returns True if the full wait elapsed, False if cancelled.
        """
        if seconds <= 0:
            return not self._event.is_set()
        return not self._event.wait(timeout=seconds)
