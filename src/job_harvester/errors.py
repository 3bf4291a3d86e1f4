"""
Exception types shared across the harvester.

Fatal errors abort the whole run, query-level errors skip one query,
record-level errors skip one record.
"""


class HarvesterError(Exception):
    """Base class for harvester errors."""


class ConfigValidationError(ValueError):
    """Raised when configuration fails invariant validation."""
    pass


class SessionLaunchError(HarvesterError):
    """Raised when the headless browser cannot be started."""


class ConnectivityError(HarvesterError):
    """Raised when the once-per-run homepage check never clears."""


class QueryFailed(HarvesterError):
    """Raised when a single search query cannot be scraped."""

    def __init__(self, message: str, *, reason: str = "error", url: str = ""):
        super().__init__(message)
        self.reason = reason
        self.url = url


class ChallengeNotCleared(QueryFailed):
    """Raised when an anti-bot interstitial does not clear within budget."""


class StoreError(HarvesterError):
    """Raised by a JobStore when a read or write fails."""


class RunCancelled(HarvesterError):
    """Raised when the run's cancellation token is set."""
