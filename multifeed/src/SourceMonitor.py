"""SourceMonitor: Per-source health statistics for the service loop.

Counts successes and failures of each source across aggregation rounds so the
host can log and alert on sources that keep failing. It is observational only:
the aggregator still queries every configured source on every round.

.. code-block:: python

    >>> monitor = SourceMonitor(["coinbase", "kraken"])
    >>> monitor.record_failure("kraken", "timeout")
    1
    >>> monitor.record_failure("kraken", "timeout")
    2
    >>> monitor.record_success("kraken")
    >>> monitor.get_source_status("kraken").consecutive_failures
    0
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class SourceStatus:
    """Tracks the health of a single source.

    :ivar consecutive_failures: Number of consecutive failures.
    :ivar total_failures: Total failures since tracking began.
    :ivar total_successes: Total successes since tracking began.
    :ivar last_error: Reason of the most recent failure.
    :ivar last_success_at: Unix time of the most recent success.
    """

    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_error: str | None = None
    last_success_at: float = 0.0


class SourceMonitor:
    """Tracks per-source health across rounds.

    :ivar sources: List of tracked source names.
    :ivar alert_threshold: Consecutive failures after which a source is
        reported as failing.
    """

    DEFAULT_ALERT_THRESHOLD = 3

    def __init__(
        self,
        sources: list[str] | None = None,
        alert_threshold: int = DEFAULT_ALERT_THRESHOLD,
    ) -> None:
        """Initialize the monitor.

        :param sources: Source names to track up front.
        :param alert_threshold: Consecutive failures that mark a source failing.
        :raises ValueError: If alert_threshold is less than 1.
        """
        if alert_threshold < 1:
            raise ValueError("alert_threshold must be at least 1")
        self.sources = list(sources or [])
        self.alert_threshold = alert_threshold
        self._status: dict[str, SourceStatus] = {s: SourceStatus() for s in self.sources}

    def _ensure(self, source: str) -> SourceStatus:
        if source not in self._status:
            self.sources.append(source)
            self._status[source] = SourceStatus()
        return self._status[source]

    def record_failure(self, source: str, reason: str | None = None) -> int:
        """Record a failed read.

        :param source: Source name that failed.
        :param reason: Failure reason.
        :returns: Number of consecutive failures.
        """
        status = self._ensure(source)
        status.consecutive_failures += 1
        status.total_failures += 1
        status.last_error = reason

        if status.consecutive_failures == self.alert_threshold:
            logger.warning(
                f"[{source}] {status.consecutive_failures} consecutive failures "
                f"(last: {reason})"
            )
        return status.consecutive_failures

    def record_success(self, source: str) -> None:
        """Record a successful read, resetting the failure counter."""
        status = self._ensure(source)
        if status.consecutive_failures >= self.alert_threshold:
            logger.info(
                f"[{source}] Recovered after {status.consecutive_failures} failures"
            )
        status.consecutive_failures = 0
        status.total_successes += 1
        status.last_success_at = time.time()

    def record_round(self, answered: list[str], failed: dict[str, str]) -> None:
        """Record the outcome of one aggregation round.

        :param answered: Sources that returned a reading (fresh or not).
        :param failed: Sources that failed, mapped to their reason.
        """
        for source in answered:
            self.record_success(source)
        for source, reason in failed.items():
            self.record_failure(source, reason)

    def get_source_status(self, source: str) -> SourceStatus | None:
        """Get the status of a specific source, or None if not tracked."""
        return self._status.get(source)

    def get_all_status(self) -> dict[str, SourceStatus]:
        """Get status of all sources."""
        return dict(self._status)

    def get_failing_sources(self) -> list[str]:
        """Sources at or above the consecutive-failure alert threshold."""
        return [
            s
            for s in self.sources
            if self._status[s].consecutive_failures >= self.alert_threshold
        ]

    def remove_source(self, source: str) -> None:
        if source in self.sources:
            self.sources.remove(source)
        self._status.pop(source, None)

    def sync_sources(self, sources: list[str]) -> None:
        """Follow the configured source list.

        New sources start with a clean status; sources no longer configured
        are dropped along with their history.

        :param sources: Names of the currently configured sources.
        """
        for source in [s for s in self.sources if s not in sources]:
            logger.info(f"[{source}] No longer configured, dropping health record")
            self.remove_source(source)
        for source in sources:
            self._ensure(source)
