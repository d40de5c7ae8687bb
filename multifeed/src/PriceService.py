"""PriceService: Periodic aggregation loop for a single canonical price.

This module is the host layer around the aggregator:
- Aggregating every poll_period seconds
- Recording per-source health in a SourceMonitor
- Logging each price with its source breakdown
- Closing the shared HTTP client on shutdown
"""

from __future__ import annotations

import asyncio
import logging

from .DecimalNormalizer import from_fixed
from .errors import AggregatorError
from .FeedAdapters import KeyedFeedAdapter, RoundFeedAdapter, StructuredFeedAdapter
from .PriceAggregator import AggregationResult, PriceAggregator
from .providers import PriceProvider
from .SourceMonitor import SourceMonitor
from .SourceRegistry import SourceRegistry

logger = logging.getLogger(__name__)


class PriceService:
    """Runs the aggregator periodically and exposes the read adapters.

    :ivar registry: Source registry.
    :ivar aggregator: Aggregator reading from the registry.
    :ivar monitor: Per-source health tracker.
    :ivar poll_period: Seconds between aggregation rounds.
    :ivar last_result: Most recent successful result.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        poll_period: int = 60,
        fetch_timeout: float = 10.0,
        price_id: str | None = None,
        description: str = "",
    ) -> None:
        """Initialize the service.

        :param registry: Registry with configured sources and parameters.
        :param poll_period: Seconds between rounds (minimum: 1, default: 60).
        :param fetch_timeout: Per-source timeout (default: 10.0).
        :param price_id: Identifier for the structured feed adapter, if any.
        :param description: Feed description reported by the round adapter.
        """
        self.registry = registry
        self.poll_period = max(1, poll_period)
        self.aggregator = PriceAggregator(registry, fetch_timeout=fetch_timeout)
        self.monitor = SourceMonitor([d.name for d in registry.snapshot().sources])
        self.last_result: AggregationResult | None = None

        self.round_feed = RoundFeedAdapter(self.aggregator, description=description)
        self.keyed_feed = KeyedFeedAdapter(self.aggregator)
        self.structured_feed: StructuredFeedAdapter | None = None
        if price_id:
            self.structured_feed = StructuredFeedAdapter(self.aggregator, price_id)

        logger.info(
            f"PriceService initialized: sources={len(registry.snapshot().sources)}, "
            f"poll_period={self.poll_period}s, fetch_timeout={fetch_timeout}s"
        )

    async def run_once(self, now: int | None = None) -> AggregationResult | None:
        """Run one aggregation round.

        Terminal aggregation errors are logged, not raised, so the loop keeps
        running.

        :param now: Evaluation time; defaults to the current time.
        :returns: The result, or None if the round failed.
        """
        snapshot = self.registry.snapshot()
        self.monitor.sync_sources([d.name for d in snapshot.sources])
        try:
            result = await self.aggregator.aggregate(snapshot, now=now)
        except AggregatorError as e:
            failures = getattr(e, "failures", None)
            if failures:
                self.monitor.record_round([], failures)
            logger.warning(f"Aggregation failed ({type(e).__name__}): {e}")
            return None

        meta = result.metadata
        failed = meta.get("failed", {})
        answered = [d.name for d in snapshot.sources if d.name not in failed]
        self.monitor.record_round(answered, failed)

        self.last_result = result
        logger.info(self._format_result(result))
        return result

    def _format_result(self, result: AggregationResult) -> str:
        """Format a result for logging.

        :returns: String like "price=101.5 (weighted [a, b], dropped: [c=500.0])".
        """
        meta = result.metadata
        price = from_fixed(result.price, result.decimals)

        if meta.get("fallback"):
            msg = f"price={price} (stale fallback from {meta.get('fallback_source')}"
        else:
            msg = f"price={price} (weighted [{', '.join(meta.get('sources', []))}]"

        dropped = meta.get("dropped", {})
        if dropped:
            dropped_strs = [
                f"{s}={from_fixed(p, result.decimals)}" for s, p in dropped.items()
            ]
            msg += f", dropped: [{', '.join(dropped_strs)}]"
        if meta.get("stale"):
            msg += f", stale: [{', '.join(meta['stale'])}]"
        if meta.get("failed"):
            msg += f", failed: [{', '.join(meta['failed'])}]"
        return msg + ")"

    async def run(self, iterations: int | None = None) -> None:
        """Run the aggregation loop.

        :param iterations: Number of rounds to run, or None to run forever.
        """
        logger.info("Starting aggregation loop")
        count = 0
        try:
            while iterations is None or count < iterations:
                await self.run_once()
                count += 1
                failing = self.monitor.get_failing_sources()
                if failing:
                    logger.debug(f"Failing sources: {failing}")
                if iterations is None or count < iterations:
                    await asyncio.sleep(self.poll_period)
        finally:
            # Clean up shared HTTP client
            await PriceProvider.close_shared_client()
