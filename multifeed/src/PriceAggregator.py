"""PriceAggregator: Freshness-weighted average with outlier rejection and stale fallback.

Algorithm:
    1. Refuse to read while paused
    2. Collect normalized, weighted readings from every source
    3. If no reading is fresh, go to fallback
    4. Zero the weight of outliers around the median (>= 3 fresh and enabled)
    5. If nothing fresh survives, go to fallback; otherwise return
       sum(price * weight) // sum(weight) over fresh readings
    6. Fallback: the newest reading's price when allowed, else AllStaleError

Every call recomputes from scratch; the only inputs are the configuration
snapshot, the provider readings and the clock.

.. code-block:: python

    aggregator = PriceAggregator(registry, fetch_timeout=5.0)
    result = await aggregator.aggregate()
    # result.price is an integer at result.decimals
    # result.metadata["dropped"] maps outlier sources to their prices
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TypedDict

from .errors import AllStaleError, PausedError
from .OutlierFilter import apply_outlier_filter
from .SourceCollector import SourceCollector, SourceReading
from .SourceRegistry import AggregationParameters, RegistrySnapshot, SourceRegistry

logger = logging.getLogger(__name__)


class AggregationMetadata(TypedDict, total=False):
    """Metadata about a successful aggregation.

    :ivar sources: Sources that contributed to the weighted average.
    :ivar dropped: Sources excluded as outliers, with their prices.
    :ivar stale: Sources whose readings were stale or future-dated.
    :ivar failed: Sources that could not be read, with the reason.
    :ivar median: Median of fresh prices, if the outlier filter ran.
    :ivar fallback: True if the price is the newest stale reading.
    :ivar fallback_source: Source whose reading was used as fallback.
    """

    sources: list[str]
    dropped: dict[str, int]
    stale: list[str]
    failed: dict[str, str]
    median: int | None
    fallback: bool
    fallback_source: str


@dataclass
class AggregationResult:
    """Result of one aggregation.

    :ivar price: Aggregated price at the output scale.
    :ivar timestamp: Evaluation time of the aggregation.
    :ivar decimals: Output scale of price.
    :ivar metadata: Additional information about the aggregation.
    """

    price: int
    timestamp: int
    decimals: int
    metadata: AggregationMetadata

    @property
    def is_fallback(self) -> bool:
        """Check if the price came from the stale fallback."""
        return bool(self.metadata.get("fallback"))


def weighted_average(readings: list[SourceReading]) -> int:
    """Integer weighted average over readings with weight > 0.

    :raises ValueError: If no reading has a positive weight.
    """
    total_weight = sum(r.weight for r in readings if r.weight > 0)
    if total_weight == 0:
        raise ValueError("no weighted readings")
    weighted_sum = sum(r.price * r.weight for r in readings if r.weight > 0)
    return weighted_sum // total_weight


def newest_reading(readings: list[SourceReading]) -> SourceReading:
    """Reading with the greatest timestamp; the first one wins ties.

    :raises ValueError: If readings is empty.
    """
    if not readings:
        raise ValueError("no readings")
    newest = readings[0]
    for reading in readings[1:]:
        if reading.timestamp > newest.timestamp:
            newest = reading
    return newest


def compute_price(
    readings: list[SourceReading],
    params: AggregationParameters,
    configured_count: int,
) -> tuple[int, AggregationMetadata]:
    """Reduce collected readings to one price.

    This is the pure core of the aggregator: it depends only on its arguments.

    :param readings: Readings in collection order (at least one).
    :param params: Aggregation parameters.
    :param configured_count: Number of configured sources.
    :returns: Tuple of (price, metadata).
    :raises AllStaleError: If nothing fresh remains and fallback is disabled.
    """
    stale = [r.source for r in readings if r.weight == 0]
    median: int | None = None
    dropped: dict[str, int] = {}

    if any(r.weight > 0 for r in readings):
        filtered, median = apply_outlier_filter(
            readings,
            params.max_price_deviation_bps,
            params.outlier_detection_enabled,
            configured_count,
        )
        dropped = {
            after.source: after.price
            for before, after in zip(readings, filtered, strict=True)
            if before.weight > 0 and after.weight == 0
        }
        readings = filtered

    contributors = [r for r in readings if r.weight > 0]
    if contributors:
        metadata: AggregationMetadata = {
            "sources": [r.source for r in contributors],
            "dropped": dropped,
            "stale": stale,
            "median": median,
            "fallback": False,
        }
        return weighted_average(contributors), metadata

    if not params.allow_stale_fallback:
        raise AllStaleError()

    newest = newest_reading(readings)
    metadata = {
        "sources": [],
        "dropped": dropped,
        "stale": stale,
        "median": median,
        "fallback": True,
        "fallback_source": newest.source,
    }
    return newest.price, metadata


class PriceAggregator:
    """Aggregates readings from a source registry into one price.

    :ivar registry: Registry providing configuration snapshots.
    :ivar collector: Collector used to query sources.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        collector: SourceCollector | None = None,
        fetch_timeout: float = 10.0,
    ) -> None:
        """Initialize the aggregator.

        :param registry: Registry providing sources and parameters.
        :param collector: Optional pre-built collector.
        :param fetch_timeout: Per-source timeout when building the collector.
        """
        self.registry = registry
        self.collector = collector or SourceCollector(fetch_timeout=fetch_timeout)

    @property
    def decimals(self) -> int:
        """Current output scale."""
        return self.registry.snapshot().parameters.aggregator_decimals

    async def aggregate(
        self,
        snapshot: RegistrySnapshot | None = None,
        *,
        now: int | None = None,
    ) -> AggregationResult:
        """Aggregate all sources into a single price.

        :param snapshot: Configuration to use; the registry's current snapshot
            if None.
        :param now: Evaluation time; defaults to the current time.
        :returns: AggregationResult with price and metadata.
        :raises PausedError: If the aggregator is paused.
        :raises NoLiveSourcesError: If no source could be read.
        :raises AllStaleError: If all readings are stale and fallback is disabled.
        """
        if snapshot is None:
            snapshot = self.registry.snapshot()
        if now is None:
            now = int(time.time())

        params = snapshot.parameters
        if params.paused:
            raise PausedError()

        collection = await self.collector.collect(snapshot, now=now)

        try:
            price, metadata = compute_price(
                collection.readings, params, snapshot.configured_count
            )
        except AllStaleError:
            logger.warning(
                f"All {len(collection.readings)} readings stale or rejected "
                "and fallback disabled"
            )
            raise

        metadata["failed"] = collection.failures
        if metadata["fallback"]:
            logger.warning(
                f"No fresh readings, falling back to {metadata['fallback_source']} "
                f"price {price}"
            )

        return AggregationResult(
            price=price,
            timestamp=now,
            decimals=params.aggregator_decimals,
            metadata=metadata,
        )
