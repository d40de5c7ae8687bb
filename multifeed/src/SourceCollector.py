"""SourceCollector: Fault-isolated reads from every configured source.

Each source is queried concurrently under its own timeout. A query never
raises out of the collector: it yields a :class:`SourceOutcome` holding either
a normalized, weighted :class:`SourceReading` or the failure reason. The round
only fails when no source produced a reading at all.

Architecture:
    - One task per descriptor in the snapshot, gathered concurrently
    - Timeouts, provider errors and malformed prices exclude that source only
    - Surviving raw prices are rescaled to the output scale (DecimalNormalizer)
    - Each reading is weighted by freshness (FreshnessWeighter)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from .DecimalNormalizer import normalize_price
from .errors import InvalidPriceError, NoLiveSourcesError
from .FreshnessWeighter import freshness_weight
from .SourceRegistry import AggregationParameters, RegistrySnapshot, SourceDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceReading:
    """One normalized observation.

    :ivar source: Name of the source that produced it.
    :ivar price: Price at the aggregator output scale.
    :ivar weight: Freshness weight; 0 means excluded.
    :ivar timestamp: Provider-reported observation time (seconds).
    """

    source: str
    price: int
    weight: int
    timestamp: int

    @property
    def is_fresh(self) -> bool:
        return self.weight > 0


@dataclass(frozen=True)
class SourceOutcome:
    """Result of querying one source: a reading or a failure reason."""

    source: str
    reading: SourceReading | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.reading is not None


@dataclass(frozen=True)
class CollectionResult:
    """All outcomes of one collection round, in collection order.

    :ivar outcomes: One outcome per configured source.
    :ivar now: Evaluation time used for weighting.
    """

    outcomes: tuple[SourceOutcome, ...]
    now: int

    @property
    def readings(self) -> list[SourceReading]:
        """Readings of sources that answered."""
        return [o.reading for o in self.outcomes if o.reading is not None]

    @property
    def failures(self) -> dict[str, str]:
        """Failure reason per source that did not answer."""
        return {o.source: o.error or "unknown" for o in self.outcomes if o.reading is None}


def build_reading(
    descriptor: SourceDescriptor,
    raw_price: int,
    timestamp: int,
    params: AggregationParameters,
    now: int,
) -> SourceReading:
    """Normalize and weight one raw observation.

    :raises InvalidPriceError: If the raw price is negative or not an integer.
    """
    price = normalize_price(raw_price, descriptor.decimals, params.aggregator_decimals)
    weight = freshness_weight(
        timestamp, now, params.stale_threshold, params.decay_lambda
    )
    return SourceReading(
        source=descriptor.name,
        price=price,
        weight=weight,
        timestamp=timestamp,
    )


class SourceCollector:
    """Queries configured sources with per-source fault isolation.

    :ivar fetch_timeout: Timeout for each provider read in seconds.
    """

    def __init__(self, fetch_timeout: float = 10.0) -> None:
        """Initialize the collector.

        :param fetch_timeout: Timeout for each provider read (default: 10.0).
        """
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        self.fetch_timeout = fetch_timeout

    async def collect(
        self,
        snapshot: RegistrySnapshot,
        now: int | None = None,
    ) -> CollectionResult:
        """Query every source in the snapshot.

        :param snapshot: Configuration snapshot to collect from.
        :param now: Evaluation time; defaults to the current time.
        :returns: CollectionResult with at least one reading.
        :raises NoLiveSourcesError: If no source is configured or all failed.
        """
        if now is None:
            now = int(time.time())

        if not snapshot.sources:
            raise NoLiveSourcesError()

        outcomes = await asyncio.gather(
            *(
                self._query(descriptor, snapshot.parameters, now)
                for descriptor in snapshot.sources
            )
        )
        result = CollectionResult(outcomes=tuple(outcomes), now=now)

        if not result.readings:
            raise NoLiveSourcesError(result.failures)

        return result

    async def _query(
        self,
        descriptor: SourceDescriptor,
        params: AggregationParameters,
        now: int,
    ) -> SourceOutcome:
        """Read a single source, turning every failure into an outcome.

        :param descriptor: Source to read.
        :param params: Parameters used for normalization and weighting.
        :param now: Evaluation time.
        :returns: SourceOutcome with a reading or an error.
        """
        name = descriptor.name
        try:
            raw_price, timestamp = await asyncio.wait_for(
                descriptor.provider.read(descriptor.sender, descriptor.key),
                timeout=self.fetch_timeout,
            )
            reading = build_reading(descriptor, raw_price, int(timestamp), params, now)
        except asyncio.TimeoutError:
            logger.warning(f"[{name}] Timeout after {self.fetch_timeout}s")
            return SourceOutcome(source=name, error="timeout")
        except InvalidPriceError as e:
            logger.warning(f"[{name}] Invalid price: {e}")
            return SourceOutcome(source=name, error=f"invalid price: {e}")
        except Exception as e:
            logger.warning(f"[{name}] Read failed: {e}")
            return SourceOutcome(source=name, error=str(e) or type(e).__name__)

        if not reading.is_fresh:
            logger.debug(f"[{name}] Stale reading (timestamp={timestamp}, now={now})")
        return SourceOutcome(source=name, reading=reading)
