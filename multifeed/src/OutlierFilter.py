"""OutlierFilter: Median-band rejection of divergent fresh readings.

Algorithm:
    1. Skip unless enabled, at least 3 sources are configured and at least
       3 readings are fresh (weight > 0)
    2. Compute the integer median of the fresh prices
    3. Build the band [median * (10000 - bps) / 10000, median * (10000 + bps) / 10000]
    4. Zero the weight of any fresh reading priced outside the band

Zeroed readings stay in the list so they remain candidates for the stale
fallback.

.. code-block:: python

    >>> median_price([100, 102, 500])
    102
    >>> deviation_band(102, 2000)
    (81, 122)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .SourceCollector import SourceReading

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000

# Fewer independent samples than this make a median meaningless.
MIN_OUTLIER_SAMPLES = 3


def median_price(prices: list[int]) -> int:
    """Integer median: middle value, or floor average of the two middle values.

    :param prices: Non-empty list of prices.
    :returns: Median price.
    :raises ValueError: If prices is empty.
    """
    if not prices:
        raise ValueError("median of empty price list")
    ordered = sorted(prices)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) // 2


def deviation_band(median: int, bps: int) -> tuple[int, int]:
    """Return the inclusive (low, high) price band around median."""
    low = median * (BPS_DENOMINATOR - bps) // BPS_DENOMINATOR
    high = median * (BPS_DENOMINATOR + bps) // BPS_DENOMINATOR
    return low, high


def should_filter(fresh_count: int, enabled: bool, configured_count: int) -> bool:
    """Check whether outlier detection applies to this round."""
    return (
        enabled
        and fresh_count >= MIN_OUTLIER_SAMPLES
        and configured_count >= MIN_OUTLIER_SAMPLES
    )


def apply_outlier_filter(
    readings: list[SourceReading],
    max_price_deviation_bps: int,
    enabled: bool,
    configured_count: int,
) -> tuple[list[SourceReading], int | None]:
    """Deweight fresh readings outside the median band.

    :param readings: All readings of the round, in collection order.
    :param max_price_deviation_bps: Band half-width in basis points.
    :param enabled: Whether outlier detection is enabled.
    :param configured_count: Number of configured sources.
    :returns: Tuple of (readings with outliers zeroed, median or None if the
        filter did not run). Order is preserved.
    """
    fresh_prices = [r.price for r in readings if r.weight > 0]
    if not should_filter(len(fresh_prices), enabled, configured_count):
        return list(readings), None

    median = median_price(fresh_prices)
    low, high = deviation_band(median, max_price_deviation_bps)

    filtered: list[SourceReading] = []
    for reading in readings:
        if reading.weight > 0 and not low <= reading.price <= high:
            logger.info(
                f"[{reading.source}] Outlier {reading.price} outside [{low}, {high}] "
                f"(median {median})"
            )
            reading = replace(reading, weight=0)
        filtered.append(reading)

    return filtered, median
