"""FeedAdapters: Provider-shaped read interfaces over one aggregator.

Downstream consumers expect different feed shapes. Each adapter here is a thin
wrapper around :meth:`PriceAggregator.aggregate`, so all of them report the
same price for the same state:

- :class:`RoundFeedAdapter`: round-style ``latest_round_data()``
- :class:`StructuredFeedAdapter`: ``get_price(price_id)`` with confidence and
  exponent, validated against a configured identifier
- :class:`KeyedFeedAdapter`: ``read(sender, key)``; also a
  :class:`~multifeed.src.providers.PriceProvider`, so one aggregator can feed
  another
"""

from __future__ import annotations

from typing import NamedTuple

from .errors import InvalidIdentifierError
from .PriceAggregator import PriceAggregator
from .providers import PriceProvider


class RoundData(NamedTuple):
    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


class PriceData(NamedTuple):
    price: int
    conf: int
    expo: int
    publish_time: int


def normalize_identifier(identifier: str | bytes) -> str:
    """Lowercase hex form of an identifier, without ``0x`` prefix."""
    if isinstance(identifier, bytes):
        return identifier.hex()
    text = identifier.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    return text


class RoundFeedAdapter:
    """Round-style read interface.

    Rounds are not tracked; every read reports round 0 answered now.
    """

    def __init__(self, aggregator: PriceAggregator, description: str = "") -> None:
        self.aggregator = aggregator
        self.description = description

    def decimals(self) -> int:
        return self.aggregator.decimals

    async def latest_round_data(self, *, now: int | None = None) -> RoundData:
        """Aggregate and return ``(0, price, now, now, 0)``."""
        result = await self.aggregator.aggregate(now=now)
        return RoundData(
            round_id=0,
            answer=result.price,
            started_at=result.timestamp,
            updated_at=result.timestamp,
            answered_in_round=0,
        )


class StructuredFeedAdapter:
    """Structured price read interface keyed by a price identifier.

    :ivar price_id: Normalized identifier this adapter answers for.
    """

    def __init__(self, aggregator: PriceAggregator, price_id: str | bytes) -> None:
        self.aggregator = aggregator
        self.price_id = normalize_identifier(price_id)
        if not self.price_id:
            raise ValueError("price_id must not be empty")

    def validate_identifier(self, price_id: str | bytes) -> None:
        """Check a caller-supplied identifier.

        :raises InvalidIdentifierError: If it does not match the configured one.
        """
        received = normalize_identifier(price_id)
        if received != self.price_id:
            raise InvalidIdentifierError(self.price_id, received)

    async def get_price(self, price_id: str | bytes, *, now: int | None = None) -> PriceData:
        """Aggregate and return ``(price, 0, -decimals, now)``.

        The identifier is validated before any source is queried.

        :raises InvalidIdentifierError: On identifier mismatch.
        """
        self.validate_identifier(price_id)
        result = await self.aggregator.aggregate(now=now)
        return PriceData(
            price=result.price,
            conf=0,
            expo=-result.decimals,
            publish_time=result.timestamp,
        )


class KeyedFeedAdapter(PriceProvider):
    """Keyed read interface. Sender and key are informational only."""

    name = "aggregator"

    def __init__(self, aggregator: PriceAggregator) -> None:
        super().__init__()
        self.aggregator = aggregator

    async def read(self, sender: str, key: str, *, now: int | None = None) -> tuple[int, int]:
        """Aggregate and return ``(price, now)``."""
        result = await self.aggregator.aggregate(now=now)
        return result.price, result.timestamp
