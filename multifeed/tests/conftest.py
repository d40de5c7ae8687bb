"""Shared fixtures for multifeed tests."""

from __future__ import annotations

from typing import Callable

import pytest

from multifeed.src.providers import StaticProvider
from multifeed.src.SourceRegistry import (
    AggregationParameters,
    SourceDescriptor,
    SourceRegistry,
)

SENDER = "0xFeedSender"


@pytest.fixture()
def static_provider() -> StaticProvider:
    return StaticProvider()


@pytest.fixture()
def make_registry(
    static_provider: StaticProvider,
) -> Callable[..., SourceRegistry]:
    """Factory building a registry with one static source per entry.

    Entries are ``(name, price, timestamp)`` or ``(name, price, timestamp,
    decimals)``; a price that is an Exception makes that source fail.
    """

    def _make(entries: list[tuple], **params) -> SourceRegistry:
        registry = SourceRegistry(AggregationParameters(**params))
        for entry in entries:
            name, price, timestamp = entry[:3]
            decimals = entry[3] if len(entry) > 3 else 8
            if isinstance(price, Exception):
                static_provider.set_error(SENDER, name, price)
            else:
                static_provider.set_price(SENDER, name, price, timestamp)
            registry.add_source(
                SourceDescriptor(
                    provider=static_provider,
                    sender=SENDER,
                    key=name,
                    decimals=decimals,
                    name=name,
                )
            )
        return registry

    return _make
