"""In-memory provider.

Holds a table of ``(sender, key) -> (price, timestamp)`` observations that can
be updated at runtime. Useful for pinned reference prices, for feeding values
pushed by another process, and for tests.

.. code-block:: python

    provider = StaticProvider({("0xabc", "BTC"): (42_000_00000000, 1700000000)})
    price, ts = await provider.read("0xabc", "BTC")
"""

import logging

from .base import PriceProvider, ProviderConfigError, ProviderError, register_provider

logger = logging.getLogger(__name__)


@register_provider
class StaticProvider(PriceProvider):
    """Provider backed by an in-memory observation table.

    Entries may also hold an exception instance, which :meth:`read` raises;
    this simulates a failing sub-feed.
    """

    name = "static"

    def __init__(
        self,
        feeds: dict[tuple[str, str], tuple[int, int] | Exception] | None = None,
        entries: list[dict] | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the provider.

        :param feeds: Mapping of (sender, key) to (price, timestamp).
        :param entries: Alternative JSON-friendly form, a list of dicts with
            ``sender``, ``key``, ``price`` and ``timestamp``.
        :param api_key: Unused.
        :param timeout: Unused.
        :raises ProviderConfigError: If an entry is missing a field.
        """
        super().__init__(api_key=api_key, timeout=timeout)
        self._feeds: dict[tuple[str, str], tuple[int, int] | Exception] = dict(feeds or {})
        for entry in entries or []:
            try:
                self.set_price(
                    entry["sender"], entry["key"], int(entry["price"]), int(entry["timestamp"])
                )
            except (KeyError, TypeError, ValueError) as e:
                raise ProviderConfigError(f"Invalid static entry {entry!r}: {e}") from e

    def set_price(self, sender: str, key: str, price: int, timestamp: int) -> None:
        """Store an observation for a sub-feed, replacing any previous one."""
        self._feeds[(sender, key)] = (price, timestamp)

    def set_error(self, sender: str, key: str, error: Exception) -> None:
        """Make reads of a sub-feed fail with ``error``."""
        self._feeds[(sender, key)] = error

    def clear(self, sender: str, key: str) -> None:
        """Remove a sub-feed."""
        self._feeds.pop((sender, key), None)

    async def read(self, sender: str, key: str) -> tuple[int, int]:
        """Return the stored observation.

        :raises ProviderError: If no observation is stored for the pair.
        """
        value = self._feeds.get((sender, key))
        if value is None:
            raise ProviderError(f"No observation for {sender}/{key}")
        if isinstance(value, Exception):
            raise value
        return value
