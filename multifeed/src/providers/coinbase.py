"""Coinbase Exchange provider.

Endpoint: https://api.exchange.coinbase.com/products/{PRODUCT}/ticker
Rate Limit: High (no key required)

The sub-feed key is the product id (``"BTC-USD"``, or ``"btc/usd"`` which is
converted); the sender is ignored.
"""

import logging

from ..DecimalNormalizer import to_fixed
from ..errors import InvalidPriceError
from .base import PriceProvider, ProviderError, register_provider
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)


@register_provider
class CoinbaseProvider(PriceProvider):
    """Provider for the Coinbase Exchange public ticker.

    :ivar decimals: Fixed-point scale of the returned prices.
    """

    name = "coinbase"
    scaled_by_config = True
    BASE_URL = "https://api.exchange.coinbase.com"

    def __init__(
        self,
        decimals: int = 8,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(api_key=api_key, timeout=timeout)
        self.decimals = decimals

    @staticmethod
    def product_id(key: str) -> str:
        """Convert ``"btc/usd"`` style keys to Coinbase product ids."""
        return key.replace("/", "-").upper()

    async def read(self, sender: str, key: str) -> tuple[int, int]:
        """Read the latest trade price and time for a product.

        :param sender: Ignored.
        :param key: Product id, e.g. ``"BTC-USD"``.
        :returns: Tuple of (price, timestamp).
        :raises ProviderError: On HTTP failure or malformed ticker.
        """
        symbol = self.product_id(key)
        url = f"{self.BASE_URL}/products/{symbol}/ticker"

        response = await self._get(url)
        data = self._json(response)

        if not isinstance(data, dict) or "price" not in data:
            raise ProviderError(f"No price in response for {symbol}: {data}")
        if "time" not in data:
            raise ProviderError(f"No time in response for {symbol}: {data}")

        try:
            price = to_fixed(data["price"], self.decimals)
        except InvalidPriceError as e:
            raise ProviderError(f"Failed to parse price for {symbol}: {e}") from e

        return price, parse_timestamp(data["time"])
