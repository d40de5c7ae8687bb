"""Generic JSON-over-HTTP provider.

Reads a price (and optionally a timestamp) out of an arbitrary JSON document.
The URL may reference the sub-feed via ``{sender}`` and ``{key}`` placeholders;
values are located with dotted paths where integer segments index lists.

.. code-block:: python

    provider = HttpJsonProvider(
        url="https://api.example.com/v1/ticker/{key}",
        price_path="data.last",
        timestamp_path="data.ts",
        decimals=8,
    )
"""

import logging
import time
from typing import Any

from ..DecimalNormalizer import to_fixed
from ..errors import InvalidPriceError
from .base import PriceProvider, ProviderConfigError, ProviderError, register_provider
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)


def extract_path(document: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts and lists.

    :param document: Decoded JSON document.
    :param path: Dotted path such as ``"result.0.price"``.
    :returns: The value found at the path.
    :raises ProviderError: If any segment is missing.
    """
    current = document
    for segment in path.split("."):
        try:
            if isinstance(current, list):
                current = current[int(segment)]
            else:
                current = current[segment]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError(f"Path '{path}' not found at segment '{segment}'") from e
    return current


@register_provider
class HttpJsonProvider(PriceProvider):
    """Provider for any HTTP endpoint returning a JSON price document.

    :ivar url: URL template, formatted with ``sender`` and ``key``.
    :ivar price_path: Dotted path to the price value.
    :ivar timestamp_path: Dotted path to the observation time, or None to use
        the local receive time.
    :ivar decimals: Fixed-point scale the decimal price is converted to.
    """

    name = "http_json"
    scaled_by_config = True

    def __init__(
        self,
        url: str,
        price_path: str,
        timestamp_path: str | None = None,
        decimals: int = 8,
        headers: dict[str, str] | None = None,
        api_key_header: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(api_key=api_key, timeout=timeout)
        if not url:
            raise ProviderConfigError("http_json provider requires a url")
        if not price_path:
            raise ProviderConfigError("http_json provider requires a price_path")
        if api_key_header and not self.has_api_key:
            raise ProviderConfigError(
                f"http_json provider expects an API key in header '{api_key_header}'"
            )
        self.url = url
        self.price_path = price_path
        self.timestamp_path = timestamp_path
        self.decimals = decimals
        self.headers = dict(headers or {})
        if api_key_header:
            self.headers[api_key_header] = self.api_key

    async def read(self, sender: str, key: str) -> tuple[int, int]:
        """Fetch the document and extract ``(price, timestamp)``.

        :raises ProviderError: On HTTP failure or if the document is malformed.
        """
        url = self.url.format(sender=sender, key=key)
        response = await self._get(url, headers=self.headers or None)
        data = self._json(response)

        raw_price = extract_path(data, self.price_path)
        try:
            price = to_fixed(raw_price, self.decimals)
        except InvalidPriceError as e:
            raise ProviderError(f"Malformed price at '{self.price_path}': {e}") from e

        if self.timestamp_path is None:
            timestamp = int(time.time())
        else:
            timestamp = parse_timestamp(extract_path(data, self.timestamp_path))

        logger.debug(f"[{self.name}] {url} -> price={price} ts={timestamp}")
        return price, timestamp
