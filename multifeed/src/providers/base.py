"""Base provider interface and shared HTTP client management.

Every price source is reached through one capability: ``read(sender, key)``
returns ``(price, timestamp)`` where price is a non-negative integer at the
provider's native decimal scale and timestamp is the observation time in
seconds since epoch. ``sender`` and ``key`` select a sub-feed for providers
that multiplex many feeds behind one endpoint; single-feed providers ignore them.

A shared httpx.AsyncClient is used across all HTTP-backed providers to avoid
connection overhead.

.. code-block:: python

    @register_provider
    class MyProvider(PriceProvider):
        name = "myprovider"

        async def read(self, sender: str, key: str) -> tuple[int, int]:
            response = await self._get(f"https://api.example.com/{key}")
            data = response.json()
            return int(data["price"]), int(data["time"])
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class ProviderConfigError(ProviderError):
    """Raised when provider configuration is invalid (e.g., missing API key)."""

    pass


class ProviderHTTPError(ProviderError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class PriceProvider(ABC):
    """Abstract base class for price providers.

    Subclasses must implement:
        - name: Class variable identifying the provider type
        - read(): Async method returning ``(price, timestamp)``

    :cvar name: Unique identifier for this provider type.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Provider identification
    name: ClassVar[str] = ""

    # Provider converts decimal prices using the source's configured decimals
    scaled_by_config: ClassVar[bool] = False

    # Default timeout for HTTP requests (seconds)
    DEFAULT_TIMEOUT = 10.0

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize the provider.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @property
    def has_api_key(self) -> bool:
        """Check if this provider has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is stored on :class:`PriceProvider` itself so every
        subclass reuses the same connection pool.

        :returns: Shared httpx.AsyncClient instance.
        """
        client = PriceProvider._shared_client
        if client is None or client.is_closed:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
            PriceProvider._shared_client = client
        return client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (e.g. with a custom transport)."""
        PriceProvider._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = PriceProvider._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        PriceProvider._shared_client = None

    @abstractmethod
    async def read(self, sender: str, key: str) -> tuple[int, int]:
        """Read the latest price observation for a sub-feed.

        :param sender: Opaque sender identifying the sub-feed owner.
        :param key: Opaque key identifying the sub-feed.
        :returns: Tuple of (price, timestamp).
        :raises ProviderError: If the observation cannot be read.
        """
        pass

    def describe(self) -> str:
        """Short description used in log lines."""
        api_tag = "[key]" if self.has_api_key else ""
        return f"{self.name}{api_tag}"

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises ProviderHTTPError: On non-2xx response.
        :raises ProviderError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise ProviderError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise ProviderHTTPError(response.status_code, response.text[:200])
        return response

    def _json(self, response: httpx.Response) -> Any:
        """Decode a JSON body, mapping decode errors to ProviderError."""
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Malformed JSON response: {e}") from e


# Registry of available provider types (populated by subclass imports)
PROVIDER_REGISTRY: dict[str, type[PriceProvider]] = {}


def register_provider(cls: type[PriceProvider]) -> type[PriceProvider]:
    """Decorator to register a provider class in the global registry.

    :param cls: Provider class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If provider has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Provider {cls.__name__} must define a 'name' class variable")
    PROVIDER_REGISTRY[cls.name] = cls
    return cls


def get_provider(name: str, **options: Any) -> PriceProvider:
    """Get a provider instance by type name.

    :param name: Provider type name (e.g., "coinbase", "http_json").
    :param options: Keyword arguments passed to the provider constructor.
    :returns: Provider instance.
    :raises ValueError: If provider name is unknown.
    :raises ProviderConfigError: If the options do not fit the provider.
    """
    if name not in PROVIDER_REGISTRY:
        available = ", ".join(sorted(PROVIDER_REGISTRY.keys()))
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")
    try:
        return PROVIDER_REGISTRY[name](**options)
    except TypeError as e:
        raise ProviderConfigError(f"Invalid options for provider '{name}': {e}") from e


def get_available_providers() -> list[str]:
    """Get list of available provider type names.

    :returns: Sorted list of registered provider names.
    """
    return sorted(PROVIDER_REGISTRY.keys())
