"""
Price providers for heterogeneous sources.

Every provider exposes the same capability, ``read(sender, key)`` returning an
integer ``(price, timestamp)`` at the provider's native decimal scale.

Usage:
    from multifeed.src.providers import get_provider, get_available_providers

    # Get list of available provider types
    available = get_available_providers()
    # ['coinbase', 'http_json', 'round_contract', 'static']

    # Create a provider instance
    provider = get_provider("coinbase", decimals=8)
    price, timestamp = await provider.read("", "BTC-USD")
"""

# Import base classes and utilities
from .base import (
    PROVIDER_REGISTRY,
    PriceProvider,
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    get_available_providers,
    get_provider,
    register_provider,
)

# Import all provider implementations to trigger registration
from .coinbase import CoinbaseProvider
from .http_json import HttpJsonProvider
from .round_contract import RoundContractProvider
from .static import StaticProvider

__all__ = [
    # Base classes
    "PriceProvider",
    "ProviderError",
    "ProviderConfigError",
    "ProviderHTTPError",
    # Registry functions
    "register_provider",
    "get_provider",
    "get_available_providers",
    "PROVIDER_REGISTRY",
    # Provider implementations
    "CoinbaseProvider",
    "HttpJsonProvider",
    "RoundContractProvider",
    "StaticProvider",
]
