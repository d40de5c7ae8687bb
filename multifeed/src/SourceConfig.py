"""SourceConfig: Building source descriptors from a JSON configuration file.

File format::

    {
      "primary":   {"provider": "round_contract", "key": "btc/usd", "decimals": 8,
                    "options": {"address": "0x...", "rpc_url": "https://..."}},
      "secondary": {"provider": "coinbase", "key": "BTC-USD", "decimals": 8},
      "sources": [
        {"name": "custom", "provider": "http_json", "sender": "desk-1",
         "key": "btc", "decimals": 8,
         "options": {"url": "https://api.example.com/{key}", "price_path": "price"}}
      ]
    }

``primary`` and ``secondary`` are optional. ``sender`` defaults to an empty
string. API keys are looked up by provider type name.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .providers import PROVIDER_REGISTRY, ProviderError, get_provider
from .SourceRegistry import SourceDescriptor, SourceRegistry

logger = logging.getLogger(__name__)


class SourceConfigError(ValueError):
    """Raised when a sources file is malformed."""

    pass


@dataclass
class SourceConfig:
    """Parsed sources file.

    :ivar primary: Descriptor for the primary slot, if any.
    :ivar secondary: Descriptor for the secondary slot, if any.
    :ivar sources: Registered descriptors in file order.
    """

    primary: SourceDescriptor | None = None
    secondary: SourceDescriptor | None = None
    sources: list[SourceDescriptor] = field(default_factory=list)

    def all_sources(self) -> list[SourceDescriptor]:
        slots = [d for d in (self.primary, self.secondary) if d is not None]
        return slots + self.sources

    def apply(self, registry: SourceRegistry, *, caller: str | None = None) -> None:
        """Install this configuration into a registry.

        :raises DuplicateSourceError: If two entries share a (sender, key) pair.
        """
        registry.set_primary_source(self.primary, caller=caller)
        registry.set_secondary_source(self.secondary, caller=caller)
        for descriptor in self.sources:
            registry.add_source(descriptor, caller=caller)


def build_descriptor(
    entry: dict[str, Any],
    api_keys: dict[str, str] | None = None,
    timeout: float | None = None,
) -> SourceDescriptor:
    """Create a provider and descriptor from one config entry.

    :param entry: Entry dict with provider, key, decimals and optional
        name, sender and options.
    :param api_keys: Dict mapping provider type names to API keys.
    :param timeout: Collector per-source timeout; the provider's own request
        timeout is capped at it.
    :returns: SourceDescriptor for the entry.
    :raises SourceConfigError: If the entry is malformed.
    """
    if not isinstance(entry, dict):
        raise SourceConfigError(f"Source entry must be an object, got {entry!r}")

    try:
        provider_name = str(entry["provider"]).lower()
        key = str(entry["key"])
        decimals = int(entry["decimals"])
    except KeyError as e:
        raise SourceConfigError(f"Source entry {entry!r} is missing {e}") from e
    except (TypeError, ValueError) as e:
        raise SourceConfigError(f"Source entry {entry!r} is invalid: {e}") from e

    if provider_name not in PROVIDER_REGISTRY:
        available = ", ".join(sorted(PROVIDER_REGISTRY.keys()))
        raise SourceConfigError(
            f"Unknown provider '{provider_name}'. Available: {available}"
        )

    options = dict(entry.get("options") or {})
    api_key = (api_keys or {}).get(provider_name)
    if api_key:
        options.setdefault("api_key", api_key)
    if timeout is not None:
        # A provider never outlives the collector's per-source deadline
        requested = options.get("timeout")
        try:
            options["timeout"] = timeout if requested is None else min(requested, timeout)
        except TypeError as e:
            raise SourceConfigError(f"Source entry {entry!r} has an invalid timeout") from e
    if PROVIDER_REGISTRY[provider_name].scaled_by_config:
        options.setdefault("decimals", decimals)

    try:
        provider = get_provider(provider_name, **options)
        return SourceDescriptor(
            provider=provider,
            sender=str(entry.get("sender", "")),
            key=key,
            decimals=decimals,
            name=str(entry.get("name", "")),
        )
    except (ProviderError, ValueError) as e:
        raise SourceConfigError(f"Cannot build source {entry!r}: {e}") from e


def parse_sources(
    document: dict[str, Any],
    api_keys: dict[str, str] | None = None,
    timeout: float | None = None,
) -> SourceConfig:
    """Build a SourceConfig from a decoded sources document.

    :raises SourceConfigError: If the document or any entry is malformed.
    """
    if not isinstance(document, dict):
        raise SourceConfigError("Sources document must be a JSON object")

    entries = document.get("sources", [])
    if not isinstance(entries, list):
        raise SourceConfigError("'sources' must be a list")

    config = SourceConfig()
    for slot in ("primary", "secondary"):
        if document.get(slot):
            setattr(config, slot, build_descriptor(document[slot], api_keys, timeout))
    config.sources = [build_descriptor(e, api_keys, timeout) for e in entries]

    if not config.all_sources():
        logger.warning("Sources document defines no sources")
    return config


def load_sources_file(
    path: str | Path,
    api_keys: dict[str, str] | None = None,
    timeout: float | None = None,
) -> SourceConfig:
    """Load a sources file from disk.

    :raises SourceConfigError: If the file cannot be read or parsed.
    """
    try:
        with open(path, "r") as file:
            document = json.load(file)
    except OSError as e:
        raise SourceConfigError(f"Cannot read sources file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SourceConfigError(f"Invalid JSON in sources file {path}: {e}") from e

    return parse_sources(document, api_keys, timeout)
