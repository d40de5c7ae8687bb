"""SourceRegistry: Configured providers and aggregation parameters.

The registry is the only mutable state in the system. Admin mutations are
serialized under a lock and each one publishes a new immutable
:class:`RegistrySnapshot`; aggregation calls take one snapshot at their start,
so a read observes either the pre- or post-mutation configuration, never a mix.

Every mutation is checked by an access gate, a callable
``gate(caller, action) -> bool`` supplied by the host.

.. code-block:: python

    >>> registry = SourceRegistry(gate=OwnerGate("admin"))
    >>> registry.set_stale_threshold(600, caller="admin")
    >>> registry.snapshot().parameters.stale_threshold
    600
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable

from web3 import Web3

from .errors import (
    DecimalOverflowError,
    DuplicateSourceError,
    SourceNotFoundError,
    UnauthorizedError,
)
from .OutlierFilter import BPS_DENOMINATOR

if TYPE_CHECKING:
    from .providers import PriceProvider

logger = logging.getLogger(__name__)

# Hard cap on the output scale.
MAX_AGGREGATOR_DECIMALS = 18

AccessGate = Callable[[str | None, str], bool]


def allow_all(caller: str | None, action: str) -> bool:
    """Access gate that permits every mutation."""
    return True


class OwnerGate:
    """Access gate that only permits a single owner.

    :ivar owner: Caller identity allowed to mutate the registry.
    """

    def __init__(self, owner: str) -> None:
        self.owner = owner

    def __call__(self, caller: str | None, action: str) -> bool:
        return caller is not None and caller.lower() == self.owner.lower()


def compute_source_id(sender: str, key: str) -> str:
    """Compute the identity hash of a (sender, key) pair.

    :param sender: Opaque sender, compared case-insensitively.
    :param key: Opaque sub-feed key.
    :returns: 0x-prefixed keccak256 hex digest of the JSON array
        ``[sender, key]``, so no two distinct pairs share an encoding.
    """
    return Web3.to_hex(Web3.keccak(text=json.dumps([sender.lower(), key])))


@dataclass(frozen=True)
class SourceDescriptor:
    """One configured provider.

    :ivar provider: Capability used to read the sub-feed.
    :ivar sender: Opaque sender selecting the sub-feed.
    :ivar key: Opaque key selecting the sub-feed.
    :ivar decimals: Provider's native decimal scale.
    :ivar name: Label keying logs, metadata and health records; unique per
        registry. Defaults to ``provider:sender/key``.
    """

    provider: PriceProvider
    sender: str
    key: str
    decimals: int
    name: str = ""
    source_id: str = field(init=False)

    def __post_init__(self) -> None:
        if self.decimals < 0:
            raise ValueError("decimals must be non-negative")
        object.__setattr__(self, "source_id", compute_source_id(self.sender, self.key))
        if not self.name:
            feed = f"{self.sender}/{self.key}" if self.sender else self.key
            object.__setattr__(self, "name", f"{self.provider.name}:{feed}")


@dataclass(frozen=True)
class AggregationParameters:
    """Process-wide aggregation policy.

    :ivar stale_threshold: Max reading age in seconds.
    :ivar decay_lambda: Decay rate of the freshness weight.
    :ivar max_price_deviation_bps: Outlier band half-width around the median.
    :ivar outlier_detection_enabled: Whether the outlier filter may run.
    :ivar allow_stale_fallback: Whether to fall back to the newest reading.
    :ivar aggregator_decimals: Output decimal scale.
    :ivar paused: Whether reads are refused.
    """

    stale_threshold: int = 3600
    decay_lambda: int = 1000
    max_price_deviation_bps: int = 500
    outlier_detection_enabled: bool = True
    allow_stale_fallback: bool = False
    aggregator_decimals: int = 8
    paused: bool = False

    def __post_init__(self) -> None:
        validate_parameters(self)


def validate_parameters(params: AggregationParameters) -> None:
    """Check parameter ranges.

    :raises ValueError: If a threshold, rate or band is out of range.
    :raises DecimalOverflowError: If aggregator_decimals exceeds the cap.
    """
    if params.stale_threshold < 0:
        raise ValueError("stale_threshold must be non-negative")
    if params.decay_lambda < 0:
        raise ValueError("decay_lambda must be non-negative")
    if not 0 <= params.max_price_deviation_bps <= BPS_DENOMINATOR:
        raise ValueError(
            f"max_price_deviation_bps must be between 0 and {BPS_DENOMINATOR}"
        )
    if params.aggregator_decimals < 0:
        raise ValueError("aggregator_decimals must be non-negative")
    if params.aggregator_decimals > MAX_AGGREGATOR_DECIMALS:
        raise DecimalOverflowError(params.aggregator_decimals, MAX_AGGREGATOR_DECIMALS)


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of the registry taken at one instant.

    :ivar sources: Descriptors in collection order (primary, secondary, then
        registered sources in insertion order).
    :ivar parameters: Aggregation parameters.
    """

    sources: tuple[SourceDescriptor, ...]
    parameters: AggregationParameters

    @property
    def configured_count(self) -> int:
        """Number of configured sources, including the singular slots."""
        return len(self.sources)


class SourceRegistry:
    """Owns the configured sources and aggregation parameters.

    :ivar gate: Access gate consulted before every mutation.
    """

    def __init__(
        self,
        parameters: AggregationParameters | None = None,
        *,
        gate: AccessGate = allow_all,
    ) -> None:
        """Initialize the registry.

        :param parameters: Initial parameters (defaults if None).
        :param gate: Access gate, ``gate(caller, action) -> bool``.
        """
        self.gate = gate
        self._lock = threading.Lock()
        self._parameters = parameters or AggregationParameters()
        self._sources: list[SourceDescriptor] = []
        self._primary: SourceDescriptor | None = None
        self._secondary: SourceDescriptor | None = None
        self._snapshot = self._build_snapshot()

    def _build_snapshot(self) -> RegistrySnapshot:
        slots = [d for d in (self._primary, self._secondary) if d is not None]
        return RegistrySnapshot(
            sources=tuple(slots + self._sources),
            parameters=self._parameters,
        )

    def _authorize(self, caller: str | None, action: str) -> None:
        if not self.gate(caller, action):
            logger.warning(f"Denied {action} for caller {caller!r}")
            raise UnauthorizedError(caller, action)

    def _check_unique(
        self, descriptor: SourceDescriptor, exclude: SourceDescriptor | None = None
    ) -> None:
        """Reject a descriptor whose identity or name is already in use.

        Readings, failures and health records are keyed by name, so names
        must be unique as well as (sender, key) pairs.

        :raises DuplicateSourceError: On an identity or name clash.
        """
        for other in (self._primary, self._secondary, *self._sources):
            if other is None or other is exclude:
                continue
            if other.source_id == descriptor.source_id:
                raise DuplicateSourceError(descriptor.source_id)
            if other.name == descriptor.name:
                raise DuplicateSourceError(descriptor.source_id, name=descriptor.name)

    def snapshot(self) -> RegistrySnapshot:
        """Return the current configuration snapshot."""
        return self._snapshot

    @property
    def parameters(self) -> AggregationParameters:
        """Current aggregation parameters."""
        return self._snapshot.parameters

    def get_sources(self) -> list[SourceDescriptor]:
        """Return registered sources (excluding the primary/secondary slots)."""
        with self._lock:
            return list(self._sources)

    # Source mutations

    def add_source(self, descriptor: SourceDescriptor, *, caller: str | None = None) -> None:
        """Register a source.

        :param descriptor: Source to add.
        :param caller: Identity checked by the access gate.
        :raises DuplicateSourceError: If its (sender, key) or name is already
            present.
        """
        self._authorize(caller, "add_source")
        with self._lock:
            self._check_unique(descriptor)
            self._sources.append(descriptor)
            self._snapshot = self._build_snapshot()
        logger.info(f"Added source {descriptor.name} ({descriptor.source_id})")

    def remove_source(self, source_id: str, *, caller: str | None = None) -> SourceDescriptor:
        """Remove one registered source by id.

        :returns: The removed descriptor.
        :raises SourceNotFoundError: If no registered source has that id.
        """
        self._authorize(caller, "remove_source")
        with self._lock:
            for index, descriptor in enumerate(self._sources):
                if descriptor.source_id == source_id:
                    del self._sources[index]
                    break
            else:
                raise SourceNotFoundError(source_id)
            self._snapshot = self._build_snapshot()
        logger.info(f"Removed source {descriptor.name} ({source_id})")
        return descriptor

    def remove_all_sources(self, *, caller: str | None = None) -> int:
        """Remove every registered source. The singular slots are kept.

        :returns: Number of sources removed.
        """
        self._authorize(caller, "remove_all_sources")
        with self._lock:
            removed = len(self._sources)
            self._sources = []
            self._snapshot = self._build_snapshot()
        logger.info(f"Removed all {removed} registered sources")
        return removed

    def set_primary_source(
        self, descriptor: SourceDescriptor | None, *, caller: str | None = None
    ) -> None:
        """Set or clear (``None``) the primary source slot."""
        self._authorize(caller, "set_primary_source")
        with self._lock:
            if descriptor is not None:
                self._check_unique(descriptor, exclude=self._primary)
            self._primary = descriptor
            self._snapshot = self._build_snapshot()
        logger.info(f"Primary source set to {descriptor.name if descriptor else None}")

    def set_secondary_source(
        self, descriptor: SourceDescriptor | None, *, caller: str | None = None
    ) -> None:
        """Set or clear (``None``) the secondary source slot."""
        self._authorize(caller, "set_secondary_source")
        with self._lock:
            if descriptor is not None:
                self._check_unique(descriptor, exclude=self._secondary)
            self._secondary = descriptor
            self._snapshot = self._build_snapshot()
        logger.info(f"Secondary source set to {descriptor.name if descriptor else None}")

    # Parameter mutations

    def _update(self, action: str, caller: str | None, **changes: object) -> None:
        self._authorize(caller, action)
        with self._lock:
            # replace() re-runs validation in __post_init__
            self._parameters = replace(self._parameters, **changes)
            self._snapshot = self._build_snapshot()
        logger.info(f"{action}: {changes}")

    def set_stale_threshold(self, seconds: int, *, caller: str | None = None) -> None:
        self._update("set_stale_threshold", caller, stale_threshold=seconds)

    def set_decay_lambda(self, decay_lambda: int, *, caller: str | None = None) -> None:
        self._update("set_decay_lambda", caller, decay_lambda=decay_lambda)

    def set_max_price_deviation_bps(self, bps: int, *, caller: str | None = None) -> None:
        self._update("set_max_price_deviation_bps", caller, max_price_deviation_bps=bps)

    def set_outlier_detection_enabled(self, enabled: bool, *, caller: str | None = None) -> None:
        self._update(
            "set_outlier_detection_enabled", caller, outlier_detection_enabled=enabled
        )

    def set_allow_stale_fallback(self, allowed: bool, *, caller: str | None = None) -> None:
        self._update("set_allow_stale_fallback", caller, allow_stale_fallback=allowed)

    def set_aggregator_decimals(self, decimals: int, *, caller: str | None = None) -> None:
        """Set the output scale.

        :raises DecimalOverflowError: If decimals exceeds MAX_AGGREGATOR_DECIMALS.
        """
        self._update("set_aggregator_decimals", caller, aggregator_decimals=decimals)

    def pause(self, *, caller: str | None = None) -> None:
        self._update("pause", caller, paused=True)

    def unpause(self, *, caller: str | None = None) -> None:
        self._update("unpause", caller, paused=False)
