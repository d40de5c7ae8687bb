"""
multifeed - Multi-Source Price Aggregation Module

This module combines price readings from heterogeneous providers:
- DecimalNormalizer: Fixed-point rescaling to the output scale
- FreshnessWeighter: Integer time-decay weights with a staleness cutoff
- SourceCollector: Concurrent, fault-isolated source reads
- OutlierFilter: Median-band outlier rejection
- PriceAggregator: Weighted average with stale fallback
- SourceRegistry: Configured sources and aggregation parameters
- FeedAdapters: Round-style, structured and keyed read interfaces
- SourceMonitor: Per-source health statistics
- SourceConfig: JSON sources file loading
- PriceService: Periodic aggregation loop
- providers: Modular price provider implementations
"""

from .errors import (
    AggregatorError,
    AllStaleError,
    DecimalOverflowError,
    DuplicateSourceError,
    InvalidIdentifierError,
    InvalidPriceError,
    NoLiveSourcesError,
    PausedError,
    SourceNotFoundError,
    UnauthorizedError,
)
from .FeedAdapters import (
    KeyedFeedAdapter,
    PriceData,
    RoundData,
    RoundFeedAdapter,
    StructuredFeedAdapter,
)
from .PriceAggregator import AggregationResult, PriceAggregator, compute_price
from .PriceService import PriceService
from .SourceCollector import CollectionResult, SourceCollector, SourceOutcome, SourceReading
from .SourceMonitor import SourceMonitor, SourceStatus
from .SourceRegistry import (
    MAX_AGGREGATOR_DECIMALS,
    AggregationParameters,
    OwnerGate,
    RegistrySnapshot,
    SourceDescriptor,
    SourceRegistry,
    allow_all,
)

__all__ = [
    "AggregationParameters",
    "AggregationResult",
    "AggregatorError",
    "AllStaleError",
    "CollectionResult",
    "DecimalOverflowError",
    "DuplicateSourceError",
    "InvalidIdentifierError",
    "InvalidPriceError",
    "KeyedFeedAdapter",
    "MAX_AGGREGATOR_DECIMALS",
    "NoLiveSourcesError",
    "OwnerGate",
    "PausedError",
    "PriceAggregator",
    "PriceData",
    "PriceService",
    "RegistrySnapshot",
    "RoundData",
    "RoundFeedAdapter",
    "SourceCollector",
    "SourceDescriptor",
    "SourceMonitor",
    "SourceNotFoundError",
    "SourceOutcome",
    "SourceReading",
    "SourceRegistry",
    "SourceStatus",
    "StructuredFeedAdapter",
    "UnauthorizedError",
    "allow_all",
    "compute_price",
]
