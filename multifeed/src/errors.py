"""Error taxonomy for price aggregation.

Terminal read failures (:class:`PausedError`, :class:`NoLiveSourcesError`,
:class:`AllStaleError`, :class:`InvalidIdentifierError`) are raised to the
caller and never retried internally. Per-source problems such as
:class:`InvalidPriceError` are absorbed by the collector and only show up as an
excluded source.
"""


class AggregatorError(Exception):
    """Base exception for aggregator errors."""

    pass


class PausedError(AggregatorError):
    """Raised when a read is attempted while the aggregator is paused."""

    def __init__(self, message: str = "aggregator paused"):
        super().__init__(message)


class NoLiveSourcesError(AggregatorError):
    """Raised when no configured source produced a reading.

    :ivar failures: Dict mapping source name to failure reason.
    """

    def __init__(self, failures: dict[str, str] | None = None):
        """Initialize the error.

        :param failures: Per-source failure reasons collected during the round.
        """
        self.failures = dict(failures or {})
        if self.failures:
            message = f"no live sources ({len(self.failures)} failed)"
        else:
            message = "no live sources (none configured)"
        super().__init__(message)


class AllStaleError(AggregatorError):
    """Raised when every reading is stale or rejected and fallback is disabled."""

    def __init__(self, message: str = "all sources stale"):
        super().__init__(message)


class InvalidIdentifierError(AggregatorError):
    """Raised when a caller-supplied price identifier does not match configuration."""

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"invalid price identifier {received!r}, expected {expected!r}")


class DuplicateSourceError(AggregatorError):
    """Raised when a (sender, key) pair or a source name is already registered."""

    def __init__(self, source_id: str, name: str | None = None):
        self.source_id = source_id
        self.name = name
        if name is None:
            super().__init__(f"source {source_id} already registered")
        else:
            super().__init__(f"source name {name!r} already registered")


class SourceNotFoundError(AggregatorError):
    """Raised when removing a source that is not registered."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"source {source_id} not registered")


class DecimalOverflowError(AggregatorError):
    """Raised when the output scale exceeds the supported cap."""

    def __init__(self, decimals: int, cap: int):
        self.decimals = decimals
        self.cap = cap
        super().__init__(f"aggregator decimals {decimals} exceed maximum {cap}")


class UnauthorizedError(AggregatorError):
    """Raised when the access gate denies an admin mutation."""

    def __init__(self, caller: str | None, action: str):
        self.caller = caller
        self.action = action
        super().__init__(f"caller {caller!r} is not allowed to {action}")


class InvalidPriceError(AggregatorError):
    """Raised when a source reports a malformed price (negative or non-integer)."""

    pass
