"""FreshnessWeighter: Converts a reading's age into an integer decay weight.

The decay curve is a hyperbolic approximation of exponential decay that only
needs integer arithmetic::

    weight(elapsed) = WEIGHT_SCALE // (DECAY_BASE + decay_lambda * elapsed)

A brand new reading weighs ``WEIGHT_SCALE // DECAY_BASE`` (10**6). Weight never
increases with age, and a fresh reading always weighs at least 1; only the
staleness cutoff produces a hard zero.

.. code-block:: python

    >>> freshness_weight(timestamp=990, now=1000, stale_threshold=60, decay_lambda=1000)
    990099
    >>> freshness_weight(timestamp=900, now=1000, stale_threshold=60, decay_lambda=1000)
    0
"""

WEIGHT_SCALE = 10**12
DECAY_BASE = 10**6


def decay_weight(elapsed: int, decay_lambda: int) -> int:
    """Compute the decay weight for a reading that is ``elapsed`` seconds old.

    :param elapsed: Age of the reading in seconds (non-negative).
    :param decay_lambda: Decay rate; 0 gives every fresh reading equal weight.
    :returns: Positive integer weight.
    """
    return max(1, WEIGHT_SCALE // (DECAY_BASE + decay_lambda * elapsed))


def freshness_weight(
    timestamp: int,
    now: int,
    stale_threshold: int,
    decay_lambda: int,
) -> int:
    """Weight a reading by freshness, or return 0 if it cannot be trusted.

    :param timestamp: Provider-reported observation time (seconds).
    :param now: Evaluation time (seconds).
    :param stale_threshold: Max age in seconds before a reading is discarded.
    :param decay_lambda: Decay rate passed to :func:`decay_weight`.
    :returns: 0 for missing (non-positive), future-dated or stale readings,
        else the decay weight.
    """
    if timestamp <= 0 or timestamp > now:
        return 0

    elapsed = now - timestamp
    if elapsed > stale_threshold:
        return 0

    return decay_weight(elapsed, decay_lambda)
