"""DecimalNormalizer: Fixed-point rescaling between provider and output scales.

Providers report integer prices at their own decimal scale (e.g. 8 for most
round-style feeds, 18 for token-denominated feeds). Before readings can be
compared or averaged they are rescaled to the aggregator's output scale.

Downscaling truncates toward zero. Consumers only need scale-consistent
integers, so sub-unit precision below the output scale is dropped.

.. code-block:: python

    >>> normalize_price(123, 2, 8)
    123000000
    >>> normalize_price(123456789, 10, 8)
    1234567
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

from .errors import InvalidPriceError


def scale_factor(decimals: int) -> int:
    """Return ``10 ** decimals``.

    :param decimals: Non-negative number of decimals.
    :returns: Integer scale factor.
    :raises ValueError: If decimals is negative.
    """
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    return 10**decimals


def normalize_price(raw: int, source_decimals: int, target_decimals: int) -> int:
    """Rescale a raw integer price from source_decimals to target_decimals.

    :param raw: Raw price as reported by the provider.
    :param source_decimals: Provider's native decimal scale.
    :param target_decimals: Aggregator output scale.
    :returns: Price at the target scale.
    :raises InvalidPriceError: If raw is negative or not an integer.
    """
    # bool is an int subclass but never a valid price
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidPriceError(f"price must be an integer, got {type(raw).__name__}")
    if raw < 0:
        raise InvalidPriceError(f"negative price {raw}")

    if source_decimals < target_decimals:
        return raw * scale_factor(target_decimals - source_decimals)
    if source_decimals > target_decimals:
        return raw // scale_factor(source_decimals - target_decimals)
    return raw


def to_fixed(value: Decimal | str | int | float, decimals: int) -> int:
    """Convert a decimal value to a fixed-point integer, truncating extra digits.

    Floats are converted through their string form so ``0.1`` maps to
    ``10**(decimals-1)`` rather than its binary approximation.

    :param value: Decimal value (e.g. ``"42123.57"``).
    :param decimals: Number of decimals in the fixed-point result.
    :returns: Integer value scaled by ``10 ** decimals``.
    :raises InvalidPriceError: If value cannot be parsed as a finite number.
    """
    try:
        if isinstance(value, float):
            value = str(value)
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidPriceError(f"cannot parse price {value!r}") from e

    if not number.is_finite():
        raise InvalidPriceError(f"price {value!r} is not finite")

    # Enough precision for the exact product, so only ROUND_DOWN ever rounds
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(number.as_tuple().digits) + decimals + 1)
        scaled = (number * scale_factor(decimals)).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def from_fixed(value: int, decimals: int) -> Decimal:
    """Convert a fixed-point integer back to a Decimal, for display."""
    return Decimal(value).scaleb(-decimals)
