"""Timestamp parsing shared by HTTP providers."""

from datetime import datetime, timezone

from .base import ProviderError

# Anything above this is treated as milliseconds (year 33658 in seconds)
_MILLIS_THRESHOLD = 10**12


def parse_timestamp(value: object) -> int:
    """Convert an API timestamp to integer seconds since epoch.

    Accepts integer or float epoch values in seconds or milliseconds, numeric
    strings, and ISO-8601 strings (a trailing ``Z`` is read as UTC, naive
    values are assumed to be UTC).

    :param value: Raw timestamp value from a response.
    :returns: Seconds since epoch.
    :raises ProviderError: If the value cannot be interpreted.
    """
    if isinstance(value, bool):
        raise ProviderError(f"Invalid timestamp {value!r}")

    if isinstance(value, str):
        text = value.strip()
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as e:
                raise ProviderError(f"Invalid timestamp {value!r}") from e
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp())

    if isinstance(value, (int, float)):
        seconds = int(value)
        if seconds >= _MILLIS_THRESHOLD:
            seconds //= 1000
        return seconds

    raise ProviderError(f"Invalid timestamp {value!r}")
