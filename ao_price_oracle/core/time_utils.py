"""Time helpers for consistent UTC timestamps across the oracle."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC datetime with timezone attached."""

    return datetime.now(timezone.utc)


def from_epoch_ms(value: int | float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""

    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
