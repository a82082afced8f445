"""Parse-with-default helpers for loosely typed numeric input.

Drink volumes, percentages and profile weights reach the model from
stored rows and request bodies where they may be strings, ``None`` or
garbage. Everything is coerced here so the model itself only ever sees
finite floats.
"""

import logging
import math
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


def parse_float(value: object, default: float = 0.0, *, field: str = "value") -> float:
    """Return ``value`` as a finite float, or ``default`` when it can't be read."""
    if isinstance(value, bool):
        logger.warning("Ignoring boolean %s", field, extra={"value": value})
        return default
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", ".")
        try:
            number = float(cleaned)
        except ValueError:
            logger.warning("Unparseable %s", field, extra={"value": value})
            return default
    else:
        if value is not None:
            logger.warning("Unsupported %s type", field, extra={"value": repr(value)})
        return default
    if not math.isfinite(number):
        logger.warning("Non-finite %s", field, extra={"value": value})
        return default
    return number


def parse_non_negative(value: object, *, field: str = "value") -> float:
    """Parse a float and clamp negatives to zero."""
    number = parse_float(value, 0.0, field=field)
    if number < 0:
        logger.warning("Negative %s clamped to 0", field, extra={"value": number})
        return 0.0
    return number


def parse_positive(value: object, default: float, *, field: str = "value") -> float:
    """Parse a strictly positive float, substituting ``default`` otherwise."""
    number = parse_float(value, default, field=field)
    if number <= 0:
        logger.warning(
            "Invalid %s, using default",
            field,
            extra={"value": number, "default": default},
        )
        return default
    return number


def clamp(value: float, low: float, high: float) -> float:
    """Clamp ``value`` into ``[low, high]``."""
    return max(low, min(high, value))


def parse_timestamp(value: object, default: datetime | None = None) -> datetime:
    """Parse an ISO timestamp or datetime into an aware UTC datetime."""
    fallback = default or datetime.now(tz=UTC)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable timestamp", extra={"value": value})
            return fallback
    else:
        return fallback
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
