from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from loguru import logger


def parse_exchange_timestamp(value: Any, formats: Sequence[str]) -> datetime:
    """Parses an exchange timestamp string into an aware UTC datetime.

    Exchanges are inconsistent about sub-second precision, sometimes within a
    single endpoint, so each format is tried in order: typically a primary
    format with fractional seconds followed by a whole-seconds fallback.
    Naive timestamps are assumed to be in UTC, as every supported exchange
    reports them that way.

    Args:
        value: The raw timestamp from the exchange payload.
        formats: `strptime` formats to try, most specific first.

    Returns:
        The parsed datetime in UTC.

    Raises:
        ValueError: If the value is not a string or matches none of the formats.
    """
    if not isinstance(value, str):
        err_msg = f"Unsupported timestamp type: {type(value).__name__}"
        raise ValueError(err_msg)

    for fmt in formats:
        try:
            dt_obj = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if dt_obj.tzinfo is None:
            return dt_obj.replace(tzinfo=timezone.utc)
        return dt_obj.astimezone(timezone.utc)

    logger.warning(f"Could not parse timestamp string '{value}' with {list(formats)}")
    err_msg = f"Illegal date/time format: {value}"
    raise ValueError(err_msg)
