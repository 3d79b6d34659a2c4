"""ISO-8601 timestamp helpers shared by the domain and services."""

import logging
from datetime import UTC, datetime

from dateutil import parser as dateutil_parser


logger = logging.getLogger(__name__)


def to_iso(value: datetime) -> str:
    """Format a datetime as a UTC ISO string with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def now_iso() -> str:
    """Current time as a UTC ISO string."""
    return to_iso(datetime.now(UTC))


def parse_iso(value: object) -> datetime | None:
    """Parse an ISO timestamp, returning None for anything unparseable.

    Naive timestamps are taken to be UTC so that results are always comparable.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = dateutil_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        logger.debug("Unparseable timestamp %r: %s", value, e)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
