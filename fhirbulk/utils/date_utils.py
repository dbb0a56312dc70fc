"""Timestamp normalization utilities for fhirbulk.

The _since kick-off parameter must be a FHIR instant (full ISO 8601 with a
timezone). Callers supply anything from a browser-style "datetime-local"
value to a timezone-aware datetime, so route every timestamp through
to_fhir_instant() before putting it on the wire.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from dateutil import parser as dateutil_parser


def to_fhir_instant(value: Union[str, datetime]) -> str:
    """Normalize a timestamp to a FHIR instant string.

    Naive values are taken to be UTC. Sub-second precision is kept to
    milliseconds when present.

    Args:
        value: ISO-like string (e.g. "2024-01-15T10:30", "2024-01-15") or datetime.

    Returns:
        Instant string such as "2024-01-15T10:30:00+00:00".

    Raises:
        ValueError: If the string cannot be parsed as a timestamp.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        raw = value.strip()
        try:
            dt = dateutil_parser.isoparse(raw)
        except ValueError:
            try:
                dt = dateutil_parser.parse(raw)
            except (ValueError, OverflowError) as exc:
                raise ValueError(f"Unparseable timestamp for _since: {value!r}") from exc

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    timespec = "milliseconds" if dt.microsecond else "seconds"
    return dt.isoformat(timespec=timespec)


def parse_transaction_time(raw: Optional[str]) -> Optional[datetime]:
    """Parse a manifest transactionTime into an aware datetime.

    Returns None for a missing or unparseable value rather than raising;
    the transaction time is informational.
    """
    if not raw:
        return None
    try:
        dt = dateutil_parser.isoparse(raw.strip())
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
