"""
Relative due-date expressions such as ``+7 days`` or ``-2 weeks``.

An expression that does not match yields no due date instead of an error.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

_RELATIVE_OFFSET = re.compile(r"([+-])(\d+)\s*(days?|weeks?|hours?)")

_UNIT_DELTAS = {
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "hour": timedelta(hours=1),
}


def parse_relative_offset(expression: Optional[str]) -> Optional[timedelta]:
    if not expression:
        return None
    match = _RELATIVE_OFFSET.search(expression)
    if not match:
        return None
    sign, amount, unit = match.groups()
    delta = _UNIT_DELTAS[unit.rstrip("s")] * int(amount)
    return delta if sign == "+" else -delta


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are treated as UTC.

    Anything that is not a datetime or an ISO string yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif not isinstance(value, str):
        return None
    else:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_due_date(
    base: Union[str, datetime, None], expression: Optional[str]
) -> Optional[datetime]:
    """Apply a relative offset expression to a base timestamp."""
    base_dt = parse_timestamp(base)
    offset = parse_relative_offset(expression)
    if base_dt is None or offset is None:
        return None
    return base_dt + offset
