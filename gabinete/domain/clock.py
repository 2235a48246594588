# gabinete/domain/clock.py
"""
Timestamps are stored as naive UTC (the columns carry no zone).

Anything arriving with an offset is converted to UTC before it is stored or
compared; naive input is taken to be UTC already.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
