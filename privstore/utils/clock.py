"""
Clock helpers for privstore
Timestamps are epoch milliseconds throughout the storage layout
"""

from datetime import datetime, UTC

from ..constants import QuotaDefaults


def now_ms() -> int:
    """Current time in epoch milliseconds"""
    return int(datetime.now(UTC).timestamp() * 1000)


def days_to_ms(days: float) -> int:
    return int(days * QuotaDefaults.MS_PER_DAY)


def ms_to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, UTC)
