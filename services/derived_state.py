"""
Read-only derived values computed from stored fields and the current time.
Nothing here is persisted; callers recompute on every read.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from utils.dates import as_utc


class _Unlimited:
    """Sentinel for "no quota configured"."""

    _instance: Optional["_Unlimited"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNLIMITED"

    def __bool__(self) -> bool:
        return True


UNLIMITED = _Unlimited()

Spots = Union[int, _Unlimited]


def is_overdue(record: Any, now: datetime, active_status: Any) -> bool:
    """
    True iff the record is in its workflow's active status and its due date
    has passed. Works on WorkflowRecord values or anything exposing
    ``status`` and ``due_at``.
    """
    status = record.status.value if isinstance(record.status, Enum) else record.status
    active = active_status.value if isinstance(active_status, Enum) else active_status
    if status != active:
        return False
    due_at = as_utc(record.due_at)
    return due_at is not None and due_at < as_utc(now)


def available_spots(quota: Optional[int], consumed: int) -> Spots:
    """Remaining capacity, never negative; UNLIMITED when no quota is set."""
    if quota is None:
        return UNLIMITED
    return max(quota - consumed, 0)


def spots_to_json(spots: Spots) -> Optional[int]:
    return None if spots is UNLIMITED else spots


def collection_rate(collected: int, total: int) -> float:
    """Percentage of recipients who collected their aid, 2 decimals."""
    if total <= 0:
        return 0.0
    return round(collected / total * 100, 2)
