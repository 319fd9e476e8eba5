"""Complaint priority scoring.

A complaint's priority score is the sum of three independently bounded terms:

* a category weight (how serious the kind of complaint is),
* an urgency weight (how urgent the submitter or an admin marked it),
* the number of days it has been pending, capped at ``MAX_DAYS_BONUS``.

The total is rounded half-up to an integer. With the weights below and days in
``[0, 30]`` the score falls in ``[15, 180]``; ``priority_level`` bands it for
display.
"""
import math
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Optional

CATEGORY_WEIGHTS: Mapping[str, int] = MappingProxyType({
    "bullying": 100,
    "academic": 30,
    "staff":    30,
    "other":    20,
    "facility": 10,
})

URGENCY_WEIGHTS: Mapping[str, int] = MappingProxyType({
    "critical": 50,
    "high":     30,
    "medium":   15,
    "low":      5,
})

DEFAULT_CATEGORY = "other"
DEFAULT_URGENCY = "medium"

MAX_DAYS_BONUS = 30

OPEN_STATUSES = frozenset({"pending", "in-progress"})
CLOSED_STATUSES = frozenset({"resolved", "rejected"})

HIGH_PRIORITY_THRESHOLD = 100
MEDIUM_PRIORITY_THRESHOLD = 50

_SECONDS_PER_DAY = 86400


def category_weight(category: Optional[str]) -> int:
    return CATEGORY_WEIGHTS.get(category, CATEGORY_WEIGHTS[DEFAULT_CATEGORY])


def urgency_weight(urgency: Optional[str]) -> int:
    return URGENCY_WEIGHTS.get(urgency, URGENCY_WEIGHTS[DEFAULT_URGENCY])


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_pending(created_at: datetime, now: datetime) -> float:
    """Fractional days from ``created_at`` to ``now``, capped at ``MAX_DAYS_BONUS``.

    There is no lower bound: a ``created_at`` in the future gives a negative value.
    """
    elapsed = (as_utc(now) - as_utc(created_at)).total_seconds() / _SECONDS_PER_DAY
    return min(elapsed, MAX_DAYS_BONUS)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_priority_score(
    category: Optional[str],
    urgency: Optional[str],
    created_at: datetime,
    now: Optional[datetime] = None,
) -> int:
    """Score a complaint as of ``now`` (defaults to the current UTC time).

    Unknown categories and urgencies score like ``other`` and ``medium``.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    total = category_weight(category) + urgency_weight(urgency) + days_pending(created_at, now)
    return round_half_up(total)


def priority_level(score: int) -> str:
    if score >= HIGH_PRIORITY_THRESHOLD:
        return "high"
    if score >= MEDIUM_PRIORITY_THRESHOLD:
        return "medium"
    return "low"


def is_open(status: Optional[str]) -> bool:
    return status in OPEN_STATUSES
