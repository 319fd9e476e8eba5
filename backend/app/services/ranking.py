"""Ranking of complaints for the admin list.

A ranking pass has two phases:

1. ``refresh_open_scores`` recomputes the score of every open complaint and
   hands it to a persist callback. Writes run concurrently, bounded by a
   semaphore, and all of them finish before the phase returns. A failed write
   is logged and leaves that complaint's score untouched.
2. ``rank_complaints`` sorts by score (highest first), oldest first on ties.
   It has no side effects.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from app.config import settings
from app.services.priority import as_utc, compute_priority_score, is_open

logger = logging.getLogger(__name__)

# Stores the new score and reflects it on the record; raises on failure.
ScorePersister = Callable[[Any, int], Awaitable[None]]


async def refresh_open_scores(
    complaints: Sequence[Any],
    persist: ScorePersister,
    now: Optional[datetime] = None,
    concurrency: Optional[int] = None,
) -> int:
    """Recompute and persist scores for open complaints. Returns the number of failed writes."""
    if now is None:
        now = datetime.now(timezone.utc)
    semaphore = asyncio.Semaphore(max(1, concurrency or settings.score_refresh_concurrency))

    async def _refresh_one(complaint: Any) -> bool:
        score = compute_priority_score(complaint.category, complaint.urgency, complaint.created_at, now)
        async with semaphore:
            try:
                await persist(complaint, score)
            except Exception:
                logger.warning(
                    "Could not persist priority score %s for complaint %s",
                    score, complaint.id, exc_info=True,
                )
                return False
        return True

    results = await asyncio.gather(*[_refresh_one(c) for c in complaints if is_open(c.status)])
    failures = results.count(False)
    if failures:
        logger.warning("Priority refresh finished with %d of %d writes failed", failures, len(results))
    return failures


def rank_complaints(complaints: Sequence[Any]) -> List[Any]:
    return sorted(complaints, key=lambda c: (-c.priority_score, as_utc(c.created_at)))


async def list_ranked(
    complaints: Sequence[Any],
    persist: ScorePersister,
    now: Optional[datetime] = None,
) -> List[Any]:
    await refresh_open_scores(complaints, persist, now=now)
    return rank_complaints(complaints)
