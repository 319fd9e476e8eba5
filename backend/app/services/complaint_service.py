import logging
from datetime import datetime, timezone
from functools import partial
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.attributes import set_committed_value

from app.models.complaint import Complaint, ComplaintUpdate
from app.models.user import User
from app.services.priority import OPEN_STATUSES, compute_priority_score, is_open
from app.services.ranking import list_ranked, refresh_open_scores

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def fetch_all(db: AsyncSession) -> List[Complaint]:
    result = await db.execute(select(Complaint).order_by(Complaint.created_at.desc()))
    return list(result.scalars().all())


async def fetch_by_owner(db: AsyncSession, user_id: int) -> List[Complaint]:
    result = await db.execute(
        select(Complaint)
        .where(Complaint.user_id == user_id)
        .order_by(Complaint.created_at.desc())
    )
    return list(result.scalars().all())


async def fetch_open(db: AsyncSession) -> List[Complaint]:
    result = await db.execute(select(Complaint).where(Complaint.status.in_(OPEN_STATUSES)))
    return list(result.scalars().all())


async def fetch_by_id(db: AsyncSession, complaint_id: int, reload: bool = False) -> Optional[Complaint]:
    stmt = select(Complaint).where(Complaint.id == complaint_id)
    if reload:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def save(db: AsyncSession, complaint: Complaint) -> Complaint:
    """Commit ``complaint`` and return it with its owner and update log loaded."""
    db.add(complaint)
    await db.commit()
    return await fetch_by_id(db, complaint.id, reload=True)


async def delete(db: AsyncSession, complaint: Complaint) -> None:
    await db.delete(complaint)
    await db.commit()


async def create_complaint(
    db: AsyncSession,
    *,
    title: str,
    description: str,
    category: str,
    urgency: str,
    user_id: Optional[int] = None,
) -> Complaint:
    created_at = datetime.now(timezone.utc)
    complaint = Complaint(
        title=title,
        description=description,
        category=category,
        urgency=urgency,
        status="pending",
        is_anonymous=user_id is None,
        user_id=user_id,
        admin_response="",
        # Scored at its own creation instant, so the days term is zero
        priority_score=compute_priority_score(category, urgency, created_at, now=created_at),
        created_at=created_at,
        updated_at=created_at,
    )
    complaint = await save(db, complaint)
    logger.info(
        "Complaint %s created (category=%s, urgency=%s, score=%s, anonymous=%s)",
        complaint.id, category, urgency, complaint.priority_score, complaint.is_anonymous,
    )
    return complaint


async def apply_admin_update(
    db: AsyncSession,
    complaint: Complaint,
    author: User,
    status: Optional[str] = None,
    admin_response: Optional[str] = None,
    urgency: Optional[str] = None,
    category: Optional[str] = None,
) -> Complaint:
    """Apply an admin edit and append it to the complaint's update log."""
    if status:
        complaint.status = status
    if admin_response:
        complaint.admin_response = admin_response
    reprioritised = False
    if urgency and urgency != complaint.urgency:
        complaint.urgency = urgency
        reprioritised = True
    if category and category != complaint.category:
        complaint.category = category
        reprioritised = True
    if reprioritised and is_open(complaint.status):
        complaint.priority_score = compute_priority_score(
            complaint.category, complaint.urgency, complaint.created_at
        )

    complaint.updates.append(
        ComplaintUpdate(
            status=status or None,
            message=admin_response or "",
            updated_by=author,
        )
    )
    complaint = await save(db, complaint)
    logger.info(
        "Complaint %s updated by %s (status=%s, score=%s)",
        complaint.id, author.username, complaint.status, complaint.priority_score,
    )
    return complaint


async def save_priority_score(
    session_factory: async_sessionmaker, complaint: Complaint, score: int
) -> None:
    """Persist a refreshed score in its own short transaction.

    ``updated_at`` is pinned so score refreshes do not look like edits.
    """
    async with session_factory() as session:
        await session.execute(
            update(Complaint)
            .where(Complaint.id == complaint.id)
            .values(priority_score=score, updated_at=Complaint.updated_at)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    set_committed_value(complaint, "priority_score", score)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

async def list_ranked_complaints(
    db: AsyncSession, session_factory: async_sessionmaker
) -> List[Complaint]:
    complaints = await fetch_all(db)
    return await list_ranked(complaints, partial(save_priority_score, session_factory))


async def refresh_open_complaint_scores(session_factory: async_sessionmaker) -> None:
    """Scheduled job: refresh the score of every open complaint."""
    async with session_factory() as session:
        complaints = await fetch_open(session)
    failures = await refresh_open_scores(complaints, partial(save_priority_score, session_factory))
    logger.info(
        "Scheduled priority refresh done, %d open complaints, %d failed writes",
        len(complaints), failures,
    )
