import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.auth_deps import get_current_user, get_optional_user, require_admin
from app.db import get_db, get_session_factory
from app.models.user import User
from app.schemas.complaint import (
    ComplaintAdminUpdate,
    ComplaintCreate,
    ComplaintListResponse,
    ComplaintOut,
    ComplaintResponse,
)
from app.services import complaint_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/complaint/create", status_code=201, response_model=ComplaintResponse)
async def create_complaint(
    body: ComplaintCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> ComplaintResponse:
    title = (body.title or "").strip()
    description = (body.description or "").strip()
    if not title or not description:
        raise HTTPException(status_code=400, detail="Title and description are required")

    # Only signed-in users who explicitly opt out of anonymity are linked
    owner_id = current_user.id if current_user is not None and body.is_anonymous is False else None

    complaint = await complaint_service.create_complaint(
        db,
        title=title,
        description=description,
        category=body.category,
        urgency=body.urgency,
        user_id=owner_id,
    )
    return ComplaintResponse(
        message="Complaint submitted successfully",
        complaint=ComplaintOut.from_complaint(complaint),
    )


@router.get("/complaint/all", response_model=ComplaintListResponse)
async def list_all_complaints(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    _: User = Depends(require_admin),
) -> ComplaintListResponse:
    complaints = await complaint_service.list_ranked_complaints(db, session_factory)
    return ComplaintListResponse(complaints=[ComplaintOut.from_complaint(c) for c in complaints])


@router.get("/complaint/my-complaints", response_model=ComplaintListResponse)
async def list_my_complaints(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ComplaintListResponse:
    complaints = await complaint_service.fetch_by_owner(db, current_user.id)
    return ComplaintListResponse(complaints=[ComplaintOut.from_complaint(c) for c in complaints])


@router.put("/complaint/{complaint_id}/update", response_model=ComplaintResponse)
async def update_complaint(
    complaint_id: int,
    body: ComplaintAdminUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> ComplaintResponse:
    if not body.status and not body.admin_response and not body.urgency and not body.category:
        raise HTTPException(status_code=400, detail="Provide a status or progress update message.")

    complaint = await complaint_service.fetch_by_id(db, complaint_id)
    if not complaint:
        raise HTTPException(status_code=404, detail="Complaint not found")

    complaint = await complaint_service.apply_admin_update(
        db,
        complaint,
        current_user,
        status=body.status.value if body.status else None,
        admin_response=body.admin_response,
        urgency=body.urgency.value if body.urgency else None,
        category=body.category.value if body.category else None,
    )
    return ComplaintResponse(
        message="Complaint updated successfully",
        complaint=ComplaintOut.from_complaint(complaint),
    )


@router.delete("/complaint/{complaint_id}/delete")
async def delete_complaint(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> dict:
    complaint = await complaint_service.fetch_by_id(db, complaint_id)
    if not complaint:
        raise HTTPException(status_code=404, detail="Complaint not found")
    await complaint_service.delete(db, complaint)
    logger.info("Complaint %s deleted by %s", complaint_id, current_user.username)
    return {"success": True, "message": "Complaint deleted successfully"}
