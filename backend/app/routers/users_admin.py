import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_deps import require_admin
from app.db import get_db
from app.models.complaint import Complaint
from app.models.user import ROLES, User
from app.seed import hash_password

logger = logging.getLogger(__name__)

router = APIRouter()


class UpdateUserRequest(BaseModel):
    email: str | None = Field(default=None, max_length=255)
    role: str | None = None
    is_active: bool | None = None
    password: str | None = None


@router.get("/admin/users")
async def list_users(db: AsyncSession = Depends(get_db), _=Depends(require_admin)):
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    users = result.scalars().all()
    return {
        "success": True,
        "users": [
            {
                "id": u.id,
                "username": u.username,
                "email": u.email,
                "role": u.role,
                "isActive": u.is_active,
                "createdAt": u.created_at.isoformat(),
            }
            for u in users
        ],
    }


@router.patch("/admin/users/{user_id}")
async def update_user(user_id: int, body: UpdateUserRequest, db: AsyncSession = Depends(get_db), _=Depends(require_admin)):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if body.role is not None and body.role not in ROLES:
        raise HTTPException(status_code=400, detail="Invalid role. Must be admin or student.")
    if body.email is not None:
        user.email = body.email
    if body.role is not None:
        user.role = body.role
    if body.is_active is not None:
        user.is_active = body.is_active
    if body.password:
        user.hashed_password = hash_password(body.password)
    await db.commit()
    logger.info("User %s updated (role=%s, active=%s)", user.username, user.role, user.is_active)
    return {"success": True}


@router.delete("/admin/users/{user_id}")
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db), current_user=Depends(require_admin)):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    # Complaints outlive their author; without an owner they read as anonymous
    await db.execute(
        update(Complaint)
        .where(Complaint.user_id == user_id)
        .values(user_id=None, is_anonymous=True, updated_at=Complaint.updated_at)
        .execution_options(synchronize_session=False)
    )
    await db.delete(user)
    await db.commit()
    logger.info("User %s deleted by %s", user.username, current_user.username)
    return {"success": True, "message": "User deleted successfully"}
