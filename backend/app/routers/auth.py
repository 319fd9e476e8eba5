import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from jose import jwt
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_deps import ALGORITHM, get_current_user
from app.config import settings
from app.db import get_db
from app.models.user import ROLES, User
from app.seed import hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


class SignupRequest(BaseModel):
    username: Optional[str] = Field(default=None, max_length=64)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = None
    role: Optional[str] = None


class SigninRequest(BaseModel):
    email: str
    password: str


def create_token(user_id: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expire_hours)
    return jwt.encode(
        {"sub": str(user_id), "exp": expire},
        settings.jwt_secret,
        algorithm=ALGORITHM,
    )


def _user_out(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "isActive": user.is_active,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


async def _admin_exists(db: AsyncSession) -> bool:
    result = await db.execute(select(func.count(User.id)).where(User.role == "admin"))
    return (result.scalar() or 0) > 0


@router.post("/auth/signup", status_code=201)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    if not body.username or not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Username, email, and password are required.")
    role = body.role or "student"
    if role not in ROLES:
        raise HTTPException(status_code=400, detail="Invalid role. Must be admin or student.")
    if role == "admin" and await _admin_exists(db):
        raise HTTPException(status_code=403, detail="An admin account already exists.")

    result = await db.execute(
        select(User).where((User.username == body.username) | (User.email == body.email))
    )
    if result.scalars().first():
        raise HTTPException(status_code=400, detail="Username or email already in use.")

    user = User(
        username=body.username,
        email=body.email,
        hashed_password=hash_password(body.password),
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    logger.info("User '%s' signed up as %s", user.username, user.role)
    return {"success": True, "message": "User created successfully.", "user": _user_out(user)}


@router.post("/auth/signin")
async def signin(body: SigninRequest, response: Response, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found!")
    if not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Wrong credentials!")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")

    response.set_cookie(
        key=settings.auth_cookie_name,
        value=create_token(user.id),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.jwt_expire_hours * 3600,
    )
    return {"success": True, "user": _user_out(user)}


@router.get("/auth/admin-exists")
async def admin_exists(db: AsyncSession = Depends(get_db)):
    return {"success": True, "exists": await _admin_exists(db)}


@router.get("/auth/me")
async def me(current_user: User = Depends(get_current_user)):
    return {"success": True, "user": _user_out(current_user)}


@router.post("/auth/signout")
async def signout(response: Response, _: User = Depends(get_current_user)):
    response.delete_cookie(
        key=settings.auth_cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return {"success": True, "message": "Signed out successfully."}
