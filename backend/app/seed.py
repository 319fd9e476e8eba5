import logging

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


async def seed_admin(session: AsyncSession) -> None:
    # Only seeds when an admin account is configured through the environment
    if not (settings.admin_username and settings.admin_email and settings.admin_password):
        logger.info("No ADMIN_USERNAME/ADMIN_EMAIL/ADMIN_PASSWORD configured, skipping admin seed")
        return

    result = await session.execute(
        select(User).where(
            (User.username == settings.admin_username) | (User.email == settings.admin_email)
        )
    )
    existing = result.scalars().first()
    if existing:
        if existing.role != "admin":
            existing.role = "admin"
            logger.info("User '%s' promoted to admin", existing.username)
    else:
        admin = User(
            username=settings.admin_username,
            email=settings.admin_email,
            hashed_password=hash_password(settings.admin_password),
            role="admin",
            is_active=True,
        )
        session.add(admin)
        logger.info("Admin user '%s' created", settings.admin_username)

    await session.commit()
