import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.services.priority import (
    CATEGORY_WEIGHTS,
    DEFAULT_CATEGORY,
    DEFAULT_URGENCY,
    URGENCY_WEIGHTS,
    priority_level,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255


class ComplaintStatus(str, Enum):
    pending = "pending"
    in_progress = "in-progress"
    resolved = "resolved"
    rejected = "rejected"


class ComplaintCategory(str, Enum):
    bullying = "bullying"
    academic = "academic"
    staff = "staff"
    facility = "facility"
    other = "other"


class ComplaintUrgency(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _known_or_default(value: Optional[str], known, default: str, field: str) -> str:
    if not value:
        return default
    value = value.strip().lower()
    if value not in known:
        logger.warning("Unknown %s %r, using %r", field, value, default)
        return default
    return value


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ComplaintCreate(CamelModel):
    # Presence is checked by the route so the error matches the rest of the API
    title: Optional[str] = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, validate_default=True)
    urgency: Optional[str] = Field(default=None, validate_default=True)
    # null counts as anonymous; only an explicit false links the complaint to its author
    is_anonymous: Optional[bool] = True

    @field_validator("category")
    @classmethod
    def _category(cls, v: Optional[str]) -> str:
        return _known_or_default(v, CATEGORY_WEIGHTS, DEFAULT_CATEGORY, "category")

    @field_validator("urgency")
    @classmethod
    def _urgency(cls, v: Optional[str]) -> str:
        return _known_or_default(v, URGENCY_WEIGHTS, DEFAULT_URGENCY, "urgency")


class ComplaintAdminUpdate(CamelModel):
    # Admin edits are stored as sent, so unknown values are rejected rather than defaulted
    status: Optional[ComplaintStatus] = None
    admin_response: Optional[str] = None
    urgency: Optional[ComplaintUrgency] = None
    category: Optional[ComplaintCategory] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UserRef(CamelModel):
    id: int
    username: str
    email: Optional[str] = None
    role: str

    @classmethod
    def from_user(cls, user) -> Optional["UserRef"]:
        if user is None:
            return None
        return cls(id=user.id, username=user.username, email=user.email, role=user.role)


class ComplaintUpdateOut(CamelModel):
    id: int
    status: Optional[str] = None
    message: str = ""
    updated_by: Optional[UserRef] = None
    created_at: datetime


class ComplaintOut(CamelModel):
    id: int
    title: str
    description: str
    category: str
    urgency: str
    status: str
    is_anonymous: bool
    user: Optional[UserRef] = None
    admin_response: str = ""
    priority_score: int
    priority_level: str
    created_at: datetime
    updated_at: datetime
    updates: List[ComplaintUpdateOut] = []

    @classmethod
    def from_complaint(cls, complaint) -> "ComplaintOut":
        return cls(
            id=complaint.id,
            title=complaint.title,
            description=complaint.description,
            category=complaint.category,
            urgency=complaint.urgency,
            status=complaint.status,
            is_anonymous=complaint.is_anonymous,
            user=UserRef.from_user(complaint.user),
            admin_response=complaint.admin_response or "",
            priority_score=complaint.priority_score,
            priority_level=priority_level(complaint.priority_score),
            created_at=complaint.created_at,
            updated_at=complaint.updated_at,
            updates=[
                ComplaintUpdateOut(
                    id=u.id,
                    status=u.status,
                    message=u.message or "",
                    updated_by=UserRef.from_user(u.updated_by),
                    created_at=u.created_at,
                )
                for u in complaint.updates
            ],
        )


class ComplaintResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    complaint: ComplaintOut


class ComplaintListResponse(CamelModel):
    success: bool = True
    complaints: List[ComplaintOut]
