"""
Suspension data models.
Escalated from violation counts or applied manually by moderators.
"""

from datetime import datetime, timedelta
from typing import Optional, List
from pydantic import BaseModel, Field

from whisper_moderation.models.enums import SuspensionType, BanType


class Suspension(BaseModel):
    """
    Account restriction.
    is_active flips to false on removal or natural expiry.
    """
    id: str
    user_id: str
    reason: str
    type: SuspensionType
    ban_type: BanType = BanType.NONE

    duration: Optional[timedelta] = None
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None
    is_active: bool = True

    moderator_id: str = "system"
    appealable: bool = True

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class UserSuspensionStatus(BaseModel):
    """Whether a user is currently restricted."""
    suspended: bool = False
    suspensions: List[Suspension] = Field(default_factory=list)
    can_appeal: bool = False


class SuspensionStats(BaseModel):
    """Aggregate suspension counts."""
    total: int = 0
    active: int = 0
    warnings: int = 0
    temporary: int = 0
    permanent: int = 0
    expired: int = 0

    @classmethod
    def from_suspensions(cls, suspensions: List[Suspension]) -> "SuspensionStats":
        return cls(
            total=len(suspensions),
            active=sum(1 for s in suspensions if s.is_active),
            warnings=sum(1 for s in suspensions if s.type == SuspensionType.WARNING),
            temporary=sum(1 for s in suspensions if s.type == SuspensionType.TEMPORARY),
            permanent=sum(1 for s in suspensions if s.type == SuspensionType.PERMANENT),
            expired=sum(1 for s in suspensions if not s.is_active),
        )
