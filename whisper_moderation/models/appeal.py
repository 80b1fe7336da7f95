"""
Appeal data models.
Users appeal a single violation record; moderators (or the system) resolve it.
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from whisper_moderation.models.enums import AppealStatus, AppealAction


class AppealResolution(BaseModel):
    """Outcome attached to a reviewed appeal."""
    action: AppealAction
    reason: str
    moderator_id: str
    reputation_adjustment: int = 0


class Appeal(BaseModel):
    """
    A user appeal against one violation.
    Transitions are one-way: pending -> approved | rejected | expired.
    """
    id: str
    user_id: str
    whisper_id: str
    violation_id: str
    reason: str
    evidence: Optional[str] = None

    status: AppealStatus = AppealStatus.PENDING
    submitted_at: datetime = Field(default_factory=datetime.utcnow)

    resolution: Optional[AppealResolution] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_pending(self) -> bool:
        return self.status == AppealStatus.PENDING


class AppealStats(BaseModel):
    """Aggregate appeal counts. approval_rate is a percentage of resolved appeals."""
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    expired: int = 0
    approval_rate: float = 0.0

    @classmethod
    def from_appeals(cls, appeals: List[Appeal]) -> "AppealStats":
        stats = cls(
            total=len(appeals),
            pending=sum(1 for a in appeals if a.status == AppealStatus.PENDING),
            approved=sum(1 for a in appeals if a.status == AppealStatus.APPROVED),
            rejected=sum(1 for a in appeals if a.status == AppealStatus.REJECTED),
            expired=sum(1 for a in appeals if a.status == AppealStatus.EXPIRED),
        )
        resolved = stats.approved + stats.rejected
        stats.approval_rate = (stats.approved / resolved) * 100 if resolved > 0 else 0.0
        return stats
