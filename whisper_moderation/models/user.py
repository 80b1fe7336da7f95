"""
User reputation and violation record models.
Tracks user behavior for reputation-weighted moderation.
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from whisper_moderation.models.enums import ReputationLevel, ViolationType, Severity


class ViolationRecord(BaseModel):
    """
    A persisted violation tied to one whisper.
    Mutated only when an appeal resolves it; never deleted.
    """
    id: str
    user_id: str
    whisper_id: str
    violation_type: ViolationType
    severity: Severity
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    resolved: bool = False
    resolution: Optional[str] = None  # Appeal action that resolved it


class UserReputation(BaseModel):
    """
    Per-user reputation aggregate (0-100 scale).
    level is always derived from score by the reputation service.
    """
    user_id: str
    score: int = Field(ge=0, le=100)
    level: ReputationLevel

    # Behavioral counters
    total_whispers: int = 0
    approved_whispers: int = 0
    flagged_whispers: int = 0
    rejected_whispers: int = 0

    violation_history: List[ViolationRecord] = Field(default_factory=list)

    # Timestamps
    last_violation: Optional[datetime] = None
    last_recovery: Optional[datetime] = None  # Recovery accrues from the later of the two
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ReputationStats(BaseModel):
    """Users per reputation level and the mean score."""
    total_users: int = 0
    trusted_users: int = 0
    verified_users: int = 0
    standard_users: int = 0
    flagged_users: int = 0
    banned_users: int = 0
    average_score: float = 0.0

    @classmethod
    def from_reputations(cls, reputations: List[UserReputation]) -> "ReputationStats":
        if not reputations:
            return cls()
        return cls(
            total_users=len(reputations),
            trusted_users=sum(1 for r in reputations if r.level == ReputationLevel.TRUSTED),
            verified_users=sum(1 for r in reputations if r.level == ReputationLevel.VERIFIED),
            standard_users=sum(1 for r in reputations if r.level == ReputationLevel.STANDARD),
            flagged_users=sum(1 for r in reputations if r.level == ReputationLevel.FLAGGED),
            banned_users=sum(1 for r in reputations if r.level == ReputationLevel.BANNED),
            average_score=sum(r.score for r in reputations) / len(reputations),
        )
