"""
Persistence contract for appeals, violation records, suspensions and reputation.
InMemoryStore backs tests and local runs; PostgresStore lives in lib/database.py.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from whisper_moderation.models.appeal import Appeal
from whisper_moderation.models.enums import AppealStatus, ReputationLevel
from whisper_moderation.models.suspension import Suspension
from whisper_moderation.models.user import UserReputation, ViolationRecord

logger = logging.getLogger(__name__)

ReputationMutation = Callable[[UserReputation], None]


class ModerationStore(ABC):
    """Async document store used by the appeal, suspension and reputation services."""

    async def new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid4().hex}"

    # Appeals
    @abstractmethod
    async def save_appeal(self, appeal: Appeal) -> Appeal: ...

    @abstractmethod
    async def get_appeal(self, appeal_id: str) -> Optional[Appeal]: ...

    @abstractmethod
    async def get_user_appeals(self, user_id: str) -> List[Appeal]: ...

    @abstractmethod
    async def get_pending_appeals(self) -> List[Appeal]: ...

    @abstractmethod
    async def get_all_appeals(self) -> List[Appeal]: ...

    @abstractmethod
    async def update_appeal(self, appeal_id: str, updates: Dict[str, Any]) -> Optional[Appeal]: ...

    # Violation records
    @abstractmethod
    async def save_violation_record(self, record: ViolationRecord) -> ViolationRecord: ...

    @abstractmethod
    async def get_violation_record(self, violation_id: str) -> Optional[ViolationRecord]: ...

    @abstractmethod
    async def get_user_violation_records(self, user_id: str) -> List[ViolationRecord]: ...

    @abstractmethod
    async def resolve_violation_record(self, violation_id: str, resolution: str) -> Optional[ViolationRecord]: ...

    # Suspensions
    @abstractmethod
    async def save_suspension(self, suspension: Suspension) -> Suspension: ...

    @abstractmethod
    async def get_suspension(self, suspension_id: str) -> Optional[Suspension]: ...

    @abstractmethod
    async def get_user_suspensions(self, user_id: str) -> List[Suspension]: ...

    @abstractmethod
    async def get_active_suspensions(self) -> List[Suspension]: ...

    @abstractmethod
    async def get_all_suspensions(self) -> List[Suspension]: ...

    @abstractmethod
    async def update_suspension(self, suspension_id: str, updates: Dict[str, Any]) -> Optional[Suspension]: ...

    # Reputation
    @abstractmethod
    async def get_user_reputation(self, user_id: str) -> Optional[UserReputation]: ...

    @abstractmethod
    async def save_user_reputation(self, reputation: UserReputation) -> UserReputation: ...

    @abstractmethod
    async def get_all_user_reputations(self) -> List[UserReputation]: ...

    @abstractmethod
    async def update_user_reputation(
        self, user_id: str, mutate: ReputationMutation
    ) -> Optional[UserReputation]:
        """
        Read-modify-write one reputation record, serialized per user.
        Returns None when the user has no record.
        """

    async def adjust_user_reputation_score(
        self,
        user_id: str,
        delta: int,
        reason: str,
        level_of: Optional[Callable[[int], ReputationLevel]] = None,
    ) -> Optional[UserReputation]:
        """Apply a signed delta, clamped to 0-100."""
        def apply(reputation: UserReputation) -> None:
            reputation.score = max(0, min(100, reputation.score + delta))
            if level_of is not None:
                reputation.level = level_of(reputation.score)
            reputation.updated_at = datetime.utcnow()

        updated = await self.update_user_reputation(user_id, apply)
        if updated is not None:
            logger.info(f"Reputation {user_id}: {delta:+d} ({reason}) -> {updated.score}")
        return updated


class InMemoryStore(ModerationStore):
    """
    Dictionary-backed store.
    Documents are copied on the way in and out so callers never share state.
    Reputation updates run without an await between read and write, which
    serializes them per user on a single event loop.
    """

    def __init__(self):
        self.appeals: Dict[str, Appeal] = {}
        self.violation_records: Dict[str, ViolationRecord] = {}
        self.suspensions: Dict[str, Suspension] = {}
        self.reputations: Dict[str, UserReputation] = {}

    @staticmethod
    def _copy(document):
        return document.model_copy(deep=True) if document is not None else None

    async def save_appeal(self, appeal: Appeal) -> Appeal:
        self.appeals[appeal.id] = self._copy(appeal)
        return self._copy(appeal)

    async def get_appeal(self, appeal_id: str) -> Optional[Appeal]:
        return self._copy(self.appeals.get(appeal_id))

    async def get_user_appeals(self, user_id: str) -> List[Appeal]:
        appeals = [a for a in self.appeals.values() if a.user_id == user_id]
        return [self._copy(a) for a in sorted(appeals, key=lambda a: a.submitted_at, reverse=True)]

    async def get_pending_appeals(self) -> List[Appeal]:
        return [self._copy(a) for a in self.appeals.values() if a.status == AppealStatus.PENDING]

    async def get_all_appeals(self) -> List[Appeal]:
        return [self._copy(a) for a in self.appeals.values()]

    async def update_appeal(self, appeal_id: str, updates: Dict[str, Any]) -> Optional[Appeal]:
        appeal = self.appeals.get(appeal_id)
        if appeal is None:
            return None
        updated = appeal.model_copy(update={**updates, 'updated_at': datetime.utcnow()}, deep=True)
        self.appeals[appeal_id] = updated
        return self._copy(updated)

    async def save_violation_record(self, record: ViolationRecord) -> ViolationRecord:
        self.violation_records[record.id] = self._copy(record)
        return self._copy(record)

    async def get_violation_record(self, violation_id: str) -> Optional[ViolationRecord]:
        return self._copy(self.violation_records.get(violation_id))

    async def get_user_violation_records(self, user_id: str) -> List[ViolationRecord]:
        return [self._copy(r) for r in self.violation_records.values() if r.user_id == user_id]

    async def resolve_violation_record(self, violation_id: str, resolution: str) -> Optional[ViolationRecord]:
        record = self.violation_records.get(violation_id)
        if record is None:
            return None
        record.resolved = True
        record.resolution = resolution
        return self._copy(record)

    async def save_suspension(self, suspension: Suspension) -> Suspension:
        self.suspensions[suspension.id] = self._copy(suspension)
        return self._copy(suspension)

    async def get_suspension(self, suspension_id: str) -> Optional[Suspension]:
        return self._copy(self.suspensions.get(suspension_id))

    async def get_user_suspensions(self, user_id: str) -> List[Suspension]:
        suspensions = [s for s in self.suspensions.values() if s.user_id == user_id]
        return [self._copy(s) for s in sorted(suspensions, key=lambda s: s.start_date, reverse=True)]

    async def get_active_suspensions(self) -> List[Suspension]:
        return [self._copy(s) for s in self.suspensions.values() if s.is_active]

    async def get_all_suspensions(self) -> List[Suspension]:
        return [self._copy(s) for s in self.suspensions.values()]

    async def update_suspension(self, suspension_id: str, updates: Dict[str, Any]) -> Optional[Suspension]:
        suspension = self.suspensions.get(suspension_id)
        if suspension is None:
            return None
        updated = suspension.model_copy(update={**updates, 'updated_at': datetime.utcnow()}, deep=True)
        self.suspensions[suspension_id] = updated
        return self._copy(updated)

    async def get_user_reputation(self, user_id: str) -> Optional[UserReputation]:
        return self._copy(self.reputations.get(user_id))

    async def save_user_reputation(self, reputation: UserReputation) -> UserReputation:
        self.reputations[reputation.user_id] = self._copy(reputation)
        return self._copy(reputation)

    async def get_all_user_reputations(self) -> List[UserReputation]:
        return [self._copy(r) for r in self.reputations.values()]

    async def update_user_reputation(
        self, user_id: str, mutate: ReputationMutation
    ) -> Optional[UserReputation]:
        reputation = self.reputations.get(user_id)
        if reputation is None:
            return None
        mutate(reputation)
        return self._copy(reputation)
