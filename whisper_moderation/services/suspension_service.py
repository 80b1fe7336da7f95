"""
Suspension Service.
Escalates violation counts into warnings, temporary and permanent
suspensions, applies moderator review actions and lapses expired ones.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from whisper_moderation.lib.errors import InvalidTransitionError, NotFoundError, ValidationError
from whisper_moderation.lib.metrics import MetricsExporter
from whisper_moderation.lib.store import ModerationStore
from whisper_moderation.models.config import SuspensionConfig
from whisper_moderation.models.enums import BanType, SuspensionAction, SuspensionType
from whisper_moderation.models.suspension import Suspension, SuspensionStats, UserSuspensionStatus
from whisper_moderation.services.reputation_service import ReputationService

logger = logging.getLogger(__name__)

BAN_TYPES = {
    SuspensionType.WARNING: BanType.NONE,                 # Warnings don't hide content
    SuspensionType.TEMPORARY: BanType.CONTENT_VISIBLE,    # Content stays, user can't post
    SuspensionType.PERMANENT: BanType.CONTENT_HIDDEN,     # Content hidden from everyone
}


@dataclass
class SuspensionPlan:
    """Escalation step for a violation count."""
    type: SuspensionType
    duration: Optional[timedelta] = None


class SuspensionService:
    """
    Suspension state machine.
    Warnings never touch reputation; temporary and permanent suspensions
    cost a fixed penalty, and a lapsed temporary suspension restores part of it.
    """

    def __init__(
        self,
        store: ModerationStore,
        reputation_service: ReputationService,
        config: Optional[SuspensionConfig] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.reputation_service = reputation_service
        self.config = config or SuspensionConfig()
        self.clock = clock

    def determine_automatic_suspension(self, violation_count: int) -> SuspensionPlan:
        if violation_count <= 1:
            return SuspensionPlan(type=SuspensionType.WARNING)
        if violation_count == 2:
            return SuspensionPlan(type=SuspensionType.TEMPORARY, duration=self.config.temporary_duration)
        if violation_count == 3:
            return SuspensionPlan(type=SuspensionType.TEMPORARY, duration=self.config.extended_duration)
        return SuspensionPlan(type=SuspensionType.PERMANENT)

    @staticmethod
    def validate_suspension_data(suspension_type: SuspensionType, duration: Optional[timedelta] = None) -> None:
        """Raises ValidationError for a type/duration mismatch."""
        if suspension_type == SuspensionType.TEMPORARY and not duration:
            raise ValidationError("Temporary suspensions require a duration")
        if suspension_type == SuspensionType.PERMANENT and duration:
            raise ValidationError("Permanent suspensions cannot have a duration")
        if suspension_type == SuspensionType.WARNING and duration:
            raise ValidationError("Warnings cannot have a duration")

    def calculate_end_date(
        self, suspension_type: SuspensionType, start_date: datetime, duration: Optional[timedelta] = None
    ) -> datetime:
        if suspension_type == SuspensionType.PERMANENT:
            return start_date + self.config.permanent_duration
        if suspension_type == SuspensionType.TEMPORARY:
            return start_date + duration
        return start_date

    @staticmethod
    def ban_type_for(suspension_type: SuspensionType) -> BanType:
        return BAN_TYPES.get(suspension_type, BanType.NONE)

    def is_expired(self, suspension: Suspension) -> bool:
        return (
            suspension.is_active
            and suspension.end_date is not None
            and self.clock() > suspension.end_date
        )

    async def create_suspension(
        self,
        user_id: str,
        reason: str,
        suspension_type: SuspensionType,
        duration: Optional[timedelta] = None,
        moderator_id: str = "system",
        appealable: bool = True,
    ) -> Suspension:
        self.validate_suspension_data(suspension_type, duration)

        now = self.clock()
        suspension = Suspension(
            id=await self.store.new_id("suspension"),
            user_id=user_id,
            reason=reason,
            type=suspension_type,
            ban_type=self.ban_type_for(suspension_type),
            duration=duration,
            start_date=now,
            end_date=self.calculate_end_date(suspension_type, now, duration),
            moderator_id=moderator_id,
            appealable=appealable,
            created_at=now,
            updated_at=now,
        )
        suspension = await self.store.save_suspension(suspension)

        # The suspension stands even if the penalty cannot be written
        if suspension_type != SuspensionType.WARNING:
            try:
                await self.reputation_service.adjust_score(
                    user_id, -self.config.reputation_penalty, f"{suspension_type.value} suspension"
                )
            except Exception as e:
                logger.error(f"Failed to apply suspension penalty for {user_id}: {e}")

        MetricsExporter.record_suspension(suspension_type.value)
        logger.info(f"Suspension {suspension.id} created for {user_id}: {suspension_type.value} until {suspension.end_date}")
        return suspension

    async def create_automatic_suspension(self, user_id: str, reason: str, violation_count: int) -> Suspension:
        plan = self.determine_automatic_suspension(violation_count)
        return await self.create_suspension(
            user_id=user_id,
            reason=f"Automatic suspension: {reason} (violation #{violation_count})",
            suspension_type=plan.type,
            duration=plan.duration,
        )

    async def review_suspension(
        self,
        suspension_id: str,
        action: SuspensionAction,
        reason: str,
        moderator_id: str,
        adjustment: Optional[timedelta] = None,
    ) -> Suspension:
        """Apply a moderator action. extend/reduce are illegal on permanent suspensions."""
        suspension = await self.store.get_suspension(suspension_id)
        if suspension is None:
            raise NotFoundError("Suspension", suspension_id)
        if not suspension.is_active:
            raise InvalidTransitionError(f"Suspension {suspension_id} is no longer active")

        delta = adjustment or timedelta(0)
        updates = {"moderator_id": moderator_id}

        if action in (SuspensionAction.EXTEND, SuspensionAction.REDUCE):
            if suspension.type == SuspensionType.PERMANENT:
                raise InvalidTransitionError(f"Cannot {action.value} a permanent suspension")
            if suspension.end_date is not None:
                updates["end_date"] = (
                    suspension.end_date + delta if action == SuspensionAction.EXTEND
                    else suspension.end_date - delta
                )
        elif action == SuspensionAction.REMOVE:
            updates["is_active"] = False
        elif action == SuspensionAction.MAKE_PERMANENT:
            updates["type"] = SuspensionType.PERMANENT
            updates["ban_type"] = self.ban_type_for(SuspensionType.PERMANENT)
            updates["duration"] = None
            updates["end_date"] = self.clock() + self.config.permanent_duration
            updates["appealable"] = False

        updated = await self.store.update_suspension(suspension_id, updates)
        logger.info(f"Suspension {suspension_id} reviewed by {moderator_id}: {action.value} ({reason})")
        return updated

    async def check_suspension_expiration(self) -> List[Suspension]:
        """Deactivate lapsed suspensions. Temporary ones restore reputation."""
        expired: List[Suspension] = []

        for suspension in await self.store.get_active_suspensions():
            if not self.is_expired(suspension):
                continue
            updated = await self.store.update_suspension(suspension.id, {"is_active": False})
            if updated is None:
                continue
            expired.append(updated)

            if suspension.type == SuspensionType.TEMPORARY:
                try:
                    await self.reputation_service.adjust_score(
                        suspension.user_id, self.config.restoration_bonus, "suspension lapsed"
                    )
                except Exception as e:
                    logger.error(f"Failed to restore reputation for {suspension.user_id}: {e}")

        if expired:
            logger.info(f"Expired {len(expired)} suspensions")
        return expired

    # Read paths degrade to empty results on store failure

    async def get_suspension(self, suspension_id: str) -> Optional[Suspension]:
        try:
            return await self.store.get_suspension(suspension_id)
        except Exception as e:
            logger.error(f"Failed to load suspension {suspension_id}: {e}")
            return None

    async def get_user_active_suspensions(self, user_id: str) -> List[Suspension]:
        try:
            suspensions = await self.store.get_user_suspensions(user_id)
        except Exception as e:
            logger.error(f"Failed to load suspensions for {user_id}: {e}")
            return []
        now = self.clock()
        return [s for s in suspensions if s.is_active and s.end_date is not None and s.end_date > now]

    async def is_user_suspended(self, user_id: str) -> UserSuspensionStatus:
        active = await self.get_user_active_suspensions(user_id)
        return UserSuspensionStatus(
            suspended=bool(active),
            suspensions=active,
            can_appeal=any(s.type != SuspensionType.PERMANENT and s.appealable for s in active),
        )

    async def get_suspension_stats(self) -> SuspensionStats:
        try:
            suspensions = await self.store.get_all_suspensions()
        except Exception as e:
            logger.error(f"Failed to load suspensions: {e}")
            suspensions = []
        return SuspensionStats.from_suspensions(suspensions)
