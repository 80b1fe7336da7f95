"""
Appeal Service.
Users appeal a single violation record within a reputation-dependent window.
Trusted users' appeals on low-severity violations may be auto-approved in the
background; moderators resolve the rest.
"""

import asyncio
import logging
import math
import random
from datetime import datetime
from typing import Callable, List, Optional, Set

from whisper_moderation.lib.errors import InvalidTransitionError, NotFoundError, ValidationError
from whisper_moderation.lib.metrics import MetricsExporter
from whisper_moderation.lib.store import ModerationStore
from whisper_moderation.models.appeal import Appeal, AppealResolution, AppealStats
from whisper_moderation.models.config import AppealConfig
from whisper_moderation.models.enums import AppealAction, AppealStatus, ReputationLevel, Severity
from whisper_moderation.services.reputation_service import ReputationService

logger = logging.getLogger(__name__)

SYSTEM_MODERATOR = "system"


class AppealService:
    """
    Appeal state machine: pending -> approved | rejected | expired.
    Terminal states are final.
    """

    def __init__(
        self,
        store: ModerationStore,
        reputation_service: ReputationService,
        config: Optional[AppealConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.reputation_service = reputation_service
        self.config = config or AppealConfig()
        self.rng = rng or random.Random()
        self.clock = clock
        self._background_tasks: Set[asyncio.Task] = set()

    def days_since(self, moment: datetime) -> int:
        """Whole days elapsed, rounded up."""
        elapsed = abs((self.clock() - moment).total_seconds())
        return math.ceil(elapsed / 86400)

    def is_within_time_limit(self, moment: datetime, level: ReputationLevel) -> bool:
        """Exactly at the limit is still allowed."""
        return self.days_since(moment) <= self.config.time_limit_for(level)

    async def create_appeal(
        self,
        user_id: str,
        whisper_id: str,
        violation_id: str,
        reason: str,
        evidence: Optional[str] = None,
    ) -> Appeal:
        reputation = await self.reputation_service.get_user_reputation(user_id)
        if reputation.level == ReputationLevel.BANNED:
            raise InvalidTransitionError("Banned users cannot submit appeals")

        violation = await self.store.get_violation_record(violation_id)
        if violation is None:
            raise NotFoundError("Violation", violation_id)
        if violation.user_id != user_id:
            raise ValidationError(f"Violation {violation_id} does not belong to user {user_id}")

        if not self.is_within_time_limit(violation.timestamp, reputation.level):
            limit = self.config.time_limit_for(reputation.level)
            raise InvalidTransitionError(f"Appeal time limit exceeded. You have {limit} days to appeal.")

        now = self.clock()
        appeal = Appeal(
            id=await self.store.new_id("appeal"),
            user_id=user_id,
            whisper_id=whisper_id,
            violation_id=violation_id,
            reason=reason,
            evidence=evidence,
            status=AppealStatus.PENDING,
            submitted_at=now,
            created_at=now,
            updated_at=now,
        )
        appeal = await self.store.save_appeal(appeal)
        MetricsExporter.record_appeal("submitted")
        logger.info(f"Appeal created: {appeal.id} ({user_id}, violation {violation_id})")

        threshold = self.reputation_service.level_actions(reputation.level).auto_approval_threshold
        if (
            reputation.level == ReputationLevel.TRUSTED
            and violation.severity == Severity.LOW
            and self.rng.random() < threshold
        ):
            self._spawn(self._auto_approve(appeal))

        return appeal

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def wait_for_background_tasks(self) -> None:
        """Await outstanding auto-approvals."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def _auto_approve(self, appeal: Appeal) -> None:
        """Best effort; failures are logged and never reach the caller."""
        try:
            current = await self.store.get_appeal(appeal.id)
            if current is None or not current.is_pending():
                return
            bonus = self.config.approval_bonus
            resolution = AppealResolution(
                action=AppealAction.APPROVE,
                reason="Auto-approved for trusted user",
                moderator_id=SYSTEM_MODERATOR,
                reputation_adjustment=bonus,
            )
            await self.store.update_appeal(appeal.id, {
                "status": AppealStatus.APPROVED,
                "resolution": resolution,
                "reviewed_at": self.clock(),
                "reviewed_by": SYSTEM_MODERATOR,
            })
            await self.reputation_service.adjust_score(appeal.user_id, bonus, "Appeal auto-approved")
            await self.store.resolve_violation_record(appeal.violation_id, AppealAction.APPROVE.value)
            MetricsExporter.record_appeal("auto_approved")
            logger.info(f"Appeal {appeal.id} auto-approved for trusted user")
        except Exception as e:
            logger.error(f"Error auto-approving appeal {appeal.id}: {e}")

    async def review_appeal(
        self,
        appeal_id: str,
        action: AppealAction,
        reason: str,
        moderator_id: str,
        reputation_adjustment: Optional[int] = None,
    ) -> Appeal:
        appeal = await self.store.get_appeal(appeal_id)
        if appeal is None:
            raise NotFoundError("Appeal", appeal_id)
        if not appeal.is_pending():
            raise InvalidTransitionError(f"Appeal {appeal_id} has already been {appeal.status.value}")

        delta = reputation_adjustment if reputation_adjustment is not None else self.config.default_adjustment(action)
        # partial_approve is a rejection that still carries a partial bonus
        status = AppealStatus.APPROVED if action == AppealAction.APPROVE else AppealStatus.REJECTED

        updated = await self.store.update_appeal(appeal_id, {
            "status": status,
            "resolution": AppealResolution(
                action=action,
                reason=reason,
                moderator_id=moderator_id,
                reputation_adjustment=delta,
            ),
            "reviewed_at": self.clock(),
            "reviewed_by": moderator_id,
        })

        if delta:
            await self.reputation_service.adjust_score(appeal.user_id, delta, f"Appeal {action.value}: {reason}")

        await self.store.resolve_violation_record(appeal.violation_id, action.value)

        MetricsExporter.record_appeal(status.value)
        logger.info(f"Appeal {appeal_id} reviewed: {action.value} by {moderator_id}")
        return updated

    async def check_appeal_expiration(self) -> List[Appeal]:
        """Expire pending appeals older than the appellant's window."""
        expired: List[Appeal] = []

        for appeal in await self.get_pending_appeals():
            try:
                reputation = await self.reputation_service.get_user_reputation(appeal.user_id)
                if self.is_within_time_limit(appeal.submitted_at, reputation.level):
                    continue
                updated = await self.store.update_appeal(appeal.id, {"status": AppealStatus.EXPIRED})
            except Exception as e:
                logger.error(f"Failed to expire appeal {appeal.id}: {e}")
                continue
            if updated is not None:
                expired.append(updated)
                MetricsExporter.record_appeal(AppealStatus.EXPIRED.value)

        if expired:
            logger.info(f"Expired {len(expired)} appeals")
        return expired

    # Read paths degrade to empty results on store failure

    async def get_appeal(self, appeal_id: str) -> Optional[Appeal]:
        try:
            return await self.store.get_appeal(appeal_id)
        except Exception as e:
            logger.error(f"Error getting appeal {appeal_id}: {e}")
            return None

    async def get_user_appeals(self, user_id: str) -> List[Appeal]:
        try:
            return await self.store.get_user_appeals(user_id)
        except Exception as e:
            logger.error(f"Error getting appeals for {user_id}: {e}")
            return []

    async def get_pending_appeals(self) -> List[Appeal]:
        try:
            return await self.store.get_pending_appeals()
        except Exception as e:
            logger.error(f"Error getting pending appeals: {e}")
            return []

    async def get_appeal_stats(self) -> AppealStats:
        try:
            appeals = await self.store.get_all_appeals()
        except Exception as e:
            logger.error(f"Error getting appeal stats: {e}")
            appeals = []
        return AppealStats.from_appeals(appeals)
