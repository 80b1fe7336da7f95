"""
User Reputation Service.
Maps scores to trust levels, relaxes violations for trusted users, and
applies signed score deltas through the store.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from whisper_moderation.lib.store import ModerationStore
from whisper_moderation.models.config import ReputationConfig, ReputationLevelActions
from whisper_moderation.models.enums import ModerationStatus, ReputationLevel
from whisper_moderation.models.moderation import Violation
from whisper_moderation.models.user import ReputationStats, UserReputation

logger = logging.getLogger(__name__)


@dataclass
class WeightedViolations:
    """Violations after reputation weighting, plus the score delta they carry."""
    violations: List[Violation] = field(default_factory=list)
    reputation_impact: int = 0
    level: Optional[ReputationLevel] = None


class ReputationService:
    """
    Manages user reputation for moderation weighting.
    Higher reputation = lighter penalties, longer appeal windows.
    """

    def __init__(
        self,
        store: ModerationStore,
        config: Optional[ReputationConfig] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.config = config or ReputationConfig()
        self.clock = clock

    def level_for_score(self, score: int) -> ReputationLevel:
        """Descending threshold walk."""
        if score >= self.config.trusted_threshold:
            return ReputationLevel.TRUSTED
        if score >= self.config.verified_threshold:
            return ReputationLevel.VERIFIED
        if score >= self.config.standard_threshold:
            return ReputationLevel.STANDARD
        if score >= self.config.flagged_threshold:
            return ReputationLevel.FLAGGED
        return ReputationLevel.BANNED

    def level_actions(self, level: ReputationLevel) -> ReputationLevelActions:
        return self.config.level_actions.get(level, ReputationLevelActions())

    def recovery_rate(self, score: int) -> float:
        return self.config.recovery_rates.get(self.level_for_score(score), 0.0)

    async def get_user_reputation(self, user_id: str) -> UserReputation:
        """Fetch a user's reputation, creating it at the initial score for new users."""
        reputation = await self.store.get_user_reputation(user_id)
        if reputation is None:
            now = self.clock()
            reputation = UserReputation(
                user_id=user_id,
                score=self.config.initial_user_score,
                level=self.level_for_score(self.config.initial_user_score),
                created_at=now,
                updated_at=now,
            )
            reputation = await self.store.save_user_reputation(reputation)
            logger.info(f"Created reputation for {user_id} at {reputation.score}")

        reputation.level = self.level_for_score(reputation.score)
        reputation.violation_history = await self.store.get_user_violation_records(user_id)
        return reputation

    def apply_reputation_weighting(
        self, violations: List[Violation], reputation: Optional[UserReputation]
    ) -> WeightedViolations:
        """
        Step severity and suggested action down one notch for levels with
        reduced penalties. A violation already adjusted is left alone.
        """
        if reputation is None:
            return WeightedViolations(violations=list(violations))

        level = self.level_for_score(reputation.score)
        weighted = list(violations)

        if self.level_actions(level).reduced_penalties:
            weighted = [
                v if v.reputation_adjusted else v.model_copy(update={
                    'severity': v.severity.step_down(),
                    'suggested_action': v.suggested_action.step_down(),
                    'reputation_adjusted': True,
                })
                for v in violations
            ]

        return WeightedViolations(
            violations=weighted,
            reputation_impact=self.calculate_reputation_impact(weighted, reputation),
            level=level,
        )

    def calculate_reputation_impact(
        self, violations: List[Violation], reputation: Optional[UserReputation]
    ) -> int:
        """Sum of per-severity adjustments; zero without violations or reputation."""
        if not violations or reputation is None:
            return 0
        return sum(self.config.score_adjustments.get(v.severity, 0) for v in violations)

    async def ensure_user_reputation(self, user_id: str) -> None:
        await self.get_user_reputation(user_id)

    async def adjust_score(self, user_id: str, delta: int, reason: str) -> Optional[UserReputation]:
        """Apply a signed delta, creating the record first if needed."""
        await self.ensure_user_reputation(user_id)
        return await self.store.adjust_user_reputation_score(
            user_id, delta, reason, level_of=self.level_for_score
        )

    async def record_whisper_outcome(
        self, user_id: str, status: ModerationStatus, delta: int
    ) -> Optional[UserReputation]:
        """Bump whisper counters and apply the moderation delta in one write."""
        await self.ensure_user_reputation(user_id)
        now = self.clock()

        def apply(reputation: UserReputation) -> None:
            reputation.total_whispers += 1
            if status == ModerationStatus.APPROVED:
                reputation.approved_whispers += 1
            elif status == ModerationStatus.FLAGGED:
                reputation.flagged_whispers += 1
            elif status == ModerationStatus.REJECTED:
                reputation.rejected_whispers += 1
                reputation.last_violation = now
            reputation.score = max(0, min(100, reputation.score + delta))
            reputation.level = self.level_for_score(reputation.score)
            reputation.updated_at = now

        updated = await self.store.update_user_reputation(user_id, apply)
        if updated is not None:
            logger.info(f"Reputation {user_id}: {delta:+d} (whisper {status.value}) -> {updated.score}")
        return updated

    async def record_successful_whisper(self, user_id: str) -> Optional[UserReputation]:
        """Approved-whisper bonus at the user's recovery rate, rounded half up."""
        reputation = await self.get_user_reputation(user_id)
        bonus = int(self.recovery_rate(reputation.score) + 0.5)
        return await self.record_whisper_outcome(user_id, ModerationStatus.APPROVED, bonus)

    def calculate_recovery(self, reputation: UserReputation, now: datetime) -> Tuple[int, timedelta]:
        """
        Points earned since the last violation (or the last recovery, if later)
        and the span of time those points used up.
        Users who never had a violation have nothing to recover.
        """
        if reputation.last_violation is None:
            return 0, timedelta(0)
        rate = self.recovery_rate(reputation.score)
        if rate <= 0:
            return 0, timedelta(0)

        anchor = max(reputation.last_violation, reputation.last_recovery or reputation.last_violation)
        days = min((now - anchor).total_seconds() / 86400, self.config.max_recovery_days)
        points = min(int(days * rate), 100 - reputation.score)
        if points <= 0:
            return 0, timedelta(0)
        # Partial days carry over to the next pass
        return points, timedelta(days=points / rate)

    async def process_reputation_recovery(self, user_id: str) -> Optional[UserReputation]:
        """Apply time-based recovery to one user. Returns the record only when the score rose."""
        now = self.clock()
        recovered: List[int] = []

        def apply(reputation: UserReputation) -> None:
            points, used = self.calculate_recovery(reputation, now)
            if points <= 0:
                return
            anchor = max(reputation.last_violation, reputation.last_recovery or reputation.last_violation)
            reputation.score += points
            reputation.level = self.level_for_score(reputation.score)
            reputation.last_recovery = anchor + used
            reputation.updated_at = now
            recovered.append(points)

        updated = await self.store.update_user_reputation(user_id, apply)
        if not recovered:
            return None
        logger.info(f"Reputation {user_id}: +{recovered[0]} (recovery) -> {updated.score}")
        return updated

    async def process_all_reputation_recovery(self) -> List[UserReputation]:
        """Recovery pass over every stored user. One user's failure does not stop the rest."""
        recovered: List[UserReputation] = []
        for reputation in await self.store.get_all_user_reputations():
            try:
                updated = await self.process_reputation_recovery(reputation.user_id)
            except Exception as e:
                logger.error(f"Reputation recovery failed for {reputation.user_id}: {e}")
                continue
            if updated is not None:
                recovered.append(updated)

        if recovered:
            logger.info(f"Recovered reputation for {len(recovered)} users")
        return recovered

    async def get_reputation_stats(self) -> ReputationStats:
        try:
            reputations = await self.store.get_all_user_reputations()
        except Exception as e:
            logger.error(f"Failed to load reputations: {e}")
            reputations = []
        return ReputationStats.from_reputations([
            r.model_copy(update={'level': self.level_for_score(r.score)}) for r in reputations
        ])
