"""
Core Moderation Orchestration Service.
Runs the local scan and both network classifiers in order, short-circuits on
a conclusive rejection, merges what came back and weights it by reputation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from whisper_moderation.lib.errors import UnderageUserError
from whisper_moderation.lib.metrics import MetricsExporter
from whisper_moderation.models.config import ModerationConfig
from whisper_moderation.models.enums import (
    AppealAction, ContentRank, ModerationStatus, SignalSource
)
from whisper_moderation.models.moderation import (
    AttributeScores, CategoryScoringResult, LocalScanResult, ModerationResult, Violation
)
from whisper_moderation.models.suspension import Suspension
from whisper_moderation.models.user import UserReputation, ViolationRecord
from whisper_moderation.services.attribute_scoring_service import AttributeScoringService
from whisper_moderation.services.category_scoring_service import CategoryScoringService
from whisper_moderation.services.decision_service import DecisionService
from whisper_moderation.services.local_scan_service import LocalScanService
from whisper_moderation.services.reputation_service import ReputationService
from whisper_moderation.services.suspension_service import SuspensionService

logger = logging.getLogger(__name__)


@dataclass
class PersistedModeration:
    """Side effects written for one moderated whisper."""
    records: List[ViolationRecord] = field(default_factory=list)
    reputation: Optional[UserReputation] = None
    suspension: Optional[Suspension] = None


class ModerationService:
    """
    Central orchestration service for whisper moderation.
    Only an underage user raises; every other failure becomes an
    under_review result.
    """

    MINIMUM_AGE = 13

    def __init__(
        self,
        config: ModerationConfig,
        local_scan: LocalScanService,
        category_scoring: CategoryScoringService,
        attribute_scoring: AttributeScoringService,
        decision_service: DecisionService,
        reputation_service: ReputationService,
        suspension_service: Optional[SuspensionService] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.config = config
        self.local_scan = local_scan
        self.category_scoring = category_scoring
        self.attribute_scoring = attribute_scoring
        self.decision_service = decision_service
        self.reputation_service = reputation_service
        self.suspension_service = suspension_service
        self.clock = clock

    @property
    def features(self):
        return self.config.features

    async def moderate_whisper(self, text: str, user_id: str, user_age: int) -> ModerationResult:
        """
        Main entry point for whisper moderation.
        Raises UnderageUserError before any work when user_age < 13.
        """
        if user_age < self.MINIMUM_AGE:
            raise UnderageUserError(user_age, self.MINIMUM_AGE)

        start_time = self.clock()
        sources: List[SignalSource] = []
        try:
            result = await self._run_pipeline(text, user_id, start_time, sources)
        except Exception as e:
            logger.error(f"Moderation failed for {user_id}: {e}")
            result = self._create_error_result(e, sources, start_time)

        MetricsExporter.record_decision(result.status.value, result.moderation_time_ms)
        for violation in result.violations:
            MetricsExporter.record_violation(violation.type.value, violation.severity.value)
        logger.info(f"Whisper from {user_id} moderated: {result.status.value} ({result.content_rank.value}) in {result.moderation_time_ms}ms")
        return result

    async def _run_pipeline(
        self, text: str, user_id: str, start_time: datetime, sources: List[SignalSource]
    ) -> ModerationResult:
        """Runs the signal chain, appending each adapter that answered to sources."""
        violations: List[Violation] = []

        # Step 1: Local scan (free)
        local_result: Optional[LocalScanResult] = None
        if self.features.enable_local_scan:
            local_result = self.local_scan.scan(text)
            sources.append(SignalSource.LOCAL)
            if self.local_scan.should_reject_immediately(local_result):
                logger.info("Whisper rejected by local scan")
                return self._create_rejection_result(
                    "Content rejected by local keyword filtering", [], sources, start_time
                )
            violations.extend(local_result.violations)

        # Step 2: Category scorer (primary)
        category_result: Optional[CategoryScoringResult] = None
        if self.features.enable_category_scoring:
            try:
                category_result = await self.category_scoring.score_text(text)
            except Exception as e:
                logger.warning(f"Category scoring failed, continuing without it: {e}")

        if category_result is not None:
            sources.append(SignalSource.CATEGORY)
            violations.extend(self.category_scoring.convert_to_violations(category_result))
            if self.category_scoring.should_reject(category_result):
                logger.info("Whisper rejected by category scorer")
                return self._create_rejection_result(
                    "Content rejected by category scorer", violations, sources, start_time
                )

        # Step 3: Attribute scorer (secondary)
        attribute_result: Optional[AttributeScores] = None
        if not self.features.enable_attribute_scoring:
            logger.debug("Attribute scoring disabled")
        elif not self.attribute_scoring.is_within_limits(text):
            logger.warning(f"Text length {len(text)} exceeds attribute scorer limit, skipping")
        else:
            try:
                attribute_result = await self.attribute_scoring.analyze_text(text)
            except Exception as e:
                logger.warning(f"Attribute scoring failed, continuing without it: {e}")

        if attribute_result is not None:
            sources.append(SignalSource.ATTRIBUTE)
            violations.extend(self.attribute_scoring.convert_to_violations(attribute_result))
            if self.attribute_scoring.should_reject(attribute_result):
                logger.info("Whisper rejected by attribute scorer")
                return self._create_rejection_result(
                    "Content rejected by attribute scorer", violations, sources, start_time
                )

        # Step 4: Merge, rank and weight
        merged = self.decision_service.deduplicate(violations)
        maxima = self.decision_service.category_maxima(local_result, category_result, attribute_result)
        content_rank = self.decision_service.content_rank(maxima)

        reputation = await self._load_reputation(user_id)
        weighted = self.reputation_service.apply_reputation_weighting(merged, reputation)

        status = self.decision_service.determine_status(weighted.violations)
        return ModerationResult(
            status=status,
            content_rank=content_rank,
            is_minor_safe=self.decision_service.is_minor_safe(content_rank),
            violations=weighted.violations,
            confidence=self.decision_service.calculate_confidence(weighted.violations),
            moderation_time_ms=self._calc_time_ms(start_time),
            appealable=self.decision_service.is_appealable(status, weighted.violations),
            reason=self.decision_service.build_reason(status, weighted.violations),
            reputation_impact=weighted.reputation_impact,
            sources=sources,
        )

    async def _load_reputation(self, user_id: str) -> Optional[UserReputation]:
        if not self.features.enable_reputation_system:
            return None
        try:
            return await self.reputation_service.get_user_reputation(user_id)
        except Exception as e:
            logger.warning(f"Reputation unavailable for {user_id}, skipping weighting: {e}")
            return None

    def _create_rejection_result(
        self, reason: str, violations: List[Violation], sources: List[SignalSource], start_time: datetime
    ) -> ModerationResult:
        """Short-circuit rejection; keeps whatever violations were collected so far."""
        return ModerationResult(
            status=ModerationStatus.REJECTED,
            content_rank=ContentRank.NC17,
            is_minor_safe=False,
            violations=self.decision_service.deduplicate(violations),
            confidence=1.0,
            moderation_time_ms=self._calc_time_ms(start_time),
            appealable=False,
            reason=reason,
            reputation_impact=self.reputation_service.config.critical_penalty,
            sources=sources,
        )

    def _create_error_result(
        self, error: Exception, sources: List[SignalSource], start_time: datetime
    ) -> ModerationResult:
        return ModerationResult(
            status=ModerationStatus.UNDER_REVIEW,
            content_rank=ContentRank.PG13,  # Conservative default
            is_minor_safe=False,
            violations=[],
            confidence=0.0,
            moderation_time_ms=self._calc_time_ms(start_time),
            appealable=True,
            reason=str(error) or "Unknown error occurred during moderation",
            reputation_impact=0,
            sources=list(sources),
        )

    def _calc_time_ms(self, start_time: datetime) -> int:
        return max(0, int((self.clock() - start_time).total_seconds() * 1000))

    def estimate_cost(self, text_length: int) -> float:
        """Expected classifier spend for a text of this length. Local scanning is free."""
        cost = 0.0
        if self.features.enable_category_scoring:
            cost += self.category_scoring.estimate_cost(text_length)
        if self.features.enable_attribute_scoring:
            cost += self.attribute_scoring.estimate_cost()
        return cost

    async def persist_result(self, result: ModerationResult, user_id: str, whisper_id: str) -> PersistedModeration:
        """
        Record a moderation outcome: one ViolationRecord per violation, the
        reputation delta, and an automatic suspension for rejected whispers.
        """
        persisted = PersistedModeration()
        store = self.reputation_service.store
        now = self.clock()

        for violation in result.violations:
            record = ViolationRecord(
                id=await store.new_id("violation"),
                user_id=user_id,
                whisper_id=whisper_id,
                violation_type=violation.type,
                severity=violation.severity,
                timestamp=now,
            )
            persisted.records.append(await store.save_violation_record(record))

        if result.status == ModerationStatus.UNDER_REVIEW:
            return persisted

        delta = result.reputation_impact if self.features.enable_reputation_system else 0
        persisted.reputation = await self.reputation_service.record_whisper_outcome(user_id, result.status, delta)

        if result.status == ModerationStatus.REJECTED and self.suspension_service is not None:
            count = await self._count_standing_rejections(user_id, persisted.reputation)
            persisted.suspension = await self.suspension_service.create_automatic_suspension(
                user_id, result.reason, count
            )

        return persisted

    async def _count_standing_rejections(self, user_id: str, reputation: Optional[UserReputation]) -> int:
        """Rejected whispers minus those overturned by an approved appeal."""
        rejected = reputation.rejected_whispers if reputation else 1
        records = await self.reputation_service.store.get_user_violation_records(user_id)
        overturned = {r.whisper_id for r in records if r.resolution == AppealAction.APPROVE.value}
        return max(1, rejected - len(overturned))
