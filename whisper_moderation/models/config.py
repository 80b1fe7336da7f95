"""
Configuration models for the moderation engine.
Every fixed table (thresholds, time limits, durations) lives here with defaults.
"""

import os
from datetime import timedelta
from typing import Optional, Dict
from pydantic import BaseModel, Field

from whisper_moderation.models.enums import (
    ReputationLevel, Severity, ContentRank, AppealAction
)


class ModerationFeatureFlags(BaseModel):
    """Adapter and subsystem toggles."""
    enable_local_scan: bool = True
    enable_category_scoring: bool = True
    enable_attribute_scoring: bool = True
    enable_reputation_system: bool = True


class ReputationLevelActions(BaseModel):
    """Per-level behavior switches."""
    reduced_penalties: bool = False
    fast_track_appeals: bool = False
    auto_approval_threshold: float = Field(ge=0.0, le=1.0, default=0.0)


class ReputationConfig(BaseModel):
    """Reputation score thresholds and adjustments (0-100 scale)."""
    trusted_threshold: int = 80
    verified_threshold: int = 70
    standard_threshold: int = 50
    flagged_threshold: int = 25

    initial_user_score: int = Field(ge=0, le=100, default=60)

    # Delta applied per violation, keyed by final severity
    score_adjustments: Dict[Severity, int] = Field(default_factory=lambda: {
        Severity.CRITICAL: -15,
        Severity.HIGH: -10,
        Severity.MEDIUM: -5,
        Severity.LOW: 1,
    })

    level_actions: Dict[ReputationLevel, ReputationLevelActions] = Field(default_factory=lambda: {
        ReputationLevel.TRUSTED: ReputationLevelActions(
            reduced_penalties=True, fast_track_appeals=True, auto_approval_threshold=0.3
        ),
        ReputationLevel.VERIFIED: ReputationLevelActions(reduced_penalties=True),
        ReputationLevel.STANDARD: ReputationLevelActions(),
        ReputationLevel.FLAGGED: ReputationLevelActions(),
        ReputationLevel.BANNED: ReputationLevelActions(),
    })

    # Points recovered per violation-free day, also the bonus for an approved whisper
    recovery_rates: Dict[ReputationLevel, float] = Field(default_factory=lambda: {
        ReputationLevel.TRUSTED: 2.0,
        ReputationLevel.VERIFIED: 1.5,
        ReputationLevel.STANDARD: 1.0,
        ReputationLevel.FLAGGED: 0.5,
        ReputationLevel.BANNED: 0.0,
    })
    max_recovery_days: int = 365

    @property
    def critical_penalty(self) -> int:
        return self.score_adjustments[Severity.CRITICAL]


class AppealConfig(BaseModel):
    """Appeal time windows and reputation effects."""
    # Days after the violation an appeal may still be filed
    time_limits_days: Dict[ReputationLevel, int] = Field(default_factory=lambda: {
        ReputationLevel.TRUSTED: 30,
        ReputationLevel.VERIFIED: 14,
        ReputationLevel.STANDARD: 7,
        ReputationLevel.FLAGGED: 3,
        ReputationLevel.BANNED: 0,
    })
    default_time_limit_days: int = 7

    approval_bonus: int = 5
    rejection_penalty: int = 5

    def time_limit_for(self, level: ReputationLevel) -> int:
        return self.time_limits_days.get(level, self.default_time_limit_days)

    def default_adjustment(self, action: AppealAction) -> int:
        """Reputation delta for a review action when the moderator gives none."""
        if action == AppealAction.APPROVE:
            return self.approval_bonus
        if action == AppealAction.REJECT:
            return -self.rejection_penalty
        return self.approval_bonus // 2


class SuspensionConfig(BaseModel):
    """Suspension escalation durations and reputation effects."""
    temporary_duration: timedelta = timedelta(hours=24)
    extended_duration: timedelta = timedelta(days=7)
    permanent_duration: timedelta = timedelta(days=365 * 100)  # Effectively forever

    reputation_penalty: int = 20
    restoration_bonus: int = 10


class RankCeilings(BaseModel):
    """Per-category maximum scores allowed for one content rank."""
    toxicity: float = Field(ge=0.0, le=1.0)
    sexual: float = Field(ge=0.0, le=1.0)
    violence: float = Field(ge=0.0, le=1.0)
    hate: float = Field(ge=0.0, le=1.0)


# Ordered least to most permissive; each row is nested inside the next
DEFAULT_RANK_CEILINGS = {
    ContentRank.G: RankCeilings(toxicity=0.1, sexual=0.1, violence=0.1, hate=0.1),
    ContentRank.PG: RankCeilings(toxicity=0.3, sexual=0.2, violence=0.3, hate=0.2),
    ContentRank.PG13: RankCeilings(toxicity=0.5, sexual=0.4, violence=0.5, hate=0.3),
    ContentRank.R: RankCeilings(toxicity=0.7, sexual=0.6, violence=0.7, hate=0.5),
    ContentRank.NC17: RankCeilings(toxicity=1.0, sexual=1.0, violence=1.0, hate=1.0),
}


class AdapterConfig(BaseModel):
    """Endpoint settings for one network classifier."""
    api_url: str
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0
    max_text_length: Optional[int] = None

    # Estimated spend
    cost_per_token: float = 0.0
    cost_per_request: float = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class ModerationConfig(BaseModel):
    """Top-level configuration threaded into every service."""
    features: ModerationFeatureFlags = Field(default_factory=ModerationFeatureFlags)
    reputation: ReputationConfig = Field(default_factory=ReputationConfig)
    appeals: AppealConfig = Field(default_factory=AppealConfig)
    suspensions: SuspensionConfig = Field(default_factory=SuspensionConfig)
    rank_ceilings: Dict[ContentRank, RankCeilings] = Field(
        default_factory=lambda: dict(DEFAULT_RANK_CEILINGS)
    )

    category_scorer: AdapterConfig = Field(default_factory=lambda: AdapterConfig(
        api_url="https://api.openai.com/v1/moderations",
        cost_per_token=0.0001,
    ))
    attribute_scorer: AdapterConfig = Field(default_factory=lambda: AdapterConfig(
        api_url="https://commentanalyzer.googleapis.com/v1alpha1/comments:analyze",
        max_text_length=20480,
        cost_per_request=0.0002,
    ))

    database_url: Optional[str] = None
    metrics_port: int = 8000
    sweep_interval_seconds: int = 3600

    @classmethod
    def from_env(cls) -> "ModerationConfig":
        """Build configuration from environment variables."""
        config = cls()

        config.category_scorer.api_key = os.getenv('CATEGORY_API_KEY')
        config.category_scorer.api_url = os.getenv('CATEGORY_API_URL', config.category_scorer.api_url)
        config.attribute_scorer.api_key = os.getenv('ATTRIBUTE_API_KEY')
        config.attribute_scorer.api_url = os.getenv('ATTRIBUTE_API_URL', config.attribute_scorer.api_url)

        config.features.enable_attribute_scoring = _env_flag('ENABLE_ATTRIBUTE_SCORING', True)
        config.features.enable_reputation_system = _env_flag('ENABLE_REPUTATION_SYSTEM', True)

        config.database_url = os.getenv('DATABASE_URL')
        config.metrics_port = int(os.getenv('METRICS_PORT', '8000'))
        config.sweep_interval_seconds = int(os.getenv('SWEEP_INTERVAL_SECONDS', '3600'))
        return config


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')
