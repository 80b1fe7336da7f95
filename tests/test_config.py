# tests/test_config.py
"""Tests for configuration defaults and environment loading."""

from whisper_moderation.models.config import AppealConfig, ModerationConfig
from whisper_moderation.models.enums import AppealAction, ReputationLevel


def test_defaults_need_no_environment() -> None:
    """Test that a default config has no keys and every feature on."""
    config = ModerationConfig()

    assert config.category_scorer.is_configured is False
    assert config.attribute_scorer.is_configured is False
    assert config.features.enable_local_scan is True
    assert config.reputation.critical_penalty == -15


def test_from_env(monkeypatch) -> None:
    """Test that keys, flags and ports come from the environment."""
    monkeypatch.setenv("CATEGORY_API_KEY", "cat")
    monkeypatch.setenv("ATTRIBUTE_API_KEY", "attr")
    monkeypatch.setenv("ENABLE_ATTRIBUTE_SCORING", "false")
    monkeypatch.setenv("METRICS_PORT", "9100")
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = ModerationConfig.from_env()

    assert config.category_scorer.is_configured is True
    assert config.attribute_scorer.api_key == "attr"
    assert config.features.enable_attribute_scoring is False
    assert config.features.enable_reputation_system is True
    assert config.metrics_port == 9100
    assert config.database_url is None


def test_appeal_time_limits() -> None:
    """Test the per-tier appeal windows."""
    config = AppealConfig()

    assert config.time_limit_for(ReputationLevel.TRUSTED) == 30
    assert config.time_limit_for(ReputationLevel.STANDARD) == 7
    assert config.time_limit_for(ReputationLevel.BANNED) == 0


def test_default_appeal_adjustments() -> None:
    """Test default reputation deltas per review action."""
    config = AppealConfig()

    assert config.default_adjustment(AppealAction.APPROVE) == 5
    assert config.default_adjustment(AppealAction.REJECT) == -5
    assert config.default_adjustment(AppealAction.PARTIAL_APPROVE) == 2
