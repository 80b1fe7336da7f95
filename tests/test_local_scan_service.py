# tests/test_local_scan_service.py
"""Tests for the local keyword/pattern scanner."""

import pytest

from whisper_moderation.models.enums import Severity, SuggestedAction, ViolationType
from whisper_moderation.services.local_scan_service import LocalScanService


@pytest.fixture()
def scanner() -> LocalScanService:
    return LocalScanService()


def test_clean_text_is_not_flagged(scanner) -> None:
    """Test that ordinary text produces a clean result."""
    result = scanner.scan("Hello world, this is a nice whisper")

    assert result.flagged is False
    assert result.violations == []
    assert result.toxicity_score == 0.0
    assert result.spam_score == 0.0
    assert scanner.should_reject_immediately(result) is False
    assert scanner.get_moderation_summary(result) == "Local scan: no violations detected"


def test_empty_text_is_clean(scanner) -> None:
    """Test that empty input never raises."""
    result = scanner.scan("")

    assert result.flagged is False
    assert result.violations == []


def test_high_severity_keyword(scanner) -> None:
    """Test a high-severity harassment keyword with its span."""
    result = scanner.scan("you are stupid")

    assert result.flagged is True
    assert result.matched_keywords == ["stupid"]
    violation = result.violations[0]
    assert violation.type == ViolationType.HARASSMENT
    assert violation.severity == Severity.HIGH
    assert violation.confidence == pytest.approx(0.8)
    assert violation.suggested_action == SuggestedAction.REJECT
    assert violation.span == (8, 14)
    assert scanner.should_reject_immediately(result) is False


def test_keywords_match_whole_words_only(scanner) -> None:
    """Test that keywords embedded in longer words are ignored."""
    result = scanner.scan("sexy shoes from Essex")

    assert result.matched_keywords == []
    assert result.flagged is False


def test_keyword_match_is_case_and_whitespace_insensitive(scanner) -> None:
    """Test multi-word keywords across whitespace runs and mixed case."""
    result = scanner.scan("I will Kill   You tomorrow")

    assert "kill you" in result.matched_keywords
    assert result.critical_keyword_matched is True


def test_critical_keyword_rejects_immediately(scanner) -> None:
    """Test that a critical keyword triggers immediate rejection."""
    result = scanner.scan("kill yourself you worthless piece of shit")

    assert result.critical_keyword_matched is True
    assert scanner.should_reject_immediately(result) is True
    severities = {v.severity for v in result.violations}
    assert Severity.CRITICAL in severities


def test_low_severity_default_for_category(scanner) -> None:
    """Test that keywords without an override use the category default."""
    result = scanner.scan("they sell drugs here")

    assert [v.type for v in result.violations] == [ViolationType.DRUGS]
    assert result.violations[0].severity == Severity.LOW
    assert result.violations[0].suggested_action == SuggestedAction.FLAG


@pytest.mark.parametrize("text", [
    "call me at 555-123-4567",
    "write to someone@example.com",
    "my ssn is 123-45-6789",
    "card 4111 1111 1111 1111",
    "I live at 42 Wallaby Way Street",
])
def test_personal_info_rejects_immediately(scanner, text) -> None:
    """Test that each personal-info pattern is detected and rejected."""
    result = scanner.scan(text)

    assert result.personal_info_detected is True
    assert scanner.should_reject_immediately(result) is True
    personal = [v for v in result.violations if v.type == ViolationType.PERSONAL_INFO]
    assert len(personal) == 1
    assert personal[0].severity == Severity.HIGH
    assert personal[0].confidence == pytest.approx(0.9)
    assert personal[0].suggested_action == SuggestedAction.REJECT


def test_spam_heuristics(scanner) -> None:
    """Test that spam keywords plus repeated characters add a spam violation."""
    result = scanner.scan("CLICK HERE!!! BUY NOW!!! ACT NOW!!! DM ME!!!")

    assert result.spam_score == pytest.approx(0.6)
    assert result.flagged is True
    heuristic = [v for v in result.violations if v.description.startswith("Spam patterns")]
    assert len(heuristic) == 1
    assert heuristic[0].confidence == pytest.approx(0.6)
    assert heuristic[0].severity == Severity.LOW
    assert scanner.should_reject_immediately(result) is False
    assert "spam detected" in scanner.get_moderation_summary(result)


def test_toxicity_is_normalized_by_length(scanner) -> None:
    """Test that the same violation weighs less in a longer text."""
    short = scanner.scan("you idiot")
    long = scanner.scan("you idiot " + "and then we went for a walk in the park " * 10)

    assert short.toxicity_score == pytest.approx(0.64)
    assert long.toxicity_score < short.toxicity_score


def test_toxicity_is_capped(scanner) -> None:
    """Test that toxicity never exceeds 1.0."""
    result = scanner.scan("stupid idiot ugly loser")

    assert result.toxicity_score == 1.0
    assert scanner.should_reject_immediately(result) is True


def test_toxicity_of_no_violations_is_zero(scanner) -> None:
    """Test that an empty violation list scores zero."""
    assert scanner.calculate_toxicity_score([], 500) == 0.0
