# tests/test_decision_service.py
"""Tests for merging violations and deriving rank, status and confidence."""

import pytest

from whisper_moderation.models.config import DEFAULT_RANK_CEILINGS
from whisper_moderation.models.enums import (
    ContentRank, ModerationStatus, Severity, SuggestedAction, ViolationType
)
from whisper_moderation.models.moderation import (
    AttributeScores, CategoryScores, CategoryScoringResult, LocalScanResult, Violation
)
from whisper_moderation.services.decision_service import (
    RANK_ORDER, CategoryMaxima, DecisionService
)


def violation(
    violation_type: ViolationType = ViolationType.HARASSMENT,
    severity: Severity = Severity.MEDIUM,
    confidence: float = 0.8,
    description: str = "test",
) -> Violation:
    return Violation(
        type=violation_type,
        severity=severity,
        confidence=confidence,
        description=description,
        suggested_action=SuggestedAction.FLAG,
    )


@pytest.fixture()
def decisions() -> DecisionService:
    return DecisionService()


def test_deduplicate_keeps_first_occurrence_and_sorts(decisions) -> None:
    """Test that the first (type, severity) wins and severity sorts descending."""
    merged = decisions.deduplicate([
        violation(ViolationType.SPAM, Severity.LOW, description="local spam"),
        violation(ViolationType.HARASSMENT, Severity.MEDIUM, description="local"),
        violation(ViolationType.HARASSMENT, Severity.MEDIUM, description="category"),
        violation(ViolationType.VIOLENCE, Severity.CRITICAL, description="attribute"),
        violation(ViolationType.HARASSMENT, Severity.HIGH, description="attribute"),
    ])

    assert [(v.type, v.severity) for v in merged] == [
        (ViolationType.VIOLENCE, Severity.CRITICAL),
        (ViolationType.HARASSMENT, Severity.HIGH),
        (ViolationType.HARASSMENT, Severity.MEDIUM),
        (ViolationType.SPAM, Severity.LOW),
    ]
    medium = merged[2]
    assert medium.description == "local"


def test_deduplicate_is_idempotent(decisions) -> None:
    """Test that merging a merged list changes nothing."""
    once = decisions.deduplicate([
        violation(ViolationType.DRUGS, Severity.LOW),
        violation(ViolationType.HARASSMENT, Severity.HIGH),
        violation(ViolationType.DRUGS, Severity.LOW, description="dup"),
        violation(ViolationType.SPAM, Severity.LOW),
    ])

    assert decisions.deduplicate(once) == once


def test_deduplicate_is_stable_within_severity(decisions) -> None:
    """Test that equal severities keep their input order."""
    merged = decisions.deduplicate([
        violation(ViolationType.SPAM, Severity.LOW),
        violation(ViolationType.DRUGS, Severity.LOW),
    ])

    assert [v.type for v in merged] == [ViolationType.SPAM, ViolationType.DRUGS]


@pytest.mark.parametrize("severities,expected", [
    ([], ModerationStatus.APPROVED),
    ([Severity.LOW, Severity.LOW], ModerationStatus.APPROVED),
    ([Severity.LOW, Severity.MEDIUM], ModerationStatus.FLAGGED),
    ([Severity.MEDIUM, Severity.HIGH], ModerationStatus.REJECTED),
    ([Severity.CRITICAL], ModerationStatus.REJECTED),
])
def test_determine_status(decisions, severities, expected) -> None:
    """Test status from the worst severity present."""
    assert decisions.determine_status([violation(severity=s) for s in severities]) == expected


def test_status_never_improves_when_violations_are_added(decisions) -> None:
    """Test that adding a violation can only worsen the status."""
    order = [ModerationStatus.APPROVED, ModerationStatus.FLAGGED, ModerationStatus.REJECTED]
    current = []
    previous = decisions.determine_status(current)

    for severity in [Severity.LOW, Severity.MEDIUM, Severity.LOW, Severity.HIGH, Severity.MEDIUM]:
        current.append(violation(severity=severity))
        status = decisions.determine_status(current)
        assert order.index(status) >= order.index(previous)
        previous = status


def test_confidence_is_mean_or_one(decisions) -> None:
    """Test mean confidence, with full confidence for a clean result."""
    assert decisions.calculate_confidence([]) == 1.0
    assert decisions.calculate_confidence([
        violation(confidence=0.6), violation(confidence=0.9)
    ]) == pytest.approx(0.75)


def test_appealability(decisions) -> None:
    """Test that approved and critical results are never appealable."""
    assert decisions.is_appealable(ModerationStatus.APPROVED, []) is False
    assert decisions.is_appealable(ModerationStatus.FLAGGED, [violation(severity=Severity.MEDIUM)]) is True
    assert decisions.is_appealable(
        ModerationStatus.REJECTED, [violation(severity=Severity.CRITICAL)]
    ) is False


def test_build_reason(decisions) -> None:
    """Test the reason string for clean and violating content."""
    assert decisions.build_reason(ModerationStatus.APPROVED, []) == "Content approved"
    reason = decisions.build_reason(ModerationStatus.REJECTED, [
        violation(ViolationType.VIOLENCE, Severity.HIGH),
        violation(ViolationType.SPAM, Severity.LOW),
    ])
    assert reason == "Content rejected due to: violence, spam"


def test_rank_ceilings_are_nested() -> None:
    """Test that each rank's ceilings contain the previous rank's."""
    for stricter, looser in zip(RANK_ORDER, RANK_ORDER[1:]):
        a, b = DEFAULT_RANK_CEILINGS[stricter], DEFAULT_RANK_CEILINGS[looser]
        assert a.toxicity <= b.toxicity
        assert a.sexual <= b.sexual
        assert a.violence <= b.violence
        assert a.hate <= b.hate


@pytest.mark.parametrize("maxima,expected", [
    (CategoryMaxima(), ContentRank.G),
    (CategoryMaxima(toxicity=0.1), ContentRank.G),
    (CategoryMaxima(toxicity=0.25), ContentRank.PG),
    (CategoryMaxima(sexual=0.3), ContentRank.PG13),
    (CategoryMaxima(hate=0.45), ContentRank.R),
    (CategoryMaxima(violence=0.71), ContentRank.NC17),
    (CategoryMaxima(toxicity=0.05, sexual=0.55), ContentRank.R),
])
def test_content_rank(decisions, maxima, expected) -> None:
    """Test the first rank whose ceilings hold every maximum."""
    assert decisions.content_rank(maxima) == expected


def test_content_rank_is_monotone(decisions) -> None:
    """Test that raising one score never yields a stricter rank."""
    previous = ContentRank.G
    for step in range(11):
        rank = decisions.content_rank(CategoryMaxima(violence=step / 10))
        assert RANK_ORDER.index(rank) >= RANK_ORDER.index(previous)
        previous = rank


def test_minor_safe_ranks(decisions) -> None:
    """Test that only G and PG are minor safe."""
    assert [r for r in RANK_ORDER if decisions.is_minor_safe(r)] == [ContentRank.G, ContentRank.PG]


def test_category_maxima_across_adapters(decisions) -> None:
    """Test that maxima take the highest score from every adapter."""
    maxima = decisions.category_maxima(
        LocalScanResult(toxicity_score=0.4),
        CategoryScoringResult(category_scores=CategoryScores(
            harassment=0.2, sexual_minors=0.3, violence_graphic=0.5, hate=0.1
        )),
        AttributeScores(toxicity=0.6, sexually_explicit=0.1, threat=0.2, identity_attack=0.35),
    )

    assert maxima.toxicity == pytest.approx(0.6)
    assert maxima.sexual == pytest.approx(0.3)
    assert maxima.violence == pytest.approx(0.5)
    assert maxima.hate == pytest.approx(0.35)


def test_category_maxima_with_absent_adapters(decisions) -> None:
    """Test that missing adapters contribute nothing."""
    assert decisions.category_maxima() == CategoryMaxima()
