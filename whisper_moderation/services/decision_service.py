"""
Decision Service - merges adapter violations and derives rank, status and confidence.
Everything here is a pure function of its inputs.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from whisper_moderation.models.config import DEFAULT_RANK_CEILINGS, RankCeilings
from whisper_moderation.models.enums import ContentRank, ModerationStatus, Severity
from whisper_moderation.models.moderation import (
    AttributeScores, CategoryScoringResult, LocalScanResult, Violation
)

MINOR_SAFE_RANKS = {ContentRank.G, ContentRank.PG}

# Least to most permissive
RANK_ORDER = [ContentRank.G, ContentRank.PG, ContentRank.PG13, ContentRank.R, ContentRank.NC17]


@dataclass
class CategoryMaxima:
    """Highest raw score per rating category across all adapters."""
    toxicity: float = 0.0
    sexual: float = 0.0
    violence: float = 0.0
    hate: float = 0.0

    def fits(self, ceilings: RankCeilings) -> bool:
        return (
            self.toxicity <= ceilings.toxicity
            and self.sexual <= ceilings.sexual
            and self.violence <= ceilings.violence
            and self.hate <= ceilings.hate
        )


class DecisionService:
    """
    Merge and rank engine.
    Violation order is local -> category -> attribute before sorting.
    """

    def __init__(self, rank_ceilings: Optional[Dict[ContentRank, RankCeilings]] = None):
        self.rank_ceilings = rank_ceilings or DEFAULT_RANK_CEILINGS

    @staticmethod
    def deduplicate(violations: List[Violation]) -> List[Violation]:
        """First (type, severity) occurrence wins; stable sort by severity, highest first."""
        seen = set()
        unique: List[Violation] = []
        for violation in violations:
            key = (violation.type, violation.severity)
            if key in seen:
                continue
            seen.add(key)
            unique.append(violation)
        return sorted(unique, key=lambda v: v.severity.rank, reverse=True)

    @staticmethod
    def category_maxima(
        local: Optional[LocalScanResult] = None,
        category: Optional[CategoryScoringResult] = None,
        attribute: Optional[AttributeScores] = None,
    ) -> CategoryMaxima:
        """Raw per-category maxima; absent adapters contribute nothing."""
        maxima = CategoryMaxima()

        if local is not None:
            maxima.toxicity = max(maxima.toxicity, local.toxicity_score)

        if category is not None:
            scores = category.category_scores
            maxima.toxicity = max(maxima.toxicity, scores.harassment)
            maxima.sexual = max(maxima.sexual, scores.sexual, scores.sexual_minors)
            maxima.violence = max(maxima.violence, scores.violence, scores.violence_graphic)
            maxima.hate = max(maxima.hate, scores.hate, scores.hate_threatening)

        if attribute is not None:
            maxima.toxicity = max(maxima.toxicity, attribute.toxicity)
            maxima.sexual = max(maxima.sexual, attribute.sexually_explicit)
            maxima.violence = max(maxima.violence, attribute.threat)
            maxima.hate = max(maxima.hate, attribute.identity_attack)

        return maxima

    def content_rank(self, maxima: CategoryMaxima) -> ContentRank:
        """First rank, G upwards, whose ceilings hold every maximum."""
        for rank in RANK_ORDER:
            ceilings = self.rank_ceilings.get(rank)
            if ceilings is not None and maxima.fits(ceilings):
                return rank
        return ContentRank.NC17

    @staticmethod
    def is_minor_safe(rank: ContentRank) -> bool:
        return rank in MINOR_SAFE_RANKS

    @staticmethod
    def determine_status(violations: List[Violation]) -> ModerationStatus:
        severities = {v.severity for v in violations}
        if Severity.CRITICAL in severities or Severity.HIGH in severities:
            return ModerationStatus.REJECTED
        if Severity.MEDIUM in severities:
            return ModerationStatus.FLAGGED
        return ModerationStatus.APPROVED

    @staticmethod
    def calculate_confidence(violations: List[Violation]) -> float:
        if not violations:
            return 1.0
        return sum(v.confidence for v in violations) / len(violations)

    @staticmethod
    def is_appealable(status: ModerationStatus, violations: List[Violation]) -> bool:
        if status == ModerationStatus.APPROVED:
            return False
        return not any(v.severity == Severity.CRITICAL for v in violations)

    @staticmethod
    def build_reason(status: ModerationStatus, violations: List[Violation]) -> str:
        if not violations:
            return "Content approved"
        types = ', '.join(v.type.value for v in violations)
        return f"Content {status.value} due to: {types}"
