"""
Violation and Moderation Result data models.
Pydantic models for type safety and validation.
"""

from typing import Optional, List, Tuple
from pydantic import BaseModel, ConfigDict, Field

from whisper_moderation.models.enums import (
    ViolationType, Severity, SuggestedAction,
    ModerationStatus, ContentRank, SignalSource
)


class Violation(BaseModel):
    """
    A single detected policy violation.
    Produced by an adapter; severity and suggested action may be relaxed
    once by reputation weighting.
    """
    type: ViolationType
    severity: Severity
    confidence: float = Field(ge=0.0, le=1.0)
    description: str
    suggested_action: SuggestedAction
    span: Optional[Tuple[int, int]] = None  # (start, end) offsets in the text

    # Set once the reputation step-down has been applied
    reputation_adjusted: bool = False


class LocalScanResult(BaseModel):
    """Local keyword/pattern scanner output."""
    flagged: bool = False
    violations: List[Violation] = Field(default_factory=list)
    matched_keywords: List[str] = Field(default_factory=list)
    toxicity_score: float = Field(ge=0.0, le=1.0, default=0.0)
    spam_score: float = Field(ge=0.0, le=1.0, default=0.0)
    personal_info_detected: bool = False
    critical_keyword_matched: bool = False


class CategoryScores(BaseModel):
    """Per-category scores from the category scorer (adapter A)."""
    harassment: float = Field(ge=0.0, le=1.0, default=0.0)
    harassment_threatening: float = Field(ge=0.0, le=1.0, default=0.0)
    hate: float = Field(ge=0.0, le=1.0, default=0.0)
    hate_threatening: float = Field(ge=0.0, le=1.0, default=0.0)
    self_harm: float = Field(ge=0.0, le=1.0, default=0.0)
    self_harm_instructions: float = Field(ge=0.0, le=1.0, default=0.0)
    self_harm_intent: float = Field(ge=0.0, le=1.0, default=0.0)
    sexual: float = Field(ge=0.0, le=1.0, default=0.0)
    sexual_minors: float = Field(ge=0.0, le=1.0, default=0.0)
    violence: float = Field(ge=0.0, le=1.0, default=0.0)
    violence_graphic: float = Field(ge=0.0, le=1.0, default=0.0)


class CategoryScoringResult(BaseModel):
    """Category scorer response."""
    flagged: bool = False
    category_scores: CategoryScores = Field(default_factory=CategoryScores)


class AttributeScores(BaseModel):
    """
    Attribute scorer (adapter B) response.
    Only a subset maps to violations; the rest are kept for logging.
    """
    toxicity: float = Field(ge=0.0, le=1.0, default=0.0)
    severe_toxicity: float = Field(ge=0.0, le=1.0, default=0.0)
    identity_attack: float = Field(ge=0.0, le=1.0, default=0.0)
    insult: float = Field(ge=0.0, le=1.0, default=0.0)
    profanity: float = Field(ge=0.0, le=1.0, default=0.0)
    threat: float = Field(ge=0.0, le=1.0, default=0.0)
    sexually_explicit: float = Field(ge=0.0, le=1.0, default=0.0)
    flirtation: float = Field(ge=0.0, le=1.0, default=0.0)
    attack_on_author: float = Field(ge=0.0, le=1.0, default=0.0)
    attack_on_commenter: float = Field(ge=0.0, le=1.0, default=0.0)
    incoherent: float = Field(ge=0.0, le=1.0, default=0.0)
    inflammatory: float = Field(ge=0.0, le=1.0, default=0.0)
    likely_to_reject: float = Field(ge=0.0, le=1.0, default=0.0)
    obscene: float = Field(ge=0.0, le=1.0, default=0.0)
    spam: float = Field(ge=0.0, le=1.0, default=0.0)
    unsubstantial: float = Field(ge=0.0, le=1.0, default=0.0)


class ModerationResult(BaseModel):
    """
    Immutable result of one moderation call.
    is_minor_safe follows content_rank; appealable is false for approved
    content and for anything carrying a critical violation.
    """
    model_config = ConfigDict(frozen=True)

    status: ModerationStatus
    content_rank: ContentRank
    is_minor_safe: bool
    violations: List[Violation] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    moderation_time_ms: int = 0
    appealable: bool
    reason: str
    reputation_impact: int = 0

    # Adapters that actually produced a result for this call
    sources: List[SignalSource] = Field(default_factory=list)
