"""
Category Scoring Service - paid per-category harm classifier (adapter A).
Posts the raw text and maps per-category scores in [0, 1] onto violations.
"""

import logging
import math
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from whisper_moderation.lib.errors import AdapterError, AdapterNotConfiguredError
from whisper_moderation.lib.metrics import MetricsExporter
from whisper_moderation.models.config import AdapterConfig
from whisper_moderation.models.enums import ViolationType, Severity, SuggestedAction
from whisper_moderation.models.moderation import (
    CategoryScores, CategoryScoringResult, Violation
)

logger = logging.getLogger(__name__)

ADAPTER_NAME = "category"


class CategoryScoringService:
    """
    Adapter for the category scorer.
    Network failures surface as AdapterError; the orchestrator skips the adapter.
    """

    MODEL = "text-moderation-latest"

    CATEGORY_TYPES = {
        'harassment': ViolationType.HARASSMENT,
        'harassment_threatening': ViolationType.HARASSMENT,
        'hate': ViolationType.HATE_SPEECH,
        'hate_threatening': ViolationType.HATE_SPEECH,
        'self_harm': ViolationType.VIOLENCE,
        'self_harm_instructions': ViolationType.VIOLENCE,
        'self_harm_intent': ViolationType.VIOLENCE,
        'sexual': ViolationType.SEXUAL_CONTENT,
        'sexual_minors': ViolationType.SEXUAL_CONTENT,
        'violence': ViolationType.VIOLENCE,
        'violence_graphic': ViolationType.VIOLENCE,
    }

    # Score above which a category becomes a violation
    HARASSMENT_THRESHOLD = 0.5
    HATE_SPEECH_THRESHOLD = 0.5
    VIOLENCE_THRESHOLD = 0.5
    SEXUAL_CONTENT_THRESHOLD = 0.6
    SELF_HARM_THRESHOLD = 0.5
    DEFAULT_THRESHOLD = 0.7

    # Severity families
    SEVERE_CATEGORIES = {'hate_threatening', 'harassment_threatening', 'violence_graphic', 'sexual_minors'}
    ESCALATING_CATEGORIES = {'hate', 'harassment', 'violence', 'self_harm_instructions'}
    MODERATE_CATEGORIES = {'sexual', 'self_harm', 'self_harm_intent'}

    # Score above which the whole whisper is rejected outright
    SEVERE_HARD_THRESHOLD = 0.8
    HARD_THRESHOLD = 0.95

    CHARS_PER_TOKEN = 4

    def __init__(self, config: AdapterConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    @MetricsExporter.track_adapter(ADAPTER_NAME)
    async def score_text(self, text: str) -> CategoryScoringResult:
        """Call the classifier. Raises AdapterError on any failure."""
        if not self.config.is_configured:
            raise AdapterNotConfiguredError(ADAPTER_NAME)

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self.transport) as client:
                response = await client.post(
                    self.config.api_url,
                    headers={
                        "Authorization": f"Bearer {self.config.api_key}",
                        "Content-Type": "application/json"
                    },
                    json={"input": text, "model": self.MODEL},
                )
        except httpx.HTTPError as e:
            raise AdapterError(ADAPTER_NAME, f"request failed: {e}") from e

        if response.status_code != 200:
            raise AdapterError(ADAPTER_NAME, f"API error: {response.status_code}")

        try:
            result = response.json()["results"][0]
            raw_scores = result["category_scores"]
            scores = CategoryScores(**{
                self.normalize_category(name): score for name, score in raw_scores.items()
                if self.normalize_category(name) in CategoryScores.model_fields
            })
            scoring = CategoryScoringResult(flagged=bool(result.get("flagged", False)), category_scores=scores)
        except (ValueError, KeyError, IndexError, TypeError, PydanticValidationError) as e:
            raise AdapterError(ADAPTER_NAME, f"malformed response: {e}") from e

        logger.info(self.get_moderation_summary(scoring))
        return scoring

    @staticmethod
    def normalize_category(name: str) -> str:
        """'self-harm/intent' -> 'self_harm_intent'"""
        return name.replace('/', '_').replace('-', '_')

    def convert_to_violations(self, result: CategoryScoringResult) -> List[Violation]:
        violations: List[Violation] = []

        for category, score in result.category_scores.model_dump().items():
            violation_type = self.CATEGORY_TYPES.get(category)
            if violation_type is None or score <= self.threshold_for(category):
                continue
            violations.append(Violation(
                type=violation_type,
                severity=self.determine_severity(category, score),
                confidence=score,
                description=f"Category scorer detected {category} with {score:.1%} confidence",
                suggested_action=self.suggested_action(violation_type, score),
            ))

        return violations

    def threshold_for(self, category: str) -> float:
        if category.startswith('harassment'):
            return self.HARASSMENT_THRESHOLD
        if category.startswith('hate'):
            return self.HATE_SPEECH_THRESHOLD
        if category.startswith('violence'):
            return self.VIOLENCE_THRESHOLD
        if category.startswith('sexual'):
            return self.SEXUAL_CONTENT_THRESHOLD
        if category.startswith('self_harm'):
            return self.SELF_HARM_THRESHOLD
        return self.DEFAULT_THRESHOLD

    def determine_severity(self, category: str, score: float) -> Severity:
        if category in self.SEVERE_CATEGORIES:
            if score > 0.9:
                return Severity.CRITICAL
            return Severity.HIGH if score > 0.7 else Severity.MEDIUM

        if category in self.ESCALATING_CATEGORIES:
            if score > 0.8:
                return Severity.HIGH
            return Severity.MEDIUM if score > 0.6 else Severity.LOW

        if category in self.MODERATE_CATEGORIES:
            return Severity.MEDIUM if score > 0.7 else Severity.LOW

        if score > 0.9:
            return Severity.CRITICAL
        if score > 0.7:
            return Severity.HIGH
        if score > 0.5:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def suggested_action(violation_type: ViolationType, confidence: float) -> SuggestedAction:
        harmful = violation_type in (
            ViolationType.HARASSMENT, ViolationType.HATE_SPEECH, ViolationType.VIOLENCE
        )
        if confidence > 0.9:
            return SuggestedAction.BAN if harmful else SuggestedAction.REJECT
        if confidence > 0.7:
            return SuggestedAction.REJECT if harmful else SuggestedAction.FLAG
        return SuggestedAction.WARN

    def should_reject(self, result: CategoryScoringResult) -> bool:
        """Any category above its hard threshold."""
        for category, score in result.category_scores.model_dump().items():
            hard = self.SEVERE_HARD_THRESHOLD if category in self.SEVERE_CATEGORIES else self.HARD_THRESHOLD
            if score > hard:
                return True
        return False

    def estimate_cost(self, text_length: int) -> float:
        """Roughly four characters per token."""
        return math.ceil(text_length / self.CHARS_PER_TOKEN) * self.config.cost_per_token

    def get_moderation_summary(self, result: CategoryScoringResult) -> str:
        flagged: Dict[str, float] = {
            category: score for category, score in result.category_scores.model_dump().items()
            if score > 0.5
        }
        if not flagged:
            return "Category scorer: no violations detected"
        details = ', '.join(f"{category} ({score:.1%})" for category, score in flagged.items())
        return f"Category scorer: {details}"
