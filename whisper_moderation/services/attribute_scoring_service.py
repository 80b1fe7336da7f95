"""
Attribute Scoring Service - paid toxicity-attribute classifier (adapter B).
Requests 16 attribute scores; a fixed subset of them maps to violations.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from whisper_moderation.lib.errors import AdapterError, AdapterNotConfiguredError, TextTooLongError
from whisper_moderation.lib.metrics import MetricsExporter
from whisper_moderation.models.config import AdapterConfig
from whisper_moderation.models.enums import ViolationType, Severity, SuggestedAction
from whisper_moderation.models.moderation import AttributeScores, Violation

logger = logging.getLogger(__name__)

ADAPTER_NAME = "attribute"


class AttributeScoringService:
    """
    Adapter for the attribute scorer.
    Oversize text is a validation error raised before any request is made.
    """

    REQUESTED_ATTRIBUTES = [
        'TOXICITY', 'SEVERE_TOXICITY', 'IDENTITY_ATTACK', 'INSULT',
        'PROFANITY', 'THREAT', 'SEXUALLY_EXPLICIT', 'FLIRTATION',
        'ATTACK_ON_AUTHOR', 'ATTACK_ON_COMMENTER', 'INCOHERENT', 'INFLAMMATORY',
        'LIKELY_TO_REJECT', 'OBSCENE', 'SPAM', 'UNSUBSTANTIAL',
    ]

    # Attribute -> (violation type, threshold)
    ATTRIBUTE_MAPPING = {
        'toxicity': (ViolationType.HARASSMENT, 0.7),
        'severe_toxicity': (ViolationType.HARASSMENT, 0.5),
        'identity_attack': (ViolationType.HATE_SPEECH, 0.5),
        'insult': (ViolationType.HARASSMENT, 0.7),
        'profanity': (ViolationType.HARASSMENT, 0.8),
        'threat': (ViolationType.VIOLENCE, 0.5),
        'sexually_explicit': (ViolationType.SEXUAL_CONTENT, 0.7),
        'spam': (ViolationType.SPAM, 0.8),
    }
    DEFAULT_THRESHOLD = 0.5

    # Severity families
    CRITICAL_CAPABLE = {'severe_toxicity', 'threat', 'identity_attack'}
    HIGH_CAPABLE = {'toxicity', 'insult', 'profanity'}
    MEDIUM_CAPABLE = {'sexually_explicit', 'spam'}

    REJECT_THRESHOLD = 0.8
    TOXICITY_REJECT_THRESHOLD = 0.9

    def __init__(self, config: AdapterConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    def is_within_limits(self, text: str) -> bool:
        return self.config.max_text_length is None or len(text) <= self.config.max_text_length

    def build_request(self, text: str) -> Dict[str, Any]:
        return {
            "comment": {"text": text},
            "requestedAttributes": {name: {} for name in self.REQUESTED_ATTRIBUTES},
            "languages": ["en"],
            "doNotStore": True,
        }

    async def analyze_text(self, text: str) -> AttributeScores:
        """
        Call the classifier.
        Raises TextTooLongError for oversize input and AdapterError on failure.
        """
        if not self.is_within_limits(text):
            raise TextTooLongError(len(text), self.config.max_text_length)
        return await self._analyze(text)

    @MetricsExporter.track_adapter(ADAPTER_NAME)
    async def _analyze(self, text: str) -> AttributeScores:
        if not self.config.is_configured:
            raise AdapterNotConfiguredError(ADAPTER_NAME)

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self.transport) as client:
                response = await client.post(
                    self.config.api_url,
                    params={"key": self.config.api_key},
                    headers={"Content-Type": "application/json"},
                    json=self.build_request(text),
                )
        except httpx.HTTPError as e:
            raise AdapterError(ADAPTER_NAME, f"request failed: {e}") from e

        if response.status_code != 200:
            raise AdapterError(ADAPTER_NAME, f"API error: {response.status_code}")

        try:
            attribute_scores = response.json()["attributeScores"]
            scores = AttributeScores(**{
                name.lower(): self._summary_score(attribute_scores.get(name))
                for name in self.REQUESTED_ATTRIBUTES
            })
        except (ValueError, KeyError, TypeError, AttributeError, PydanticValidationError) as e:
            raise AdapterError(ADAPTER_NAME, f"malformed response: {e}") from e

        logger.info(self.get_moderation_summary(scores))
        return scores

    @staticmethod
    def _summary_score(attribute: Optional[Dict[str, Any]]) -> float:
        if not attribute:
            return 0.0
        return float(attribute.get("summaryScore", {}).get("value") or 0.0)

    def threshold_for(self, attribute: str) -> float:
        mapping = self.ATTRIBUTE_MAPPING.get(attribute)
        return mapping[1] if mapping else self.DEFAULT_THRESHOLD

    def convert_to_violations(self, scores: AttributeScores) -> List[Violation]:
        violations: List[Violation] = []
        values = scores.model_dump()

        for attribute, (violation_type, threshold) in self.ATTRIBUTE_MAPPING.items():
            score = values[attribute]
            if score <= threshold:
                continue
            violations.append(Violation(
                type=violation_type,
                severity=self.determine_severity(attribute, score),
                confidence=score,
                description=f"Attribute scorer detected {attribute} with {score:.1%} confidence",
                suggested_action=self.suggested_action(violation_type, score),
            ))

        return violations

    def determine_severity(self, attribute: str, score: float) -> Severity:
        if attribute in self.CRITICAL_CAPABLE:
            if score > 0.9:
                return Severity.CRITICAL
            return Severity.HIGH if score > 0.7 else Severity.MEDIUM

        if attribute in self.HIGH_CAPABLE:
            if score > 0.8:
                return Severity.HIGH
            return Severity.MEDIUM if score > 0.6 else Severity.LOW

        if attribute in self.MEDIUM_CAPABLE:
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
            if harmful:
                return SuggestedAction.BAN
            return SuggestedAction.FLAG if violation_type == ViolationType.SPAM else SuggestedAction.REJECT
        if confidence > 0.7:
            return SuggestedAction.REJECT if harmful else SuggestedAction.FLAG
        return SuggestedAction.WARN

    def should_reject(self, scores: AttributeScores) -> bool:
        return (
            scores.severe_toxicity > self.REJECT_THRESHOLD
            or scores.threat > self.REJECT_THRESHOLD
            or scores.identity_attack > self.REJECT_THRESHOLD
            or scores.toxicity > self.TOXICITY_REJECT_THRESHOLD
        )

    def estimate_cost(self) -> float:
        """Charged per request, not per character."""
        return self.config.cost_per_request

    def get_moderation_summary(self, scores: AttributeScores) -> str:
        over = [
            f"{attribute} ({score:.1%})"
            for attribute, score in scores.model_dump().items()
            if score > self.threshold_for(attribute)
        ]
        if not over:
            return "Attribute scorer: no violations detected"
        return f"Attribute scorer: {', '.join(over)}"
