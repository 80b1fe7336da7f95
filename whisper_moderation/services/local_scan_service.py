"""
Local Scan Service - free, synchronous keyword and pattern filtering.
Runs before any paid classifier; never makes a network call and never raises.
"""

import logging
import re
from typing import Dict, List, Pattern, Tuple

from whisper_moderation.models.enums import ViolationType, Severity, SuggestedAction
from whisper_moderation.models.moderation import LocalScanResult, Violation

logger = logging.getLogger(__name__)


def _keyword_regex(keyword: str) -> Pattern:
    """Whole-word, case-insensitive match; inner spaces match any whitespace run."""
    body = r'\s+'.join(re.escape(part) for part in keyword.split())
    return re.compile(rf'\b{body}\b', re.IGNORECASE)


class LocalScanService:
    """
    Keyword/pattern scanner.
    Produces violations, a toxicity score and a spam score for one text.
    """

    KEYWORDS: Dict[ViolationType, List[str]] = {
        ViolationType.HARASSMENT: [
            'kill yourself', 'kys', 'worthless', 'stupid', 'idiot', 'loser',
            'ugly', 'hate you', 'shut up', 'piece of shit',
        ],
        ViolationType.HATE_SPEECH: [
            'nazi', 'hitler', 'white power', 'racist', 'terrorist',
        ],
        ViolationType.VIOLENCE: [
            'kill you', 'murder', 'bomb', 'shoot you', 'stab you', 'punch you', 'attack',
        ],
        ViolationType.SEXUAL_CONTENT: [
            'nude', 'nudes', 'sex', 'porn', 'naked',
        ],
        ViolationType.DRUGS: [
            'cocaine', 'heroin', 'meth', 'mdma', 'drugs', 'buy weed',
        ],
        ViolationType.SPAM: [
            'buy now', 'click here', 'free money', 'limited time offer',
            'act now', 'make money fast', 'follow for follow', 'dm me',
        ],
    }

    # Severity overrides, checked before the per-category default
    CRITICAL_KEYWORDS = {
        'kill yourself', 'kys', 'kill you', 'bomb', 'terrorist',
        'nazi', 'hitler', 'white power',
    }
    HIGH_SEVERITY_KEYWORDS = {
        'hate you', 'stupid', 'idiot', 'ugly', 'worthless',
        'punch you', 'stab you', 'shoot you', 'attack', 'murder',
    }

    DEFAULT_SEVERITY = {
        ViolationType.HARASSMENT: Severity.MEDIUM,
        ViolationType.HATE_SPEECH: Severity.MEDIUM,
        ViolationType.VIOLENCE: Severity.MEDIUM,
        ViolationType.SEXUAL_CONTENT: Severity.LOW,
        ViolationType.DRUGS: Severity.LOW,
        ViolationType.SPAM: Severity.LOW,
    }

    SUGGESTED_ACTIONS = {
        ViolationType.HARASSMENT: SuggestedAction.REJECT,
        ViolationType.HATE_SPEECH: SuggestedAction.REJECT,
        ViolationType.VIOLENCE: SuggestedAction.REJECT,
        ViolationType.SEXUAL_CONTENT: SuggestedAction.FLAG,
        ViolationType.DRUGS: SuggestedAction.FLAG,
        ViolationType.SPAM: SuggestedAction.WARN,
        ViolationType.PERSONAL_INFO: SuggestedAction.REJECT,
    }

    PERSONAL_INFO_PATTERNS = [
        r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b',                          # Phone
        r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b',      # Email
        r'\b\d{3}-\d{2}-\d{4}\b',                                   # SSN
        r'\b\d{4}[- ]?\d{4}[- ]?\d{4}[- ]?\d{4}\b',                 # Credit card
        r'(?i)\b\d+\s+[A-Za-z\s]+(?:street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr|lane|ln)\b',
    ]

    SEVERITY_WEIGHTS = {
        Severity.LOW: 0.2,
        Severity.MEDIUM: 0.5,
        Severity.HIGH: 0.8,
        Severity.CRITICAL: 1.0,
    }

    KEYWORD_CONFIDENCE = 0.8
    PERSONAL_INFO_CONFIDENCE = 0.9

    # Spam heuristics
    UPPERCASE_RATIO_THRESHOLD = 0.7
    PUNCTUATION_RATIO_THRESHOLD = 0.1
    REPEATED_CHAR_RUNS_THRESHOLD = 2
    SPAM_KEYWORD_WEIGHT = 0.1
    MAX_SPAM_KEYWORD_SCORE = 0.5

    # Flagging thresholds
    TOXICITY_THRESHOLD = 0.5
    SPAM_THRESHOLD = 0.5
    IMMEDIATE_REJECT_TOXICITY = 0.8

    def __init__(self):
        # Compile patterns for performance
        self.keyword_regex: List[Tuple[ViolationType, str, Pattern]] = [
            (violation_type, keyword, _keyword_regex(keyword))
            for violation_type, keywords in self.KEYWORDS.items()
            for keyword in keywords
        ]
        self.personal_info_regex = [re.compile(p) for p in self.PERSONAL_INFO_PATTERNS]
        self.uppercase_regex = re.compile(r'[A-Z]')
        self.punctuation_run_regex = re.compile(r'[!?]{2,}')
        self.repeated_char_regex = re.compile(r'(.)\1{2,}')

    def scan(self, text: str) -> LocalScanResult:
        """Scan one text. Empty input yields a clean result."""
        violations, matched_keywords = self._check_keywords(text)

        personal_info = self.detect_personal_info(text)
        if personal_info:
            violations.append(Violation(
                type=ViolationType.PERSONAL_INFO,
                severity=Severity.HIGH,
                confidence=self.PERSONAL_INFO_CONFIDENCE,
                description="Contains personal information",
                suggested_action=SuggestedAction.REJECT,
            ))

        toxicity = self.calculate_toxicity_score(violations, len(text))
        spam = self.calculate_spam_score(text)

        if spam > self.SPAM_THRESHOLD:
            violations.append(Violation(
                type=ViolationType.SPAM,
                severity=Severity.LOW,
                confidence=spam,
                description=f"Spam patterns detected ({spam:.0%})",
                suggested_action=SuggestedAction.WARN,
            ))

        result = LocalScanResult(
            flagged=bool(violations) or toxicity > self.TOXICITY_THRESHOLD or spam > self.SPAM_THRESHOLD,
            violations=violations,
            matched_keywords=matched_keywords,
            toxicity_score=toxicity,
            spam_score=spam,
            personal_info_detected=personal_info,
            critical_keyword_matched=any(k in self.CRITICAL_KEYWORDS for k in matched_keywords),
        )
        logger.debug(self.get_moderation_summary(result))
        return result

    def should_reject_immediately(self, result: LocalScanResult) -> bool:
        """Critical keyword, very high toxicity, or personal info."""
        return (
            result.critical_keyword_matched
            or result.toxicity_score > self.IMMEDIATE_REJECT_TOXICITY
            or result.personal_info_detected
        )

    def _check_keywords(self, text: str) -> Tuple[List[Violation], List[str]]:
        violations: List[Violation] = []
        matched: List[str] = []

        for violation_type, keyword, regex in self.keyword_regex:
            match = regex.search(text)
            if not match:
                continue
            matched.append(keyword)
            violations.append(Violation(
                type=violation_type,
                severity=self._keyword_severity(violation_type, keyword),
                confidence=self.KEYWORD_CONFIDENCE,
                description=f'Contains {violation_type.value} keyword: "{keyword}"',
                suggested_action=self.SUGGESTED_ACTIONS[violation_type],
                span=(match.start(), match.end()),
            ))

        return violations, matched

    def _keyword_severity(self, violation_type: ViolationType, keyword: str) -> Severity:
        if keyword in self.CRITICAL_KEYWORDS:
            return Severity.CRITICAL
        if keyword in self.HIGH_SEVERITY_KEYWORDS:
            return Severity.HIGH
        return self.DEFAULT_SEVERITY.get(violation_type, Severity.LOW)

    def detect_personal_info(self, text: str) -> bool:
        return any(regex.search(text) for regex in self.personal_info_regex)

    def calculate_toxicity_score(self, violations: List[Violation], text_length: int) -> float:
        """Severity-weighted confidence sum, normalized per 100 characters."""
        if not violations:
            return 0.0
        total_weight = sum(self.SEVERITY_WEIGHTS[v.severity] * v.confidence for v in violations)
        return min(1.0, total_weight / max(1, text_length / 100))

    def calculate_spam_score(self, text: str) -> float:
        score = 0.0
        length = max(1, len(text))

        if len(self.uppercase_regex.findall(text)) / length > self.UPPERCASE_RATIO_THRESHOLD:
            score += 0.3
        if len(self.punctuation_run_regex.findall(text)) / length > self.PUNCTUATION_RATIO_THRESHOLD:
            score += 0.2
        if len(self.repeated_char_regex.findall(text)) > self.REPEATED_CHAR_RUNS_THRESHOLD:
            score += 0.2

        keyword_hits = sum(
            1 for violation_type, _, regex in self.keyword_regex
            if violation_type == ViolationType.SPAM and regex.search(text)
        )
        score += min(self.MAX_SPAM_KEYWORD_SCORE, keyword_hits * self.SPAM_KEYWORD_WEIGHT)

        return min(1.0, score)

    def get_moderation_summary(self, result: LocalScanResult) -> str:
        """One-line summary for logs."""
        if not result.flagged:
            return "Local scan: no violations detected"

        parts = []
        if result.matched_keywords:
            parts.append(f"{len(result.matched_keywords)} keyword violations")
        if result.toxicity_score > self.TOXICITY_THRESHOLD:
            parts.append(f"high toxicity ({result.toxicity_score:.1%})")
        if result.spam_score > self.SPAM_THRESHOLD:
            parts.append(f"spam detected ({result.spam_score:.1%})")
        if result.personal_info_detected:
            parts.append("personal information detected")
        return f"Local scan: {', '.join(parts)}"
