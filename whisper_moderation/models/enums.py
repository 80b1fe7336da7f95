"""
Enumeration definitions for the whisper moderation engine.
Closed value sets for violations, decisions, appeals and suspensions.
"""

from enum import Enum


class ViolationType(str, Enum):
    """Types of policy violations detected in a whisper."""
    HARASSMENT = "harassment"
    HATE_SPEECH = "hate_speech"
    VIOLENCE = "violence"
    SEXUAL_CONTENT = "sexual_content"
    DRUGS = "drugs"
    SPAM = "spam"
    PERSONAL_INFO = "personal_info"


class Severity(str, Enum):
    """
    Severity of a single violation.
    Ordering is total: critical > high > medium > low.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def step_down(self) -> "Severity":
        """One notch less severe; low stays low."""
        return _SEVERITY_STEP_DOWN[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

_SEVERITY_STEP_DOWN = {
    Severity.CRITICAL: Severity.HIGH,
    Severity.HIGH: Severity.MEDIUM,
    Severity.MEDIUM: Severity.LOW,
    Severity.LOW: Severity.LOW,
}


class SuggestedAction(str, Enum):
    """Action an adapter recommends for a violation."""
    WARN = "warn"
    FLAG = "flag"
    REJECT = "reject"
    BAN = "ban"

    def step_down(self) -> "SuggestedAction":
        """One notch more lenient; warn stays warn."""
        return _ACTION_STEP_DOWN[self]


_ACTION_STEP_DOWN = {
    SuggestedAction.BAN: SuggestedAction.REJECT,
    SuggestedAction.REJECT: SuggestedAction.FLAG,
    SuggestedAction.FLAG: SuggestedAction.WARN,
    SuggestedAction.WARN: SuggestedAction.WARN,
}


class ModerationStatus(str, Enum):
    """Final status of a moderated whisper."""
    APPROVED = "approved"
    FLAGGED = "flagged"
    REJECTED = "rejected"
    UNDER_REVIEW = "under_review"   # Internal failure, needs a human


class ContentRank(str, Enum):
    """Movie-style rating, least to most restricted."""
    G = "G"
    PG = "PG"
    PG13 = "PG13"
    R = "R"
    NC17 = "NC17"


class ReputationLevel(str, Enum):
    """User trust tier derived from the reputation score."""
    TRUSTED = "trusted"       # Reduced penalties, long appeal window
    VERIFIED = "verified"
    STANDARD = "standard"
    FLAGGED = "flagged"       # Short appeal window
    BANNED = "banned"         # No appeals


class AppealStatus(str, Enum):
    """Appeal lifecycle. Only pending is non-terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class AppealAction(str, Enum):
    """Moderator decision on an appeal."""
    APPROVE = "approve"
    REJECT = "reject"
    PARTIAL_APPROVE = "partial_approve"


class SuspensionType(str, Enum):
    """Kinds of account restriction."""
    WARNING = "warning"
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class BanType(str, Enum):
    """Visibility of a suspended user's content."""
    NONE = "none"                        # Warnings don't hide content
    CONTENT_VISIBLE = "content_visible"  # Content stays, user can't post
    CONTENT_HIDDEN = "content_hidden"    # Content hidden from everyone


class SuspensionAction(str, Enum):
    """Moderator review actions on an existing suspension."""
    EXTEND = "extend"
    REDUCE = "reduce"
    REMOVE = "remove"
    MAKE_PERMANENT = "make_permanent"


class SignalSource(str, Enum):
    """Adapters that can contribute violations to a decision."""
    LOCAL = "local"
    CATEGORY = "category"
    ATTRIBUTE = "attribute"
