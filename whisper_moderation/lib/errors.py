"""
Exception hierarchy for the moderation engine.
"""


class ModerationError(Exception):
    """Base class for all moderation engine errors."""


class UnderageUserError(ModerationError):
    """User is below the minimum age; nothing is moderated."""

    def __init__(self, user_age: int, minimum_age: int = 13):
        self.user_age = user_age
        self.minimum_age = minimum_age
        super().__init__(f"User must be at least {minimum_age} years old")


class AdapterError(ModerationError):
    """A network classifier failed (transport, auth or response format)."""

    def __init__(self, adapter: str, message: str):
        self.adapter = adapter
        super().__init__(f"{adapter}: {message}")


class AdapterNotConfiguredError(AdapterError):
    """Classifier has no API key."""

    def __init__(self, adapter: str):
        super().__init__(adapter, "API key not configured")


class ValidationError(ModerationError):
    """Malformed input to an appeal, suspension or adapter call."""


class TextTooLongError(ValidationError):
    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(f"Text length {length} exceeds limit of {limit} characters")


class NotFoundError(ModerationError):
    """Entity required by a write or review path does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidTransitionError(ModerationError):
    """Operation not allowed in the entity's current state."""
