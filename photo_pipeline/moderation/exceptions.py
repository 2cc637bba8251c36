class ModerationError(Exception):
    """Raised when moderation fails."""


class ModerationValidationError(ModerationError):
    """Raised when the classifier response fails domain validation."""


class ModerationNetworkError(ModerationError):
    """Raised when the classifier call fails due to network/infrastructure issues."""
