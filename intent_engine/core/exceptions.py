from typing import Dict, Optional


class IntentScoringError(Exception):
    """Base class for all intent-scoring domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except IntentScoringError`` clause can catch any domain
    error.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class InvalidArgumentError(IntentScoringError):
    """Raised when a payload has a bad shape or value.

    ``errors`` maps each offending field to a human-readable message so
    the caller gets a precise, field-level rejection.
    """

    def __init__(
        self,
        detail: str = "Invalid argument",
        errors: Optional[Dict[str, str]] = None,
    ):
        self.errors: Dict[str, str] = dict(errors or {})
        super().__init__(detail)

    @classmethod
    def for_field(cls, field: str, message: str) -> "InvalidArgumentError":
        return cls(f"{field}: {message}", errors={field: message})


class NotFoundError(IntentScoringError):
    """Raised when a referenced subject, event or rule does not exist."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail)


class EventNotFoundError(NotFoundError):
    """Raised when a requested intent event does not exist."""

    def __init__(self, detail: str = "Event not found"):
        super().__init__(detail)


class RuleNotFoundError(NotFoundError):
    """Raised when a scoring rule key does not exist."""

    def __init__(self, detail: str = "Rule not found"):
        super().__init__(detail)


class LeadNotFoundError(NotFoundError):
    """Raised when a requested marketing lead does not exist."""

    def __init__(self, detail: str = "Lead not found"):
        super().__init__(detail)


class UnauthenticatedError(IntentScoringError):
    """Raised when the caller's API key is missing or wrong."""

    def __init__(self, detail: str = "Invalid or missing API key"):
        super().__init__(detail)


class PersistenceUnavailableError(IntentScoringError):
    """Raised when the database cannot be reached or times out.

    Ingestion converts this into a ``stored: false`` answer; admin
    operations surface it as HTTP 503.
    """

    def __init__(self, detail: str = "Database unavailable"):
        super().__init__(detail)
