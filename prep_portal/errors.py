"""Custom exceptions for question sourcing, sessions and persistence."""
from typing import Optional


class PortalError(Exception):
    """Base exception for the quiz portal."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class SourcingError(PortalError):
    """Question batch could not be obtained."""


class TransportError(SourcingError):
    """Network failure or timeout talking to the generation service."""

    user_message = "The question service is unreachable. Please try again."


class ServiceError(SourcingError):
    """Generation service answered with a non-success status."""

    user_message = "The question service returned an error. Please try again."

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(SourcingError):
    """Response is not valid JSON or the text payload is missing."""

    user_message = "Could not read the generated questions. Please try a smaller number of questions."


class SchemaError(SourcingError):
    """Parsed batch violates the question shape. Never retried."""

    user_message = "The generated questions were malformed. Please try again."


class EmptyPoolError(SourcingError):
    """Shared pool holds fewer questions than requested for a topic."""

    user_message = "Not enough community questions for this topic yet. Try AI mode or fewer questions."

    def __init__(self, topic: str, available: int, requested: int):
        super().__init__(
            f"Pool for {topic!r} has {available} questions, {requested} requested"
        )
        self.topic = topic
        self.available = available
        self.requested = requested


class PersistenceError(PortalError):
    """Result or pool write failed. Best-effort, never aborts the flow."""

    user_message = "Your result could not be saved to your history, but your score still counts here."


class PreconditionError(PortalError):
    """Operation called in a state or with arguments it does not accept."""
