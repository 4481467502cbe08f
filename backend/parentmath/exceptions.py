"""
Error taxonomy for the homework flow.

Every error carries a kind and a message that is safe to show to a parent.
Routers turn these into HTTPException details; the flow turns them into Err
results.
"""

from enum import Enum


class ErrorKind(str, Enum):
    RECOGNITION = "recognition"
    GENERATION = "generation"
    CHECKOUT = "checkout"
    CONFIGURATION = "configuration"
    PROFILE = "profile"
    SESSION = "session"
    INPUT = "input"


class ParentMathError(Exception):
    kind = ErrorKind.INPUT
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class RecognitionError(ParentMathError):
    kind = ErrorKind.RECOGNITION
    default_message = "Could not read text from this photo."


class GenerationError(ParentMathError):
    kind = ErrorKind.GENERATION
    default_message = "Failed to analyze the problem. Please try again."


class CheckoutError(ParentMathError):
    kind = ErrorKind.CHECKOUT
    default_message = "Failed to start checkout. Please try again."


class ConfigurationError(ParentMathError):
    """A required credential is missing. Fatal to the operation, never retried."""

    kind = ErrorKind.CONFIGURATION
    default_message = "This service is not configured yet."


class StoreError(ParentMathError):
    kind = ErrorKind.PROFILE
    default_message = "Unable to load user profile."


class SessionError(ParentMathError):
    kind = ErrorKind.SESSION
    default_message = "Could not start a session. Please reload the page."


class InvalidSubmission(ParentMathError):
    default_message = "Please enter a math problem."


class InvalidImage(ParentMathError):
    default_message = "Please select a valid image file (JPG, PNG, or WebP)."


class SelectionRequired(ParentMathError):
    default_message = "Please select which problem to analyze."


class InvalidTransition(ParentMathError):
    default_message = "That action is not available right now."


STATUS_BY_KIND = {
    ErrorKind.RECOGNITION: 502,
    ErrorKind.GENERATION: 502,
    ErrorKind.CHECKOUT: 502,
    ErrorKind.CONFIGURATION: 503,
    ErrorKind.PROFILE: 503,
    ErrorKind.SESSION: 502,
    ErrorKind.INPUT: 400,
}


def error_detail(kind: ErrorKind, message: str, **extra) -> dict:
    return {"kind": kind.value, "message": message, **extra}
