"""Error taxonomy shared by every storycast component.

    transient provider error   ProviderError with a retryable status/code/type;
                               absorbed and retried by storycast.retry.execute
    terminal provider error    ProviderError with any other 4xx; propagated
                               immediately
    structural validation      GraphValidationError; a generated adventure
                               graph failed its invariants, never retried
    invalid input              InvalidChoice, JourneyCompleted,
                               InvalidTransition; caller errors
"""

from __future__ import annotations


class StorycastError(Exception):
    """Base class for all storycast errors."""


class ProviderError(StorycastError):
    """Raised by content-generation, speech and storage collaborators.

    Carries the fields the retry policy classifies on:

        status          HTTP-like status code, or None for transport failures
        code            provider/transport error code, e.g. "ECONNRESET"
        type            provider error type, e.g. "server_error"
        nested_message  message of the provider's error body, if any
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: str | None = None,
        type: str | None = None,
        nested_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.type = type
        self.nested_message = nested_message


class RetryExhaustedError(StorycastError):
    """Raised when a retryable operation failed on every attempt."""

    def __init__(self, message: str, *, max_retries: int, last_error: BaseException) -> None:
        super().__init__(message)
        self.max_retries = max_retries
        self.last_error = last_error


class GraphValidationError(StorycastError):
    """Raised when a narrative graph breaks its structural invariants."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Generated adventure has invalid structure: " + "; ".join(errors))
        self.errors = list(errors)


class InvalidChoice(StorycastError):
    """Raised when a choice id does not belong to the journey's current node."""


class JourneyCompleted(StorycastError):
    """Raised when a choice is submitted for a journey that reached an ending."""


class StaleJourneyError(StorycastError):
    """Raised when a journey was changed by someone else since it was loaded."""


class InvalidTransition(StorycastError):
    """Raised on an episode status change the state machine does not allow."""


class AssemblyError(StorycastError):
    """Raised when audio segments cannot be assembled."""


class NotFound(StorycastError):
    """Raised when a stored record does not exist."""
