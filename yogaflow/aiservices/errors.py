"""Error taxonomy for calls to the generation backend.

Raw SDK and transport errors are classified once, in the adapter that talks
to the remote service, into a :class:`RemoteServiceError` carrying an
:class:`ErrorKind`. Everything downstream (retry policy, service, HTTP layer)
switches on the kind instead of re-inspecting messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    # Heuristic: Veo answers with 404 / "not found" / "project" when the key
    # is not attached to a billing-enabled project. May misclassify.
    PROJECT_REQUIRED = "project_required"
    OTHER = "other"


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.UNAVAILABLE})

USAGE_LIMIT_MESSAGE = "Usage limit reached. Please wait a moment or check your billing quota."
PROJECT_REQUIRED_MESSAGE = (
    "Paid project required. Please connect a billing-enabled Google Cloud project "
    "to generate videos."
)


class GenerationError(Exception):
    """Base class for errors surfaced by the generation client."""

    kind_label = "remote_error"


class RemoteServiceError(GenerationError):
    """A failed call to the remote service, classified by kind."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.OTHER, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @classmethod
    def from_exception(cls, exc: BaseException) -> "RemoteServiceError":
        status_code = _status_code(exc)
        return cls(str(exc), kind=classify_error(exc), status_code=status_code)


class UnexpectedGenerationError(GenerationError):
    """Any other failure while generating, reported with its original message."""

    @classmethod
    def from_exception(cls, exc: BaseException) -> "UnexpectedGenerationError":
        return cls(str(exc) or type(exc).__name__)


class UsageLimitError(GenerationError):
    kind_label = "usage_limit"

    def __init__(self, message: str = USAGE_LIMIT_MESSAGE) -> None:
        super().__init__(message)


class ProjectRequiredError(GenerationError):
    kind_label = "project_required"

    def __init__(self, message: str = PROJECT_REQUIRED_MESSAGE) -> None:
        super().__init__(message)


class NoResponseError(GenerationError):
    kind_label = "no_response"

    def __init__(self, message: str = "No response from AI") -> None:
        super().__init__(message)


class InvalidResponseError(GenerationError):
    kind_label = "invalid_response"

    def __init__(self, message: str = "The AI returned a response in an unexpected format") -> None:
        super().__init__(message)


class NoImageGeneratedError(GenerationError):
    kind_label = "no_image"

    def __init__(self, message: str = "No image generated") -> None:
        super().__init__(message)


class VideoGenerationFailedError(GenerationError):
    kind_label = "video_failed"

    def __init__(self, message: str = "Video generation failed") -> None:
        super().__init__(message)


class VideoDownloadError(GenerationError):
    kind_label = "video_download_failed"

    def __init__(self, message: str = "Failed to download video") -> None:
        super().__init__(message)


class OperationAbortedError(GenerationError):
    """The video poll loop was cancelled or ran past its deadline."""

    kind_label = "aborted"


def _status_code(exc: BaseException) -> Optional[int]:
    # google-genai APIError exposes ``code``; httpx errors carry a response.
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    status_code = _status_code(exc)
    message = str(exc)
    lowered = message.lower()

    if status_code == 429 or "429" in message:
        return ErrorKind.RATE_LIMITED
    if status_code == 503:
        return ErrorKind.UNAVAILABLE
    if status_code == 404 or "404" in message or "not found" in lowered or "project" in lowered:
        return ErrorKind.PROJECT_REQUIRED
    return ErrorKind.OTHER
