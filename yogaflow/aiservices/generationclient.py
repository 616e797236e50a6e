from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..schemas import GeneratedImage, GeneratedVideo

# Define an abstract interface for generation backends so the service can be
# exercised against fakes as well as the hosted Gemini API.


@dataclass(frozen=True)
class VideoJob:
    """Handle of an asynchronous video generation job."""

    done: bool
    video_uri: Optional[str] = None
    handle: Any = None


class GenerationClient(ABC):
    """Abstract interface for a remote generation backend.

    Every method performs exactly one remote call. Failures of that call are
    raised as :class:`~yogaflow.aiservices.errors.RemoteServiceError` so the
    caller can decide on retries.
    """

    @abstractmethod
    def generate_json(self, prompt: str, response_model: Any) -> Optional[str]:
        """Return the raw JSON text produced for ``response_model``, or None if empty."""

    @abstractmethod
    def generate_image(self, prompt: str) -> Optional[GeneratedImage]:
        """Return the first inline image of the response, or None if there is none."""

    @abstractmethod
    def start_video(self, prompt: str) -> VideoJob:
        """Submit a video generation job."""

    @abstractmethod
    def refresh_video(self, job: VideoJob) -> VideoJob:
        """Fetch the current state of a video generation job."""

    @abstractmethod
    def download_video(self, uri: str) -> GeneratedVideo:
        """Download the bytes behind a finished job's URI.

        Should raise VideoDownloadError if the download does not succeed.
        """
