from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import Settings, get_settings
from ..schemas import GeneratedImage, GeneratedVideo
from ..utils import first_inline_data, first_video_uri, with_api_key
from .errors import RemoteServiceError, VideoDownloadError
from .generationclient import GenerationClient, VideoJob

logger = logging.getLogger(__name__)


@contextmanager
def _remote_call(what: str) -> Iterator[None]:
    """Translate SDK and transport failures into classified RemoteServiceErrors."""
    try:
        yield
    except (genai_errors.APIError, httpx.HTTPError) as exc:
        error = RemoteServiceError.from_exception(exc)
        logger.debug("%s failed: kind=%s status=%s", what, error.kind.value, error.status_code)
        raise error from exc


class GeminiGenerationClient(GenerationClient):
    """
    Talks to the hosted Gemini API through the google-genai SDK:
      - text model with JSON schema output for routines
      - image model for pose photos
      - Veo for pose videos (long-running operations)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[genai.Client] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self._http_client = http_client

    # --- Structured JSON output ----------------------------------------------

    def generate_json(self, prompt: str, response_model: Any) -> Optional[str]:
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=response_model,
        )
        client = self._genai()
        with _remote_call("generate_json"):
            response = client.models.generate_content(
                model=self.settings.text_model_id,
                contents=prompt,
                config=config,
            )
        return response.text or None

    # --- Images --------------------------------------------------------------

    def generate_image(self, prompt: str) -> Optional[GeneratedImage]:
        config = types.GenerateContentConfig(
            image_config=types.ImageConfig(aspect_ratio=self.settings.image_aspect_ratio),
        )
        client = self._genai()
        with _remote_call("generate_image"):
            response = client.models.generate_content(
                model=self.settings.image_model_id,
                contents=[prompt],
                config=config,
            )

        inline_data = first_inline_data(response)
        if inline_data is None:
            return None

        mime_type = inline_data.mime_type or "image/png"
        data = inline_data.data
        if isinstance(data, (bytes, bytearray)):
            return GeneratedImage.from_bytes(mime_type, bytes(data))
        # Some transports hand back the base64 text untouched.
        return GeneratedImage(mime_type=mime_type, data=str(data))

    # --- Videos --------------------------------------------------------------

    def start_video(self, prompt: str) -> VideoJob:
        config = types.GenerateVideosConfig(
            number_of_videos=1,
            resolution=self.settings.video_resolution,
            aspect_ratio=self.settings.video_aspect_ratio,
        )
        client = self._genai()
        with _remote_call("start_video"):
            operation = client.models.generate_videos(
                model=self.settings.video_model_id,
                prompt=prompt,
                config=config,
            )
        return self._to_job(operation)

    def refresh_video(self, job: VideoJob) -> VideoJob:
        client = self._genai()
        with _remote_call("refresh_video"):
            operation = client.operations.get(job.handle)
        return self._to_job(operation)

    def download_video(self, uri: str) -> GeneratedVideo:
        url = with_api_key(uri, self.settings.api_key.get_secret_value())
        try:
            if self._http_client is not None:
                response = self._http_client.get(url)
            else:
                with httpx.Client(
                    timeout=httpx.Timeout(self.settings.download_timeout_seconds),
                    follow_redirects=True,
                ) as http_client:
                    response = http_client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Video download failed: %s", exc)
            raise VideoDownloadError() from exc

        if not response.is_success:
            logger.warning("Video download returned HTTP %s", response.status_code)
            raise VideoDownloadError()

        mime_type = response.headers.get("content-type", "video/mp4").split(";")[0].strip()
        if not mime_type.startswith("video/"):
            mime_type = "video/mp4"
        return GeneratedVideo(mime_type=mime_type, content=response.content)

    # --- Internals -----------------------------------------------------------

    def _genai(self) -> genai.Client:
        # Built per call; a missing key only fails the request that needs it.
        if self._client is not None:
            return self._client
        return genai.Client(api_key=self.settings.api_key.get_secret_value())

    @staticmethod
    def _to_job(operation: Any) -> VideoJob:
        done = bool(getattr(operation, "done", False))
        if done and getattr(operation, "error", None):
            logger.warning("Video operation finished with error: %s", operation.error)
        return VideoJob(
            done=done,
            video_uri=first_video_uri(operation) if done else None,
            handle=operation,
        )
