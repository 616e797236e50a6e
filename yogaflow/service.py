"""Domain logic for turning YogaFlow requests into calls to the generation backend."""

from __future__ import annotations

import logging
import random
import threading
import time
from functools import lru_cache
from typing import Callable, Optional, TypeVar

from .aiservices.errors import (
    ErrorKind,
    GenerationError,
    NoImageGeneratedError,
    NoResponseError,
    OperationAbortedError,
    ProjectRequiredError,
    RemoteServiceError,
    VideoGenerationFailedError,
    classify_error,
)
from .aiservices.generationclient import GenerationClient, VideoJob
from .aiservices.geminigenerationclient import GeminiGenerationClient
from .aiservices.retry import with_retry
from .config import Settings, get_settings
from .prompts import (
    choose_image_styling,
    get_pose_image_prompt,
    get_pose_video_prompt,
    get_recommendation_prompt,
)
from .schemas import GeneratedVideo, RoutineOverview

logger = logging.getLogger(__name__)

T = TypeVar("T")


class YogaFlowService:
    """High-level orchestrator for routine, image and video generation."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: GenerationClient | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client or GeminiGenerationClient(self.settings)
        self._rng = rng or random.Random(self.settings.prompt_seed)
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------
    def recommend(self, ailment: str) -> RoutineOverview:
        prompt = get_recommendation_prompt(ailment)
        text = self._call(lambda: self._client.generate_json(prompt, RoutineOverview))
        if not text:
            raise NoResponseError()
        # Malformed or incomplete JSON raises pydantic's ValidationError.
        return RoutineOverview.model_validate_json(text)

    # ------------------------------------------------------------------
    # Pose images
    # ------------------------------------------------------------------
    def generate_image(self, pose_name: str, sanskrit_name: str, description: str) -> str:
        """Generate a photo of the pose and return it as a data URI."""
        setting, instructor = choose_image_styling(self._rng)
        prompt = get_pose_image_prompt(pose_name, sanskrit_name, description, setting, instructor)
        image = self._call(lambda: self._client.generate_image(prompt))
        if image is None:
            raise NoImageGeneratedError()
        return image.data_uri

    # ------------------------------------------------------------------
    # Pose videos
    # ------------------------------------------------------------------
    def generate_video(
        self,
        pose_name: str,
        sanskrit_name: str,
        description: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> GeneratedVideo:
        """Submit a video job, poll it until done and download the result.

        Polling stops with :class:`OperationAbortedError` when ``cancel_event``
        is set or ``video_timeout_seconds`` has elapsed.
        """
        prompt = get_pose_video_prompt(pose_name, sanskrit_name, description)
        try:
            job = self._call(lambda: self._client.start_video(prompt))
            job = self._wait_for_video(job, cancel_event)
        except RemoteServiceError as exc:
            if exc.kind is ErrorKind.PROJECT_REQUIRED:
                raise ProjectRequiredError() from exc
            raise
        except GenerationError:
            raise
        except Exception as exc:
            # Unclassified failures (e.g. the SDK rejecting a missing key) go
            # through the same project heuristic.
            if classify_error(exc) is ErrorKind.PROJECT_REQUIRED:
                raise ProjectRequiredError() from exc
            raise

        if not job.video_uri:
            raise VideoGenerationFailedError()
        return self._client.download_video(job.video_uri)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _wait_for_video(self, job: VideoJob, cancel_event: Optional[threading.Event]) -> VideoJob:
        interval = self.settings.video_poll_interval_seconds
        timeout = self.settings.video_timeout_seconds
        deadline = self._clock() + timeout if timeout is not None else None
        polls = 0

        while not job.done:
            self._check_abort(cancel_event, deadline)
            self._sleep(interval)
            self._check_abort(cancel_event, deadline)

            current = job
            job = self._call(lambda: self._client.refresh_video(current))
            polls += 1
            logger.debug("Video job polled %d time(s), done=%s", polls, job.done)

        return job

    def _check_abort(self, cancel_event: Optional[threading.Event], deadline: Optional[float]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationAbortedError("Video generation was cancelled")
        if deadline is not None and self._clock() >= deadline:
            raise OperationAbortedError("Video generation timed out")

    def _call(self, fn: Callable[[], T]) -> T:
        return with_retry(
            fn,
            retries=self.settings.max_retries,
            base_delay=self.settings.retry_base_delay_seconds,
            sleep=self._sleep,
        )


@lru_cache
def get_yogaflow_service() -> YogaFlowService:
    return YogaFlowService(get_settings())
