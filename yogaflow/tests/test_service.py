"""Tests for :mod:`yogaflow.service` against an in-memory generation client."""

from __future__ import annotations

import json
import random
import sys
import threading
from pathlib import Path

import pytest
from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from yogaflow.aiservices.errors import (
    ErrorKind,
    NoImageGeneratedError,
    NoResponseError,
    OperationAbortedError,
    ProjectRequiredError,
    RemoteServiceError,
    UsageLimitError,
    VideoDownloadError,
    VideoGenerationFailedError,
)
from yogaflow.aiservices.generationclient import GenerationClient, VideoJob
from yogaflow.config import Settings
from yogaflow.prompts import BACKGROUND_SETTINGS, INSTRUCTOR_TYPES
from yogaflow.schemas import GeneratedImage, GeneratedVideo, RoutineOverview
from yogaflow.service import YogaFlowService


ROUTINE_PAYLOAD = {
    "overview": "Gentle movement can ease tension in the lower back.",
    "poses": [
        {
            "name": "Child's Pose",
            "sanskritName": "Balasana",
            "description": "Kneeling, hips resting on heels, torso folded forward over the thighs, arms extended.",
            "benefits": ["Stretches the lower back", "Calms the mind"],
            "steps": ["Kneel on the mat", "Sit back on your heels", "Fold forward"],
            "dos": ["Breathe slowly"],
            "donts": ["Force the hips down"],
            "difficulty": "Beginner",
            "duration": "1 minute",
        },
        {
            "name": "Cat-Cow",
            "sanskritName": "Marjaryasana-Bitilasana",
            "description": "On hands and knees, spine alternately arched and rounded.",
            "benefits": ["Mobilises the spine"],
            "steps": ["Start on all fours", "Inhale and arch", "Exhale and round"],
            "dos": ["Move with the breath"],
            "donts": ["Collapse the shoulders"],
            "difficulty": "Beginner",
            "duration": "10 breaths",
        },
    ],
}


class FakeGenerationClient(GenerationClient):
    """Test double emulating :class:`GeminiGenerationClient`."""

    def __init__(self) -> None:
        self.json_text: str | None = json.dumps(ROUTINE_PAYLOAD)
        self.image: GeneratedImage | None = GeneratedImage(mime_type="image/png", data="aW1hZ2U=")
        self.pending_polls = 0
        self.video_uri: str | None = "https://example.test/files/video:download?alt=media"
        self.video = GeneratedVideo(mime_type="video/mp4", content=b"\x00\x00\x00\x18ftypmp42")
        self.errors: dict[str, list[Exception]] = {}
        self.download_error: Exception | None = None
        self.calls: dict[str, list[tuple]] = {}
        self.on_refresh = None

    def _remember(self, method: str, *args) -> None:
        self.calls.setdefault(method, []).append(args)

    def _maybe_raise(self, method: str) -> None:
        queued = self.errors.get(method)
        if queued:
            raise queued.pop(0)

    def generate_json(self, prompt, response_model):
        self._remember("generate_json", prompt, response_model)
        self._maybe_raise("generate_json")
        return self.json_text

    def generate_image(self, prompt):
        self._remember("generate_image", prompt)
        self._maybe_raise("generate_image")
        return self.image

    def start_video(self, prompt):
        self._remember("start_video", prompt)
        self._maybe_raise("start_video")
        return self._job()

    def refresh_video(self, job):
        self._remember("refresh_video", job)
        self._maybe_raise("refresh_video")
        if self.on_refresh is not None:
            self.on_refresh()
        self.pending_polls = max(self.pending_polls - 1, 0)
        return self._job()

    def download_video(self, uri):
        self._remember("download_video", uri)
        if self.download_error is not None:
            raise self.download_error
        return self.video

    def _job(self) -> VideoJob:
        done = self.pending_polls == 0
        return VideoJob(done=done, video_uri=self.video_uri if done else None, handle=object())


class FakeClock:
    """Monotonic clock that only advances when the service sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.waits: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.waits.append(seconds)
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_key="test-key",
        max_retries=3,
        retry_base_delay_seconds=1.0,
        video_poll_interval_seconds=5.0,
        video_timeout_seconds=600.0,
    )


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(settings, fake_client, clock) -> YogaFlowService:
    return YogaFlowService(
        settings,
        client=fake_client,
        rng=random.Random(7),
        sleep=clock.sleep,
        clock=clock,
    )


def _rate_limited() -> RemoteServiceError:
    return RemoteServiceError("429 RESOURCE_EXHAUSTED", kind=ErrorKind.RATE_LIMITED, status_code=429)


# ------------------------------------------------------------------
# Recommendations
# ------------------------------------------------------------------
def test_recommend_parses_routine_without_transformation(service, fake_client) -> None:
    routine = service.recommend("lower back pain")

    assert isinstance(routine, RoutineOverview)
    assert len(routine.poses) == len(ROUTINE_PAYLOAD["poses"])
    assert routine.model_dump() == ROUTINE_PAYLOAD

    prompt, response_model = fake_client.calls["generate_json"][0]
    assert '"lower back pain"' in prompt
    assert response_model is RoutineOverview


@pytest.mark.parametrize("text", [None, ""])
def test_recommend_raises_when_response_is_empty(service, fake_client, text) -> None:
    fake_client.json_text = text

    with pytest.raises(NoResponseError, match="No response from AI"):
        service.recommend("insomnia")


def test_recommend_propagates_parse_errors(service, fake_client) -> None:
    fake_client.json_text = "{not json"

    with pytest.raises(ValidationError):
        service.recommend("insomnia")


def test_recommend_rejects_incomplete_poses(service, fake_client) -> None:
    payload = json.loads(json.dumps(ROUTINE_PAYLOAD))
    del payload["poses"][0]["donts"]
    fake_client.json_text = json.dumps(payload)

    with pytest.raises(ValidationError):
        service.recommend("insomnia")


def test_recommend_retries_rate_limits(service, fake_client, clock) -> None:
    fake_client.errors["generate_json"] = [_rate_limited(), _rate_limited()]

    routine = service.recommend("stress")

    assert len(routine.poses) == 2
    assert len(fake_client.calls["generate_json"]) == 3
    assert clock.waits == [1.0, 2.0]


def test_recommend_surfaces_usage_limit_after_retries(service, fake_client) -> None:
    fake_client.errors["generate_json"] = [_rate_limited() for _ in range(4)]

    with pytest.raises(UsageLimitError, match="Usage limit reached"):
        service.recommend("stress")

    assert len(fake_client.calls["generate_json"]) == 4


# ------------------------------------------------------------------
# Images
# ------------------------------------------------------------------
def test_generate_image_returns_data_uri(service, fake_client) -> None:
    uri = service.generate_image("Child's Pose", "Balasana", "Kneeling, torso folded forward.")

    assert uri == "data:image/png;base64,aW1hZ2U="

    (prompt,) = fake_client.calls["generate_image"][0]
    assert "Child's Pose (Balasana)" in prompt
    assert "Kneeling, torso folded forward." in prompt
    assert any(setting in prompt for setting in BACKGROUND_SETTINGS)
    assert any(instructor in prompt for instructor in INSTRUCTOR_TYPES)


def test_generate_image_raises_when_no_image_part(service, fake_client) -> None:
    fake_client.image = None

    with pytest.raises(NoImageGeneratedError, match="No image generated"):
        service.generate_image("Child's Pose", "Balasana", "Kneeling.")


def test_generate_image_styling_is_reproducible_with_a_seed(settings) -> None:
    prompts = []
    for _ in range(2):
        client = FakeGenerationClient()
        service = YogaFlowService(settings, client=client, rng=random.Random(42))
        for _ in range(3):
            service.generate_image("Tree Pose", "Vrksasana", "Standing on one leg.")
        prompts.append([call[0] for call in client.calls["generate_image"]])

    assert prompts[0] == prompts[1]


def test_prompt_seed_setting_seeds_the_styling() -> None:
    seeded = Settings(api_key="test-key", prompt_seed=3)
    first_client, second_client = FakeGenerationClient(), FakeGenerationClient()

    YogaFlowService(seeded, client=first_client).generate_image("Tree Pose", "Vrksasana", "Standing on one leg.")
    YogaFlowService(seeded, client=second_client).generate_image("Tree Pose", "Vrksasana", "Standing on one leg.")

    assert first_client.calls["generate_image"] == second_client.calls["generate_image"]


# ------------------------------------------------------------------
# Videos
# ------------------------------------------------------------------
def test_generate_video_polls_until_done_then_downloads(service, fake_client, clock) -> None:
    fake_client.pending_polls = 3

    video = service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert video.content == fake_client.video.content
    assert len(fake_client.calls["refresh_video"]) == 3
    assert clock.waits == [5.0, 5.0, 5.0]
    assert fake_client.calls["download_video"] == [(fake_client.video_uri,)]

    (prompt,) = fake_client.calls["start_video"][0]
    assert "Child's Pose (Balasana)" in prompt
    assert "Bright, neutral studio" in prompt


def test_generate_video_skips_polling_when_job_is_already_done(service, fake_client, clock) -> None:
    service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert "refresh_video" not in fake_client.calls
    assert clock.waits == []


def test_generate_video_retries_rate_limited_polls(service, fake_client, clock) -> None:
    fake_client.pending_polls = 1
    fake_client.errors["refresh_video"] = [_rate_limited()]

    service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert len(fake_client.calls["refresh_video"]) == 2
    assert clock.waits == [5.0, 1.0]


def test_generate_video_without_uri_fails(service, fake_client) -> None:
    fake_client.video_uri = None

    with pytest.raises(VideoGenerationFailedError, match="Video generation failed"):
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert "download_video" not in fake_client.calls


def test_generate_video_propagates_download_failure(service, fake_client) -> None:
    fake_client.download_error = VideoDownloadError()

    with pytest.raises(VideoDownloadError, match="Failed to download video"):
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")


@pytest.mark.parametrize(
    "message",
    [
        "404 NOT_FOUND. Requested entity was not found.",
        "403 PERMISSION_DENIED. The project has no billing account.",
    ],
)
def test_generate_video_rewrites_project_errors(service, fake_client, message) -> None:
    fake_client.errors["start_video"] = [RemoteServiceError(message, kind=ErrorKind.PROJECT_REQUIRED)]

    with pytest.raises(ProjectRequiredError, match="billing-enabled"):
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")


def test_generate_video_keeps_other_remote_errors(service, fake_client) -> None:
    error = RemoteServiceError("400 INVALID_ARGUMENT", kind=ErrorKind.OTHER, status_code=400)
    fake_client.errors["start_video"] = [error]

    with pytest.raises(RemoteServiceError) as excinfo:
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert excinfo.value is error


def test_generate_video_rewrites_project_errors_while_polling(service, fake_client, clock) -> None:
    fake_client.pending_polls = 3
    fake_client.errors["refresh_video"] = [
        RemoteServiceError("404 NOT_FOUND. Operation not found.", kind=ErrorKind.PROJECT_REQUIRED, status_code=404)
    ]

    with pytest.raises(ProjectRequiredError, match="billing-enabled"):
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert len(fake_client.calls["refresh_video"]) == 1
    assert clock.waits == [5.0]
    assert "download_video" not in fake_client.calls


def test_generate_video_rewrites_unclassified_project_failures(service, fake_client) -> None:
    fake_client.errors["start_video"] = [
        ValueError(
            "Missing key inputs argument! To use the Google AI API, provide (`api_key`) arguments. "
            "To use the Google Cloud API, provide (`vertexai`, `project` & `location`) arguments."
        )
    ]

    with pytest.raises(ProjectRequiredError) as excinfo:
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert isinstance(excinfo.value.__cause__, ValueError)
    assert len(fake_client.calls["start_video"]) == 1


def test_generate_video_keeps_other_unclassified_failures(service, fake_client) -> None:
    error = RuntimeError("connection reset")
    fake_client.errors["start_video"] = [error]

    with pytest.raises(RuntimeError) as excinfo:
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert excinfo.value is error


def test_generate_video_does_not_rewrite_aborts(settings, fake_client, clock) -> None:
    short = settings.model_copy(update={"video_timeout_seconds": 1.0})
    service = YogaFlowService(short, client=fake_client, sleep=clock.sleep, clock=clock)
    fake_client.pending_polls = 10

    with pytest.raises(OperationAbortedError, match="timed out"):
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")


def test_generate_video_stops_when_cancelled(service, fake_client) -> None:
    fake_client.pending_polls = 100
    cancel_event = threading.Event()
    fake_client.on_refresh = cancel_event.set

    with pytest.raises(OperationAbortedError, match="cancelled"):
        service.generate_video("Child's Pose", "Balasana", "Kneeling.", cancel_event=cancel_event)

    assert len(fake_client.calls["refresh_video"]) == 1
    assert "download_video" not in fake_client.calls


def test_generate_video_stops_at_deadline(settings, fake_client, clock) -> None:
    short = settings.model_copy(update={"video_timeout_seconds": 12.0})
    service = YogaFlowService(short, client=fake_client, sleep=clock.sleep, clock=clock)
    fake_client.pending_polls = 100

    with pytest.raises(OperationAbortedError, match="timed out"):
        service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    # Polls at t=5 and t=10; the wait ending at t=15 crosses the deadline.
    assert len(fake_client.calls["refresh_video"]) == 2
    assert clock.now == 15.0


def test_generate_video_without_deadline_keeps_polling(settings, fake_client, clock) -> None:
    unbounded = settings.model_copy(update={"video_timeout_seconds": None})
    service = YogaFlowService(unbounded, client=fake_client, sleep=clock.sleep, clock=clock)
    fake_client.pending_polls = 500

    service.generate_video("Child's Pose", "Balasana", "Kneeling.")

    assert len(fake_client.calls["refresh_video"]) == 500
