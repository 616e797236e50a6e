"""FastAPI entry point exposing the YogaFlow REST API."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .aiservices.errors import (
    GenerationError,
    InvalidResponseError,
    OperationAbortedError,
    ProjectRequiredError,
    UnexpectedGenerationError,
    UsageLimitError,
)
from .config import Settings, get_settings
from .prompts import AILMENT_SUGGESTIONS, DISCLAIMER
from .schemas import (
    ErrorResponse,
    ImageResponse,
    PoseMediaRequest,
    RecommendationRequest,
    RoutineOverview,
    SuggestionsResponse,
)
from .service import YogaFlowService, get_yogaflow_service

logger = logging.getLogger(__name__)


_ERROR_STATUS = {
    UsageLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    ProjectRequiredError: status.HTTP_403_FORBIDDEN,
    OperationAbortedError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def _status_for(exc: GenerationError) -> int:
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_502_BAD_GATEWAY


async def _run_generation(what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    try:
        return await run_in_threadpool(fn, *args, **kwargs)
    except (GenerationError, HTTPException):
        raise
    except ValidationError as exc:
        logger.warning("%s returned an invalid payload: %s", what, exc)
        raise InvalidResponseError() from exc
    except Exception as exc:
        logger.exception("%s failed", what)
        raise UnexpectedGenerationError.from_exception(exc) from exc


app = FastAPI(title="YogaFlow Backend", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    status_code = _status_for(exc)
    logger.info("%s %s -> %s (%s): %s", request.method, request.url.path, status_code, exc.kind_label, exc)
    body = ErrorResponse(detail=str(exc), kind=exc.kind_label)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/health", summary="Health Check Endpoint")
async def healthcheck(settings: Settings = Depends(get_settings)):
    return {
        "status": "ok",
        "textModel": settings.text_model_id,
        "imageModel": settings.image_model_id,
        "videoModel": settings.video_model_id if settings.enable_video_generation else None,
    }


@app.get(
    "/suggestions",
    response_model=SuggestionsResponse,
    summary="Example ailments and the disclaimer shown with every routine",
)
async def suggestions():
    return SuggestionsResponse(suggestions=list(AILMENT_SUGGESTIONS), disclaimer=DISCLAIMER)


@app.post(
    "/recommendations",
    response_model=RoutineOverview,
    responses={429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Recommend a yoga routine for an ailment",
)
async def recommendations(
    payload: RecommendationRequest,
    service: YogaFlowService = Depends(get_yogaflow_service),
):
    ailment = payload.ailment.strip()
    if not ailment:
        raise HTTPException(
            status_code=422,
            detail="Ailment must not be empty",
        )

    return await _run_generation("Routine recommendation", service.recommend, ailment)


@app.post(
    "/poses/image",
    response_model=ImageResponse,
    responses={429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Generate a photo demonstrating a pose",
)
async def pose_image(
    payload: PoseMediaRequest,
    service: YogaFlowService = Depends(get_yogaflow_service),
):
    image = await _run_generation(
        "Image generation",
        service.generate_image,
        payload.name,
        payload.sanskritName,
        payload.description,
    )
    return ImageResponse(image=image)


@app.post(
    "/poses/video",
    response_class=Response,
    responses={
        200: {"content": {"video/mp4": {}}},
        403: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
    summary="Generate a short video demonstrating a pose",
)
async def pose_video(
    payload: PoseMediaRequest,
    service: YogaFlowService = Depends(get_yogaflow_service),
    settings: Settings = Depends(get_settings),
):
    if not settings.enable_video_generation:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Video generation is disabled in the current configuration.",
        )

    # Stops the poll loop in the worker thread once this handler is torn down.
    cancel_event = threading.Event()
    try:
        video = await _run_generation(
            "Video generation",
            service.generate_video,
            payload.name,
            payload.sanskritName,
            payload.description,
            cancel_event=cancel_event,
        )
    finally:
        cancel_event.set()

    return Response(content=video.content, media_type=video.mime_type)


__all__ = ["app"]


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    import uvicorn

    uvicorn.run("yogaflow.main:app", host="0.0.0.0", port=8000, reload=True)
