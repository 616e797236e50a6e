"""Pydantic models shared by the generation service and the FastAPI endpoints."""

from __future__ import annotations

import base64
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Difficulty = Literal["Beginner", "Intermediate", "Advanced"]


class PoseRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    sanskritName: str
    description: str = Field(
        ...,
        description=(
            "Detailed visual description of the body position "
            "(e.g. arms raised, spine arched, legs straight) for image generation."
        ),
    )
    benefits: List[str]
    steps: List[str] = Field(..., description="Step by step instructions")
    dos: List[str]
    donts: List[str]
    difficulty: Difficulty
    duration: str = Field(..., description="Recommended hold time, e.g. '30 seconds'")


class RoutineOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    overview: str = Field(..., description="A brief comforting overview of why yoga helps this ailment.")
    poses: List[PoseRecommendation]


class GeneratedImage(BaseModel):
    """Inline image returned by the image model."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: str = Field(..., description="Base64-encoded image bytes")

    @classmethod
    def from_bytes(cls, mime_type: str, raw: bytes) -> "GeneratedImage":
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class GeneratedVideo(BaseModel):
    """Downloaded video bytes, playable as-is by the caller."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = "video/mp4"
    content: bytes


# ---- Request / response payloads ----
class RecommendationRequest(BaseModel):
    ailment: str = Field(..., description="What is troubling the user, e.g. 'lower back pain'")


class PoseMediaRequest(BaseModel):
    name: str = Field(..., min_length=1, description="English name of the pose")
    sanskritName: str = Field(..., min_length=1, description="Sanskrit name of the pose")
    description: str = Field(..., min_length=1, description="Visual description used in the media prompt")


class ImageResponse(BaseModel):
    image: str = Field(..., description="Data URI of the generated image")


class SuggestionsResponse(BaseModel):
    suggestions: List[str]
    disclaimer: str


class ErrorResponse(BaseModel):
    detail: str
    kind: Optional[str] = None
