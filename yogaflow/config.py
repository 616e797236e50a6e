from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the YogaFlow backend."""

    #----------------------------------------------------------
    # Gemini API settings
    #----------------------------------------------------------
    api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("YOGAFLOW_API_KEY", "GEMINI_API_KEY", "API_KEY"),
        description="API key for the Gemini API. Also used to download generated videos.",
    )

    text_model_id: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for routine recommendations.",
    )
    image_model_id: str = Field(
        default="gemini-2.5-flash-image",
        description="Gemini model used for pose images.",
    )
    video_model_id: str = Field(
        default="veo-3.1-fast-generate-preview",
        description="Veo model used for pose videos.",
    )

    #----------------------------------------------------------
    # Retry and polling settings
    #----------------------------------------------------------
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after a rate-limited or unavailable response.",
    )
    retry_base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay before the first retry. Doubles on every further retry.",
    )
    video_poll_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Fixed wait between two status polls of a video job.",
    )
    video_timeout_seconds: Optional[float] = Field(
        default=600.0,
        gt=0.0,
        description="Give up on a video job after this many seconds. Unset to poll without a deadline.",
    )
    download_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Timeout for downloading a finished video.",
    )

    #----------------------------------------------------------
    # Generation settings
    #----------------------------------------------------------
    image_aspect_ratio: str = Field(
        default="3:4",
        description="Aspect ratio requested for pose images (portrait).",
    )
    video_aspect_ratio: str = Field(
        default="16:9",
        description="Aspect ratio requested for pose videos.",
    )
    video_resolution: str = Field(
        default="720p",
        description="Resolution requested for pose videos.",
    )
    enable_video_generation: bool = Field(
        default=True,
        description="Disable to reject video requests, e.g. without a billing-enabled project.",
    )
    prompt_seed: Optional[int] = Field(
        default=None,
        description="Seed for the scene and instructor choice in image prompts. Random when unset.",
    )

    model_config = SettingsConfigDict(
        env_prefix="YOGAFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
