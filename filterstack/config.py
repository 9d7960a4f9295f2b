"""Engine configuration."""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings."""

    # Color model
    LUMA_MODEL: Literal["rec601", "rec709"] = "rec601"  # Gamma-space luma weights
    LINEAR_SATURATION: bool = False  # Saturation/vibrance in linear light

    # Convolution
    DEFAULT_PADDING: Literal["zero", "edge", "reflect"] = "edge"

    # Execution
    LARGE_IMAGE_PIXELS: int = 2048 * 2048  # Warn above this many pixels

    model_config = {"env_prefix": "FILTERSTACK_"}


settings = Settings()
