from __future__ import annotations

import os
from enum import IntEnum
from typing import Any, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from mediatoascii.charsets import CHAR_SETS, DEFAULT_CHAR_SET
from mediatoascii.errors import DecodeError, InvalidConfig, OutputExists

# Width-to-height ratio correction for a typical monospace cell.
DEFAULT_HEIGHT_SAMPLE_SCALE = 2.046


class Rotation(IntEnum):
    """Rotation applied to video frames. Values match OpenCV's rotate codes."""

    NONE = -1
    CLOCKWISE_90 = 0
    ROTATE_180 = 1
    COUNTERCLOCKWISE_90 = 2


class _RenderOptions(BaseModel):
    scale_down: float = Field(default=1.0, gt=0)
    font_size: float = Field(default=12.0, gt=0)
    height_sample_scale: float = Field(default=DEFAULT_HEIGHT_SAMPLE_SCALE, gt=0)
    invert: bool = False
    overwrite: bool = False
    char_set: str = DEFAULT_CHAR_SET
    font_path: Optional[str] = None

    @field_validator("char_set")
    @classmethod
    def _known_char_set(cls, value: str) -> str:
        if value not in CHAR_SETS:
            raise ValueError(f"unknown character set '{value}'")
        return value


class ImageConfig(_RenderOptions):
    image_path: str
    output_file_path: Optional[str] = None
    output_image_path: Optional[str] = None

    @model_validator(mode="after")
    def _has_output(self) -> "ImageConfig":
        if not self.output_file_path and not self.output_image_path:
            raise ValueError("at least one of output_file_path or output_image_path is required")
        return self


class VideoConfig(_RenderOptions):
    video_path: str
    output_video_path: str
    max_fps: float = Field(default=30.0, gt=0)
    use_max_fps_for_output_video: bool = False
    rotate: Rotation = Rotation.NONE

    @field_validator("output_video_path")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("output_video_path is required")
        return value


ConfigT = TypeVar("ConfigT", bound=_RenderOptions)


def validate_config(model: Type[ConfigT], config: Union[ConfigT, Mapping[str, Any]]) -> ConfigT:
    """Re-validate a request, whether it arrives as a model or a plain mapping."""
    payload = config.model_dump() if isinstance(config, BaseModel) else config
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise InvalidConfig(str(e)) from e


def check_file_exists(path: str, overwrite: bool) -> None:
    if not overwrite and os.path.exists(path):
        raise OutputExists(f"File at {path} already exists, and overwrite is set to false")


def check_valid_file(path: str) -> None:
    if not os.path.isfile(path):
        raise DecodeError(f"Path at {path} is not a valid file!")
