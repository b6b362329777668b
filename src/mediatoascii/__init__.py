"""Render images and videos as ASCII art."""
from mediatoascii.charsets import CHAR_SETS, DEFAULT_CHAR_SET, CharacterRamp, get_ramp
from mediatoascii.config import ImageConfig, Rotation, VideoConfig
from mediatoascii.errors import (
    Cancelled,
    DecodeError,
    Failure,
    InvalidConfig,
    InvalidDimensions,
    MediaToAsciiError,
    MuxError,
    OutputExists,
    OutputWriteError,
    RenderError,
    UnsupportedFont,
    UnsupportedOutputFormat,
)
from mediatoascii.image import process_image
from mediatoascii.jobs import VideoJob, submit_video
from mediatoascii.progress import CancellationToken, ProgressChannel
from mediatoascii.video import VideoSummary, process_video

__version__ = "0.1.0"
