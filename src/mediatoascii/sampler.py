import math
from typing import Tuple

import cv2
import numpy as np

from mediatoascii.charsets import CharacterRamp, DEFAULT_RAMP
from mediatoascii.errors import InvalidDimensions


class GlyphGrid:
    """Ramp indices for one sampled frame, ``rows x columns``."""

    __slots__ = ('indices', 'ramp')

    def __init__(self, indices: np.ndarray, ramp: CharacterRamp):
        self.indices = indices
        self.ramp = ramp

    @property
    def rows(self) -> int:
        return self.indices.shape[0]

    @property
    def columns(self) -> int:
        return self.indices.shape[1]

    def lines(self):
        chars_array = np.array(list(self.ramp))
        return [''.join(row) for row in chars_array[self.indices]]

    def to_text(self) -> str:
        return '\n'.join(self.lines()) + '\n'


def to_luminance(frame: np.ndarray) -> np.ndarray:
    if frame.ndim == 2:
        return frame
    channels = frame.shape[2]
    if channels == 1:
        return frame[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


def grid_dimensions(frame_width: int, frame_height: int, scale_down: float,
                    height_sample_scale: float) -> Tuple[int, int]:
    """Return ``(columns, rows)`` of the glyph grid for a frame size."""
    columns = math.floor(frame_width / scale_down)
    rows = math.floor(frame_height / (scale_down * height_sample_scale))
    if columns < 1 or rows < 1:
        raise InvalidDimensions(
            f"Sampling a {frame_width}x{frame_height} frame with scale_down={scale_down} "
            f"and height_sample_scale={height_sample_scale} leaves a {columns}x{rows} grid"
        )
    return columns, rows


def sample_frame(frame: np.ndarray, scale_down: float, height_sample_scale: float,
                 invert: bool = False, ramp: CharacterRamp = DEFAULT_RAMP) -> GlyphGrid:
    """Box-filter a frame down to a glyph grid.

    Each cell takes the mean luminance of the source block it covers, so a
    row spans ``height_sample_scale`` times more source pixels than a column
    does. This keeps the picture's proportions once it is drawn with glyphs
    that are taller than they are wide.
    """
    grayscale = to_luminance(frame)
    height, width = grayscale.shape[:2]
    columns, rows = grid_dimensions(width, height, scale_down, height_sample_scale)
    if (columns, rows) != (width, height):
        grayscale = cv2.resize(grayscale, (columns, rows), interpolation=cv2.INTER_AREA)
    luminance = grayscale.astype(np.float32) / 255.0
    return GlyphGrid(ramp.indices_for(luminance, invert), ramp)
