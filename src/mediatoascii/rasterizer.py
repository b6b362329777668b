"""Draw glyph grids back onto pixel canvases.

Every glyph of a ramp is rendered once into an atlas of equally sized cells;
a grid is then drawn by copying atlas cells into place. Atlases are cached
for the life of the process and never mutated after they are built, so the
video workers share them without locking.
"""
import logging
import math
import os
from functools import lru_cache
from typing import Optional, Tuple

import numpy as np
from numba import jit
from PIL import Image, ImageDraw, ImageFont

from mediatoascii.charsets import CharacterRamp
from mediatoascii.errors import UnsupportedFont
from mediatoascii.sampler import GlyphGrid

logger = logging.getLogger(__name__)

BACKGROUND_COLOR = (0, 0, 0)
FOREGROUND_COLOR = (255, 255, 255)

FONT_ENV_VAR = "MEDIATOASCII_FONT"

MONOSPACE_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/liberation-mono/LiberationMono-Regular.ttf",
    "/usr/share/fonts/truetype/ubuntu/UbuntuMono-R.ttf",
    "/Library/Fonts/Courier New.ttf",
    "/System/Library/Fonts/Menlo.ttc",
    "C:\\Windows\\Fonts\\CascadiaMono.ttf",
    "C:\\Windows\\Fonts\\consola.ttf",
    "C:\\Windows\\Fonts\\cour.ttf",
]

# Advance widths closer than this are treated as equal.
PITCH_TOLERANCE_PX = 0.5


@jit(nopython=True, nogil=True)
def tile_glyphs_numba(char_indices, atlas, char_height, char_width):
    # Called concurrently from the video workers, so no parallel=True here.
    height_chars, width_chars = char_indices.shape
    img = np.zeros((height_chars * char_height, width_chars * char_width), dtype=np.uint8)
    for y in range(height_chars):
        y_start = y * char_height
        for x in range(width_chars):
            x_start = x * char_width
            img[y_start:y_start + char_height, x_start:x_start + char_width] = atlas[char_indices[y, x]]
    return img


class GlyphAtlas:
    """Pre-rendered coverage masks for every glyph of a ramp."""

    def __init__(self, masks: np.ndarray, char_width: int, char_height: int, face: str):
        masks.setflags(write=False)
        self.masks = masks
        self.char_width = char_width
        self.char_height = char_height
        self.face = face

    def canvas_size(self, columns: int, rows: int) -> Tuple[int, int]:
        return columns * self.char_width, rows * self.char_height


def _font_pixel_size(font_size: float) -> int:
    return max(1, int(round(font_size)))


def _advance(font, glyph: str) -> float:
    if hasattr(font, 'getlength'):
        return font.getlength(glyph)
    bbox = font.getbbox(glyph)
    return bbox[2] - bbox[0]


def _line_height(font) -> int:
    if hasattr(font, 'getmetrics'):
        ascent, descent = font.getmetrics()
        return ascent + descent
    bbox = font.getbbox("Mg")
    return bbox[3]


def check_fixed_pitch(font, glyphs: str, face: str) -> None:
    advances = [_advance(font, glyph) for glyph in set(glyphs + "Mi")]
    if max(advances) - min(advances) > PITCH_TOLERANCE_PX:
        raise UnsupportedFont(f"Font {face} is not fixed-pitch")


def resolve_font(font_path: Optional[str], size_px: int):
    """Return ``(font, face_name, configured)`` for the requested face.

    An explicitly configured face must load and is checked for fixed pitch by
    the caller. Otherwise the first available system monospace face is used,
    and Pillow's bundled face as a last resort.
    """
    if font_path:
        try:
            return ImageFont.truetype(font_path, size_px), font_path, True
        except OSError as e:
            raise UnsupportedFont(f"Could not load font at {font_path}: {e}") from e
    candidates = list(MONOSPACE_FONT_CANDIDATES)
    env_font = os.environ.get(FONT_ENV_VAR)
    if env_font:
        candidates.insert(0, env_font)
    for path in candidates:
        if not os.path.isfile(path):
            continue
        try:
            return ImageFont.truetype(path, size_px), path, False
        except OSError:
            logger.debug("Skipping unreadable font %s", path)
            continue
    logger.warning("No monospace system font found, using Pillow's default font")
    return ImageFont.load_default(size_px), "pillow-default", False


@lru_cache(maxsize=32)
def load_glyph_atlas(glyphs: str, font_size: float, font_path: Optional[str] = None) -> GlyphAtlas:
    size_px = _font_pixel_size(font_size)
    font, face, configured = resolve_font(font_path, size_px)
    if configured:
        check_fixed_pitch(font, glyphs, face)
    advances = [_advance(font, glyph) for glyph in glyphs]
    char_width = max(1, math.ceil(max(advances)))
    char_height = max(1, _line_height(font))
    masks = np.zeros((len(glyphs), char_height, char_width), dtype=np.uint8)
    for idx, glyph in enumerate(glyphs):
        if glyph == ' ':
            continue
        cell = Image.new("L", (char_width, char_height), 0)
        draw = ImageDraw.Draw(cell)
        x_offset = max(0, int((char_width - advances[idx]) // 2))
        draw.text((x_offset, 0), glyph, font=font, fill=255)
        masks[idx] = np.asarray(cell, dtype=np.uint8)
    logger.debug("Built %dx%d glyph atlas for %d glyphs from %s", char_width, char_height, len(glyphs), face)
    return GlyphAtlas(masks, char_width, char_height, face)


def atlas_for(ramp: CharacterRamp, font_size: float, font_path: Optional[str] = None) -> GlyphAtlas:
    return load_glyph_atlas(ramp.glyphs, float(font_size), font_path)


def _colorize(mask: np.ndarray) -> np.ndarray:
    # Colors are RGB, canvases are BGR for OpenCV.
    background = np.array(BACKGROUND_COLOR[::-1], dtype=np.float32)
    foreground = np.array(FOREGROUND_COLOR[::-1], dtype=np.float32)
    alpha = mask.astype(np.float32)[:, :, None] / 255.0
    blended = background + alpha * (foreground - background)
    return np.rint(blended).astype(np.uint8)


def rasterize(grid: GlyphGrid, font_size: float, font_path: Optional[str] = None) -> np.ndarray:
    """Draw ``grid`` into a BGR canvas of ``rows*line_height x columns*advance`` pixels."""
    atlas = atlas_for(grid.ramp, font_size, font_path)
    mask = tile_glyphs_numba(
        np.ascontiguousarray(grid.indices, dtype=np.int32),
        atlas.masks,
        atlas.char_height,
        atlas.char_width,
    )
    return _colorize(mask)
