import logging
import os
import tempfile
from typing import Any, List, Mapping, NamedTuple, Optional, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from mediatoascii.charsets import get_ramp
from mediatoascii.config import ImageConfig, check_file_exists, check_valid_file, validate_config
from mediatoascii.errors import DecodeError, OutputWriteError, UnsupportedOutputFormat
from mediatoascii.rasterizer import rasterize
from mediatoascii.sampler import sample_frame

logger = logging.getLogger(__name__)

IMAGE_OUTPUT_EXTENSIONS = ('.png', '.jpg', '.jpeg')


class Sink(NamedTuple):
    kind: str
    path: str


def _requested_sinks(config: ImageConfig) -> List[Sink]:
    sinks = []
    if config.output_file_path:
        sinks.append(Sink('text', config.output_file_path))
    if config.output_image_path:
        sinks.append(Sink('image', config.output_image_path))
    return sinks


def _check_sinks(sinks: List[Sink], overwrite: bool) -> None:
    # Every sink is checked before any of them is written.
    for sink in sinks:
        check_file_exists(sink.path, overwrite)
        if sink.kind == 'image':
            extension = os.path.splitext(sink.path)[1].lower()
            if extension not in IMAGE_OUTPUT_EXTENSIONS:
                raise UnsupportedOutputFormat(
                    f"Cannot write image to {sink.path}: supported extensions are {', '.join(IMAGE_OUTPUT_EXTENSIONS)}"
                )


def load_image(image_path: str) -> np.ndarray:
    """Decode an image file into a BGR frame. GIF and other formats OpenCV
    cannot read are decoded through Pillow."""
    check_valid_file(image_path)
    frame = cv2.imread(image_path, cv2.IMREAD_COLOR)
    if frame is not None:
        return frame
    try:
        with Image.open(image_path) as img:
            rgb = np.asarray(img.convert('RGB'))
    except (UnidentifiedImageError, OSError) as e:
        raise DecodeError(f"Cannot open image file {image_path}: {e}") from e
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def encode_image(canvas: np.ndarray, path: str) -> bytes:
    extension = os.path.splitext(path)[1].lower()
    ok, encoded = cv2.imencode(extension, canvas)
    if not ok:
        raise UnsupportedOutputFormat(f"Could not encode image as {extension}")
    return encoded.tobytes()


def _write_outputs(payloads: List[tuple]) -> None:
    """Stage every payload beside its destination, then move them all into place."""
    staged = []
    try:
        for path, data in payloads:
            fd, temp_path = tempfile.mkstemp(prefix='.mediatoascii-', dir=os.path.dirname(os.path.abspath(path)))
            staged.append((temp_path, path))
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
        for temp_path, path in staged:
            os.replace(temp_path, path)
    except OSError as e:
        raise OutputWriteError(f"Cannot write {path}: {e}") from e
    finally:
        for temp_path, _ in staged:
            if os.path.exists(temp_path):
                os.remove(temp_path)


def process_image(config: Union[ImageConfig, Mapping[str, Any]]) -> None:
    """Convert one image to ASCII text and/or a rendered ASCII image.

    Either every requested output is written or none is.
    """
    config = validate_config(ImageConfig, config)
    sinks = _requested_sinks(config)
    _check_sinks(sinks, config.overwrite)

    frame = load_image(config.image_path)
    ramp = get_ramp(config.char_set)
    grid = sample_frame(frame, config.scale_down, config.height_sample_scale, config.invert, ramp)
    logger.info("Sampled %s into %dx%d glyphs", config.image_path, grid.columns, grid.rows)

    payloads = []
    canvas: Optional[np.ndarray] = None
    for sink in sinks:
        if sink.kind == 'text':
            payloads.append((sink.path, grid.to_text().encode('utf-8')))
        else:
            if canvas is None:
                canvas = rasterize(grid, config.font_size, config.font_path)
            payloads.append((sink.path, encode_image(canvas, sink.path)))
    _write_outputs(payloads)
    for sink in sinks:
        logger.info("ASCII %s saved to %s", sink.kind, sink.path)
