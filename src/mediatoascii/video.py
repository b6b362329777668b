import logging
import math
import os
import shutil
import tempfile
import time
from concurrent.futures import FIRST_COMPLETED, ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

import cv2
import numpy as np

from mediatoascii import ffmpeg
from mediatoascii.charsets import CharacterRamp, get_ramp
from mediatoascii.config import Rotation, VideoConfig, check_file_exists, check_valid_file, validate_config
from mediatoascii.errors import Cancelled, DecodeError, MediaToAsciiError, MuxError, OutputWriteError, RenderError
from mediatoascii.progress import CancellationToken, ProgressChannel
from mediatoascii.rasterizer import BACKGROUND_COLOR, atlas_for, rasterize
from mediatoascii.sampler import sample_frame

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
# Upper bound on progress reports per run.
PROGRESS_STEPS = 100
# Progress stays below this until the output file is in place.
STREAMING_PROGRESS_CAP = 0.99
# Frames after which progress reaches one half when the frame count is unknown.
UNKNOWN_TOTAL_HALF_POINT = 300

FOURCC_BY_EXTENSION = {
    '.mp4': 'mp4v',
    '.m4v': 'mp4v',
    '.mov': 'mp4v',
    '.mkv': 'mp4v',
    '.avi': 'MJPG',
}
DEFAULT_VIDEO_EXTENSION = '.mp4'


@dataclass(frozen=True)
class VideoSummary:
    output_path: str
    frames_read: int
    frames_rendered: int
    frames_written: int
    source_fps: float
    output_fps: float
    stride: int
    audio: bool


def frame_stride(native_fps: float, max_fps: float) -> int:
    """Keep every k-th frame so the processed rate does not exceed ``max_fps``."""
    if native_fps <= 0 or native_fps <= max_fps:
        return 1
    return max(1, int(round(native_fps / max_fps)))


def output_frame_rate(native_fps: float, max_fps: float, use_max_fps_for_output_video: bool) -> float:
    if native_fps <= 0:
        return max_fps
    if use_max_fps_for_output_video:
        return min(native_fps, max_fps)
    return native_fps


def rotate_frame(frame: np.ndarray, rotate: Union[Rotation, int]) -> np.ndarray:
    if rotate == Rotation.NONE:
        return frame
    return cv2.rotate(frame, int(rotate))


def streaming_progress(frames_consumed: int, total_frames: int) -> float:
    if total_frames > 0:
        value = frames_consumed / total_frames
    else:
        value = frames_consumed / (frames_consumed + UNKNOWN_TOTAL_HALF_POINT)
    return min(value, STREAMING_PROGRESS_CAP)


def pad_to_even(canvas: np.ndarray) -> np.ndarray:
    pad_bottom = canvas.shape[0] % 2
    pad_right = canvas.shape[1] % 2
    if not pad_bottom and not pad_right:
        return canvas
    return cv2.copyMakeBorder(canvas, 0, pad_bottom, 0, pad_right, cv2.BORDER_CONSTANT,
                              value=BACKGROUND_COLOR[::-1])


class ReorderBuffer:
    """Releases items strictly in sequence order, whatever order they arrive in."""

    def __init__(self, start: int = 0):
        self._next = start
        self._pending: Dict[int, Any] = {}

    def __len__(self):
        return len(self._pending)

    @property
    def next_seq(self) -> int:
        return self._next

    def push(self, seq: int, item: Any) -> None:
        if seq < self._next or seq in self._pending:
            raise ValueError(f"Frame {seq} was already queued")
        self._pending[seq] = item

    def pop_ready(self) -> List[Any]:
        ready = []
        while self._next in self._pending:
            ready.append(self._pending.pop(self._next))
            self._next += 1
        return ready


class VideoSource:
    """An opened input container."""

    def __init__(self, video_path: str):
        check_valid_file(video_path)
        self.video_path = video_path
        self.cap = cv2.VideoCapture(video_path)
        if not self.cap.isOpened():
            self.cap.release()
            raise DecodeError(f"Cannot open video file {video_path}")
        fps = self.cap.get(cv2.CAP_PROP_FPS)
        self.fps = fps if fps and math.isfinite(fps) and fps > 0 else 0.0
        self.total_frames = max(0, int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT)))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()

    def frames(self) -> Iterator[np.ndarray]:
        while True:
            ret, frame = self.cap.read()
            if not ret:
                return
            yield frame

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class VideoEncoder:
    """OpenCV writer opened lazily once the first frame's size is known."""

    def __init__(self, path: str, fourcc: str, fps: float):
        self.path = path
        self.fourcc = fourcc
        self.fps = fps
        self.frames_written = 0
        self._writer = None

    def write(self, canvas: np.ndarray) -> None:
        if self._writer is None:
            height, width = canvas.shape[:2]
            self._writer = cv2.VideoWriter(self.path, cv2.VideoWriter_fourcc(*self.fourcc), self.fps, (width, height))
            if not self._writer.isOpened():
                raise MuxError(f"Failed to initialize {self.fourcc} video writer for {self.path}")
            logger.info("Recording initialized: %dx%d @ %.2f FPS", width, height, self.fps)
        self._writer.write(canvas)
        self.frames_written += 1

    def release(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None


class FrameRenderer:
    """rotate -> sample -> rasterize for a single frame. Safe to call from several threads."""

    def __init__(self, config: VideoConfig, ramp: CharacterRamp):
        self.config = config
        self.ramp = ramp

    def __call__(self, frame: np.ndarray) -> np.ndarray:
        frame = rotate_frame(frame, self.config.rotate)
        grid = sample_frame(frame, self.config.scale_down, self.config.height_sample_scale,
                            self.config.invert, self.ramp)
        return pad_to_even(rasterize(grid, self.config.font_size, self.config.font_path))


class VideoConversion:
    """A single run of the video pipeline."""

    def __init__(self, config: VideoConfig, progress: Optional[ProgressChannel] = None,
                 cancel: Optional[CancellationToken] = None, workers: int = DEFAULT_WORKERS):
        self.config = config
        self.progress = progress
        self.cancel = cancel
        self.workers = max(1, workers)
        self.reorder = ReorderBuffer()
        self.frames_read = 0
        self.frames_rendered = 0
        # At the native output rate each kept frame is held until the next one.
        self._hold_frames = not config.use_max_fps_for_output_video
        self._held = None
        self._report_every = 1
        self._last_reported = 0

    def _check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.cancelled:
            raise Cancelled(f"Conversion of {self.config.video_path} was cancelled")

    def _report(self, frames_consumed: int, total_frames: int) -> None:
        if self.progress is None:
            return
        if frames_consumed - self._last_reported < self._report_every:
            return
        self._last_reported = frames_consumed
        self.progress.publish(streaming_progress(frames_consumed, total_frames))

    def _collect(self, in_flight: Dict, encoder: VideoEncoder, total_frames: int, return_when: str) -> None:
        if not in_flight:
            return
        done, _ = wait(list(in_flight), return_when=return_when)
        for future in done:
            seq, consumed = in_flight.pop(future)
            self.reorder.push(seq, (self._rendered(future), consumed))
        for canvas, consumed in self.reorder.pop_ready():
            self._emit(encoder, canvas, consumed)
            self._report(consumed, total_frames)

    def _rendered(self, future) -> np.ndarray:
        try:
            return future.result()
        except MediaToAsciiError:
            raise
        except Exception as e:
            raise RenderError(f"Rendering a frame of {self.config.video_path} failed: {e}") from e

    def _emit(self, encoder: VideoEncoder, canvas: np.ndarray, consumed: int) -> None:
        self.frames_rendered += 1
        if not self._hold_frames:
            encoder.write(canvas)
            return
        if self._held is not None:
            held, held_at = self._held
            for _ in range(consumed - held_at):
                encoder.write(held)
        self._held = (canvas, consumed)

    def _flush_held(self, encoder: VideoEncoder) -> None:
        if self._held is None:
            return
        held, held_at = self._held
        self._held = None
        # The last kept frame covers every source frame read after it.
        for _ in range(self.frames_read - held_at + 1):
            encoder.write(held)

    def _stream(self, source: VideoSource, encoder: VideoEncoder, stride: int) -> None:
        renderer = FrameRenderer(self.config, get_ramp(self.config.char_set))
        total_frames = source.total_frames
        window = self.workers * 2
        in_flight: Dict = {}
        seq = 0
        executor = ThreadPoolExecutor(max_workers=self.workers)
        try:
            for frame in source.frames():
                self._check_cancelled()
                self.frames_read += 1
                if (self.frames_read - 1) % stride:
                    continue
                future = executor.submit(renderer, frame)
                in_flight[future] = (seq, self.frames_read)
                seq += 1
                if len(in_flight) >= window:
                    self._collect(in_flight, encoder, total_frames, FIRST_COMPLETED)
                if self.frames_read % 100 == 0:
                    logger.debug("Processed %d/%d frames", self.frames_read, total_frames)
            self._collect(in_flight, encoder, total_frames, ALL_COMPLETED)
            self._flush_held(encoder)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def run(self) -> VideoSummary:
        config = self.config
        start_time = time.time()
        output_path = config.output_video_path
        extension = os.path.splitext(output_path)[1].lower()
        writer_extension = extension if extension in FOURCC_BY_EXTENSION else DEFAULT_VIDEO_EXTENSION
        fourcc = FOURCC_BY_EXTENSION[writer_extension]

        with VideoSource(config.video_path) as source:
            stride = frame_stride(source.fps, config.max_fps)
            output_fps = output_frame_rate(source.fps, config.max_fps, config.use_max_fps_for_output_video)
            if source.fps <= 0:
                logger.warning("%s does not report a frame rate, writing at %.2f FPS", config.video_path, output_fps)
            if source.total_frames <= 0:
                logger.warning("%s does not report a frame count, progress is an estimate", config.video_path)
            else:
                self._report_every = max(1, source.total_frames // PROGRESS_STEPS)
            logger.info("Video FPS: %.2f, Total Frames: %d, stride: %d, output FPS: %.2f",
                        source.fps, source.total_frames, stride, output_fps)
            audio = ffmpeg.has_audio_stream(config.video_path)
            # Warm the glyph atlas so a bad font fails before any frame is decoded.
            atlas_for(get_ramp(config.char_set), config.font_size, config.font_path)

            output_dir = os.path.dirname(os.path.abspath(output_path))
            try:
                os.makedirs(output_dir, exist_ok=True)
                temp_dir = tempfile.mkdtemp(prefix='.mediatoascii-', dir=output_dir)
            except OSError as e:
                raise OutputWriteError(f"Cannot write to {output_dir}: {e}") from e
            encoder = VideoEncoder(os.path.join(temp_dir, 'video' + writer_extension), fourcc, output_fps)
            try:
                try:
                    self._stream(source, encoder, stride)
                finally:
                    encoder.release()
                if encoder.frames_written == 0:
                    raise DecodeError(f"Cannot read any frame from {config.video_path}")
                self._check_cancelled()

                if audio:
                    logger.info("Muxing audio with video...")
                    staged = os.path.join(temp_dir, 'output' + (extension or DEFAULT_VIDEO_EXTENSION))
                    ffmpeg.mux_audio(encoder.path, config.video_path, staged, extension)
                else:
                    staged = encoder.path
                try:
                    os.replace(staged, output_path)
                except OSError as e:
                    raise OutputWriteError(f"Cannot publish {output_path}: {e}") from e
            finally:
                shutil.rmtree(temp_dir, ignore_errors=True)

        if self.progress is not None:
            self.progress.publish(1.0)
        total_time = time.time() - start_time
        logger.info("ASCII video saved to %s", output_path)
        logger.info("Frames processed: %d read, %d rendered, %d written in %.2f seconds",
                    self.frames_read, self.frames_rendered, encoder.frames_written, total_time)
        return VideoSummary(
            output_path=output_path,
            frames_read=self.frames_read,
            frames_rendered=self.frames_rendered,
            frames_written=encoder.frames_written,
            source_fps=source.fps,
            output_fps=output_fps,
            stride=stride,
            audio=audio,
        )


def process_video(config: Union[VideoConfig, Mapping[str, Any]], progress: Optional[ProgressChannel] = None,
                  cancel: Optional[CancellationToken] = None, workers: int = DEFAULT_WORKERS) -> VideoSummary:
    """Render a video as ASCII art into ``output_video_path``, keeping its audio.

    Progress is published to ``progress`` while frames are written, and 1.0
    once the output file is in place. The channel is closed when the run
    ends, whatever the outcome. Raises ``Cancelled`` if ``cancel`` is set
    between two frames; no output is left behind in that case or on failure.
    """
    try:
        config = validate_config(VideoConfig, config)
        check_file_exists(config.output_video_path, config.overwrite)
        return VideoConversion(config, progress, cancel, workers).run()
    except Cancelled:
        logger.info("Video conversion cancelled")
        raise
    finally:
        if progress is not None:
            progress.close()
