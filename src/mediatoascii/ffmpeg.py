import logging
import shutil
import subprocess
from typing import List

from mediatoascii.errors import MuxError

logger = logging.getLogger(__name__)

FFMPEG_PATH = 'ffmpeg'
FFPROBE_PATH = 'ffprobe'


def setup_ffmpeg():
    """Prefer the binaries installed by ffmpeg-downloader over the system ones."""
    global FFMPEG_PATH, FFPROBE_PATH
    try:
        import ffmpeg_downloader as ffdl
        # Both paths are None until `ffdl install` has downloaded the binaries.
        if ffdl.ffmpeg_path is None or ffdl.ffprobe_path is None:
            logger.info("ffmpeg-downloader has no binaries installed. Using system ffmpeg.")
            return
        FFMPEG_PATH = ffdl.ffmpeg_path
        FFPROBE_PATH = ffdl.ffprobe_path
        logger.info("Using ffmpeg from: %s", FFMPEG_PATH)
        logger.info("Using ffprobe from: %s", FFPROBE_PATH)
    except ImportError:
        logger.info("ffmpeg-downloader not found. Using system ffmpeg.")
    except Exception as e:
        logger.warning("Could not get ffmpeg paths from ffmpeg-downloader: %s. Falling back to system ffmpeg.", e)


def has_audio_stream(video_path: str) -> bool:
    cmd = [
        FFPROBE_PATH, '-v', 'error',
        '-select_streams', 'a',
        '-show_entries', 'stream=index',
        '-of', 'csv=p=0',
        video_path
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        if shutil.which(FFMPEG_PATH) is None:
            logger.warning("ffprobe not found, audio of %s will not be carried over", video_path)
            return False
        return _has_audio_stream_ffmpeg(video_path)
    if result.returncode != 0:
        logger.warning("ffprobe could not read %s: %s", video_path, result.stderr.strip())
        return False
    return bool(result.stdout.strip())


def _has_audio_stream_ffmpeg(video_path: str) -> bool:
    # ffmpeg prints the stream list on stderr and exits non-zero without an output.
    result = subprocess.run([FFMPEG_PATH, '-hide_banner', '-i', video_path], capture_output=True, text=True)
    return 'Audio:' in result.stderr


def container_format(extension: str) -> List[str]:
    extension = extension.lower()
    if extension in ('.mp4', '.m4v', '.mov', '.mkv', '.avi'):
        return []
    return ['-f', 'mp4']


def build_mux_command(video_only_path: str, audio_source_path: str, output_path: str, extension: str) -> List[str]:
    return [
        FFMPEG_PATH, '-y',
        '-i', video_only_path,
        '-i', audio_source_path,
        '-c:v', 'copy',
        '-c:a', 'copy',
        '-map', '0:v:0',
        '-map', '1:a:0',
        '-shortest',
    ] + container_format(extension) + [
        output_path
    ]


def mux_audio(video_only_path: str, audio_source_path: str, output_path: str, extension: str) -> None:
    """Copy the first audio track of ``audio_source_path`` next to the rendered video stream."""
    cmd = build_mux_command(video_only_path, audio_source_path, output_path, extension)
    logger.debug("Running %s", ' '.join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise MuxError(f"ffmpeg not found at {FFMPEG_PATH}") from e
    if result.returncode != 0:
        raise MuxError(f"Muxing audio into {output_path} failed: {result.stderr.strip()}")
