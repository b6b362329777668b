import cv2
import numpy as np
import pytest

from mediatoascii import ffmpeg


def write_video(path, frame_count=100, fps=30.0, size=(40, 30), fourcc='MJPG'):
    width, height = size
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*fourcc), fps, (width, height))
    assert writer.isOpened()
    for i in range(frame_count):
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        frame[:, : width // 2] = (i * 5) % 256
        frame[:, width // 2:] = 255 - (i * 5) % 256
        writer.write(frame)
    writer.release()
    return str(path)


def count_frames(path):
    cap = cv2.VideoCapture(str(path))
    count = 0
    while True:
        ret, _ = cap.read()
        if not ret:
            break
        count += 1
    cap.release()
    return count


@pytest.fixture
def gradient_image(tmp_path):
    """64x48 image going from black on the left to white on the right."""
    row = np.linspace(0, 255, 64).astype(np.uint8)
    img = np.repeat(row[None, :], 48, axis=0)
    path = tmp_path / "gradient.png"
    cv2.imwrite(str(path), cv2.cvtColor(img, cv2.COLOR_GRAY2BGR))
    return str(path)


@pytest.fixture
def sample_video(tmp_path):
    return write_video(tmp_path / "input.avi")


@pytest.fixture
def no_audio(monkeypatch):
    monkeypatch.setattr(ffmpeg, "has_audio_stream", lambda path: False)


@pytest.fixture(autouse=True)
def system_ffmpeg(monkeypatch):
    # setup_ffmpeg() rebinds the module paths; each test starts from the system binaries.
    monkeypatch.setattr(ffmpeg, "FFMPEG_PATH", "ffmpeg")
    monkeypatch.setattr(ffmpeg, "FFPROBE_PATH", "ffprobe")
