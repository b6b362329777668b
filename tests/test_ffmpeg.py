import subprocess
import sys
import types

import pytest

from mediatoascii import ffmpeg
from mediatoascii.errors import MuxError


class _Completed:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def test_mux_command_copies_both_streams():
    cmd = ffmpeg.build_mux_command("video.mp4", "input.mov", "out.mp4", ".mp4")
    assert cmd[0] == ffmpeg.FFMPEG_PATH
    assert cmd[cmd.index("-c:v") + 1] == "copy"
    assert cmd[cmd.index("-c:a") + 1] == "copy"
    assert "0:v:0" in cmd and "1:a:0" in cmd
    assert "-f" not in cmd
    assert cmd[-1] == "out.mp4"


def test_unknown_extension_defaults_to_mp4():
    cmd = ffmpeg.build_mux_command("video.mp4", "input.mov", "out.video", ".video")
    assert cmd[-3:] == ["-f", "mp4", "out.video"]


def test_mux_failure_raises(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda *a, **k: _Completed(returncode=1, stderr="bad codec"))
    with pytest.raises(MuxError, match="bad codec"):
        ffmpeg.mux_audio("v.mp4", "a.mp4", "o.mp4", ".mp4")


def test_missing_ffmpeg_raises_mux_error(monkeypatch):
    def missing(*args, **kwargs):
        raise FileNotFoundError("ffmpeg")

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(MuxError):
        ffmpeg.mux_audio("v.mp4", "a.mp4", "o.mp4", ".mp4")


@pytest.mark.parametrize("stdout, expected", [("1\n", True), ("", False)])
def test_has_audio_stream(monkeypatch, stdout, expected):
    monkeypatch.setattr(subprocess, "run", lambda *a, **k: _Completed(stdout=stdout))
    assert ffmpeg.has_audio_stream("in.mp4") is expected


def test_has_audio_stream_probe_error(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda *a, **k: _Completed(returncode=1, stderr="invalid data"))
    assert ffmpeg.has_audio_stream("in.mp4") is False


def test_has_audio_stream_without_ffprobe(monkeypatch):
    def run(cmd, **kwargs):
        if cmd[0] == ffmpeg.FFPROBE_PATH:
            raise FileNotFoundError(cmd[0])
        return _Completed(returncode=1, stderr="Stream #0:1: Audio: aac, 44100 Hz")

    monkeypatch.setattr(subprocess, "run", run)
    monkeypatch.setattr(ffmpeg.shutil, "which", lambda name: "/usr/bin/ffmpeg")
    assert ffmpeg.has_audio_stream("in.mp4") is True
    monkeypatch.setattr(ffmpeg.shutil, "which", lambda name: None)
    assert ffmpeg.has_audio_stream("in.mp4") is False


def test_setup_ffmpeg_without_downloader(monkeypatch):
    monkeypatch.setitem(sys.modules, "ffmpeg_downloader", None)
    monkeypatch.setattr(ffmpeg, "FFMPEG_PATH", "ffmpeg")
    ffmpeg.setup_ffmpeg()
    assert ffmpeg.FFMPEG_PATH == "ffmpeg"


def test_setup_ffmpeg_before_binaries_are_downloaded(monkeypatch):
    downloader = types.SimpleNamespace(ffmpeg_path=None, ffprobe_path=None)
    monkeypatch.setitem(sys.modules, "ffmpeg_downloader", downloader)
    ffmpeg.setup_ffmpeg()
    assert ffmpeg.FFMPEG_PATH == "ffmpeg"
    assert ffmpeg.FFPROBE_PATH == "ffprobe"


def test_setup_ffmpeg_uses_downloaded_binaries(monkeypatch):
    downloader = types.SimpleNamespace(ffmpeg_path="/opt/ffdl/ffmpeg", ffprobe_path="/opt/ffdl/ffprobe")
    monkeypatch.setitem(sys.modules, "ffmpeg_downloader", downloader)
    ffmpeg.setup_ffmpeg()
    assert ffmpeg.FFMPEG_PATH == "/opt/ffdl/ffmpeg"
    assert ffmpeg.FFPROBE_PATH == "/opt/ffdl/ffprobe"
