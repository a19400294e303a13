from __future__ import annotations

import random
from pathlib import Path

import pytest
from PIL import Image

from scatterwall.core.recipe import ColorFill, Displacement, ScatterRecipe
from scatterwall.core.runtime_config import set_config_path
from scatterwall.core.scene import SceneConfig, create_scene
from scatterwall.core.stamp import shape_rectangle
from scatterwall.export import video
from scatterwall.export.video import _ffmpeg_command, default_video_output_path


@pytest.fixture(autouse=True)
def _reset_runtime_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    set_config_path(None)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    yield
    set_config_path(None)


class _FakeStdin:
    def __init__(self) -> None:
        self.frames: list[bytes] = []

    def write(self, data: bytes) -> None:
        self.frames.append(bytes(data))


class _FakePopen:
    instances: list["_FakePopen"] = []

    def __init__(self, cmd, *, stdin, stdout, stderr) -> None:
        self.cmd = list(cmd)
        self.stdin = _FakeStdin()
        self.returncode: int | None = None
        _FakePopen.instances.append(self)

    def communicate(self, input: bytes = b""):
        self.returncode = 0
        return b"", b""


@pytest.fixture
def fake_ffmpeg(monkeypatch: pytest.MonkeyPatch) -> type[_FakePopen]:
    _FakePopen.instances = []
    monkeypatch.setattr(video.subprocess, "Popen", _FakePopen)
    return _FakePopen


def test_default_video_output_path_uses_data_dir():
    path = default_video_output_path()
    assert path.parts[:3] == ("data", "output", "video")
    assert path.name == "wallpaper.mp4"
    assert default_video_output_path("loop", ext=".webm").name == "loop.webm"


def test_ffmpeg_command_contains_expected_rawvideo_args():
    cmd = _ffmpeg_command(output_path=Path("out.mp4"), size=(320, 240), fps=20.0)

    assert cmd[0] == "ffmpeg"
    assert "rawvideo" in cmd
    assert "rgb24" in cmd
    assert "320x240" in cmd
    assert "20.0" in cmd
    # フレームは上から下の行順で渡すので反転しない。
    assert "vflip" not in cmd
    assert cmd[-1] == "out.mp4"


def test_recorder_writes_rgb24_frames(fake_ffmpeg, tmp_path: Path):
    recorder = video.VideoRecorder(output_path=tmp_path / "v" / "out.mp4", size=(4, 2), fps=20.0)
    recorder.write_image(Image.new("RGBA", (4, 2), (10, 20, 30, 255)))
    recorder.close()

    proc = fake_ffmpeg.instances[0]
    assert proc.stdin.frames == [bytes((10, 20, 30)) * 8]
    assert (tmp_path / "v").is_dir()
    with pytest.raises(RuntimeError):
        recorder.write_frame_rgb24(b"\x00" * 24)


def test_recorder_rejects_wrong_frame_size(fake_ffmpeg, tmp_path: Path):
    recorder = video.VideoRecorder(output_path=tmp_path / "out.mp4", size=(4, 2), fps=20.0)
    with pytest.raises(ValueError):
        recorder.write_image(Image.new("RGBA", (2, 2)))
    with pytest.raises(ValueError):
        recorder.write_frame_rgb24(b"\x00")


def test_missing_ffmpeg_raises_runtime_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    def missing(*args, **kwargs):
        raise FileNotFoundError("ffmpeg")

    monkeypatch.setattr(video.subprocess, "Popen", missing)
    with pytest.raises(RuntimeError):
        video.VideoRecorder(output_path=tmp_path / "out.mp4", size=(4, 2), fps=20.0)


def test_recording_system_toggles_and_counts_frames(fake_ffmpeg, tmp_path: Path):
    system = video.VideoRecordingSystem(output_path=tmp_path / "rec.mp4", fps=20.0)
    frame = Image.new("RGBA", (4, 2), (0, 0, 0, 255))

    system.write_frame(frame)
    assert fake_ffmpeg.instances == []

    system.start(size=(4, 2))
    assert system.is_recording
    system.write_frame(frame)
    system.write_frame(frame)
    system.stop()

    assert not system.is_recording
    assert len(fake_ffmpeg.instances[0].stdin.frames) == 2


def test_record_scene_writes_one_frame_per_tick(fake_ffmpeg, tmp_path: Path):
    recipe = ScatterRecipe(
        density=0.02,
        opacity=1.0,
        fill=ColorFill.of("#8bc34a"),
        stamp=shape_rectangle(size=4),
        displacement=Displacement(2, 2),
        displacement_interval=0.002,
        regenerate_every=50.0,
    )
    scene = create_scene(SceneConfig(width=24, height=12, recipes=(recipe,), gap_size=2), rng=random.Random(4))

    path = video.record_scene(scene, tmp_path / "anim.mp4", frames=8, fps=20.0)

    assert path == tmp_path / "anim.mp4"
    frames = fake_ffmpeg.instances[0].stdin.frames
    assert len(frames) == 8
    assert all(len(f) == 24 * 12 * 3 for f in frames)
    assert scene.layers[0].transition is None


def test_recorder_close_reports_ffmpeg_failure_once(fake_ffmpeg, tmp_path: Path):
    recorder = video.VideoRecorder(output_path=tmp_path / "out.mp4", size=(4, 2), fps=20.0)
    proc = fake_ffmpeg.instances[0]

    def failing(input: bytes = b""):
        proc.returncode = 1
        return b"", b"encoder exploded"

    proc.communicate = failing
    with pytest.raises(RuntimeError, match="encoder exploded"):
        recorder.close()
    recorder.close()
