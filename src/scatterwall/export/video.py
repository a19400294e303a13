# どこで: `src/scatterwall/export/video.py`。
# 何を: 合成済みフレームを ffmpeg の stdin へ raw RGB24 で流し、動画として保存する。
# なぜ: 揺れと再生成のアニメーションを、プレビュー実時間に左右されない固定 fps の動画で残すため。

from __future__ import annotations

import subprocess
from pathlib import Path

from PIL import Image

from scatterwall.animation.clock import RecordingClock
from scatterwall.animation.scheduler import AnimationScheduler
from scatterwall.animation.tasks import TaskLoop
from scatterwall.animation.transition import DEFAULT_TRANSITION_HZ
from scatterwall.core.runtime_config import output_root_dir
from scatterwall.core.scene import Scene


def default_video_output_path(stem: str = "wallpaper", *, ext: str = "mp4") -> Path:
    """動画の既定保存パス `{output_root}/video/{stem}.{ext}` を返す。"""

    suffix = str(ext).lstrip(".") or "mp4"
    return output_root_dir() / "video" / f"{stem}.{suffix}"


def _ffmpeg_command(*, output_path: Path, size: tuple[int, int], fps: float) -> list[str]:
    width, height = size
    # PIL の tobytes() は上の行から並ぶので、GL 読み出しと違って上下反転は要らない。
    source = ["-f", "rawvideo", "-pix_fmt", "rgb24", "-video_size", f"{width}x{height}"]
    source += ["-framerate", str(float(fps)), "-i", "-"]
    encode = ["-an", "-c:v", "libx264", "-pix_fmt", "yuv420p"]
    return ["ffmpeg", "-hide_banner", "-loglevel", "error", "-y", *source, *encode, str(output_path)]


class VideoRecorder:
    """固定サイズの RGB フレームを ffmpeg へ書き込む録画器。

    Parameters
    ----------
    output_path : Path
        出力動画。親ディレクトリは無ければ作る。
    size : tuple[int, int]
        フレームの (width, height)。途中で変えられない。
    fps : float
        動画のフレームレート。

    Raises
    ------
    ValueError
        size/fps が正でない場合。
    RuntimeError
        ffmpeg を起動できない場合。
    """

    def __init__(self, *, output_path: Path, size: tuple[int, int], fps: float) -> None:
        width, height = int(size[0]), int(size[1])
        if width <= 0 or height <= 0 or float(fps) <= 0:
            raise ValueError(f"録画には正の size/fps が必要です: size={size}, fps={fps}")

        self.path = Path(output_path)
        self.size = (width, height)
        self.fps = float(fps)
        self._frame_bytes = width * height * 3

        self.path.parent.mkdir(parents=True, exist_ok=True)
        cmd = _ffmpeg_command(output_path=self.path, size=self.size, fps=self.fps)
        try:
            self._proc: subprocess.Popen[bytes] | None = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise RuntimeError("ffmpeg が見つかりません（PATH を確認してください）") from e

    def write_frame_rgb24(self, frame: bytes) -> None:
        """1 フレーム分の RGB24 バイト列を書き込む。"""

        if self._proc is None or self._proc.stdin is None:
            raise RuntimeError(f"録画は終了しています: {self.path}")
        if len(frame) != self._frame_bytes:
            raise ValueError(f"フレームのバイト数が合いません: got={len(frame)}, expected={self._frame_bytes}")
        self._proc.stdin.write(frame)

    def write_image(self, image: Image.Image) -> None:
        """合成済みフレーム（RGBA 可）を RGB に落として書き込む。"""

        if image.size != self.size:
            raise ValueError(f"フレームサイズが録画サイズと違います: got={image.size}, expected={self.size}")
        self.write_frame_rgb24(image.convert("RGB").tobytes())

    def close(self) -> None:
        """EOF を送って ffmpeg の終了を待つ。2 回目以降は何もしない。"""

        proc, self._proc = self._proc, None
        if proc is None:
            return
        _stdout, stderr = proc.communicate(input=b"")
        if proc.returncode != 0:
            details = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise RuntimeError(f"ffmpeg が失敗しました (code={proc.returncode}). {details}".strip())


class VideoRecordingSystem:
    """プレビューの V キーで開始/停止する録画。録画中は表示したフレームを 1 枚ずつ書き込む。"""

    def __init__(self, *, output_path: Path, fps: float) -> None:
        self._output_path = Path(output_path)
        self._fps = float(fps)
        self._recorder: VideoRecorder | None = None
        self._frames = 0

    @property
    def is_recording(self) -> bool:
        return self._recorder is not None

    def start(self, *, size: tuple[int, int]) -> None:
        """録画を開始する。録画中なら何もしない。"""

        if self._recorder is not None:
            return
        self._recorder = VideoRecorder(output_path=self._output_path, size=size, fps=self._fps)
        self._frames = 0
        print(f"Started video recording: {self._output_path} (fps={self._fps:g})")

    def write_frame(self, image: Image.Image) -> None:
        if self._recorder is None:
            return
        self._recorder.write_image(image)
        self._frames += 1

    def stop(self) -> None:
        """ffmpeg を閉じて録画を終える。録画中でなければ何もしない。"""

        recorder, self._recorder = self._recorder, None
        if recorder is None:
            return
        recorder.close()
        print(f"Saved video: {recorder.path} (frames={self._frames}, seconds={self._frames / self._fps:.3f})")


def record_scene(
    scene: Scene,
    output_path: str | Path,
    *,
    frames: int,
    fps: float,
    transition_hz: float = DEFAULT_TRANSITION_HZ,
) -> Path:
    """シーンのアニメーションを実時間と切り離して `frames` フレーム録画し、保存先パスを返す。

    Notes
    -----
    時刻は RecordingClock（`frame_index / fps`）で進める。
    フレーム合成は 1 フレームにつき必ず 1 回、再生成クロスフェードはその時刻までに期限の来た分だけ実行する。
    """

    n = int(frames)
    if n <= 0:
        raise ValueError(f"frames は正の整数である必要がある: got={frames}")

    clock = RecordingClock(t0=0.0, fps=fps)
    loop = TaskLoop(clock)
    scheduler = AnimationScheduler(scene, loop, fps=fps, transition_hz=transition_hz)
    recorder = VideoRecorder(output_path=Path(output_path), size=(scene.width, scene.height), fps=fps)
    try:
        for _ in range(n):
            loop.run_due(clock.t())
            scheduler.tick()
            recorder.write_image(scheduler.frame.image)
            clock.tick()
    finally:
        scheduler.stop()
        loop.cancel_all()
        recorder.close()
    print(f"Saved video: {recorder.path} (frames={n}, seconds={n / float(fps):.3f})")
    return recorder.path


__all__ = [
    "VideoRecorder",
    "VideoRecordingSystem",
    "default_video_output_path",
    "record_scene",
]
