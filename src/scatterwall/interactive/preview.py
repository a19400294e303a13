# どこで: `src/scatterwall/interactive/preview.py`。
# 何を: アニメーションするシーンを pyglet ウィンドウで実時間プレビューする。
# なぜ: pyglet 依存をこの層に閉じ込め、core/animation/export をヘッドレスに保つため。

from __future__ import annotations

import logging
from pathlib import Path

import pyglet
from pyglet.window import Window, key
from PIL import Image

from scatterwall.animation.clock import RealTimeClock
from scatterwall.animation.scheduler import AnimationScheduler
from scatterwall.animation.tasks import TaskLoop
from scatterwall.animation.transition import DEFAULT_TRANSITION_HZ
from scatterwall.core.scene import Scene
from scatterwall.export.image import default_png_output_path, save_png
from scatterwall.export.video import VideoRecordingSystem, default_video_output_path

_logger = logging.getLogger(__name__)

# 実時間が大きく飛んだ（ウィンドウ移動中など）ときに追いかけず捨てる遅れ（秒）。
_MAX_LAG = 0.5


def _preview_size(size: tuple[int, int], scale: float) -> tuple[int, int]:
    w, h = size
    return max(1, int(round(w * float(scale)))), max(1, int(round(h * float(scale))))


def _to_pyglet_image(image: Image.Image, size: tuple[int, int]) -> pyglet.image.ImageData:
    """PIL 画像を表示サイズへ縮小し、pyglet の ImageData にして返す。"""

    rgba = image.convert("RGBA")
    if rgba.size != size:
        rgba = rgba.resize(size, Image.Resampling.BILINEAR)
    w, h = rgba.size
    # PIL は上から下、pyglet は下から上の行順なので負の pitch で渡す。
    return pyglet.image.ImageData(w, h, "RGBA", rgba.tobytes(), pitch=-w * 4)


class PreviewWindowSystem:
    """プレビューウィンドウ 1 枚分のサブシステム。

    Notes
    -----
    - フレーム tick / クロスフェード tick は TaskLoop に載り、pyglet clock から `pump()` で進める。
    - S キーで現在フレームを PNG 保存、V キーで録画の開始/停止。
    """

    def __init__(
        self,
        scene: Scene,
        *,
        fps: float,
        transition_hz: float = DEFAULT_TRANSITION_HZ,
        scale: float = 0.25,
        window_pos: tuple[int, int] | None = None,
        png_output_path: Path | None = None,
        video_output_path: Path | None = None,
    ) -> None:
        self._clock = RealTimeClock()
        self.loop = TaskLoop(self._clock, max_lag=_MAX_LAG)
        self.scheduler = AnimationScheduler(scene, self.loop, fps=fps, transition_hz=transition_hz)
        self._scale = float(scale)
        self._transition_hz = float(transition_hz)

        self._png_output_path = (
            Path(png_output_path) if png_output_path is not None else default_png_output_path()
        )
        _video_output_path = (
            Path(video_output_path) if video_output_path is not None else default_video_output_path()
        )
        self._recording = VideoRecordingSystem(output_path=_video_output_path, fps=float(fps))

        self._view_size = _preview_size((scene.width, scene.height), self._scale)
        self.window = Window(  # type: ignore[abstract]
            width=self._view_size[0],
            height=self._view_size[1],
            resizable=False,
            caption="scatterwall",
        )
        if window_pos is not None:
            self.window.set_location(int(window_pos[0]), int(window_pos[1]))
        self.window.push_handlers(on_key_press=self._on_key_press, on_draw=self.draw_frame)

        self._image: pyglet.image.ImageData | None = None
        self._shown_frame = -1

    def _on_key_press(self, symbol: int, _modifiers: int) -> None:
        if symbol == key.S:
            try:
                path = self.save_png()
                print(f"Saved PNG: {path}")
            except Exception as e:
                _logger.exception("Failed to save PNG")
                print(f"Failed to save PNG: {e}")
            return
        if symbol == key.V:
            if not self._recording.is_recording:
                scene = self.scheduler.scene
                self._recording.start(size=(scene.width, scene.height))
            else:
                self._recording.stop()

    def save_png(self) -> Path:
        """現在の出力フレーム（原寸・gap 抜き）を PNG として保存し、保存先パスを返す。"""

        return save_png(self.scheduler.frame.image, self._png_output_path)

    def pump(self, _dt: float = 0.0) -> None:
        """期限の来たタスクを実行し、新しいフレームがあれば表示と録画へ流す。"""

        self.loop.run_due()
        scheduler = self.scheduler
        if scheduler.frame_index == self._shown_frame:
            return
        self._shown_frame = scheduler.frame_index
        frame = scheduler.frame.image
        self._image = _to_pyglet_image(frame, self._view_size)
        if self._recording.is_recording:
            self._recording.write_frame(frame)

    def draw_frame(self) -> None:
        """最後に合成したフレームを back buffer へ描く（`flip()` は pyglet が行う）。"""

        self.window.clear()
        image = self._image
        if image is not None:
            image.blit(0, 0)

    def run(self) -> None:
        """ウィンドウが閉じられるまでプレビューを回す。"""

        def request_exit(*_: object) -> None:
            pyglet.app.exit()

        self.window.push_handlers(on_close=request_exit)
        self.scheduler.start()
        self.pump()
        pyglet.clock.schedule_interval(self.pump, 1.0 / self._transition_hz)
        try:
            pyglet.app.run()
        finally:
            pyglet.clock.unschedule(self.pump)
            self.close()

    def close(self) -> None:
        """録画とタスクを止めてウィンドウを閉じる。"""

        if self._recording.is_recording:
            try:
                self._recording.stop()
            except Exception:
                _logger.exception("Failed to stop video recording")
        self.scheduler.stop()
        self.loop.cancel_all()
        self.window.close()


def run_preview(
    scene: Scene,
    *,
    fps: float,
    transition_hz: float = DEFAULT_TRANSITION_HZ,
    scale: float = 0.25,
    window_pos: tuple[int, int] | None = None,
    png_output_path: Path | None = None,
    video_output_path: Path | None = None,
) -> None:
    """シーンのプレビューウィンドウを開き、閉じられるまでブロックする。"""

    PreviewWindowSystem(
        scene,
        fps=fps,
        transition_hz=transition_hz,
        scale=scale,
        window_pos=window_pos,
        png_output_path=png_output_path,
        video_output_path=video_output_path,
    ).run()


__all__ = ["PreviewWindowSystem", "run_preview"]
