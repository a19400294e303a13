"""
どこで: `src/scatterwall/animation/scheduler.py`。
何を: 固定 fps の tick ごとに出力フレームを合成し、dynamic レイヤーの変位と再生成を駆動する。
なぜ: static 合成は 1 回だけ焼き、動く部分（変位・クロスフェード）だけを毎 tick 重ねるため。
"""

from __future__ import annotations

import logging
import math

from scatterwall.animation.tasks import PeriodicTask, TaskLoop
from scatterwall.animation.transition import DEFAULT_TRANSITION_HZ, RegenerationTransition
from scatterwall.core.compositor import Compositor
from scatterwall.core.errors import InvalidDimensions
from scatterwall.core.scene import LayerState, Scene
from scatterwall.core.surface import Surface

_logger = logging.getLogger(__name__)

DEFAULT_FPS = 20.0


def displacement_offset(
    layer: LayerState, elapsed: float
) -> tuple[float, float]:
    """elapsed 時点での layer の描画位置 (x, y) を返す。

    Notes
    -----
    `offset = (displacement_interval * elapsed + phase_offset) * π` として
    `(-dx * sin(offset), dx * sin(offset))` を返す。
    y 成分も dx を使うため、動きは 1 本の sine 位相に乗った斜め往復になる（dy は余白にだけ効く）。
    """

    displacement = layer.recipe.displacement
    if displacement is None:
        return 0.0, 0.0
    interval = layer.recipe.displacement_interval or 0.0
    offset = (interval * elapsed + layer.phase_offset) * math.pi
    s = math.sin(offset)
    return -displacement.dx * s, displacement.dx * s


class AnimationScheduler:
    """アニメーション tick の状態機械。

    Notes
    -----
    - 内部時刻 `elapsed`（ms 相当）は tick ごとに `1000 / (2 * fps)` 進む（実時間の計測値ではない）。
    - dynamic レイヤーは `Idle →(elapsed - last >= regenerate_every)→ Regenerating → Idle`。
      再生成中のレイヤーは再トリガーしない。
    - レイヤー単位の失敗はログに残してそのレイヤーだけ飛ばす（tick 全体は止めない）。
    """

    def __init__(
        self,
        scene: Scene,
        loop: TaskLoop,
        *,
        compositor: Compositor | None = None,
        fps: float = DEFAULT_FPS,
        transition_hz: float = DEFAULT_TRANSITION_HZ,
    ) -> None:
        _fps = float(fps)
        if _fps <= 0:
            raise ValueError("fps は正の値である必要がある")
        self.scene = scene
        self.loop = loop
        self.compositor = compositor if compositor is not None else Compositor(scene)
        self.fps = _fps
        self.transition_hz = float(transition_hz)
        self.elapsed = 0.0
        self.frame_index = 0
        self._frame: Surface | None = None
        self._task: PeriodicTask | None = None

    @property
    def frame_step(self) -> float:
        """1 tick あたりの内部時刻の増分。"""

        return 1000.0 / (2.0 * self.fps)

    @property
    def running(self) -> bool:
        return self._task is not None

    @property
    def frame(self) -> Surface:
        """最後に合成した出力フレーム（gap 抜き）。未合成なら 1 回合成する。"""

        frame = self._frame
        if frame is None:
            frame = self.compose()
            self._frame = frame
        return frame

    def start(self) -> None:
        """タスクループへフレーム tick を登録する。"""

        if self._task is not None:
            return
        self._task = self.loop.schedule_interval(self.tick, 1.0 / self.fps, name="frame")

    def stop(self) -> None:
        """フレーム tick と進行中の再生成をすべて止める。"""

        if self._task is not None:
            self._task.cancel()
            self._task = None
        for layer in self.scene.layers:
            transition = layer.transition
            if transition is not None:
                transition.cancel()

    def tick(self) -> None:
        """1 フレーム分の合成と再生成判定を行い、内部時刻を進める。"""

        self._frame = self.compose()
        self.elapsed += self.frame_step
        self.frame_index += 1

    def compose(self) -> Surface:
        """現在の内部時刻で出力フレームを合成して返す。"""

        scene = self.scene
        compositor = self.compositor
        static = compositor.current_static()

        frame = Surface(scene.width, scene.height)
        frame.set_fill_color(scene.background_color)
        frame.fill_rect(0, 0, frame.width, frame.height)
        compositor.draw_tiled(frame, static.image)

        for layer in scene.dynamic_layers:
            try:
                self._draw_dynamic(frame, layer)
                self._maybe_regenerate(layer)
            except InvalidDimensions:
                raise
            except Exception:
                _logger.exception("Failed to animate layer %s", layer.label)
        return frame

    def _draw_dynamic(self, frame: Surface, layer: LayerState) -> None:
        buffer = self.compositor.layer_buffer(layer, now=self.elapsed)
        if buffer is None:
            return
        x, y = displacement_offset(layer, self.elapsed)
        self.compositor.draw_tiled(
            frame,
            buffer,
            x,
            y,
            alpha=layer.recipe.opacity,
            pad=layer.recipe.pad,
        )

    def _maybe_regenerate(self, layer: LayerState) -> None:
        every = layer.recipe.regenerate_every
        if every is None or layer.transition is not None or layer.buffer is None:
            return
        if self.elapsed - layer.last_regenerate_time > every:
            layer.last_regenerate_time = self.elapsed
            self.regenerate(layer)

    def regenerate(self, layer: LayerState) -> RegenerationTransition | None:
        """layer の再生成を開始する。既に再生成中なら何もしない。"""

        if layer.transition is not None:
            return None
        return RegenerationTransition(self.scene, layer).start(self.loop, hz=self.transition_hz)

    def resize(self, width: int, height: int) -> Surface:
        """シーン寸法を変えて全体を作り直し、新しいフレームを返す。"""

        for layer in self.scene.layers:
            if layer.transition is not None:
                layer.transition.cancel()
        self.scene.resize(width, height)
        self.compositor.invalidate()
        self._frame = self.compose()
        return self._frame


__all__ = ["AnimationScheduler", "DEFAULT_FPS", "displacement_offset"]
