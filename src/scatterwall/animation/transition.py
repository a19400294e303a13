"""
どこで: `src/scatterwall/animation/transition.py`。
何を: dynamic レイヤーの再生成（新バッファへのクロスフェード）を 1 回分担当する。
なぜ: 再生成中の一時状態（旧/新バッファ・alpha）をレイヤー状態から切り離し、
     完了時に「新バッファそのもの」へ確実に置き換えるため。
"""

from __future__ import annotations

import logging

from PIL import Image

from scatterwall.animation.tasks import PeriodicTask, TaskLoop
from scatterwall.core.recipe import GradientFill
from scatterwall.core.scene import LayerState, Scene
from scatterwall.core.surface import Surface

_logger = logging.getLogger(__name__)

# クロスフェード 1 tick あたりの alpha 増分。
ALPHA_STEP = 0.01
# クロスフェード tick の既定周波数（Hz）。
DEFAULT_TRANSITION_HZ = 100.0


class RegenerationTransition:
    """旧バッファから新バッファへのクロスフェード。

    Notes
    -----
    - 生成時に新バッファをラスタライズする（gradient は色列を再抽選する）。
    - `step()` の k 回目で `alpha = k * ALPHA_STEP`。
      `alpha < 1` の間は「旧を 1-alpha、新を alpha」で重ねた合成バッファを、
      `alpha >= 1` で新バッファそのものをレイヤーへ 1 回の代入で差し込む。
    """

    def __init__(self, scene: Scene, layer: LayerState) -> None:
        self.layer = layer
        self.old: Image.Image | None = layer.buffer

        fill = layer.recipe.fill
        colors = fill.resolve_colors(scene.rng) if isinstance(fill, GradientFill) else None
        self.new: Image.Image = scene.rasterize_layer(layer, colors=colors)
        if colors is not None:
            layer.colors = colors

        self.step_index = 0
        self.done = False
        self._task: PeriodicTask | None = None

    @property
    def alpha(self) -> float:
        return float(self.step_index) * ALPHA_STEP

    def start(self, loop: TaskLoop, *, hz: float = DEFAULT_TRANSITION_HZ) -> "RegenerationTransition":
        """タスクループへ tick を登録し、レイヤーを再生成中にする。"""

        if self.layer.transition is not None and self.layer.transition is not self:
            raise RuntimeError(f"layer {self.layer.label} は既に再生成中")
        self.layer.transition = self
        self._task = loop.schedule_interval(
            self.step,
            1.0 / float(hz),
            name=f"transition:{self.layer.label}",
        )
        _logger.debug("regeneration started for layer %s", self.layer.label)
        return self

    def step(self) -> None:
        """クロスフェードを 1 tick 進める。"""

        if self.done:
            return
        self.step_index += 1
        alpha = self.alpha
        if alpha >= 1.0:
            self.finish()
            return

        blended = Surface(self.new.width, self.new.height)
        if self.old is not None:
            blended.draw_image(self.old, alpha=1.0 - alpha)
        blended.draw_image(self.new, alpha=alpha)
        # 書き終えた画像だけを差し込む（読み手は常に完成したバッファを見る）。
        self.layer.buffer = blended.image

    def finish(self) -> None:
        """新バッファへ確定して終了する。"""

        self.layer.buffer = self.new
        self.old = None
        self._stop()
        _logger.debug("regeneration finished for layer %s", self.layer.label)

    def cancel(self) -> None:
        """途中で止める（レイヤーは現在の合成バッファのまま）。"""

        self.old = None
        self._stop()

    def _stop(self) -> None:
        self.done = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self.layer.transition is self:
            self.layer.transition = None


__all__ = ["ALPHA_STEP", "DEFAULT_TRANSITION_HZ", "RegenerationTransition"]
