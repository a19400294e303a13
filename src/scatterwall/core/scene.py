"""
どこで: `src/scatterwall/core/scene.py`。
何を: シーン設定（`SceneConfig`）、レイヤーごとの描画状態（`LayerState`）、シーン本体とファクトリを定義する。
なぜ: 不変のレシピと、実行時に差し替わるバッファ/位相/再生成時刻を分離し、
     シーン構築を明示的な設定 + 注入可能な乱数源で再現可能にするため。
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from PIL import Image

from scatterwall.core.color import RGBA255, coerce_rgba255
from scatterwall.core.rasterizer import rasterize
from scatterwall.core.recipe import GradientFill, ScatterRecipe, expand_repeats

if TYPE_CHECKING:
    from scatterwall.animation.transition import RegenerationTransition

_logger = logging.getLogger(__name__)

DEFAULT_BACKGROUND = "#2c2c2c"


@dataclass(frozen=True, slots=True)
class SceneConfig:
    """シーン構築の入力一式。

    Notes
    -----
    `center` 未指定時は論理面の中央 `(width/2, height/2)` を使う。
    """

    width: int
    height: int
    recipes: tuple[ScatterRecipe, ...]
    gap_size: int = 0
    background_color: RGBA255 = coerce_rgba255(DEFAULT_BACKGROUND)
    center: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        if int(self.gap_size) < 0:
            raise ValueError(f"gap_size は 0 以上である必要がある: got={self.gap_size}")

    @property
    def resolved_center(self) -> tuple[float, float]:
        if self.center is not None:
            return float(self.center[0]), float(self.center[1])
        return float(self.width) / 2.0, float(self.height) / 2.0


@dataclass(slots=True, eq=False)
class LayerState:
    """レシピ 1 個分の実行時状態。

    Notes
    -----
    - `buffer` はこの状態だけが所有する。再生成時は丸ごと差し替え、中身を書き換えない。
    - `phase_offset` / `last_regenerate_time` は初回描画時に乱数で決まる。
    - `transition` は再生成中の RegenerationTransition（無ければ None）。
    """

    index: int
    recipe: ScatterRecipe
    colors: tuple[RGBA255, ...] | None = None
    buffer: Image.Image | None = None
    phase_offset: float = 0.0
    last_regenerate_time: float = 0.0
    transition: RegenerationTransition | None = field(default=None, repr=False)

    @property
    def is_dynamic(self) -> bool:
        return self.recipe.is_dynamic

    @property
    def label(self) -> str:
        return f"{self.index}:{self.recipe.label}"


class Scene:
    """背景・中心・gap・論理寸法とレイヤー状態列を束ねるシーン。"""

    def __init__(
        self,
        config: SceneConfig,
        layers: Sequence[LayerState],
        *,
        rng: Any = None,
    ) -> None:
        self.config = config
        self.width = int(config.width)
        self.height = int(config.height)
        self.gap_size = int(config.gap_size)
        self.background_color = config.background_color
        self.center = config.resolved_center
        self.layers: list[LayerState] = list(layers)
        self.rng = random.Random() if rng is None else rng

    @property
    def surface_width(self) -> int:
        """gap 込みの論理面の幅。"""

        return self.width + self.gap_size

    @property
    def surface_size(self) -> tuple[int, int]:
        return self.surface_width, self.height

    @property
    def static_layers(self) -> list[LayerState]:
        return [layer for layer in self.layers if not layer.is_dynamic]

    @property
    def dynamic_layers(self) -> list[LayerState]:
        return [layer for layer in self.layers if layer.is_dynamic]

    def rasterize_layer(
        self, layer: LayerState, *, colors: tuple[RGBA255, ...] | None = None
    ) -> Image.Image:
        """layer のレシピを現在の寸法で新しくラスタライズして返す（状態は変更しない）。"""

        return rasterize(
            layer.recipe,
            self.surface_width,
            self.height,
            self.center,
            rng=self.rng,
            colors=colors if colors is not None else layer.colors,
        )

    def ensure_buffer(self, layer: LayerState, *, now: float = 0.0) -> Image.Image:
        """layer のバッファを返す。未作成なら初回描画としてラスタライズする。

        `now` はスケジューラ内部時刻。再生成の起点を `[now - every, now)` に散らす。
        """

        buffer = layer.buffer
        if buffer is not None:
            return buffer

        buffer = self.rasterize_layer(layer)
        if layer.is_dynamic:
            # 複数の dynamic レイヤーが同位相で揺れない/同時に再生成しないよう散らす。
            layer.phase_offset = self.rng.random() * 2.0
            every = layer.recipe.regenerate_every
            layer.last_regenerate_time = now - (1.0 - self.rng.random()) * every if every else now
        layer.buffer = buffer
        _logger.debug("rasterized layer %s (%dx%d)", layer.label, buffer.width, buffer.height)
        return buffer

    def invalidate(self) -> None:
        """全レイヤーのバッファを破棄する（次回描画で作り直す）。"""

        for layer in self.layers:
            layer.buffer = None

    def resize(self, width: int, height: int) -> None:
        """論理寸法を更新し、中心を比率で移して全バッファを破棄する。

        Raises
        ------
        ValueError
            寸法が正でない場合。
        """

        w, h = int(width), int(height)
        if w <= 0 or h <= 0:
            raise ValueError(f"resize の寸法は正である必要がある: got={width}x{height}")
        cx, cy = self.center
        self.center = (cx * w / self.width, cy * h / self.height)
        self.width = w
        self.height = h
        self.invalidate()


def create_scene(config: SceneConfig, *, rng: Any = None) -> Scene:
    """設定からシーンを構築する。

    Notes
    -----
    - `repeat_count > 1` のレシピはここで独立レイヤーへ展開する。
    - gradient レイヤーの色列はここで 1 回抽選する（再生成時に再抽選される）。
    - バッファは作らない（初回描画時に遅延生成）。
    """

    _rng = random.Random() if rng is None else rng
    layers: list[LayerState] = []
    for index, recipe in enumerate(expand_repeats(config.recipes)):
        colors = recipe.fill.resolve_colors(_rng) if isinstance(recipe.fill, GradientFill) else None
        layers.append(LayerState(index=index, recipe=recipe, colors=colors))
    return Scene(config, layers, rng=_rng)


__all__ = ["LayerState", "Scene", "SceneConfig", "create_scene"]
