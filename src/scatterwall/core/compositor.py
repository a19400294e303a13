"""
どこで: `src/scatterwall/core/compositor.py`。
何を: 背景 + static レイヤーの合成と、gap を跨ぐ 2 分割タイル描画（`draw_tiled`）を提供する。
なぜ: 2 枚のモニタ間のベゼル（gap）を論理上の不可視帯として扱い、
     左右の物理出力へ継ぎ目なく割り付けるため。
"""

from __future__ import annotations

import logging

from PIL import Image

from scatterwall.core.errors import InvalidDimensions, UnsupportedFillKind
from scatterwall.core.scene import LayerState, Scene
from scatterwall.core.surface import Surface

_logger = logging.getLogger(__name__)


def draw_tiled(
    target: Surface,
    buffer: Image.Image,
    x: float,
    y: float,
    *,
    logical_width: int,
    gap_size: int,
    alpha: float = 1.0,
    pad: tuple[int, int] = (0, 0),
) -> None:
    """buffer を gap 抜きの出力 target へ左右 2 回に分けて描く。

    Parameters
    ----------
    target : Surface
        gap を含まない出力面（幅 `logical_width`）。
    buffer : PIL.Image.Image
        gap 込みの論理座標で描かれたバッファ。
    x, y : float
        バッファ内容の論理座標上の位置（変位）。
    logical_width : int
        論理幅（gap を除く）。
    gap_size : int
        左右の半分の間にある不可視帯の幅。
    alpha : float
        合成時の不透明度。
    pad : tuple[int, int]
        バッファの変位余白。バッファ左上は論理座標 `(x - pad_x, y - pad_y)` に置かれる。

    Notes
    -----
    - 左半分（幅 `logical_width // 2`）はそのまま出力の左半分へ。
    - 右半分はソース側を `logical_width // 2 + gap_size` だけずらして読み、出力の `logical_width // 2` から描く。
    - gap 帯そのものはどちらにも描かれない。
    """

    half = int(logical_width) // 2
    right_width = int(logical_width) - half
    origin_x = float(x) - pad[0]
    origin_y = float(y) - pad[1]
    sy = int(round(-origin_y))
    sh = target.height

    # 左半分: 論理 [0, half) → 出力 [0, half)
    target.draw_image(
        buffer,
        sx=int(round(0.0 - origin_x)),
        sy=sy,
        sw=half,
        sh=sh,
        dx=0,
        dy=0,
        alpha=alpha,
    )
    # 右半分: 論理 [half + gap, logical_width + gap) → 出力 [half, logical_width)
    target.draw_image(
        buffer,
        sx=int(round(half + int(gap_size) - origin_x)),
        sy=sy,
        sw=right_width,
        sh=sh,
        dx=half,
        dy=0,
        alpha=alpha,
    )


class Compositor:
    """シーンの可視面（gap 込み）を所有し、static 合成とタイル描画を行う。"""

    def __init__(self, scene: Scene) -> None:
        self.scene = scene
        self.static_surface: Surface | None = None

    def _fill_background(self, surface: Surface) -> None:
        surface.set_fill_color(self.scene.background_color)
        surface.fill_rect(0, 0, surface.width, surface.height)

    def layer_buffer(self, layer: LayerState, *, now: float = 0.0) -> Image.Image | None:
        """layer のバッファを返す。描けないレイヤーは None（空レイヤー扱い）。

        Raises
        ------
        InvalidDimensions
            シーン寸法が不正な場合（描画パス全体の失敗として呼び出し側へ返す）。
        """

        try:
            return self.scene.ensure_buffer(layer, now=now)
        except InvalidDimensions:
            raise
        except UnsupportedFillKind:
            _logger.debug("skip layer %s: unsupported fill", layer.label)
            return None
        except Exception:
            _logger.exception("Failed to rasterize layer %s", layer.label)
            return None

    def render_static(self) -> Surface:
        """背景 + static レイヤーを宣言順に合成した可視面を作り直して返す。"""

        surface = Surface(*self.scene.surface_size)
        self._fill_background(surface)
        for layer in self.scene.static_layers:
            buffer = self.layer_buffer(layer)
            if buffer is None:
                continue
            surface.draw_image(buffer, alpha=layer.recipe.opacity)
        self.static_surface = surface
        return surface

    def current_static(self) -> Surface:
        """static 合成を返す。未作成かシーン寸法と食い違う場合は作り直す。"""

        static = self.static_surface
        if static is None or static.image.size != self.scene.surface_size:
            static = self.render_static()
        return static

    def render(self) -> Surface:
        """static 合成に、dynamic レイヤーを静止位置（変位 0）で重ねた面を返す。"""

        static = self.current_static()
        surface = Surface.wrap(static.image.copy())
        for layer in self.scene.dynamic_layers:
            buffer = self.layer_buffer(layer)
            if buffer is None:
                continue
            pad_x, pad_y = layer.recipe.pad
            surface.draw_image(buffer, dx=-pad_x, dy=-pad_y, alpha=layer.recipe.opacity)
        return surface

    def draw_tiled(
        self,
        target: Surface,
        buffer: Image.Image,
        x: float = 0.0,
        y: float = 0.0,
        *,
        alpha: float = 1.0,
        pad: tuple[int, int] = (0, 0),
    ) -> None:
        """シーンの論理幅/gap で `draw_tiled` を呼ぶ。"""

        draw_tiled(
            target,
            buffer,
            x,
            y,
            logical_width=self.scene.width,
            gap_size=self.scene.gap_size,
            alpha=alpha,
            pad=pad,
        )

    def invalidate(self) -> None:
        """static 合成を破棄する（resize 後など）。"""

        self.static_surface = None

    def resize(self, width: int, height: int) -> Surface:
        """シーン寸法を変えて static 合成を作り直し、新しい可視面を返す。"""

        self.scene.resize(width, height)
        self.invalidate()
        return self.render()


__all__ = ["Compositor", "draw_tiled"]
