"""
どこで: `src/scatterwall/core/stamp.py`。
何を: 細長い角丸矩形を 1 個描く ShapeStamp（`shape_rectangle`）を提供する。
なぜ: scatter の見た目を「配置」と「形状」に分け、形状側を差し替え可能にするため。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from scatterwall.core.stamp_registry import stamp
from scatterwall.core.surface import Surface

_ROTATION = math.radians(45.0)


@dataclass(frozen=True, slots=True)
class RoundedRectStamp:
    """45° 傾けた両端丸の細長い矩形を描く stamp。

    Notes
    -----
    - 実効サイズ `size * (1 + u * size_variation)`。
    - 長さ `実効サイズ * (elongation + u * elongation_variation)`。
      u はインスタンスごとに 1 回だけ引き、サイズと伸びの両方に使う。
    - 50% の確率で x/y それぞれ独立に反転（±1）してから描く。
    - glow は `glow * size` の影ぼかし、線幅は `size * line_width`。
    """

    size: float
    size_variation: float = 0.0
    elongation: float = 2.0
    elongation_variation: float = 0.0
    stroke: bool = False
    line_width: float = 0.1
    glow: float = 0.0

    def __call__(self, surface: Surface, rng: Any) -> None:
        u = rng.random()
        c_size = self.size * (1.0 + u * self.size_variation)
        if rng.random() > 0.5:
            sx = 1.0 if round(rng.random()) == 1 else -1.0
            sy = 1.0 if round(rng.random()) == 1 else -1.0
            surface.scale(sx, sy)

        surface.set_shadow_blur(self.glow * self.size)
        surface.set_line_width(self.size * self.line_width)

        surface.rotate(_ROTATION)
        length = c_size * (self.elongation + u * self.elongation_variation)
        surface.translate(-c_size / 2.0, -length / 2.0)
        if self.stroke:
            surface.stroke_round_rect(0.0, 0.0, c_size, length, c_size)
        else:
            surface.fill_round_rect(0.0, 0.0, c_size, length, c_size)


@stamp(name="rectangle")
def shape_rectangle(
    *,
    size: float,
    size_variation: float = 0.0,
    elongation: float = 2.0,
    elongation_variation: float = 0.0,
    stroke: bool = False,
    line_width: float = 0.1,
    glow: float = 0.0,
) -> RoundedRectStamp:
    """角丸矩形 stamp を生成する。

    Parameters
    ----------
    size : float
        基準サイズ（短辺）。
    size_variation : float
        サイズの揺らぎ率（0 で固定）。
    elongation, elongation_variation : float
        長辺 / 短辺 の比とその揺らぎ。
    stroke : bool
        True なら輪郭線、False なら塗り。
    line_width : float
        `size` に対する線幅の比。
    glow : float
        `size` に対する影ぼかし量の比。
    """

    if float(size) <= 0.0:
        raise ValueError(f"size は正の値である必要がある: got={size}")
    return RoundedRectStamp(
        size=float(size),
        size_variation=float(size_variation),
        elongation=float(elongation),
        elongation_variation=float(elongation_variation),
        stroke=bool(stroke),
        line_width=float(line_width),
        glow=float(glow),
    )


__all__ = ["RoundedRectStamp", "shape_rectangle"]
