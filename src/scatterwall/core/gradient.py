"""
どこで: `src/scatterwall/core/gradient.py`。
何を: 線形/放射グラデーションを RGBA 配列（numpy）として生成する。
なぜ: gradient fill の着色を「白シルエット + source-in 合成」で行うための塗りを用意するため。
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from scatterwall.core.color import RGBA255, ColorLike, coerce_rgba255

ColorStop = tuple[float, RGBA255]


def even_color_stops(colors: Sequence[ColorLike]) -> list[ColorStop]:
    """色列を `i / n` の位置に並べたカラーストップを返す。

    Notes
    -----
    最後の色は `(n-1)/n` に置かれ、それ以降は最後の色で埋まる。
    """

    n = len(colors)
    if n == 0:
        raise ValueError("グラデーションには 1 色以上が必要")
    return [(float(i) / float(n), coerce_rgba255(c)) for i, c in enumerate(colors)]


def _sample_stops(t: np.ndarray, stops: Sequence[ColorStop]) -> np.ndarray:
    """グラデーション位置 t（任意 shape）を RGBA uint8 配列（shape + (4,)）へ写す。"""

    offsets = np.asarray([float(o) for o, _ in stops], dtype=np.float64)
    colors = np.asarray([c for _, c in stops], dtype=np.float64)
    flat = np.asarray(t, dtype=np.float64).ravel()

    out = np.empty((flat.size, 4), dtype=np.float64)
    for ch in range(4):
        # np.interp は範囲外を端の値で埋める（canvas のパディングと同じ挙動）。
        out[:, ch] = np.interp(flat, offsets, colors[:, ch])
    out = np.clip(np.round(out), 0.0, 255.0).astype(np.uint8)
    return out.reshape(np.shape(t) + (4,))


def linear_gradient(
    size: tuple[int, int],
    *,
    x0: float,
    x1: float,
    stops: Sequence[ColorStop],
) -> np.ndarray:
    """水平方向の線形グラデーションを (h, w, 4) の uint8 配列で返す。

    Notes
    -----
    `x0 == x1` は canvas と同じく何も塗らない（全透明）。
    """

    width, height = int(size[0]), int(size[1])
    if float(x0) == float(x1):
        return np.zeros((height, width, 4), dtype=np.uint8)

    # ピクセル中心で評価する。
    xs = np.arange(width, dtype=np.float64) + 0.5
    t = (xs - float(x0)) / (float(x1) - float(x0))
    row = _sample_stops(t, stops)
    return np.broadcast_to(row[np.newaxis, :, :], (height, width, 4)).copy()


def radial_gradient(
    size: tuple[int, int],
    *,
    center: tuple[float, float],
    r0: float,
    r1: float,
    stops: Sequence[ColorStop],
) -> np.ndarray:
    """同心円の放射グラデーションを (h, w, 4) の uint8 配列で返す。

    Parameters
    ----------
    size : tuple[int, int]
        出力の (width, height)。
    center : tuple[float, float]
        内円/外円の共通中心。
    r0, r1 : float
        内円/外円の半径。t=0 が内円、t=1 が外円。
    stops : Sequence[ColorStop]
        カラーストップ。
    """

    width, height = int(size[0]), int(size[1])
    if float(r0) == float(r1):
        return np.zeros((height, width, 4), dtype=np.uint8)

    cx, cy = float(center[0]), float(center[1])
    xs = np.arange(width, dtype=np.float64) + 0.5 - cx
    ys = np.arange(height, dtype=np.float64) + 0.5 - cy
    dist = np.sqrt(xs[np.newaxis, :] ** 2 + ys[:, np.newaxis] ** 2)
    t = (dist - float(r0)) / (float(r1) - float(r0))
    return _sample_stops(t, stops)


__all__ = ["ColorStop", "even_color_stops", "linear_gradient", "radial_gradient"]
