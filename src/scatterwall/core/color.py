# どこで: `src/scatterwall/core/color.py`。
# 何を: 色指定（"#rrggbb" / CSS 名 / RGB(A) 列）を RGBA255 タプルへ正規化する。
# なぜ: recipe・設定ファイル・描画面で同じ色表現を共有するため。

from __future__ import annotations

from typing import Any, cast

from PIL import ImageColor

RGBA255 = tuple[int, int, int, int]
ColorLike = str | tuple[int, int, int] | tuple[int, int, int, int]

WHITE: RGBA255 = (255, 255, 255, 255)
TRANSPARENT: RGBA255 = (0, 0, 0, 0)


def coerce_rgba255(value: object) -> RGBA255:
    """値を RGBA255 タプル `(r, g, b, a)`（0..255）に正規化して返す。

    Parameters
    ----------
    value : object
        `"#2c2c2c"` のような色文字列、または長さ 3/4 のシーケンス。

    Returns
    -------
    RGBA255
        `int()` 化 + 0..255 clamp 済みの RGBA。alpha 省略時は 255。

    Raises
    ------
    ValueError
        解釈できない値の場合。
    """

    if isinstance(value, str):
        try:
            rgb = ImageColor.getrgb(value.strip())
        except ValueError as exc:
            raise ValueError(f"色文字列を解釈できません: {value!r}") from exc
        if len(rgb) == 3:
            return int(rgb[0]), int(rgb[1]), int(rgb[2]), 255
        return int(rgb[0]), int(rgb[1]), int(rgb[2]), int(rgb[3])

    try:
        seq = list(cast(Any, value))
    except TypeError as exc:
        raise ValueError(f"rgb(a) value must be a color string or sequence: {value!r}") from exc
    if len(seq) not in (3, 4):
        raise ValueError(f"rgb(a) value must be a length-3/4 sequence: {value!r}")

    def _clamp(v: object) -> int:
        iv = int(cast(Any, v))
        return 0 if iv < 0 else 255 if iv > 255 else iv

    alpha = _clamp(seq[3]) if len(seq) == 4 else 255
    return _clamp(seq[0]), _clamp(seq[1]), _clamp(seq[2]), alpha


__all__ = ["RGBA255", "ColorLike", "TRANSPARENT", "WHITE", "coerce_rgba255"]
