# どこで: `src/scatterwall/core/errors.py`。
# 何を: ラスタライズ/合成で使う例外型を定義する。
# なぜ: 「呼び出し側へ伝える失敗」と「レイヤーを空として扱う失敗」を型で区別するため。

from __future__ import annotations


class ScatterwallError(Exception):
    """scatterwall の例外基底クラス。"""


class InvalidDimensions(ScatterwallError, ValueError):
    """ラスタライズ対象の幅/高さが正でない。"""

    def __init__(self, width: float, height: float) -> None:
        super().__init__(f"surface の寸法は正である必要がある: got={width}x{height}")
        self.width = width
        self.height = height


class UnsupportedFillKind(ScatterwallError):
    """recipe の fill が Color/Gradient のどちらでもない。

    Notes
    -----
    合成側はこの例外を捕まえ、そのレイヤーを空として扱う（シーン全体は止めない）。
    """

    def __init__(self, fill: object) -> None:
        super().__init__(f"未対応の fill: {fill!r}")
        self.fill = fill


__all__ = ["InvalidDimensions", "ScatterwallError", "UnsupportedFillKind"]
