"""
どこで: `src/scatterwall/core/recipe.py`。
何を: scatter レイヤー 1 枚分の宣言的レシピ（`ScatterRecipe`）と、その部品（fill/配置/変位）を定義する。
なぜ: 「何をどれだけどこに描くか」を不変データに固定し、描画結果（バッファ）と分離して扱うため。
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from scatterwall.core.color import RGBA255, ColorLike, coerce_rgba255
from scatterwall.core.stamp_registry import ShapeStamp


@dataclass(frozen=True, slots=True)
class ColorFill:
    """単色 fill。"""

    color: RGBA255

    @property
    def fill_kind(self) -> str:
        return "color"

    @classmethod
    def of(cls, color: ColorLike) -> "ColorFill":
        return cls(color=coerce_rgba255(color))


@dataclass(frozen=True, slots=True)
class GradientFill:
    """色列によるグラデーション fill。

    Notes
    -----
    - `start` があれば水平の線形グラデーション（`end` 省略時はバッファ幅まで）、None なら放射グラデーション。
    - 実際に使う色の部分列は `resolve_colors(rng)` で決める。
      `shuffle=True` なら並べ替え、`sample` があれば先頭 `sample` 色だけを使う。
    """

    colors: tuple[RGBA255, ...]
    shuffle: bool = False
    sample: int | None = None
    start: float | None = None
    end: float | None = None

    def __post_init__(self) -> None:
        if len(self.colors) == 0:
            raise ValueError("GradientFill には 1 色以上が必要")
        if self.sample is not None and int(self.sample) <= 0:
            raise ValueError(f"sample は正の整数である必要がある: got={self.sample}")

    @property
    def fill_kind(self) -> str:
        return "gradient"

    @property
    def is_linear(self) -> bool:
        return self.start is not None

    @classmethod
    def of(
        cls,
        colors: Sequence[ColorLike],
        *,
        shuffle: bool = False,
        sample: int | None = None,
        start: float | None = None,
        end: float | None = None,
    ) -> "GradientFill":
        return cls(
            colors=tuple(coerce_rgba255(c) for c in colors),
            shuffle=bool(shuffle),
            sample=None if sample is None else int(sample),
            start=None if start is None else float(start),
            end=None if end is None else float(end),
        )

    def resolve_colors(self, rng: Any) -> tuple[RGBA255, ...]:
        """このレイヤーで使う色列を 1 回分抽選して返す。"""

        colors = list(self.colors)
        if self.shuffle:
            rng.shuffle(colors)
        if self.sample is not None:
            colors = colors[: int(self.sample)]
        return tuple(colors)


Fill = ColorFill | GradientFill


@dataclass(frozen=True, slots=True)
class RandomPlacement:
    """バッファ全面に一様に配置する。"""

    def sample(
        self, rng: Any, width: float, height: float, center: tuple[float, float]
    ) -> tuple[float, float]:
        return rng.random() * width, rng.random() * height


@dataclass(frozen=True, slots=True)
class CenteredPlacement:
    """中心点まわりの極座標オフセットで配置する。

    中心からの距離は `offset + U * offset_variation`、角度は `U * 2π`。
    """

    offset: float = 0.0
    offset_variation: float = 0.0

    def __post_init__(self) -> None:
        if self.offset < 0 or self.offset_variation < 0:
            raise ValueError(
                "offset / offset_variation は 0 以上である必要がある: "
                f"got=({self.offset}, {self.offset_variation})"
            )

    def sample(
        self, rng: Any, width: float, height: float, center: tuple[float, float]
    ) -> tuple[float, float]:
        distance = self.offset
        if self.offset_variation:
            distance += rng.random() * self.offset_variation
        angle = rng.random() * math.pi * 2.0
        return center[0] + math.cos(angle) * distance, center[1] + math.sin(angle) * distance


Placement = RandomPlacement | CenteredPlacement


@dataclass(frozen=True, slots=True)
class Displacement:
    """合成時に加える周期的な位置ずれの振幅。"""

    dx: float
    dy: float

    @property
    def pad(self) -> tuple[int, int]:
        """バッファを上下左右に広げる余白（ピクセル）。"""

        return int(math.ceil(abs(self.dx))), int(math.ceil(abs(self.dy)))


@dataclass(frozen=True, slots=True)
class ScatterRecipe:
    """scatter レイヤー 1 枚分のレシピ。

    Notes
    -----
    - 目標インスタンス数は `density * width * sqrt(height) / repeat_divisor`（floor）。
    - `displacement` があれば dynamic（アニメーション対象）、無ければ static。
    - `regenerate_every` は dynamic レシピでのみ有効（スケジューラ内部時刻 ms 単位）。
    - `repeat_count > 1` のレシピは `expand_repeats()` で独立したレシピ列へ展開する。
    """

    density: float
    opacity: float
    fill: Fill
    stamp: ShapeStamp
    placement: Placement = RandomPlacement()
    repeat_count: int = 1
    repeat_divisor: int = 1
    displacement: Displacement | None = None
    displacement_interval: float | None = None
    regenerate_every: float | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.density < 0:
            raise ValueError(f"density は 0 以上である必要がある: got={self.density}")
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"opacity は 0..1 である必要がある: got={self.opacity}")
        if int(self.repeat_count) < 1 or int(self.repeat_divisor) < 1:
            raise ValueError(
                f"repeat_count / repeat_divisor は 1 以上: got=({self.repeat_count}, {self.repeat_divisor})"
            )
        if self.regenerate_every is not None:
            if self.displacement is None:
                raise ValueError("regenerate_every は dynamic レシピ（displacement あり）でのみ指定できる")
            if self.regenerate_every <= 0:
                raise ValueError(f"regenerate_every は正の値である必要がある: got={self.regenerate_every}")

    @property
    def is_dynamic(self) -> bool:
        return self.displacement is not None

    @property
    def pad(self) -> tuple[int, int]:
        if self.displacement is None:
            return 0, 0
        return self.displacement.pad

    @property
    def label(self) -> str:
        kind = getattr(self.fill, "fill_kind", type(self.fill).__name__)
        return self.name if self.name else f"{kind}-scatter"


def expand_repeats(recipes: Iterable[ScatterRecipe]) -> list[ScatterRecipe]:
    """`repeat_count > 1` のレシピを独立インスタンス列へ展開する。

    各インスタンスは `repeat_divisor = repeat_count` を持ち、密度を等分する。
    展開後の合計密度は分割数に依らない。
    """

    out: list[ScatterRecipe] = []
    for recipe in recipes:
        n = int(recipe.repeat_count)
        if n <= 1:
            out.append(recipe)
            continue
        for i in range(n):
            out.append(
                replace(
                    recipe,
                    repeat_count=1,
                    repeat_divisor=n * int(recipe.repeat_divisor),
                    name=f"{recipe.label}#{i + 1}",
                )
            )
    return out


__all__ = [
    "CenteredPlacement",
    "ColorFill",
    "Displacement",
    "Fill",
    "GradientFill",
    "Placement",
    "RandomPlacement",
    "ScatterRecipe",
    "expand_repeats",
]
