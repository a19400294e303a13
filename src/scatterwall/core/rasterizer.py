"""
どこで: `src/scatterwall/core/rasterizer.py`。
何を: ScatterRecipe を 1 枚のオフスクリーン RGBA バッファへラスタライズする。
なぜ: レイヤーの中身を「一度焼いて何度も合成する」ため。変位アニメーション用に余白付きで焼く。
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence
from typing import Any

from PIL import Image

from scatterwall.core.color import RGBA255, WHITE
from scatterwall.core.errors import InvalidDimensions, UnsupportedFillKind
from scatterwall.core.gradient import even_color_stops, linear_gradient, radial_gradient
from scatterwall.core.recipe import ColorFill, GradientFill, ScatterRecipe
from scatterwall.core.surface import Surface

# 放射グラデーションの内円半径（外円半径はバッファ高さ）。
RADIAL_INNER_RADIUS = 200.0


def buffer_size(recipe: ScatterRecipe, surface_width: int, surface_height: int) -> tuple[int, int]:
    """変位余白を含めたバッファ寸法 (width, height) を返す。"""

    pad_x, pad_y = recipe.pad
    return int(surface_width) + 2 * pad_x, int(surface_height) + 2 * pad_y


def instance_count(recipe: ScatterRecipe, width: float, height: float) -> int:
    """`floor(density * width * sqrt(height) / repeat_divisor)` を返す。

    Notes
    -----
    高さは平方根でしか効かない（面積比例ではない）。見た目の調整値を再現するため式を変えない。
    """

    return int(math.floor(recipe.density * float(width) * math.sqrt(float(height)) / recipe.repeat_divisor))


def rasterize(
    recipe: ScatterRecipe,
    surface_width: int,
    surface_height: int,
    center: tuple[float, float],
    *,
    rng: Any = None,
    colors: Sequence[RGBA255] | None = None,
) -> Image.Image:
    """recipe を新しいバッファへ描いて返す。

    Parameters
    ----------
    recipe : ScatterRecipe
        描くレイヤーのレシピ。
    surface_width, surface_height : int
        論理面（gap 込みの幅）の寸法。
    center : tuple[float, float]
        シーン中心（論理面座標）。centered 配置と放射グラデーションの中心に使う。
    rng : random.Random or None
        乱数源。None の場合はモジュール `random` を使う。
    colors : Sequence[RGBA255] or None
        gradient fill で使う色列（抽選済み）。None なら `fill.colors` をそのまま使う。

    Returns
    -------
    PIL.Image.Image
        `(surface_width + 2|dx|) x (surface_height + 2|dy|)` の RGBA バッファ。
        既存バッファは変更せず、常に新しい画像を返す。

    Raises
    ------
    InvalidDimensions
        寸法が正でない場合。
    UnsupportedFillKind
        fill が Color/Gradient のどちらでもない場合。
    """

    if int(surface_width) <= 0 or int(surface_height) <= 0:
        raise InvalidDimensions(surface_width, surface_height)

    fill = recipe.fill
    if not isinstance(fill, (ColorFill, GradientFill)):
        raise UnsupportedFillKind(fill)

    _rng = random if rng is None else rng
    width, height = buffer_size(recipe, surface_width, surface_height)
    pad_x, pad_y = recipe.pad
    # 余白ぶん原点がずれるので、中心もバッファ座標へ移す。
    buffer_center = (float(center[0]) + pad_x, float(center[1]) + pad_y)

    surface = Surface(width, height)
    if isinstance(fill, ColorFill):
        _draw_instances(surface, recipe, fill.color, buffer_center, _rng)
        return surface.image

    # gradient: 白でシルエットを焼き、source-in でグラデーションの色だけを差し替える。
    _draw_instances(surface, recipe, WHITE, buffer_center, _rng)
    stops = even_color_stops(list(colors) if colors is not None else list(fill.colors))
    if fill.is_linear:
        x0 = fill.start if fill.start else 0.0
        x1 = fill.end if fill.end else float(width)
        paint = linear_gradient((width, height), x0=x0, x1=x1, stops=stops)
    else:
        paint = radial_gradient(
            (width, height),
            center=buffer_center,
            r0=RADIAL_INNER_RADIUS,
            r1=float(height),
            stops=stops,
        )
    surface.composite_source_in(paint)
    return surface.image


def _draw_instances(
    surface: Surface,
    recipe: ScatterRecipe,
    color: RGBA255,
    center: tuple[float, float],
    rng: Any,
) -> int:
    """recipe の全インスタンスを surface へ描き、描いた個数を返す。"""

    surface.set_fill_color(color)
    surface.set_stroke_color(color)
    surface.set_shadow_color(color)

    count = instance_count(recipe, surface.width, surface.height)
    for _ in range(count):
        x, y = recipe.placement.sample(rng, surface.width, surface.height, center)
        with surface.saved():
            # opacity は合成時に掛ける（焼き込み時は常に 1）。
            surface.set_global_alpha(1.0)
            surface.translate(x, y)
            recipe.stamp(surface, rng)
    return count


__all__ = ["RADIAL_INNER_RADIUS", "buffer_size", "instance_count", "rasterize"]
