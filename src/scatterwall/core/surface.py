"""
どこで: `src/scatterwall/core/surface.py`。
何を: Pillow の RGBA 画像を 2D 描画面として扱う `Surface` を提供する。
なぜ: 変換行列の save/restore・影（glow）・角丸矩形・合成モード・部分ブリットを
     1 箇所に閉じ込め、ラスタライザ/合成器を描画 API だけで書けるようにするため。
"""

from __future__ import annotations

import contextlib
import math
from collections.abc import Iterator
from dataclasses import dataclass, field, replace

import numpy as np
from PIL import Image, ImageDraw, ImageFilter

from scatterwall.core.color import RGBA255, TRANSPARENT, ColorLike, coerce_rgba255

# マスクのスーパーサンプリング倍率（縁のジャギー低減）。
_SUPERSAMPLE = 2


def _identity() -> np.ndarray:
    return np.eye(3, dtype=np.float64)


@dataclass(slots=True)
class DrawState:
    """save/restore の対象になる描画状態。"""

    matrix: np.ndarray = field(default_factory=_identity)
    fill_color: RGBA255 = (0, 0, 0, 255)
    stroke_color: RGBA255 = (0, 0, 0, 255)
    shadow_color: RGBA255 = TRANSPARENT
    shadow_blur: float = 0.0
    line_width: float = 1.0
    global_alpha: float = 1.0

    def copy(self) -> "DrawState":
        return replace(self, matrix=self.matrix.copy())


def with_alpha(image: Image.Image, alpha: float) -> Image.Image:
    """image の alpha チャンネルに `alpha` を掛けた新しい画像を返す（alpha>=1 は同一物）。"""

    a = float(alpha)
    if a >= 1.0:
        return image
    out = image.copy()
    if a <= 0.0:
        out.putalpha(0)
        return out
    channel = np.asarray(out.getchannel("A"), dtype=np.float32) * a
    out.putalpha(Image.fromarray(np.round(channel).astype(np.uint8)))
    return out


def round_rect_points(
    x: float,
    y: float,
    w: float,
    h: float,
    radius: float,
    *,
    segments: int = 8,
) -> np.ndarray:
    """角丸矩形の輪郭点列（ローカル座標, shape (N, 2)）を返す。

    Notes
    -----
    半径は canvas の roundRect と同様に、隣り合う角の半径和が辺長を超えないよう縮小する。
    幅と同じ半径を渡すと両端が半円になる。
    """

    r = max(0.0, float(radius))
    aw, ah = abs(float(w)), abs(float(h))
    if r > 0.0:
        scale = min(1.0, aw / (2.0 * r) if aw > 0 else 0.0, ah / (2.0 * r) if ah > 0 else 0.0)
        r *= scale

    x0, y0 = min(x, x + w), min(y, y + h)
    x1, y1 = max(x, x + w), max(y, y + h)
    if r <= 0.0:
        return np.asarray([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], dtype=np.float64)

    # y 下向き座標系で、左上 → 右上 → 右下 → 左下 の順に角を回る。
    corners = (
        (x0 + r, y0 + r, math.pi, 1.5 * math.pi),
        (x1 - r, y0 + r, 1.5 * math.pi, 2.0 * math.pi),
        (x1 - r, y1 - r, 0.0, 0.5 * math.pi),
        (x0 + r, y1 - r, 0.5 * math.pi, math.pi),
    )
    n = max(2, int(segments))
    pts: list[tuple[float, float]] = []
    for cx, cy, a0, a1 in corners:
        for i in range(n + 1):
            a = a0 + (a1 - a0) * (i / n)
            pts.append((cx + r * math.cos(a), cy + r * math.sin(a)))
    return np.asarray(pts, dtype=np.float64)


class Surface:
    """RGBA 画像 1 枚に対する 2D 描画面。

    Notes
    -----
    - 形状描画（round rect）は現在の変換行列を通して行う。
    - `draw_image` / `fill_rect` は変換行列を使わずデバイス座標で扱う。
    - 合成は Pillow の `alpha_composite`（source-over）。
    """

    def __init__(self, width: int, height: int, *, image: Image.Image | None = None) -> None:
        if image is None:
            image = Image.new("RGBA", (int(width), int(height)), TRANSPARENT)
        elif image.mode != "RGBA":
            raise ValueError(f"Surface は RGBA 画像のみ扱う: mode={image.mode!r}")
        self.image = image
        self._state = DrawState()
        self._stack: list[DrawState] = []

    @classmethod
    def wrap(cls, image: Image.Image) -> "Surface":
        """既存の RGBA 画像をそのまま描画先にする Surface を返す。"""

        return cls(image.width, image.height, image=image)

    @property
    def width(self) -> int:
        return int(self.image.width)

    @property
    def height(self) -> int:
        return int(self.image.height)

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    # --- 状態 ---

    @property
    def state(self) -> DrawState:
        return self._state

    def set_fill_color(self, color: ColorLike) -> None:
        self._state.fill_color = coerce_rgba255(color)

    def set_stroke_color(self, color: ColorLike) -> None:
        self._state.stroke_color = coerce_rgba255(color)

    def set_shadow_color(self, color: ColorLike) -> None:
        self._state.shadow_color = coerce_rgba255(color)

    def set_shadow_blur(self, blur: float) -> None:
        self._state.shadow_blur = max(0.0, float(blur))

    def set_line_width(self, width: float) -> None:
        if float(width) > 0.0:
            self._state.line_width = float(width)

    def set_global_alpha(self, alpha: float) -> None:
        a = float(alpha)
        if 0.0 <= a <= 1.0:
            self._state.global_alpha = a

    def save(self) -> None:
        self._stack.append(self._state.copy())

    def restore(self) -> None:
        if self._stack:
            self._state = self._stack.pop()

    @contextlib.contextmanager
    def saved(self) -> Iterator["Surface"]:
        """`save()` / `restore()` を with で対にする。"""

        self.save()
        try:
            yield self
        finally:
            self.restore()

    # --- 変換 ---

    def _apply(self, m: np.ndarray) -> None:
        self._state.matrix = self._state.matrix @ m

    def translate(self, dx: float, dy: float) -> None:
        self._apply(np.asarray([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]]))

    def rotate(self, radians: float) -> None:
        c, s = math.cos(radians), math.sin(radians)
        self._apply(np.asarray([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]))

    def scale(self, sx: float, sy: float) -> None:
        self._apply(np.asarray([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]]))

    def transform_points(self, pts: np.ndarray) -> np.ndarray:
        """ローカル座標の点列 (N, 2) をデバイス座標へ変換して返す。"""

        m = self._state.matrix
        return pts @ m[:2, :2].T + m[:2, 2]

    def _device_scale(self) -> float:
        return math.sqrt(abs(float(np.linalg.det(self._state.matrix[:2, :2]))))

    # --- 描画 ---

    def fill_rect(self, x: int, y: int, w: int, h: int) -> None:
        """fill 色の矩形をデバイス座標で source-over 合成する。"""

        color = self._state.fill_color
        alpha = self._state.global_alpha * (color[3] / 255.0)
        box = _clip_box((int(x), int(y), int(x) + int(w), int(y) + int(h)), self.size)
        if box is None or alpha <= 0.0:
            return
        bw, bh = box[2] - box[0], box[3] - box[1]
        if alpha >= 1.0:
            self.image.paste(color[:3] + (255,), box)
            return
        patch = Image.new("RGBA", (bw, bh), color[:3] + (int(round(alpha * 255.0)),))
        self.image.alpha_composite(patch, dest=(box[0], box[1]))

    def fill_round_rect(self, x: float, y: float, w: float, h: float, radius: float) -> None:
        """角丸矩形を fill 色で塗る。"""

        self._draw_round_rect(x, y, w, h, radius, stroke=False)

    def stroke_round_rect(self, x: float, y: float, w: float, h: float, radius: float) -> None:
        """角丸矩形の輪郭を stroke 色・line_width で描く。"""

        self._draw_round_rect(x, y, w, h, radius, stroke=True)

    def _draw_round_rect(
        self, x: float, y: float, w: float, h: float, radius: float, *, stroke: bool
    ) -> None:
        scale = self._device_scale()
        segments = int(min(32, max(4, math.ceil(radius * scale / 2.0))))
        local = round_rect_points(x, y, w, h, radius, segments=segments)
        pts = self.transform_points(local)
        line_width = self._state.line_width * scale if stroke else 0.0
        self._rasterize_polygon(pts, stroke=stroke, line_width=line_width)

    def _rasterize_polygon(self, pts: np.ndarray, *, stroke: bool, line_width: float) -> None:
        state = self._state
        color = state.stroke_color if stroke else state.fill_color
        sigma = state.shadow_blur / 2.0
        has_shadow = state.shadow_color[3] > 0 and sigma > 0.0

        margin = line_width / 2.0 + 2.0 + (3.0 * sigma if has_shadow else 0.0)
        left = int(math.floor(float(pts[:, 0].min()) - margin))
        top = int(math.floor(float(pts[:, 1].min()) - margin))
        right = int(math.ceil(float(pts[:, 0].max()) + margin))
        bottom = int(math.ceil(float(pts[:, 1].max()) + margin))
        if right <= 0 or bottom <= 0 or left >= self.width or top >= self.height:
            return

        mask = _polygon_mask(pts - (left, top), (right - left, bottom - top), stroke, line_width)

        if has_shadow:
            shadow = mask.filter(ImageFilter.GaussianBlur(radius=sigma))
            self._composite_mask(shadow, state.shadow_color, left, top)
        self._composite_mask(mask, color, left, top)

    def _composite_mask(self, mask: Image.Image, color: RGBA255, left: int, top: int) -> None:
        """mask を alpha として color を (left, top) に source-over 合成する。"""

        box = _clip_box((left, top, left + mask.width, top + mask.height), self.size)
        if box is None:
            return
        mask = mask.crop((box[0] - left, box[1] - top, box[2] - left, box[3] - top))
        factor = self._state.global_alpha * (color[3] / 255.0)
        if factor <= 0.0:
            return
        if factor < 1.0:
            scaled = np.asarray(mask, dtype=np.float32) * factor
            mask = Image.fromarray(np.round(scaled).astype(np.uint8))
        patch = Image.new("RGBA", mask.size, color[:3] + (0,))
        patch.putalpha(mask)
        self.image.alpha_composite(patch, dest=(box[0], box[1]))

    def composite_source_in(self, paint: np.ndarray) -> None:
        """塗り配列 (h, w, 4) を source-in で合成する。

        Notes
        -----
        出力色は塗りの色、出力 alpha は `塗り alpha × 既存 alpha`。
        不透明な塗りなら既存のシルエット（alpha）はそのまま保たれる。
        """

        arr = np.asarray(paint, dtype=np.uint8)
        if arr.shape != (self.height, self.width, 4):
            raise ValueError(
                f"paint の shape が surface と一致しません: got={arr.shape}, "
                f"expected={(self.height, self.width, 4)}"
            )
        dst_alpha = np.asarray(self.image.getchannel("A"), dtype=np.uint16)
        out_alpha = (arr[:, :, 3].astype(np.uint16) * dst_alpha + 127) // 255
        out = arr.copy()
        out[:, :, 3] = out_alpha.astype(np.uint8)
        out[out[:, :, 3] == 0] = 0
        self.image.paste(Image.fromarray(out), (0, 0))

    def draw_image(
        self,
        src: Image.Image,
        sx: int = 0,
        sy: int = 0,
        sw: int | None = None,
        sh: int | None = None,
        dx: int = 0,
        dy: int = 0,
        dw: int | None = None,
        dh: int | None = None,
        *,
        alpha: float = 1.0,
    ) -> None:
        """src の矩形 (sx, sy, sw, sh) を (dx, dy, dw, dh) へ source-over で描く。

        Notes
        -----
        - src の範囲外は透明として扱う（何も描かれない）。
        - dw/dh が sw/sh と異なる場合は拡縮してから描く。
        - 実効 alpha は `alpha × global_alpha`。
        """

        _sw = int(src.width - sx) if sw is None else int(sw)
        _sh = int(src.height - sy) if sh is None else int(sh)
        _dw = _sw if dw is None else int(dw)
        _dh = _sh if dh is None else int(dh)
        if _sw <= 0 or _sh <= 0 or _dw <= 0 or _dh <= 0:
            return
        effective = float(alpha) * self._state.global_alpha
        if effective <= 0.0:
            return

        x, y = int(round(dx)), int(round(dy))
        box = _clip_box((x, y, x + _dw, y + _dh), self.size)
        if box is None:
            return

        region = src.crop((int(sx), int(sy), int(sx) + _sw, int(sy) + _sh))
        if (_dw, _dh) != (_sw, _sh):
            region = region.resize((_dw, _dh), Image.Resampling.BILINEAR)
        region = region.crop((box[0] - x, box[1] - y, box[2] - x, box[3] - y))
        if region.mode != "RGBA":
            region = region.convert("RGBA")
        self.image.alpha_composite(with_alpha(region, effective), dest=(box[0], box[1]))


def _clip_box(
    box: tuple[int, int, int, int], size: tuple[int, int]
) -> tuple[int, int, int, int] | None:
    """box を (0, 0, w, h) に収め、空なら None を返す。"""

    x0, y0 = max(0, box[0]), max(0, box[1])
    x1, y1 = min(int(size[0]), box[2]), min(int(size[1]), box[3])
    if x1 <= x0 or y1 <= y0:
        return None
    return x0, y0, x1, y1


def _polygon_mask(
    pts: np.ndarray, size: tuple[int, int], stroke: bool, line_width: float
) -> Image.Image:
    """多角形（patch 座標）を L マスクへ塗る。スーパーサンプリング後に縮小する。"""

    ss = _SUPERSAMPLE
    w, h = int(size[0]), int(size[1])
    big = Image.new("L", (w * ss, h * ss), 0)
    draw = ImageDraw.Draw(big)
    coords = [(float(px) * ss, float(py) * ss) for px, py in pts]
    if stroke:
        width = max(1, int(round(line_width * ss)))
        draw.line(coords + [coords[0], coords[1]], fill=255, width=width, joint="curve")
    else:
        draw.polygon(coords, fill=255)
    if ss == 1:
        return big
    return big.resize((w, h), Image.Resampling.BOX)


__all__ = ["DrawState", "Surface", "round_rect_points", "with_alpha"]
