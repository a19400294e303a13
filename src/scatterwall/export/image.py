"""
どこで: `src/scatterwall/export/image.py`。
何を: gap 込みの可視面から連続した 1 枚の画像を組み直し、PNG として出力する。
なぜ: 2 分割タイル描画の逆変換を 1 箇所に固定し、保存形式（可逆 PNG）を揃えるため。
"""

from __future__ import annotations

import io
from pathlib import Path

from PIL import Image

from scatterwall.core.compositor import Compositor
from scatterwall.core.runtime_config import output_root_dir
from scatterwall.core.scene import Scene


def reconstitute(surface: Image.Image, *, width: int, gap_size: int) -> Image.Image:
    """gap 込みの可視面から、gap を抜いた `width` 幅の画像を返す。

    Notes
    -----
    左半分 `[0, width//2)` はそのまま、右半分は `[width//2 + gap, width + gap)` を `width//2` へ詰める。
    画素はコピーのみ（合成しない）。

    Raises
    ------
    ValueError
        surface の幅が `width + gap_size` と一致しない場合。
    """

    w, gap = int(width), int(gap_size)
    if surface.width != w + gap:
        raise ValueError(
            f"surface 幅が width + gap と一致しません: got={surface.width}, expected={w + gap}"
        )
    half = w // 2
    height = surface.height
    out = Image.new(surface.mode, (w, height))
    out.paste(surface.crop((0, 0, half, height)), (0, 0))
    out.paste(surface.crop((half + gap, 0, w + gap, height)), (half, 0))
    return out


def compose_scene(scene: Scene, *, compositor: Compositor | None = None) -> Image.Image:
    """シーンを合成して gap 抜きの 1 枚画像を返す（dynamic レイヤーは静止位置）。"""

    _compositor = compositor if compositor is not None else Compositor(scene)
    surface = _compositor.render()
    return reconstitute(surface.image, width=scene.width, gap_size=scene.gap_size)


def encode_png(image: Image.Image) -> bytes:
    """画像を PNG バイト列にして返す。"""

    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def save_png(image: Image.Image, path: str | Path) -> Path:
    """画像を PNG として保存し、保存先パスを返す。"""

    _path = Path(path)
    _path.parent.mkdir(parents=True, exist_ok=True)
    _path.write_bytes(encode_png(image))
    return _path


def export_scene(scene: Scene, path: str | Path | None = None) -> Path:
    """シーンを合成して PNG として保存し、保存先パスを返す。

    `path` 未指定時は `default_png_output_path()` へ保存する。
    """

    _path = default_png_output_path() if path is None else Path(path)
    return save_png(compose_scene(scene), _path)


def default_png_output_path(stem: str = "wallpaper") -> Path:
    """PNG の既定保存パス `{output_root}/png/{stem}.png` を返す。"""

    return output_root_dir() / "png" / f"{stem}.png"


__all__ = [
    "compose_scene",
    "default_png_output_path",
    "encode_png",
    "export_scene",
    "reconstitute",
    "save_png",
]
