"""
どこで: `src/scatterwall/cli.py`。
何を: `scatterwall export|preview|record` のコマンドライン入口を提供する。
なぜ: シーン YAML と config.yaml の解決を 1 箇所に寄せ、書き出し/プレビュー/録画で同じ手順を使うため。
"""

from __future__ import annotations

import argparse
import logging
import random
from pathlib import Path

from scatterwall.core.runtime_config import RuntimeConfig, runtime_config, set_config_path
from scatterwall.core.scene import Scene, create_scene
from scatterwall.core.scene_config import PACKAGED_SCENES, load_scene_config

_logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.config:
        set_config_path(args.config)
    cfg = runtime_config()

    try:
        scene = _build_scene(args, cfg)
    except (FileNotFoundError, RuntimeError, ValueError) as e:
        print(f"シーンを読み込めません: {e}")  # noqa: T201
        return 2

    return int(args.handler(args, cfg, scene))


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--scene",
        default="",
        help=f"シーン YAML のパス、または同梱シーン名（{', '.join(PACKAGED_SCENES)}）",
    )
    common.add_argument("--config", default="", help="config.yaml のパス（探索より優先）")
    common.add_argument("--seed", type=int, default=None, help="乱数 seed（省略時は毎回変わる）")
    common.add_argument("-v", "--verbose", action="store_true", help="debug ログを出す")

    p = argparse.ArgumentParser(prog="scatterwall")
    sub = p.add_subparsers(dest="command", required=True)

    p_export = sub.add_parser("export", parents=[common], help="PNG を 1 枚書き出す")
    p_export.add_argument("--out", default="", help="出力 PNG（省略時は {output_dir}/png/wallpaper.png）")
    p_export.set_defaults(handler=_cmd_export, default_scene="default")

    p_preview = sub.add_parser("preview", parents=[common], help="アニメーションをウィンドウで確認する")
    p_preview.add_argument("--scale", type=float, default=None, help="表示倍率（config の preview.scale を上書き）")
    p_preview.set_defaults(handler=_cmd_preview, default_scene="animated")

    p_record = sub.add_parser("record", parents=[common], help="アニメーションを動画に書き出す")
    p_record.add_argument("--out", default="", help="出力動画（省略時は {output_dir}/video/wallpaper.mp4）")
    p_record.add_argument("--seconds", type=float, default=10.0, help="録画する長さ（秒）")
    p_record.set_defaults(handler=_cmd_record, default_scene="animated")

    return p.parse_args(argv)


def _build_scene(args: argparse.Namespace, cfg: RuntimeConfig) -> Scene:
    """--scene > config の paths.scene > サブコマンド既定の同梱シーン、の順で選ぶ。"""

    source: str | Path = args.scene or cfg.scene_path or args.default_scene
    config = load_scene_config(source)
    rng = random.Random(args.seed)
    _logger.debug("scene=%s seed=%s layers=%d", source, args.seed, len(config.recipes))
    return create_scene(config, rng=rng)


def _cmd_export(args: argparse.Namespace, cfg: RuntimeConfig, scene: Scene) -> int:
    from scatterwall.export.image import export_scene

    path = export_scene(scene, Path(args.out) if args.out else None)
    print(f"Saved PNG: {path}")  # noqa: T201
    return 0


def _cmd_preview(args: argparse.Namespace, cfg: RuntimeConfig, scene: Scene) -> int:
    # pyglet はプレビュー時だけ import する（export/record はヘッドレスで動かす）。
    from scatterwall.interactive.preview import run_preview

    run_preview(
        scene,
        fps=cfg.fps,
        transition_hz=cfg.transition_hz,
        scale=cfg.preview_scale if args.scale is None else float(args.scale),
        window_pos=cfg.window_pos,
    )
    return 0


def _cmd_record(args: argparse.Namespace, cfg: RuntimeConfig, scene: Scene) -> int:
    from scatterwall.export.video import default_video_output_path, record_scene

    frames = int(round(float(args.seconds) * cfg.fps))
    if frames <= 0:
        print("--seconds が短すぎます（1 フレーム以上必要です）")  # noqa: T201
        return 2
    out = Path(args.out) if args.out else default_video_output_path()
    record_scene(scene, out, frames=frames, fps=cfg.fps, transition_hz=cfg.transition_hz)
    return 0


__all__ = ["main"]
