# どこで: `src/scatterwall/core/runtime_config.py`。
# 何を: config.yaml による実行時設定（探索・ロード・キャッシュ）を提供する。
# なぜ: 出力先・アニメーション速度・プレビュー表示などをユーザーが上書きできるようにするため。

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """scatterwall の実行時設定。"""

    config_path: Path | None
    output_dir: Path
    scene_path: Path | None
    fps: float
    transition_hz: float
    preview_scale: float
    window_pos: tuple[int, int]


_EXPLICIT_CONFIG_PATH: Path | None = None
_CONFIG_CACHE: RuntimeConfig | None = None


def set_config_path(path: str | Path | None) -> None:
    """以降の設定探索で使う明示 config パスを設定する。

    Notes
    -----
    `path` を None にすると明示指定を解除し、既定の探索に戻る。
    """

    global _EXPLICIT_CONFIG_PATH, _CONFIG_CACHE
    if path is None:
        _EXPLICIT_CONFIG_PATH = None
        _CONFIG_CACHE = None
        return
    p = Path(str(path)).expanduser()
    _EXPLICIT_CONFIG_PATH = p
    _CONFIG_CACHE = None


def _default_config_candidates() -> tuple[Path, ...]:
    cwd = Path.cwd()
    home = Path.home()
    return (
        cwd / ".scatterwall" / "config.yaml",
        home / ".config" / "scatterwall" / "config.yaml",
    )


def _expand_path_text(text: str) -> str:
    return os.path.expandvars(os.path.expanduser(str(text)))


def _as_optional_path(value: Any) -> Path | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    return Path(_expand_path_text(s))


def as_mapping(value: Any, *, key: str) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    raise RuntimeError(f"{key} は mapping である必要があります: got={value!r}")


def as_int_pair(value: Any, *, key: str) -> tuple[int, int] | None:
    if value is None:
        return None
    try:
        seq = list(value)
    except Exception as exc:
        raise RuntimeError(f"{key} は [x, y] の配列である必要があります: got={value!r}") from exc
    if len(seq) != 2:
        raise RuntimeError(f"{key} は [x, y] の配列である必要があります: got={value!r}")
    try:
        x = int(seq[0])
        y = int(seq[1])
    except Exception as exc:
        raise RuntimeError(f"{key} は [x, y] の整数配列である必要があります: got={value!r}") from exc
    return (x, y)


def as_float(value: Any, *, key: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except Exception as exc:
        raise RuntimeError(f"{key} は数値である必要があります: got={value!r}") from exc


def load_yaml_text(text: str, *, source: str) -> dict[str, Any]:
    try:
        import yaml  # type: ignore[import-untyped]
    except Exception as exc:  # pragma: no cover
        raise RuntimeError(f"PyYAML を import できません: {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except Exception as exc:
        raise RuntimeError(f"YAML の読み込みに失敗しました: source={source}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RuntimeError(f"YAML のトップレベルは mapping である必要があります: source={source}")

    return dict(data)


def _load_yaml_config(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    return load_yaml_text(text, source=str(path))


def load_packaged_resource(name: str) -> dict[str, Any]:
    """同梱 `resource/{name}` の YAML をロードして dict を返す。"""

    try:
        blob = resources.files("scatterwall").joinpath("resource", name).read_text(encoding="utf-8")
    except Exception as exc:  # pragma: no cover
        raise RuntimeError(
            f"同梱 {name} の読み込みに失敗しました"
            "（パッケージ配布物の package-data を確認してください）"
        ) from exc

    return load_yaml_text(blob, source=f"scatterwall/resource/{name}")


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """section 単位（1 段）で override を重ねた dict を返す。"""

    out = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            merged = dict(out[key])
            merged.update(value)
            out[key] = merged
        else:
            out[key] = value
    return out


def _require_positive(value: float | None, *, key: str) -> float:
    if value is None:
        raise RuntimeError(f"{key} が未設定です（同梱 default_config.yaml を確認してください）")
    if value <= 0:
        raise ValueError(f"{key} は正の値である必要があります: got={value}")
    return float(value)


def runtime_config() -> RuntimeConfig:
    """実行時設定をロードして返す（キャッシュ）。"""

    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None:
        return _CONFIG_CACHE

    explicit_path = _EXPLICIT_CONFIG_PATH
    if explicit_path is not None and not explicit_path.is_file():
        raise FileNotFoundError(f"config.yaml が見つかりません: {explicit_path}")

    discovered_path: Path | None = None
    for p in _default_config_candidates():
        if p.is_file():
            discovered_path = p
            break

    payload = load_packaged_resource("default_config.yaml")
    if discovered_path is not None:
        payload = _merge(payload, _load_yaml_config(discovered_path))
    if explicit_path is not None:
        payload = _merge(payload, _load_yaml_config(explicit_path))

    version = payload.get("version")
    if version is None:
        raise RuntimeError(
            "config.yaml の version が未設定です（同梱 default_config.yaml を確認してください）"
        )
    try:
        version_i = int(version)
    except Exception as exc:
        raise RuntimeError(f"config.yaml の version は整数である必要があります: got={version!r}") from exc
    if version_i != 1:
        raise RuntimeError(f"未対応の config.yaml version です: got={version_i}")

    paths = as_mapping(payload.get("paths"), key="paths")
    output_dir = _as_optional_path(paths.get("output_dir"))
    if output_dir is None:
        raise RuntimeError(
            "paths.output_dir が未設定です（同梱 default_config.yaml を確認してください）"
        )
    scene_path = _as_optional_path(paths.get("scene"))

    animation = as_mapping(payload.get("animation"), key="animation")
    fps = _require_positive(as_float(animation.get("fps"), key="animation.fps"), key="animation.fps")
    transition_hz = _require_positive(
        as_float(animation.get("transition_hz"), key="animation.transition_hz"),
        key="animation.transition_hz",
    )

    preview = as_mapping(payload.get("preview"), key="preview")
    preview_scale = _require_positive(
        as_float(preview.get("scale"), key="preview.scale"), key="preview.scale"
    )
    window_pos = as_int_pair(preview.get("window_pos"), key="preview.window_pos")
    if window_pos is None:
        raise RuntimeError(
            "preview.window_pos が未設定です（同梱 default_config.yaml を確認してください）"
        )

    cfg = RuntimeConfig(
        config_path=explicit_path or discovered_path,
        output_dir=output_dir,
        scene_path=scene_path,
        fps=fps,
        transition_hz=transition_hz,
        preview_scale=preview_scale,
        window_pos=window_pos,
    )
    _CONFIG_CACHE = cfg
    return cfg


def output_root_dir() -> Path:
    """出力ファイルを保存する既定ルートディレクトリを返す。

    上書き順（後勝ち）:
    1) 同梱 default_config.yaml
    2) `./.scatterwall/config.yaml` / `~/.config/scatterwall/config.yaml`
    3) `--config` / `set_config_path()` の明示パス
    """

    cfg = runtime_config()
    return Path(cfg.output_dir)


__all__ = [
    "RuntimeConfig",
    "as_float",
    "as_int_pair",
    "as_mapping",
    "load_packaged_resource",
    "load_yaml_text",
    "output_root_dir",
    "runtime_config",
    "set_config_path",
]
