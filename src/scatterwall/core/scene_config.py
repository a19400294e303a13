# どこで: `src/scatterwall/core/scene_config.py`。
# 何を: シーン YAML（寸法・背景・中心・パレット・scatter 列）を SceneConfig へ変換する。
# なぜ: レシピをコードに埋め込まず、壁紙の構成を設定ファイルだけで差し替えられるようにするため。

from __future__ import annotations

from collections.abc import Mapping, Sequence
from importlib import resources
from pathlib import Path
from typing import Any

from scatterwall.core.color import coerce_rgba255
from scatterwall.core.recipe import (
    CenteredPlacement,
    ColorFill,
    Displacement,
    Fill,
    GradientFill,
    Placement,
    RandomPlacement,
    ScatterRecipe,
)
from scatterwall.core.runtime_config import as_float, as_mapping, load_yaml_text
from scatterwall.core.scene import DEFAULT_BACKGROUND, SceneConfig
from scatterwall.core.stamp_registry import ShapeStamp, stamp_registry

# 組み込み stamp を登録する（import 副作用）。
from scatterwall.core import stamp as _stamp  # noqa: F401

PACKAGED_SCENES = ("default", "animated")


def _as_float_pair(value: Any, *, key: str) -> tuple[float, float]:
    try:
        seq = list(value)
    except Exception as exc:
        raise RuntimeError(f"{key} は [x, y] の配列である必要があります: got={value!r}") from exc
    if len(seq) != 2:
        raise RuntimeError(f"{key} は [x, y] の配列である必要があります: got={value!r}")
    x = as_float(seq[0], key=f"{key}[0]")
    y = as_float(seq[1], key=f"{key}[1]")
    if x is None or y is None:
        raise RuntimeError(f"{key} は [x, y] の数値配列である必要があります: got={value!r}")
    return x, y


def _require_float(data: Mapping[str, Any], name: str, *, key: str) -> float:
    value = as_float(data.get(name), key=f"{key}.{name}")
    if value is None:
        raise RuntimeError(f"{key}.{name} が未設定です")
    return value


def _color_list(value: Any, *, key: str) -> list[Any]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise RuntimeError(f"{key} は色の配列である必要があります: got={value!r}")
    return list(value)


def _parse_fill(value: Any, *, palettes: Mapping[str, list[Any]], key: str) -> Fill:
    if isinstance(value, (str, list, tuple)):
        if isinstance(value, str) and value in palettes:
            raise RuntimeError(
                f"{key}: パレット名は gradient 指定で使ってください（例: {{gradient: {value}}}）"
            )
        return ColorFill.of(value)

    fill = as_mapping(value, key=key)
    if "color" in fill:
        return ColorFill.of(fill["color"])

    gradient = fill.get("gradient")
    if gradient is None:
        raise RuntimeError(f"{key} には color か gradient が必要です: got={value!r}")
    if isinstance(gradient, str):
        if gradient not in palettes:
            known = ", ".join(sorted(palettes)) or "-"
            raise RuntimeError(f"{key}.gradient: 未定義のパレット {gradient!r}（定義済み: {known}）")
        colors = palettes[gradient]
    else:
        colors = _color_list(gradient, key=f"{key}.gradient")

    sample = fill.get("sample")
    return GradientFill.of(
        colors,
        shuffle=bool(fill.get("shuffle", False)),
        sample=None if sample is None else int(sample),
        start=as_float(fill.get("start"), key=f"{key}.start"),
        end=as_float(fill.get("end"), key=f"{key}.end"),
    )


def _parse_placement(value: Any, *, key: str) -> Placement:
    if value is None or value == "random":
        return RandomPlacement()
    if value == "center":
        return CenteredPlacement()

    placement = as_mapping(value, key=key)
    kind = placement.get("kind", "random")
    if kind == "random":
        return RandomPlacement()
    if kind == "center":
        return CenteredPlacement(
            offset=as_float(placement.get("offset"), key=f"{key}.offset") or 0.0,
            offset_variation=as_float(
                placement.get("offset_variation"), key=f"{key}.offset_variation"
            )
            or 0.0,
        )
    raise RuntimeError(f"{key}.kind は random / center のいずれかです: got={kind!r}")


def _parse_stamp(value: Any, *, key: str) -> ShapeStamp:
    params = as_mapping(value, key=key)
    kind = str(params.pop("kind", "rectangle"))
    try:
        return stamp_registry.build(kind, params)
    except KeyError as exc:
        raise RuntimeError(f"{key}.kind: {exc.args[0]}") from exc
    except TypeError as exc:
        raise RuntimeError(f"{key}: stamp {kind!r} の引数が不正です: {exc}") from exc


def _parse_recipe(
    value: Any, *, palettes: Mapping[str, list[Any]], key: str
) -> ScatterRecipe:
    data = as_mapping(value, key=key)

    displacement: Displacement | None = None
    if data.get("displacement") is not None:
        dx, dy = _as_float_pair(data["displacement"], key=f"{key}.displacement")
        displacement = Displacement(dx=dx, dy=dy)

    name = data.get("name")
    return ScatterRecipe(
        density=_require_float(data, "density", key=key),
        opacity=as_float(data.get("opacity", 1.0), key=f"{key}.opacity") or 0.0,
        fill=_parse_fill(data.get("fill"), palettes=palettes, key=f"{key}.fill"),
        stamp=_parse_stamp(data.get("stamp"), key=f"{key}.stamp"),
        placement=_parse_placement(data.get("placement"), key=f"{key}.placement"),
        repeat_count=int(data.get("repeat", 1)),
        displacement=displacement,
        displacement_interval=as_float(
            data.get("displacement_interval"), key=f"{key}.displacement_interval"
        ),
        regenerate_every=as_float(data.get("regenerate_every"), key=f"{key}.regenerate_every"),
        name=None if name is None else str(name),
    )


def scene_config_from_mapping(data: Mapping[str, Any]) -> SceneConfig:
    """YAML 相当の dict から SceneConfig を組み立てる。

    Notes
    -----
    - `center`（絶対座標）と `center_ratio`（幅/高さに対する比）は排他。どちらも無ければ中央。
    - `palettes` に名前付きの色列を置き、`fill: {gradient: <名前>}` で参照できる。
    - `scatters` の各要素はそのまま ScatterRecipe 1 個（`repeat` 展開はシーン構築時）。

    Raises
    ------
    RuntimeError
        必須キーの欠落や型の不一致。
    """

    width = int(_require_float(data, "width", key="scene"))
    height = int(_require_float(data, "height", key="scene"))

    if data.get("center") is not None and data.get("center_ratio") is not None:
        raise RuntimeError("scene.center と scene.center_ratio は同時に指定できません")
    center: tuple[float, float] | None = None
    if data.get("center") is not None:
        center = _as_float_pair(data["center"], key="scene.center")
    elif data.get("center_ratio") is not None:
        rx, ry = _as_float_pair(data["center_ratio"], key="scene.center_ratio")
        center = (width * rx, height * ry)

    palettes_raw = as_mapping(data.get("palettes"), key="scene.palettes")
    palettes = {
        str(name): _color_list(colors, key=f"scene.palettes.{name}")
        for name, colors in palettes_raw.items()
    }

    scatters = data.get("scatters") or []
    if not isinstance(scatters, list):
        raise RuntimeError(f"scene.scatters は配列である必要があります: got={scatters!r}")
    recipes = tuple(
        _parse_recipe(item, palettes=palettes, key=f"scene.scatters[{i}]")
        for i, item in enumerate(scatters)
    )

    return SceneConfig(
        width=width,
        height=height,
        recipes=recipes,
        gap_size=int(data.get("gap_size", 0)),
        background_color=coerce_rgba255(data.get("background", DEFAULT_BACKGROUND)),
        center=center,
    )


def _packaged_scene_text(name: str) -> str:
    try:
        return (
            resources.files("scatterwall")
            .joinpath("resource", f"{name}_scene.yaml")
            .read_text(encoding="utf-8")
        )
    except Exception as exc:  # pragma: no cover
        raise RuntimeError(
            f"同梱シーン {name!r} の読み込みに失敗しました"
            "（パッケージ配布物の package-data を確認してください）"
        ) from exc


def load_scene_config(source: str | Path | None = None) -> SceneConfig:
    """シーン YAML を読み込んで SceneConfig を返す。

    Parameters
    ----------
    source : str | pathlib.Path | None
        YAML ファイルのパス、または同梱シーン名（`PACKAGED_SCENES`）。
        None なら同梱の `default`。
    """

    if source is None:
        source = "default"
    if isinstance(source, str) and source in PACKAGED_SCENES and not Path(source).is_file():
        text = _packaged_scene_text(source)
        label = f"scatterwall/resource/{source}_scene.yaml"
    else:
        path = Path(source).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"シーン YAML が見つかりません: {path}")
        text = path.read_text(encoding="utf-8")
        label = str(path)

    return scene_config_from_mapping(load_yaml_text(text, source=label))


__all__ = ["PACKAGED_SCENES", "load_scene_config", "scene_config_from_mapping"]
