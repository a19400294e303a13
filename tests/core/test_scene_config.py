from __future__ import annotations

from pathlib import Path

import pytest

from scatterwall.core.recipe import CenteredPlacement, ColorFill, GradientFill, RandomPlacement
from scatterwall.core.scene_config import load_scene_config, scene_config_from_mapping
from scatterwall.core.stamp import RoundedRectStamp


def test_packaged_default_scene_matches_the_ultrawide_layout():
    config = load_scene_config()

    assert (config.width, config.height, config.gap_size) == (3840, 1080, 64)
    assert config.background_color == (0x2C, 0x2C, 0x2C, 255)
    assert config.resolved_center == (2880.0, 540.0)
    assert len(config.recipes) == 8
    assert all(not r.is_dynamic for r in config.recipes)

    backdrop = config.recipes[0]
    assert isinstance(backdrop.fill, ColorFill)
    assert isinstance(backdrop.placement, RandomPlacement)
    assert isinstance(backdrop.stamp, RoundedRectStamp)
    assert backdrop.stamp.size == 160.0

    glow_core = config.recipes[6]
    assert isinstance(glow_core.fill, GradientFill)
    assert len(glow_core.fill.colors) == 12
    assert glow_core.fill.sample == 4
    assert not glow_core.fill.is_linear
    assert isinstance(glow_core.placement, CenteredPlacement)
    assert glow_core.placement.offset == 200.0
    assert glow_core.stamp.glow == 1.0

    glow_field = config.recipes[7]
    assert glow_field.fill.is_linear
    assert glow_field.fill.start == 0.0


def test_packaged_animated_scene_has_a_regenerating_layer():
    config = load_scene_config("animated")
    dynamic = [r for r in config.recipes if r.is_dynamic]

    assert len(dynamic) == 2
    regen = [r for r in dynamic if r.regenerate_every is not None]
    assert len(regen) == 1
    assert regen[0].repeat_count == 3
    assert regen[0].displacement.dx == 12.0
    assert regen[0].regenerate_every == 30000.0


def test_load_scene_config_reads_a_yaml_file(tmp_path: Path):
    path = tmp_path / "scene.yaml"
    path.write_text(
        "\n".join(
            [
                "width: 200",
                "height: 100",
                "center: [50, 25]",
                "scatters:",
                "  - density: 0.01",
                "    fill: {color: '#ffffff'}",
                "    placement: {kind: center, offset: 5}",
                "    stamp: {size: 3}",
                "",
            ]
        ),
        encoding="utf-8",
    )
    config = load_scene_config(path)

    assert config.gap_size == 0
    assert config.resolved_center == (50.0, 25.0)
    recipe = config.recipes[0]
    assert recipe.opacity == 1.0
    assert recipe.placement == CenteredPlacement(offset=5.0, offset_variation=0.0)
    assert recipe.stamp.size == 3.0


def test_missing_scene_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_scene_config(tmp_path / "missing.yaml")


def _base(**scatter) -> dict:
    item = {"density": 0.01, "fill": "#ffffff", "stamp": {"kind": "rectangle", "size": 3}}
    item.update(scatter)
    return {"width": 10, "height": 10, "palettes": {"mono": ["#000000"]}, "scatters": [item]}


@pytest.mark.parametrize(
    "data",
    [
        _base(fill={"gradient": "unknown"}),
        _base(fill="mono"),
        _base(fill={"shuffle": True}),
        _base(stamp={"kind": "hexagon", "size": 3}),
        _base(stamp={"kind": "rectangle", "size": 3, "corner": 2}),
        _base(placement={"kind": "spiral"}),
        _base(displacement=[1, 2, 3]),
        _base(displacement=[None, 2]),
        {"width": 10, "height": 10, "center": [None, 5]},
        {"width": 10, "height": 10, "center_ratio": [0.5, None]},
        {"width": 10, "height": 10, "center": [1, 1], "center_ratio": [0.5, 0.5]},
        {"height": 10},
    ],
)
def test_invalid_scene_mapping_raises_runtime_error(data):
    with pytest.raises(RuntimeError):
        scene_config_from_mapping(data)


def test_palette_reference_builds_gradient_fill():
    config = scene_config_from_mapping(_base(fill={"gradient": "mono", "end": 5}))
    fill = config.recipes[0].fill
    assert isinstance(fill, GradientFill)
    assert fill.colors == ((0, 0, 0, 255),)
    assert fill.end == 5.0
