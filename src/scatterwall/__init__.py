# どこで: `src/scatterwall/__init__.py`。
# 何を: ルート `scatterwall` パッケージを定義し、シーン構築と書き出しの入口を再公開する。
# なぜ: import 起点を `scatterwall` に統一するため（pyglet に依存する preview はここでは import しない）。

from __future__ import annotations

from scatterwall.core.recipe import (
    CenteredPlacement,
    ColorFill,
    Displacement,
    GradientFill,
    RandomPlacement,
    ScatterRecipe,
)
from scatterwall.core.scene import SceneConfig, create_scene
from scatterwall.core.scene_config import load_scene_config
from scatterwall.core.stamp import shape_rectangle
from scatterwall.export.image import compose_scene, export_scene

__all__ = [
    "CenteredPlacement",
    "ColorFill",
    "Displacement",
    "GradientFill",
    "RandomPlacement",
    "ScatterRecipe",
    "SceneConfig",
    "compose_scene",
    "create_scene",
    "export_scene",
    "load_scene_config",
    "shape_rectangle",
]
