from __future__ import annotations

import logging
import random

import numpy as np
import pytest
from PIL import Image

from scatterwall.core.compositor import Compositor, draw_tiled
from scatterwall.core.errors import InvalidDimensions
from scatterwall.core.recipe import ColorFill, Displacement, ScatterRecipe
from scatterwall.core.scene import SceneConfig, create_scene
from scatterwall.core.stamp import shape_rectangle
from scatterwall.core.surface import Surface
from scatterwall.export.image import reconstitute


def _noise(width: int, height: int, seed: int = 0) -> Image.Image:
    rs = np.random.default_rng(seed)
    arr = rs.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    arr[:, :, 3] = 255
    return Image.fromarray(arr)


class _BrokenStamp:
    def __call__(self, surface, rng) -> None:
        raise RuntimeError("boom")


def _recipe(**kwargs) -> ScatterRecipe:
    params = {
        "density": 0.02,
        "opacity": 1.0,
        "fill": ColorFill.of("#ff0000"),
        "stamp": shape_rectangle(size=4),
    }
    params.update(kwargs)
    return ScatterRecipe(**params)


def test_tiling_without_gap_reproduces_the_buffer():
    buffer = _noise(40, 12)
    target = Surface(40, 12)
    draw_tiled(target, buffer, 0, 0, logical_width=40, gap_size=0)
    assert target.image.tobytes() == buffer.tobytes()


def test_tiling_skips_the_gap_band():
    buffer = _noise(40 + 8, 12, seed=1)
    target = Surface(40, 12)
    draw_tiled(target, buffer, 0, 0, logical_width=40, gap_size=8)

    out = np.asarray(target.image)
    src = np.asarray(buffer)
    assert np.array_equal(out[:, :20], src[:, :20])
    assert np.array_equal(out[:, 20:], src[:, 28:48])
    assert target.image.tobytes() == reconstitute(buffer, width=40, gap_size=8).tobytes()


def test_tiling_with_odd_width_fills_both_halves():
    buffer = _noise(41 + 4, 6, seed=2)
    target = Surface(41, 6)
    draw_tiled(target, buffer, 0, 0, logical_width=41, gap_size=4)

    out = np.asarray(target.image)
    src = np.asarray(buffer)
    assert np.array_equal(out[:, :20], src[:, :20])
    assert np.array_equal(out[:, 20:], src[:, 24:45])


def test_tiling_places_padded_buffer_at_minus_pad():
    buffer = _noise(20 + 4, 10 + 6, seed=3)
    target = Surface(20, 10)
    draw_tiled(target, buffer, 0, 0, logical_width=20, gap_size=0, pad=(2, 3))

    expected = np.asarray(buffer)[3:13, 2:22]
    assert np.array_equal(np.asarray(target.image), expected)


def test_tiling_offset_moves_content():
    buffer = _noise(20, 10, seed=4)
    target = Surface(20, 10)
    draw_tiled(target, buffer, 3, 2, logical_width=20, gap_size=0)

    out = np.asarray(target.image)
    src = np.asarray(buffer)
    assert np.array_equal(out[2:, 3:], src[:8, :17])
    assert out[:2, :, 3].max() == 0


def test_render_static_fills_background_and_layers_in_order():
    config = SceneConfig(
        width=40,
        height=20,
        recipes=(_recipe(),),
        gap_size=4,
        background_color=(10, 20, 30, 255),
    )
    scene = create_scene(config, rng=random.Random(0))
    surface = Compositor(scene).render_static()

    arr = np.asarray(surface.image)
    assert surface.size == (44, 20)
    assert np.all(arr[:, :, 3] == 255)
    colors = {tuple(px) for px in arr.reshape(-1, 4)}
    assert (10, 20, 30, 255) in colors
    assert len(colors) > 1


def test_failing_layer_is_logged_and_skipped(caplog: pytest.LogCaptureFixture):
    config = SceneConfig(
        width=40,
        height=20,
        recipes=(_recipe(stamp=_BrokenStamp(), name="broken"), _recipe(name="ok")),
        background_color=(0, 0, 0, 255),
    )
    scene = create_scene(config, rng=random.Random(0))

    with caplog.at_level(logging.ERROR, logger="scatterwall.core.compositor"):
        surface = Compositor(scene).render_static()

    assert "Failed to rasterize layer 0:broken" in caplog.text
    assert scene.layers[0].buffer is None
    assert scene.layers[1].buffer is not None
    assert np.asarray(surface.image)[:, :, 0].max() > 0


def test_unsupported_fill_layer_is_treated_as_empty():
    config = SceneConfig(width=10, height=10, recipes=(_recipe(fill="pattern"),))
    scene = create_scene(config, rng=random.Random(0))
    compositor = Compositor(scene)
    assert compositor.layer_buffer(scene.layers[0]) is None
    compositor.render_static()


def test_invalid_dimensions_propagate_from_the_draw_pass():
    config = SceneConfig(width=0, height=10, recipes=(_recipe(),))
    scene = create_scene(config, rng=random.Random(0))
    with pytest.raises(InvalidDimensions):
        Compositor(scene).render_static()


def test_render_places_dynamic_layers_at_rest():
    dynamic = _recipe(displacement=Displacement(5, 5), displacement_interval=0.01)
    config = SceneConfig(width=30, height=20, recipes=(dynamic,), background_color=(0, 0, 0, 255))
    scene = create_scene(config, rng=random.Random(5))
    compositor = Compositor(scene)
    rendered = compositor.render()

    layer = scene.layers[0]
    expected = Surface(30, 20)
    expected.set_fill_color((0, 0, 0, 255))
    expected.fill_rect(0, 0, 30, 20)
    expected.draw_image(layer.buffer, dx=-5, dy=-5)
    assert rendered.image.tobytes() == expected.image.tobytes()
    # static 合成そのものは dynamic レイヤーを含まない。
    assert np.asarray(compositor.static_surface.image)[:, :, 0].max() == 0


def test_render_after_scene_resize_matches_new_dimensions():
    config = SceneConfig(width=40, height=20, recipes=(_recipe(),), gap_size=4)
    scene = create_scene(config, rng=random.Random(0))
    compositor = Compositor(scene)
    assert compositor.render().size == (44, 20)

    scene.resize(80, 30)

    assert compositor.render().size == (84, 30)
    assert compositor.static_surface.size == (84, 30)


def test_compositor_resize_recomposes_the_static_surface():
    config = SceneConfig(width=40, height=20, recipes=(_recipe(),), gap_size=4)
    scene = create_scene(config, rng=random.Random(0))
    compositor = Compositor(scene)
    before = compositor.render_static()

    surface = compositor.resize(60, 24)

    assert surface.size == (64, 24)
    assert compositor.static_surface is not before
    assert scene.layers[0].buffer.size == (64, 24)
