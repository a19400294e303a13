from __future__ import annotations

import logging
import math
import random

import pytest

from scatterwall.animation.clock import ManualClock
from scatterwall.animation.scheduler import AnimationScheduler, displacement_offset
from scatterwall.animation.tasks import TaskLoop
from scatterwall.core.recipe import ColorFill, Displacement, ScatterRecipe
from scatterwall.core.scene import LayerState, SceneConfig, create_scene
from scatterwall.core.stamp import shape_rectangle
from scatterwall.core.surface import Surface


class _BrokenStamp:
    def __call__(self, surface, rng) -> None:
        raise RuntimeError("boom")


def _dynamic(**kwargs) -> ScatterRecipe:
    params = {
        "density": 0.02,
        "opacity": 1.0,
        "fill": ColorFill.of("#ff0000"),
        "stamp": shape_rectangle(size=4),
        "displacement": Displacement(3, 3),
        "displacement_interval": 0.001,
        "regenerate_every": 100.0,
        "name": "drift",
    }
    params.update(kwargs)
    return ScatterRecipe(**params)


def _scheduler(*recipes: ScatterRecipe, gap_size: int = 4, fps: float = 20.0):
    config = SceneConfig(width=40, height=20, recipes=recipes, gap_size=gap_size)
    scene = create_scene(config, rng=random.Random(0))
    loop = TaskLoop(ManualClock())
    return AnimationScheduler(scene, loop, fps=fps), scene, loop


def test_displacement_offset_reuses_dx_for_the_vertical_axis():
    layer = LayerState(index=0, recipe=_dynamic(displacement=Displacement(10, 3)), phase_offset=0.5)
    x, y = displacement_offset(layer, 0.0)
    assert x == pytest.approx(-10.0)
    assert y == pytest.approx(10.0)

    x, y = displacement_offset(layer, 500.0)
    offset = (0.001 * 500.0 + 0.5) * math.pi
    assert x == pytest.approx(-10.0 * math.sin(offset))
    assert y == pytest.approx(10.0 * math.sin(offset))


def test_static_layer_has_no_displacement():
    layer = LayerState(index=0, recipe=_dynamic(displacement=None, regenerate_every=None))
    assert displacement_offset(layer, 123.0) == (0.0, 0.0)


def test_tick_advances_internal_time_by_half_frame_in_ms():
    scheduler, scene, _ = _scheduler(_dynamic())
    assert scheduler.frame_step == 25.0

    scheduler.tick()
    scheduler.tick()
    assert scheduler.elapsed == 50.0
    assert scheduler.frame_index == 2
    assert scheduler.frame.size == (40, 20)


def test_regeneration_triggers_after_the_interval_and_never_overlaps():
    scheduler, scene, _ = _scheduler(_dynamic())
    layer = scene.layers[0]
    scene.ensure_buffer(layer)
    layer.last_regenerate_time = 0.0

    for _ in range(5):
        scheduler.tick()
    assert layer.transition is None

    scheduler.tick()
    transition = layer.transition
    assert transition is not None
    assert layer.last_regenerate_time == 125.0

    for _ in range(20):
        scheduler.tick()
    assert layer.transition is transition
    assert layer.last_regenerate_time == 125.0
    assert scheduler.regenerate(layer) is None


def test_frame_task_and_transitions_share_the_task_loop():
    scheduler, scene, loop = _scheduler(_dynamic(regenerate_every=50.0))
    clock = loop.clock
    scheduler.start()
    assert [task.name for task in loop.tasks] == ["frame"]

    for _ in range(6):
        clock.advance(0.05)
        loop.run_due()
    assert scheduler.frame_index == 6
    assert any(task.name.startswith("transition:") for task in loop.tasks)

    scheduler.stop()
    assert not scheduler.running
    assert scene.layers[0].transition is None
    loop.run_due()
    assert loop.tasks == []


def test_dynamic_layer_is_drawn_at_its_displaced_position():
    scheduler, scene, _ = _scheduler(_dynamic(), gap_size=0)
    layer = scene.layers[0]
    scene.ensure_buffer(layer)
    layer.phase_offset = 0.5

    frame = scheduler.compose()

    # 位相 0.5 なので変位は (-dx, +dx) = (-3, 3)。余白 3 を引いてバッファ左上は論理座標 (-6, 0)。
    expected = Surface(40, 20)
    expected.set_fill_color(scene.background_color)
    expected.fill_rect(0, 0, 40, 20)
    expected.draw_image(layer.buffer, sx=6, sy=0, sw=40, sh=20)
    assert frame.image.tobytes() == expected.image.tobytes()


def test_failing_dynamic_layer_does_not_stop_the_tick(caplog: pytest.LogCaptureFixture):
    scheduler, scene, _ = _scheduler(
        _dynamic(stamp=_BrokenStamp(), name="broken"),
        _dynamic(name="ok"),
    )

    with caplog.at_level(logging.ERROR):
        scheduler.tick()

    assert scheduler.frame_index == 1
    assert "Failed to rasterize layer 0:broken" in caplog.text
    assert scene.layers[1].buffer is not None


def test_resize_rebuilds_scene_and_cancels_transitions():
    scheduler, scene, loop = _scheduler(_dynamic())
    layer = scene.layers[0]
    scene.ensure_buffer(layer)
    scheduler.regenerate(layer)
    assert layer.transition is not None

    frame = scheduler.resize(60, 30)

    assert frame.size == (60, 30)
    assert scene.surface_size == (64, 30)
    assert layer.transition is None
    assert loop.tasks == []
    assert scheduler.compositor.static_surface.size == (64, 30)


def test_fps_must_be_positive():
    config = SceneConfig(width=10, height=10, recipes=())
    scene = create_scene(config)
    with pytest.raises(ValueError):
        AnimationScheduler(scene, TaskLoop(ManualClock()), fps=0)
