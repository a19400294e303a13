from pathlib import Path

import pytest

from scatterwall.core.runtime_config import output_root_dir, runtime_config, set_config_path


@pytest.fixture(autouse=True)
def _reset_runtime_config() -> None:
    set_config_path(None)
    yield
    set_config_path(None)


def _isolate_config_discovery(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


def test_output_root_dir_uses_packaged_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    assert output_root_dir() == Path("data") / "output"
    cfg = runtime_config()
    assert cfg.config_path is None
    assert cfg.scene_path is None
    assert cfg.fps == 20.0
    assert cfg.transition_hz == 100.0
    assert cfg.preview_scale == 0.25
    assert cfg.window_pos == (32, 32)


def test_discovered_config_overrides_packaged_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    discovered = tmp_path / ".scatterwall" / "config.yaml"
    discovered.parent.mkdir(parents=True, exist_ok=True)
    discovered.write_text(
        'paths:\n  output_dir: "./out_discovered"\nanimation:\n  fps: 30\n',
        encoding="utf-8",
    )

    assert output_root_dir() == Path("out_discovered")
    cfg = runtime_config()
    assert cfg.config_path == discovered
    assert cfg.fps == 30.0
    # 上書きしていないキーは同梱既定のまま残る。
    assert cfg.transition_hz == 100.0


def test_explicit_config_overrides_discovered_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    discovered = tmp_path / ".scatterwall" / "config.yaml"
    discovered.parent.mkdir(parents=True, exist_ok=True)
    discovered.write_text('paths:\n  output_dir: "./out_discovered"\n', encoding="utf-8")

    explicit = tmp_path / "explicit.yaml"
    explicit.write_text(
        'paths:\n  output_dir: "./out_explicit"\n  scene: "./walls/scene.yaml"\npreview:\n  window_pos: [5, 6]\n',
        encoding="utf-8",
    )
    set_config_path(explicit)

    assert output_root_dir() == Path("out_explicit")
    cfg = runtime_config()
    assert cfg.config_path == explicit
    assert cfg.scene_path == Path("walls") / "scene.yaml"
    assert cfg.window_pos == (5, 6)
    assert cfg.preview_scale == 0.25


def test_explicit_config_path_missing_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    set_config_path(tmp_path / "missing.yaml")

    with pytest.raises(FileNotFoundError):
        output_root_dir()


def test_unsupported_version_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("version: 2\n", encoding="utf-8")
    set_config_path(explicit)

    with pytest.raises(RuntimeError):
        runtime_config()


def test_non_positive_fps_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("animation:\n  fps: 0\n", encoding="utf-8")
    set_config_path(explicit)

    with pytest.raises(ValueError):
        runtime_config()


def test_runtime_config_is_cached_until_path_changes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    first = runtime_config()
    assert runtime_config() is first

    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("animation:\n  fps: 12\n", encoding="utf-8")
    set_config_path(explicit)
    assert runtime_config().fps == 12.0
