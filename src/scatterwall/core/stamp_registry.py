# src/scatterwall/core/stamp_registry.py
# ShapeStamp を生成するファクトリ関数のレジストリ。
# シーン設定（YAML）の `stamp.kind` 名からファクトリを引けるようにする。

from __future__ import annotations

from collections.abc import ItemsView, Mapping
from typing import Any, Callable, Protocol

from scatterwall.core.surface import Surface


class ShapeStamp(Protocol):
    """インスタンス 1 個分の形状を描く能力。

    Notes
    -----
    呼び出し時点で surface の原点は配置点へ translate 済み。
    ランダムな揺らぎは `rng` からのみ引き、surface 以外の状態を変更しない。
    """

    def __call__(self, surface: Surface, rng: Any) -> None: ...


StampFactory = Callable[..., ShapeStamp]


class StampRegistry:
    """stamp 名とファクトリ関数を対応付けるレジストリ。"""

    def __init__(self) -> None:
        """空のレジストリを初期化する。"""
        self._items: dict[str, StampFactory] = {}

    def _register(self, name: str, factory: StampFactory, *, overwrite: bool = True) -> None:
        """stamp を登録する（内部用）。

        Notes
        -----
        登録は `@stamp` デコレータ経由に統一する。
        """
        if not overwrite and name in self._items:
            raise ValueError(f"stamp '{name}' は既に登録されている")
        self._items[name] = factory

    def get(self, name: str) -> StampFactory:
        """名前に対応するファクトリを取得する。

        Raises
        ------
        KeyError
            未登録の名前が指定された場合。
        """
        return self._items[name]

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def items(self) -> ItemsView[str, StampFactory]:
        """登録済みエントリの (name, factory) ビューを返す。"""
        return self._items.items()

    def build(self, name: str, params: Mapping[str, Any] | None = None) -> ShapeStamp:
        """名前とキーワード引数から ShapeStamp を生成して返す。"""

        if name not in self:
            known = ", ".join(sorted(n for n, _ in self.items()))
            raise KeyError(f"未登録の stamp: {name!r}（登録済み: {known}）")
        return self.get(name)(**dict(params or {}))


stamp_registry = StampRegistry()
"""グローバルな stamp レジストリインスタンス。"""


def stamp(
    func: StampFactory | None = None,
    *,
    name: str | None = None,
    overwrite: bool = True,
):
    """グローバル stamp レジストリ用デコレータ。

    `name` 未指定時は関数名をそのまま登録名にする。

    Examples
    --------
    @stamp(name="rectangle")
    def shape_rectangle(*, size, ...):
        ...
    """

    def decorator(f: StampFactory) -> StampFactory:
        stamp_registry._register(name or f.__name__, f, overwrite=overwrite)
        return f

    if func is None:
        return decorator
    return decorator(func)


__all__ = ["ShapeStamp", "StampFactory", "StampRegistry", "stamp", "stamp_registry"]
