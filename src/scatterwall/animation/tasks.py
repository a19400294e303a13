"""
どこで: `src/scatterwall/animation/tasks.py`。
何を: 周期タスク（`PeriodicTask`）と、それを時計に従って順に実行する `TaskLoop` を提供する。
なぜ: フレーム tick とレイヤーごとのクロスフェード tick を独立タイマーにせず、
     1 つのループが期限順にポーリングすることで、順序と後始末を決定的にするため。
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable

from scatterwall.animation.clock import Clock

_logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class PeriodicTask:
    """一定間隔で呼ばれるコールバック。"""

    callback: Callable[[], None]
    interval: float
    next_due: float
    name: str = ""
    seq: int = 0
    runs: int = 0
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        """以降の呼び出しを止める（実行中に呼んでもよい）。"""

        self.cancelled = True


class TaskLoop:
    """周期タスクを期限順に実行するループ。

    Notes
    -----
    - `run_due(now)` は期限 `<= now` の呼び出しをすべて、期限の早い順（同時刻は登録順）に実行する。
    - コールバック中に登録されたタスクは「登録時刻 + interval」から始まる。
    - `max_lag` を指定すると、それ以上遅れたタスクは取りこぼし分を捨てて now に追いつく。
    """

    def __init__(self, clock: Clock, *, max_lag: float | None = None) -> None:
        self._clock = clock
        self._max_lag = None if max_lag is None else float(max_lag)
        self._tasks: list[PeriodicTask] = []
        self._seq = itertools.count()

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def tasks(self) -> list[PeriodicTask]:
        """有効なタスク一覧（コピー）。"""

        return [task for task in self._tasks if not task.cancelled]

    def schedule_interval(
        self, callback: Callable[[], None], interval: float, *, name: str = ""
    ) -> PeriodicTask:
        """`interval` 秒ごとに callback を呼ぶタスクを登録して返す。"""

        _interval = float(interval)
        if _interval <= 0:
            raise ValueError(f"interval は正の値である必要がある: got={interval}")
        task = PeriodicTask(
            callback=callback,
            interval=_interval,
            next_due=float(self._clock.t()) + _interval,
            name=str(name),
            seq=next(self._seq),
        )
        self._tasks.append(task)
        return task

    def run_due(self, now: float | None = None) -> int:
        """期限が来た呼び出しを実行し、実行回数を返す。"""

        _now = float(self._clock.t()) if now is None else float(now)
        executed = 0
        while True:
            task = self._next_due(_now)
            if task is None:
                break
            if self._max_lag is not None and _now - task.next_due > self._max_lag:
                _logger.debug("task %s is lagging; skipping missed runs", task.name)
                task.next_due = _now
            task.next_due += task.interval
            task.runs += 1
            task.callback()
            executed += 1
        self._tasks = [task for task in self._tasks if not task.cancelled]
        return executed

    def _next_due(self, now: float) -> PeriodicTask | None:
        best: PeriodicTask | None = None
        for task in self._tasks:
            if task.cancelled or task.next_due > now:
                continue
            if best is None or (task.next_due, task.seq) < (best.next_due, best.seq):
                best = task
        return best

    def cancel_all(self) -> None:
        """全タスクを止める。"""

        for task in self._tasks:
            task.cancel()
        self._tasks = []


__all__ = ["PeriodicTask", "TaskLoop"]
