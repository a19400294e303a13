# どこで: `src/scatterwall/animation/clock.py`。
# 何を: TaskLoop が期限判定に使う時計（実時間 / 録画フレーム / 手動）を提供する。
# なぜ: 同じスケジューラを、プレビューでは実時間、録画とテストでは決定的な時刻で回すため。

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """`t()` で現在時刻（秒）を返す時計。"""

    def t(self) -> float: ...


class RealTimeClock:
    """プレビュー用。生成時（または `start_time`）からの `perf_counter()` 経過秒を返す。"""

    def __init__(self, *, start_time: float | None = None) -> None:
        self._origin = time.perf_counter() if start_time is None else float(start_time)

    def t(self) -> float:
        return time.perf_counter() - self._origin


class RecordingClock:
    """録画用。`tick()` 1 回で 1 フレーム（`1/fps` 秒）だけ進む。

    時刻は毎回 `t0 + frame_index / fps` から計算し直すので、長い録画でも誤差が積もらない。
    """

    def __init__(self, *, t0: float = 0.0, fps: float) -> None:
        if float(fps) <= 0:
            raise ValueError(f"録画 fps は正の値である必要がある: got={fps}")
        self._t0 = float(t0)
        self._fps = float(fps)
        self.frame_index = 0

    def t(self) -> float:
        return self._t0 + self.frame_index / self._fps

    def tick(self) -> None:
        self.frame_index += 1


class ManualClock:
    """`advance()` でだけ進む仮想時計（テスト/ヘッドレス用）。"""

    def __init__(self, *, t0: float = 0.0) -> None:
        self._t = float(t0)

    def t(self) -> float:
        return self._t

    def advance(self, seconds: float) -> float:
        """時刻を `seconds` 進め、進めた後の時刻を返す。"""

        dt = float(seconds)
        if dt < 0:
            raise ValueError("時計を巻き戻すことはできない")
        self._t += dt
        return self._t


__all__ = ["Clock", "ManualClock", "RealTimeClock", "RecordingClock"]
