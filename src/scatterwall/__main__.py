# どこで: `src/scatterwall/__main__.py`。
# 何を: `python -m scatterwall` を CLI へ委譲する。

from __future__ import annotations

from scatterwall.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
