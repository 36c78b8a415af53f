"""Console entrypoint.

The command implementations live in `linear_bookkeeper.reconciler.main`.
"""

from __future__ import annotations

from linear_bookkeeper.reconciler.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
