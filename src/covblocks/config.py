"""
Package-wide defaults. These are plain module attributes so they can be
changed at runtime, for example ``covblocks.config.num_workers = 1`` to force
single threaded multiplication everywhere.
"""

from __future__ import annotations

__all__ = ["DEFAULT_TOL", "num_workers"]

import os

DEFAULT_TOL = 1e-8


def _default_num_workers() -> int:
    value = os.environ.get("COVBLOCKS_NUM_WORKERS")
    if value is not None:
        workers = int(value)
        if workers < 1:
            raise ValueError(
                f"COVBLOCKS_NUM_WORKERS must be a positive integer; got {value}"
            )
        return workers
    return os.cpu_count() or 1


num_workers: int = _default_num_workers()
