"""Common path utilities.

Experiments and tests need to locate repo-level resources (`config/`,
`stan_models/`, `data/`) regardless of where they are launched from.
"""

from __future__ import annotations

from pathlib import Path


def find_repo_root(start: Path) -> Path:
    """Find the enclosing repository root.

    Strategy: walk upward from `start` until we find a directory that looks
    like the repo root (must contain `config/` and `stan_models/`).

    Returns `start` if no such parent exists.
    """
    start = start.resolve()
    for candidate in (start, *start.parents):
        if (candidate / "config").is_dir() and (candidate / "stan_models").is_dir():
            return candidate
    return start
