"""Common path utilities.

Scripts under `experiments/` read inputs from `data/` and write artefacts to
`outputs/` and `models/`. These helpers locate the project root reliably
regardless of the working directory the scripts are launched from.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union


def find_project_root(start: Path) -> Path:
    """Find the enclosing project root.

    Strategy: walk upward from `start` until we find a directory that looks
    like the project root (must contain `config/` and `experiments/`).

    Returns `start` if no such parent exists.
    """
    start = start.resolve()
    for candidate in (start, *start.parents):
        if (candidate / "config").is_dir() and (candidate / "experiments").is_dir():
            return candidate
    return start


def ensure_parent(path: Union[str, Path]) -> Path:
    """Create the parent directory of `path` if needed and return it as a Path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
