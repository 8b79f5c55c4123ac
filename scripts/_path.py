"""Make the repository importable when a script is run by path."""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent


def add_root() -> Path:
    """Put the repository root first on ``sys.path`` and return it."""

    root = str(REPO_ROOT)
    if root not in sys.path:
        sys.path.insert(0, root)
    return REPO_ROOT
