from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir as _uc

__all__ = ["user_config_dir", "find_pyproject"]

APP_NAME = "eventemitter"


def user_config_dir(app_name: str = APP_NAME) -> Path:
    """Return the per-user configuration directory.

    ``EVENTEMITTER_CONFIG_DIR`` takes precedence over the platform default.
    """
    env = os.getenv("EVENTEMITTER_CONFIG_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return Path(_uc(appname=app_name)).resolve()


def find_pyproject(start: str | Path | None = None) -> Path | None:
    """Walk up from *start* and return the first ``pyproject.toml`` found."""
    here = Path(start or Path.cwd()).resolve()
    for parent in (here, *here.parents):
        candidate = parent / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None
