"""Layered configuration for :class:`~eventemitter.emitter.Emitter`.

Values are merged from, lowest to highest precedence:

1. the defaults on :class:`EmitterConfig`;
2. the ``[eventemitter]`` table of ``config.toml`` in the user
   configuration directory;
3. the ``[tool.eventemitter]`` table of the nearest ``pyproject.toml``;
4. ``EVENTEMITTER_*`` environment variables.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from .errors import ConfigError
from .paths import find_pyproject, user_config_dir

__all__ = ["EmitterConfig", "load_config", "parse_bool", "ENV_PREFIX"]

logger = logging.getLogger(__name__)

ENV_PREFIX = "EVENTEMITTER_"
CONFIG_FILENAME = "config.toml"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

# Setting names as written in files / env vars -> EmitterConfig field
_ALIASES = {
    "async": "async_dispatch",
    "async_dispatch": "async_dispatch",
    "max_workers": "max_workers",
    "thread_name_prefix": "thread_name_prefix",
}


@dataclass(frozen=True)
class EmitterConfig:
    async_dispatch: bool = False
    max_workers: int | None = None
    thread_name_prefix: str = "eventemitter"


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"invalid boolean value: {value!r}")


def _parse_workers(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and value.strip().lower() in {"", "none"}):
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigError(f"invalid max_workers: {value!r}")
    try:
        workers = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid max_workers: {value!r}") from exc
    if workers < 1:
        raise ConfigError(f"max_workers must be positive, got {workers}")
    return workers


_PARSERS = {
    "async_dispatch": parse_bool,
    "max_workers": _parse_workers,
    "thread_name_prefix": str,
}


def _normalise(raw: Mapping[str, Any], source: str) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in raw.items():
        name = _ALIASES.get(str(key).strip().lower().replace("-", "_"))
        if name is None:
            logger.warning("ignoring unknown setting %r in %s", key, source)
            continue
        try:
            out[name] = _PARSERS[name](value)
        except ConfigError as exc:
            raise ConfigError(f"{source}: {exc}") from exc
    return out


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    try:
        doc = tomlkit.parse(text)
    except TOMLKitError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    return doc.unwrap()


def _table(data: Mapping[str, Any], *keys: str) -> Mapping[str, Any]:
    for key in keys:
        data = data.get(key, {})
        if not isinstance(data, Mapping):
            return {}
    return data


def _from_user(user_dir: Path | None) -> dict[str, Any]:
    path = (user_dir or user_config_dir()) / CONFIG_FILENAME
    if not path.is_file():
        return {}
    logger.debug("reading user config %s", path)
    return _normalise(_table(_read_toml(path), "eventemitter"), str(path))


def _from_project(start: str | Path | None) -> dict[str, Any]:
    path = find_pyproject(start)
    if path is None:
        return {}
    logger.debug("reading project config %s", path)
    return _normalise(_table(_read_toml(path), "tool", "eventemitter"), str(path))


def _from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    raw = {
        key[len(ENV_PREFIX):]: value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and key[len(ENV_PREFIX):].lower() in _ALIASES
    }
    return _normalise(raw, "environment")


def load_config(
    *,
    start: str | Path | None = None,
    user_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> EmitterConfig:
    """Merge all configuration sources into an :class:`EmitterConfig`.

    Raises :class:`~eventemitter.errors.ConfigError` for unparsable files or
    invalid values.
    """
    values: dict[str, Any] = {}
    values.update(_from_user(user_dir))
    values.update(_from_project(start))
    values.update(_from_env(os.environ if environ is None else environ))
    known = {f.name for f in fields(EmitterConfig)}
    return EmitterConfig(**{k: v for k, v in values.items() if k in known})
