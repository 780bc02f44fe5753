import logging
import os

from .config import EmitterConfig, load_config
from .emitter import Capturer, Emitter, Listener, new_emitter
from .errors import ConfigError, EventEmitterError
from .interface import CaptureFunc, EventEmitter, EventID, HandleFunc, Observable

logger = logging.getLogger("eventemitter")
if os.environ.get("EVENTEMITTER_DEBUG") and not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s:%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


__all__ = [
    "Emitter",
    "new_emitter",
    "Listener",
    "Capturer",
    "EmitterConfig",
    "load_config",
    "EventEmitterError",
    "ConfigError",
    "EventID",
    "HandleFunc",
    "CaptureFunc",
    "Observable",
    "EventEmitter",
]
