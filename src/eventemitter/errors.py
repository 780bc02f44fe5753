class EventEmitterError(Exception):
    """Base class for eventemitter errors."""


class ConfigError(EventEmitterError):
    """Raised when emitter configuration is malformed."""
