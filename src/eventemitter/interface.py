"""Structural types shared by emitters and the code that talks to them."""
from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .emitter import Capturer, Listener

__all__ = [
    "EventID",
    "HandleFunc",
    "CaptureFunc",
    "Observable",
    "EventEmitter",
]

EventID = str

# Listeners are called as ``handler(*args)``; capturers as
# ``handler(event, *args)``.
HandleFunc = Callable[..., Any]
CaptureFunc = Callable[..., Any]


@runtime_checkable
class Observable(Protocol):
    def add_listener(self, event: EventID, handler: HandleFunc) -> Listener: ...

    def listen_once(self, event: EventID, handler: HandleFunc) -> Listener: ...

    def add_capturer(self, handler: CaptureFunc) -> Capturer: ...

    def capture_once(self, handler: CaptureFunc) -> Capturer: ...

    def remove_listener(self, event: EventID, listener: Listener) -> None: ...

    def remove_capturer(self, capturer: Capturer) -> None: ...


@runtime_checkable
class EventEmitter(Protocol):
    def emit_event(self, event: EventID, *args: Any) -> None: ...
