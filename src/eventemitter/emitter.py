"""Thread-safe in-process event emitter.

Handlers are registered against an event identifier (*listeners*) or
against every event (*capturers*).  :meth:`Emitter.emit_event` takes a
snapshot of the matching handlers while holding the registry lock, strips
``once`` entries from the live registry, releases the lock and only then
invokes the snapshot.  Handlers are therefore free to call back into the
emitter (emit, register, remove) without deadlocking, and a ``once``
handler can never be observed by a later or nested emission.

When the emitter is created with ``async_dispatch=True`` every invocation
is submitted to a :class:`~concurrent.futures.ThreadPoolExecutor` and
:meth:`Emitter.emit_event` returns without waiting for it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from threading import Lock
from typing import Any, TypeVar

from .config import EmitterConfig, load_config
from .interface import CaptureFunc, EventID, HandleFunc

__all__ = ["Listener", "Capturer", "Emitter", "new_emitter"]

logger = logging.getLogger("eventemitter")

_F = TypeVar("_F", bound=Callable[..., Any])
_Entry = TypeVar("_Entry", "Listener", "Capturer")


@dataclass(frozen=True, eq=False)
class Listener:
    """Registration handle for a handler bound to one event.

    Equality is identity: two registrations of the same callable are two
    distinct listeners.
    """

    handler: HandleFunc
    once: bool = False


@dataclass(frozen=True, eq=False)
class Capturer:
    """Registration handle for a handler that receives every event."""

    handler: CaptureFunc
    once: bool = False


# ---------------------------------------------------------------------------
# Registry helpers (call with the lock held)
# ---------------------------------------------------------------------------

def _remove_by_identity(entries: list[_Entry], target: _Entry) -> bool:
    for index, entry in enumerate(entries):
        if entry is target:
            del entries[index]
            return True
    return False


def _take_snapshot(entries: list[_Entry] | None) -> tuple[_Entry, ...]:
    """Copy *entries* and drop their ``once`` members from the live list."""
    if not entries:
        return ()
    snapshot = tuple(entries)
    if any(entry.once for entry in snapshot):
        entries[:] = [entry for entry in snapshot if not entry.once]
    return snapshot


class Emitter:
    """Registry of listeners and capturers with snapshot-then-invoke emission.

    Parameters
    ----------
    async_dispatch
        When ``True`` handlers run on worker threads and
        :meth:`emit_event` does not wait for them.  Fixed for the lifetime
        of the emitter.
    max_workers, thread_name_prefix
        Passed to the :class:`ThreadPoolExecutor` created lazily for
        asynchronous dispatch.
    executor
        Use this executor instead of creating one.  The emitter never
        shuts down an executor it did not create.
    """

    def __init__(
        self,
        async_dispatch: bool = False,
        *,
        max_workers: int | None = None,
        thread_name_prefix: str = "eventemitter",
        executor: Executor | None = None,
    ) -> None:
        self._async = bool(async_dispatch)
        self._listeners: dict[EventID, list[Listener]] = {}
        self._capturers: list[Capturer] = []
        self._lock = Lock()
        self._max_workers = max_workers
        self._thread_name_prefix = thread_name_prefix
        self._executor = executor
        self._owns_executor = executor is None
        self._pending: set[Future[Any]] = set()

    @classmethod
    def from_config(cls, config: EmitterConfig | None = None) -> Emitter:
        """Create an emitter from *config*, loading it when not given."""
        if config is None:
            config = load_config()
        return cls(
            config.async_dispatch,
            max_workers=config.max_workers,
            thread_name_prefix=config.thread_name_prefix,
        )

    @property
    def async_dispatch(self) -> bool:
        return self._async

    # --- registration ------------------------------------------------
    def _add_listener(self, event: EventID, handler: HandleFunc, once: bool) -> Listener:
        listener = Listener(handler, once)
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)
        logger.debug("listener added for %r (once=%s)", event, once)
        return listener

    def _add_capturer(self, handler: CaptureFunc, once: bool) -> Capturer:
        capturer = Capturer(handler, once)
        with self._lock:
            self._capturers.append(capturer)
        logger.debug("capturer added (once=%s)", once)
        return capturer

    def add_listener(self, event: EventID, handler: HandleFunc) -> Listener:
        """Call *handler* with the arguments of every emission of *event*."""
        return self._add_listener(event, handler, False)

    def listen_once(self, event: EventID, handler: HandleFunc) -> Listener:
        """Call *handler* for the next emission of *event* only."""
        return self._add_listener(event, handler, True)

    def add_capturer(self, handler: CaptureFunc) -> Capturer:
        """Call *handler* as ``handler(event, *args)`` for every emission."""
        return self._add_capturer(handler, False)

    def capture_once(self, handler: CaptureFunc) -> Capturer:
        return self._add_capturer(handler, True)

    def on(self, event: EventID, *, once: bool = False) -> Callable[[_F], _F]:
        """Decorator form of :meth:`add_listener` / :meth:`listen_once`."""

        def decorator(fn: _F) -> _F:
            self._add_listener(event, fn, once)
            return fn

        return decorator

    def capture(self, *, once: bool = False) -> Callable[[_F], _F]:
        """Decorator form of :meth:`add_capturer` / :meth:`capture_once`."""

        def decorator(fn: _F) -> _F:
            self._add_capturer(fn, once)
            return fn

        return decorator

    # --- removal -----------------------------------------------------
    def remove_listener(self, event: EventID, listener: Listener) -> None:
        """Remove *listener* from *event*.  Unknown handles are ignored."""
        with self._lock:
            entries = self._listeners.get(event)
            if not entries or not _remove_by_identity(entries, listener):
                return
            if not entries:
                del self._listeners[event]
        logger.debug("listener removed from %r", event)

    def remove_all_listeners_for_event(self, event: EventID) -> None:
        with self._lock:
            self._listeners.pop(event, None)
        logger.debug("all listeners removed from %r", event)

    def remove_all_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()
        logger.debug("all listeners removed")

    def remove_capturer(self, capturer: Capturer) -> None:
        """Remove *capturer*.  Unknown handles are ignored."""
        with self._lock:
            removed = _remove_by_identity(self._capturers, capturer)
        if removed:
            logger.debug("capturer removed")

    def remove_all_capturers(self) -> None:
        with self._lock:
            self._capturers.clear()
        logger.debug("all capturers removed")

    # --- introspection -----------------------------------------------
    def listeners(self, event: EventID) -> list[Listener]:
        with self._lock:
            return list(self._listeners.get(event, ()))

    def capturers(self) -> list[Capturer]:
        with self._lock:
            return list(self._capturers)

    def listener_count(self, event: EventID | None = None) -> int:
        """Number of listeners for *event*, or for all events when ``None``."""
        with self._lock:
            if event is None:
                return sum(len(entries) for entries in self._listeners.values())
            return len(self._listeners.get(event, ()))

    def events(self) -> list[EventID]:
        """Event identifiers that currently have at least one listener."""
        with self._lock:
            return [event for event, entries in self._listeners.items() if entries]

    # --- emission ----------------------------------------------------
    def emit_event(self, event: EventID, *args: Any) -> None:
        """Invoke the listeners of *event*, then every capturer.

        Exceptions raised by a handler in synchronous mode propagate to the
        caller and the rest of the snapshot is skipped.
        """
        with self._lock:
            entries = self._listeners.get(event)
            listeners = _take_snapshot(entries)
            if entries is not None and not entries:
                del self._listeners[event]
            capturers = _take_snapshot(self._capturers)

        if not listeners and not capturers:
            return
        logger.debug(
            "emit %r to %d listener(s) and %d capturer(s)",
            event,
            len(listeners),
            len(capturers),
        )

        calls: list[tuple[Callable[..., Any], tuple[Any, ...]]] = [
            (listener.handler, args) for listener in listeners
        ]
        calls.extend((capturer.handler, (event, *args)) for capturer in capturers)
        self._dispatch(calls)

    def _dispatch(self, calls: Sequence[tuple[Callable[..., Any], tuple[Any, ...]]]) -> None:
        if not self._async:
            for handler, args in calls:
                handler(*args)
            return

        # The lock is only held for bookkeeping: an executor may run the
        # handler inside submit() or block there.
        for handler, args in calls:
            future = self._submit(handler, args)
            with self._lock:
                self._pending.add(future)
            future.add_done_callback(self._on_done)

    def _submit(self, handler: Callable[..., Any], args: tuple[Any, ...]) -> Future[Any]:
        while True:
            with self._lock:
                executor = self._ensure_executor()
            try:
                return executor.submit(handler, *args)
            except RuntimeError:
                # close() shut down our executor after we picked it up
                with self._lock:
                    replaced = self._owns_executor and self._executor is not executor
                if not replaced:
                    raise

    def _ensure_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix=self._thread_name_prefix,
            )
        return self._executor

    def _on_done(self, future: Future[Any]) -> None:
        if not future.cancelled():
            exc = future.exception()
            if exc is not None:
                logger.error("async event handler raised", exc_info=exc)
        with self._lock:
            self._pending.discard(future)

    # --- async lifecycle ---------------------------------------------
    def join(self, timeout: float | None = None) -> bool:
        """Wait for dispatched handlers, including ones they dispatch.

        Returns ``False`` if *timeout* expires first.  Must not be called
        from a handler running on this emitter's executor.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending: Iterable[Future[Any]] = list(self._pending)
            if not pending:
                return True
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
            _done, not_done = wait_futures(pending, timeout=remaining)
            if not_done:
                return False

    def close(self, wait: bool = True) -> None:
        """Shut down the executor created by this emitter.

        The emitter stays usable; a later asynchronous emission starts a
        new executor.
        """
        if wait:
            self.join()
        with self._lock:
            executor = self._executor if self._owns_executor else None
            if executor is not None:
                self._executor = None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self) -> Emitter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def new_emitter(async_dispatch: bool = False, **kwargs: Any) -> Emitter:
    """Return a new :class:`Emitter`; see its constructor for *kwargs*."""
    return Emitter(async_dispatch, **kwargs)
