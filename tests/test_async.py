from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor

from eventemitter import Emitter, EmitterConfig, new_emitter


def test_emit_returns_before_handlers_finish():
    release = threading.Event()
    done = threading.Event()

    def slow():
        release.wait(5)
        done.set()

    with new_emitter(True) as em:
        em.add_listener("e", slow)
        em.emit_event("e")
        assert not done.is_set()
        release.set()
        assert em.join(timeout=5)
        assert done.is_set()


def test_join_times_out_while_handler_blocks():
    release = threading.Event()
    em = new_emitter(True)
    em.add_listener("e", lambda: release.wait(5))
    em.emit_event("e")

    assert em.join(timeout=0.05) is False
    release.set()
    assert em.join(timeout=5) is True
    em.close()


def test_join_waits_for_nested_async_emissions():
    em = new_emitter(True)
    lock = threading.Lock()
    fired = {"root": 0, "sub": 0}

    def root(*_args):
        with lock:
            fired["root"] += 1
        em.emit_event("sub")
        em.emit_event("sub")

    def sub():
        with lock:
            fired["sub"] += 1

    em.add_listener("root", root)
    em.add_listener("sub", sub)
    em.emit_event("root", "test")

    assert em.join(timeout=5)
    assert fired == {"root": 1, "sub": 2}
    em.close()


def test_once_handler_runs_once_when_emissions_overlap():
    release = threading.Event()
    lock = threading.Lock()
    calls: list[int] = []

    def once(i):
        release.wait(5)
        with lock:
            calls.append(i)

    em = new_emitter(True)
    em.listen_once("e", once)
    for i in range(5):
        em.emit_event("e", i)
    release.set()

    assert em.join(timeout=5)
    assert calls == [0]
    em.close()


def test_handlers_run_on_worker_threads():
    names: list[str] = []
    em = Emitter(True, thread_name_prefix="bus")
    em.add_listener("e", lambda: names.append(threading.current_thread().name))

    em.emit_event("e")
    em.join(timeout=5)

    assert names and names[0].startswith("bus")
    assert names[0] != threading.current_thread().name
    em.close()


def test_async_handler_errors_are_logged(caplog):
    em = new_emitter(True)
    after: list[int] = []

    def boom():
        raise RuntimeError("handler failed")

    em.add_listener("e", boom)
    em.add_listener("e", lambda: after.append(1))

    with caplog.at_level(logging.ERROR, logger="eventemitter"):
        em.emit_event("e")
        assert em.join(timeout=5)

    assert "async event handler raised" in caplog.text
    assert "handler failed" in caplog.text
    assert after == [1]
    em.close()


def test_close_then_reuse():
    calls: list[int] = []
    em = new_emitter(True)
    em.add_listener("e", calls.append)

    em.emit_event("e", 1)
    em.close()
    assert calls == [1]

    em.emit_event("e", 2)
    assert em.join(timeout=5)
    assert calls == [1, 2]
    em.close()


def test_injected_executor_is_not_shut_down():
    executor = ThreadPoolExecutor(max_workers=1)
    calls: list[int] = []
    try:
        em = new_emitter(True, executor=executor)
        em.add_listener("e", calls.append)
        em.emit_event("e", 1)
        em.close()

        assert calls == [1]
        assert executor.submit(lambda: 7).result(timeout=5) == 7
    finally:
        executor.shutdown()


def test_join_is_immediate_in_sync_mode():
    em = new_emitter()
    assert em.join(timeout=0) is True
    em.close()


def test_from_config():
    em = Emitter.from_config(EmitterConfig(async_dispatch=True, max_workers=2))
    calls: list[int] = []
    em.add_listener("e", calls.append)
    em.emit_event("e", 5)

    assert em.async_dispatch is True
    assert em.join(timeout=5)
    assert calls == [5]
    em.close()


class InlineExecutor(Executor):
    """Runs submitted work on the submitting thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)
        return future


def test_inline_executor_handler_can_reenter():
    em = new_emitter(True, executor=InlineExecutor())
    calls: list[str] = []

    def handler():
        calls.append("e")
        em.add_listener("other", lambda: calls.append("other"))
        em.emit_event("other")

    em.add_listener("e", handler)
    em.add_capturer(lambda event: calls.append(f"cap:{event}"))

    worker = threading.Thread(target=em.emit_event, args=("e",))
    worker.start()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert calls == ["e", "other", "cap:other", "cap:e"]
    assert em.join(timeout=5)
