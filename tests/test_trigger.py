import threading

import pytest

from shipwatch.trigger import UPDATE_PATH, UpdateHandler


def test_path_is_update_endpoint():
    handler = UpdateHandler(lambda: None)
    assert handler.path == "/v1/update"
    assert handler.path == UPDATE_PATH


def test_handle_runs_update_when_lock_is_free():
    calls = []
    handler = UpdateHandler(lambda: calls.append(1))
    assert handler.handle(b"") is True
    assert calls == [1]
    assert handler.lock.locked() is False


def test_handle_skips_when_lock_is_held():
    lock = threading.Lock()
    calls = []
    handler = UpdateHandler(lambda: calls.append(1), lock)
    lock.acquire()
    try:
        assert handler.handle(b"") is False
    finally:
        lock.release()
    assert calls == []


def test_handle_echoes_body_to_stdout(capsys):
    handler = UpdateHandler(lambda: None)
    handler.handle(b"request body")
    assert capsys.readouterr().out == "request body"


def test_lock_is_released_when_update_fails():
    def failing():
        raise RuntimeError("boom")

    handler = UpdateHandler(failing)
    with pytest.raises(RuntimeError):
        handler.handle(b"")
    assert handler.lock.locked() is False


def test_shared_lock_blocks_concurrent_update():
    lock = threading.Lock()
    inner_results = []
    second = UpdateHandler(lambda: None, lock)

    def first_update():
        inner_results.append(second.handle(b""))

    first = UpdateHandler(first_update, lock)
    assert first.handle(b"") is True
    assert inner_results == [False]