import pytest

pytest.importorskip("PySide6")

from planscale_qt.helpers import worker_manager as worker_manager_module
from planscale.services.write_queue import WriteQueue


class _Signal:
    def __init__(self):
        self._callbacks = []

    def connect(self, callback):
        self._callbacks.append(callback)

    def emit(self, payload):
        for callback in list(self._callbacks):
            callback(payload)


class _Signals:
    def __init__(self):
        self.result = _Signal()
        self.error = _Signal()
        self.failed = _Signal()


class _FakeWorker:
    def __init__(self, fn):
        self.fn = fn
        self.signals = _Signals()


class _ThreadPool:
    def start(self, worker):
        try:
            payload = worker.fn()
        except Exception as exc:
            worker.signals.failed.emit(exc)
            worker.signals.error.emit(f"{type(exc).__name__}: {exc}")
            return
        worker.signals.result.emit(payload)


def test_submit_routes_result_callback_exceptions_to_error_handler(monkeypatch):
    monkeypatch.setattr(worker_manager_module, "Worker", _FakeWorker)
    manager = worker_manager_module.WorkerManager(_ThreadPool(), parent=None)
    errors = []

    def _on_result(_payload):
        raise RuntimeError("result callback failed")

    manager.submit(lambda: {"ok": True}, _on_result, errors.append)

    assert len(errors) == 1
    assert "RuntimeError" in errors[0]
    assert "result callback failed" in errors[0]


def test_dispatch_drives_write_queue(monkeypatch):
    monkeypatch.setattr(worker_manager_module, "Worker", _FakeWorker)
    manager = worker_manager_module.WorkerManager(_ThreadPool(), parent=None)
    failures = []
    queue = WriteQueue(dispatch=manager.dispatch, on_error=lambda key, desc, exc: failures.append((key, str(exc))))
    results = []

    def _boom():
        raise ValueError("server said no")

    queue.enqueue("m1", lambda: "created", on_success=results.append)
    queue.enqueue("m1", _boom)

    assert results == ["created"]
    assert failures == [("m1", "server said no")]
    assert queue.idle
