import signal
import threading

import bzcgi.process as process


class _Stdout:
    def __init__(self):
        self.calls = []

    def reconfigure(self, **kwargs):
        self.calls.append(kwargs)


def test_init_is_idempotent(monkeypatch):
    monkeypatch.setattr(process, "_initialized", False)
    installed = []
    monkeypatch.setattr(process.signal, "signal", lambda sig, handler: installed.append((sig, handler)))
    fake_stdout = _Stdout()
    monkeypatch.setattr(process.sys, "stdout", fake_stdout)

    process.init_process_globals()
    process.init_process_globals()

    assert process.process_globals_initialized()
    assert (signal.SIGTERM, signal.SIG_IGN) in installed
    assert (signal.SIGPIPE, signal.SIG_IGN) in installed
    assert len(installed) == 2
    assert fake_stdout.calls == [{"write_through": True}]


def test_init_off_main_thread_does_not_fail(monkeypatch):
    monkeypatch.setattr(process, "_initialized", False)
    monkeypatch.setattr(process.sys, "stdout", _Stdout())
    errors = []

    def run():
        try:
            process.init_process_globals()
        except Exception as e:
            errors.append(e)

    t = threading.Thread(target=run)
    t.start()
    t.join()

    assert errors == []
    assert process.process_globals_initialized()
