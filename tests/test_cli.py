import logging
import signal
import socket
import threading
import time

import pytest

from clash_exporter import cli
from clash_exporter.cli import EXIT_CONFIG, EXIT_FATAL, EXIT_OK, Exporter, build_parser, main
from clash_exporter.config.config_loader import CONFIG_ENV, ExporterConfig


@pytest.fixture(autouse=True)
def _no_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV, raising=False)


@pytest.fixture(autouse=True)
def handlers(monkeypatch):
    """Signal handlers main() installs, recorded instead of registered."""
    installed = {}
    monkeypatch.setattr(signal, "signal", lambda signum, fn: installed.__setitem__(signum, fn))
    return installed


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_parser_flags():
    a = build_parser().parse_args([
        "--listen-address", "0.0.0.0:9869",
        "--clash-timeout", "2s",
        "--on-decode-error", "skip",
    ])
    assert a.listen_address == "0.0.0.0:9869"
    assert a.clash_timeout == "2s"
    assert a.on_decode_error == "skip"
    assert a.collect_interval is None


def test_invalid_config_exit_code(capsys):
    assert main(["--collect-interval", "soon"]) == EXIT_CONFIG
    assert "invalid configuration" in capsys.readouterr().err


def test_bind_failure_exit_code():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        s.listen()
        port = s.getsockname()[1]
        assert main(["--listen-address", f"127.0.0.1:{port}", "--log-format", "text"]) == EXIT_FATAL


def test_fatal_decode_error_stops_exporter(make_connector):
    exporter = Exporter(ExporterConfig(listen_address="127.0.0.1:0", collect_interval=3600))
    exporter.loop.connector = make_connector(b"<html>not the clash api</html>")
    assert exporter.run() == EXIT_FATAL
    assert exporter.loop.fatal_error is not None
    assert not exporter.loop.running


@pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
def test_signal_stops_server_and_loop(monkeypatch, handlers, signum):
    started = []

    class RecordingExporter(Exporter):
        def __init__(self, cfg):
            super().__init__(cfg)
            started.append(self)

    monkeypatch.setattr(cli, "Exporter", RecordingExporter)
    result = []
    t = threading.Thread(
        target=lambda: result.append(main([
            "--listen-address", "127.0.0.1:0",
            "--clash-address", "127.0.0.1:1",
            "--collect-interval", "1h",
            "--log-format", "text",
        ])),
        daemon=True,
    )
    t.start()

    deadline = time.monotonic() + 5
    while not (started and started[0].httpd is not None and started[0].loop.running):
        assert time.monotonic() < deadline, "exporter did not start"
        time.sleep(0.01)

    handlers[signum](signum, None)
    t.join(timeout=5)

    assert not t.is_alive()
    assert result == [EXIT_OK]
    assert not started[0].loop.running
