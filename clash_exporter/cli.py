# cli.py
"""
Entry point: poll the Clash API in the background and serve the metrics.

    clash-exporter --clash-address 127.0.0.1:9090 --collect-interval 15s
"""

from __future__ import annotations
import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from clash_exporter import __version__
from clash_exporter.config.config_loader import ExporterConfig, load_config
from clash_exporter.connectors.clash import ClashConnector
from clash_exporter.core.errors import ConfigError
from clash_exporter.core.logging_setup import setup_logging
from clash_exporter.core.metrics import ExporterMetrics
from clash_exporter.pipeline.scheduler import PollLoop
from clash_exporter.server import make_app, make_http_server

LOG = logging.getLogger("clash_exporter")

EXIT_OK, EXIT_FATAL, EXIT_CONFIG = 0, 1, 2


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="clash-exporter",
        description="Export Clash connection statistics as Prometheus metrics",
    )
    ap.add_argument("--config", help="YAML config file (default: $CLASH_EXPORTER_CONFIG)")
    ap.add_argument("--listen-address", help="Address to listen on (default 127.0.0.1:9869)")
    ap.add_argument("--clash-address", help="Address of the clash API (default 127.0.0.1:9090)")
    ap.add_argument("--clash-timeout", help="Timeout for reading from the clash API (default 5s)")
    ap.add_argument("--collect-interval", help="Interval to collect metrics from clash (default 30s)")
    ap.add_argument("--metrics-path", help="Path to serve metrics at (default /metrics)")
    ap.add_argument("--on-decode-error", choices=["exit", "skip"],
                    help="Exit (default) or skip the cycle on an invalid clash response")
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    ap.add_argument("--log-format", choices=["json", "text"])
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


class Exporter:
    """Owns the registry, the poll loop and the HTTP server for one process."""

    def __init__(self, cfg: ExporterConfig):
        self.cfg = cfg
        self.metrics = ExporterMetrics()
        self.connector = ClashConnector(cfg)
        self.loop = PollLoop(
            self.connector, self.metrics, cfg.collect_interval,
            on_decode_error=cfg.on_decode_error,
            on_fatal=self._on_fatal,
        )
        self.httpd = None
        self.exit_code = EXIT_OK

    def _on_fatal(self, exc: BaseException) -> None:
        self.exit_code = EXIT_FATAL
        self.shutdown()

    def shutdown(self) -> None:
        # serve_forever() must be stopped from another thread
        if self.httpd is not None:
            threading.Thread(target=self.httpd.shutdown, daemon=True).start()

    def run(self) -> int:
        host, port = self.cfg.listen
        app = make_app(self.metrics.registry, self.cfg.metrics_path)
        try:
            self.httpd = make_http_server(app, host, port)
        except OSError as e:
            LOG.critical("Cannot listen", extra={"address": self.cfg.listen_address, "error": str(e)})
            return EXIT_FATAL

        self.loop.start()
        LOG.info("Starting listen", extra={"url": f"http://{self.cfg.listen_address}"})
        try:
            self.httpd.serve_forever()
        finally:
            self.loop.stop(wait=False)
            self.httpd.server_close()
            self.connector.close()
        LOG.info("Stopped", extra={"exit_code": self.exit_code})
        return self.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    a = build_parser().parse_args(argv)
    overrides = {k: v for k, v in vars(a).items() if k != "config"}
    try:
        cfg = load_config(a.config, overrides)
    except ConfigError as e:
        print(f"clash-exporter: invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(cfg.log_level, cfg.log_format)
    LOG.info("Configuration loaded", extra=cfg.model_dump())

    exporter = Exporter(cfg)

    def _stop(signum, frame):
        LOG.info("Received signal", extra={"signal": signum})
        exporter.shutdown()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)
    return exporter.run()


if __name__ == "__main__":
    sys.exit(main())
