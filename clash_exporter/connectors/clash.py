# File: connectors/clash.py

import logging
from typing import Optional

import requests

from clash_exporter import __version__
from clash_exporter.config.config_loader import ExporterConfig
from clash_exporter.connectors.base import Connector
from clash_exporter.core.errors import FetchError

_LOG = logging.getLogger(__name__)

CONNECTIONS_PATH = "/connections"


class ClashConnector(Connector):
    """Reads the connections snapshot from the Clash external-controller API."""

    def __init__(self, cfg: ExporterConfig, session: Optional[requests.Session] = None):
        self.url = f"http://{cfg.clash_address}{CONNECTIONS_PATH}"
        self.timeout = cfg.clash_timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": f"clash-prometheus-exporter/{__version__}"})

    def fetch_snapshot(self) -> bytes:
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"error fetching connections from clash: {e}") from e
        _LOG.debug("Fetched connections", extra={"url": self.url, "bytes": len(resp.content)})
        return resp.content

    def close(self) -> None:
        self.session.close()
