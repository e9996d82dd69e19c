# File: server.py

import html
import logging
from wsgiref.simple_server import WSGIRequestHandler, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer

LOG = logging.getLogger(__name__)

INDEX_PAGE = """<html>
<head><title>Clash Prometheus Exporter</title></head>
<body>
<h1>Clash Prometheus Exporter</h1>
<p><a href='{path}'>Metrics</a></p>
</body>
</html>
"""


class _LoggingHandler(WSGIRequestHandler):
    """Send wsgiref's access lines to logging instead of stderr."""

    def log_message(self, format, *args):
        LOG.debug(format, *args)


def make_app(registry: CollectorRegistry, metrics_path: str = "/metrics"):
    """
    WSGI app serving `registry` at `metrics_path` and a small index page at "/".
    """
    metrics_app = make_wsgi_app(registry)
    index = INDEX_PAGE.format(path=html.escape(metrics_path, quote=True)).encode("utf-8")

    def app(environ, start_response):
        path = environ.get("PATH_INFO") or "/"
        if path == metrics_path:
            return metrics_app(environ, start_response)
        if path == "/":
            start_response("200 OK", [
                ("Content-Type", "text/html; charset=utf-8"),
                ("Content-Length", str(len(index))),
            ])
            return [index]
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"Not Found\n"]

    return app


def make_http_server(app, host: str, port: int):
    """Bind a threaded WSGI server. Raises OSError when the address is unavailable."""
    return make_server(host, port, app, ThreadingWSGIServer, handler_class=_LoggingHandler)
