"""HTTP endpoint serving the registry's current text exposition."""

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import urlparse

from runner.metric_registry import MetricRegistry


METRICS_PATH = "/metrics"

logger = logging.getLogger("server.snapshot")


class SnapshotHandler(BaseHTTPRequestHandler):
    """Serves GET /metrics; everything else is 404."""

    registry: MetricRegistry = None

    def _send(self, code, body, ctype="text/plain; charset=utf-8"):
        try:
            self.send_response(code)
            self.send_header("Content-Type", ctype)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug(f"Client {self.client_address[0]} went away: {e}")

    def do_GET(self):
        if urlparse(self.path).path != METRICS_PATH:
            return self._send(404, b"not found\n")
        return self._send(200, self.registry.render(), self.registry.content_type)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class SnapshotServer:
    """Threaded HTTP listener; reads the registry lazily on each request."""

    def __init__(self, registry: MetricRegistry, port: int, listen_address: str = "0.0.0.0"):
        self.registry = registry
        self.listen_address = listen_address
        self.requested_port = port
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        if self._httpd is None:
            return self.requested_port
        return self._httpd.server_address[1]

    @property
    def url(self) -> str:
        host = "127.0.0.1" if self.listen_address in ("", "0.0.0.0") else self.listen_address
        return f"http://{host}:{self.port}{METRICS_PATH}"

    def start(self) -> None:
        """Bind and serve from a daemon thread. Bind errors raise OSError."""
        handler = type("BoundSnapshotHandler", (SnapshotHandler,), {"registry": self.registry})
        self._httpd = ThreadingHTTPServer((self.listen_address, self.requested_port), handler)
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(target=self._httpd.serve_forever, name="snapshot-server", daemon=True)
        self._thread.start()
        logger.info(f"Serving metrics on {self.listen_address}:{self.port}{METRICS_PATH}")

    def stop(self) -> None:
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join()
        self._httpd = None
        self._thread = None
        logger.info("Snapshot server stopped")
