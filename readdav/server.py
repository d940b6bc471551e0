import logging
import threading
from typing import Any

from cheroot import wsgi

from .app import DavApplication

logger = logging.getLogger(__name__)


class DavServer:
    """
    Threaded HTTP server for a :class:`DavApplication`.

    cheroot hands every request to one of ``threads`` worker threads. The
    application's cache coordinator is started with the server and stopped
    with it.

    Example:
        >>> app = DavApplication(load_config(base="/srv/files"))
        >>> with DavServer(app, port=8080) as server:
        ...     print(server.url)
    """

    def __init__(self, app: DavApplication, address: str = "", port: int = 8080, threads: int = 10):
        self.app = app
        self.address = address
        self.port = port
        self.threads = threads
        self._server: wsgi.Server | None = None
        self._thread: threading.Thread | None = None

    def _create_server(self) -> wsgi.Server:
        # cheroot needs a concrete host to bind every interface
        bind_host = self.address or "0.0.0.0"
        return wsgi.Server((bind_host, self.port), self.app, numthreads=self.threads)

    def start(self) -> None:
        """
        Start serving (blocking).

        Blocks until the server is stopped via Ctrl+C or stop().

        Raises:
            OSError: If the listen address cannot be bound.
        """
        self._server = self._create_server()
        self.app.coordinator.start()
        logger.info("Starting WebDAV server at %s", self.url)
        try:
            self._server.start()
        except KeyboardInterrupt:
            logger.info("WebDAV server stopped by user")
        finally:
            self.stop()

    def start_background(self) -> None:
        """
        Bind and serve from a daemon thread. Use stop() to terminate.

        Raises:
            OSError: If the listen address cannot be bound.
        """
        if self._thread and self._thread.is_alive():
            logger.warning("WebDAV server already running")
            return

        self._server = self._create_server()
        try:
            self._server.prepare()
        except OSError:
            self._server = None
            raise
        self.app.coordinator.start()

        self._thread = threading.Thread(target=self._server.serve, name="dav-server", daemon=True)
        self._thread.start()
        logger.info("WebDAV server ready at %s", self.url)

    def stop(self) -> None:
        """Stop the HTTP server and the cache coordinator."""
        if self._server is not None:
            logger.info("Stopping WebDAV server")
            self._server.stop()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        self.app.coordinator.stop()

    @property
    def bound_port(self) -> int:
        """Actual listening port; differs from ``port`` when 0 was requested."""
        if self._server is not None:
            bind_addr = self._server.bind_addr
            if isinstance(bind_addr, tuple):
                return bind_addr[1]
        return self.port

    @property
    def url(self) -> str:
        return f"http://{self.address or '127.0.0.1'}:{self.bound_port}"

    def __enter__(self) -> "DavServer":
        self.start_background()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
