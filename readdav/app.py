"""
WSGI entry point: method routing, Depth validation and the error boundary.
"""

import logging
from http import HTTPStatus
from urllib.parse import quote, urlsplit

from .cache import CacheCoordinator, CacheStore
from .config import AppConfig
from .errors import BadRequest, Forbidden, HTTPStatusError, NotFound
from .listing import ListingAssembler
from .logger import ACCESS_LOGGER
from .resolver import PathResolver, request_path
from .streaming import serve_file

logger = logging.getLogger(__name__)
access_logger = logging.getLogger(ACCESS_LOGGER)

ACCEPTED_DEPTHS = ("0", "1")
FORBIDDEN_DEPTHS = ("", "infinity")


def check_depth(depth: str | None) -> None:
    """
    Validate the PROPFIND ``Depth`` header.

    ``0`` and ``1`` both list the directory's children. A missing header
    means infinity, which is refused.
    """
    if depth is None:
        depth = ""
    if depth in ACCEPTED_DEPTHS:
        return
    if depth in FORBIDDEN_DEPTHS:
        raise Forbidden(detail=f"Depth {depth or 'infinity'} not supported")
    raise BadRequest(detail=f"Invalid Depth header: {depth!r}")


def request_url_path(environ: dict) -> str:
    """The still-escaped URL path of the request."""
    raw_uri = environ.get("REQUEST_URI") or environ.get("RAW_URI")
    if raw_uri:
        return urlsplit(raw_uri).path or "/"
    # PEP 3333: PATH_INFO holds the decoded bytes as latin-1
    path_info = environ.get("PATH_INFO", "").encode("latin-1")
    return quote(path_info, safe="/") or "/"


def request_host(environ: dict) -> str:
    host = environ.get("HTTP_HOST")
    if host:
        return host
    host = environ.get("SERVER_NAME", "localhost")
    port = environ.get("SERVER_PORT", "80")
    if port != "80":
        host = f"{host}:{port}"
    return host


class DavApplication:
    """
    Read-only WebDAV WSGI application.

    Args:
        config: Loaded application configuration.
        coordinator: Cache coordinator to use; one is built from ``config``
            when omitted. The caller starts and stops it.
    """

    def __init__(self, config: AppConfig, coordinator: CacheCoordinator | None = None):
        self.config = config
        self.resolver = PathResolver(config.server.base_dir)
        if coordinator is None:
            coordinator = CacheCoordinator(
                CacheStore(config.cache.ttl_seconds),
                prune_interval=config.cache.prune_interval_seconds,
            )
        self.coordinator = coordinator
        self.store = coordinator.store
        self.assembler = ListingAssembler(
            self.resolver,
            self.store,
            coordinator,
            cache_enabled=config.cache.enabled,
        )
        self._handlers = {
            "GET": self.do_get,
            "HEAD": self.do_head,
            "PROPFIND": self.do_propfind,
        }

    def __call__(self, environ, start_response):
        method = environ.get("REQUEST_METHOD", "GET").upper()

        def logged_start_response(status, headers, exc_info=None):
            access_logger.info('%s %s "%s"', method, request_url_path(environ), status)
            return start_response(status, headers, exc_info)

        try:
            handler = self._handlers.get(method)
            if handler is None:
                raise BadRequest(detail=f"Unsupported method {method}")
            return handler(environ, logged_start_response)
        except HTTPStatusError as e:
            logger.debug("%s %s -> %s", method, environ.get("PATH_INFO"), e)
            return self._send_status(logged_start_response, e.status, e.headers)
        except Exception:
            if self.config.debug:
                raise
            logger.exception("Unexpected error handling %s %s", method, environ.get("PATH_INFO"))
            return self._send_status(logged_start_response, HTTPStatus.INTERNAL_SERVER_ERROR)

    @staticmethod
    def _send_status(start_response, status: HTTPStatus, headers=()):
        start_response(f"{status.value} {status.phrase}", [("Content-Length", "0"), *headers])
        return [b""]

    def do_get(self, environ, start_response):
        return self._send_file(environ, start_response, is_head=False)

    def do_head(self, environ, start_response):
        return self._send_file(environ, start_response, is_head=True)

    def _send_file(self, environ, start_response, is_head: bool):
        url_path = request_url_path(environ)
        path = self.resolver.resolve_url(url_path)
        logger.debug("%s %s -> %s", "HEAD" if is_head else "GET", url_path, path)
        return serve_file(environ, start_response, path, is_head=is_head)

    def do_propfind(self, environ, start_response):
        check_depth(environ.get("HTTP_DEPTH"))

        url_path = request_url_path(environ)
        try:
            req_path = request_path(url_path)
        except UnicodeDecodeError:
            raise NotFound(detail=url_path)
        logger.debug("PROPFIND %s", url_path)

        payload = self.assembler.propfind(req_path, request_host(environ))
        start_response(
            "207 Multi-Status",
            [
                ("Content-Type", 'text/xml; charset="utf-8"'),
                ("Content-Length", str(len(payload))),
            ],
        )
        return [payload]
