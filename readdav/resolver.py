import logging
import os
from urllib.parse import unquote

from .errors import NotFound

logger = logging.getLogger(__name__)


def request_path(url_path: str) -> str:
    """
    Turn a (still percent-escaped) URL path into a relative request path.

    The leading slash and at most one trailing slash are dropped, so
    ``/docs/a%20b/`` becomes ``docs/a b`` and ``/`` becomes ``""``.
    """
    path = unquote(url_path, encoding="utf-8", errors="strict")
    if path.startswith("/"):
        path = path[1:]
    if path.endswith("/"):
        path = path[:-1]
    return path


def cache_key(req_path: str) -> str:
    """Cache keys are request paths terminated by a slash; the root is ``/``."""
    return req_path + "/" if req_path else "/"


class PathResolver:
    """
    Maps request paths onto the served base directory.

    The canonical result must stay inside the base directory; anything that
    escapes it through ``..`` segments is reported as not found.
    """

    def __init__(self, base_dir: str):
        self.base_dir = os.path.abspath(base_dir)

    def resolve(self, req_path: str) -> str:
        """
        Resolve a relative request path to an absolute filesystem path.

        Raises:
            NotFound: If the path is malformed or outside the base directory.
        """
        if "\x00" in req_path:
            raise NotFound(detail="NUL byte in path")

        candidate = os.path.abspath(os.path.normpath(self.base_dir + os.sep + req_path))
        try:
            inside = os.path.commonpath([self.base_dir, candidate]) == self.base_dir
        except ValueError:
            # different drives on Windows
            inside = False
        if not inside:
            logger.debug("Rejecting %r: resolves outside %s", req_path, self.base_dir)
            raise NotFound(detail=req_path)
        return candidate

    def resolve_url(self, url_path: str) -> str:
        """Percent-decode ``url_path`` and resolve it."""
        try:
            req_path = request_path(url_path)
        except UnicodeDecodeError:
            raise NotFound(detail=url_path)
        return self.resolve(req_path)
