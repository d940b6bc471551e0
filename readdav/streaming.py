"""
GET/HEAD file delivery.

Honors conditional requests (``If-None-Match``, ``If-Modified-Since``) and
single byte ranges (``Range`` with optional ``If-Range``).
"""

import logging
import mimetypes
import os
import stat
from http import HTTPStatus

from wsgidav.dav_error import DAVError
from wsgidav.util import get_rfc1123_time, obtain_content_ranges, parse_time_string

from .errors import HTTPStatusError, NotFound

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 8192


def make_etag(size: int, mtime: float) -> str:
    return f'"{int(mtime)}-{size}"'


def _not_modified(environ: dict, etag: str, mtime: float) -> bool:
    if_none_match = environ.get("HTTP_IF_NONE_MATCH")
    if if_none_match is not None:
        candidates = [tag.strip() for tag in if_none_match.split(",")]
        return "*" in candidates or etag in candidates

    if_modified_since = environ.get("HTTP_IF_MODIFIED_SINCE")
    if if_modified_since:
        since = parse_time_string(if_modified_since)
        if since is not None and int(mtime) <= since:
            return True
    return False


def _ranges_apply(environ: dict, etag: str, mtime: float, size: int) -> bool:
    if "HTTP_RANGE" not in environ or size == 0:
        return False
    if_range = environ.get("HTTP_IF_RANGE")
    if if_range:
        # http-date first, entity tag otherwise
        secs = parse_time_string(if_range)
        if secs:
            return int(mtime) == secs
        return if_range.strip() == etag
    return True


def _range_not_satisfiable(size: int) -> HTTPStatusError:
    return HTTPStatusError(
        HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE,
        "no satisfiable range",
        headers=[("Content-Range", f"bytes */{size}")],
    )


def _requested_ranges(range_header: str, size: int) -> list:
    try:
        ranges, _total = obtain_content_ranges(range_header, size)
    except DAVError as e:
        if e.value != HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE:
            raise HTTPStatusError(e.value, str(e)) from e
        raise _range_not_satisfiable(size) from e
    if not ranges:
        raise _range_not_satisfiable(size)
    return ranges


def _iter_file(fileobj, start: int, length: int, block_size: int):
    try:
        fileobj.seek(start)
        remaining = length
        while remaining > 0:
            chunk = fileobj.read(min(block_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
    finally:
        fileobj.close()


def serve_file(environ, start_response, path: str, is_head: bool = False,
               block_size: int = DEFAULT_BLOCK_SIZE):
    """
    Stream the file at ``path`` as a WSGI response.

    The file is opened before ``start_response`` is called, so a failure
    still becomes a plain status.

    Raises:
        NotFound: If ``path`` does not exist, is a directory or cannot be opened.
        HTTPStatusError: 416 if no requested range is satisfiable.
    """
    try:
        st = os.stat(path)
    except OSError as e:
        logger.debug("Cannot stat %s: %s", path, e)
        raise NotFound(detail=path) from e
    if not stat.S_ISREG(st.st_mode):
        raise NotFound(detail=path)

    size = st.st_size
    mtime = st.st_mtime
    etag = make_etag(size, mtime)
    mime_type, _ = mimetypes.guess_type(path)

    headers = [
        ("Content-Type", mime_type or "application/octet-stream"),
        ("Last-Modified", get_rfc1123_time(mtime)),
        ("ETag", etag),
        ("Accept-Ranges", "bytes"),
        ("Date", get_rfc1123_time()),
    ]

    if _not_modified(environ, etag, mtime):
        start_response("304 Not Modified", headers)
        return [b""]

    status = "200 OK"
    start, length = 0, size
    if _ranges_apply(environ, etag, mtime, size):
        ranges = _requested_ranges(environ["HTTP_RANGE"], size)
        # multipart/byteranges is not supported; serve the first range only
        start, end, length = ranges[0]
        status = "206 Partial Content"
        headers.append(("Content-Range", f"bytes {start}-{end}/{size}"))

    try:
        fileobj = open(path, "rb")
    except OSError as e:
        logger.debug("Cannot open %s: %s", path, e)
        raise NotFound(detail=path) from e

    headers.append(("Content-Length", str(length)))
    start_response(status, headers)

    if is_head:
        fileobj.close()
        return [b""]
    return _iter_file(fileobj, start, length, block_size)
