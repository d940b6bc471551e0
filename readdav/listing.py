"""
PROPFIND directory listings.

Reads one directory and renders it as a WebDAV multistatus document built
from fixed text templates. The byte layout of the templates is part of the
wire format.
"""

import logging
import mimetypes
import os
import stat
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote
from xml.sax.saxutils import escape

from wsgidav.util import get_rfc1123_time

from .cache import CacheCoordinator, CacheStore
from .errors import NotFound
from .resolver import PathResolver, cache_key

logger = logging.getLogger(__name__)

DIRECTORY_CONTENT_TYPE = "httpd/unix-directory"

MULTISTATUS_HEADER = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    '<D:multistatus xmlns:D="DAV:" xmlns:ns0="urn:uuid:c2f41010-65b3-11d1-a29f-00aa00c14882/">\n'
)
MULTISTATUS_FOOTER = "</D:multistatus>\n"

RESPONSE_TEMPLATE = (
    "<D:response>\n"
    "<D:href>{href}</D:href>\n"
    "<D:propstat>\n"
    "<D:prop>\n"
    '<D:creationdate ns0:dt="dateTime.tz">{created}</D:creationdate>'
    "<D:getcontentlanguage>en</D:getcontentlanguage>"
    "<D:getcontentlength>{length}</D:getcontentlength>"
    "<D:getcontenttype>{content_type}</D:getcontenttype>"
    '<D:getlastmodified ns0:dt="dateTime.rfc1123">{modified}</D:getlastmodified>'
    "{resource_type}</D:prop>\n"
    "<D:status>HTTP/1.1 200 OK</D:status>\n"
    "</D:propstat>\n"
    "</D:response>\n"
)
COLLECTION_RESOURCE_TYPE = "<D:resourcetype><D:collection/></D:resourcetype>"


@dataclass
class DirEntry:
    """One item of a directory snapshot."""

    name: str
    size: int
    mtime: float
    is_dir: bool


def read_directory(path: str) -> list[DirEntry]:
    """
    Snapshot the entries of ``path`` in the order the filesystem yields them.

    Raises:
        NotFound: If the directory is missing, unreadable or not a directory.
    """
    entries = []
    try:
        with os.scandir(path) as iterator:
            for item in iterator:
                try:
                    st = item.stat()
                except FileNotFoundError:
                    # dangling symlink
                    st = item.stat(follow_symlinks=False)
                entries.append(
                    DirEntry(
                        name=item.name,
                        size=st.st_size,
                        mtime=st.st_mtime,
                        is_dir=stat.S_ISDIR(st.st_mode),
                    )
                )
    except OSError as e:
        logger.debug("Cannot list %s: %s", path, e)
        raise NotFound(detail=path) from e
    return entries


def content_type_for(name: str) -> str:
    """MIME type derived from the file extension, empty if unknown."""
    ext = os.path.splitext(name)[1]
    if not ext:
        return ""
    mime_type, _ = mimetypes.guess_type("file" + ext, strict=False)
    return mime_type or ""


def escape_path(req_path: str) -> str:
    """Percent-escape every segment of a relative path on its own."""
    return "/".join(quote(segment, safe="") for segment in req_path.split("/"))


def format_creation_date(mtime: float) -> str:
    return datetime.fromtimestamp(mtime, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def render_entry(prefix: str, entry: DirEntry) -> str:
    """Render the ``<D:response>`` block for one entry below ``prefix``."""
    href = prefix + quote(entry.name, safe="")
    if entry.is_dir:
        href += "/"
        # collections report the length of their href
        length = len(href)
        content_type = DIRECTORY_CONTENT_TYPE
        resource_type = COLLECTION_RESOURCE_TYPE
    else:
        length = entry.size
        content_type = content_type_for(entry.name)
        resource_type = ""
    return RESPONSE_TEMPLATE.format(
        href=href,
        created=format_creation_date(entry.mtime),
        length=length,
        content_type=content_type,
        modified=get_rfc1123_time(entry.mtime),
        resource_type=resource_type,
    )


def render_multistatus(host: str, req_path: str, entries: list[DirEntry]) -> bytes:
    """
    Build the multistatus body listing ``entries`` of directory ``req_path``.

    Args:
        host: Value of the request's Host header, used in every href.
        req_path: Relative request path without leading or trailing slash.
        entries: Directory snapshot, rendered in the given order.
    """
    prefix = f"http://{escape(host)}/"
    if req_path:
        prefix += escape_path(req_path) + "/"

    parts = [MULTISTATUS_HEADER]
    parts.extend(render_entry(prefix, entry) for entry in entries)
    parts.append(MULTISTATUS_FOOTER)
    return "".join(parts).encode("utf-8")


class ListingAssembler:
    """
    Answers PROPFIND for one directory, from the cache when possible.

    A miss reads and renders the directory, then queues the rendered body
    with the coordinator without waiting for it to be stored.
    """

    def __init__(
        self,
        resolver: PathResolver,
        store: CacheStore,
        coordinator: CacheCoordinator | None = None,
        cache_enabled: bool = True,
    ):
        self.resolver = resolver
        self.store = store
        self.coordinator = coordinator
        self.cache_enabled = cache_enabled

    def propfind(self, req_path: str, host: str) -> bytes:
        key = cache_key(req_path)
        if self.cache_enabled:
            cached = self.store.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

        directory = self.resolver.resolve(req_path)
        entries = read_directory(directory)
        payload = render_multistatus(host, req_path, entries)
        logger.debug("Rendered %s: %d entries, %d bytes", key, len(entries), len(payload))

        if self.cache_enabled and self.coordinator is not None:
            self.coordinator.insert(key, payload)
        return payload
