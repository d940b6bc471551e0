__version__ = "0.1.0"

# Public API exports
from .app import DavApplication, check_depth
from .cache import PRUNE, CacheCoordinator, CacheEntry, CacheStore
from .config import AppConfig, CacheConfig, LogConfig, ServerConfig, load_config
from .errors import BadRequest, Forbidden, HTTPStatusError, NotFound
from .listing import DirEntry, ListingAssembler, read_directory, render_multistatus
from .resolver import PathResolver, cache_key, request_path
from .server import DavServer
from .streaming import serve_file

__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "ServerConfig",
    "CacheConfig",
    "LogConfig",
    "load_config",
    # Errors
    "HTTPStatusError",
    "BadRequest",
    "Forbidden",
    "NotFound",
    # Cache
    "CacheEntry",
    "CacheStore",
    "CacheCoordinator",
    "PRUNE",
    # Listing
    "DirEntry",
    "ListingAssembler",
    "read_directory",
    "render_multistatus",
    # Paths
    "PathResolver",
    "request_path",
    "cache_key",
    # Serving
    "DavApplication",
    "DavServer",
    "check_depth",
    "serve_file",
]
