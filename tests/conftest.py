"""
Shared pytest fixtures for readdav tests.
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from wsgiref.util import setup_testing_defaults

import pytest

from readdav.app import DavApplication
from readdav.cache import CacheCoordinator, CacheStore
from readdav.config import AppConfig, CacheConfig, LogConfig, ServerConfig


@pytest.fixture
def served_root(tmp_path: Path) -> Path:
    """
    Create a directory tree to serve.

    Structure:
        /
        +-- hello.txt                   (contains "Hello World")
        +-- a b.txt                     (contains "spaced")
        +-- docs/
        |   +-- readme.md               (contains "# Readme")
        +-- folder with spaces/
        |   +-- file.txt                (contains "Nested")
        +-- empty_folder/
    """
    root = tmp_path / "served"
    root.mkdir()
    (root / "hello.txt").write_text("Hello World", encoding="utf-8")
    (root / "a b.txt").write_text("spaced", encoding="utf-8")

    docs = root / "docs"
    docs.mkdir()
    (docs / "readme.md").write_text("# Readme", encoding="utf-8")

    spaced = root / "folder with spaces"
    spaced.mkdir()
    (spaced / "file.txt").write_text("Nested", encoding="utf-8")

    (root / "empty_folder").mkdir()
    return root


@pytest.fixture
def cache_config() -> CacheConfig:
    """Creates a standard CacheConfig for testing."""
    return CacheConfig(enabled=True, ttl_seconds=300, prune_interval_seconds=0.05)


@pytest.fixture
def app_config(served_root: Path, cache_config: CacheConfig) -> AppConfig:
    """Creates a complete AppConfig serving ``served_root``."""
    return AppConfig(
        server=ServerConfig(base_dir=str(served_root) + os.sep, address="127.0.0.1", port=0),
        cache=cache_config,
        logging=LogConfig(level="DEBUG", file="", console=False),
        debug=False,
    )


@pytest.fixture
def coordinator(app_config: AppConfig) -> Generator[CacheCoordinator, None, None]:
    """A running cache coordinator, stopped after the test."""
    coord = CacheCoordinator(
        CacheStore(app_config.cache.ttl_seconds),
        prune_interval=app_config.cache.prune_interval_seconds,
    )
    coord.start()
    yield coord
    coord.stop()


@pytest.fixture
def dav_app(app_config: AppConfig, coordinator: CacheCoordinator) -> DavApplication:
    return DavApplication(app_config, coordinator)


def make_environ(method: str, path: str, headers: dict[str, str] | None = None) -> dict:
    """Build a WSGI environ; ``path`` is the decoded URL path."""
    environ: dict = {}
    setup_testing_defaults(environ)
    environ["REQUEST_METHOD"] = method
    # PEP 3333 carries the raw path bytes as latin-1
    environ["PATH_INFO"] = path.encode("utf-8").decode("latin-1")
    environ["HTTP_HOST"] = "testhost:8080"
    for name, value in (headers or {}).items():
        environ["HTTP_" + name.upper().replace("-", "_")] = value
    return environ


@pytest.fixture
def call() -> Callable[..., tuple[int, dict[str, str], bytes]]:
    """
    Returns a helper that runs one request through a WSGI app.

    The helper returns ``(status_code, headers, body)``.
    """

    def _call(app, method: str, path: str, headers: dict[str, str] | None = None):
        captured = {}

        def start_response(status, response_headers, exc_info=None):
            captured["status"] = status
            captured["headers"] = dict(response_headers)

        result = app(make_environ(method, path, headers), start_response)
        try:
            body = b"".join(result)
        finally:
            if hasattr(result, "close"):
                result.close()
        return int(captured["status"].split()[0]), captured["headers"], body

    return _call
