"""
Integration tests running the real cheroot server in-process.

These tests verify the full stack (DavServer + DavApplication + cache
coordinator) over real HTTP connections, including concurrent PROPFIND
requests racing to populate the cache.
"""

import http.client
import time
import xml.etree.ElementTree as ET
from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

import pytest

from readdav.app import DavApplication
from readdav.config import AppConfig
from readdav.server import DavServer

DAV = "{DAV:}"


@pytest.fixture
def dav_server(app_config: AppConfig) -> Generator[DavServer, None, None]:
    """Start a server on a free port; stopped after the test."""
    app = DavApplication(app_config)
    server = DavServer(app, address="127.0.0.1", port=0, threads=4)
    server.start_background()
    yield server
    server.stop()


def request(server: DavServer, method: str, path: str, headers=None):
    conn = http.client.HTTPConnection("127.0.0.1", server.bound_port, timeout=10)
    try:
        conn.request(method, quote(path), headers=headers or {})
        response = conn.getresponse()
        return response.status, dict(response.getheaders()), response.read()
    finally:
        conn.close()


def hrefs(body: bytes) -> list[str]:
    return [el.text for el in ET.fromstring(body).iter(f"{DAV}href")]


class TestServerLifecycle:
    def test_bound_port_and_url(self, dav_server: DavServer):
        assert dav_server.bound_port > 0
        assert dav_server.url == f"http://127.0.0.1:{dav_server.bound_port}"

    def test_coordinator_runs_with_server(self, app_config: AppConfig):
        app = DavApplication(app_config)
        with DavServer(app, address="127.0.0.1", port=0) as server:
            assert app.coordinator.running is True
            assert server.bound_port > 0
        assert app.coordinator.running is False

    def test_bind_conflict_raises(self, dav_server: DavServer, app_config: AppConfig):
        other = DavServer(DavApplication(app_config), address="127.0.0.1", port=dav_server.bound_port)
        with pytest.raises(OSError):
            other.start_background()
        assert other.app.coordinator.running is False


class TestHTTP:
    def test_get_file(self, dav_server: DavServer):
        status, headers, body = request(dav_server, "GET", "/hello.txt")
        assert status == 200
        assert body == b"Hello World"

    def test_get_file_with_spaces(self, dav_server: DavServer):
        status, _, body = request(dav_server, "GET", "/folder with spaces/file.txt")
        assert status == 200
        assert body == b"Nested"

    def test_get_range(self, dav_server: DavServer):
        status, _, body = request(dav_server, "GET", "/hello.txt", {"Range": "bytes=6-"})
        assert status == 206
        assert body == b"World"

    def test_get_unsatisfiable_range(self, dav_server: DavServer):
        status, headers, body = request(dav_server, "GET", "/hello.txt", {"Range": "bytes=100-200"})
        assert status == 416
        assert headers["Content-Range"] == "bytes */11"
        assert body == b""

    def test_head(self, dav_server: DavServer):
        status, headers, body = request(dav_server, "HEAD", "/hello.txt")
        assert status == 200
        assert headers["Content-Length"] == "11"
        assert body == b""

    def test_get_missing(self, dav_server: DavServer):
        status, _, _ = request(dav_server, "GET", "/missing.txt")
        assert status == 404

    def test_other_method(self, dav_server: DavServer):
        status, _, body = request(dav_server, "DELETE", "/hello.txt")
        assert status == 400
        assert body == b""

    def test_propfind_listing(self, dav_server: DavServer):
        status, headers, body = request(dav_server, "PROPFIND", "/", {"Depth": "1"})

        assert status == 207
        assert int(headers["Content-Length"]) == len(body)
        names = sorted(unquote(urlsplit(href).path) for href in hrefs(body))
        assert names == sorted(
            ["/hello.txt", "/a b.txt", "/docs/", "/folder with spaces/", "/empty_folder/"]
        )

    def test_propfind_hrefs_use_host_header(self, dav_server: DavServer):
        _, _, body = request(dav_server, "PROPFIND", "/docs/", {"Depth": "0"})
        host = f"127.0.0.1:{dav_server.bound_port}"
        assert hrefs(body) == [f"http://{host}/docs/readme.md"]

    def test_propfind_depth_errors(self, dav_server: DavServer):
        assert request(dav_server, "PROPFIND", "/")[0] == 403
        assert request(dav_server, "PROPFIND", "/", {"Depth": "infinity"})[0] == 403
        assert request(dav_server, "PROPFIND", "/", {"Depth": "2"})[0] == 400

    def test_propfind_missing(self, dav_server: DavServer):
        assert request(dav_server, "PROPFIND", "/nope/", {"Depth": "1"})[0] == 404


class TestCacheOverHTTP:
    def test_repeated_listing_is_byte_identical(self, dav_server: DavServer, served_root: Path):
        _, _, first = request(dav_server, "PROPFIND", "/docs/", {"Depth": "1"})
        dav_server.app.coordinator.drain()
        (served_root / "docs" / "later.txt").write_text("x", encoding="utf-8")

        _, _, second = request(dav_server, "PROPFIND", "/docs", {"Depth": "1"})

        assert second == first
        assert len(hrefs(second)) == 1

    def test_concurrent_first_requests_store_one_entry(self, dav_server: DavServer):
        def fetch():
            return request(dav_server, "PROPFIND", "/docs/", {"Depth": "1"})

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda _: fetch(), range(16)))
        dav_server.app.coordinator.drain()

        assert all(status == 207 for status, _, _ in results)
        assert len({body for _, _, body in results}) == 1
        assert dav_server.app.store.keys() == ["docs/"]

    def test_entry_expires_and_is_rebuilt(self, app_config: AppConfig, served_root: Path):
        config = replace(app_config, cache=replace(app_config.cache, ttl_seconds=0))
        app = DavApplication(config)
        with DavServer(app, address="127.0.0.1", port=0) as server:
            _, _, first = request(server, "PROPFIND", "/docs/", {"Depth": "1"})
            app.coordinator.drain()

            deadline = time.time() + 5
            while "docs/" in app.store and time.time() < deadline:
                time.sleep(0.05)
            assert "docs/" not in app.store

            (served_root / "docs" / "later.txt").write_text("x", encoding="utf-8")
            _, _, second = request(server, "PROPFIND", "/docs/", {"Depth": "1"})

        assert len(hrefs(first)) == 1
        assert len(hrefs(second)) == 2
