"""Tests for the HTTP surface: listings, downloads and error pages."""

from __future__ import annotations

import asyncio
import time

import pytest

httpx = pytest.importorskip("httpx", reason="httpx is required for TestClient")

from fastapi.testclient import TestClient

from homefs import router as router_module
from homefs.config import parse_config
from homefs.fs import ReadError
from homefs.main import create_app


@pytest.fixture()
def home(tmp_path):
    """Create a small browsable tree plus a file outside of it."""

    root = tmp_path / "home"
    root.mkdir()
    (root / "a.txt").write_bytes(b"0123456789")
    (root / "sub").mkdir()
    (root / "sub" / "inner.bin").write_bytes(bytes(range(256)) * 40)
    (root / "with space.txt").write_text("spaced", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("top secret", encoding="utf-8")
    return root


@pytest.fixture()
def client(home):
    config = parse_config({"browse": {"root": str(home)}})
    app = create_app(config=config)
    with TestClient(app) as client:
        yield client


def test_root_listing(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")

    body = response.text
    assert "a.txt" in body
    assert "sub/" in body
    assert 'href="/with%20space.txt"' in body
    assert "10 B" in body


def test_subdirectory_listing(client):
    response = client.get("/sub")
    assert response.status_code == 200
    assert 'href="/sub/inner.bin"' in response.text
    assert "10.0 KB" in response.text

    # Trailing slash lists the same directory
    response = client.get("/sub/")
    assert response.status_code == 200
    assert "inner.bin" in response.text


def test_file_download_is_byte_exact(client, home):
    response = client.get("/sub/inner.bin")
    assert response.status_code == 200
    assert response.content == (home / "sub" / "inner.bin").read_bytes()
    assert response.headers["content-length"] == str(10240)

    response = client.get("/a.txt")
    assert response.content == b"0123456789"
    assert response.headers["content-type"].startswith("text/plain")
    assert "a.txt" in response.headers["content-disposition"]


def test_percent_encoded_names(client):
    response = client.get("/with%20space.txt")
    assert response.status_code == 200
    assert response.text == "spaced"


def test_missing_path_renders_not_found(client):
    response = client.get("/does/not/exist.txt")
    assert response.status_code == 404
    assert "/does/not/exist.txt" in response.text


def test_rejected_segments_are_not_found(client):
    for path in ("/a..b", "/*x", "/x:", "/sub/a%2Fb"):
        response = client.get(path)
        assert response.status_code == 404, path


def test_traversal_stays_inside_root(client):
    for path in ("/sub/%2e%2e/%2e%2e/secret.txt", "/%2e%2e/secret.txt", "/sub/a%2F..%2F..%2Fsecret.txt"):
        response = client.get(path)
        assert response.status_code == 404, path
        assert "top secret" not in response.text


def test_parent_segment_pops_within_root(client):
    response = client.get("/sub/%2e%2e/a.txt")
    assert response.status_code == 200
    assert response.content == b"0123456789"


def test_missing_target_never_opens_file(client, monkeypatch):
    calls = []
    real_open = router_module.open_file_for_download

    async def spy(path):
        calls.append(path)
        return await real_open(path)

    monkeypatch.setattr(router_module, "open_file_for_download", spy)

    assert client.get("/nothing-here.txt").status_code == 404
    assert calls == []

    assert client.get("/a.txt").status_code == 200
    assert len(calls) == 1


def test_failed_open_is_not_found(client, monkeypatch):
    async def vanished(path):
        return None

    monkeypatch.setattr(router_module, "open_file_for_download", vanished)
    response = client.get("/a.txt")
    assert response.status_code == 404
    assert "/a.txt" in response.text


def test_unreadable_directory_is_bad_request(client, monkeypatch):
    def denied(*args, **kwargs):
        raise ReadError("Permission denied")

    monkeypatch.setattr(router_module, "list_directory", denied)
    response = client.get("/sub")
    assert response.status_code == 400
    assert "Permission denied" not in response.text


def test_css_assets(client):
    response = client.get("/css/style.css")
    assert response.status_code == 200
    assert "table.listing" in response.text

    response = client.get("/css/missing.css")
    assert response.status_code == 404
    assert "/css/missing.css" in response.text


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_missing_root_is_not_found(tmp_path):
    config = parse_config({"browse": {"root": str(tmp_path / "absent")}})
    with TestClient(create_app(config=config)) as client:
        response = client.get("/")
        assert response.status_code == 404
        assert client.get("/anything").status_code == 404


def test_unhandled_error_returns_500(home, monkeypatch):
    config = parse_config({"browse": {"root": str(home)}})
    app = create_app(config=config)

    async def explode(requested_path="/"):
        raise RuntimeError("boom")

    monkeypatch.setattr(app.state.router, "route_root", explode)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/")
        assert response.status_code == 500
        assert "boom" not in response.text


def test_root_file_is_never_downloaded(tmp_path):
    root_file = tmp_path / "plain.txt"
    root_file.write_text("root is a file", encoding="utf-8")
    config = parse_config({"browse": {"root": str(root_file)}})

    with TestClient(create_app(config=config)) as client:
        for path in ("/", "/x/%2e%2e", "/x/%2e%2e/"):
            response = client.get(path)
            assert response.status_code == 404, path
            assert "root is a file" not in response.text


def test_slow_listing_does_not_block_other_requests(home, monkeypatch):
    """Directory listing runs off the event loop"""

    real_list = router_module.list_directory

    def slow_list(*args, **kwargs):
        time.sleep(1.0)
        return real_list(*args, **kwargs)

    monkeypatch.setattr(router_module, "list_directory", slow_list)
    config = parse_config({"browse": {"root": str(home)}})
    app = create_app(config=config)

    async def timed_get(client, path, started):
        response = await client.get(path)
        return response, time.monotonic() - started

    async def run():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            started = time.monotonic()
            listing = asyncio.create_task(timed_get(client, "/sub", started))
            await asyncio.sleep(0.05)
            health = await timed_get(client, "/healthz", started)
            return await listing, health

    (listing_response, _), (health_response, health_elapsed) = asyncio.run(run())

    assert listing_response.status_code == 200
    assert "inner.bin" in listing_response.text
    assert health_response.status_code == 200
    assert health_elapsed < 0.5
