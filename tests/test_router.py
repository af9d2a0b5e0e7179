"""
Tests for the request routing decisions
"""

import asyncio
import shutil
import tempfile
from pathlib import Path

from homefs import router as router_module
from homefs.models import BrowseConfig, RouteKind
from homefs.router import RequestRouter


def route(router, segments, requested_path="/"):
    """Run one routing decision, closing any opened file"""
    return route_and_read(router, segments, requested_path)[0]


def route_and_read(router, segments, requested_path="/"):
    """Run one routing decision and drain a download, if any"""

    async def run():
        outcome = await router.route(segments, requested_path)
        content = None
        if outcome.file is not None:
            content = await outcome.file.handle.read()
            await outcome.file.handle.close()
        return outcome, content

    return asyncio.run(run())


class TestRequestRouter:
    """Test the sanitize, resolve, dispatch sequence"""

    def setup_method(self):
        """Setup test environment"""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root_path = self.temp_dir / "root"
        self.root_path.mkdir()
        (self.root_path / "docs").mkdir()
        (self.root_path / "docs" / "readme.md").write_text("# hello")
        self.router = RequestRouter(BrowseConfig(root=self.root_path))

    def teardown_method(self):
        """Cleanup test environment"""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_root_is_listing(self):
        outcome = asyncio.run(self.router.route_root("/"))
        assert outcome.kind is RouteKind.LISTING
        assert outcome.listing.path == "/"
        assert [e.name for e in outcome.listing.entries] == ["docs"]

    def test_no_segments_routes_to_root(self):
        outcome = route(self.router, [b"", b""])
        assert outcome.kind is RouteKind.LISTING
        assert outcome.listing.path == "/"

    def test_root_that_is_a_file_is_missing(self):
        file_root = self.temp_dir / "plain.txt"
        file_root.write_text("not a directory")
        router = RequestRouter(BrowseConfig(root=file_root))
        assert asyncio.run(router.route_root("/")).kind is RouteKind.NOT_FOUND

    def test_path_collapsing_to_root_follows_root_rule(self):
        """Segments that pop back to the root are never a download"""

        file_root = self.temp_dir / "plain.txt"
        file_root.write_text("root is a file")
        router = RequestRouter(BrowseConfig(root=file_root))

        for segments in (["x", ".."], ["", "x", "%2e%2e", ""], ["..", ".."]):
            outcome = route(router, segments, "/x/..")
            assert outcome.kind is RouteKind.NOT_FOUND, segments
            assert outcome.file is None

        outcome = route(self.router, ["docs", ".."], "/docs/..")
        assert outcome.kind is RouteKind.LISTING
        assert outcome.listing.path == "/"

    def test_directory_listing(self):
        outcome = route(self.router, ["", "docs"], "/docs")
        assert outcome.kind is RouteKind.LISTING
        assert outcome.listing.path == "/docs"
        assert outcome.listing.entries[0].path == "docs/readme.md"

    def test_file_download(self):
        outcome, content = route_and_read(self.router, ["docs", "readme.md"], "/docs/readme.md")
        assert outcome.kind is RouteKind.DOWNLOAD
        assert outcome.file.name == "readme.md"
        assert outcome.file.size == len("# hello")
        assert outcome.file.mime_type == "text/markdown"
        assert content == b"# hello"

    def test_missing_keeps_requested_path(self):
        outcome = route(self.router, ["docs", "nope.md"], "/docs/nope.md")
        assert outcome.kind is RouteKind.NOT_FOUND
        assert outcome.requested_path == "/docs/nope.md"

    def test_sanitization_failure_is_rejected(self):
        outcome = route(self.router, ["docs", "a..b"], "/docs/a..b")
        assert outcome.kind is RouteKind.REJECTED
        assert outcome.requested_path == "/docs/a..b"
        assert outcome.listing is None
        assert outcome.file is None

    def test_traversal_pops_within_root(self):
        outcome = route(self.router, ["docs", "..", "..", "..", "docs"], "/docs/../../../docs")
        assert outcome.kind is RouteKind.LISTING
        assert outcome.listing.path == "/docs"

    def test_read_error_is_bad_request(self, monkeypatch):
        def denied(*args, **kwargs):
            raise router_module.ReadError("Permission denied")

        monkeypatch.setattr(router_module, "list_directory", denied)
        outcome = route(self.router, ["docs"], "/docs")
        assert outcome.kind is RouteKind.BAD_REQUEST
        assert outcome.reason == "Permission denied"
