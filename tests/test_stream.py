"""Unit tests for StreamResolver."""

import os
from pathlib import Path

import pytest

from modules.transcode import StreamResolver, NotFoundError, ForbiddenError
from modules.transcode.stream import mimetype_for


@pytest.fixture
def asset_tree(store):
    """An asset with both formats converted, plus a file outside the asset."""
    asset = store.create_asset()
    hls = Path(asset.output_root, "hls")
    dash = Path(asset.output_root, "dash")
    hls.mkdir()
    dash.mkdir()
    (hls / "playlist.m3u8").write_text("#EXTM3U\n")
    (hls / "playlist0.ts").write_bytes(b"\x47" * 188)
    (dash / "manifest.mpd").write_text("<MPD/>")
    (dash / "init-0.m4s").write_bytes(b"init")
    Path(store.config.output_folder, "secret.txt").write_text("secret")
    return asset


@pytest.fixture
def resolver(config) -> StreamResolver:
    return StreamResolver(config)


class TestResolve:
    """Tests for path resolution."""

    def test_resolves_manifest_and_segments(self, resolver: StreamResolver, asset_tree) -> None:
        playlist = resolver.resolve(asset_tree.asset_id, "hls", "playlist.m3u8")
        init = resolver.resolve(asset_tree.asset_id, "dash", "init-0.m4s")

        assert playlist == os.path.realpath(os.path.join(asset_tree.output_root, "hls", "playlist.m3u8"))
        assert os.path.isabs(init)
        assert init.endswith("init-0.m4s")

    def test_unknown_format_rejected(self, resolver: StreamResolver, asset_tree) -> None:
        with pytest.raises(NotFoundError):
            resolver.resolve(asset_tree.asset_id, "mp4", "playlist.m3u8")

    def test_missing_file(self, resolver: StreamResolver, asset_tree) -> None:
        with pytest.raises(NotFoundError):
            resolver.resolve(asset_tree.asset_id, "hls", "playlist99.ts")

    def test_directory_is_not_a_file(self, resolver: StreamResolver, asset_tree) -> None:
        Path(asset_tree.output_root, "hls", "nested").mkdir()
        with pytest.raises(NotFoundError):
            resolver.resolve(asset_tree.asset_id, "hls", "nested")

    def test_unknown_asset(self, resolver: StreamResolver, asset_tree) -> None:
        with pytest.raises(NotFoundError):
            resolver.resolve("00000000-0000-0000-0000-000000000000", "hls", "playlist.m3u8")

    @pytest.mark.parametrize("relative_path", [
        "../../etc/passwd",
        "../../secret.txt",
        "../dash/manifest.mpd",
        "/etc/passwd",
    ])
    def test_traversal_rejected(self, resolver: StreamResolver, asset_tree, relative_path: str) -> None:
        with pytest.raises(ForbiddenError):
            resolver.resolve(asset_tree.asset_id, "hls", relative_path)

    def test_asset_id_traversal_rejected(self, resolver: StreamResolver, asset_tree) -> None:
        with pytest.raises(ForbiddenError):
            resolver.resolve("..", "hls", "playlist.m3u8")

    def test_symlink_out_of_tree_rejected(self, resolver: StreamResolver, asset_tree, tmp_path: Path) -> None:
        outside = tmp_path / "outside.ts"
        outside.write_bytes(b"x")
        Path(asset_tree.output_root, "hls", "link.ts").symlink_to(outside)

        with pytest.raises(ForbiddenError):
            resolver.resolve(asset_tree.asset_id, "hls", "link.ts")


class TestMimetype:
    """Tests for streaming MIME types."""

    @pytest.mark.parametrize("name,expected", [
        ("playlist.m3u8", "application/vnd.apple.mpegurl"),
        ("playlist0.ts", "video/mp2t"),
        ("manifest.mpd", "application/dash+xml"),
        ("chunk-0-00001.m4s", "video/iso.segment"),
        ("unknown.bin123", "application/octet-stream"),
    ])
    def test_mimetypes(self, name: str, expected: str) -> None:
        assert mimetype_for(name) == expected
