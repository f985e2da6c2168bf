"""Shared test fixtures for the upload / transcode / stream service."""

import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from modules.transcode import StreamingConfig, AssetStore

HLS_SEGMENT = b"\x47" + b"\x00" * 187
DASH_INIT = b"\x00\x00\x00\x18ftypiso6"
DASH_CHUNK = b"\x00\x00\x00\x10moof" + b"\x01" * 8


class FakeFFmpeg:
    """Stands in for subprocess.run; writes the outputs ffmpeg would write.

    Formats listed in ``fail`` leave a partial manifest behind and exit 1.
    """

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    def __call__(self, command, **kwargs):
        self.calls.append(command)
        output_path = command[-1]
        output_dir = os.path.dirname(output_path)

        if output_path.endswith("playlist.m3u8"):
            fmt = "hls"
        else:
            fmt = "dash"

        if fmt in self.fail:
            Path(output_path).write_text("partial")
            return subprocess.CompletedProcess(command, 1, stdout="", stderr="Conversion failed!\n")

        if fmt == "hls":
            Path(output_dir, "playlist0.ts").write_bytes(HLS_SEGMENT)
            Path(output_path).write_text(
                "#EXTM3U\n#EXT-X-VERSION:3\n#EXT-X-TARGETDURATION:10\n"
                "#EXT-X-MEDIA-SEQUENCE:0\n#EXTINF:10.0,\nplaylist0.ts\n#EXT-X-ENDLIST\n"
            )
        else:
            Path(output_dir, "init-0.m4s").write_bytes(DASH_INIT)
            Path(output_dir, "chunk-0-00001.m4s").write_bytes(DASH_CHUNK)
            Path(output_path).write_text('<?xml version="1.0"?>\n<MPD></MPD>\n')
        return subprocess.CompletedProcess(command, 0, stdout="", stderr="")


@pytest.fixture
def config(tmp_path: Path) -> StreamingConfig:
    """Configuration rooted in a temporary directory."""
    return StreamingConfig(
        upload_folder=str(tmp_path / "uploads"),
        output_folder=str(tmp_path / "streams"),
        log_dir=str(tmp_path / "logs"),
        task_timeout=30,
        max_concurrent_jobs=2,
    )


@pytest.fixture
def store(config: StreamingConfig) -> AssetStore:
    store = AssetStore(config)
    store.ensure_roots()
    return store


@pytest.fixture
def fake_ffmpeg():
    """Patch subprocess.run in the ffmpeg runner with a successful fake."""
    fake = FakeFFmpeg()
    with patch("modules.transcode.ffmpeg.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def app(config: StreamingConfig):
    from webserver import create_app

    app = create_app(config)
    app.config["TESTING"] = True
    yield app
    app.extensions["streaming"]["coordinator"].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


def tree(folder: str) -> list:
    """List every path below ``folder``, relative to it."""
    result = []
    for root, dirs, files in os.walk(folder):
        for name in dirs + files:
            result.append(os.path.relpath(os.path.join(root, name), folder))
    return sorted(result)


@pytest.fixture(name="tree")
def tree_fixture():
    return tree


@pytest.fixture
def ffmpeg_factory():
    """Patch subprocess.run with a fake whose failing formats the test chooses."""
    patchers = []

    def start(fail=()):
        fake = FakeFFmpeg(fail=fail)
        patcher = patch("modules.transcode.ffmpeg.subprocess.run", side_effect=fake)
        patcher.start()
        patchers.append(patcher)
        return fake

    yield start

    for patcher in patchers:
        patcher.stop()
