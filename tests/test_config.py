"""Unit tests for StreamingConfig loading."""

import json
from pathlib import Path

from modules.transcode.config import (
    StreamingConfig,
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_MAX_CONTENT_LENGTH,
    load_config,
    get_streaming_config,
)


class TestDefaults:
    """Tests for default configuration values."""

    def test_defaults(self) -> None:
        config = StreamingConfig()
        assert config.upload_folder == "uploads"
        assert config.output_folder == "streams"
        assert config.port == 5000
        assert config.max_content_length == 100 * 1024 * 1024
        assert config.allowed_extensions == ("mp4", "avi", "mov", "mkv", "wmv", "flv", "webm")
        assert config.hls_time == 10

    def test_extension_check_is_case_insensitive(self) -> None:
        config = StreamingConfig()
        assert config.is_allowed_extension("MP4")
        assert config.is_allowed_extension("webm")
        assert not config.is_allowed_extension("txt")

    def test_asset_paths(self) -> None:
        config = StreamingConfig(upload_folder="u", output_folder="s")
        assert Path(config.get_upload_dir("abc")) == Path("u/abc")
        assert Path(config.get_output_root("abc")) == Path("s/abc")


class TestFromAppConfig:
    """Tests for StreamingConfig.from_app_config."""

    def test_empty_config_uses_defaults(self) -> None:
        config = StreamingConfig.from_app_config({})
        assert config.allowed_extensions == DEFAULT_ALLOWED_EXTENSIONS
        assert config.max_content_length == DEFAULT_MAX_CONTENT_LENGTH

    def test_reads_streaming_section(self) -> None:
        config = StreamingConfig.from_app_config({
            "streaming": {
                "upload_folder": "/data/in",
                "allowed_extensions": [".MP4", "mkv"],
                "max_content_length": 1024,
                "hls_time": 6,
                "gop_size": 48,
                "task_timeout": 0,
                "max_concurrent_jobs": 8,
            }
        })
        assert config.upload_folder == "/data/in"
        assert config.allowed_extensions == ("mp4", "mkv")
        assert config.max_content_length == 1024
        assert config.hls_time == 6
        assert config.gop_size == 48
        assert config.task_timeout is None
        assert config.max_concurrent_jobs == 8


class TestEnvironment:
    """Tests for environment overrides."""

    def test_env_overrides(self) -> None:
        config = StreamingConfig().apply_env({
            "PORT": "8080",
            "OUTPUT_FOLDER": "/srv/streams",
            "FFMPEG_PATH": "/opt/ffmpeg/bin/ffmpeg",
            "MAX_CONTENT_LENGTH": "2048",
        })
        assert config.port == 8080
        assert config.output_folder == "/srv/streams"
        assert config.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
        assert config.max_content_length == 2048

    def test_empty_env_keeps_values(self) -> None:
        config = StreamingConfig(port=6000).apply_env({})
        assert config.port == 6000


class TestLoadConfig:
    """Tests for JSON config file loading."""

    def test_missing_file_returns_empty(self, tmp_path: Path) -> None:
        assert load_config(str(tmp_path / "missing.json")) == {}

    def test_file_then_env_precedence(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"streaming": {"port": 7000, "hls_time": 4}}))

        config = get_streaming_config(str(config_file), environ={"PORT": "9000"})

        assert config.hls_time == 4
        assert config.port == 9000
