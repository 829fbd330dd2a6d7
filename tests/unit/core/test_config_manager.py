"""Unit tests for ConfigManager."""

from pathlib import Path

import pytest

from screencast_uploader.core.config_manager import ConfigManager


@pytest.fixture
def manager():
    return ConfigManager()


class TestParseConfigLines:

    def test_key_value_pairs(self, manager):
        parsed = manager._parse_config_lines(["storage.namespace = acme\n", "capture.app_id=recorder\n"])
        assert parsed == {"storage.namespace": "acme", "capture.app_id": "recorder"}

    def test_skips_blank_comment_and_malformed_lines(self, manager):
        parsed = manager._parse_config_lines(["", "   ", "# comment", "no equals sign", "a = 1"])
        assert parsed == {"a": "1"}

    def test_trailing_comment_stripped(self, manager):
        parsed = manager._parse_config_lines(["transcode.preset = veryfast  # speed over size"])
        assert parsed["transcode.preset"] == "veryfast"

    def test_quoted_values_keep_hash(self, manager):
        parsed = manager._parse_config_lines(['storage.content_type = "video/mp4#v2"', "x = 'a b'"])
        assert parsed["storage.content_type"] == "video/mp4#v2"
        assert parsed["x"] == "a b"

    def test_value_may_contain_equals(self, manager):
        parsed = manager._parse_config_lines(["token = a=b=c"])
        assert parsed["token"] == "a=b=c"

    def test_later_keys_win(self, manager):
        parsed = manager._parse_config_lines(["a = 1", "a = 2"])
        assert parsed["a"] == "2"


class TestReadConfig:

    def test_missing_file_returns_empty(self, manager, tmp_path):
        assert manager.read_config(tmp_path / "absent.txt") == {}

    def test_reads_file(self, manager, tmp_path):
        path = tmp_path / "config.txt"
        path.write_text("logging.level = debug\nstorage.part_size_mb = 16\n", encoding="utf-8")
        assert manager.read_config(path) == {"logging.level": "debug", "storage.part_size_mb": "16"}

    def test_unreadable_file_returns_empty(self, manager, tmp_path):
        # A directory passes exists() but cannot be opened as a file.
        directory = tmp_path / "config.txt"
        directory.mkdir()
        assert manager.read_config(Path(directory)) == {}
