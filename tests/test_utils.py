"""Tests for xhyve_runner.utils module."""

from __future__ import annotations

import importlib
import io
from unittest.mock import MagicMock, patch
from urllib.error import URLError

import pytest

from xhyve_runner import constants
from xhyve_runner.exceptions import ManagerError
from xhyve_runner.utils import (
    download_file,
    get_env,
    has_controlling_tty,
    log,
    parse_int_env,
    validate_memory,
)


class TestLog:
    def test_info_level(self, capsys):
        log("INFO", "test message")
        captured = capsys.readouterr()
        assert "[INFO]" in captured.out
        assert "test message" in captured.out

    def test_debug_suppressed_by_default(self, capsys):
        log("DEBUG", "should not appear")
        captured = capsys.readouterr()
        assert captured.out == ""

    @pytest.mark.parametrize("value,expected", [("Yes", True), ("on", True), ("1", True), ("off", False)])
    def test_log_verbose_truthy_spellings(self, monkeypatch, value, expected):
        monkeypatch.setenv("LOG_VERBOSE", value)
        try:
            assert importlib.reload(constants)._LOG_VERBOSE is expected
        finally:
            monkeypatch.delenv("LOG_VERBOSE")
            importlib.reload(constants)


class TestGetEnv:
    def test_returns_value(self, monkeypatch):
        monkeypatch.setenv("TEST_VAR", "hello")
        assert get_env("TEST_VAR") == "hello"

    def test_returns_default(self, monkeypatch):
        monkeypatch.delenv("TEST_VAR", raising=False)
        assert get_env("TEST_VAR", "fallback") == "fallback"


class TestParseIntEnv:
    def test_valid_value(self, monkeypatch):
        monkeypatch.setenv("MY_INT", "42")
        assert parse_int_env("MY_INT", "10") == 42

    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("MY_INT", raising=False)
        assert parse_int_env("MY_INT", "10") == 10

    def test_non_integer_raises(self, monkeypatch):
        monkeypatch.setenv("MY_INT", "abc")
        with pytest.raises(ManagerError, match="must be an integer"):
            parse_int_env("MY_INT", "10")


class TestValidateMemory:
    @pytest.mark.parametrize("raw,expected", [("4G", "4G"), ("512m", "512M"), ("1024", "1024")])
    def test_valid(self, raw, expected):
        assert validate_memory(raw) == expected

    @pytest.mark.parametrize("raw", ["", "4GB", "-1G", "four"])
    def test_invalid(self, raw):
        with pytest.raises(ManagerError, match="Invalid MEMORY"):
            validate_memory(raw)


class TestDownloadFile:
    def test_writes_destination(self, tmp_path):
        response = io.BytesIO(b"payload")
        with patch("xhyve_runner.utils.urlopen", return_value=response):
            download_file("https://example.com/disk.qcow2", tmp_path / "disk.qcow2")
        assert (tmp_path / "disk.qcow2").read_bytes() == b"payload"
        assert list(tmp_path.iterdir()) == [tmp_path / "disk.qcow2"]

    def test_url_error_raises(self, tmp_path):
        with patch("xhyve_runner.utils.urlopen", side_effect=URLError("offline")):
            with pytest.raises(ManagerError, match="Failed to download"):
                download_file("https://example.com/x", tmp_path / "x")
        assert not (tmp_path / "x").exists()


class TestHasControllingTty:
    def test_false_when_stdin_is_not_a_tty(self):
        stdin = MagicMock()
        stdin.isatty.return_value = False
        with patch("xhyve_runner.utils.sys.stdin", stdin):
            assert has_controlling_tty() is False

    def test_true_when_both_are_ttys(self):
        tty = MagicMock()
        tty.isatty.return_value = True
        with patch("xhyve_runner.utils.sys.stdin", tty), patch("xhyve_runner.utils.sys.stdout", tty):
            assert has_controlling_tty() is True
