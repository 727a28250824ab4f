"""
Tests for portals_webapi.webapi.files module.
"""

import base64
import logging

import pytest
from unittest.mock import Mock

from portals_webapi.webapi.files import DownloadedFile, resolve_filename


def encoded_word_header(name: str) -> str:
    b64 = base64.b64encode(name.encode("utf-8")).decode("ascii")
    return 'attachment; filename="=?utf-8?B?' + b64 + '?="'


class TestResolveFilename:
    """Tests for resolve_filename."""

    def test_missing_header(self):
        assert resolve_filename(None, "file.bin") == "file.bin"
        assert resolve_filename("", "file.bin") == "file.bin"

    def test_plain_filename_kept_verbatim(self):
        assert resolve_filename('attachment; filename="report.pdf"', "file.bin") == '"report.pdf"'

    def test_unquoted_filename(self):
        assert resolve_filename("attachment; filename=report.pdf", "file.bin") == "report.pdf"

    def test_no_filename_marker(self):
        assert resolve_filename("garbage-no-filename-marker", "default.bin") == "default.bin"

    def test_encoded_word_utf8(self):
        assert resolve_filename(encoded_word_header("héllo.txt"), "file.bin") == "héllo.txt"

    def test_encoded_word_literal_bytes(self):
        # "héllo.txt" in UTF-8 is 68 c3 a9 6c 6c 6f 2e 74 78 74
        header = 'attachment; filename="=?utf-8?B?aMOpbGxvLnR4dA==?="'
        assert resolve_filename(header, "file.bin") == "héllo.txt"

    def test_encoded_word_multibyte(self):
        assert resolve_filename(encoded_word_header("报告 2024.pdf"), "file.bin") == "报告 2024.pdf"

    def test_encoded_word_missing_padding(self):
        header = 'attachment; filename="=?utf-8?B?aMOpbGxvLnR4dA?="'
        assert resolve_filename(header, "file.bin") == "héllo.txt"

    def test_invalid_base64_falls_back(self):
        header = 'attachment; filename="=?utf-8?B?!!not*base64!!?="'
        assert resolve_filename(header, "file.bin") == "file.bin"

    def test_invalid_utf8_falls_back(self):
        b64 = base64.b64encode(b"\xff\xfe\xfd").decode("ascii")
        header = 'attachment; filename="=?utf-8?B?' + b64 + '?="'
        assert resolve_filename(header, "file.bin") == "file.bin"

    def test_truncated_encoded_word_falls_back(self):
        assert resolve_filename('filename="=?utf-8?B?', "file.bin") == "file.bin"

    def test_non_string_header_falls_back(self):
        assert resolve_filename(12345, "file.bin") == "file.bin"

    def test_anomaly_hook_and_log(self, caplog):
        hook = Mock()
        header = 'attachment; filename="=?utf-8?B?####?="'

        with caplog.at_level(logging.DEBUG, logger="portals_webapi.files"):
            assert resolve_filename(header, "x.bin", on_anomaly=hook) == "x.bin"

        hook.assert_called_once()
        assert hook.call_args[0][0] == header
        assert isinstance(hook.call_args[0][1], Exception)
        assert "Falling back" in caplog.text

    def test_failing_hook_does_not_escape(self):
        hook = Mock(side_effect=RuntimeError("log sink down"))
        header = 'attachment; filename="=?utf-8?B?####?="'

        assert resolve_filename(header, "x.bin", on_anomaly=hook) == "x.bin"
        hook.assert_called_once()

    def test_empty_encoded_word_falls_back(self):
        assert resolve_filename('attachment; filename="=?utf-8?B??="', "file.bin") == "file.bin"

    def test_marker_at_start_of_header(self):
        assert resolve_filename("filename=report.pdf", "file.bin") == "report.pdf"

    def test_hook_not_called_on_success(self):
        hook = Mock()
        resolve_filename(encoded_word_header("a.txt"), "file.bin", on_anomaly=hook)
        hook.assert_not_called()

    @pytest.mark.parametrize("header", [
        None,
        'attachment; filename="report.pdf"',
        encoded_word_header("héllo.txt"),
        "garbage",
    ])
    def test_idempotent(self, header):
        assert resolve_filename(header, "file.bin") == resolve_filename(header, "file.bin")


class TestDownloadedFile:
    """Tests for DownloadedFile."""

    def test_size(self):
        assert DownloadedFile("a.bin", b"1234").size == 4

    def test_save_strips_quotes(self, tmp_path):
        f = DownloadedFile('"report.pdf"', b"%PDF-1.7")
        target = f.save(tmp_path)
        assert target == tmp_path / "report.pdf"
        assert target.read_bytes() == b"%PDF-1.7"

    def test_save_ignores_directory_parts(self, tmp_path):
        target = DownloadedFile("../../etc/passwd", b"x").save(tmp_path)
        assert target == tmp_path / "passwd"

    @pytest.mark.parametrize("name", ["..", ".", "\"..\"", ""])
    def test_save_dot_names_use_default(self, tmp_path, name):
        target = DownloadedFile(name, b"x").save(tmp_path)
        assert target == tmp_path / "file.bin"
        assert target.read_bytes() == b"x"
