"""Tests for the pierre-diffs command line."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from pierre_diffs.entry_points import main
from pierre_diffs.net.protocol import RENDER_DIFF, DiffStyle, decode_render_input


@pytest.fixture
def write_payload(write_file, tmp_path):
    """Write a Write-tool payload targeting a new file; returns the payload path."""

    def _write(content="print('hi')\n", target="new_module.py"):
        payload = {"file_path": str(tmp_path / target), "content": content}
        return write_file("payload.json", json.dumps(payload))

    return _write


class TestEncode:
    def test_prints_render_frame(self, write_payload, capsys):
        main(["encode", "--tool", "Write", "--payload", write_payload(), "--diff-style", "split"])

        frame = json.loads(capsys.readouterr().out)
        assert frame["command"] == RENDER_DIFF
        render_input = decode_render_input(frame["args"][0])
        assert render_input.old_file.contents == ""
        assert render_input.new_file.contents == "print('hi')\n"
        assert render_input.options.diff_style is DiffStyle.SPLIT

    def test_edit_of_existing_file(self, write_file, capsys):
        target = write_file("target.txt", "one two")
        payload = write_file("edit.json", json.dumps({"file_path": target, "old_string": "two", "new_string": "2"}))

        main(["encode", "--tool", "Edit", "--payload", payload])

        frame = json.loads(capsys.readouterr().out)
        render_input = decode_render_input(frame["args"][0])
        assert (render_input.old_file.contents, render_input.new_file.contents) == ("one two", "one 2")


class TestPreview:
    def test_prints_summary(self, write_payload, capsys):
        main(["preview", "--tool", "Write", "--payload", write_payload()])

        out = capsys.readouterr().out
        assert "python" in out
        assert "new file" in out
        assert "print" in out


class TestErrors:
    def test_bad_payload_exits(self, write_file, capsys):
        payload = write_file("bad.json", "{not json")

        with pytest.raises(SystemExit) as exc_info:
            main(["preview", "--tool", "Edit", "--payload", payload])

        assert exc_info.value.code == 1
        assert "Invalid JSON" in capsys.readouterr().err

    def test_missing_payload_file_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["preview", "--tool", "Edit", "--payload", str(tmp_path / "nope.json")])
        assert exc_info.value.code == 1

    def test_unknown_tool_rejected(self, write_payload):
        with pytest.raises(SystemExit) as exc_info:
            main(["preview", "--tool", "Delete", "--payload", write_payload()])
        assert exc_info.value.code == 2


class TestServe:
    def test_invalid_port_exits(self, write_payload, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", "--tool", "Write", "--payload", write_payload(), "--port", "99999"])

        assert exc_info.value.code == 1
        assert "Configuration Error" in capsys.readouterr().err

    def test_environment_fallbacks(self, write_payload, monkeypatch):
        monkeypatch.setenv("PIERRE_HOST", "localhost")
        monkeypatch.setenv("PIERRE_PORT", "9101")

        with patch("pierre_diffs.entry_points.start_server", new_callable=AsyncMock) as mock_start:
            main(["serve", "--tool", "Write", "--payload", write_payload()])

        server_config = mock_start.call_args.kwargs["server_config"]
        assert server_config.bind_address == "localhost"
        assert server_config.port == 9101

    def test_command_line_wins(self, write_payload, monkeypatch):
        monkeypatch.setenv("PIERRE_PORT", "9101")

        with patch("pierre_diffs.entry_points.start_server", new_callable=AsyncMock) as mock_start:
            main(["serve", "--tool", "Write", "--payload", write_payload(), "--port", "9202", "--light"])

        assert mock_start.call_args.kwargs["server_config"].port == 9202
        mock_start.assert_awaited_once()
