"""Tests for edit application and tool payload processing."""

import json
import os
from unittest.mock import AsyncMock, Mock

import pytest

from pierre_diffs.utils.config import config
from pierre_diffs.utils.edit_engine import (
    DiffResultProcessor,
    Edit,
    EditTool,
    FileEditRequest,
    WriteRequest,
    apply_edits,
)
from pierre_diffs.utils.error_handling import DecodingError, LoadCancelledError, ProcessingError
from pierre_diffs.utils.file_loader import FileLoader


class TestApplyEdits:
    """Test the pure text transformation."""

    def test_first_occurrence_only(self):
        """Without replace_all only the first match changes."""
        assert apply_edits([Edit("a", "b")], "aaa") == "baa"

    def test_replace_all(self):
        """replace_all changes every occurrence."""
        assert apply_edits([Edit("a", "b", replace_all=True)], "aaa") == "bbb"

    def test_edits_are_cumulative(self):
        """Each edit sees the output of the previous one."""
        edits = [Edit("x", "y"), Edit("y", "z")]
        assert apply_edits(edits, "x") == "z"

    def test_missing_old_string_is_noop(self):
        """An edit whose target is absent leaves the text alone."""
        assert apply_edits([Edit("missing", "found")], "hello world") == "hello world"

    def test_empty_old_string_is_noop(self):
        """An empty target never inserts text."""
        assert apply_edits([Edit("", "inserted", replace_all=True)], "abc") == "abc"

    def test_no_edits(self):
        assert apply_edits([], "unchanged") == "unchanged"

    def test_multiline_replacement(self):
        source = "def f():\n    return 1\n"
        result = apply_edits([Edit("    return 1\n", "    return 2\n")], source)
        assert result == "def f():\n    return 2\n"


class TestFileEditRequest:
    """Test decoding of Edit and MultiEdit payloads."""

    def test_edits_list_wins_over_flat_fields(self):
        request = FileEditRequest.from_dict(
            {
                "file_path": "a.py",
                "edits": [{"old_string": "1", "new_string": "2"}],
                "old_string": "ignored",
                "new_string": "ignored",
            }
        )
        assert request.all_edits == [Edit("1", "2")]

    def test_flat_fields_form_single_edit(self):
        request = FileEditRequest.from_json(
            '{"file_path": "a.py", "old_string": "x", "new_string": "y", "replace_all": true}'
        )
        assert request.all_edits == [Edit("x", "y", replace_all=True)]

    def test_no_edits_when_strings_incomplete(self):
        request = FileEditRequest.from_dict({"file_path": "a.py", "old_string": "x"})
        assert request.all_edits == []

    def test_missing_file_path(self):
        with pytest.raises(DecodingError, match="file_path"):
            FileEditRequest.from_dict({"old_string": "x", "new_string": "y"})

    def test_edits_must_be_list(self):
        with pytest.raises(DecodingError, match="edits"):
            FileEditRequest.from_dict({"file_path": "a.py", "edits": "nope"})

    def test_invalid_json(self):
        with pytest.raises(DecodingError, match="Invalid JSON"):
            FileEditRequest.from_json("{not json")

    def test_payload_must_be_object(self):
        with pytest.raises(DecodingError):
            FileEditRequest.from_json("[1, 2]")

    def test_edit_params(self):
        """Flat tool parameters carry replace_all as the string 'true'."""
        request = FileEditRequest.from_tool_parameters(
            {"file_path": "a.py", "old_string": "a", "new_string": "b", "replace_all": "true"}
        )
        assert request.all_edits == [Edit("a", "b", replace_all=True)]

    def test_edit_params_missing(self):
        with pytest.raises(DecodingError, match="Missing required parameters for Edit tool"):
            FileEditRequest.from_tool_parameters({"file_path": "a.py", "old_string": "a"})

    def test_multi_edit_params(self):
        """MultiEdit edits arrive JSON-encoded, with booleans allowed."""
        edits = json.dumps(
            [
                {"old_string": "a", "new_string": "b", "replace_all": True},
                {"old_string": "c", "new_string": "d"},
            ]
        )
        request = FileEditRequest.from_tool_parameters({"file_path": "a.py", "edits": edits}, "MultiEdit")
        assert request.all_edits == [Edit("a", "b", replace_all=True), Edit("c", "d")]

    def test_multi_edit_params_invalid(self):
        with pytest.raises(DecodingError, match="Missing or invalid parameters for MultiEdit tool"):
            FileEditRequest.from_tool_parameters({"file_path": "a.py", "edits": "not json"}, EditTool.MULTI_EDIT)


class TestWriteRequest:
    def test_from_dict(self):
        request = WriteRequest.from_dict({"file_path": "a.py", "content": "x = 1\n"})
        assert request.file_path == "a.py"
        assert request.content == "x = 1\n"

    def test_missing_content(self):
        with pytest.raises(DecodingError, match="content"):
            WriteRequest.from_dict({"file_path": "a.py"})

    def test_params_missing(self):
        with pytest.raises(DecodingError, match="Missing required parameters for Write tool"):
            WriteRequest.from_tool_parameters({"file_path": "a.py"})


class TestEditTool:
    def test_parse(self):
        assert EditTool.parse("MultiEdit") is EditTool.MULTI_EDIT
        assert EditTool.parse(EditTool.WRITE) is EditTool.WRITE

    def test_parse_unknown(self):
        with pytest.raises(DecodingError, match="Unknown edit tool"):
            EditTool.parse("Delete")


class TestDiffResultProcessor:
    """Test building diff results against real files."""

    @pytest.mark.asyncio
    async def test_edit(self, write_file):
        path = write_file("greet.py", "print('hello world')\n")
        processor = DiffResultProcessor(FileLoader())

        result = await processor.build_result(
            {"file_path": path, "old_string": "world", "new_string": "there"}, EditTool.EDIT
        )

        assert result.file_path == path
        assert result.file_name == path
        assert result.original == "print('hello world')\n"
        assert result.updated == "print('hello there')\n"
        assert not result.is_initial

    @pytest.mark.asyncio
    async def test_multi_edit(self, write_file):
        path = write_file("calc.py", "a = 1\nb = 1\n")
        processor = DiffResultProcessor(FileLoader())
        payload = json.dumps(
            {
                "file_path": path,
                "edits": [
                    {"old_string": "1", "new_string": "2", "replace_all": True},
                    {"old_string": "b = 2", "new_string": "b = 3"},
                ],
            }
        )

        result = await processor.build_result(payload, "MultiEdit")

        assert result.updated == "a = 2\nb = 3\n"

    @pytest.mark.asyncio
    async def test_edit_missing_file(self, tmp_path):
        processor = DiffResultProcessor(FileLoader())
        path = str(tmp_path / "nope.py")

        with pytest.raises(ProcessingError, match="Unable to find content"):
            await processor.build_result({"file_path": path, "old_string": "a", "new_string": "b"}, "Edit")

    @pytest.mark.asyncio
    async def test_write_new_file(self, tmp_path):
        """Writing a path that does not exist yet is a creation diff."""
        path = str(tmp_path / "new.py")
        processor = DiffResultProcessor(FileLoader())

        result = await processor.build_result({"file_path": path, "content": "x = 1\n"}, EditTool.WRITE)

        assert result.original == ""
        assert result.updated == "x = 1\n"
        assert result.is_creation
        assert not os.path.exists(path)

    @pytest.mark.asyncio
    async def test_write_existing_file(self, write_file):
        path = write_file("old.py", "x = 0\n")
        processor = DiffResultProcessor(FileLoader())

        result = await processor.build_result({"file_path": path, "content": "x = 1\n"}, EditTool.WRITE)

        assert result.original == "x = 0\n"
        assert result.updated == "x = 1\n"
        assert not result.is_creation

    @pytest.mark.asyncio
    async def test_write_over_undecodable_file(self, write_file):
        path = write_file("blob.bin", b"\xff\xfe\x00")

        with pytest.raises(ProcessingError, match="UTF-8"):
            await DiffResultProcessor(FileLoader(), lenient_write_reads=False).build_result(
                {"file_path": path, "content": "text"}, EditTool.WRITE
            )

        lenient = await DiffResultProcessor(FileLoader(), lenient_write_reads=True).build_result(
            {"file_path": path, "content": "text"}, EditTool.WRITE
        )
        assert lenient.is_creation

    @pytest.mark.asyncio
    async def test_write_over_unreadable_path(self, tmp_path):
        """A read failure other than a missing file is an error unless lenient."""
        path = str(tmp_path)

        with pytest.raises(ProcessingError, match="Unable to read"):
            await DiffResultProcessor(FileLoader(), lenient_write_reads=False).build_result(
                {"file_path": path, "content": "text"}, EditTool.WRITE
            )

        lenient = await DiffResultProcessor(FileLoader(), lenient_write_reads=True).build_result(
            {"file_path": path, "content": "text"}, EditTool.WRITE
        )
        assert lenient.original == ""

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        processor = DiffResultProcessor(FileLoader())
        with pytest.raises(DecodingError):
            await processor.build_result('{"content": "x"}', EditTool.WRITE)

    @pytest.mark.asyncio
    async def test_reader_without_content(self):
        """A reader that returns nothing for the path is a processing error."""
        reader = Mock()
        reader.read_file_content = AsyncMock(return_value={})
        processor = DiffResultProcessor(reader)

        with pytest.raises(ProcessingError):
            await processor.build_result({"file_path": "a.py", "old_string": "a", "new_string": "b"}, "Edit")

        reader.read_file_content.assert_awaited_once_with(["a.py"], config.edit_read_concurrency)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        reader = Mock()
        reader.read_file_content = AsyncMock(side_effect=LoadCancelledError())
        processor = DiffResultProcessor(reader)

        with pytest.raises(LoadCancelledError):
            await processor.build_result({"file_path": "a.py", "content": "x"}, "Write")

    @pytest.mark.asyncio
    async def test_process_tool_returns_single_result(self, write_file):
        path = write_file("one.txt", "one")
        processor = DiffResultProcessor(FileLoader())

        results = await processor.process_tool(
            json.dumps({"file_path": path, "old_string": "one", "new_string": "two"}), "Edit"
        )

        assert len(results) == 1
        assert results[0].updated == "two"

    @pytest.mark.asyncio
    async def test_accepts_decoded_request(self, write_file):
        path = write_file("req.txt", "abc")
        processor = DiffResultProcessor(FileLoader())
        request = FileEditRequest(file_path=path, edits=(Edit("b", "B"),))

        result = await processor.build_result(request, EditTool.EDIT)

        assert result.updated == "aBc"
