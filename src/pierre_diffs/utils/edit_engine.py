"""Edit application for pierre-diffs.

This module reconstructs the "before" and "after" text of a file from the
payload of an automated edit tool. ``apply_edits`` is the pure text
transformation; ``DiffResultProcessor`` decodes tool payloads, loads the
original file through a ``FileDataReader`` and assembles a ``DiffResult``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Union

from pierre_diffs.state.diff_state import DiffResult

from .config import config
from .error_handling import (
    DecodingError,
    InvalidEncodingError,
    LoadCancelledError,
    LoadError,
    ProcessingError,
    ReadError,
    log_decode_error,
    log_file_error,
)
from .file_loader import FileDataReader
from .logger import log
from .validation import optional_bool, optional_string, require_mapping, require_string

Payload = Union[str, bytes, bytearray, Mapping[str, Any]]


class EditTool(Enum):
    """Automated editing tools whose output can be diffed."""

    EDIT = "Edit"
    MULTI_EDIT = "MultiEdit"
    WRITE = "Write"

    @classmethod
    def parse(cls, value: EditTool | str) -> EditTool:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as e:
            names = ", ".join(tool.value for tool in cls)
            raise DecodingError(f"Unknown edit tool '{value}' (expected one of {names})") from e


@dataclass(frozen=True)
class Edit:
    """A single textual substitution."""

    old_string: str
    new_string: str
    replace_all: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> Edit:
        data = require_mapping(data, "edit")
        return cls(
            old_string=require_string(data, "old_string"),
            new_string=require_string(data, "new_string"),
            replace_all=bool(optional_bool(data, "replace_all")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"old_string": self.old_string, "new_string": self.new_string, "replace_all": self.replace_all}


@dataclass(frozen=True)
class FileEditRequest:
    """Decoded Edit/MultiEdit payload."""

    file_path: str
    edits: tuple[Edit, ...] | None = None
    old_string: str | None = None
    new_string: str | None = None
    replace_all: bool | None = None

    @property
    def all_edits(self) -> list[Edit]:
        """The edits to apply, in order.

        The explicit ``edits`` list wins; otherwise the flat fields form a
        single edit when both strings are present; otherwise no edits.
        """
        if self.edits is not None:
            return list(self.edits)
        if self.old_string is not None and self.new_string is not None:
            return [Edit(self.old_string, self.new_string, bool(self.replace_all))]
        return []

    @classmethod
    def from_dict(cls, data: Any) -> FileEditRequest:
        data = require_mapping(data)
        raw_edits = data.get("edits")
        edits = None
        if raw_edits is not None:
            if not isinstance(raw_edits, list):
                raise DecodingError(f"Field 'edits' must be a list, got {type(raw_edits).__name__}")
            edits = tuple(Edit.from_dict(item) for item in raw_edits)

        return cls(
            file_path=require_string(data, "file_path"),
            edits=edits,
            old_string=optional_string(data, "old_string"),
            new_string=optional_string(data, "new_string"),
            replace_all=optional_bool(data, "replace_all"),
        )

    @classmethod
    def from_json(cls, payload: Payload) -> FileEditRequest:
        return cls.from_dict(_load_json(payload))

    @classmethod
    def from_tool_parameters(cls, params: Mapping[str, str], tool: EditTool | str = EditTool.EDIT) -> FileEditRequest:
        """Decode the flat string parameter map a host receives for a tool call.

        ``replace_all`` is the string ``"true"`` when set; for MultiEdit the
        ``edits`` parameter is a JSON-encoded list of objects.
        """
        tool = EditTool.parse(tool)
        file_path = params.get("file_path")

        if tool is EditTool.MULTI_EDIT:
            edits = _parse_multi_edit_edits(params.get("edits"))
            if file_path is None or edits is None:
                raise DecodingError("Missing or invalid parameters for MultiEdit tool")
            return cls(file_path=file_path, edits=tuple(edits))

        old_string = params.get("old_string")
        new_string = params.get("new_string")
        if file_path is None or old_string is None or new_string is None:
            raise DecodingError("Missing required parameters for Edit tool")
        return cls(
            file_path=file_path,
            old_string=old_string,
            new_string=new_string,
            replace_all=params.get("replace_all") == "true",
        )


@dataclass(frozen=True)
class WriteRequest:
    """Decoded Write payload: whole-file replacement."""

    file_path: str
    content: str = field(repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> WriteRequest:
        data = require_mapping(data)
        return cls(file_path=require_string(data, "file_path"), content=require_string(data, "content"))

    @classmethod
    def from_json(cls, payload: Payload) -> WriteRequest:
        return cls.from_dict(_load_json(payload))

    @classmethod
    def from_tool_parameters(cls, params: Mapping[str, str]) -> WriteRequest:
        file_path = params.get("file_path")
        content = params.get("content")
        if file_path is None or content is None:
            raise DecodingError("Missing required parameters for Write tool")
        return cls(file_path=file_path, content=content)


def apply_edits(edits: Iterable[Edit], source: str) -> str:
    """Apply ``edits`` to ``source`` in order and return the result.

    Each edit sees the output of the previous one. ``replace_all`` replaces
    every non-overlapping occurrence; otherwise only the first occurrence is
    replaced. An edit whose ``old_string`` is absent (or empty) changes
    nothing.
    """
    result = source
    for edit in edits:
        if not edit.old_string:
            continue
        if edit.replace_all:
            result = result.replace(edit.old_string, edit.new_string)
        else:
            result = result.replace(edit.old_string, edit.new_string, 1)
    return result


class DiffResultProcessor:
    """Turns tool payloads into ``DiffResult`` values."""

    def __init__(self, reader: FileDataReader, lenient_write_reads: bool | None = None):
        self.reader = reader
        self.lenient_write_reads = config.lenient_write_reads if lenient_write_reads is None else lenient_write_reads

    async def build_result(self, payload: Payload | FileEditRequest | WriteRequest, tool: EditTool | str) -> DiffResult:
        """Build the diff for one tool invocation.

        Raises:
            DecodingError: The payload is malformed
            ProcessingError: The original file content is unavailable
            LoadCancelledError: The read was superseded by a newer one
        """
        tool = EditTool.parse(tool)
        if tool is EditTool.WRITE:
            return await self._build_write_result(self._decode(payload, tool, WriteRequest))
        return await self._build_edit_result(self._decode(payload, tool, FileEditRequest))

    async def process_tool(self, response: Payload, tool: EditTool | str) -> list[DiffResult]:
        """Batch-shaped wrapper around :meth:`build_result`."""
        return [await self.build_result(response, tool)]

    def _decode(self, payload, tool: EditTool, request_type):
        if isinstance(payload, request_type):
            return payload
        try:
            return request_type.from_json(payload)
        except DecodingError as e:
            log_decode_error(tool.value, e)
            raise

    async def _build_edit_result(self, request: FileEditRequest) -> DiffResult:
        try:
            original = await self._read(request.file_path)
        except LoadCancelledError:
            raise
        except LoadError as e:
            log_file_error(request.file_path, "reading", e)
            raise ProcessingError(f"Unable to find content for {request.file_path}") from e

        if original is None:
            log.error(f"[EDIT] Unable to find content for {request.file_path}")
            raise ProcessingError(f"Unable to find content for {request.file_path}")

        edits = request.all_edits
        updated = apply_edits(edits, original)
        log.debug(f"[EDIT] applied {len(edits)} edit(s) to {request.file_path}")
        return DiffResult(
            file_path=request.file_path,
            file_name=request.file_path,
            original=original,
            updated=updated,
        )

    async def _build_write_result(self, request: WriteRequest) -> DiffResult:
        try:
            existing = await self._read(request.file_path)
        except LoadCancelledError:
            raise
        except ReadError as e:
            if not e.is_missing and not self.lenient_write_reads:
                log_file_error(request.file_path, "reading", e)
                raise ProcessingError(f"Unable to read existing content for {request.file_path}") from e
            existing = None
        except InvalidEncodingError as e:
            if not self.lenient_write_reads:
                log_file_error(request.file_path, "decoding", e)
                raise ProcessingError(f"Existing content of {request.file_path} is not valid UTF-8") from e
            existing = None

        if existing is None:
            log.debug(f"[EDIT] {request.file_path} does not exist yet, showing creation diff")
            return DiffResult.creation(request.file_path, request.content)

        return DiffResult(
            file_path=request.file_path,
            file_name=request.file_path,
            original=existing,
            updated=request.content,
        )

    async def _read(self, path: str) -> str | None:
        contents = await self.reader.read_file_content([path], config.edit_read_concurrency)
        return contents.get(path)


def _load_json(payload: Payload) -> Any:
    if isinstance(payload, Mapping):
        return payload
    try:
        return json.loads(payload)
    except (TypeError, ValueError) as e:
        raise DecodingError(f"Invalid JSON payload: {e}") from e


def _parse_multi_edit_edits(edits_string: str | None) -> list[Edit] | None:
    """Parse the JSON-encoded ``edits`` parameter of a MultiEdit call.

    Values may be strings or booleans; booleans become "true"/"false" before
    the edit is built. Entries with no usable values are skipped. Returns None
    when the parameter is missing or not a JSON list of objects.
    """
    if edits_string is None:
        return None
    try:
        raw = json.loads(edits_string)
    except (TypeError, ValueError):
        return None
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        return None

    edits = []
    for item in raw:
        values: dict[str, str] = {}
        for key, value in item.items():
            if isinstance(value, bool):
                values[key] = "true" if value else "false"
            elif isinstance(value, str):
                values[key] = value
        if not values:
            continue
        edits.append(
            Edit(
                old_string=values.get("old_string", ""),
                new_string=values.get("new_string", ""),
                replace_all=values.get("replace_all") == "true",
            )
        )
    return edits
