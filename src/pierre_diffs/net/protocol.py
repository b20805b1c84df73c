"""Wire protocol between the host and the external diff renderer.

Outbound, the host sends command frames::

    {"command": "renderDiff", "args": ["<base64 of RenderInput JSON>"]}
    {"command": "setTheme", "args": ["dark"]}

``renderDiff`` wraps its JSON in base64 so file contents with quotes, control
characters or non-ASCII text travel through the command channel untouched.

Inbound, the renderer sends events tagged by ``type``. ``decode_event`` turns
them into typed values and never raises: unknown types become
``UnknownEvent`` and malformed messages are logged and dropped.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Final, Mapping, Optional, Union

from pierre_diffs.state.diff_state import DiffResult
from pierre_diffs.utils.config import config
from pierre_diffs.utils.error_handling import DecodingError
from pierre_diffs.utils.languages import detect_language
from pierre_diffs.utils.logger import log

RENDER_DIFF: Final[str] = "renderDiff"
SET_THEME: Final[str] = "setTheme"
SET_DIFF_STYLE: Final[str] = "setDiffStyle"
SET_OVERFLOW: Final[str] = "setOverflow"
SCROLL_TO_LINE: Final[str] = "scrollToLine"
CLEANUP: Final[str] = "cleanup"

COMMAND_NAMES: Final[frozenset[str]] = frozenset(
    {RENDER_DIFF, SET_THEME, SET_DIFF_STYLE, SET_OVERFLOW, SCROLL_TO_LINE, CLEANUP}
)

UNKNOWN: Final[str] = "unknown"


class DiffStyle(Enum):
    """Side-by-side or single-column diff layout."""

    SPLIT = "split"
    UNIFIED = "unified"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    def toggled(self) -> DiffStyle:
        return DiffStyle.UNIFIED if self is DiffStyle.SPLIT else DiffStyle.SPLIT


class OverflowMode(Enum):
    """How long lines are handled: horizontal scroll or soft wrap."""

    SCROLL = "scroll"
    WRAP = "wrap"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    def toggled(self) -> OverflowMode:
        return OverflowMode.WRAP if self is OverflowMode.SCROLL else OverflowMode.SCROLL


@dataclass(frozen=True)
class ThemeConfig:
    """Renderer theme names for dark and light appearance."""

    dark: str = field(default_factory=lambda: config.dark_theme)
    light: str = field(default_factory=lambda: config.light_theme)

    def to_dict(self) -> dict[str, str]:
        return {"dark": self.dark, "light": self.light}


@dataclass(frozen=True)
class FileContents:
    """One side of the diff as the renderer sees it."""

    name: str
    contents: str
    lang: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "contents": self.contents}
        if self.lang is not None:
            data["lang"] = self.lang
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FileContents:
        return cls(name=data["name"], contents=data["contents"], lang=data.get("lang"))


@dataclass(frozen=True)
class RenderOptions:
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    diff_style: DiffStyle = DiffStyle.SPLIT
    overflow: OverflowMode = OverflowMode.SCROLL
    enable_line_selection: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "theme": self.theme.to_dict(),
            "diffStyle": self.diff_style.value,
            "overflow": self.overflow.value,
            "enableLineSelection": self.enable_line_selection,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RenderOptions:
        theme = data["theme"]
        return cls(
            theme=ThemeConfig(dark=theme["dark"], light=theme["light"]),
            diff_style=DiffStyle(data["diffStyle"]),
            overflow=OverflowMode(data["overflow"]),
            enable_line_selection=bool(data["enableLineSelection"]),
        )


@dataclass(frozen=True)
class RenderInput:
    """Everything the renderer needs to draw one diff."""

    old_file: FileContents
    new_file: FileContents
    options: RenderOptions = field(default_factory=RenderOptions)

    @classmethod
    def from_contents(
        cls,
        old_content: str,
        new_content: str,
        file_name: str,
        diff_style: DiffStyle = DiffStyle.SPLIT,
        overflow: OverflowMode = OverflowMode.SCROLL,
        detect_lang: bool = False,
    ) -> RenderInput:
        lang = detect_language(file_name) if detect_lang else None
        return cls(
            old_file=FileContents(name=file_name, contents=old_content, lang=lang),
            new_file=FileContents(name=file_name, contents=new_content, lang=lang),
            options=RenderOptions(diff_style=diff_style, overflow=overflow),
        )

    @classmethod
    def from_diff_result(
        cls,
        result: DiffResult,
        diff_style: DiffStyle = DiffStyle.SPLIT,
        overflow: OverflowMode = OverflowMode.SCROLL,
        detect_lang: bool = False,
    ) -> RenderInput:
        return cls.from_contents(
            result.original, result.updated, result.file_name, diff_style, overflow, detect_lang
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "oldFile": self.old_file.to_dict(),
            "newFile": self.new_file.to_dict(),
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RenderInput:
        return cls(
            old_file=FileContents.from_dict(data["oldFile"]),
            new_file=FileContents.from_dict(data["newFile"]),
            options=RenderOptions.from_dict(data["options"]),
        )


def encode_render_input(render_input: RenderInput) -> str:
    """Serialize a RenderInput as base64-wrapped UTF-8 JSON."""
    raw = json.dumps(render_input.to_dict(), ensure_ascii=False).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_render_input(encoded: str) -> RenderInput:
    """Inverse of :func:`encode_render_input`.

    Raises:
        DecodingError: If the text is not valid base64 JSON of the right shape
    """
    try:
        raw = base64.b64decode(encoded, validate=True)
        return RenderInput.from_dict(json.loads(raw.decode("utf-8")))
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
        raise DecodingError(f"Invalid render input: {e}") from e


@dataclass(frozen=True)
class BridgeCommand:
    """One host -> renderer command frame."""

    name: str
    args: tuple[Any, ...] = ()

    def to_message(self) -> str:
        return json.dumps({"command": self.name, "args": list(self.args)}, ensure_ascii=False)

    @classmethod
    def from_message(cls, message: Union[str, bytes]) -> BridgeCommand:
        try:
            data = json.loads(message)
            name = data["command"]
            args = data.get("args", [])
        except (ValueError, KeyError, TypeError) as e:
            raise DecodingError(f"Invalid command frame: {e}") from e
        if name not in COMMAND_NAMES or not isinstance(args, list):
            raise DecodingError(f"Invalid command frame: {name!r}")
        return cls(name=name, args=tuple(args))


def render_command(render_input: RenderInput) -> BridgeCommand:
    return BridgeCommand(RENDER_DIFF, (encode_render_input(render_input),))


def theme_command(theme: str) -> BridgeCommand:
    return BridgeCommand(SET_THEME, (theme,))


def diff_style_command(style: DiffStyle) -> BridgeCommand:
    return BridgeCommand(SET_DIFF_STYLE, (style.value,))


def overflow_command(mode: OverflowMode) -> BridgeCommand:
    return BridgeCommand(SET_OVERFLOW, (mode.value,))


def scroll_command(line: int) -> BridgeCommand:
    return BridgeCommand(SCROLL_TO_LINE, (line,))


def cleanup_command() -> BridgeCommand:
    return BridgeCommand(CLEANUP)


# Inbound events


@dataclass(frozen=True)
class BridgeReady:
    """The renderer's command handler is installed."""

    type: ClassVar[str] = "bridgeReady"


@dataclass(frozen=True)
class Ready:
    """A diff finished rendering."""

    type: ClassVar[str] = "ready"


@dataclass(frozen=True)
class LineClicked:
    line: int
    side: str
    y: Optional[float] = None
    height: Optional[float] = None

    type: ClassVar[str] = "lineClicked"


@dataclass(frozen=True)
class SelectionChanged:
    start_line: int
    end_line: int
    side: str

    type: ClassVar[str] = "selectionChanged"


@dataclass(frozen=True)
class ThemeChanged:
    is_dark: bool

    type: ClassVar[str] = "systemThemeChanged"


@dataclass(frozen=True)
class RendererErrorEvent:
    message: str

    type: ClassVar[str] = "error"


@dataclass(frozen=True)
class UnknownEvent:
    """Any event type this version does not understand."""

    event_type: str
    body: Mapping[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.event_type


BridgeEvent = Union[BridgeReady, Ready, LineClicked, SelectionChanged, ThemeChanged, RendererErrorEvent, UnknownEvent]


def _int_field(body: Mapping[str, Any], key: str, default: int = 0) -> int:
    value = body.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return default


def _float_field(body: Mapping[str, Any], key: str) -> Optional[float]:
    value = body.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _str_field(body: Mapping[str, Any], key: str, default: str = UNKNOWN) -> str:
    value = body.get(key)
    return value if isinstance(value, str) else default


def decode_event(message: Union[str, bytes, bytearray, Mapping[str, Any]]) -> Optional[BridgeEvent]:
    """Decode a raw renderer message.

    Returns:
        The typed event, ``UnknownEvent`` for an unrecognized ``type``, or
        None when the message is not an object with a string ``type``
    """
    if isinstance(message, Mapping):
        body = message
    else:
        try:
            body = json.loads(message)
        except (TypeError, ValueError) as e:
            log.error(f"[BRIDGE] Invalid message format: {e}")
            return None

    if not isinstance(body, Mapping) or not isinstance(body.get("type"), str):
        log.error("[BRIDGE] Invalid message format: missing 'type'")
        return None

    event_type = body["type"]
    if event_type == BridgeReady.type:
        return BridgeReady()
    if event_type == Ready.type:
        return Ready()
    if event_type == LineClicked.type:
        return LineClicked(
            line=_int_field(body, "lineNumber"),
            side=_str_field(body, "side"),
            y=_float_field(body, "lineY"),
            height=_float_field(body, "lineHeight"),
        )
    if event_type == SelectionChanged.type:
        return SelectionChanged(
            start_line=_int_field(body, "startLine"),
            end_line=_int_field(body, "endLine"),
            side=_str_field(body, "side"),
        )
    if event_type == ThemeChanged.type:
        is_dark = body.get("isDark")
        return ThemeChanged(is_dark=is_dark if isinstance(is_dark, bool) else False)
    if event_type == RendererErrorEvent.type:
        return RendererErrorEvent(message=_str_field(body, "message", "Unknown error"))

    log.info(f"[BRIDGE] Unknown message type: {event_type}")
    return UnknownEvent(event_type=event_type, body=dict(body))


def encode_event(event: BridgeEvent) -> dict[str, Any]:
    """Wire form of an event, as the renderer would send it."""
    if isinstance(event, LineClicked):
        data: dict[str, Any] = {"type": event.type, "lineNumber": event.line, "side": event.side}
        if event.y is not None:
            data["lineY"] = event.y
        if event.height is not None:
            data["lineHeight"] = event.height
        return data
    if isinstance(event, SelectionChanged):
        return {"type": event.type, "startLine": event.start_line, "endLine": event.end_line, "side": event.side}
    if isinstance(event, ThemeChanged):
        return {"type": event.type, "isDark": event.is_dark}
    if isinstance(event, RendererErrorEvent):
        return {"type": event.type, "message": event.message}
    if isinstance(event, UnknownEvent):
        return {**event.body, "type": event.event_type}
    return {"type": event.type}
