"""Tests for the renderer wire protocol."""

import base64
import json

import pytest

from pierre_diffs.net.protocol import (
    RENDER_DIFF,
    BridgeCommand,
    BridgeReady,
    DiffStyle,
    FileContents,
    LineClicked,
    OverflowMode,
    Ready,
    RendererErrorEvent,
    RenderInput,
    SelectionChanged,
    ThemeChanged,
    ThemeConfig,
    UnknownEvent,
    decode_event,
    decode_render_input,
    encode_event,
    encode_render_input,
    render_command,
    scroll_command,
)
from pierre_diffs.state.diff_state import DiffResult
from pierre_diffs.utils.config import config
from pierre_diffs.utils.error_handling import DecodingError


class TestRenderInput:
    """Test RenderInput serialization."""

    def test_round_trip_preserves_awkward_text(self):
        """Quotes, control characters and non-ASCII text survive encoding."""
        old = 'say "hi"\n\ttab\\backslash\x00nul'
        new = "héllo wörld 🎉\r\n</script>"
        render_input = RenderInput.from_contents(old, new, "odd.txt", DiffStyle.UNIFIED, OverflowMode.WRAP)

        encoded = encode_render_input(render_input)

        encoded.encode("ascii")
        assert decode_render_input(encoded) == render_input

    def test_wire_shape(self):
        render_input = RenderInput.from_contents("a", "b", "main.swift")
        data = json.loads(base64.b64decode(encode_render_input(render_input)).decode("utf-8"))

        assert data["oldFile"] == {"name": "main.swift", "contents": "a"}
        assert data["newFile"] == {"name": "main.swift", "contents": "b"}
        assert data["options"] == {
            "theme": {"dark": config.dark_theme, "light": config.light_theme},
            "diffStyle": "split",
            "overflow": "scroll",
            "enableLineSelection": True,
        }

    def test_detect_lang(self):
        result = DiffResult.direct("", "fn main() {}", "src/main.rs")
        render_input = RenderInput.from_diff_result(result, detect_lang=True)
        assert render_input.old_file.lang == "rust"
        assert render_input.new_file.to_dict()["lang"] == "rust"

    def test_decode_garbage(self):
        with pytest.raises(DecodingError):
            decode_render_input("not base64!!")

    def test_decode_wrong_shape(self):
        encoded = base64.b64encode(b'{"oldFile": {}}').decode("ascii")
        with pytest.raises(DecodingError):
            decode_render_input(encoded)

    def test_file_contents_from_dict(self):
        assert FileContents.from_dict({"name": "a", "contents": "b"}) == FileContents("a", "b")

    def test_theme_defaults(self):
        assert ThemeConfig() == ThemeConfig(dark=config.dark_theme, light=config.light_theme)


class TestEnums:
    def test_diff_style(self):
        assert DiffStyle.SPLIT.toggled() is DiffStyle.UNIFIED
        assert DiffStyle.UNIFIED.display_name == "Unified"

    def test_overflow(self):
        assert OverflowMode.WRAP.toggled() is OverflowMode.SCROLL
        assert OverflowMode.SCROLL.display_name == "Scroll"


class TestBridgeCommand:
    def test_render_command_frame(self):
        render_input = RenderInput.from_contents("a", "b", "f.txt")
        frame = json.loads(render_command(render_input).to_message())

        assert frame["command"] == RENDER_DIFF
        assert len(frame["args"]) == 1
        assert decode_render_input(frame["args"][0]) == render_input

    def test_from_message(self):
        command = scroll_command(42)
        assert BridgeCommand.from_message(command.to_message()) == command

    def test_from_message_unknown_command(self):
        with pytest.raises(DecodingError):
            BridgeCommand.from_message('{"command": "formatDisk", "args": []}')

    def test_from_message_malformed(self):
        with pytest.raises(DecodingError):
            BridgeCommand.from_message("{")


class TestDecodeEvent:
    """Test inbound event decoding."""

    def test_ready_events(self):
        assert decode_event('{"type": "bridgeReady"}') == BridgeReady()
        assert decode_event(b'{"type": "ready"}') == Ready()

    def test_line_clicked(self):
        event = decode_event(
            {"type": "lineClicked", "lineNumber": 12, "side": "additions", "lineY": 40.5, "lineHeight": 22}
        )
        assert event == LineClicked(line=12, side="additions", y=40.5, height=22.0)

    def test_line_clicked_defaults(self):
        event = decode_event({"type": "lineClicked"})
        assert event == LineClicked(line=0, side="unknown", y=None, height=None)

    def test_selection_changed(self):
        event = decode_event({"type": "selectionChanged", "startLine": 3, "endLine": 7, "side": "deletions"})
        assert event == SelectionChanged(start_line=3, end_line=7, side="deletions")

    def test_theme_changed(self):
        assert decode_event({"type": "systemThemeChanged", "isDark": True}) == ThemeChanged(is_dark=True)
        assert decode_event({"type": "systemThemeChanged"}) == ThemeChanged(is_dark=False)

    def test_error_default_message(self):
        assert decode_event({"type": "error"}) == RendererErrorEvent(message="Unknown error")
        assert decode_event({"type": "error", "message": "boom"}) == RendererErrorEvent(message="boom")

    def test_unknown_type(self):
        event = decode_event({"type": "telemetry", "value": 1})
        assert isinstance(event, UnknownEvent)
        assert event.type == "telemetry"
        assert event.body["value"] == 1

    @pytest.mark.parametrize("message", ["{not json", "[1, 2]", '{"no": "type"}', '{"type": 5}', b"\xff"])
    def test_malformed_is_dropped(self, message):
        assert decode_event(message) is None

    def test_encode_event_round_trip(self):
        event = LineClicked(line=5, side="additions", y=10.0, height=20.0)
        assert decode_event(encode_event(event)) == event
        assert encode_event(Ready()) == {"type": "ready"}
