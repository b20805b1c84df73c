"""Readiness-gated command bridge to the external diff renderer.

A bridge serves one renderer session. It starts ``NOT_READY``: commands are
queued in submission order instead of being sent. The first ``ready`` or
``bridgeReady`` event moves it to ``READY`` and flushes the queue, oldest
first, before any later command goes out. ``cleanup`` is the exception and is
always sent straight away.

Queue and state changes happen under a single ``asyncio.Lock``, so a command
submitted while the queue is being flushed waits for the flush to finish.
"""

from __future__ import annotations

import asyncio
import weakref
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Protocol, Union

from pierre_diffs.state.diff_state import DiffResult
from pierre_diffs.utils.config import config
from pierre_diffs.utils.error_handling import RenderError, TransportError, log_bridge_error
from pierre_diffs.utils.logger import log

from .geometry import LineClickPosition, Point, SurfaceGeometry, screen_to_surface, surface_to_window
from .protocol import (
    RENDER_DIFF,
    SET_DIFF_STYLE,
    SET_OVERFLOW,
    SET_THEME,
    BridgeCommand,
    BridgeEvent,
    BridgeReady,
    DiffStyle,
    LineClicked,
    OverflowMode,
    Ready,
    RenderInput,
    RendererErrorEvent,
    SelectionChanged,
    ThemeChanged,
    cleanup_command,
    decode_event,
    diff_style_command,
    overflow_command,
    render_command,
    scroll_command,
    theme_command,
)


class BridgeState(Enum):
    NOT_READY = "not_ready"
    READY = "ready"


class BridgeTransport(Protocol):
    """Delivers encoded command frames to the renderer."""

    async def send(self, message: str) -> None:
        ...


def theme_for(is_dark: bool) -> str:
    """Theme argument for ``setTheme`` given the host appearance."""
    return "dark" if is_dark else "light"


class RendererBridge:
    """Host side of one renderer session."""

    def __init__(
        self,
        transport: BridgeTransport,
        *,
        surface: Optional[SurfaceGeometry] = None,
        pointer_location: Optional[Callable[[], Optional[Point]]] = None,
        on_ready: Optional[Callable[[], None]] = None,
        on_line_click: Optional[Callable[[int, str], None]] = None,
        on_line_click_with_position: Optional[Callable[[LineClickPosition, Point], None]] = None,
        on_selection_changed: Optional[Callable[[int, int, str], None]] = None,
        on_theme_changed: Optional[Callable[[bool], None]] = None,
        on_error: Optional[Callable[[RenderError], None]] = None,
        line_height: Optional[float] = None,
    ):
        self.transport = transport
        self.pointer_location = pointer_location
        self.on_ready = on_ready
        self.on_line_click = on_line_click
        self.on_line_click_with_position = on_line_click_with_position
        self.on_selection_changed = on_selection_changed
        self.on_theme_changed = on_theme_changed
        self.on_error = on_error
        self.line_height = config.line_height if line_height is None else line_height

        self._state = BridgeState.NOT_READY
        self._pending: list[BridgeCommand] = []
        self._lock = asyncio.Lock()
        self._surface_ref: Optional[weakref.ref] = None
        self.set_surface(surface)

        self._forget_rendered()

    # State

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is BridgeState.READY

    @property
    def pending_commands(self) -> tuple[BridgeCommand, ...]:
        return tuple(self._pending)

    def reset(self) -> None:
        """Start a new renderer session.

        Goes back to ``NOT_READY`` and forgets what was last rendered. Commands
        still queued for the previous session are discarded.
        """
        dropped = len(self._pending)
        self._pending = []
        self._state = BridgeState.NOT_READY
        self._forget_rendered()
        log.debug(f"[BRIDGE] session reset, discarded {dropped} queued command(s)")

    def _forget_rendered(self) -> None:
        self.last_old_content: Optional[str] = None
        self.last_new_content: Optional[str] = None
        self.last_file_name: Optional[str] = None
        self.last_diff_style: Optional[DiffStyle] = None
        self.last_overflow: Optional[OverflowMode] = None
        self.last_theme: Optional[str] = None

    # Surface

    def set_surface(self, surface: Optional[SurfaceGeometry]) -> None:
        """Attach (or detach with None) the surface used for geometry queries.

        Only a weak reference is kept, so the surface must support one.

        Raises:
            TypeError: If ``surface`` cannot be weakly referenced
        """
        if surface is None:
            self._surface_ref = None
            return
        try:
            self._surface_ref = weakref.ref(surface)
        except TypeError as e:
            raise TypeError(
                f"surface {type(surface).__name__} must be weak-referenceable "
                "(add '__weakref__' to its __slots__)"
            ) from e

    @property
    def surface(self) -> Optional[SurfaceGeometry]:
        return self._surface_ref() if self._surface_ref is not None else None

    def convert_to_window(self, surface_y: float) -> Optional[Point]:
        """Window coordinates of a surface-local y, or None without a surface."""
        surface = self.surface
        if surface is None:
            return None
        return surface_to_window(surface, surface_y)

    def position_for_click(
        self, event: LineClicked, pointer: Optional[Point] = None
    ) -> Optional[tuple[LineClickPosition, Point]]:
        """Place a clicked line in surface-local coordinates (top-left origin).

        A screen-space ``pointer`` wins over the renderer-reported ``event.y``.
        Returns None when there is no attached surface or no usable position.
        """
        surface = self.surface
        if surface is None or surface.frame_in_window() is None:
            return None

        height = event.height if event.height is not None else self.line_height

        if pointer is not None:
            local = screen_to_surface(surface, pointer)
            if local is None:
                return None
        elif event.y is not None:
            frame = surface.frame_in_window()
            local = Point(frame.width / 2, event.y)
        else:
            return None

        position = LineClickPosition(line_number=event.line, side=event.side, line_y=local.y, line_height=height)
        return position, local

    # Commands

    async def render(
        self,
        old_content: str,
        new_content: str,
        file_name: str,
        theme: str,
        diff_style: DiffStyle = DiffStyle.SPLIT,
        overflow: OverflowMode = OverflowMode.SCROLL,
        detect_lang: bool = False,
    ) -> None:
        """Render a full diff, then apply ``theme``."""
        render_input = RenderInput.from_contents(
            old_content, new_content, file_name, diff_style=diff_style, overflow=overflow, detect_lang=detect_lang
        )
        async with self._lock:
            await self._submit(render_command(render_input))
            await self._submit(theme_command(theme))

    async def set_theme(self, theme: str) -> None:
        await self._gated(theme_command(theme))

    async def set_diff_style(self, style: DiffStyle) -> None:
        await self._gated(diff_style_command(style))

    async def set_overflow(self, mode: OverflowMode) -> None:
        await self._gated(overflow_command(mode))

    async def scroll_to_line(self, line: int) -> None:
        await self._gated(scroll_command(line))

    async def cleanup(self) -> None:
        """Tear down the renderer's current diff; sent regardless of readiness."""
        await self._dispatch(cleanup_command())

    async def sync(
        self,
        old_content: str,
        new_content: str,
        file_name: str,
        diff_style: DiffStyle,
        overflow: OverflowMode,
        theme: str,
    ) -> Optional[str]:
        """Send the lightest command that brings the renderer up to date.

        Checked in priority order, at most one per call: content or file name
        (full render, which also covers style, overflow and theme), then diff
        style, then overflow, then theme.

        Returns:
            Name of the command sent, or None if nothing changed
        """
        if (
            self.last_old_content != old_content
            or self.last_new_content != new_content
            or self.last_file_name != file_name
        ):
            self.last_old_content = old_content
            self.last_new_content = new_content
            self.last_file_name = file_name
            self.last_diff_style = diff_style
            self.last_overflow = overflow
            self.last_theme = theme
            await self.render(old_content, new_content, file_name, theme, diff_style, overflow)
            return RENDER_DIFF

        if self.last_diff_style != diff_style:
            self.last_diff_style = diff_style
            await self.set_diff_style(diff_style)
            return SET_DIFF_STYLE

        if self.last_overflow != overflow:
            self.last_overflow = overflow
            await self.set_overflow(overflow)
            return SET_OVERFLOW

        if self.last_theme != theme:
            self.last_theme = theme
            await self.set_theme(theme)
            return SET_THEME

        return None

    async def sync_result(
        self, result: DiffResult, diff_style: DiffStyle, overflow: OverflowMode, theme: str
    ) -> Optional[str]:
        return await self.sync(result.original, result.updated, result.file_name, diff_style, overflow, theme)

    async def _gated(self, command: BridgeCommand) -> None:
        async with self._lock:
            await self._submit(command)

    async def _submit(self, command: BridgeCommand) -> None:
        # Caller holds self._lock
        if self._state is BridgeState.READY:
            await self._dispatch(command)
        else:
            self._pending.append(command)
            log.debug(f"[BRIDGE] queued {command.name} ({len(self._pending)} pending)")

    async def _dispatch(self, command: BridgeCommand) -> bool:
        try:
            await self.transport.send(command.to_message())
        except (TransportError, OSError) as e:
            log_bridge_error(f"sending {command.name}", e)
            return False
        log.debug(f"[BRIDGE] sent {command.name}")
        return True

    # Events

    async def handle_message(
        self, message: Union[str, bytes, bytearray, Mapping[str, Any]]
    ) -> Optional[BridgeEvent]:
        """Decode a renderer message and act on it.

        Never raises for bad input; malformed and unknown messages are logged
        and dropped.
        """
        event = decode_event(message)
        if event is None:
            return None

        if isinstance(event, (BridgeReady, Ready)):
            await self._mark_ready()
            self._notify(self.on_ready)
        elif isinstance(event, LineClicked):
            self._handle_line_click(event)
        elif isinstance(event, SelectionChanged):
            log.info(f"[BRIDGE] Selection changed: lines {event.start_line}-{event.end_line} on {event.side}")
            self._notify(self.on_selection_changed, event.start_line, event.end_line, event.side)
        elif isinstance(event, ThemeChanged):
            log.info(f"[BRIDGE] System theme changed: isDark={event.is_dark}")
            self._notify(self.on_theme_changed, event.is_dark)
        elif isinstance(event, RendererErrorEvent):
            log.error(f"[BRIDGE] Renderer error: {event.message}")
            self._notify(self.on_error, RenderError(event.message))

        return event

    async def _mark_ready(self) -> None:
        async with self._lock:
            was_ready = self.is_ready
            self._state = BridgeState.READY
            pending, self._pending = self._pending, []
            if not was_ready:
                log.info(f"[BRIDGE] renderer ready, flushing {len(pending)} queued command(s)")
            for command in pending:
                await self._dispatch(command)

    def _handle_line_click(self, event: LineClicked) -> None:
        self._notify(self.on_line_click, event.line, event.side)

        if self.on_line_click_with_position is None:
            return
        pointer = self.pointer_location() if self.pointer_location is not None else None
        placed = self.position_for_click(event, pointer)
        if placed is None:
            log.debug(f"[BRIDGE] no position available for click on line {event.line}")
            return
        self._notify(self.on_line_click_with_position, *placed)

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            # Host callbacks must not break the renderer session
            log_bridge_error(f"running callback {getattr(callback, '__name__', callback)!r}", e)
