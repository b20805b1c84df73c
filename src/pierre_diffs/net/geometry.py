"""Coordinate translation for overlays anchored to clicked diff lines.

Three spaces are involved:

- surface-local: origin at the top-left of the renderer surface, y grows down
  (the renderer reports line positions in this space);
- window: origin at the bottom-left of the host window, y grows up;
- screen: window space offset by the window's origin on screen.

Every conversion is a pure function of the two frames a ``SurfaceGeometry``
reports. When the surface is not attached to a window, conversions return
None instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class LineClickPosition:
    """A clicked line, positioned for placing floating UI beneath it."""

    line_number: int
    side: str
    line_y: float
    line_height: float


class SurfaceGeometry(Protocol):
    """Geometry the host exposes for the surface hosting the renderer.

    The bridge only holds a weak reference, so implementations must be
    weak-referenceable (slotted classes need a ``__weakref__`` slot).
    """

    def frame_in_window(self) -> Optional[Rect]:
        """The surface's frame in window coordinates, or None if detached."""
        ...

    def window_frame_on_screen(self) -> Optional[Rect]:
        """The window's frame in screen coordinates, or None if detached."""
        ...


def surface_to_window(surface: SurfaceGeometry, y: float, x: Optional[float] = None) -> Optional[Point]:
    """Convert a surface-local point to window coordinates.

    ``x`` defaults to the horizontal centre of the surface.
    """
    frame = surface.frame_in_window()
    if frame is None:
        return None
    local_x = frame.width / 2 if x is None else x
    return Point(frame.min_x + local_x, frame.max_y - y)


def window_to_surface(surface: SurfaceGeometry, point: Point) -> Optional[Point]:
    frame = surface.frame_in_window()
    if frame is None:
        return None
    return Point(point.x - frame.min_x, frame.max_y - point.y)


def window_to_screen(surface: SurfaceGeometry, point: Point) -> Optional[Point]:
    window = surface.window_frame_on_screen()
    if window is None:
        return None
    return Point(window.min_x + point.x, window.min_y + point.y)


def screen_to_window(surface: SurfaceGeometry, point: Point) -> Optional[Point]:
    window = surface.window_frame_on_screen()
    if window is None:
        return None
    return Point(point.x - window.min_x, point.y - window.min_y)


def surface_to_screen(surface: SurfaceGeometry, y: float, x: Optional[float] = None) -> Optional[Point]:
    in_window = surface_to_window(surface, y, x)
    if in_window is None:
        return None
    return window_to_screen(surface, in_window)


def screen_to_surface(surface: SurfaceGeometry, point: Point) -> Optional[Point]:
    in_window = screen_to_window(surface, point)
    if in_window is None:
        return None
    return window_to_surface(surface, in_window)
