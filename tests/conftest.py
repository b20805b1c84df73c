import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Callable

import pytest

# Ensure local src path is importable
_here = os.path.dirname(os.path.dirname(__file__))
_src = os.path.join(_here, "src")
if os.path.isdir(_src) and _src not in sys.path:
    sys.path.insert(0, _src)

from pierre_diffs.net.geometry import Rect  # noqa: E402
from pierre_diffs.utils.error_handling import TransportError  # noqa: E402


class FakeTransport:
    """Records every command frame a bridge sends."""

    def __init__(self, fail: bool = False, yield_on_send: bool = False):
        self.fail = fail
        self.yield_on_send = yield_on_send
        self.sent: list[dict] = []

    async def send(self, message: str) -> None:
        if self.yield_on_send:
            await asyncio.sleep(0)
        if self.fail:
            raise TransportError("renderer went away")
        self.sent.append(json.loads(message))

    @property
    def command_names(self) -> list[str]:
        return [frame["command"] for frame in self.sent]


class FakeSurface:
    """A renderer surface at a fixed place in a fixed window."""

    def __init__(self, frame: Rect | None = Rect(10, 20, 400, 300), window: Rect | None = Rect(100, 50, 800, 600)):
        self.frame = frame
        self.window = window

    def frame_in_window(self) -> Rect | None:
        return self.frame

    def window_frame_on_screen(self) -> Rect | None:
        return self.window


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[..., str]:
    """Factory writing a file under tmp_path and returning its path as a string."""

    def _write(name: str, content: str | bytes) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def detached_surface() -> FakeSurface:
    return FakeSurface(frame=None, window=None)


@pytest.fixture
def make_transport() -> Callable[..., FakeTransport]:
    return FakeTransport


@pytest.fixture
def make_surface() -> Callable[..., FakeSurface]:
    return FakeSurface
