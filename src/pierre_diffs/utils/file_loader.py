"""Bounded-concurrency, cancellable file loading.

``FileLoader.load`` reads a set of paths as UTF-8 text. Paths are split into
batches of at most ``max_concurrency``; reads within a batch run concurrently
on the default executor and batches run one after another, which keeps the
number of open descriptors bounded on bulk multi-edit operations.

Each loader instance is single-flight: starting a new load cancels the one in
flight, and the superseded caller gets ``LoadCancelledError`` instead of a
(possibly stale) result. A load either returns every requested path or raises.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Protocol, Sequence, TypeVar, runtime_checkable

from .config import config
from .error_handling import InvalidEncodingError, LoadCancelledError, LoadError, NoPathsError, ReadError
from .logger import log

T = TypeVar("T")


@runtime_checkable
class FileDataReader(Protocol):
    """Collaborator interface for anything that can supply file contents."""

    @property
    def project_path(self) -> str | None:
        """Base directory for relative paths (informational only)."""
        ...

    async def read_file_content(self, paths: Iterable[str], max_tasks: int = 10) -> dict[str, str]:
        ...

    def cancel_current_task(self) -> None:
        ...


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive chunks of at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"chunk size must be at least 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def read_utf8_file(path: str) -> str:
    """Read a whole file and decode it as strict UTF-8.

    Raises:
        ReadError: If the file cannot be opened or read, or the path is unusable
        InvalidEncodingError: If the bytes are not valid UTF-8
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except (OSError, ValueError) as e:
        # ValueError: paths open() rejects outright, such as embedded NUL
        raise ReadError(path, e) from e

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidEncodingError(path) from e


class FileLoader:
    """Single-flight loader mapping file paths to their text contents."""

    def __init__(self, project_path: str | None = None, max_concurrency: int | None = None):
        self._project_path = project_path
        self.max_concurrency = config.max_concurrency if max_concurrency is None else max_concurrency
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        self._current_task: asyncio.Future | None = None
        self._generation = 0

    @property
    def project_path(self) -> str | None:
        return self._project_path

    @property
    def is_loading(self) -> bool:
        """True while a load started on this instance is still running."""
        return self._current_task is not None and not self._current_task.done()

    async def load(self, paths: Iterable[str], max_concurrency: int | None = None) -> dict[str, str]:
        """Load every path in ``paths`` and return a path -> content mapping.

        Args:
            paths: Paths to read; duplicates are read once
            max_concurrency: Batch size override for this call

        Returns:
            Mapping of each requested path to its decoded text

        Raises:
            NoPathsError: If ``paths`` is empty
            ReadError: If any file cannot be read
            InvalidEncodingError: If any file is not valid UTF-8
            LoadCancelledError: If this load was cancelled or superseded
        """
        ordered = list(dict.fromkeys(paths))
        if not ordered:
            raise NoPathsError()

        limit = self.max_concurrency if max_concurrency is None else max_concurrency
        if limit < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {limit}")

        # Latest call wins
        self.cancel()
        self._generation += 1
        generation = self._generation

        task = asyncio.ensure_future(self._load_batches(ordered, limit))
        self._current_task = task
        try:
            results = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                log.debug(f"[LOADER] load of {len(ordered)} file(s) superseded")
                raise LoadCancelledError() from None
            raise
        except LoadError as e:
            log.debug(f"[LOADER] load failed for {e.path}: {e}")
            raise
        finally:
            if self._current_task is task:
                self._current_task = None

        # A newer load started while this result was on its way back
        if generation != self._generation:
            log.debug(f"[LOADER] dropping stale result for {len(ordered)} file(s)")
            raise LoadCancelledError("File loading was superseded by a newer request")

        return results

    def cancel(self) -> None:
        """Cancel the in-flight load, if any. Safe to call repeatedly."""
        task = self._current_task
        self._current_task = None
        if task is not None and not task.done():
            self._generation += 1
            task.cancel()
            log.debug("[LOADER] cancelled in-flight load")

    async def read_file_content(self, paths: Iterable[str], max_tasks: int = 10) -> dict[str, str]:
        """``FileDataReader`` spelling of :meth:`load`."""
        return await self.load(paths, max_tasks)

    def cancel_current_task(self) -> None:
        """``FileDataReader`` spelling of :meth:`cancel`."""
        self.cancel()

    async def _load_batches(self, paths: list[str], limit: int) -> dict[str, str]:
        batches = chunked(paths, limit)
        log.debug(f"[LOADER] reading {len(paths)} file(s) in {len(batches)} batch(es), max {limit} at once")

        results: dict[str, str] = {}
        for batch in batches:
            results.update(await self._load_batch(batch))
        return results

    async def _load_batch(self, batch: list[str]) -> dict[str, str]:
        loop = asyncio.get_running_loop()
        futures = [loop.run_in_executor(None, read_utf8_file, path) for path in batch]
        try:
            contents = await asyncio.gather(*futures)
        except (LoadError, asyncio.CancelledError):
            _abandon(futures)
            raise
        return dict(zip(batch, contents))


def _abandon(futures: list[asyncio.Future]) -> None:
    """Cancel unfinished reads and mark finished failures as retrieved."""
    for future in futures:
        if not future.done():
            future.cancel()
        elif not future.cancelled():
            future.exception()
