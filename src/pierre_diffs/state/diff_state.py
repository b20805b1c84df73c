"""Diff results and the per-message diff cache."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, ClassVar, Hashable, Iterable

from pierre_diffs.utils.logger import log


@dataclass(frozen=True)
class DiffResult:
    """Before/after text for one file touched by a tool invocation."""

    file_path: str
    file_name: str
    original: str
    updated: str
    is_initial: bool = False

    INITIAL: ClassVar[DiffResult]

    @classmethod
    def direct(cls, original: str, updated: str, file_name: str) -> DiffResult:
        """Build a result from texts the host already holds."""
        return cls(file_path=file_name, file_name=file_name, original=original, updated=updated)

    @classmethod
    def creation(cls, file_path: str, content: str) -> DiffResult:
        """Result for a file that does not exist yet."""
        return cls(file_path=file_path, file_name=file_path, original="", updated=content)

    @property
    def is_creation(self) -> bool:
        return not self.is_initial and self.original == "" and self.updated != ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "fileName": self.file_name,
            "original": self.original,
            "updated": self.updated,
            "isInitial": self.is_initial,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiffResult:
        return cls(
            file_path=data["filePath"],
            file_name=data["fileName"],
            original=data["original"],
            updated=data["updated"],
            is_initial=bool(data.get("isInitial", False)),
        )


DiffResult.INITIAL = DiffResult(file_path="", file_name="", original="", updated="", is_initial=True)


@dataclass(frozen=True)
class DiffState:
    """What the cache hands out for a message: a result plus derived flags."""

    diff_result: DiffResult

    EMPTY: ClassVar[DiffState]

    @property
    def has_content(self) -> bool:
        result = self.diff_result
        return not result.is_initial and bool(result.original or result.updated)

    @property
    def is_empty(self) -> bool:
        return self.diff_result.is_initial


DiffState.EMPTY = DiffState(DiffResult.INITIAL)


class DiffStateCache:
    """Latest diff result per message key.

    Writes are serialized with an ``asyncio.Lock``. Only the first result of a
    batch is kept; multi-file tool responses are not modelled as multi-file
    diffs.
    """

    def __init__(self):
        self._states: dict[Hashable, DiffState] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._states

    @property
    def state_count(self) -> int:
        return len(self._states)

    def get(self, key: Hashable) -> DiffState:
        """Return the state for ``key``, or ``DiffState.EMPTY`` when absent."""
        return self._states.get(key, DiffState.EMPTY)

    async def put(self, results: Iterable[DiffResult], key: Hashable) -> bool:
        """Store the first of ``results`` under ``key``.

        Returns:
            True if the stored state changed, False for an empty batch or an
            unchanged original/updated pair (the stored state is left as is)
        """
        first = next(iter(results), None)
        if first is None:
            return False

        async with self._lock:
            existing = self._states.get(key)
            if (
                existing is not None
                and existing.diff_result.original == first.original
                and existing.diff_result.updated == first.updated
            ):
                log.debug(f"[CACHE] unchanged diff for {key}, skipping update")
                return False

            self._states[key] = DiffState(first)
            log.debug(f"[CACHE] stored diff for {key} ({first.file_path})")
            return True

    def remove(self, key: Hashable) -> None:
        """Drop the entry for ``key``; no-op if absent."""
        self._states.pop(key, None)

    def clear(self) -> None:
        self._states.clear()
