"""Per-message diff processing for a host conversation view.

``DiffPipeline`` ties the loader, the edit engine and the cache together and
tracks, per message id, whether a diff is being built and what went wrong
last time. Hosts ask it which view to show with :meth:`DiffPipeline.view_mode`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Hashable, Mapping, Optional

from pierre_diffs.utils.edit_engine import DiffResultProcessor, EditTool, FileEditRequest, Payload, WriteRequest
from pierre_diffs.utils.error_handling import DiffError, InputError, LoadCancelledError, log_error_with_context
from pierre_diffs.utils.file_loader import FileLoader
from pierre_diffs.utils.logger import log

from .diff_state import DiffResult, DiffState, DiffStateCache
from .lifecycle import DiffLifecycleState

PROCESSING_FAILED = "Failed to process tool response"


class ViewMode(Enum):
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    COMPACT = "compact"
    DIFF = "diff"


@dataclass(frozen=True)
class CompactStatus:
    """One-line summary shown instead of the diff once changes are applied."""

    file_name: str
    applied_at: Optional[datetime]


class DiffPipeline:
    """Builds, caches and reports diffs keyed by message id.

    All messages share one loader, so starting a new read supersedes the one
    in flight; the superseded message ends quietly with no new state.
    """

    def __init__(
        self,
        loader: Optional[FileLoader] = None,
        cache: Optional[DiffStateCache] = None,
        project_path: Optional[str] = None,
        lenient_write_reads: Optional[bool] = None,
    ):
        self.loader = loader or FileLoader(project_path)
        self.cache = cache or DiffStateCache()
        self.processor = DiffResultProcessor(self.loader, lenient_write_reads)
        self._processing: set[Hashable] = set()
        self._errors: dict[Hashable, str] = {}

    def state_for(self, message_id: Hashable) -> DiffState:
        return self.cache.get(message_id)

    def is_processing(self, message_id: Hashable) -> bool:
        return message_id in self._processing

    def error_for(self, message_id: Hashable) -> Optional[str]:
        """The last user-facing error for ``message_id``, if any."""
        return self._errors.get(message_id)

    async def process(
        self,
        message_id: Hashable,
        tool: EditTool | str,
        payload: Payload | FileEditRequest | WriteRequest,
        force: bool = False,
    ) -> Optional[DiffState]:
        """Build and cache the diff for one tool invocation.

        Skipped when the cache already has content for ``message_id`` unless
        ``force`` is set.

        Returns:
            The cached state, or None when processing failed or was superseded
        """
        cached = self.cache.get(message_id)
        if cached.has_content and not force:
            log.debug(f"[PIPELINE] {message_id} already has a diff, skipping")
            return cached

        self._processing.add(message_id)
        try:
            result = await self.processor.build_result(payload, tool)
        except LoadCancelledError:
            log.debug(f"[PIPELINE] processing of {message_id} was superseded")
            return None
        except InputError as e:
            self._errors[message_id] = str(e)
            return None
        except DiffError as e:
            log_error_with_context("[PIPELINE] Failed to process tool response", e, {"message": message_id})
            self._errors[message_id] = PROCESSING_FAILED
            return None
        finally:
            self._processing.discard(message_id)

        return await self._store(message_id, result)

    async def process_parameters(
        self, message_id: Hashable, tool: EditTool | str, params: Mapping[str, str], force: bool = False
    ) -> Optional[DiffState]:
        """Like :meth:`process`, for the flat string parameter map of a tool call."""
        try:
            tool = EditTool.parse(tool)
            if tool is EditTool.WRITE:
                request = WriteRequest.from_tool_parameters(params)
            else:
                request = FileEditRequest.from_tool_parameters(params, tool)
        except InputError as e:
            log.warning(f"[PIPELINE] {message_id}: {e}")
            self._errors[message_id] = str(e)
            return None
        return await self.process(message_id, tool, request, force)

    async def process_direct(
        self, message_id: Hashable, original: str, updated: str, file_name: str
    ) -> DiffState:
        """Cache a diff between two texts the host already has."""
        return await self._store(message_id, DiffResult.direct(original, updated, file_name))

    async def _store(self, message_id: Hashable, result: DiffResult) -> DiffState:
        await self.cache.put([result], message_id)
        self._errors.pop(message_id, None)
        return self.cache.get(message_id)

    def view_mode(self, message_id: Hashable, lifecycle: Optional[DiffLifecycleState] = None) -> ViewMode:
        """Which view the host should show for ``message_id``.

        An error only wins when there is no cached diff to fall back on.
        """
        if message_id in self._processing:
            return ViewMode.LOADING

        state = self.cache.get(message_id)
        if not state.has_content:
            return ViewMode.ERROR if message_id in self._errors else ViewMode.EMPTY
        if lifecycle is not None and lifecycle.has_applied:
            return ViewMode.COMPACT
        return ViewMode.DIFF

    def compact_status(self, message_id: Hashable, lifecycle: DiffLifecycleState) -> Optional[CompactStatus]:
        state = self.cache.get(message_id)
        if not state.has_content:
            return None
        return CompactStatus(file_name=state.diff_result.file_name, applied_at=lifecycle.first_applied_at)

    def forget(self, message_id: Hashable) -> None:
        """Drop everything known about ``message_id``."""
        self.cache.remove(message_id)
        self._processing.discard(message_id)
        self._errors.pop(message_id, None)

    def reset(self) -> None:
        """Cancel any in-flight read and drop all cached state."""
        self.loader.cancel()
        self.cache.clear()
        self._processing.clear()
        self._errors.clear()
