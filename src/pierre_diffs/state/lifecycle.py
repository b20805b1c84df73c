"""User disposition (applied / rejected) of diff groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DiffLifecycleState:
    """Tracks which diff groups the user applied or rejected, and when.

    Hosts own and mutate this; the pipeline only reads it to choose between
    a compact status line and the full diff.
    """

    applied_group_ids: set[str] = field(default_factory=set)
    rejected_group_ids: set[str] = field(default_factory=set)
    applied_timestamps: dict[str, datetime] = field(default_factory=dict)
    rejected_timestamps: dict[str, datetime] = field(default_factory=dict)
    last_modified: datetime = field(default_factory=_now)

    def mark_applied(self, group_id: str, when: Optional[datetime] = None) -> None:
        """Record ``group_id`` as applied, clearing any earlier rejection."""
        when = when or _now()
        self.rejected_group_ids.discard(group_id)
        self.rejected_timestamps.pop(group_id, None)
        self.applied_group_ids.add(group_id)
        self.applied_timestamps[group_id] = when
        self.last_modified = when

    def mark_rejected(self, group_id: str, when: Optional[datetime] = None) -> None:
        """Record ``group_id`` as rejected, clearing any earlier application."""
        when = when or _now()
        self.applied_group_ids.discard(group_id)
        self.applied_timestamps.pop(group_id, None)
        self.rejected_group_ids.add(group_id)
        self.rejected_timestamps[group_id] = when
        self.last_modified = when

    def is_applied(self, group_id: str) -> bool:
        return group_id in self.applied_group_ids

    def is_rejected(self, group_id: str) -> bool:
        return group_id in self.rejected_group_ids

    @property
    def has_applied(self) -> bool:
        return bool(self.applied_group_ids)

    @property
    def first_applied_at(self) -> Optional[datetime]:
        """Earliest application time, if any group was applied."""
        if not self.applied_timestamps:
            return None
        return min(self.applied_timestamps.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "appliedDiffGroupIDs": sorted(self.applied_group_ids),
            "rejectedDiffGroupIDs": sorted(self.rejected_group_ids),
            "appliedTimestamps": {k: v.isoformat() for k, v in self.applied_timestamps.items()},
            "rejectedTimestamps": {k: v.isoformat() for k, v in self.rejected_timestamps.items()},
            "lastModified": self.last_modified.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiffLifecycleState:
        last_modified = data.get("lastModified")
        return cls(
            applied_group_ids=set(data.get("appliedDiffGroupIDs", [])),
            rejected_group_ids=set(data.get("rejectedDiffGroupIDs", [])),
            applied_timestamps={
                k: datetime.fromisoformat(v) for k, v in data.get("appliedTimestamps", {}).items()
            },
            rejected_timestamps={
                k: datetime.fromisoformat(v) for k, v in data.get("rejectedTimestamps", {}).items()
            },
            last_modified=datetime.fromisoformat(last_modified) if last_modified else _now(),
        )
