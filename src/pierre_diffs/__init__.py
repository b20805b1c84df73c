"""pierre-diffs: before/after diffs for automated file edits.

Tool payloads (Edit, MultiEdit, Write) are turned into ``DiffResult`` values
by reading the original file and replaying the edits; results are cached per
message and pushed to an external renderer through a readiness-gated bridge.
"""

from __future__ import annotations

__version__ = "0.1.0"
