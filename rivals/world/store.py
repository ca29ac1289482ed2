"""File-backed repository for the PersistedState.

Precondition: a single writer per tick. The orchestrator schedules both
agents round-robin in one process; ``save`` additionally serializes writers
inside the process with a lock. A transactional store could replace this
class without touching callers, which only use ``load`` and ``save``.

Writes are atomic (temp file + rename) so an interrupted save leaves the
previous state intact.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..errors import StateCorruption
from .state import PersistedState

logger = logging.getLogger(__name__)


def _next_timestamp(previous: str | None) -> str:
    """Current UTC time, nudged forward so it is strictly after ``previous``."""
    now = datetime.now(timezone.utc)
    if previous:
        try:
            last = datetime.fromisoformat(previous)
        except ValueError:
            last = None
        if last is not None and last.tzinfo is not None and now <= last:
            now = last + timedelta(microseconds=1)
    return now.isoformat()


class StateRepository:
    """Loads and overwrites one JSON state file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._last_written: str | None = None

    def load(self) -> PersistedState | None:
        """Return the stored state, or None when absent or unreadable.

        A file that exists but does not parse is logged as StateCorruption
        and treated as a cache miss.
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
            state = PersistedState.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            error = StateCorruption(f"Unreadable state file {self.path}: {e}")
            logger.warning("%s (treating as cache miss)", error.message)
            return None
        self._last_written = state.last_updated
        return state

    def save(self, state: PersistedState) -> None:
        """Overwrite the file with ``state`` and refresh its lastUpdated."""
        with self._lock:
            seen = [t for t in (self._last_written, state.last_updated) if t]
            state.last_updated = _next_timestamp(max(seen) if seen else None)

            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.path.with_name(self.path.name + ".tmp")
            with open(temp_file, "w") as f:
                json.dump(state.to_dict(), f, indent=2)
            os.replace(temp_file, self.path)
            self._last_written = state.last_updated
        logger.debug("Saved state to %s", self.path)
