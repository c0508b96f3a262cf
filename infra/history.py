"""
Execution History
-----------------
Per-user record of dispatched commands.

Rules:
- Newest entry first
- Fixed size per user, oldest evicted
- In memory only: lost on restart
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Optional
import time


class ExecutionStatus(str, Enum):
    """Lifecycle status of a dispatched command."""
    PENDING = "pending"
    EXECUTING = "executing"
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class HistoryEntry:
    """A single command dispatch."""
    id: str
    command_id: str
    command_name: str
    status: ExecutionStatus
    output: Optional[str] = None
    error: Optional[str] = None
    start_time: int = field(default_factory=_now_ms)
    end_time: Optional[int] = None
    duration: Optional[int] = None
    timestamp: int = field(default_factory=_now_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "command_id": self.command_id,
            "command_name": self.command_name,
            "status": self.status.value,
            "output": self.output,
            "error": self.error,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class HistoryStats:
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    pending_executions: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_executions": self.total_executions,
            "successful_executions": self.successful_executions,
            "failed_executions": self.failed_executions,
            "pending_executions": self.pending_executions,
        }


_UPDATABLE = {f.name for f in fields(HistoryEntry)} - {"id"}


class HistoryStore:
    """
    In-memory execution history keyed by user.
    Thread-safe.
    """

    DEFAULT_MAX_PER_USER = 100

    def __init__(self, max_per_user: int = DEFAULT_MAX_PER_USER):
        self.max_per_user = max_per_user
        self._entries: Dict[str, List[HistoryEntry]] = {}
        self._lock = Lock()

    def save(self, user: str, entry: HistoryEntry) -> None:
        """Add an entry at the front, evicting the oldest past the cap."""
        with self._lock:
            history = self._entries.setdefault(user, [])
            history.insert(0, entry)
            del history[self.max_per_user:]

    def list(self, user: str, limit: int = 50) -> List[HistoryEntry]:
        """Most recent entries first."""
        with self._lock:
            return list(self._entries.get(user, [])[:max(0, limit)])

    def get(self, user: str, entry_id: str) -> Optional[HistoryEntry]:
        with self._lock:
            for entry in self._entries.get(user, []):
                if entry.id == entry_id:
                    return entry
            return None

    def update(self, user: str, entry_id: str, **changes) -> bool:
        """
        Replace fields of an entry. The id cannot change.
        Returns False if the entry does not exist.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        with self._lock:
            history = self._entries.get(user, [])
            for index, entry in enumerate(history):
                if entry.id == entry_id:
                    history[index] = replace(entry, **changes)
                    return True
            return False

    def delete(self, user: str, entry_id: str) -> bool:
        with self._lock:
            history = self._entries.get(user, [])
            for index, entry in enumerate(history):
                if entry.id == entry_id:
                    del history[index]
                    return True
            return False

    def clear(self, user: str) -> int:
        """Remove all history for a user. Returns number removed."""
        with self._lock:
            return len(self._entries.pop(user, []))

    def stats(self, user: str) -> HistoryStats:
        with self._lock:
            history = self._entries.get(user, [])
            return HistoryStats(
                total_executions=len(history),
                successful_executions=sum(1 for h in history if h.status == ExecutionStatus.SUCCESS),
                failed_executions=sum(1 for h in history if h.status == ExecutionStatus.ERROR),
                pending_executions=sum(1 for h in history if h.status == ExecutionStatus.PENDING),
            )
