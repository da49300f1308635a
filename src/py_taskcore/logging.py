"""Audit trail of the task core's decisions.

The task manager writes one entry for every decision it makes about a
task or a resource, so a test (or the web view) can answer "why was
task 3 refused?" without instrumenting the core.  Entries are kept in
memory, oldest first, until cleared.

Sources and what they record:

    ======== =========================================================
    source   events
    ======== =========================================================
    task     spawn (INFO), run / suspend (DEBUG), exit / reap (INFO)
    ledger   resource create / destroy and detection toggles (INFO),
             grants and releases (DEBUG), refused acquisitions (WARNING)
    syscall  every dispatched syscall, by name (DEBUG)
    ======== =========================================================

Each entry names the task it concerns; events about the core itself,
such as registering a resource, carry task id 0.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """How much an entry matters, lowest first."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """One recorded decision.

    Attributes:
        level: How much the event matters.
        message: What was decided, e.g. ``"Refused 1 'R' to task 2: unsafe"``.
        source: ``"task"``, ``"ledger"`` or ``"syscall"``.
        task_id: The task concerned (0 for the core itself).

    """

    level: LogLevel
    message: str
    source: str
    task_id: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """In-memory audit trail, queryable by level, source and task."""

    def __init__(self) -> None:
        """Create an empty trail."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return a copy of every entry, oldest first."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        task_id: int = 0,
    ) -> None:
        """Record an event about *task_id* (0 for the core itself)."""
        self._entries.append(LogEntry(level=level, message=message, source=source, task_id=task_id))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        task_id: int | None = None,
    ) -> list[LogEntry]:
        """Return the entries that pass every criterion given.

        Args:
            min_level: Drop entries below this level.
            source: Keep only entries from this source.
            task_id: Keep only entries about this task.

        Returns:
            Matching entries, oldest first.

        """
        return [
            e
            for e in self._entries
            if (min_level is None or e.level >= min_level)
            and (source is None or e.source == source)
            and (task_id is None or e.task_id == task_id)
        ]

    def clear(self) -> None:
        """Forget every entry."""
        self._entries.clear()
