"""Task Control Block (TCB) — a task's lifecycle record.

The TCB is what the scheduler and the syscall layer consult about a
task: which phase of its life it is in, the execution context the
context-switch code swaps in and out, when it first ran, and how many
times it has made each system call.

State machine::

    UNINIT → READY ⇄ RUNNING
       │       │        │
       └───────┴────────┴──→ EXITED

- **UNINIT** is only a placeholder for a slot nobody has set up yet.
  Building a TCB normally puts it straight into READY.
- **READY → RUNNING** (``turn_to_running``) is guarded, and stamps the
  start time on the very first entry only.
- **RUNNING → READY** (``turn_to_ready``) is guarded — yield or preemption.
- **→ EXITED** (``turn_to_exited``) works from any live state and is
  terminal.  Calling it on an already exited task does nothing.

A guarded transition from the wrong state raises ``TransitionError``
and leaves the TCB exactly as it was.

Status and info change together: every transition goes through one
method that checks the source state and writes the new state and any
info update in one step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

MAX_SYSCALL_NUM = 500
_SAVED_REGISTERS = 12


class TaskStatus(StrEnum):
    """Lifecycle states of a task."""

    UNINIT = "uninit"
    READY = "ready"
    RUNNING = "running"
    EXITED = "exited"


class TransitionError(RuntimeError):
    """Raised when a guarded transition is attempted from the wrong state."""


@dataclass(frozen=True)
class TaskContext:
    """Saved execution context of a task.

    The core never looks inside; it only stores the context and hands it
    to the context-switch code.  The fields mirror what a switch routine
    saves: return address, stack pointer and the callee-saved registers.
    """

    return_address: int = 0
    stack_pointer: int = 0
    saved: tuple[int, ...] = (0,) * _SAVED_REGISTERS

    @classmethod
    def goto_entry(cls, entry: int, stack_pointer: int) -> TaskContext:
        """Build a context that starts executing at *entry* on a fresh stack."""
        return cls(return_address=entry, stack_pointer=stack_pointer)


@dataclass
class TaskInfo:
    """Per-task accounting carried through every state.

    Attributes:
        context: Saved execution context.
        start_time: Millisecond timestamp of the first dispatch (0 = never).
        syscall_times: Call count per syscall number.

    """

    context: TaskContext = field(default_factory=TaskContext)
    start_time: int = 0
    syscall_times: list[int] = field(default_factory=lambda: [0] * MAX_SYSCALL_NUM)

    def sys_call_inc(self, syscall_id: int) -> bool:
        """Count one call of *syscall_id*; False if it is outside the table."""
        if not 0 <= syscall_id < len(self.syscall_times):
            return False
        self.syscall_times[syscall_id] += 1
        return True


@dataclass(frozen=True)
class TaskStats:
    """What the task-info syscall reports back to user space.

    Attributes:
        status: Current lifecycle state.
        syscall_times: Call count per syscall number.
        time: Milliseconds since the task first ran (0 if it never has).

    """

    status: TaskStatus
    syscall_times: tuple[int, ...]
    time: int


class TaskControlBlock:
    """Lifecycle record for one task slot."""

    def __init__(
        self,
        *,
        task_id: int,
        context: TaskContext | None = None,
        status: TaskStatus = TaskStatus.READY,
    ) -> None:
        """Create a TCB, READY unless asked for a placeholder.

        Args:
            task_id: The id of the task this record belongs to.
            context: Initial execution context (zeroed if omitted).
            status: READY for a usable task, UNINIT for a placeholder.

        Raises:
            ValueError: If *status* is neither READY nor UNINIT.

        """
        if status not in (TaskStatus.READY, TaskStatus.UNINIT):
            msg = f"A new task starts ready or uninit, not {status}"
            raise ValueError(msg)
        self._task_id = task_id
        self._status = status
        self._info = TaskInfo(context=context or TaskContext())

    @classmethod
    def placeholder(cls, task_id: int) -> TaskControlBlock:
        """Return an UNINIT record for a slot that is not set up yet."""
        return cls(task_id=task_id, status=TaskStatus.UNINIT)

    @property
    def task_id(self) -> int:
        """Return the task id."""
        return self._task_id

    @property
    def status(self) -> TaskStatus:
        """Return the current lifecycle state."""
        return self._status

    @property
    def start_time(self) -> int:
        """Return the first-dispatch timestamp in ms (0 = never ran)."""
        return self._info.start_time

    @property
    def context(self) -> TaskContext:
        """Return the saved execution context."""
        return self._info.context

    def is_ready(self) -> bool:
        """Return True if the task can be picked by the scheduler."""
        return self._status is TaskStatus.READY

    def is_live(self) -> bool:
        """Return True while the task is READY or RUNNING."""
        return self._status in (TaskStatus.READY, TaskStatus.RUNNING)

    def swap_context(self, context: TaskContext) -> TaskContext:
        """Store *context* and return the one it replaces."""
        previous = self._info.context
        self._info.context = context
        return previous

    def info(self) -> TaskInfo | None:
        """Return a copy of the task's info while it is live, else None."""
        if not self.is_live():
            return None
        return TaskInfo(
            context=self._info.context,
            start_time=self._info.start_time,
            syscall_times=list(self._info.syscall_times),
        )

    def syscall_count(self, syscall_id: int) -> int:
        """Return how many times *syscall_id* has been counted."""
        if not 0 <= syscall_id < len(self._info.syscall_times):
            return 0
        return self._info.syscall_times[syscall_id]

    def stats(self, now_ms: int) -> TaskStats:
        """Build the user-visible report as of *now_ms*."""
        start = self._info.start_time
        return TaskStats(
            status=self._status,
            syscall_times=tuple(self._info.syscall_times),
            time=now_ms - start if start else 0,
        )

    def _transition(self, action: str, expected: TaskStatus, target: TaskStatus) -> None:
        """Move from *expected* to *target* or raise without touching state.

        Raises:
            TransitionError: If the task is not in the expected state.

        """
        if self._status is not expected:
            msg = f"Cannot {action}: task {self._task_id} is {self._status}, expected {expected}"
            raise TransitionError(msg)
        self._status = target

    def turn_to_running(self, now_ms: int) -> None:
        """Transition READY → RUNNING, stamping the start time once.

        Args:
            now_ms: Current time in milliseconds (must be positive).

        Raises:
            ValueError: If *now_ms* is not positive; 0 means "never ran".
            TransitionError: If the task is not READY.

        """
        if now_ms <= 0:
            msg = f"Dispatch time must be positive, got {now_ms}"
            raise ValueError(msg)
        self._transition("run", TaskStatus.READY, TaskStatus.RUNNING)
        if self._info.start_time == 0:
            self._info.start_time = now_ms

    def turn_to_ready(self) -> None:
        """Transition RUNNING → READY (yield or preemption)."""
        self._transition("suspend", TaskStatus.RUNNING, TaskStatus.READY)

    def turn_to_exited(self) -> None:
        """Move to EXITED from any state; a no-op if already exited."""
        self._status = TaskStatus.EXITED

    def sys_call_inc(self, syscall_id: int) -> bool:
        """Count a syscall made by a live task.

        Returns:
            False (and counts nothing) if the task is not READY or
            RUNNING, or *syscall_id* is outside the counter table.

        """
        if not self.is_live():
            return False
        return self._info.sys_call_inc(syscall_id)

    def reset(self, context: TaskContext | None = None) -> None:
        """Make the slot a fresh READY task: counters, start time, context."""
        self._info = TaskInfo(context=context or TaskContext())
        self._status = TaskStatus.READY

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"TaskControlBlock(task_id={self._task_id}, status={self._status})"
