"""The task manager — the object the syscall layer is handed.

A kernel needs one place that knows about every task and every
resource.  Rather than a module-level global, the manager is built
explicitly (once, at boot) and passed into whatever needs it — the
syscall dispatcher, the scheduler loop, a test.

It owns:
    - **ResourceLedger** — Banker's bookkeeping and admission control.
    - **TaskControlBlock table** — one lifecycle record per task id.
    - **Clock** — stamps start times and answers get-time.
    - **Logger** — audit trail of what the core decided.

Scheduling *policy* (which ready task runs next) is not decided here;
the manager only tracks which task is current and enforces that the
lifecycle transitions are legal.

Every method runs to completion without blocking.  When a resource
cannot be granted the manager says so and the caller decides whether to
retry, park the task, or fail it.
"""

from collections.abc import Hashable
from enum import StrEnum

from py_taskcore.clock import Clock, MonotonicClock, TimeVal
from py_taskcore.logging import Logger, LogLevel
from py_taskcore.process.tcb import (
    TaskContext,
    TaskControlBlock,
    TaskStats,
    TaskStatus,
    TransitionError,
)
from py_taskcore.sync.ledger import ResourceLedger


class Admission(StrEnum):
    """Outcome of a resource acquisition attempt."""

    GRANTED = "granted"
    INVALID = "invalid"
    UNAVAILABLE = "unavailable"
    UNSAFE = "unsafe"


class TaskManager:
    """Coordinate task lifecycles and resource accounting."""

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        logger: Logger | None = None,
        deadlock_detection: bool = True,
    ) -> None:
        """Create a manager with no tasks and no resources.

        Args:
            clock: Time source (a fresh MonotonicClock if omitted).
            logger: Log buffer to write to (a fresh Logger if omitted).
            deadlock_detection: Run Banker's admission control on every
                acquisition.  When off, only availability is checked.

        """
        self._clock: Clock = clock or MonotonicClock()
        self._logger = logger or Logger()
        self._ledger = ResourceLedger()
        self._tasks: dict[int, TaskControlBlock] = {}
        self._current: int | None = None
        self._deadlock_detection = deadlock_detection

    @property
    def ledger(self) -> ResourceLedger:
        """Return the resource ledger."""
        return self._ledger

    @property
    def logger(self) -> Logger:
        """Return the log buffer."""
        return self._logger

    @property
    def clock(self) -> Clock:
        """Return the time source."""
        return self._clock

    @property
    def current(self) -> int | None:
        """Return the id of the running task, or None if the CPU is idle."""
        return self._current

    @property
    def deadlock_detection(self) -> bool:
        """Return whether acquisitions go through admission control."""
        return self._deadlock_detection

    @deadlock_detection.setter
    def deadlock_detection(self, enabled: bool) -> None:
        """Turn admission control on or off."""
        self._deadlock_detection = enabled
        state = "enabled" if enabled else "disabled"
        self._logger.log(LogLevel.INFO, f"Deadlock detection {state}", source="ledger")

    # -- Lifecycle -------------------------------------------------------------

    def spawn(self, context: TaskContext | None = None) -> int:
        """Create a READY task with a fresh ledger row and return its id."""
        task_id = self._ledger.create_task()
        self._tasks[task_id] = TaskControlBlock(task_id=task_id, context=context)
        self._logger.log(LogLevel.INFO, f"Task {task_id} spawned", source="task", task_id=task_id)
        return task_id

    def tcb(self, task_id: int) -> TaskControlBlock:
        """Return the control block for *task_id*.

        Raises:
            ValueError: If no such task was spawned.

        """
        tcb = self._tasks.get(task_id)
        if tcb is None:
            msg = f"Task {task_id} not found"
            raise ValueError(msg)
        return tcb

    def tasks(self) -> list[TaskControlBlock]:
        """Return every control block in id order."""
        return [self._tasks[task_id] for task_id in sorted(self._tasks)]

    def ready_tasks(self) -> list[int]:
        """Return ids of tasks the scheduler may pick."""
        return [t.task_id for t in self.tasks() if t.is_ready()]

    def run(self, task_id: int) -> None:
        """Dispatch a READY task and make it current.

        Raises:
            ValueError: If the task does not exist.
            TransitionError: If another task is running or the task is
                not READY.

        """
        tcb = self.tcb(task_id)
        if self._current is not None and self._current != task_id:
            msg = f"Cannot run task {task_id}: task {self._current} is running"
            raise TransitionError(msg)
        tcb.turn_to_running(self._clock.now_ms())
        self._current = task_id
        self._logger.log(LogLevel.DEBUG, f"Task {task_id} running", source="task", task_id=task_id)

    def suspend_current(self) -> int:
        """Move the running task back to READY and return its id.

        Raises:
            TransitionError: If no task is running.

        """
        task_id = self._require_current("suspend")
        self._tasks[task_id].turn_to_ready()
        self._current = None
        self._logger.log(
            LogLevel.DEBUG, f"Task {task_id} suspended", source="task", task_id=task_id
        )
        return task_id

    def exit_current(self, exit_code: int = 0) -> int:
        """Exit the running task, release its holdings, and return its id.

        Raises:
            TransitionError: If no task is running.

        """
        task_id = self._require_current("exit")
        self._finish(task_id)
        self._current = None
        self._logger.log(
            LogLevel.INFO,
            f"Task {task_id} exited with code {exit_code}",
            source="task",
            task_id=task_id,
        )
        return task_id

    def reap(self, task_id: int) -> bool:
        """Terminate *task_id* from any state and clear its ledger row.

        Returns:
            False if the task does not exist.

        """
        if task_id not in self._tasks:
            return False
        self._finish(task_id)
        self._ledger.destroy_task(task_id)
        if self._current == task_id:
            self._current = None
        self._logger.log(LogLevel.INFO, f"Task {task_id} reaped", source="task", task_id=task_id)
        return True

    def record_syscall(self, syscall_id: int) -> bool:
        """Count *syscall_id* against the running task.

        Returns:
            False if no task is running or the id is out of range.

        """
        if self._current is None:
            return False
        return self._tasks[self._current].sys_call_inc(syscall_id)

    def task_info(self, task_id: int) -> TaskStats:
        """Return the user-visible report for *task_id*.

        Raises:
            ValueError: If the task does not exist.

        """
        return self.tcb(task_id).stats(self._clock.now_ms())

    def get_time(self) -> TimeVal:
        """Return the current time as seconds and microseconds."""
        return TimeVal.from_us(self._clock.now_us())

    # -- Resources -------------------------------------------------------------

    def create_resource(self, identity: Hashable, total: int) -> int:
        """Register a resource and return its slot id.

        Raises:
            ValueError: If *identity* is already registered or *total*
                is negative.

        """
        if self._ledger.resource_id(identity) is not None:
            msg = f"Resource {identity!r} already exists"
            raise ValueError(msg)
        if total < 0:
            msg = f"Resource {identity!r} cannot have negative capacity {total}"
            raise ValueError(msg)
        slot = self._ledger.register(identity, total)
        self._logger.log(
            LogLevel.INFO,
            f"Resource {identity!r} registered (total={total}, slot={slot})",
            source="ledger",
        )
        return slot

    def destroy_resource(self, identity: Hashable) -> bool:
        """Unregister a resource; holders must have released it already."""
        removed = self._ledger.unregister(identity)
        if removed:
            self._logger.log(LogLevel.INFO, f"Resource {identity!r} unregistered", source="ledger")
        return removed

    def acquire(self, task_id: int, identity: Hashable, amount: int) -> Admission:
        """Admit and grant *amount* units of *identity* to a live task.

        With deadlock detection on, the request must pass Banker's
        admission control; otherwise only availability is checked.
        """
        tcb = self._tasks.get(task_id)
        slot = self._ledger.resource_id(identity)
        if tcb is None or not tcb.is_live() or slot is None or amount < 0:
            return Admission.INVALID
        if amount > self._ledger.available(identity):
            self._reject(task_id, identity, amount, Admission.UNAVAILABLE)
            return Admission.UNAVAILABLE
        if self._deadlock_detection and not self._ledger.try_admit(task_id, identity, amount):
            self._reject(task_id, identity, amount, Admission.UNSAFE)
            return Admission.UNSAFE
        self._ledger.grant(task_id, identity, amount)
        self._logger.log(
            LogLevel.DEBUG,
            f"Granted {amount} {identity!r} to task {task_id}",
            source="ledger",
            task_id=task_id,
        )
        return Admission.GRANTED

    def release(self, task_id: int, identity: Hashable, amount: int) -> bool:
        """Return *amount* units of *identity* held by *task_id*."""
        released = self._ledger.release(task_id, identity, amount)
        if released:
            self._logger.log(
                LogLevel.DEBUG,
                f"Task {task_id} released {amount} {identity!r}",
                source="ledger",
                task_id=task_id,
            )
        return released

    # -- Helpers ---------------------------------------------------------------

    def _require_current(self, action: str) -> int:
        """Return the running task id or raise."""
        if self._current is None:
            msg = f"Cannot {action}: no task is running"
            raise TransitionError(msg)
        return self._current

    def _finish(self, task_id: int) -> None:
        """Mark a task exited and hand everything it holds back."""
        tcb = self._tasks[task_id]
        if tcb.status is not TaskStatus.EXITED:
            tcb.turn_to_exited()
        self._ledger.release_all(task_id)

    def _reject(self, task_id: int, identity: Hashable, amount: int, reason: Admission) -> None:
        """Log a refused acquisition."""
        self._logger.log(
            LogLevel.WARNING,
            f"Refused {amount} {identity!r} to task {task_id}: {reason}",
            source="ledger",
            task_id=task_id,
        )
