"""Tests for the syscall table.

Every call through ``dispatch_syscall`` is counted against the running
task before it is routed.  Failures surface as ``SyscallError`` with an
``errno`` the trap layer can hand back to user space.
"""

import pytest

from py_taskcore.clock import ManualClock, TimeVal
from py_taskcore.manager import TaskManager
from py_taskcore.process.tcb import TaskStatus
from py_taskcore.syscalls import (
    EDEADLK_CODE,
    EINVAL_CODE,
    EUNAVAIL_CODE,
    SyscallError,
    SyscallNumber,
    dispatch_syscall,
)

START_US = 3_000_000
STEP_MS = 40
UNKNOWN_SYSCALL = 999


def _running_manager() -> tuple[TaskManager, ManualClock, int]:
    """Create a manager with one task already running."""
    clock = ManualClock(start_us=START_US)
    manager = TaskManager(clock=clock)
    task = manager.spawn()
    manager.run(task)
    return manager, clock, task


class TestDispatch:
    """Verify routing and counting."""

    def test_unknown_syscall(self) -> None:
        """An unknown number is rejected with EINVAL."""
        manager, _, _ = _running_manager()
        with pytest.raises(SyscallError, match="Unknown syscall") as excinfo:
            dispatch_syscall(manager, UNKNOWN_SYSCALL)  # type: ignore[arg-type]
        assert excinfo.value.errno == EINVAL_CODE

    def test_calls_are_counted(self) -> None:
        """Each dispatch bumps the running task's counter for that number."""
        manager, _, task = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_GET_TIME)
        dispatch_syscall(manager, SyscallNumber.SYS_GET_TIME)
        stats = dispatch_syscall(manager, SyscallNumber.SYS_TASK_INFO)
        assert stats.syscall_times[SyscallNumber.SYS_GET_TIME] == 2
        assert stats.syscall_times[SyscallNumber.SYS_TASK_INFO] == 1
        assert manager.tcb(task).syscall_count(SyscallNumber.SYS_YIELD) == 0

    def test_dispatch_logged(self) -> None:
        """Every syscall leaves a DEBUG entry naming it."""
        manager, _, task = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_GET_TIME)
        entries = manager.logger.filter(source="syscall", task_id=task)
        assert [e.message for e in entries] == ["syscall SYS_GET_TIME"]


class TestLifecycleSyscalls:
    """Verify yield and exit."""

    def test_yield(self) -> None:
        """Yield returns the running task to READY."""
        manager, _, task = _running_manager()
        result = dispatch_syscall(manager, SyscallNumber.SYS_YIELD)
        assert result == {"task_id": task}
        assert manager.tcb(task).status is TaskStatus.READY
        assert manager.current is None

    def test_yield_when_idle(self) -> None:
        """Yield with no running task is an error."""
        manager = TaskManager(clock=ManualClock())
        with pytest.raises(SyscallError, match="no task is running"):
            dispatch_syscall(manager, SyscallNumber.SYS_YIELD)

    def test_exit(self) -> None:
        """Exit moves the running task to EXITED."""
        manager, _, task = _running_manager()
        result = dispatch_syscall(manager, SyscallNumber.SYS_EXIT, exit_code=3)
        assert result == {"task_id": task, "exit_code": 3}
        assert manager.tcb(task).status is TaskStatus.EXITED


class TestTimeSyscalls:
    """Verify get-time and task-info."""

    def test_get_time(self) -> None:
        """Get-time returns seconds and microseconds."""
        manager, clock, _ = _running_manager()
        clock.tick(us=42)
        assert dispatch_syscall(manager, SyscallNumber.SYS_GET_TIME) == TimeVal(sec=3, usec=42)

    def test_task_info(self) -> None:
        """Task-info reports status and time since first dispatch."""
        manager, clock, _ = _running_manager()
        clock.tick(ms=STEP_MS)
        stats = dispatch_syscall(manager, SyscallNumber.SYS_TASK_INFO)
        assert stats.status is TaskStatus.RUNNING
        assert stats.time == STEP_MS

    def test_task_info_for_other_task(self) -> None:
        """An explicit task id can be queried."""
        manager, _, _ = _running_manager()
        other = manager.spawn()
        stats = dispatch_syscall(manager, SyscallNumber.SYS_TASK_INFO, task_id=other)
        assert stats.status is TaskStatus.READY
        assert stats.time == 0

    def test_task_info_unknown(self) -> None:
        """Querying a task that does not exist fails."""
        manager, _, _ = _running_manager()
        with pytest.raises(SyscallError, match="not found"):
            dispatch_syscall(manager, SyscallNumber.SYS_TASK_INFO, task_id=42)


class TestResourceSyscalls:
    """Verify resource syscalls and their error codes."""

    def test_create_and_acquire(self) -> None:
        """Acquire returns how many units the task now holds."""
        manager, _, task = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=3)
        held = dispatch_syscall(
            manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="sem", amount=2
        )
        assert held == 2
        assert manager.ledger.allocated(task, "sem") == 2

    def test_create_duplicate(self) -> None:
        """Creating the same identity twice fails."""
        manager, _, _ = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=1)
        with pytest.raises(SyscallError, match="already exists"):
            dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=1)

    def test_acquire_unavailable(self) -> None:
        """Not enough free units maps to EUNAVAIL."""
        manager, _, _ = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=1)
        with pytest.raises(SyscallError) as excinfo:
            dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="sem", amount=2)
        assert excinfo.value.errno == EUNAVAIL_CODE

    def test_acquire_would_deadlock(self) -> None:
        """A refusal by admission control maps to EDEADLK."""
        manager, _, task = _running_manager()
        other = manager.spawn()
        manager.create_resource("R", 4)
        manager.ledger.declare_max(task, "R", 4)
        manager.ledger.declare_max(other, "R", 4)
        manager.ledger.request(other, "R", 2)
        with pytest.raises(SyscallError, match="deadlock") as excinfo:
            dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="R")
        assert excinfo.value.errno == EDEADLK_CODE

    def test_disable_detection_allows_unsafe(self) -> None:
        """With detection disabled the same request goes through."""
        manager, _, task = _running_manager()
        other = manager.spawn()
        manager.create_resource("R", 4)
        manager.ledger.declare_max(task, "R", 4)
        manager.ledger.declare_max(other, "R", 4)
        manager.ledger.request(other, "R", 2)
        dispatch_syscall(manager, SyscallNumber.SYS_ENABLE_DEADLOCK_DETECT, enabled=False)
        assert dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="R") == 1

    def test_acquire_unknown_resource(self) -> None:
        """An unknown identity maps to EINVAL."""
        manager, _, _ = _running_manager()
        with pytest.raises(SyscallError) as excinfo:
            dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="ghost")
        assert excinfo.value.errno == EINVAL_CODE

    def test_release(self) -> None:
        """Release returns what the task still holds."""
        manager, _, _ = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=3)
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="sem", amount=3)
        held = dispatch_syscall(
            manager, SyscallNumber.SYS_RESOURCE_RELEASE, identity="sem", amount=2
        )
        assert held == 1
        assert manager.ledger.available("sem") == 2

    def test_release_too_much(self) -> None:
        """Releasing more than is held fails."""
        manager, _, _ = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=3)
        with pytest.raises(SyscallError, match="cannot release"):
            dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_RELEASE, identity="sem")

    def test_destroy(self) -> None:
        """Destroying an unknown resource fails; a known one succeeds."""
        manager, _, _ = _running_manager()
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=1)
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_DESTROY, identity="sem")
        with pytest.raises(SyscallError, match="not found"):
            dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_DESTROY, identity="sem")

    def test_acquire_with_no_running_task(self) -> None:
        """Without a running task there is no caller."""
        manager = TaskManager(clock=ManualClock())
        manager.create_resource("sem", 1)
        with pytest.raises(SyscallError, match="No task is running"):
            dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="sem")

    def test_resource_calls_act_for_running_task(self) -> None:
        """Acquire and release always charge the running task."""
        manager, _, task = _running_manager()
        other = manager.spawn()
        manager.create_resource("sem", 3)
        dispatch_syscall(
            manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="sem", task_id=other
        )
        assert manager.ledger.allocated(task, "sem") == 1
        assert manager.ledger.allocated(other, "sem") == 0

    def test_acquire_cannot_name_another_task(self) -> None:
        """With nobody running, naming a task does not make it the caller."""
        manager = TaskManager(clock=ManualClock())
        other = manager.spawn()
        manager.create_resource("sem", 1)
        with pytest.raises(SyscallError, match="No task is running"):
            dispatch_syscall(
                manager, SyscallNumber.SYS_RESOURCE_ACQUIRE, identity="sem", task_id=other
            )
        assert manager.ledger.allocated(other, "sem") == 0

    def test_repeated_acquire_release(self) -> None:
        """Cycling one unit never turns into a deadlock refusal."""
        manager, _, task = _running_manager()
        total = 4
        dispatch_syscall(manager, SyscallNumber.SYS_RESOURCE_CREATE, identity="sem", total=total)
        acquire, release = SyscallNumber.SYS_RESOURCE_ACQUIRE, SyscallNumber.SYS_RESOURCE_RELEASE
        for _ in range(total + 2):
            assert dispatch_syscall(manager, acquire, identity="sem") == 1
            assert dispatch_syscall(manager, release, identity="sem") == 0
        assert manager.ledger.maximum(task, "sem") == 1
