"""System call table — how a trap handler talks to the task core.

Decoding the trap and copying arguments in and out of user memory
happen outside this package.  What is left is the routing:

1. ``SyscallNumber`` — the syscall ids the core understands.  IntEnum,
   so each member is also the plain int that indexes a task's
   syscall counter table.

2. ``SyscallError`` — the only exception a caller sees from a syscall.
   It carries an ``errno`` so the trap layer can hand a numeric code
   back to user space: ``EDEADLK_CODE`` when admission control refuses
   a request, ``EUNAVAIL_CODE`` when there simply are not enough units,
   ``EINVAL_CODE`` for everything else.

3. ``dispatch_syscall()`` — counts the call against the running task,
   logs it, and routes to the handler.  Handlers receive the task
   manager explicitly; there is no global to reach for.
"""

from enum import IntEnum
from typing import Any

from py_taskcore.clock import TimeVal
from py_taskcore.logging import LogLevel
from py_taskcore.manager import Admission, TaskManager
from py_taskcore.process.tcb import TaskStats, TransitionError

EINVAL_CODE = -1
EUNAVAIL_CODE = -2
EDEADLK_CODE = -0xDEAD


class SyscallNumber(IntEnum):
    """Enumerate every system call the core supports."""

    # Lifecycle operations
    SYS_EXIT = 93
    SYS_YIELD = 124

    # Time and accounting
    SYS_GET_TIME = 169
    SYS_TASK_INFO = 410

    # Resource operations
    SYS_ENABLE_DEADLOCK_DETECT = 469
    SYS_RESOURCE_CREATE = 470
    SYS_RESOURCE_DESTROY = 471
    SYS_RESOURCE_ACQUIRE = 472
    SYS_RESOURCE_RELEASE = 473


class SyscallError(Exception):
    """Raised when a system call fails.

    Attributes:
        errno: Numeric code for user space (one of the ``*_CODE`` constants).

    """

    def __init__(self, message: str, *, errno: int = EINVAL_CODE) -> None:
        """Create a syscall error with a message and an error code."""
        super().__init__(message)
        self.errno = errno


def dispatch_syscall(
    manager: TaskManager,
    number: SyscallNumber,
    **kwargs: Any,
) -> Any:
    """Dispatch a system call on behalf of the running task.

    The call is counted against the running task before routing, the
    same way a trap handler bumps the counter on entry.

    Args:
        manager: The task manager for this kernel.
        number: The syscall number identifying the operation.
        **kwargs: Arguments specific to the syscall.

    Returns:
        The syscall result (type depends on the operation).

    Raises:
        SyscallError: If the syscall fails or the number is unknown.

    """
    handlers: dict[SyscallNumber, Any] = {
        SyscallNumber.SYS_EXIT: _sys_exit,
        SyscallNumber.SYS_YIELD: _sys_yield,
        SyscallNumber.SYS_GET_TIME: _sys_get_time,
        SyscallNumber.SYS_TASK_INFO: _sys_task_info,
        SyscallNumber.SYS_ENABLE_DEADLOCK_DETECT: _sys_enable_deadlock_detect,
        SyscallNumber.SYS_RESOURCE_CREATE: _sys_resource_create,
        SyscallNumber.SYS_RESOURCE_DESTROY: _sys_resource_destroy,
        SyscallNumber.SYS_RESOURCE_ACQUIRE: _sys_resource_acquire,
        SyscallNumber.SYS_RESOURCE_RELEASE: _sys_resource_release,
    }

    manager.record_syscall(int(number))
    label = number.name if isinstance(number, SyscallNumber) else str(number)
    manager.logger.log(
        LogLevel.DEBUG,
        f"syscall {label}",
        source="syscall",
        task_id=manager.current or 0,
    )

    handler = handlers.get(number)
    if handler is None:
        msg = f"Unknown syscall: {number}"
        raise SyscallError(msg)

    return handler(manager, **kwargs)


def _running_task(manager: TaskManager) -> int:
    """Return the id of the task the syscall is made on behalf of."""
    task_id = manager.current
    if task_id is None:
        msg = "No task is running"
        raise SyscallError(msg)
    return task_id


# -- Lifecycle syscall handlers -------------------------------------------------


def _sys_exit(manager: TaskManager, **kwargs: Any) -> dict[str, int]:
    """Exit the running task."""
    exit_code: int = kwargs.get("exit_code", 0)
    try:
        task_id = manager.exit_current(exit_code)
    except TransitionError as e:
        raise SyscallError(str(e)) from e
    return {"task_id": task_id, "exit_code": exit_code}


def _sys_yield(manager: TaskManager, **_kwargs: Any) -> dict[str, int]:
    """Give up the CPU; the running task goes back to READY."""
    try:
        task_id = manager.suspend_current()
    except TransitionError as e:
        raise SyscallError(str(e)) from e
    return {"task_id": task_id}


# -- Time and accounting syscall handlers ---------------------------------------


def _sys_get_time(manager: TaskManager, **_kwargs: Any) -> TimeVal:
    """Return the current time as (sec, usec)."""
    return manager.get_time()


def _sys_task_info(manager: TaskManager, **kwargs: Any) -> TaskStats:
    """Return status, syscall counts and running time of a task.

    Reports on the running task unless an explicit ``task_id`` is given.
    """
    task_id: int = kwargs.get("task_id") or _running_task(manager)
    try:
        return manager.task_info(task_id)
    except ValueError as e:
        raise SyscallError(str(e)) from e


# -- Resource syscall handlers --------------------------------------------------


def _sys_enable_deadlock_detect(manager: TaskManager, **kwargs: Any) -> bool:
    """Turn Banker's admission control on or off."""
    enabled: bool = kwargs["enabled"]
    manager.deadlock_detection = enabled
    return enabled


def _sys_resource_create(manager: TaskManager, **kwargs: Any) -> int:
    """Register a resource and return its slot id."""
    try:
        return manager.create_resource(kwargs["identity"], kwargs["total"])
    except ValueError as e:
        raise SyscallError(str(e)) from e


def _sys_resource_destroy(manager: TaskManager, **kwargs: Any) -> None:
    """Unregister a resource."""
    identity = kwargs["identity"]
    if not manager.destroy_resource(identity):
        msg = f"Resource {identity!r} not found"
        raise SyscallError(msg)


def _sys_resource_acquire(manager: TaskManager, **kwargs: Any) -> int:
    """Acquire units of a resource for the running task, subject to admission control."""
    identity = kwargs["identity"]
    amount: int = kwargs.get("amount", 1)
    task_id = _running_task(manager)
    outcome = manager.acquire(task_id, identity, amount)
    if outcome is Admission.UNSAFE:
        msg = f"Granting {amount} {identity!r} to task {task_id} would risk deadlock"
        raise SyscallError(msg, errno=EDEADLK_CODE)
    if outcome is Admission.UNAVAILABLE:
        msg = f"Only {manager.ledger.available(identity)} {identity!r} available"
        raise SyscallError(msg, errno=EUNAVAIL_CODE)
    if outcome is Admission.INVALID:
        msg = f"Invalid request: task {task_id}, resource {identity!r}, amount {amount}"
        raise SyscallError(msg)
    return manager.ledger.allocated(task_id, identity)


def _sys_resource_release(manager: TaskManager, **kwargs: Any) -> int:
    """Release units of a resource held by the running task."""
    identity = kwargs["identity"]
    amount: int = kwargs.get("amount", 1)
    task_id = _running_task(manager)
    if not manager.release(task_id, identity, amount):
        msg = f"Task {task_id} cannot release {amount} {identity!r}"
        raise SyscallError(msg)
    return manager.ledger.allocated(task_id, identity)
