"""Task subsystem — task control blocks and their lifecycle.

Re-exports public symbols so callers can write::

    from py_taskcore.process import TaskControlBlock, TaskStatus
"""

from py_taskcore.process.tcb import (
    MAX_SYSCALL_NUM,
    TaskContext,
    TaskControlBlock,
    TaskInfo,
    TaskStats,
    TaskStatus,
    TransitionError,
)

__all__ = [
    "MAX_SYSCALL_NUM",
    "TaskContext",
    "TaskControlBlock",
    "TaskInfo",
    "TaskStats",
    "TaskStatus",
    "TransitionError",
]
