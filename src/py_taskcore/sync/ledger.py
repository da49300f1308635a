"""Resource ledger — Banker's-algorithm bookkeeping.

The ledger is the accountant behind deadlock avoidance.  For every
task and every registered resource it keeps:

    - **max[t][r]** — the most units of r task t has declared it may hold.
    - **allocated[t][r]** — units of r task t holds right now.
    - **need[t][r]** — ``max − allocated``; kept as its own matrix and
      updated incrementally so the safety check reads it directly.
    - **available[r]** — units of r nobody holds.

After every committed operation these hold:

    1. ``0 <= allocated[t][r] <= max[t][r]``
    2. ``need[t][r] == max[t][r] - allocated[t][r]``
    3. ``available[r] + sum(allocated[t][r] for t) == total[r]``
    4. no identity occupies two resource slots at once

Index spaces:
    - **Resources** live in a dense slot table.  Unregistering frees the
      slot onto a FIFO recycle queue and the next registration reuses it.
    - **Tasks** only grow.  ``create_task`` appends a row; ``destroy_task``
      zeroes it but never hands the id out again.  Task ids are 1-based
      (0 is reserved), so task ``t`` lives in row ``t - 1``.

Error style:
    Caller mistakes (unknown task, unknown resource, over-release) come
    back as ``False``.  The one exception is ``grant``: it is the
    unconditional path and is only reached after admission control, so
    asking for more than is available means the caller skipped a check —
    that raises ``LedgerError``.

Nothing here blocks.  If a request is turned down, whether to retry,
queue or fail the task is the caller's decision.
"""

from collections import deque
from collections.abc import Hashable

from py_taskcore.sync.safety import find_deadlocked, find_safe_sequence


class LedgerError(RuntimeError):
    """Raised when the unconditional grant path is misused."""


class ResourceLedger:
    """Track per-task resource accounting and answer safety questions."""

    def __init__(self) -> None:
        """Create an empty ledger with no resources and no tasks."""
        self._resources: list[Hashable | None] = []
        self._recycle: deque[int] = deque()
        self._available: list[int] = []
        self._max: list[list[int]] = []
        self._allocated: list[list[int]] = []
        self._need: list[list[int]] = []

    # -- Resources -------------------------------------------------------------

    def register(self, identity: Hashable, total: int) -> int:
        """Register a resource with *total* units and return its slot id.

        Reuses the oldest freed slot if there is one; otherwise appends a
        new slot and widens every task row with a zero column.  The caller
        guarantees *identity* is not already registered.

        Raises:
            ValueError: If *identity* is None, which marks a free slot.

        """
        if identity is None:
            msg = "Resource identity cannot be None"
            raise ValueError(msg)
        if self._recycle:
            slot = self._recycle.popleft()
            self._resources[slot] = identity
            self._available[slot] = total
            return slot

        self._resources.append(identity)
        self._available.append(total)
        for rows in (self._max, self._allocated, self._need):
            for row in rows:
                row.append(0)
        return len(self._resources) - 1

    def unregister(self, identity: Hashable) -> bool:
        """Remove a resource and free its slot for reuse.

        Every task's max, allocation and need for the slot are zeroed.
        Callers must make sure nobody still holds or needs the resource;
        outstanding holdings are discarded, not returned.

        Returns:
            False if *identity* is not registered.

        """
        slot = self.resource_id(identity)
        if slot is None:
            return False
        self._resources[slot] = None
        self._available[slot] = 0
        for rows in (self._max, self._allocated, self._need):
            for row in rows:
                row[slot] = 0
        self._recycle.append(slot)
        return True

    def resource_id(self, identity: Hashable) -> int | None:
        """Return the slot holding *identity*, or None (linear scan)."""
        for slot, resource in enumerate(self._resources):
            if resource is not None and resource == identity:
                return slot
        return None

    def resources(self) -> list[Hashable]:
        """Return registered identities in slot order."""
        return [r for r in self._resources if r is not None]

    def available(self, identity: Hashable) -> int:
        """Return free units of a resource (0 if unknown)."""
        slot = self.resource_id(identity)
        return 0 if slot is None else self._available[slot]

    def total(self, identity: Hashable) -> int:
        """Return free plus allocated units of a resource (0 if unknown)."""
        slot = self.resource_id(identity)
        if slot is None:
            return 0
        return self._available[slot] + sum(row[slot] for row in self._allocated)

    # -- Tasks -----------------------------------------------------------------

    @property
    def num_tasks(self) -> int:
        """Return how many task ids have ever been handed out."""
        return len(self._max)

    def task_ids(self) -> list[int]:
        """Return every task id handed out so far (destroyed ones included)."""
        return list(range(1, self.num_tasks + 1))

    def create_task(self) -> int:
        """Append a zeroed row for a new task and return its 1-based id."""
        width = len(self._resources)
        self._max.append([0] * width)
        self._allocated.append([0] * width)
        self._need.append([0] * width)
        return self.num_tasks

    def destroy_task(self, task_id: int) -> bool:
        """Zero a task's rows.  The id is not reused.

        Holdings are discarded, not returned to the pool; release them
        first if conservation should hold afterwards.

        Returns:
            False if *task_id* was never handed out.

        """
        row = self._row(task_id)
        if row is None:
            return False
        for rows in (self._max, self._allocated, self._need):
            rows[row] = [0] * len(rows[row])
        return True

    def allocated(self, task_id: int, identity: Hashable) -> int:
        """Return units of *identity* held by *task_id* (0 if unknown)."""
        cell = self._cell(task_id, identity)
        return 0 if cell is None else self._allocated[cell[0]][cell[1]]

    def maximum(self, task_id: int, identity: Hashable) -> int:
        """Return the declared maximum of *identity* for *task_id*."""
        cell = self._cell(task_id, identity)
        return 0 if cell is None else self._max[cell[0]][cell[1]]

    def need(self, task_id: int, identity: Hashable) -> int:
        """Return how many more units *task_id* may request."""
        cell = self._cell(task_id, identity)
        return 0 if cell is None else self._need[cell[0]][cell[1]]

    # -- Allocation --------------------------------------------------------------

    def declare_max(self, task_id: int, identity: Hashable, maximum: int) -> bool:
        """Declare a task's ceiling for a resource ahead of any request.

        Returns:
            False on an unknown task or resource, or if *maximum* is
            below what the task already holds.

        """
        cell = self._cell(task_id, identity)
        if cell is None:
            return False
        row, slot = cell
        if maximum < self._allocated[row][slot]:
            return False
        self._max[row][slot] = maximum
        self._need[row][slot] = maximum - self._allocated[row][slot]
        return True

    def request(self, task_id: int, identity: Hashable, amount: int) -> bool:
        """Allocate within a previously declared maximum (no safety check).

        Returns:
            False on an unknown task or resource, if the request would
            exceed the task's declared maximum, or if not enough units
            are free.

        """
        cell = self._cell(task_id, identity)
        if cell is None or amount < 0:
            return False
        row, slot = cell
        if amount > self._need[row][slot] or amount > self._available[slot]:
            return False
        self._allocated[row][slot] += amount
        self._need[row][slot] -= amount
        self._available[slot] -= amount
        return True

    def grant(self, task_id: int, identity: Hashable, amount: int) -> None:
        """Grant *amount* units, raising the ceiling only if it must.

        Units come out of the task's outstanding need first.  Only the
        part of *amount* that need does not cover raises the maximum, so
        a ceiling established on first use stays put when the task
        releases and re-acquires within it.

        Raises:
            LedgerError: If the task or resource is unknown, *amount* is
                negative, or more than the available units are asked for.

        """
        cell = self._cell(task_id, identity)
        if cell is None:
            msg = f"Cannot grant {identity!r} to task {task_id}: unknown task or resource"
            raise LedgerError(msg)
        row, slot = cell
        if amount < 0:
            msg = f"Cannot grant a negative amount ({amount}) of {identity!r}"
            raise LedgerError(msg)
        if amount > self._available[slot]:
            msg = f"Cannot grant {amount} {identity!r}: only {self._available[slot]} available"
            raise LedgerError(msg)
        self._apply_grant(row, slot, amount)

    def release(self, task_id: int, identity: Hashable, amount: int) -> bool:
        """Hand *amount* units back to the pool.

        Allocation drops, and both availability and need grow by the
        same amount, so the ledger stays conserved.

        Returns:
            False on an unknown task or resource, or if *amount* is more
            than the task holds.

        """
        cell = self._cell(task_id, identity)
        if cell is None or amount < 0:
            return False
        row, slot = cell
        if amount > self._allocated[row][slot]:
            return False
        self._allocated[row][slot] -= amount
        self._available[slot] += amount
        self._need[row][slot] += amount
        return True

    def release_all(self, task_id: int) -> bool:
        """Release everything *task_id* holds, across all resources."""
        row = self._row(task_id)
        if row is None:
            return False
        for slot, held in enumerate(self._allocated[row]):
            if held:
                self._allocated[row][slot] = 0
                self._available[slot] += held
                self._need[row][slot] += held
        return True

    def try_admit(self, task_id: int, identity: Hashable, amount: int) -> bool:
        """Ask whether taking *amount* more units keeps the system safe.

        The request is applied to the matrices exactly as ``grant`` would
        apply it, the safety check runs over that hypothetical state, and
        the change is rolled back whatever the verdict.  Nothing is
        committed; the caller follows up with the real ``grant``.

        Returns:
            False on an unknown task or resource, if fewer than *amount*
            units are free, or if the hypothetical state is unsafe.

        """
        cell = self._cell(task_id, identity)
        if cell is None or amount < 0:
            return False
        row, slot = cell
        if amount > self._available[slot]:
            return False

        raised = self._apply_grant(row, slot, amount)
        try:
            return self.is_safe()
        finally:
            self._max[row][slot] -= raised
            self._need[row][slot] += amount - raised
            self._allocated[row][slot] -= amount
            self._available[slot] += amount

    # -- Safety ------------------------------------------------------------------

    def is_safe(self) -> bool:
        """Return True if every task can still run to completion."""
        return self.safe_sequence() is not None

    def safe_sequence(self) -> list[int] | None:
        """Return task ids in a safe finishing order, or None if unsafe."""
        order = find_safe_sequence(self._available, self._allocated, self._need)
        if order is None:
            return None
        return [row + 1 for row in order]

    def detect_deadlock(self) -> set[int]:
        """Return ids of tasks that cannot finish from the current state."""
        return {row + 1 for row in find_deadlocked(self._available, self._allocated, self._need)}

    def snapshot(self) -> dict[str, object]:
        """Return a copy of the matrices, keyed by name (for inspection)."""
        return {
            "resources": list(self._resources),
            "available": list(self._available),
            "max": [list(row) for row in self._max],
            "allocated": [list(row) for row in self._allocated],
            "need": [list(row) for row in self._need],
        }

    # -- Helpers -----------------------------------------------------------------

    def _apply_grant(self, row: int, slot: int, amount: int) -> int:
        """Move *amount* units to a task and return how far the maximum rose."""
        raised = max(0, amount - self._need[row][slot])
        self._max[row][slot] += raised
        self._need[row][slot] -= amount - raised
        self._allocated[row][slot] += amount
        self._available[slot] -= amount
        return raised

    def _row(self, task_id: int) -> int | None:
        """Map a task id to its row, or None if out of range."""
        if 1 <= task_id <= self.num_tasks:
            return task_id - 1
        return None

    def _cell(self, task_id: int, identity: Hashable) -> tuple[int, int] | None:
        """Map (task, identity) to (row, slot), or None if either is unknown."""
        row = self._row(task_id)
        if row is None:
            return None
        slot = self.resource_id(identity)
        if slot is None:
            return None
        return row, slot
