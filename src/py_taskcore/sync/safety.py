"""The Banker's safety algorithm.

A state is **safe** if there is at least one ordering (a *safe
sequence*) in which every task can obtain everything it may still need,
run to completion, and hand back what it holds.  If no such ordering
exists, some set of tasks could end up in a circular wait.

The algorithm (finish-simulation)::

    work   = copy of available
    finish = [False] * tasks
    repeat:
        find an unfinished task t with need[t] <= work (elementwise)
        if found: work += allocated[t]; finish[t] = True
    until a full pass finds nothing
    safe  <=>  all(finish)

Finishing one task can free enough for a task skipped earlier in the
same pass, so the scan repeats until a pass makes no progress — a
single linear pass is not enough.  Worst case O(tasks² × resources).

Everything here is a pure function of the matrices it is handed; rows
are 0-based indices into those matrices.
"""

from collections.abc import Sequence

Vector = Sequence[int]
Matrix = Sequence[Sequence[int]]


def _fits(need: Vector, work: Vector) -> bool:
    """Return True if *need* is elementwise no greater than *work*."""
    return all(n <= w for n, w in zip(need, work, strict=True))


def _simulate(available: Vector, allocated: Matrix, need: Matrix) -> tuple[list[int], list[bool]]:
    """Run finish-simulation and return (finish order, finish flags)."""
    work = list(available)
    finish = [False] * len(need)
    order: list[int] = []

    changed = True
    while changed:
        changed = False
        for row, row_need in enumerate(need):
            if finish[row] or not _fits(row_need, work):
                continue
            # Pretend it finishes: hand its allocation back
            for r, held in enumerate(allocated[row]):
                work[r] += held
            finish[row] = True
            order.append(row)
            changed = True

    return order, finish


def find_safe_sequence(available: Vector, allocated: Matrix, need: Matrix) -> list[int] | None:
    """Find a safe sequence for the given state.

    Args:
        available: Free units per resource.
        allocated: ``allocated[t][r]`` — units of r held by row t.
        need: ``need[t][r]`` — units of r row t may still request.

    Returns:
        Row indices in an order in which every task can finish, or
        None if the state is unsafe.

    """
    order, finish = _simulate(available, allocated, need)
    if all(finish):
        return order
    return None


def is_safe(available: Vector, allocated: Matrix, need: Matrix) -> bool:
    """Return True if a safe sequence exists."""
    return find_safe_sequence(available, allocated, need) is not None


def find_deadlocked(available: Vector, allocated: Matrix, need: Matrix) -> set[int]:
    """Return the rows that can never finish from the given state.

    This is deadlock *detection*: run the same simulation and report
    whoever is left over.  An empty set means the state is safe.
    """
    _, finish = _simulate(available, allocated, need)
    return {row for row, done in enumerate(finish) if not done}
