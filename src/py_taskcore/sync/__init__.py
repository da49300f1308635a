"""Resource subsystem — the Banker's ledger and its safety checker.

Re-exports public symbols so callers can write::

    from py_taskcore.sync import ResourceLedger, is_safe
"""

from py_taskcore.sync.ledger import LedgerError, ResourceLedger
from py_taskcore.sync.safety import find_deadlocked, find_safe_sequence, is_safe

__all__ = [
    "LedgerError",
    "ResourceLedger",
    "find_deadlocked",
    "find_safe_sequence",
    "is_safe",
]
