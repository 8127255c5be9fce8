"""Per-employee exclusive sections for writes to the employee aggregate.

Imports, manual entry and recomputation may run at the same time on
different threads. Writes touching one employee's collections are
serialized through a re-entrant lock keyed by employee id, so that a
replace-by-foreign-key is atomic against a concurrent manual insert. The
lock is only held around database work, never around remote HTTP calls.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID


class EmployeeLockRegistry:
    """Lazily created lock per employee id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.RLock] = {}

    def lock_for(self, employee_id: UUID) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(employee_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[employee_id] = lock
            return lock

    @contextmanager
    def hold(self, employee_id: UUID) -> Iterator[None]:
        """Run the body inside the employee's exclusive section."""
        with self.lock_for(employee_id):
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Process-wide registry shared by request handlers and the scheduler
employee_locks = EmployeeLockRegistry()
