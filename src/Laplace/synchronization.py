"""Shared-memory synchronisation primitives for the threaded driver.

One iteration of the protocol, seen from a worker::

    RELAXING ──relax own cells, add changed count──▶ AWAITING_DECISION
        (barrier A: every count is in)                    │
    AWAITING_RESTART ◀──────── driver decides ────────────┘
        (barrier B: decision is visible)
        ├── terminate flag set ──▶ TERMINATED
        └── otherwise ──────────▶ RELAXING

Barrier A makes every contribution visible to the driver before it decides.
Barrier B makes the decision (and the buffer swap) visible before any worker
acts on it or starts writing again.
"""

from __future__ import annotations

import enum
import threading


class WorkerState(enum.Enum):
    RELAXING = "relaxing"
    AWAITING_DECISION = "awaiting_decision"
    AWAITING_RESTART = "awaiting_restart"
    TERMINATED = "terminated"


class ChangeCounter:
    """Lock-protected running total of changed cells.

    Workers call ``add`` concurrently; the driver calls ``drain`` between
    the two barriers, when no worker can be adding.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0

    def add(self, n: int):
        with self._lock:
            self._total += n

    def drain(self) -> int:
        """Return the total and reset it to zero."""
        with self._lock:
            total, self._total = self._total, 0
        return total


class Rendezvous:
    """The barrier pair shared by all workers and the driver.

    Parameters
    ----------
    n_workers : int
        Relaxation workers; the driver is the extra party.
    timeout : float, optional
        Seconds a party may wait at a barrier before it is broken.
    """

    def __init__(self, n_workers: int, timeout: float = None):
        self.parties = n_workers + 1
        self.relaxed = threading.Barrier(self.parties, timeout=timeout)
        self.decided = threading.Barrier(self.parties, timeout=timeout)
        self.terminate = threading.Event()

    def abort(self):
        """Break both barriers so every waiting party raises."""
        self.relaxed.abort()
        self.decided.abort()
