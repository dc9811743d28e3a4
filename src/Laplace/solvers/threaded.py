"""Shared-memory Jacobi relaxation with a fixed pool of worker threads."""

import logging
import threading

from ..datastructures import GlobalMetrics, IterationState
from ..decomposition import Partitioner
from ..errors import WorkerFailure
from ..synchronization import ChangeCounter, Rendezvous, WorkerState
from .jacobi import JacobiSolver

log = logging.getLogger(__name__)


class ThreadedJacobiSolver(JacobiSolver):
    """Parallel Jacobi relaxation over threads sharing one grid.

    Workers live for the whole computation. Each iteration they relax their
    own cells from ``grid.current`` into ``grid.next``, add their changed
    count to a shared counter, and meet the driver at two barriers. Between
    the barriers the driver swaps the buffers and decides whether to stop.
    Assignments are disjoint, so the relax phase needs no locking.

    Parameters
    ----------
    N : int
        Grid size (N x N).
    worker_count : int
        Number of relaxation threads (default: 1).
    strategy : str
        'cells' (flat cell split) or 'rows' (whole-row split).
    barrier_timeout : float, optional
        Seconds to wait at a barrier before declaring a worker lost.
    **kwargs
        Passed to BaseSolver (precision, initial, use_numba, max_iter, verbose).
    """

    def __init__(
        self,
        N: int,
        worker_count: int = 1,
        strategy: str = "cells",
        barrier_timeout: float = None,
        **kwargs,
    ):
        # Partition before allocating so bad worker counts fail early
        self.partitioner = Partitioner(N, N, size=worker_count, strategy=strategy)
        self.worker_count = worker_count
        self.strategy = strategy
        self.barrier_timeout = barrier_timeout

        super().__init__(N, **kwargs)

        self.assignments = self.partitioner.get_all_assignments()
        self.worker_states = [WorkerState.TERMINATED] * worker_count
        self.state = IterationState()
        self._errors = {}

        for line in self.partitioner.describe():
            if self.verbose:
                log.info(line)
            else:
                log.debug(line)

    def params(self) -> dict:
        return {
            **super().params(),
            "worker_count": self.worker_count,
            "strategy": self.strategy,
        }

    def solve(self) -> GlobalMetrics:
        """Start the worker pool and drive it until convergence."""
        self._reset()
        self._errors = {}
        self.state = IterationState()
        self.state.reset(self.worker_count)

        rendezvous = Rendezvous(self.worker_count, timeout=self.barrier_timeout)
        counter = ChangeCounter()

        threads = []
        for assignment in self.assignments:
            thread = threading.Thread(
                target=self._worker_loop,
                args=(assignment, rendezvous, counter),
                name=f"relax-worker-{assignment.worker_id}",
                daemon=True,
            )
            try:
                thread.start()
            except RuntimeError as exc:
                rendezvous.abort()
                self._join(threads, timeout=self.barrier_timeout)
                raise WorkerFailure(
                    f"Failed creating worker {assignment.worker_id}",
                    worker_id=assignment.worker_id,
                ) from exc
            threads.append(thread)

        t_start = self._get_time()
        try:
            iterations = self._drive(rendezvous, counter)
        except WorkerFailure:
            rendezvous.abort()
            self._join(threads, timeout=self.barrier_timeout)
            raise

        self._join(threads)
        self.metrics.iterations = iterations
        self._finalize(self._get_time() - t_start)
        return self.metrics

    # ========================================================================
    # Driver
    # ========================================================================

    def _drive(self, rendezvous: Rendezvous, counter: ChangeCounter) -> int:
        """Driver side of the barrier pair. Returns the iteration count."""
        iterations = 0
        t_phase = self._get_time()

        while True:
            self._wait(rendezvous.relaxed)
            t_relaxed = self._get_time()
            self.timeseries.compute_times.append(t_relaxed - t_phase)

            # Every worker is parked at barrier B: the grid is ours
            iterations += 1
            changed = counter.drain()
            self.state.iteration_count = iterations
            self.timeseries.changed_history.append(changed)
            self.grid.swap()

            if changed == 0:
                self.state.converged = True
                self.metrics.converged = True
                rendezvous.terminate.set()
            elif self._reached_cap(iterations):
                rendezvous.terminate.set()
            else:
                self.state.reset(self.worker_count)

            self._wait(rendezvous.decided)
            t_phase = self._get_time()
            self.timeseries.sync_times.append(t_phase - t_relaxed)

            if rendezvous.terminate.is_set():
                return iterations

            # Workers only read grid.current while relaxing
            self._report_progress(iterations, changed)

    def _wait(self, barrier: threading.Barrier):
        try:
            barrier.wait()
        except threading.BrokenBarrierError as exc:
            raise self._failure() from exc

    def _failure(self) -> WorkerFailure:
        """Describe why a barrier broke."""
        if self._errors:
            worker_id = min(self._errors)
            err = self._errors[worker_id]
            return WorkerFailure(
                f"Worker {worker_id} failed: {type(err).__name__}: {err}",
                worker_id=worker_id,
            )
        missing = [
            i for i, s in enumerate(self.worker_states) if s is WorkerState.RELAXING
        ]
        if not missing:
            # Every worker was waiting: the driver arrived late
            return WorkerFailure(
                f"Driver did not reach the rendezvous within {self.barrier_timeout}s"
            )
        return WorkerFailure(
            f"Workers {missing} did not reach the rendezvous within "
            f"{self.barrier_timeout}s",
            worker_id=missing[0],
        )

    @staticmethod
    def _join(threads, timeout: float = None):
        for thread in threads:
            thread.join(timeout)

    # ========================================================================
    # Worker
    # ========================================================================

    def _worker_loop(self, assignment, rendezvous: Rendezvous, counter: ChangeCounter):
        """Worker side: relax, report, wait twice, repeat."""
        wid = assignment.worker_id
        grid = self.grid

        while True:
            self.worker_states[wid] = WorkerState.RELAXING
            try:
                changed = self.kernel.relax_assignment(grid.current, grid.next, assignment)
            except Exception as exc:
                log.error(f"Worker {wid} failed while relaxing: {exc}")
                self._errors[wid] = exc
                self.worker_states[wid] = WorkerState.TERMINATED
                rendezvous.abort()
                return

            self.state.per_worker_changed[wid] = changed
            counter.add(changed)

            try:
                self.worker_states[wid] = WorkerState.AWAITING_DECISION
                rendezvous.relaxed.wait()
                self.worker_states[wid] = WorkerState.AWAITING_RESTART
                rendezvous.decided.wait()
            except threading.BrokenBarrierError:
                self.worker_states[wid] = WorkerState.TERMINATED
                return

            if rendezvous.terminate.is_set():
                self.worker_states[wid] = WorkerState.TERMINATED
                return
