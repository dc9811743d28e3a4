"""MPI-parallel Jacobi Solver (extends JacobiSolver)."""

import numpy as np

from ..datastructures import GlobalMetrics
from ..errors import LaplaceError
from ..mpi.grid import DistributedGrid
from .jacobi import JacobiSolver
from .mpi_mixin import MPISolverMixin


class JacobiMPISolver(MPISolverMixin, JacobiSolver):
    """Distributed Jacobi relaxation with scatter/gather and all-reduce.

    Rank 0 owns the full double-buffered grid. Each iteration it scatters
    every rank a slab of its owned rows plus one halo row on each side; ranks
    relax their owned rows, passing the edge columns through; the relaxed
    rows are gathered back into the root's write buffer and the changed
    counts summed with an all-reduce. All ranks stop when the sum is zero.

    Parameters
    ----------
    N : int
        Grid size (N x N).
    comm : MPI.Comm, optional
        Communicator (default: MPI.COMM_WORLD).
    **kwargs
        Passed to BaseSolver. ``initial`` is only read on rank 0.
    """

    def __init__(self, N: int, comm=None, **kwargs):
        # MPI setup before parent init
        self._init_mpi(comm)
        self.dgrid = DistributedGrid(N, self.comm)

        # Store config info
        self.local_rows = self.dgrid.local_rows
        self.halo_size_mb = self.dgrid.get_halo_size_bytes() / (1024 * 1024)

        # Parent init (calls _init_arrays)
        super().__init__(N, **kwargs)

    def _init_arrays(self):
        """Root seeds the full grid; every rank allocates its slabs."""
        error = None
        if self._is_root():
            try:
                self._init_grid()
            except LaplaceError as exc:
                error = exc

        # A seeding failure on root must stop every rank before the first
        # collective of the relax loop
        failure = self.dgrid.bcast(error)
        if failure is not None:
            raise error or failure

        self.slab = self.dgrid.allocate()
        self.slab_next = self.dgrid.allocate()

    def params(self) -> dict:
        return {
            **super().params(),
            "n_ranks": self.size,
            "strategy": "rows",
            "halo_size_mb": self.halo_size_mb,
        }

    def _get_solution_array(self) -> np.ndarray:
        """Full grid on root, None elsewhere."""
        return self.grid.current if self.grid is not None else None

    def _relax_local(self) -> int:
        if not self.local_rows:
            return 0
        changed = self.kernel.relax_rows(self.slab, self.slab_next, 1, self.local_rows + 1)
        # Grid-edge columns are boundary: pass through unchanged
        self.slab_next[1:-1, 0] = self.slab[1:-1, 0]
        self.slab_next[1:-1, -1] = self.slab[1:-1, -1]
        return changed

    def solve(self) -> GlobalMetrics:
        """Run scatter / relax / gather / all-reduce until converged."""
        self._reset()
        root = self._is_root()

        self._barrier()
        t_start = self._get_time()
        iterations = 0

        while True:
            t0 = self._get_time()
            self.dgrid.scatter_slabs(self.grid.current if root else None, self.slab)

            t1 = self._get_time()
            changed_local = self._relax_local()

            t2 = self._get_time()
            self.dgrid.gather_rows(self.slab_next, self.grid.next if root else None)
            changed = self.dgrid.allreduce_sum(changed_local)
            t3 = self._get_time()

            if root:
                self.grid.swap()
            iterations += 1

            self.timeseries.compute_times.append(t2 - t1)
            self.timeseries.sync_times.append((t1 - t0) + (t3 - t2))
            self.timeseries.changed_history.append(changed)

            if changed == 0:
                self.metrics.converged = True
                break
            if self._reached_cap(iterations):
                break
            self._report_progress(iterations, changed)

        self.metrics.iterations = iterations
        self._finalize(self._get_time() - t_start)
        return self.metrics
