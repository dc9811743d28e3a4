"""Sequential Jacobi relaxation driver."""

from ..datastructures import GlobalMetrics
from .base import BaseSolver


class JacobiSolver(BaseSolver):
    """Single-threaded Jacobi relaxation.

    No threads or MPI - relaxes the whole interior on the calling thread.
    Serves as the reference every parallel driver must reproduce exactly.

    Parameters
    ----------
    N : int
        Grid size (N x N).
    **kwargs
        Passed to BaseSolver (precision, initial, use_numba, max_iter, verbose).
    """

    def __init__(self, N: int, **kwargs):
        super().__init__(N, **kwargs)
        self._init_arrays()

    def _init_arrays(self):
        """Allocate and seed the grid."""
        self._init_grid()

    def solve(self) -> GlobalMetrics:
        """Relax until no interior cell changes by more than the precision."""
        self._reset()
        grid = self.grid

        t_start = self._get_time()
        iterations = 0

        while True:
            t0 = self._get_time()
            changed = self.kernel.relax_rows(grid.current, grid.next, 1, self.N - 1)
            self.timeseries.compute_times.append(self._get_time() - t0)
            self.timeseries.changed_history.append(changed)

            grid.swap()
            iterations += 1

            if changed == 0:
                self.metrics.converged = True
                break
            if self._reached_cap(iterations):
                break
            self._report_progress(iterations, changed)

        self.metrics.iterations = iterations
        self._finalize(self._get_time() - t_start)
        return self.metrics
