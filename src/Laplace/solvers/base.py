"""Base class for solvers."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict

import h5py
import numpy as np

from ..datastructures import GlobalMetrics, LocalMetrics
from ..errors import ConfigError
from ..grid import Grid
from ..kernels import create_kernel
from ..postprocessing import print_grid
from ..problems import as_initial_values, random_initial_values

log = logging.getLogger(__name__)


class BaseSolver(ABC):
    """Abstract base for all relaxation drivers.

    Parameters
    ----------
    N : int
        Grid size (N x N including boundaries), >= 3.
    precision : float
        Convergence threshold, >= 0. A cell has changed if
        ``|new - old| > precision``.
    initial : array_like, optional
        Initial values (``N*N`` values, flat row-major or 2D). Defaults to a
        uniform random fill.
    use_numba : bool
        Use the Numba JIT kernel (default: False).
    max_iter : int, optional
        Stop after this many iterations even if not converged
        (default: unbounded).
    verbose : bool
        Print the grid after every non-final iteration.
    """

    def __init__(
        self,
        N: int,
        precision: float = 0.5,
        initial=None,
        use_numba: bool = False,
        max_iter: int = None,
        verbose: bool = False,
    ):
        if N < 3:
            raise ConfigError(f"N must be >= 3 to have an interior, got {N}")
        if np.isnan(precision) or precision < 0:
            raise ConfigError(f"precision must be >= 0, got {precision}")
        if max_iter is not None and max_iter < 1:
            raise ConfigError(f"max_iter must be >= 1, got {max_iter}")

        self.N = N
        self.shape = (N, N)
        self.precision = precision
        self.use_numba = use_numba
        self.max_iter = max_iter
        self.verbose = verbose

        self.kernel = create_kernel(precision, use_numba=use_numba)

        # Metrics containers (match datastructures.py naming)
        self.metrics = GlobalMetrics()
        self.timeseries = LocalMetrics()

        self.grid = None
        self._initial = initial

    @abstractmethod
    def solve(self) -> GlobalMetrics:
        """Execute the solver. Returns results."""
        pass

    def warmup(self, warmup_size: int = 10):
        """Warmup kernel (trigger Numba JIT if used)."""
        self.kernel.warmup(warmup_size=warmup_size)

    # ========================================================================
    # Hooks
    # ========================================================================

    def _init_grid(self):
        """Allocate the double-buffered grid and seed both buffers."""
        if self._initial is None:
            values = random_initial_values(self.shape)
        else:
            values = as_initial_values(self._initial, self.shape)
        self.grid = Grid(*self.shape)
        self.grid.seed(values)

    def _get_solution_array(self) -> np.ndarray:
        """Return the latest grid state."""
        return self.grid.current

    @property
    def u(self) -> np.ndarray:
        """Final (or latest) grid, boundary included."""
        return self._get_solution_array()

    def _get_time(self) -> float:
        """Get current time. Override for MPI timing."""
        return time.perf_counter()

    def _is_root(self) -> bool:
        """True if this process reports results. Override for MPI."""
        return True

    def _reached_cap(self, iterations: int) -> bool:
        return self.max_iter is not None and iterations >= self.max_iter

    def _report_progress(self, iterations: int, changed: int):
        log.debug(f"iteration {iterations}: {changed} cells changed")
        if self.verbose and self._is_root():
            print_grid(self._get_solution_array())

    # ========================================================================
    # Metrics
    # ========================================================================

    def _reset(self):
        """Reset metrics and timeseries."""
        self.metrics = GlobalMetrics()
        self.timeseries.clear()

    def _finalize(self, wall_time: float):
        """Finalize metrics after solve."""
        if self._is_root():
            self.metrics.total_compute_time = sum(self.timeseries.compute_times)
            self.metrics.total_sync_time = sum(self.timeseries.sync_times)
        self._compute_metrics(wall_time, self.metrics.iterations)

    def _compute_metrics(self, wall_time: float, iterations: int):
        """Compute performance metrics."""
        self.metrics.wall_time = wall_time
        self.metrics.iterations = iterations

        n_interior = (self.N - 2) ** 2
        if iterations > 0 and wall_time > 0:
            self.metrics.mlups = n_interior * iterations / (wall_time * 1e6)

    def params(self) -> dict:
        """Solver configuration as a flat dict (for HDF5 and MLflow)."""
        return {
            "N": self.N,
            "precision": self.precision,
            "use_numba": self.use_numba,
            "max_iter": self.max_iter if self.max_iter is not None else -1,
            "solver": type(self).__name__,
        }

    # ========================================================================
    # I/O
    # ========================================================================

    def save_hdf5(self, path):
        """Save config, final grid, results and timeseries to HDF5.

        File structure:
        - /config: Runtime configuration (attrs)
        - /fields/u: Final grid
        - /results: Convergence information (attrs)
        - /timeseries/*: Per-iteration data
        """
        if not self._is_root():
            return

        with h5py.File(path, "w") as f:
            config_grp = f.create_group("config")
            for key, value in self.params().items():
                config_grp.attrs[key] = value

            fields_grp = f.create_group("fields")
            fields_grp.create_dataset("u", data=self._get_solution_array())

            results_grp = f.create_group("results")
            for key, value in asdict(self.metrics).items():
                if value is not None:
                    results_grp.attrs[key] = value

            ts_grp = f.create_group("timeseries")
            for key, values in asdict(self.timeseries).items():
                ts_grp.create_dataset(key, data=np.asarray(values))

        log.info(f"Saved results to {path}")
