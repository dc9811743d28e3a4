"""Data structures for solver configuration and results.

Architecture: Params vs Metrics, plus the per-iteration bookkeeping types.

                 Params (input/config)         Metrics (output/results)
                 ─────────────────────         ────────────────────────
Global           GlobalParams                  GlobalMetrics
(same across     dimension, precision,         converged, iterations,
workers / agg)   worker_count, backend...      wall_time, mlups...

Local                                          LocalMetrics
(per-iteration)                                changed_history[],
                                               compute_times[]...

Partitioning and synchronisation:
- WorkAssignment: contiguous slice of the interior owned by one worker
- IterationState: driver-owned convergence bookkeeping
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import ConfigError

BACKENDS = ("sequential", "threads", "mpi")
STRATEGIES = ("cells", "rows")
INIT_METHODS = ("random", "fixed")


# ============================================================================
# Global (identical across workers, or aggregated by the driver)
# ============================================================================


@dataclass
class GlobalParams:
    """Run configuration - built from the Hydra config, logged to MLflow.

    Immutable configuration set before the run. Identical across all
    workers and MPI ranks.
    """

    dimension: int = 100
    precision: float = 0.5
    worker_count: int = 1

    # Execution
    backend: str = "threads"  # "sequential" | "threads" | "mpi"
    strategy: str = "cells"  # "cells" | "rows"
    use_numba: bool = False

    # Initial values
    init: str = "random"  # "random" | "fixed"
    rng_seed: Optional[int] = None
    seed_file: Optional[str] = None

    # Safety bounds (None = unbounded)
    max_iter: Optional[int] = None
    barrier_timeout: Optional[float] = None

    verbosity: bool = False
    experiment_name: str = "default"

    # Auto-detected at runtime (not from config)
    environment: str = field(init=False)

    def __post_init__(self):
        self.environment = (
            "hpc"
            if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
            else "local"
        )
        self.validate()

    def validate(self):
        """Raise ConfigError for values no solver can run with."""
        if self.dimension < 3:
            raise ConfigError(
                f"dimension must be >= 3 to have an interior, got {self.dimension}"
            )
        if self.worker_count < 1:
            raise ConfigError(f"worker_count must be >= 1, got {self.worker_count}")
        if math.isnan(self.precision) or self.precision < 0:
            raise ConfigError(f"precision must be >= 0, got {self.precision}")
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend: {self.backend}. Use one of {BACKENDS}.")
        if self.strategy not in STRATEGIES:
            raise ConfigError(
                f"Unknown strategy: {self.strategy}. Use one of {STRATEGIES}."
            )
        if self.init not in INIT_METHODS:
            raise ConfigError(f"Unknown init: {self.init}. Use one of {INIT_METHODS}.")
        if self.max_iter is not None and self.max_iter < 1:
            raise ConfigError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.barrier_timeout is not None and self.barrier_timeout <= 0:
            raise ConfigError(
                f"barrier_timeout must be > 0, got {self.barrier_timeout}"
            )

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible params dict (bools as int, no None)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
            if v is not None
        }


@dataclass
class GlobalMetrics:
    """Aggregated results - logged to MLflow as metrics."""

    converged: bool = False
    iterations: int = 0
    wall_time: Optional[float] = None

    # Timing breakdown (sum across all iterations)
    total_compute_time: Optional[float] = None
    total_sync_time: Optional[float] = None

    # Million Lattice Updates per Second
    mlups: Optional[float] = None

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible dict (no None, bools as int)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
            if v is not None
        }


# ============================================================================
# Local (per-iteration timeseries)
# ============================================================================


@dataclass
class LocalMetrics:
    """Per-iteration timeseries. Accumulated during solve, logged post-solve."""

    changed_history: List[int] = field(default_factory=list)
    compute_times: List[float] = field(default_factory=list)
    sync_times: List[float] = field(default_factory=list)

    def clear(self):
        """Clear all timeseries data."""
        self.changed_history.clear()
        self.compute_times.clear()
        self.sync_times.clear()


# ============================================================================
# Partitioning
# ============================================================================


@dataclass(frozen=True)
class WorkAssignment:
    """Contiguous slice of the interior index space owned by one worker.

    ``start`` and ``count`` are in units of ``unit``: flat interior cells
    (scanned row-major) for ``"cells"``, whole interior rows for ``"rows"``.
    Offsets are 0-based within the interior; grid coordinates are 1-based
    because row and column 0 are boundary.
    """

    worker_id: int
    start: int
    count: int
    unit: str
    interior_cols: int

    @property
    def start_row(self) -> int:
        """Grid row of the first owned cell."""
        if self.unit == "rows":
            return 1 + self.start
        return 1 + self.start // self.interior_cols

    @property
    def start_col(self) -> int:
        """Grid column of the first owned cell."""
        if self.unit == "rows":
            return 1
        return 1 + self.start % self.interior_cols

    @property
    def ncells(self) -> int:
        """Number of interior cells owned."""
        if self.unit == "rows":
            return self.count * self.interior_cols
        return self.count

    def segments(self) -> List[Tuple[int, int, int, int]]:
        """Owned cells as rectangles ``(row0, row1, col0, col1)``, half-open.

        A cell assignment starts mid-row, so it splits into at most three
        blocks: the partial first row, the run of full rows, and the partial
        last row. Row assignments are a single block.
        """
        ncols = self.interior_cols
        if self.unit == "rows":
            if self.count == 0:
                return []
            return [(self.start_row, self.start_row + self.count, 1, ncols + 1)]

        blocks = []
        remaining = self.count
        row, col = self.start_row, self.start_col

        if remaining and col != 1:
            take = min(remaining, ncols + 1 - col)
            blocks.append((row, row + 1, col, col + take))
            remaining -= take
            row += 1

        full_rows = remaining // ncols
        if full_rows:
            blocks.append((row, row + full_rows, 1, ncols + 1))
            remaining -= full_rows * ncols
            row += full_rows

        if remaining:
            blocks.append((row, row + 1, 1, 1 + remaining))

        return blocks


@dataclass
class IterationState:
    """Driver-owned convergence bookkeeping, merged once per iteration."""

    iteration_count: int = 0
    converged: bool = False
    per_worker_changed: List[int] = field(default_factory=list)

    def reset(self, n_workers: int):
        """Clear per-worker contributions before the next relax phase."""
        self.per_worker_changed = [0] * n_workers
