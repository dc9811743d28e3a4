"""Laplace relaxation engine.

Jacobi relaxation of a 2D grid: every interior cell becomes the average of
its four neighbours until no cell changes by more than a precision
threshold. The grid can be split across worker threads sharing memory or
across MPI ranks exchanging slabs.

Solvers
-------
Single process:
- JacobiSolver: Sequential reference
- ThreadedJacobiSolver: Fixed thread pool, two barriers per iteration

Parallel (MPI):
- JacobiMPISolver: Scatter/gather with an all-reduce convergence test
"""

from .datastructures import (
    GlobalParams,
    GlobalMetrics,
    LocalMetrics,
    WorkAssignment,
    IterationState,
)
from .decomposition import HaloLayout, Partitioner, partition, split_sizes
from .errors import (
    LaplaceError,
    ConfigError,
    SeedMismatch,
    AllocationError,
    WorkerFailure,
)
from .grid import Grid
from .kernels import NumPyKernel, NumbaKernel, relax_cell
from .solvers import (
    JacobiSolver,
    ThreadedJacobiSolver,
    JacobiMPISolver,
    create_solver,
)
from .synchronization import ChangeCounter, Rendezvous, WorkerState
from .problems import (
    random_initial_values,
    fixed_initial_values,
    as_initial_values,
    load_seed_values,
    create_initial_values,
)
from .postprocessing import format_grid, print_grid, load_results
from .runner import run_solver, mpiexec_available

__all__ = [
    # Data structures
    "GlobalParams",
    "GlobalMetrics",
    "LocalMetrics",
    "WorkAssignment",
    "IterationState",
    # Partitioning
    "HaloLayout",
    "Partitioner",
    "partition",
    "split_sizes",
    # Errors
    "LaplaceError",
    "ConfigError",
    "SeedMismatch",
    "AllocationError",
    "WorkerFailure",
    # Grid and kernels
    "Grid",
    "NumPyKernel",
    "NumbaKernel",
    "relax_cell",
    # Solvers
    "JacobiSolver",
    "ThreadedJacobiSolver",
    "JacobiMPISolver",
    "create_solver",
    # Synchronisation
    "ChangeCounter",
    "Rendezvous",
    "WorkerState",
    # Problem setup
    "random_initial_values",
    "fixed_initial_values",
    "as_initial_values",
    "load_seed_values",
    "create_initial_values",
    # Output
    "format_grid",
    "print_grid",
    "load_results",
    "run_solver",
    "mpiexec_available",
]
