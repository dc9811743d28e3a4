"""Relaxation Solvers.

Consistent naming: {Method}Solver for one process, {Method}MPISolver for
distributed runs.

Single process:
- JacobiSolver: Sequential reference driver
- ThreadedJacobiSolver: Worker threads sharing one double-buffered grid

Distributed (MPI):
- JacobiMPISolver: Scatter/gather relaxation with an all-reduce stop test
"""

from ..errors import ConfigError
from .jacobi import JacobiSolver
from .threaded import ThreadedJacobiSolver
from .jacobi_mpi import JacobiMPISolver

__all__ = [
    "JacobiSolver",
    "ThreadedJacobiSolver",
    "JacobiMPISolver",
    "create_solver",
]


def create_solver(backend: str, N: int, **kwargs):
    """Instantiate the solver for ``backend`` ('sequential', 'threads', 'mpi').

    Keyword arguments a backend does not take are dropped.
    """
    worker_count = kwargs.pop("worker_count", 1)
    strategy = kwargs.pop("strategy", "cells")
    barrier_timeout = kwargs.pop("barrier_timeout", None)
    comm = kwargs.pop("comm", None)

    if backend == "sequential":
        return JacobiSolver(N, **kwargs)
    if backend == "threads":
        return ThreadedJacobiSolver(
            N,
            worker_count=worker_count,
            strategy=strategy,
            barrier_timeout=barrier_timeout,
            **kwargs,
        )
    if backend == "mpi":
        return JacobiMPISolver(N, comm=comm, **kwargs)
    raise ConfigError(f"Unknown backend: {backend}")
