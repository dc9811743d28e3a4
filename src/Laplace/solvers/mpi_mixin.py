"""Rank bookkeeping shared by the distributed drivers."""

from mpi4py import MPI


class MPISolverMixin:
    """Communicator, rank and clock for a driver running on MPI ranks.

    Put it first in the bases so its ``_get_time`` and ``_is_root``
    replace the single-process hooks of BaseSolver::

        class JacobiMPISolver(MPISolverMixin, JacobiSolver):
            def __init__(self, N, comm=None, **kwargs):
                self._init_mpi(comm)
                ...
    """

    def _init_mpi(self, comm=None):
        """Bind ``comm`` (default COMM_WORLD) before the grid is laid out."""
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

    def _get_time(self) -> float:
        return MPI.Wtime()

    def _is_root(self) -> bool:
        """Rank 0 holds the full grid, prints it and writes results."""
        return self.rank == 0

    def _barrier(self):
        """Line up all ranks so wall time starts together."""
        self.comm.Barrier()
