"""Distributed grid abstraction for scatter/gather relaxation.

This module provides a DistributedGrid class that encapsulates:
- Row decomposition with a one-row halo above and below each rank's slab
- The collectives one iteration needs (scatter, gather, all-reduce, bcast)
- Local slab allocation

Solvers interact with this single interface rather than managing MPI
buffers, counts and displacements directly.
"""

from __future__ import annotations

import numpy as np
from mpi4py import MPI

from ..decomposition import HaloLayout
from ..errors import AllocationError, WorkerFailure


class DistributedGrid:
    """Row-distributed grid with a root rank holding the full array.

    Parameters
    ----------
    N : int
        Global grid size (N x N including boundaries).
    comm : MPI.Comm
        MPI communicator.
    root : int
        Rank owning the full grid (default: 0).

    Example
    -------
    >>> dgrid = DistributedGrid(N=65, comm=MPI.COMM_WORLD)
    >>> slab = dgrid.allocate()      # owned rows + halo rows
    >>> dgrid.scatter_slabs(full, slab)
    >>> dgrid.gather_rows(slab, full_next)
    """

    def __init__(self, N: int, comm: MPI.Comm = MPI.COMM_WORLD, root: int = 0):
        self.N = N
        self.comm = comm
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()
        self.root = root

        # Counts and displacements are fixed for the whole run
        self.layout = HaloLayout.from_partition(N, N, self.size)

        self.local_rows = self.layout.row_counts[self.rank]
        self.halo_shape = self.layout.slab_shape(self.rank)

        self._sendbuf = None
        if self.is_root:
            total = sum(self.layout.scatter_counts)
            self._sendbuf = self._alloc((total,))

    @property
    def is_root(self) -> bool:
        return self.rank == self.root

    @staticmethod
    def _alloc(shape) -> np.ndarray:
        try:
            return np.zeros(shape, dtype=np.float64)
        except MemoryError as exc:
            raise AllocationError(f"Could not allocate buffer of shape {shape}") from exc

    def allocate(self) -> np.ndarray:
        """Allocate a local slab (owned rows plus one halo row each side)."""
        return self._alloc(self.halo_shape)

    # ========================================================================
    # Collectives
    # ========================================================================

    def scatter_slabs(self, full: np.ndarray, slab: np.ndarray):
        """Send every rank its rows of ``full`` (root only) into ``slab``."""
        sendbuf = None
        if self.is_root:
            offset = 0
            for part in range(self.size):
                count = self.layout.scatter_counts[part]
                if count:
                    rows = full[self.layout.slab_rows(part)]
                    self._sendbuf[offset : offset + count] = rows.ravel()
                offset += count
            sendbuf = [
                self._sendbuf,
                self.layout.scatter_counts,
                self.layout.scatter_displs,
                MPI.DOUBLE,
            ]
        self._collective(self.comm.Scatterv, sendbuf, slab.reshape(-1), root=self.root)

    def gather_rows(self, slab: np.ndarray, full: np.ndarray):
        """Collect every rank's owned rows into ``full`` on root.

        Halo rows of ``slab`` are not sent; rows outside any rank's slab
        (the top and bottom boundary rows) are left as they are.
        """
        owned = np.ascontiguousarray(slab[1:-1]) if self.local_rows else slab
        recvbuf = None
        if self.is_root:
            recvbuf = [
                full.reshape(-1),
                self.layout.gather_counts,
                self.layout.gather_displs,
                MPI.DOUBLE,
            ]
        self._collective(self.comm.Gatherv, owned.reshape(-1), recvbuf, root=self.root)

    def allreduce_sum(self, value: int) -> int:
        """Global sum of an integer, visible on every rank."""
        local = np.array([value], dtype=np.int64)
        total = np.zeros(1, dtype=np.int64)
        self._collective(self.comm.Allreduce, local, total, op=MPI.SUM)
        return int(total[0])

    def bcast(self, obj):
        """Broadcast a Python object from root."""
        return self._collective(self.comm.bcast, obj, root=self.root)

    def _collective(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except MPI.Exception as exc:
            raise WorkerFailure(
                f"Rank {self.rank} failed in {fn.__name__}: {exc}", worker_id=self.rank
            ) from exc

    def get_halo_size_bytes(self) -> int:
        """Bytes moved per iteration by this rank (scatter + gather)."""
        return 8 * (
            self.layout.scatter_counts[self.rank] + self.layout.gather_counts[self.rank]
        )
