"""Relaxation kernels.

Each kernel relaxes rectangular blocks of interior cells, reading ``read``
and writing ``write``, and returns how many cells changed by more than the
precision threshold. The neighbour sum is always formed as N + S + W + E
and then divided by 4, so both kernels and any partition of the work give
bit-identical grids.
"""

import numpy as np
import numba
from numba import njit


def relax_cell(read: np.ndarray, write: np.ndarray, row: int, col: int, precision: float) -> int:
    """Relax one cell. Returns 1 if it changed by more than ``precision``."""
    new = (
        read[row - 1, col]  # N
        + read[row + 1, col]  # S
        + read[row, col - 1]  # W
        + read[row, col + 1]  # E
    ) / 4.0
    write[row, col] = new
    return int(abs(read[row, col] - new) > precision)


@njit(nogil=True)
def _relax_block_numba(read, write, r0, r1, c0, c1, precision):
    """Numba JIT relaxation of the block ``[r0:r1, c0:c1]``."""
    changed = 0
    for i in range(r0, r1):
        for j in range(c0, c1):
            new = (read[i - 1, j] + read[i + 1, j] + read[i, j - 1] + read[i, j + 1]) / 4.0
            write[i, j] = new
            if abs(read[i, j] - new) > precision:
                changed += 1
    return changed


class _BaseKernel:
    """Shared dispatch over assignments and row ranges."""

    def __init__(self, precision: float):
        self.precision = precision

    def relax_block(self, read, write, r0, r1, c0, c1) -> int:
        raise NotImplementedError

    def relax_assignment(self, read: np.ndarray, write: np.ndarray, assignment) -> int:
        """Relax every cell of a WorkAssignment."""
        return sum(
            self.relax_block(read, write, r0, r1, c0, c1)
            for r0, r1, c0, c1 in assignment.segments()
        )

    def relax_rows(self, read: np.ndarray, write: np.ndarray, start_row: int, stop_row: int) -> int:
        """Relax all interior columns of rows ``start_row`` to ``stop_row - 1``."""
        if stop_row <= start_row:
            return 0
        return self.relax_block(read, write, start_row, stop_row, 1, read.shape[1] - 1)

    def warmup(self, warmup_size: int = 10):
        """No-op unless the kernel needs compiling."""
        pass


class NumPyKernel(_BaseKernel):
    """NumPy-based relaxation kernel."""

    observed_numba_threads = None  # Not applicable for NumPy

    def relax_block(self, read, write, r0, r1, c0, c1) -> int:
        new = (
            read[r0 - 1 : r1 - 1, c0:c1]
            + read[r0 + 1 : r1 + 1, c0:c1]
            + read[r0:r1, c0 - 1 : c1 - 1]
            + read[r0:r1, c0 + 1 : c1 + 1]
        ) / 4.0
        write[r0:r1, c0:c1] = new
        return int(np.count_nonzero(np.abs(read[r0:r1, c0:c1] - new) > self.precision))


class NumbaKernel(_BaseKernel):
    """Numba JIT-compiled relaxation kernel.

    Compiled with ``nogil=True`` so worker threads relax their blocks
    concurrently instead of taking turns on the GIL.
    """

    def __init__(self, precision: float):
        super().__init__(precision)
        self.observed_numba_threads = numba.get_num_threads()

    def relax_block(self, read, write, r0, r1, c0, c1) -> int:
        return int(_relax_block_numba(read, write, r0, r1, c0, c1, self.precision))

    def warmup(self, warmup_size: int = 10):
        """Trigger JIT compilation with a small problem."""
        u1 = np.random.rand(warmup_size, warmup_size) * 10.0
        u2 = u1.copy()
        for _ in range(3):
            _relax_block_numba(u1, u2, 1, warmup_size - 1, 1, warmup_size - 1, self.precision)
            u1, u2 = u2, u1


def create_kernel(precision: float, use_numba: bool = False):
    """Select the kernel implementation."""
    if use_numba:
        return NumbaKernel(precision)
    return NumPyKernel(precision)
