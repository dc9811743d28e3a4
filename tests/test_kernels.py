"""Tests for relaxation kernels."""

import numpy as np
import pytest
from Laplace import NumPyKernel, NumbaKernel, Partitioner, relax_cell
from Laplace.problems import random_initial_values


def run_iterations(kernel, u1, u2, n_iter):
    """Run n_iter full-interior sweeps, return the latest grid."""
    N = u1.shape[0]
    for i in range(n_iter):
        if i % 2 == 0:
            kernel.relax_rows(u1, u2, 1, N - 1)
        else:
            kernel.relax_rows(u2, u1, 1, N - 1)
    return u1 if n_iter % 2 == 0 else u2


class TestRelaxCell:
    """Tests for the single-cell update rule."""

    def test_average_of_four_neighbours(self):
        read = np.array([[0.0, 1.0, 0.0], [2.0, 9.0, 3.0], [0.0, 4.0, 0.0]])
        write = read.copy()

        changed = relax_cell(read, write, 1, 1, precision=0.5)

        assert write[1, 1] == 2.5
        assert changed == 1
        # Only the target cell is written
        assert read[1, 1] == 9.0

    def test_change_equal_to_precision_is_not_counted(self):
        """A cell has changed only if the difference exceeds the precision."""
        read = np.array([[0.0, 1.0, 0.0], [1.0, 1.5, 1.0], [0.0, 1.0, 0.0]])
        write = read.copy()

        assert relax_cell(read, write, 1, 1, precision=0.5) == 0
        assert relax_cell(read, write, 1, 1, precision=0.25) == 1


@pytest.mark.parametrize("kernel_cls", [NumPyKernel, NumbaKernel])
class TestKernel:
    """Tests shared by both kernel implementations."""

    def test_matches_cellwise_rule(self, kernel_cls):
        read = random_initial_values((7, 9), rng_seed=3)
        expected = read.copy()
        expected_changed = sum(
            relax_cell(read, expected, r, c, 0.5) for r in range(1, 6) for c in range(1, 8)
        )

        write = read.copy()
        changed = kernel_cls(0.5).relax_rows(read, write, 1, 6)

        np.testing.assert_array_equal(write, expected)
        assert changed == expected_changed

    def test_boundary_untouched(self, kernel_cls):
        read = random_initial_values((8, 8), rng_seed=1)
        write = np.full_like(read, -1.0)

        kernel_cls(0.1).relax_rows(read, write, 1, 7)

        assert np.all(write[0] == -1.0) and np.all(write[-1] == -1.0)
        assert np.all(write[:, 0] == -1.0) and np.all(write[:, -1] == -1.0)

    def test_empty_row_range(self, kernel_cls):
        read = np.ones((5, 5))
        write = read.copy()
        assert kernel_cls(0.1).relax_rows(read, write, 3, 3) == 0

    def test_assignments_reproduce_full_sweep(self, kernel_cls):
        """Relaxing every worker's cells equals one full-interior sweep."""
        N = 10
        read = random_initial_values((N, N), rng_seed=7)
        kernel = kernel_cls(0.5)
        kernel.warmup()

        full = read.copy()
        full_changed = kernel.relax_rows(read, full, 1, N - 1)

        split = read.copy()
        split_changed = sum(
            kernel.relax_assignment(read, split, a)
            for a in Partitioner(N, N, size=7).get_all_assignments()
        )

        np.testing.assert_array_equal(split, full)
        assert split_changed == full_changed


def test_kernels_produce_identical_results():
    """NumPy and Numba kernels should produce bit-identical grids."""
    u = random_initial_values((16, 16), rng_seed=0)

    numpy_kernel = NumPyKernel(precision=0.01)
    numba_kernel = NumbaKernel(precision=0.01)
    numba_kernel.warmup()

    u_numpy = run_iterations(numpy_kernel, u.copy(), u.copy(), 25)
    u_numba = run_iterations(numba_kernel, u.copy(), u.copy(), 25)

    np.testing.assert_array_equal(u_numpy, u_numba)


def test_numba_reports_thread_count():
    assert NumbaKernel(0.5).observed_numba_threads >= 1
    assert NumPyKernel(0.5).observed_numba_threads is None
