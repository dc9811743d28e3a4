"""Tests for work partitioning and scatter/gather layout."""

import numpy as np
import pytest
from Laplace import ConfigError, HaloLayout, Partitioner, partition, split_sizes


def coverage(assignments, rows, cols):
    """Count how many assignments own each grid cell."""
    owned = np.zeros((rows, cols), dtype=int)
    for a in assignments:
        for r0, r1, c0, c1 in a.segments():
            owned[r0:r1, c0:c1] += 1
    return owned


class TestSplitSizes:
    """Tests for the near-equal split rule."""

    def test_remainder_goes_to_first_parts(self):
        counts, starts = split_sizes(10, 4)
        assert counts == [3, 3, 2, 2]
        assert starts == [0, 3, 6, 8]

    def test_more_parts_than_units(self):
        counts, starts = split_sizes(2, 5)
        assert counts == [1, 1, 0, 0, 0]
        assert starts == [0, 1, 2, 2, 2]


class TestCellPartition:
    """Tests for the flat cell split."""

    @pytest.mark.parametrize("N,workers", [(5, 1), (5, 2), (10, 3), (12, 7), (6, 20)])
    def test_full_coverage_no_overlaps(self, N, workers):
        """Each interior cell owned by exactly one worker, boundary by none."""
        assignments = partition(N - 2, N - 2, workers, "cells")
        owned = coverage(assignments, N, N)

        assert np.all(owned[1:-1, 1:-1] == 1)
        owned[1:-1, 1:-1] = 0
        assert not owned.any()

    @pytest.mark.parametrize("N,workers", [(7, 3), (10, 4), (11, 6)])
    def test_sizes_differ_by_at_most_one(self, N, workers):
        sizes = [a.ncells for a in partition(N - 2, N - 2, workers)]
        assert sum(sizes) == (N - 2) ** 2
        assert max(sizes) - min(sizes) <= 1
        # Larger parts come first
        assert sizes == sorted(sizes, reverse=True)

    def test_mid_row_start(self):
        """Worker 1 of 2 on a 5x5 grid starts mid-row."""
        part = Partitioner(rows=5, cols=5, size=2)
        a0, a1 = part.get_all_assignments()

        assert (a0.start_row, a0.start_col, a0.ncells) == (1, 1, 5)
        assert (a1.start_row, a1.start_col, a1.ncells) == (2, 3, 4)

    def test_segments_split_partial_rows(self):
        part = Partitioner(rows=5, cols=5, size=2)

        assert part.get_assignment(0).segments() == [(1, 2, 1, 4), (2, 3, 1, 3)]
        assert part.get_assignment(1).segments() == [(2, 3, 3, 4), (3, 4, 1, 4)]

    def test_idle_workers_have_no_segments(self):
        assignments = partition(1, 1, 3)
        assert [a.count for a in assignments] == [1, 0, 0]
        assert assignments[1].segments() == []

    def test_describe(self):
        lines = Partitioner(rows=5, cols=5, size=2).describe()
        assert lines == [
            "Worker 0 starting at (1,1) doing 5 cells",
            "Worker 1 starting at (2,3) doing 4 cells",
        ]


class TestRowPartition:
    """Tests for the whole-row split."""

    @pytest.mark.parametrize("N,workers", [(6, 2), (9, 4), (5, 5)])
    def test_full_coverage_no_overlaps(self, N, workers):
        assignments = partition(N - 2, N - 2, workers, "rows")
        owned = coverage(assignments, N, N)

        assert np.all(owned[1:-1, 1:-1] == 1)
        assert owned.sum() == (N - 2) ** 2

    def test_row_assignment_is_one_block(self):
        a = partition(4, 4, 2, "rows")[1]
        assert (a.start_row, a.start_col, a.ncells) == (3, 1, 8)
        assert a.segments() == [(3, 5, 1, 5)]


class TestPartitionErrors:
    """Invalid configurations are rejected."""

    def test_zero_workers(self):
        with pytest.raises(ConfigError):
            partition(3, 3, 0)

    def test_no_interior(self):
        with pytest.raises(ConfigError):
            Partitioner(rows=2, cols=2, size=1)

    def test_unknown_strategy(self):
        with pytest.raises(ConfigError):
            partition(3, 3, 2, "cubic")


class TestHaloLayout:
    """Tests for scatter/gather counts and displacements."""

    def test_counts_and_displacements(self):
        layout = HaloLayout.from_partition(6, 6, 2)

        assert layout.row_counts == (2, 2)
        assert layout.row_starts == (1, 3)
        assert layout.scatter_counts == (24, 24)
        assert layout.scatter_displs == (0, 24)
        assert layout.gather_counts == (12, 12)
        assert layout.gather_displs == (6, 18)

    def test_slab_includes_halo_rows(self):
        layout = HaloLayout.from_partition(6, 6, 2)
        assert layout.slab_rows(1) == slice(2, 6)
        assert layout.slab_shape(1) == (4, 6)

    def test_gather_covers_interior_rows_once(self):
        N = 11
        layout = HaloLayout.from_partition(N, N, 4)
        covered = np.zeros(N * N, dtype=int)
        for count, displ in zip(layout.gather_counts, layout.gather_displs):
            covered[displ : displ + count] += 1

        covered = covered.reshape(N, N)
        assert np.all(covered[1:-1] == 1)
        assert covered[0].sum() == covered[-1].sum() == 0

    def test_zero_row_participants_exchange_nothing(self):
        layout = HaloLayout.from_partition(5, 5, 5)

        assert layout.row_counts == (1, 1, 1, 0, 0)
        assert layout.scatter_counts[3:] == (0, 0)
        assert layout.gather_counts[3:] == (0, 0)
        assert layout.slab_shape(4) == (0, 5)
        assert layout.n_parts == 5
