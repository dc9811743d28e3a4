"""Tests for initial value setup."""

import numpy as np
import pytest
from Laplace import (
    SeedMismatch,
    as_initial_values,
    create_initial_values,
    fixed_initial_values,
    load_seed_values,
    random_initial_values,
)


class TestInitialValues:
    """Tests for generated initial values."""

    def test_random_range_and_shape(self):
        u = random_initial_values((6, 4), rng_seed=5)

        assert u.shape == (6, 4)
        assert u.dtype == np.float64
        assert u.min() >= 0.0 and u.max() < 10.0

    def test_random_seed_reproducible(self):
        a = random_initial_values((5, 5), rng_seed=42)
        b = random_initial_values((5, 5), rng_seed=42)
        np.testing.assert_array_equal(a, b)

    def test_fixed_boundary_and_interior(self):
        u = fixed_initial_values((5, 5))

        assert np.all(u[1:-1, 1:-1] == 0.0)
        assert np.all(u[0] == 1.0) and np.all(u[-1] == 1.0)
        assert np.all(u[:, 0] == 1.0) and np.all(u[:, -1] == 1.0)

    def test_flat_values_reshaped_row_major(self):
        u = as_initial_values(range(6), (2, 3))
        np.testing.assert_array_equal(u, [[0, 1, 2], [3, 4, 5]])

    @pytest.mark.parametrize("n_values", [8, 10, 0])
    def test_wrong_count(self, n_values):
        with pytest.raises(SeedMismatch):
            as_initial_values(np.ones(n_values), (3, 3))


class TestSeedFile:
    """Tests for loading seed values from a file."""

    def test_load(self, tmp_path):
        path = tmp_path / "seed.txt"
        path.write_text("1 1 1\n1 5 1\n1 1 1\n")

        u = load_seed_values(path, (3, 3))

        assert u[1, 1] == 5.0
        assert u.sum() == 13.0

    def test_too_few_values(self, tmp_path):
        path = tmp_path / "seed.txt"
        path.write_text("1 2 3 4")
        with pytest.raises(SeedMismatch):
            load_seed_values(path, (3, 3))

    def test_non_numeric(self, tmp_path):
        path = tmp_path / "seed.txt"
        path.write_text("1 2 x 4 5 6 7 8 9")
        with pytest.raises(SeedMismatch):
            load_seed_values(path, (3, 3))

    def test_missing_file(self, tmp_path):
        with pytest.raises(SeedMismatch):
            load_seed_values(tmp_path / "absent.txt", (3, 3))

    def test_seed_file_overrides_init(self, tmp_path):
        path = tmp_path / "seed.txt"
        path.write_text(" ".join(["2"] * 9))

        u = create_initial_values((3, 3), init="random", seed_file=str(path))
        assert np.all(u == 2.0)

    def test_fixed_init(self):
        u = create_initial_values((4, 4), init="fixed")
        np.testing.assert_array_equal(u, fixed_initial_values((4, 4)))
