"""Initial grid values.

All functions return a full ``(rows, cols)`` float64 array, boundary
included. The solver copies it into both grid buffers.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from .errors import SeedMismatch

log = logging.getLogger(__name__)


def random_initial_values(shape, rng_seed: int = None) -> np.ndarray:
    """Uniform random fill in ``[0, 10)``, boundary included.

    Pass ``rng_seed`` to get the same grid on every run.
    """
    rng = np.random.default_rng(rng_seed)
    return 10.0 * rng.random(shape)


def fixed_initial_values(shape, boundary: float = 1.0, interior: float = 0.0) -> np.ndarray:
    """Boundary held at ``boundary``, interior seeded with ``interior``."""
    values = np.full(shape, boundary, dtype=np.float64)
    values[1:-1, 1:-1] = interior
    return values


def as_initial_values(values, shape) -> np.ndarray:
    """Reshape a flat row-major sequence (or 2D array) to the grid shape.

    Raises
    ------
    SeedMismatch
        If the number of values differs from ``rows * cols``.
    """
    arr = np.asarray(values, dtype=np.float64)
    expected = shape[0] * shape[1]
    if arr.size != expected:
        raise SeedMismatch(
            f"Got {arr.size} seed values, need exactly {expected} for a "
            f"{shape[0]}x{shape[1]} grid"
        )
    return arr.reshape(shape)


def load_seed_values(path, shape) -> np.ndarray:
    """Load whitespace-separated seed values from ``path``, row-major."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as exc:
        raise SeedMismatch(f"Could not read seed file {path}: {exc}") from exc

    try:
        values = np.array(text.split(), dtype=np.float64)
    except ValueError as exc:
        raise SeedMismatch(f"Seed file {path} contains non-numeric values") from exc

    log.info(f"Loaded {values.size} seed values from {path}")
    return as_initial_values(values, shape)


def create_initial_values(
    shape,
    init: str = "random",
    rng_seed: int = None,
    seed_file: str = None,
) -> np.ndarray:
    """Build initial values from run config. A seed file overrides ``init``."""
    if seed_file:
        return load_seed_values(seed_file, shape)
    if init == "fixed":
        return fixed_initial_values(shape)
    return random_initial_values(shape, rng_seed)
