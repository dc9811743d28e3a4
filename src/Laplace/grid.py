"""Double-buffered 2D grid.

The grid owns two same-shape buffers. One is ``current`` (read during a
relax phase) and the other ``next`` (written during a relax phase). The
``active`` index names the current buffer; ``swap()`` toggles it so roles
change without copying or re-binding arrays held by workers.
"""

from __future__ import annotations

import numpy as np

from .errors import AllocationError, ConfigError


def _allocate(shape: tuple[int, int]) -> np.ndarray:
    return np.zeros(shape, dtype=np.float64)


class Grid:
    """Two ``rows x cols`` float64 buffers with a toggled read/write role.

    Parameters
    ----------
    rows : int
        Number of rows including the two boundary rows.
    cols : int, optional
        Number of columns including the two boundary columns
        (default: square grid).

    Example
    -------
    >>> grid = Grid(5)
    >>> grid.seed(np.ones((5, 5)))
    >>> grid.current is grid.buffers[grid.active]
    True
    """

    def __init__(self, rows: int, cols: int = None):
        cols = rows if cols is None else cols
        if rows < 3 or cols < 3:
            raise ConfigError(
                f"Grid must be at least 3x3 to have an interior, got {rows}x{cols}"
            )
        self.shape = (rows, cols)
        self.rows, self.cols = rows, cols

        try:
            self.buffers = (_allocate(self.shape), _allocate(self.shape))
        except MemoryError as exc:
            raise AllocationError(
                f"Could not allocate two {rows}x{cols} float64 buffers"
            ) from exc

        self.active = 0

    @property
    def current(self) -> np.ndarray:
        """Buffer read by the relax phase (holds the latest state)."""
        return self.buffers[self.active]

    @property
    def next(self) -> np.ndarray:
        """Buffer written by the relax phase."""
        return self.buffers[1 - self.active]

    @property
    def interior_shape(self) -> tuple[int, int]:
        return (self.rows - 2, self.cols - 2)

    @property
    def n_interior(self) -> int:
        return (self.rows - 2) * (self.cols - 2)

    def swap(self):
        """Exchange read/write roles."""
        self.active = 1 - self.active

    def seed(self, values: np.ndarray):
        """Copy initial values into both buffers.

        Both buffers start identical so boundary cells hold the same value in
        whichever buffer is current, and the first convergence check compares
        against the real seed.
        """
        values = np.asarray(values, dtype=np.float64)
        if values.shape != self.shape:
            raise ValueError(f"Seed shape {values.shape} does not match {self.shape}")
        self.buffers[0][...] = values
        self.buffers[1][...] = values
        self.active = 0

    def boundary_mask(self) -> np.ndarray:
        """Boolean mask that is True on boundary cells."""
        mask = np.ones(self.shape, dtype=bool)
        mask[1:-1, 1:-1] = False
        return mask

    def is_boundary(self, row: int, col: int) -> bool:
        self._check_bounds(row, col)
        return row in (0, self.rows - 1) or col in (0, self.cols - 1)

    def _check_bounds(self, row: int, col: int):
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(
                f"Cell ({row}, {col}) outside {self.rows}x{self.cols} grid"
            )

    def __getitem__(self, index: tuple[int, int]) -> float:
        row, col = index
        self._check_bounds(row, col)
        return float(self.current[row, col])

    def __setitem__(self, index: tuple[int, int], value: float):
        row, col = index
        self._check_bounds(row, col)
        self.current[row, col] = value

    def __repr__(self) -> str:
        return f"Grid(rows={self.rows}, cols={self.cols}, active={self.active})"
