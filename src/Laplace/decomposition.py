"""Work partitioning for shared-memory and distributed relaxation.

Pure index arithmetic with no threading or MPI dependencies. The same split
rule serves both execution models: the first ``n % parts`` parts get one
extra unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .datastructures import STRATEGIES, WorkAssignment
from .errors import AllocationError, ConfigError


def split_sizes(n: int, parts: int) -> tuple[list[int], list[int]]:
    """Split ``n`` units into ``parts`` near-equal contiguous runs.

    Returns
    -------
    counts, starts : list of int
        ``counts[p]`` is ``n // parts`` or one more; ``starts`` are 0-based
        running offsets.
    """
    base, rem = divmod(n, parts)
    counts = [base + (1 if p < rem else 0) for p in range(parts)]
    starts = [0] * parts
    for p in range(1, parts):
        starts[p] = starts[p - 1] + counts[p - 1]
    return counts, starts


def partition(
    interior_rows: int,
    interior_cols: int,
    worker_count: int,
    strategy: str = "cells",
) -> List[WorkAssignment]:
    """Assign the interior of a grid to ``worker_count`` workers.

    Parameters
    ----------
    interior_rows, interior_cols : int
        Interior extent (grid shape minus the boundary on each side).
    worker_count : int
        Number of workers, >= 1.
    strategy : str
        ``'cells'`` splits the row-major flattened interior by cell count;
        ``'rows'`` splits whole rows.

    Returns
    -------
    list of WorkAssignment
        One per worker, ordered by worker id, covering the interior exactly
        once.
    """
    if worker_count < 1:
        raise ConfigError(f"worker_count must be >= 1, got {worker_count}")
    if interior_rows < 1 or interior_cols < 1:
        raise ConfigError(
            "Grid dimensions must be >= 3 to have an interior, got interior "
            f"{interior_rows}x{interior_cols}"
        )
    if strategy not in STRATEGIES:
        raise ConfigError(f"Unknown strategy: {strategy}. Use 'cells' or 'rows'.")

    n_units = interior_rows * interior_cols if strategy == "cells" else interior_rows

    try:
        counts, starts = split_sizes(n_units, worker_count)
    except MemoryError as exc:
        raise AllocationError(
            f"Could not allocate partition table for {worker_count} workers"
        ) from exc

    return [
        WorkAssignment(
            worker_id=w,
            start=starts[w],
            count=counts[w],
            unit=strategy,
            interior_cols=interior_cols,
        )
        for w in range(worker_count)
    ]


class Partitioner:
    """Partition of a grid interior across workers.

    Parameters
    ----------
    rows, cols : int
        Grid shape including boundaries.
    size : int
        Number of workers.
    strategy : str
        'cells' (flat cell split, tightest balance) or 'rows' (whole rows).

    Examples
    --------
    >>> part = Partitioner(rows=5, cols=5, size=2)
    >>> [a.count for a in part.get_all_assignments()]
    [5, 4]
    """

    def __init__(self, rows: int, cols: int = None, size: int = 1, strategy: str = "cells"):
        cols = rows if cols is None else cols
        self.rows = rows
        self.cols = cols
        self.size = size
        self.strategy = strategy

        self._assignments = partition(rows - 2, cols - 2, size, strategy)

    def get_assignment(self, worker: int) -> WorkAssignment:
        """Get the assignment of a single worker."""
        return self._assignments[worker]

    def get_all_assignments(self) -> List[WorkAssignment]:
        return self._assignments

    def describe(self) -> List[str]:
        """One human-readable line per worker."""
        return [
            f"Worker {a.worker_id} starting at ({a.start_row},{a.start_col}) "
            f"doing {a.ncells} cells"
            for a in self._assignments
        ]


@dataclass(frozen=True)
class HaloLayout:
    """Scatter/gather counts and displacements for row-distributed grids.

    All counts and displacements are in float64 elements. Scatter sends each
    participant its owned rows plus one halo row above and below, packed
    back-to-back so no source element is read twice. Gather collects owned
    rows only, straight into their place in the full grid. Participants that
    own no rows exchange nothing.
    """

    rows: int
    cols: int
    row_counts: tuple
    row_starts: tuple  # first owned grid row per participant
    scatter_counts: tuple
    scatter_displs: tuple
    gather_counts: tuple
    gather_displs: tuple

    @classmethod
    def from_partition(cls, rows: int, cols: int, n_parts: int) -> "HaloLayout":
        assignments = partition(rows - 2, cols - 2, n_parts, strategy="rows")
        row_counts = tuple(a.count for a in assignments)
        row_starts = tuple(a.start_row for a in assignments)

        scatter_counts = tuple((n + 2) * cols if n else 0 for n in row_counts)
        scatter_displs = [0] * n_parts
        for p in range(1, n_parts):
            scatter_displs[p] = scatter_displs[p - 1] + scatter_counts[p - 1]

        gather_counts = tuple(n * cols for n in row_counts)
        gather_displs = tuple(start * cols for start in row_starts)

        return cls(
            rows=rows,
            cols=cols,
            row_counts=row_counts,
            row_starts=row_starts,
            scatter_counts=scatter_counts,
            scatter_displs=tuple(scatter_displs),
            gather_counts=gather_counts,
            gather_displs=gather_displs,
        )

    @property
    def n_parts(self) -> int:
        return len(self.row_counts)

    def slab_rows(self, part: int) -> slice:
        """Grid rows sent to ``part``: owned rows plus the halo rows."""
        start = self.row_starts[part]
        return slice(start - 1, start + self.row_counts[part] + 1)

    def slab_shape(self, part: int) -> tuple[int, int]:
        n = self.row_counts[part]
        return (n + 2, self.cols) if n else (0, self.cols)
