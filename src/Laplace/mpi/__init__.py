"""MPI distribution of the grid.

This package provides:
- DistributedGrid: scatter/gather/all-reduce interface over a row layout
- HaloLayout: Exported from decomposition for convenience
"""

from .grid import DistributedGrid
from ..decomposition import HaloLayout

__all__ = [
    "DistributedGrid",
    "HaloLayout",
]
