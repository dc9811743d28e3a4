"""Grid printing and loading of HDF5 result files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import h5py
import numpy as np


def format_grid(arr: np.ndarray) -> str:
    """Row-major text: ``"%f "`` per cell, one row per line, trailing blank line."""
    lines = ["".join(f"{value:f} " for value in row) for row in arr]
    return "\n".join(lines) + "\n\n"


def print_grid(arr: np.ndarray):
    print(format_grid(arr), end="", flush=True)


def load_results(path) -> Dict[str, Any]:
    """Load a result file written by ``BaseSolver.save_hdf5``.

    Returns
    -------
    dict
        Config and results attributes merged into one flat dict, plus
        ``grid`` (final array) and ``timeseries`` (dict of arrays).
    """
    path = Path(path)
    with h5py.File(path, "r") as f:
        out = {k: _to_python(v) for k, v in f["config"].attrs.items()}
        out.update({k: _to_python(v) for k, v in f["results"].attrs.items()})
        out["grid"] = f["fields/u"][...]
        out["timeseries"] = {k: f["timeseries"][k][...] for k in f["timeseries"]}
    return out


def _to_python(value):
    """Unwrap numpy scalars stored as HDF5 attributes."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, bytes):
        return value.decode()
    return value
