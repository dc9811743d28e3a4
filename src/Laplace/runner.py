"""Run the distributed solver via mpiexec subprocess."""

import json
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

from .postprocessing import load_results

log = logging.getLogger(__name__)


def mpiexec_available() -> bool:
    return shutil.which("mpiexec") is not None


def run_solver(N: int, n_ranks: int = 1, output: str = None, timeout: float = None, **kwargs) -> dict:
    """Run JacobiMPISolver on an N x N grid across n_ranks MPI processes.

    Parameters
    ----------
    N : int
        Grid size
    n_ranks : int
        Number of MPI ranks
    output : str, optional
        Path to save HDF5 results (uses temp file if not provided)
    timeout : float, optional
        Seconds before the mpiexec run is killed (default: no limit)
    **kwargs
        Extra options: precision, init, rng_seed, seed_file, max_iter,
        use_numba, verbosity

    Returns
    -------
    dict
        Results with config, metrics and ``grid`` (or 'error' key on failure)
    """
    # Use temp file if no output path specified
    use_temp = output is None
    if use_temp:
        tmp = tempfile.NamedTemporaryFile(suffix=".h5", delete=False)
        output = tmp.name
        tmp.close()

    config = {"N": N, "output": output, **kwargs}
    cmd = [
        "mpiexec", "-n", str(n_ranks),
        sys.executable, "-m", "Laplace.helpers.runner_helper", json.dumps(config),
    ]
    log.debug(" ".join(cmd))

    env = os.environ.copy()
    # Open MPI refuses root and more ranks than cores unless told otherwise
    env.setdefault("OMPI_ALLOW_RUN_AS_ROOT", "1")
    env.setdefault("OMPI_ALLOW_RUN_AS_ROOT_CONFIRM", "1")
    env.setdefault("OMPI_MCA_rmaps_base_oversubscribe", "1")
    env.setdefault("PRTE_MCA_rmaps_default_mapping_policy", ":oversubscribe")

    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, env=env, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        return {"error": f"mpiexec timed out after {timeout}s", "stderr": exc.stderr}
    except FileNotFoundError as exc:
        return {"error": f"mpiexec not found: {exc}"}

    try:
        if proc.returncode != 0:
            return {"error": proc.stderr, "returncode": proc.returncode, "stdout": proc.stdout}

        # Load results from HDF5
        if not Path(output).exists() or Path(output).stat().st_size == 0:
            return {"error": "No output file created", "stderr": proc.stderr}

        result = load_results(output)
        result["stdout"] = proc.stdout
        return result
    finally:
        # Clean up temp file if we created one
        if use_temp:
            Path(output).unlink(missing_ok=True)
