"""
Command-line entry point - runs the threaded, sequential or MPI solver.

Usage:
    laplace-relax dimension=50 precision=0.01 worker_count=4
    laplace-relax backend=mpi worker_count=4 init=fixed
    laplace-relax seed_file=seed.txt dimension=5 verbosity=true
"""

import logging
import sys
from dataclasses import fields

import hydra
from omegaconf import DictConfig, OmegaConf

from .datastructures import GlobalParams
from .errors import AllocationError, ConfigError, LaplaceError, SeedMismatch, WorkerFailure
from .postprocessing import print_grid
from .problems import create_initial_values
from .runner import run_solver
from .solvers import create_solver

log = logging.getLogger(__name__)

_ERRORS_BY_CODE = {
    cls.exit_code: cls for cls in (ConfigError, SeedMismatch, AllocationError, WorkerFailure)
}


def params_from_config(cfg: DictConfig) -> GlobalParams:
    """Build validated run parameters from the Hydra config."""
    container = OmegaConf.to_container(cfg, resolve=True)
    names = {f.name for f in fields(GlobalParams) if f.init}
    return GlobalParams(**{k: v for k, v in container.items() if k in names})


def _run_local(params: GlobalParams) -> dict:
    """Run the sequential or threaded solver in this process."""
    shape = (params.dimension, params.dimension)
    initial = create_initial_values(
        shape, init=params.init, rng_seed=params.rng_seed, seed_file=params.seed_file
    )
    solver = create_solver(
        params.backend,
        params.dimension,
        precision=params.precision,
        initial=initial,
        use_numba=params.use_numba,
        max_iter=params.max_iter,
        verbose=params.verbosity,
        worker_count=params.worker_count,
        strategy=params.strategy,
        barrier_timeout=params.barrier_timeout,
    )
    solver.warmup()
    metrics = solver.solve()
    return {
        **metrics.to_mlflow(),
        "grid": solver.u,
        "timeseries": solver.timeseries,
    }


def _run_distributed(params: GlobalParams) -> dict:
    """Spawn one MPI rank per worker and collect the root's result file."""
    result = run_solver(
        N=params.dimension,
        n_ranks=params.worker_count,
        precision=params.precision,
        init=params.init,
        rng_seed=params.rng_seed,
        seed_file=params.seed_file,
        max_iter=params.max_iter,
        use_numba=params.use_numba,
        verbosity=params.verbosity,
    )
    if "error" in result:
        for line in (result.get("stdout") or "").strip().splitlines():
            log.info(line)
        code = result.get("returncode")
        error_type = _ERRORS_BY_CODE.get(code, WorkerFailure)
        raise error_type(f"MPI run failed (exit {code}): {result['error'].strip()}")
    if params.verbosity:
        # Per-iteration grids printed by the root rank
        for line in result["stdout"].splitlines():
            if not line.startswith("RESULT:"):
                print(line)
    return result


def _log_results(cfg: DictConfig, params: GlobalParams, result: dict):
    """Log run parameters, metrics and timeseries to MLflow."""
    from utils.mlflow.io import (
        log_metrics_dict,
        log_parameters,
        log_timeseries_metrics,
        setup_mlflow_tracking,
        start_mlflow_run_context,
    )

    setup_mlflow_tracking(mode=cfg.mlflow.mode)
    run_name = f"{params.backend}_N{params.dimension}_w{params.worker_count}"
    with start_mlflow_run_context(
        experiment_name=params.experiment_name,
        parent_run_name=f"N{params.dimension}",
        child_run_name=run_name,
    ):
        run_params = params.to_mlflow()
        if "halo_size_mb" in result:
            # Per-rank traffic, only reported by distributed runs
            run_params["halo_size_mb"] = result["halo_size_mb"]
        log_parameters(run_params)
        metric_keys = ("converged", "iterations", "wall_time", "total_compute_time",
                       "total_sync_time", "mlups")
        log_metrics_dict({k: float(result[k]) for k in metric_keys if result.get(k) is not None})
        log_timeseries_metrics(result["timeseries"])


def run(cfg: DictConfig) -> int:
    """Run one relaxation from config. Returns the process exit code."""
    try:
        params = params_from_config(cfg)
        log.info(
            f"{params.backend}, dimension={params.dimension}, "
            f"precision={params.precision}, workers={params.worker_count}"
        )
        if params.backend == "mpi":
            result = _run_distributed(params)
        else:
            result = _run_local(params)
    except LaplaceError as exc:
        log.error(f"{type(exc).__name__}: {exc}")
        return exc.exit_code

    iterations = int(result["iterations"])
    if result.get("converged"):
        print(f"Reached in {iterations} iterations.")
    else:
        print(f"Stopped after {iterations} iterations without converging.")
    print_grid(result["grid"])

    if cfg.mlflow.mode != "off":
        _log_results(cfg, params, result)

    log.info(
        f"Done: {iterations} iter, time={result.get('wall_time', 0.0):.3f}s"
        + (f", {result['mlups']:.1f} Mlup/s" if result.get("mlups") else "")
    )
    return 0


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Hydra entry point for ``laplace-relax``."""
    code = run(cfg)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
