"""MLflow I/O utilities for experiment tracking.

This module provides helpers for:
- Setting up MLflow tracking (local file store or Databricks).
- Orchestrating MLflow runs (context manager for parent/nested runs).
- Logging parameters, metrics, and per-iteration timeseries.
"""

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from pathlib import Path

import mlflow

log = logging.getLogger(__name__)


def setup_mlflow_tracking(mode: str = "local", tracking_dir: Path = None):
    """
    Configures MLflow tracking.

    Parameters
    ----------
    mode : str
        "databricks" or "local".
    tracking_dir : Path, optional
        Directory for the local file store (default: ./mlruns).
    """
    if mode == "databricks":
        try:
            mlflow.login(backend="databricks", interactive=False)
            mlflow.set_tracking_uri("databricks")
            log.info("Connected to Databricks MLflow tracking.")
        except Exception as e:
            raise RuntimeError(
                "MLflow Databricks setup failed. Ensure credentials are configured."
            ) from e
    elif mode == "local":
        mlruns_path = Path(tracking_dir) if tracking_dir else Path.cwd() / "mlruns"
        mlruns_uri = mlruns_path.resolve().as_uri()
        mlflow.set_tracking_uri(mlruns_uri)
        log.info(f"Using local file-based MLflow tracking backend: {mlruns_uri}")
    else:
        log.warning(
            f"Unknown MLflow mode '{mode}'. Using existing URI: {mlflow.get_tracking_uri()}"
        )


def get_mlflow_client() -> mlflow.tracking.MlflowClient:
    """Get an MLflow tracking client."""
    return mlflow.tracking.MlflowClient()


@contextmanager
def start_mlflow_run_context(
    experiment_name: str,
    parent_run_name: str,
    child_run_name: str,
    project_prefix: str = "/Shared/Laplace-Relaxation",
):
    """
    Context manager to start a nested MLflow run under a named parent run.

    Parent runs are reused across invocations so all runs for one grid size
    group together.
    """
    if mlflow.get_tracking_uri() == "databricks" and not experiment_name.startswith("/"):
        experiment_name = f"{project_prefix}/{experiment_name}"

    exp = mlflow.set_experiment(experiment_name)
    log.info(f"Using MLflow experiment: {experiment_name}")

    client = get_mlflow_client()
    parent_runs = client.search_runs(
        experiment_ids=[exp.experiment_id],
        filter_string=f"tags.mlflow.runName = '{parent_run_name}' AND tags.is_parent = 'true'",
        max_results=1,
    )
    parent_run_id = parent_runs[0].info.run_id if parent_runs else None

    with mlflow.start_run(
        run_id=parent_run_id, run_name=parent_run_name, tags={"is_parent": "true"}
    ):
        with mlflow.start_run(run_name=child_run_name, nested=True) as child_run:
            # Tag run with environment (HPC vs local) for easy filtering
            env = (
                "hpc"
                if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
                else "local"
            )
            mlflow.set_tag("environment", env)
            log.info(
                f"Started MLflow run '{child_run.info.run_name}' ({child_run.info.run_id}) [{env}]"
            )
            yield child_run


def log_parameters(params: dict):
    """Log a dictionary of parameters to the active MLflow run."""
    mlflow.log_params(params)


def log_metrics_dict(metrics: dict):
    """Log a dictionary of metrics to the active MLflow run, filtering out None values."""
    filtered_metrics = {k: v for k, v in metrics.items() if v is not None}
    mlflow.log_metrics(filtered_metrics)


def log_timeseries_metrics(timeseries_data) -> int:
    """Log time series data as step-based metrics to the active MLflow run.

    Accepts a dataclass of lists or a plain dict of sequences. Returns the
    number of metric points logged.
    """
    if not mlflow.active_run():
        return 0
    client = get_mlflow_client()
    run_id = mlflow.active_run().info.run_id
    timestamp = int(time.time() * 1000)

    ts_dict = asdict(timeseries_data) if is_dataclass(timeseries_data) else dict(timeseries_data)
    metrics_to_log = [
        mlflow.entities.Metric(name, float(value), timestamp, step)
        for name, values in ts_dict.items()
        for step, value in enumerate(values)
    ]
    for i in range(0, len(metrics_to_log), 1000):
        client.log_batch(run_id=run_id, metrics=metrics_to_log[i : i + 1000])
    log.info(f"Logged {len(metrics_to_log)} time-series metrics.")
    return len(metrics_to_log)
