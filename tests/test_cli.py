"""Tests for the command-line run and MLflow helpers."""

import contextlib
import subprocess
from pathlib import Path

import mlflow
import numpy as np
import pytest
from omegaconf import OmegaConf

import Laplace
from Laplace import JacobiSolver, mpiexec_available
from Laplace.cli import _log_results, params_from_config, run
import utils.mlflow.io as mlflow_io
from utils.mlflow import log_timeseries_metrics, setup_mlflow_tracking

CONFIG_PATH = Path(Laplace.__file__).parent / "conf" / "config.yaml"

EXAMPLE_SEED = """\
1 1 1 1 1
1 3 7 2 1
1 8 6 5 1
1 9 0 4 1
1 1 1 1 1
"""


def make_config(**overrides):
    return OmegaConf.merge(OmegaConf.load(CONFIG_PATH), overrides)


@pytest.fixture
def seed_file(tmp_path):
    path = tmp_path / "seed.txt"
    path.write_text(EXAMPLE_SEED)
    return path


class TestRun:
    """End-to-end runs through the config layer."""

    def test_default_config_is_valid(self):
        params = params_from_config(make_config())
        assert params.dimension == 100
        assert params.precision == 0.5
        assert params.worker_count == 1

    def test_example_output(self, seed_file, capsys):
        code = run(make_config(dimension=5, precision=0.75, worker_count=2, seed_file=str(seed_file)))
        assert code == 0

        solver = JacobiSolver(N=5, precision=0.75, initial=np.loadtxt(seed_file))
        solver.solve()

        out = capsys.readouterr().out
        lines = out.split("\n")
        assert lines[0] == f"Reached in {solver.metrics.iterations} iterations."
        assert len(lines[1].split()) == 5
        assert lines[1] == "1.000000 " * 5
        assert out.endswith("\n\n")

    @pytest.mark.parametrize("backend", ["sequential", "threads"])
    def test_local_backends(self, backend, capsys):
        code = run(make_config(dimension=6, precision=0.1, init="fixed", backend=backend, worker_count=3))
        assert code == 0
        assert capsys.readouterr().out.startswith("Reached in ")

    def test_max_iter_not_converged(self, capsys):
        code = run(make_config(dimension=6, precision=0.0, max_iter=1, rng_seed=1))
        assert code == 0
        assert capsys.readouterr().out.startswith(
            "Stopped after 1 iterations without converging."
        )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"dimension": 2},
            {"worker_count": 0},
            {"precision": -0.5},
            {"backend": "gpu"},
            {"strategy": "cubic"},
        ],
    )
    def test_config_error_exit_code(self, overrides, capsys):
        assert run(make_config(**overrides)) == 2
        assert capsys.readouterr().out == ""

    def test_seed_mismatch_exit_code(self, seed_file):
        assert run(make_config(dimension=6, seed_file=str(seed_file))) == 3

    def test_mpi_backend(self, seed_file, capsys):
        if not mpiexec_available():
            pytest.skip("mpiexec not available")
        code = run(
            make_config(dimension=5, precision=0.75, worker_count=2, backend="mpi", seed_file=str(seed_file))
        )
        assert code == 0

        solver = JacobiSolver(N=5, precision=0.75, initial=np.loadtxt(seed_file))
        solver.solve()
        out = capsys.readouterr().out
        assert out.startswith(f"Reached in {solver.metrics.iterations} iterations.")


class TestMlflowHelpers:
    """MLflow helpers that need no tracking server."""

    def test_local_tracking_uri(self, tmp_path):
        previous = mlflow.get_tracking_uri()
        try:
            setup_mlflow_tracking(mode="local", tracking_dir=tmp_path / "mlruns")
            assert mlflow.get_tracking_uri() == (tmp_path / "mlruns").resolve().as_uri()
        finally:
            mlflow.set_tracking_uri(previous)

    def test_timeseries_needs_active_run(self):
        assert log_timeseries_metrics({"changed_history": [3, 1, 0]}) == 0


class TestDistributedLaunch:
    """The mpiexec launch path, with the subprocess replaced."""

    def test_run_solver_has_no_default_timeout(self, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append((cmd, kwargs))
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="rank died")

        monkeypatch.setattr("Laplace.runner.subprocess.run", fake_run)
        result = Laplace.run_solver(N=5, n_ranks=2)

        cmd, kwargs = calls[0]
        assert cmd[:3] == ["mpiexec", "-n", "2"]
        assert kwargs["timeout"] is None
        assert result["returncode"] == 1
        assert result["error"] == "rank died"

    def test_cli_does_not_limit_mpi_runs(self, monkeypatch, capsys):
        calls = []

        def fake_run_solver(**kwargs):
            calls.append(kwargs)
            return {
                "converged": True,
                "iterations": 3,
                "grid": np.ones((5, 5)),
                "timeseries": {},
                "stdout": "RESULT:/tmp/out.h5\n",
            }

        monkeypatch.setattr("Laplace.cli.run_solver", fake_run_solver)
        assert run(make_config(dimension=5, backend="mpi", worker_count=2)) == 0

        assert "timeout" not in calls[0]
        assert calls[0]["n_ranks"] == 2
        assert capsys.readouterr().out.startswith("Reached in 3 iterations.")

    def test_rank_exit_code_maps_to_error(self, monkeypatch):
        monkeypatch.setattr(
            "Laplace.cli.run_solver",
            lambda **kwargs: {"error": "SeedMismatch", "returncode": 3, "stdout": ""},
        )
        assert run(make_config(dimension=5, backend="mpi", worker_count=2)) == 3


def test_distributed_runs_log_halo_size(monkeypatch):
    logged = {}
    monkeypatch.setattr(mlflow_io, "setup_mlflow_tracking", lambda mode: None)
    monkeypatch.setattr(
        mlflow_io, "start_mlflow_run_context", lambda **kwargs: contextlib.nullcontext()
    )
    monkeypatch.setattr(mlflow_io, "log_parameters", logged.update)
    monkeypatch.setattr(mlflow_io, "log_metrics_dict", lambda metrics: None)
    monkeypatch.setattr(mlflow_io, "log_timeseries_metrics", lambda timeseries: 0)

    cfg = make_config(backend="mpi", worker_count=2, mlflow={"mode": "local"})
    result = {
        "converged": True,
        "iterations": 4,
        "wall_time": 0.1,
        "halo_size_mb": 0.5,
        "timeseries": {},
    }
    _log_results(cfg, params_from_config(cfg), result)

    assert logged["halo_size_mb"] == 0.5
    assert logged["backend"] == "mpi"
