"""MPI worker - invoked via: mpiexec -n X python -m Laplace.helpers.runner_helper '{config}'"""

import json
import logging
import sys

from mpi4py import MPI

from Laplace.errors import LaplaceError
from Laplace.problems import create_initial_values
from Laplace.solvers import JacobiMPISolver

log = logging.getLogger("Laplace.helpers.runner_helper")


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    config = json.loads(argv[0])
    comm = MPI.COMM_WORLD
    rank = comm.Get_rank()

    N = config["N"]

    # Only root reads the seed; every rank must learn if that failed
    initial, error = None, None
    if rank == 0:
        try:
            initial = create_initial_values(
                (N, N),
                init=config.get("init", "random"),
                rng_seed=config.get("rng_seed"),
                seed_file=config.get("seed_file"),
            )
        except LaplaceError as exc:
            error = exc
    error = comm.bcast(error, root=0)
    if error is not None:
        log.error(f"rank {rank}: {type(error).__name__}: {error}")
        return error.exit_code

    try:
        solver = JacobiMPISolver(
            N=N,
            comm=comm,
            precision=config.get("precision", 0.5),
            initial=initial,
            use_numba=config.get("use_numba", False),
            max_iter=config.get("max_iter"),
            verbose=config.get("verbosity", False),
        )
        solver.warmup()
        solver.solve()
    except LaplaceError as exc:
        log.error(f"rank {rank}: {type(exc).__name__}: {exc}")
        return exc.exit_code

    output_path = config.get("output")
    if output_path:
        solver.save_hdf5(output_path)

    if rank == 0:
        log.info(
            f"{solver.metrics.iterations} iterations on {comm.Get_size()} ranks, "
            f"converged={solver.metrics.converged}"
        )
        # Just print the path - runner.py will load the HDF5
        print(f"RESULT:{output_path}", flush=True)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    sys.exit(main())
