"""Exception hierarchy for the relaxation engine.

Each error carries the process exit code the CLI reports for it.
"""


class LaplaceError(Exception):
    """Base class for all engine errors."""

    exit_code = 1


class ConfigError(LaplaceError, ValueError):
    """Invalid run configuration (grid too small, no workers, bad precision)."""

    exit_code = 2


class SeedMismatch(LaplaceError, ValueError):
    """Seed value count does not match the grid size."""

    exit_code = 3


class AllocationError(LaplaceError, MemoryError):
    """Grid buffer or partition table could not be allocated."""

    exit_code = 4


class WorkerFailure(LaplaceError, RuntimeError):
    """A worker could not start, crashed, or failed to reach a rendezvous."""

    exit_code = 5

    def __init__(self, message: str, worker_id: int = None):
        super().__init__(message)
        self.worker_id = worker_id
