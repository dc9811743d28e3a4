"""Entry points executed inside ``mpiexec``."""
