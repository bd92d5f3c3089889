"""Resolve an OpenBLAS library for a downstream build, from the system or from source."""

__version__ = "0.1.0"

LIBRARY_NAME = "openblas"
