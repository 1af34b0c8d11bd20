"""rapidval: deterministic structured-data validation with idempotent replay."""

from rapidval.version import __version__

__all__ = ["__version__"]
