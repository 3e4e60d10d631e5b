"""N4L editor backend: notation parsing, graph analysis and semantic versioning."""

from .version import __version__

__all__ = ["__version__"]
