"""Runtime wiring: builds and owns the engine's components."""

from .container import SearchServices

__all__ = ["SearchServices"]
