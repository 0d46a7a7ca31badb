"""
Exception types raised at the start of a clustering, trash or import batch.

Per-file problems never raise; they are collected into the outcome objects
returned by the movers.
"""


class SessionSortError(Exception):
    """Base class for all sessionsort errors."""


class PreconditionError(SessionSortError, ValueError):
    """A request was rejected before any filesystem mutation took place."""


class ScopeViolation(SessionSortError):
    """A path resolved outside of the declared root directory."""

    def __init__(self, path, root):
        self.path = path
        self.root = root
        super().__init__(f"Refusing to operate outside {root}: {path}")
