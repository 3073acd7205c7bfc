"""
Exceptions raised by the propagation engine.

Invalid arguments are reported with ValueError at construction time;
the classes below cover failures that happen while a run is in progress.
"""


class NumericalInstabilityError(RuntimeError):
    """A valid ray acquired a non-finite position, slowness or amplitude."""

    def __init__(self, message: str, time: float = None, rays: int = 0):
        super().__init__(message)
        self.time = time
        self.rays = rays


class PersistenceError(OSError):
    """Writing wavefronts or propagation loss to disk failed."""
