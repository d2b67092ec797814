"""Exception types raised by the unmark engine."""


class UnmarkError(Exception):
    """Base class for all unmark failures."""


class DecodeError(UnmarkError, ValueError):
    """Raised when image bytes cannot be interpreted as a raster."""


class OutOfBoundsError(UnmarkError, ValueError):
    """Raised when a region denormalizes to an empty pixel rectangle."""


class RemovalCancelled(UnmarkError):
    """Raised when a removal run is cancelled between regions."""

    def __init__(self, completed: int, total: int) -> None:
        super().__init__(f"Removal cancelled after {completed}/{total} regions")
        self.completed = completed
        self.total = total
