"""Exceptions raised to callers of the sweep engine."""


class SweepError(Exception):
    """Base class for errors surfaced by tempsweep."""


class EngineBusyError(SweepError):
    """A sweep or measurement is already running on this engine."""


class InvalidTargetsError(SweepError):
    """The target list violates the engine's input contract."""


class CatalogError(SweepError):
    """The target catalog could not be loaded."""
