"""tempsweep - concurrent temp and cache folder cleanup."""

__version__ = "0.1.0"
