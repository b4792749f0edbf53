"""Geographic rankings and adaptive-radius proximity search for directory profiles."""

__version__ = "0.1.0"
