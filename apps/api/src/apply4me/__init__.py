"""Apply4Me API."""

__version__ = "0.1.0"
