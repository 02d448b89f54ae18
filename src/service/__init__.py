"""Persistence and HTTP surface for frame scan data."""

__version__ = "0.1.0"
