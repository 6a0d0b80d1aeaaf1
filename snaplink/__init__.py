"""Snaplink: short links with visit analytics."""

__version__ = "0.1.0"
