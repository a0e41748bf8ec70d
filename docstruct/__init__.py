"""Hierarchical structure extraction for uploaded documents."""

__version__ = "0.1.0"
