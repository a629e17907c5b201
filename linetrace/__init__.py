"""Exact line attribution mined from version control history."""

__version__ = "0.1.0"
