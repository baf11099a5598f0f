"""Veritas — image authenticity analysis and reverse image search API."""

__version__ = "1.0.0"
