"""Pharmaceutical news aggregation with relay cascades and translation."""

__version__ = "0.1.0"
