"""Recast: replay podcast feeds on a delayed schedule."""

__version__ = "1.0.0"
