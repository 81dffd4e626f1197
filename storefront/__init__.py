"""Unified product catalog over the Zecat and CDO upstream APIs."""

__version__ = "0.1.0"
