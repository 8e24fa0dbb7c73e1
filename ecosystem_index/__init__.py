"""
Ecosystem Index Generator

Merges package index, dependency, upload, tester, rating, meta and ticket
extracts into a single SQLite index with dependency weight and volatility.
"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main"]
