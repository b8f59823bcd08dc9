"""
restgraph CLI - print, inspect and serve translated schemas.
"""

from __future__ import annotations

from .main import main

__all__ = ["main"]
