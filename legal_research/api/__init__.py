"""API module exports"""
from . import cases
from . import health

__all__ = ["cases", "health"]
