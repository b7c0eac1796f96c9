"""
Command-line interface components.

This package contains the traffic-ctl entry point.
"""

from .main import main

__all__ = ["main"]
