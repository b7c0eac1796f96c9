"""
Core traffic configuration functionality.

This package contains the zone porter, the deep deleter, zone
initialization and the filter populator.
"""

from .filters import describe_fields, populate_filter

__all__ = ["describe_fields", "populate_filter"]
