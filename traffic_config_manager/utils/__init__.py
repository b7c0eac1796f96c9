"""
Utility functions and helpers.

This package contains validation helpers and the login token cache.
"""

from .validators import validate_hostname, validate_port, validate_zone_name

__all__ = ["validate_hostname", "validate_port", "validate_zone_name"]
