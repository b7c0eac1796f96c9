"""
Document parsers.

This package contains the JSON and YAML codec for API objects.
"""

from .document import SUPPORTED_CODECS, decode, encode

__all__ = ["SUPPORTED_CODECS", "decode", "encode"]
