"""
Configuration API provider implementations.

This package contains the HTTP provider for the remote API and an in-memory
mock provider.
"""

from .api_client import ApiClient
from .base_provider import ConfigProvider
from .http_provider import HTTPProvider
from .mock_provider import MockConfigProvider

__all__ = ["ApiClient", "ConfigProvider", "HTTPProvider", "MockConfigProvider"]
