"""
Traffic Config Manager - administration client for a remote configuration API

Manages zones, clusters, domains, routes, shared rules and proxies, with
zone export/import and dependency-aware deep deletion.
"""

__version__ = "1.0.0"
__author__ = "Traffic Config Manager Team"
__description__ = "Command-line administration client for a remote traffic configuration API"

from .core.manager import ConfigManager
from .providers.api_client import ApiClient

__all__ = [
    "ConfigManager",
    "ApiClient",
]
