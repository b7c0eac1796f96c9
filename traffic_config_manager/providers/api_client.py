"""
API Client - Unified interface for configuration API providers

This module provides a common interface over the configured provider and
exposes one typed service per object kind.
"""

import logging
from typing import Dict, Optional

from .base_provider import ConfigProvider
from .http_provider import HTTPProvider
from .mock_provider import MockConfigProvider
from ..object_types import ObjectType, TypedService, service_for

logger = logging.getLogger(__name__)


class ApiClient:
    """Unified API client that supports multiple providers."""

    def __init__(self, config: Dict, provider: Optional[ConfigProvider] = None, token: Optional[str] = None):
        """Initialize API client with configuration."""
        self.config = config
        self.provider = provider or self._get_provider(token)

    def _get_provider(self, token: Optional[str]) -> ConfigProvider:
        """Get API provider based on configuration."""
        api_config = self.config.get("api", {})
        provider_name = api_config.get("provider", "http")

        if provider_name == "http":
            return HTTPProvider(api_config, token=token)
        elif provider_name == "mock":
            return MockConfigProvider(api_config)
        else:
            logger.warning(f"Unknown provider '{provider_name}', using mock provider")
            return MockConfigProvider()

    def service(self, object_type: ObjectType) -> TypedService:
        return service_for(self.provider, object_type)

    @property
    def zones(self) -> TypedService:
        return self.service(ObjectType.ZONE)

    @property
    def clusters(self) -> TypedService:
        return self.service(ObjectType.CLUSTER)

    @property
    def domains(self) -> TypedService:
        return self.service(ObjectType.DOMAIN)

    @property
    def proxies(self) -> TypedService:
        return self.service(ObjectType.PROXY)

    @property
    def routes(self) -> TypedService:
        return self.service(ObjectType.ROUTE)

    @property
    def shared_rules(self) -> TypedService:
        return self.service(ObjectType.SHARED_RULES)

    @property
    def users(self) -> TypedService:
        return self.service(ObjectType.USER)

    @property
    def access_tokens(self) -> TypedService:
        return self.service(ObjectType.ACCESS_TOKEN)
