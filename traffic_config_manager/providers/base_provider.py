"""
Base configuration API provider interface.

This module defines the abstract base class that all API providers must implement.
"""

from abc import ABC, abstractmethod
from typing import List


class ConfigProvider(ABC):
    """Abstract base class for configuration API providers."""

    @abstractmethod
    def create(self, object_type, record):
        """Create a new object; the store assigns its key and checksum."""
        pass

    @abstractmethod
    def get(self, object_type, key: str):
        """Get an object by key, raising NotFoundError if it is absent."""
        pass

    @abstractmethod
    def modify(self, object_type, record):
        """Modify an object, raising ConflictError if its checksum is stale."""
        pass

    @abstractmethod
    def delete(self, object_type, key: str, checksum: str) -> None:
        """Delete an object, raising ConflictError if the checksum is stale."""
        pass

    @abstractmethod
    def index(self, object_type, *filters) -> List:
        """List objects matching any of the filters (all objects if none given)."""
        pass
