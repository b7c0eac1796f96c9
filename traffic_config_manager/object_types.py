"""
Object types - the closed set of object kinds managed through the API

Each ObjectType member carries everything needed to operate on its kind:
the record class, the filter class, the key attribute and the API path.
``service_for`` is the one dispatch point from a kind to typed operations.
"""

import logging
from enum import Enum
from typing import Dict, List

from .errors import ValidationError
from .core.filters import populate_filter
from .objects import (
    AccessToken,
    AccessTokenFilter,
    Cluster,
    ClusterFilter,
    Domain,
    DomainFilter,
    Proxy,
    ProxyFilter,
    Route,
    RouteFilter,
    SharedRules,
    SharedRulesFilter,
    User,
    UserFilter,
    Zone,
    ZoneFilter,
)
from .parsers.document import decode

logger = logging.getLogger(__name__)


class ObjectType(Enum):
    USER = ("user", User, UserFilter, "user_key", "admin/user")
    ZONE = ("zone", Zone, ZoneFilter, "zone_key", "zone")
    PROXY = ("proxy", Proxy, ProxyFilter, "proxy_key", "proxy")
    DOMAIN = ("domain", Domain, DomainFilter, "domain_key", "domain")
    ROUTE = ("route", Route, RouteFilter, "route_key", "route")
    SHARED_RULES = ("shared_rules", SharedRules, SharedRulesFilter, "shared_rules_key", "shared_rules")
    CLUSTER = ("cluster", Cluster, ClusterFilter, "cluster_key", "cluster")
    ACCESS_TOKEN = (
        "access_token",
        AccessToken,
        AccessTokenFilter,
        "access_token_key",
        "admin/user/access_token",
    )

    def __init__(self, type_name, record_cls, filter_cls, key_field, path):
        self.type_name = type_name
        self.record_cls = record_cls
        self.filter_cls = filter_cls
        self.key_field = key_field
        self.path = path

    def key_of(self, record) -> str:
        return getattr(record, self.key_field)

    def __str__(self):
        return self.type_name


# Types addressable through the generic list/get/create/edit/delete commands.
OBJECT_TYPE_LIST = [
    ObjectType.USER,
    ObjectType.ZONE,
    ObjectType.PROXY,
    ObjectType.DOMAIN,
    ObjectType.ROUTE,
    ObjectType.SHARED_RULES,
    ObjectType.CLUSTER,
]


def object_type_names() -> str:
    return ", ".join(ot.type_name for ot in OBJECT_TYPE_LIST)


def object_type_from_name(name: str) -> ObjectType:
    """Resolve a command-line object type name."""
    normalized = name.strip().lower().replace("-", "_")
    for ot in OBJECT_TYPE_LIST:
        if ot.type_name == normalized:
            return ot
    raise ValidationError(f"{name} was not a valid object type; expected one of: {object_type_names()}")


class TypedService:
    """Operations on one object kind, backed by a ConfigProvider."""

    def __init__(self, provider, object_type: ObjectType):
        self.provider = provider
        self.object_type = object_type

    def create(self, record):
        return self.provider.create(self.object_type, record)

    def get(self, key: str):
        return self.provider.get(self.object_type, key)

    def modify(self, record):
        return self.provider.modify(self.object_type, record)

    def delete(self, key: str, checksum: str) -> None:
        self.provider.delete(self.object_type, key, checksum)

    def index(self, *filters) -> List:
        return self.provider.index(self.object_type, *filters)

    def filtered_index(self, attrs: Dict[str, str], slice_sep: str = ",") -> List:
        """Index with a filter populated from command-line key=value attributes."""
        index_filter = populate_filter(self.object_type.filter_cls, attrs or {}, slice_sep)
        if index_filter.is_empty():
            return self.index()
        return self.index(index_filter)

    def zero(self):
        return self.object_type.record_cls()

    def checksum(self, record) -> str:
        return record.checksum

    def key_of(self, record) -> str:
        return self.object_type.key_of(record)

    def from_text(self, text: str, codec: str = "json"):
        data = decode(text, codec)
        if not isinstance(data, dict):
            raise ValidationError(f"expected a single {self.object_type} object")
        return self.object_type.record_cls.from_dict(data)

    def cached_getter(self):
        """
        Get-by-key with memoization for the lifetime of the returned function.

        Failed lookups are not cached.
        """
        cache = {}

        def get(key: str):
            if key in cache:
                return cache[key]
            record = self.get(key)
            cache[key] = record
            return record

        return get


def service_for(provider, object_type: ObjectType) -> TypedService:
    return TypedService(provider, object_type)
