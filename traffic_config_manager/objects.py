"""
API objects - records and index filters exchanged with the configuration API

Records are plain dataclasses. ``to_dict`` and ``from_dict`` use the API's
serialization names, which are also the field names of exported zone
documents.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .core.filters import (
    BOOL,
    INT,
    STRING,
    TIME,
    FilterField,
    IndexFilter,
    ListOf,
    OptionalOf,
)


def _metadata_to(metadata) -> List[Dict]:
    return [m.to_dict() for m in metadata]


def _metadata_from(data) -> List["Metadatum"]:
    return [Metadatum.from_dict(m) for m in data or []]


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class Metadatum:
    key: str = ""
    value: str = ""

    def to_dict(self) -> Dict:
        return {"key": self.key, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict) -> "Metadatum":
        return cls(key=data.get("key", ""), value=data.get("value", ""))


@dataclass
class Instance:
    host: str = ""
    port: int = 0
    metadata: List[Metadatum] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"host": self.host, "port": self.port, "metadata": _metadata_to(self.metadata)}

    @classmethod
    def from_dict(cls, data: Dict) -> "Instance":
        return cls(
            host=data.get("host", ""),
            port=data.get("port", 0),
            metadata=_metadata_from(data.get("metadata")),
        )


@dataclass
class ClusterConstraint:
    constraint_key: str = ""
    cluster_key: str = ""
    metadata: List[Metadatum] = field(default_factory=list)
    properties: List[Metadatum] = field(default_factory=list)
    weight: int = 0

    def to_dict(self) -> Dict:
        return {
            "constraint_key": self.constraint_key,
            "cluster_key": self.cluster_key,
            "metadata": _metadata_to(self.metadata),
            "properties": _metadata_to(self.properties),
            "weight": self.weight,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ClusterConstraint":
        return cls(
            constraint_key=data.get("constraint_key", ""),
            cluster_key=data.get("cluster_key", ""),
            metadata=_metadata_from(data.get("metadata")),
            properties=_metadata_from(data.get("properties")),
            weight=data.get("weight", 0),
        )


@dataclass
class AllConstraints:
    light: List[ClusterConstraint] = field(default_factory=list)
    dark: List[ClusterConstraint] = field(default_factory=list)
    tap: List[ClusterConstraint] = field(default_factory=list)

    def all(self) -> List[ClusterConstraint]:
        return self.light + self.dark + self.tap

    def to_dict(self) -> Dict:
        return {
            "light": [c.to_dict() for c in self.light],
            "dark": [c.to_dict() for c in self.dark],
            "tap": [c.to_dict() for c in self.tap],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "AllConstraints":
        data = data or {}
        return cls(
            light=[ClusterConstraint.from_dict(c) for c in data.get("light") or []],
            dark=[ClusterConstraint.from_dict(c) for c in data.get("dark") or []],
            tap=[ClusterConstraint.from_dict(c) for c in data.get("tap") or []],
        )


@dataclass
class Match:
    kind: str = ""
    behavior: str = ""
    from_: Metadatum = field(default_factory=Metadatum)
    to: Metadatum = field(default_factory=Metadatum)

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind,
            "behavior": self.behavior,
            "from": self.from_.to_dict(),
            "to": self.to.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Match":
        return cls(
            kind=data.get("kind", ""),
            behavior=data.get("behavior", ""),
            from_=Metadatum.from_dict(data.get("from") or {}),
            to=Metadatum.from_dict(data.get("to") or {}),
        )


@dataclass
class Rule:
    rule_key: str = ""
    methods: List[str] = field(default_factory=list)
    matches: List[Match] = field(default_factory=list)
    constraints: AllConstraints = field(default_factory=AllConstraints)

    def to_dict(self) -> Dict:
        return {
            "rule_key": self.rule_key,
            "methods": list(self.methods),
            "matches": [m.to_dict() for m in self.matches],
            "constraints": self.constraints.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Rule":
        return cls(
            rule_key=data.get("rule_key", ""),
            methods=list(data.get("methods") or []),
            matches=[Match.from_dict(m) for m in data.get("matches") or []],
            constraints=AllConstraints.from_dict(data.get("constraints")),
        )


@dataclass
class Zone:
    zone_key: str = ""
    name: str = ""
    org_key: str = ""
    checksum: str = ""

    def to_dict(self) -> Dict:
        return {
            "zone_key": self.zone_key,
            "name": self.name,
            "org_key": self.org_key,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Zone":
        return cls(
            zone_key=data.get("zone_key", ""),
            name=data.get("name", ""),
            org_key=data.get("org_key", ""),
            checksum=data.get("checksum", ""),
        )


@dataclass
class Cluster:
    cluster_key: str = ""
    zone_key: str = ""
    name: str = ""
    require_tls: bool = False
    instances: List[Instance] = field(default_factory=list)
    checksum: str = ""

    def to_dict(self) -> Dict:
        return {
            "cluster_key": self.cluster_key,
            "zone_key": self.zone_key,
            "name": self.name,
            "require_tls": self.require_tls,
            "instances": [i.to_dict() for i in self.instances],
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Cluster":
        return cls(
            cluster_key=data.get("cluster_key", ""),
            zone_key=data.get("zone_key", ""),
            name=data.get("name", ""),
            require_tls=data.get("require_tls", False),
            instances=[Instance.from_dict(i) for i in data.get("instances") or []],
            checksum=data.get("checksum", ""),
        )


@dataclass
class Domain:
    domain_key: str = ""
    zone_key: str = ""
    name: str = ""
    port: int = 0
    aliases: List[str] = field(default_factory=list)
    force_https: bool = False
    checksum: str = ""

    def addr(self) -> str:
        """Canonical host:port address of the domain."""
        return f"{self.name}:{self.port}"

    def to_dict(self) -> Dict:
        return {
            "domain_key": self.domain_key,
            "zone_key": self.zone_key,
            "name": self.name,
            "port": self.port,
            "aliases": list(self.aliases),
            "force_https": self.force_https,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Domain":
        return cls(
            domain_key=data.get("domain_key", ""),
            zone_key=data.get("zone_key", ""),
            name=data.get("name", ""),
            port=data.get("port", 0),
            aliases=list(data.get("aliases") or []),
            force_https=data.get("force_https", False),
            checksum=data.get("checksum", ""),
        )


@dataclass
class Proxy:
    proxy_key: str = ""
    zone_key: str = ""
    name: str = ""
    domain_keys: List[str] = field(default_factory=list)
    checksum: str = ""

    def to_dict(self) -> Dict:
        return {
            "proxy_key": self.proxy_key,
            "zone_key": self.zone_key,
            "name": self.name,
            "domain_keys": list(self.domain_keys),
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Proxy":
        return cls(
            proxy_key=data.get("proxy_key", ""),
            zone_key=data.get("zone_key", ""),
            name=data.get("name", ""),
            domain_keys=list(data.get("domain_keys") or []),
            checksum=data.get("checksum", ""),
        )


@dataclass
class Route:
    route_key: str = ""
    domain_key: str = ""
    zone_key: str = ""
    path: str = ""
    shared_rules_key: str = ""
    rules: List[Rule] = field(default_factory=list)
    checksum: str = ""

    def to_dict(self) -> Dict:
        return {
            "route_key": self.route_key,
            "domain_key": self.domain_key,
            "zone_key": self.zone_key,
            "path": self.path,
            "shared_rules_key": self.shared_rules_key,
            "rules": [r.to_dict() for r in self.rules],
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Route":
        return cls(
            route_key=data.get("route_key", ""),
            domain_key=data.get("domain_key", ""),
            zone_key=data.get("zone_key", ""),
            path=data.get("path", ""),
            shared_rules_key=data.get("shared_rules_key", ""),
            rules=[Rule.from_dict(r) for r in data.get("rules") or []],
            checksum=data.get("checksum", ""),
        )


@dataclass
class SharedRules:
    shared_rules_key: str = ""
    name: str = ""
    zone_key: str = ""
    default: AllConstraints = field(default_factory=AllConstraints)
    rules: List[Rule] = field(default_factory=list)
    checksum: str = ""

    def to_dict(self) -> Dict:
        return {
            "shared_rules_key": self.shared_rules_key,
            "name": self.name,
            "zone_key": self.zone_key,
            "default": self.default.to_dict(),
            "rules": [r.to_dict() for r in self.rules],
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "SharedRules":
        return cls(
            shared_rules_key=data.get("shared_rules_key", ""),
            name=data.get("name", ""),
            zone_key=data.get("zone_key", ""),
            default=AllConstraints.from_dict(data.get("default")),
            rules=[Rule.from_dict(r) for r in data.get("rules") or []],
            checksum=data.get("checksum", ""),
        )


@dataclass
class User:
    user_key: str = ""
    login_email: str = ""
    api_key: str = ""
    org_key: str = ""
    deleted_at: Optional[str] = None
    checksum: str = ""

    def to_dict(self) -> Dict:
        return {
            "user_key": self.user_key,
            "login_email": self.login_email,
            "api_key": self.api_key,
            "org_key": self.org_key,
            "deleted_at": self.deleted_at,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "User":
        return cls(
            user_key=data.get("user_key", ""),
            login_email=data.get("login_email", ""),
            api_key=data.get("api_key", ""),
            org_key=data.get("org_key", ""),
            deleted_at=data.get("deleted_at"),
            checksum=data.get("checksum", ""),
        )


@dataclass
class AccessToken:
    access_token_key: str = ""
    description: str = ""
    signed_token: str = ""
    user_key: str = ""
    org_key: str = ""
    created_at: Optional[str] = None
    checksum: str = ""

    def to_dict(self) -> Dict:
        return {
            "access_token_key": self.access_token_key,
            "description": self.description,
            "signed_token": self.signed_token,
            "user_key": self.user_key,
            "org_key": self.org_key,
            "created_at": self.created_at,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "AccessToken":
        return cls(
            access_token_key=data.get("access_token_key", ""),
            description=data.get("description", ""),
            signed_token=data.get("signed_token", ""),
            user_key=data.get("user_key", ""),
            org_key=data.get("org_key", ""),
            created_at=data.get("created_at"),
            checksum=data.get("checksum", ""),
        )


def copy_record(record):
    """Return a deep copy of a record, safe to mutate."""
    return type(record).from_dict(record.to_dict())


# Index filters


def _has_all_domain_keys(proxy: Proxy, wanted: List[str]) -> bool:
    return all(dk in proxy.domain_keys for dk in wanted)


def _has_path_prefix(route: Route, prefix: str) -> bool:
    return route.path.startswith(prefix)


def _is_active(user: User, wanted: bool) -> bool:
    return (user.deleted_at is None) == wanted


def _before(attr: str):
    def match(record, when: datetime) -> bool:
        stamp = _parse_timestamp(getattr(record, attr))
        return stamp is not None and stamp < when

    return match


def _after(attr: str):
    def match(record, when: datetime) -> bool:
        stamp = _parse_timestamp(getattr(record, attr))
        return stamp is not None and stamp > when

    return match


@dataclass
class ZoneFilter(IndexFilter):
    zone_key: Optional[str] = None
    name: Optional[str] = None
    org_key: Optional[str] = None

    FIELDS = (
        FilterField("zone_key", STRING),
        FilterField("name", STRING),
        FilterField("org_key", STRING),
    )


@dataclass
class ClusterFilter(IndexFilter):
    cluster_key: Optional[str] = None
    name: Optional[str] = None
    zone_key: Optional[str] = None
    org_key: Optional[str] = None

    FIELDS = (
        FilterField("cluster_key", STRING),
        FilterField("name", STRING),
        FilterField("zone_key", STRING),
        FilterField("org_key", STRING),
    )


@dataclass
class DomainFilter(IndexFilter):
    domain_key: Optional[str] = None
    name: Optional[str] = None
    port: Optional[int] = None
    zone_key: Optional[str] = None
    org_key: Optional[str] = None

    FIELDS = (
        FilterField("domain_key", STRING),
        FilterField("name", STRING),
        FilterField("port", INT),
        FilterField("zone_key", STRING),
        FilterField("org_key", STRING),
    )


@dataclass
class ProxyFilter(IndexFilter):
    proxy_key: Optional[str] = None
    name: Optional[str] = None
    domain_keys: Optional[List[str]] = None
    zone_key: Optional[str] = None
    org_key: Optional[str] = None

    FIELDS = (
        FilterField("proxy_key", STRING),
        FilterField("name", STRING),
        FilterField("domain_keys", ListOf(STRING), match=_has_all_domain_keys),
        FilterField("zone_key", STRING),
        FilterField("org_key", STRING),
    )


@dataclass
class RouteFilter(IndexFilter):
    route_key: Optional[str] = None
    domain_key: Optional[str] = None
    zone_key: Optional[str] = None
    path: Optional[str] = None
    path_prefix: Optional[str] = None
    shared_rules_key: Optional[str] = None
    org_key: Optional[str] = None

    FIELDS = (
        FilterField("route_key", STRING),
        FilterField("domain_key", STRING),
        FilterField("zone_key", STRING),
        FilterField("path", STRING),
        FilterField("path_prefix", STRING, match=_has_path_prefix),
        FilterField("shared_rules_key", STRING),
        FilterField("org_key", STRING),
    )


@dataclass
class SharedRulesFilter(IndexFilter):
    shared_rules_key: Optional[str] = None
    name: Optional[str] = None
    zone_key: Optional[str] = None
    org_key: Optional[str] = None

    FIELDS = (
        FilterField("shared_rules_key", STRING),
        FilterField("name", STRING),
        FilterField("zone_key", STRING),
        FilterField("org_key", STRING),
    )


@dataclass
class UserFilter(IndexFilter):
    user_key: Optional[str] = None
    login_email: Optional[str] = None
    api_key: Optional[str] = None
    org_key: Optional[str] = None
    active: Optional[bool] = None

    FIELDS = (
        FilterField("user_key", STRING),
        FilterField("login_email", STRING),
        FilterField("api_key", STRING),
        FilterField("org_key", STRING),
        FilterField("active", OptionalOf(BOOL), match=_is_active),
    )


@dataclass
class AccessTokenFilter(IndexFilter):
    access_token_key: Optional[str] = None
    description: Optional[str] = None
    user_key: Optional[str] = None
    org_key: Optional[str] = None
    created_before: Optional[datetime] = None
    created_after: Optional[datetime] = None

    FIELDS = (
        FilterField("access_token_key", STRING),
        FilterField("description", STRING),
        FilterField("user_key", STRING),
        FilterField("org_key", STRING),
        FilterField("created_before", OptionalOf(TIME), match=_before("created_at")),
        FilterField("created_after", OptionalOf(TIME), match=_after("created_at")),
    )
