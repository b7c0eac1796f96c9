"""
Zone initialization from command-line route, proxy and domain declarations

Routes are declared as ``domain:port[/path]=cluster[:key=value]*``, proxies
as ``proxy=domain:port`` and domain aliases as ``domain:port=alias[:alias]*``.
Objects that already exist (matched by name) are reused; with ``replace``
existing shared rules, routes and proxies are overwritten.
"""

import logging
from typing import Dict, Iterable, List, NamedTuple, Optional

from ..errors import ValidationError
from ..utils.validators import validate_port
from ..objects import (
    AllConstraints,
    Cluster,
    ClusterConstraint,
    ClusterFilter,
    Domain,
    DomainFilter,
    Metadatum,
    Proxy,
    ProxyFilter,
    Route,
    RouteFilter,
    SharedRules,
    SharedRulesFilter,
    Zone,
    ZoneFilter,
)

logger = logging.getLogger(__name__)


class HostPort(NamedTuple):
    host: str
    port: int

    def __str__(self):
        return f"{self.host}:{self.port}"


class RouteSpec(NamedTuple):
    domain: HostPort
    cluster: str
    path: str
    metadata: List[Metadatum]


class ProxySpec(NamedTuple):
    name: str
    domains: List[HostPort]


class DomainSpec(NamedTuple):
    domain: HostPort
    aliases: List[str]


def split_args(values: Optional[Iterable[str]]) -> List[str]:
    """Flatten repeated, comma-delimited flag values."""
    result = []
    for value in values or []:
        result.extend(part for part in value.split(",") if part)
    return result


def _parse_host_port(text: str) -> Optional[HostPort]:
    parts = text.split(":")
    if len(parts) != 2 or not parts[0]:
        return None
    if not validate_port(parts[1]):
        return None
    return HostPort(parts[0], int(parts[1]))


def parse_route(text: str) -> RouteSpec:
    """Parse ``domain:port[/path]=cluster[:key=value]*``."""
    domain_part, sep, cluster_part = text.partition("=")
    if not sep or not cluster_part:
        raise ValidationError(f'malformed route "{text}"')

    host_port, _, path = domain_part.partition("/")
    domain = _parse_host_port(host_port)
    if domain is None:
        raise ValidationError(f'malformed domain/port "{domain_part}" in route argument "{text}"')

    cluster, *pairs = cluster_part.split(":")
    if not cluster:
        raise ValidationError(f'empty cluster name in route argument "{text}"')

    metadata = []
    for pair in pairs:
        key, _, value = pair.partition("=")
        if not key:
            raise ValidationError(f'malformed metadata "{pair}" in route argument "{text}"')
        metadata.append(Metadatum(key, value))

    return RouteSpec(domain, cluster, "/" + path, metadata)


def parse_routes(values: Iterable[str]) -> List[RouteSpec]:
    return [parse_route(text) for text in split_args(values)]


def validate_routes(routes: List[RouteSpec]) -> None:
    seen = set()
    for r in routes:
        key = f"{r.domain}{r.path}"
        if key in seen:
            raise ValidationError(f"route {key} declared more than once")
        seen.add(key)


def parse_proxy(text: str) -> ProxySpec:
    parts = text.split("=")
    if len(parts) != 2 or not parts[0]:
        raise ValidationError(f'malformed proxy argument: "{text}"')
    domain = _parse_host_port(parts[1])
    if domain is None:
        raise ValidationError(f'malformed domain/port "{parts[1]}" in proxy argument "{text}"')
    return ProxySpec(parts[0], [domain])


def parse_proxies(values: Iterable[str]) -> List[ProxySpec]:
    """Parse proxy declarations, merging repeated proxy names."""
    by_name: Dict[str, ProxySpec] = {}
    for text in split_args(values):
        p = parse_proxy(text)
        if p.name in by_name:
            by_name[p.name].domains.extend(p.domains)
        else:
            by_name[p.name] = p
    return list(by_name.values())


def validate_proxies(
    proxies: List[ProxySpec], routes: List[RouteSpec], domains: List[DomainSpec] = ()
) -> None:
    known = {str(r.domain) for r in routes} | {str(d.domain) for d in domains}
    for p in proxies:
        for d in p.domains:
            if str(d) not in known:
                raise ValidationError(f"proxy {p.name} refers to unknown domain {d}")


def parse_domain(text: str) -> DomainSpec:
    domain_part, _, alias_part = text.partition("=")
    domain = _parse_host_port(domain_part)
    if domain is None:
        raise ValidationError(f'malformed domain/port "{domain_part}" in domains argument "{text}"')
    return DomainSpec(domain, [a for a in alias_part.split(":") if a])


def parse_domains(values: Iterable[str]) -> List[DomainSpec]:
    """Parse domain alias declarations, merging repeated domains."""
    by_addr: Dict[str, DomainSpec] = {}
    for text in split_args(values):
        d = parse_domain(text)
        existing = by_addr.get(str(d.domain))
        if existing is None:
            by_addr[str(d.domain)] = d
            continue
        for alias in d.aliases:
            if alias not in existing.aliases:
                existing.aliases.append(alias)
    return list(by_addr.values())


class ZoneInitializer:
    """Creates a zone and the objects implied by route, proxy and domain declarations."""

    def __init__(self, client, replace: bool = False):
        self.client = client
        self.replace = replace

    def run(
        self,
        zone_name: str,
        routes: List[RouteSpec],
        proxies: List[ProxySpec] = (),
        domains: List[DomainSpec] = (),
    ) -> str:
        """
        Initialize the zone and return its key.

        Domains, clusters and shared rules are created first, then routes,
        then proxies.
        """
        validate_routes(routes)
        validate_proxies(proxies, routes, domains)

        zone_key = self.add_zone(zone_name)
        aliases = {str(d.domain): d.aliases for d in domains}

        domain_keys: Dict[str, str] = {}
        shared_rules_keys: Dict[str, str] = {}
        for d in domains:
            domain_keys[str(d.domain)] = self.add_domain(zone_key, d.domain, d.aliases)
        for r in routes:
            if str(r.domain) not in domain_keys:
                domain_keys[str(r.domain)] = self.add_domain(
                    zone_key, r.domain, aliases.get(str(r.domain), [])
                )
            cluster_key = self.add_cluster(zone_key, r.cluster)
            shared_rules_keys[r.cluster] = self.add_shared_rules(
                zone_key, r.cluster, cluster_key, r.metadata
            )

        for r in routes:
            self.add_route(zone_key, r, domain_keys[str(r.domain)], shared_rules_keys[r.cluster])

        for p in proxies:
            self.add_proxy(zone_key, p, domain_keys)

        return zone_key

    def add_zone(self, name: str) -> str:
        zones = self.client.zones.index(ZoneFilter(name=name))
        if zones:
            logger.info(f"Zone {name} already exists")
            return zones[0].zone_key
        zone = self.client.zones.create(Zone(name=name))
        logger.info(f"Created Zone {name}")
        return zone.zone_key

    def add_domain(self, zone_key: str, hp: HostPort, aliases: List[str]) -> str:
        for d in self.client.domains.index(DomainFilter(name=hp.host, zone_key=zone_key)):
            if d.port != hp.port:
                continue
            logger.info(f"Domain {hp} already exists")
            missing = [a for a in aliases if a not in d.aliases]
            if missing and self.replace:
                d.aliases = d.aliases + missing
                self.client.domains.modify(d)
                logger.info(f"Modified Domain {hp} aliases")
            return d.domain_key

        domain = self.client.domains.create(
            Domain(zone_key=zone_key, name=hp.host, port=hp.port, aliases=list(aliases))
        )
        logger.info(f"Created Domain {hp}")
        return domain.domain_key

    def add_cluster(self, zone_key: str, name: str) -> str:
        clusters = self.client.clusters.index(ClusterFilter(name=name, zone_key=zone_key))
        if clusters:
            logger.info(f"Cluster {name} already exists")
            return clusters[0].cluster_key
        cluster = self.client.clusters.create(Cluster(zone_key=zone_key, name=name))
        logger.info(f"Created Cluster {name}")
        return cluster.cluster_key

    def add_shared_rules(
        self, zone_key: str, name: str, cluster_key: str, metadata: List[Metadatum]
    ) -> str:
        sr = SharedRules(
            name=name,
            zone_key=zone_key,
            default=AllConstraints(
                light=[ClusterConstraint(cluster_key=cluster_key, metadata=list(metadata), weight=1)]
            ),
        )

        existing = self.client.shared_rules.index(SharedRulesFilter(name=name, zone_key=zone_key))
        if not existing:
            sr = self.client.shared_rules.create(sr)
            logger.info(f"Created SharedRules {name}")
            return sr.shared_rules_key

        logger.info(f"SharedRules {name} already exists")
        if not self.replace:
            return existing[0].shared_rules_key
        sr.shared_rules_key = existing[0].shared_rules_key
        sr.checksum = existing[0].checksum
        sr = self.client.shared_rules.modify(sr)
        logger.info(f"Modified SharedRules {name}")
        return sr.shared_rules_key

    def add_route(self, zone_key: str, r: RouteSpec, domain_key: str, shared_rules_key: str) -> None:
        route = Route(
            domain_key=domain_key, zone_key=zone_key, path=r.path, shared_rules_key=shared_rules_key
        )
        existing = self.client.routes.index(
            RouteFilter(domain_key=domain_key, path=r.path, zone_key=zone_key)
        )
        if not existing:
            self.client.routes.create(route)
            logger.info(f"Created Route for {r.domain}{r.path} to {r.cluster}")
            return

        logger.info(f"Route already exists for {r.domain}{r.path}")
        if not self.replace:
            return
        route.route_key = existing[0].route_key
        route.checksum = existing[0].checksum
        self.client.routes.modify(route)
        logger.info(f"Modified Route for {r.domain}{r.path} to {r.cluster}")

    def add_proxy(self, zone_key: str, p: ProxySpec, domain_keys: Dict[str, str]) -> None:
        keys = []
        for d in p.domains:
            if str(d) in domain_keys:
                keys.append(domain_keys[str(d)])
            else:
                logger.warning(f"Ignoring unknown domain {d} for proxy {p.name}")

        proxy = Proxy(zone_key=zone_key, name=p.name, domain_keys=keys)
        existing = self.client.proxies.index(ProxyFilter(name=p.name, zone_key=zone_key))
        if not existing:
            self.client.proxies.create(proxy)
            logger.info(f"Created Proxy {p.name}")
            return

        logger.info(f"Proxy {p.name} already exists")
        if not self.replace:
            return
        proxy.proxy_key = existing[0].proxy_key
        proxy.checksum = existing[0].checksum
        self.client.proxies.modify(proxy)
        logger.info(f"Modified Proxy {p.name}")
