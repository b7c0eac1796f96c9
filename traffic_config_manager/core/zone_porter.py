"""
Zone Porter - export and import of a whole zone

Export replaces every store-assigned key in a zone's object graph with a
human-readable name, so the document can be diffed, edited and imported into
another zone or another environment. Import recreates the graph in
dependency order and rewrites every reference to the freshly assigned keys.
"""

import logging
from typing import Dict, List, Union

from ..errors import NotFoundError, PartialFailureError, TrafficCtlError, ValidationError
from ..objects import (
    AllConstraints,
    Cluster,
    Domain,
    Proxy,
    Route,
    Rule,
    SharedRules,
    Zone,
    ZoneFilter,
    ClusterFilter,
    DomainFilter,
    ProxyFilter,
    RouteFilter,
    SharedRulesFilter,
    copy_record,
)
from ..parsers.document import decode

logger = logging.getLogger(__name__)


class ZoneObjects:
    """
    A zone and every object that belongs to it.

    The key maps translate between store keys and document keys. They live
    only for the duration of one export or import and are never serialized.
    """

    def __init__(self, zone: Zone = None):
        self.zone = zone or Zone()
        self.clusters: List[Cluster] = []
        self.domains: List[Domain] = []
        self.proxies: List[Proxy] = []
        self.routes: List[Route] = []
        self.shared_rules: List[SharedRules] = []

        self._cluster_keys: Dict[str, str] = {}
        self._domain_keys: Dict[str, str] = {}
        self._shared_rules_keys: Dict[str, str] = {}

    def counts(self) -> Dict[str, int]:
        return {
            "clusters": len(self.clusters),
            "domains": len(self.domains),
            "proxies": len(self.proxies),
            "routes": len(self.routes),
            "shared_rules": len(self.shared_rules),
        }

    def to_dict(self) -> Dict:
        return {
            "zone": self.zone.to_dict(),
            "clusters": [c.to_dict() for c in self.clusters],
            "domains": [d.to_dict() for d in self.domains],
            "proxies": [p.to_dict() for p in self.proxies],
            "routes": [r.to_dict() for r in self.routes],
            "shared_rules": [sr.to_dict() for sr in self.shared_rules],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ZoneObjects":
        if not isinstance(data, dict):
            raise ValidationError("zone document must be a mapping")
        zo = cls(Zone.from_dict(data.get("zone") or {}))
        zo.clusters = [Cluster.from_dict(c) for c in data.get("clusters") or []]
        zo.domains = [Domain.from_dict(d) for d in data.get("domains") or []]
        zo.proxies = [Proxy.from_dict(p) for p in data.get("proxies") or []]
        zo.routes = [Route.from_dict(r) for r in data.get("routes") or []]
        zo.shared_rules = [SharedRules.from_dict(sr) for sr in data.get("shared_rules") or []]
        return zo

    def _translate(self, mapping: Dict[str, str], key: str, what: str) -> str:
        if key in mapping:
            return mapping[key]
        logger.warning(f"Unable to translate {what} reference {key!r}; leaving it unchanged")
        return key

    def _rewrite_constraints(self, constraints: AllConstraints) -> None:
        for c in constraints.all():
            c.cluster_key = self._translate(self._cluster_keys, c.cluster_key, "cluster")
            c.constraint_key = ""

    def _rewrite_rules(self, rules: List[Rule]) -> None:
        for rule in rules:
            rule.rule_key = ""
            self._rewrite_constraints(rule.constraints)


def _resolve_zone(client, key_or_name: str) -> Zone:
    zones = client.zones.index(ZoneFilter(name=key_or_name))
    if len(zones) == 1:
        return zones[0]
    logger.debug(f"{len(zones)} zones named {key_or_name!r}; trying it as a key")
    try:
        return client.zones.get(key_or_name)
    except NotFoundError:
        raise NotFoundError(f"no zone found with name or key {key_or_name}", status=404)


def export_zone(client, key_or_name: str) -> ZoneObjects:
    """
    Export a zone and its objects with keys replaced by names.

    Args:
        client: ApiClient used for all lookups
        key_or_name: The zone's name, or its key

    Returns:
        The exported zone document

    Raises:
        NotFoundError: If no zone has the given name or key
    """
    zone = copy_record(_resolve_zone(client, key_or_name))
    zone_key = zone.zone_key
    logger.info(f"Exporting zone {zone.name} ({zone_key})")

    zone.zone_key = zone.name
    zone.checksum = ""
    zo = ZoneObjects(zone)

    for c in client.clusters.index(ClusterFilter(zone_key=zone_key)):
        zo._cluster_keys[c.cluster_key] = c.name
        c.cluster_key = c.name
        c.zone_key = zone.zone_key
        c.instances = []
        c.checksum = ""
        zo.clusters.append(c)

    for d in client.domains.index(DomainFilter(zone_key=zone_key)):
        zo._domain_keys[d.domain_key] = d.addr()
        d.domain_key = d.addr()
        d.zone_key = zone.zone_key
        d.checksum = ""
        zo.domains.append(d)

    for p in client.proxies.index(ProxyFilter(zone_key=zone_key)):
        p.domain_keys = [zo._translate(zo._domain_keys, dk, "domain") for dk in p.domain_keys]
        p.proxy_key = p.name
        p.zone_key = zone.zone_key
        p.checksum = ""
        zo.proxies.append(p)

    for sr in client.shared_rules.index(SharedRulesFilter(zone_key=zone_key)):
        zo._shared_rules_keys[sr.shared_rules_key] = sr.name
        sr.shared_rules_key = sr.name
        sr.zone_key = zone.zone_key
        sr.checksum = ""
        zo._rewrite_constraints(sr.default)
        zo._rewrite_rules(sr.rules)
        zo.shared_rules.append(sr)

    for r in client.routes.index(RouteFilter(zone_key=zone_key)):
        r.domain_key = zo._translate(zo._domain_keys, r.domain_key, "domain")
        r.shared_rules_key = zo._translate(
            zo._shared_rules_keys, r.shared_rules_key, "shared_rules"
        )
        r.route_key = f"{r.domain_key}{r.path}"
        r.zone_key = zone.zone_key
        r.checksum = ""
        zo._rewrite_rules(r.rules)
        zo.routes.append(r)

    logger.info(f"Exported zone {zone.name}: {zo.counts()}")
    return zo


def find_dangling_references(zo: ZoneObjects) -> List[str]:
    """List every reference in a zone document that names no object in it."""
    clusters = {c.name for c in zo.clusters}
    domains = {d.addr() for d in zo.domains}
    shared_rules = {sr.name for sr in zo.shared_rules}
    problems = []

    def check_constraints(owner: str, constraints: AllConstraints) -> None:
        for c in constraints.all():
            if c.cluster_key not in clusters:
                problems.append(f"{owner} refers to unknown cluster {c.cluster_key!r}")

    for p in zo.proxies:
        for dk in p.domain_keys:
            if dk not in domains:
                problems.append(f"proxy {p.name} refers to unknown domain {dk!r}")

    for sr in zo.shared_rules:
        check_constraints(f"shared_rules {sr.name}", sr.default)
        for rule in sr.rules:
            check_constraints(f"shared_rules {sr.name}", rule.constraints)

    for r in zo.routes:
        owner = f"route {r.domain_key}{r.path}"
        if r.domain_key not in domains:
            problems.append(f"{owner} refers to unknown domain {r.domain_key!r}")
        if r.shared_rules_key not in shared_rules:
            problems.append(f"{owner} refers to unknown shared_rules {r.shared_rules_key!r}")
        for rule in r.rules:
            check_constraints(owner, rule.constraints)

    return problems


def _as_zone_objects(document: Union[ZoneObjects, Dict, str], codec: str) -> ZoneObjects:
    if isinstance(document, ZoneObjects):
        return ZoneObjects.from_dict(document.to_dict())
    if isinstance(document, str):
        document = decode(document, codec)
    return ZoneObjects.from_dict(document)


def import_zone(
    client, name: str, document: Union[ZoneObjects, Dict, str], codec: str = "json"
) -> ZoneObjects:
    """
    Create a new zone from an exported zone document.

    Objects are created in dependency order: zone, clusters, domains,
    proxies, shared rules, routes. Import is not transactional. If a create
    fails after the zone exists, nothing is rolled back.

    Args:
        client: ApiClient used for all creates
        name: Name of the zone to create
        document: A ZoneObjects, its dict form, or encoded text
        codec: Codec of the document when it is given as text

    Returns:
        The created objects, as stored

    Raises:
        ValidationError: If the document is malformed or has a dangling reference,
            or a zone with this name already exists
        PartialFailureError: If a create failed after the zone was created
    """
    zo = _as_zone_objects(document, codec)

    if client.zones.index(ZoneFilter(name=name)):
        raise ValidationError(f"zone {name} already exists")

    problems = find_dangling_references(zo)
    if problems:
        for problem in problems:
            logger.error(problem)
        raise ValidationError(
            f"zone document has {len(problems)} dangling reference(s): {'; '.join(problems)}"
        )

    zone = copy_record(zo.zone)
    zone.name = name
    zone.zone_key = ""
    zone.checksum = ""
    created = ZoneObjects(client.zones.create(zone))
    zone_key = created.zone.zone_key
    logger.info(f"Created zone {name} ({zone_key})")

    try:
        for c in zo.clusters:
            c.cluster_key = ""
            c.zone_key = zone_key
            c.checksum = ""
            c = client.clusters.create(c)
            created._cluster_keys[c.name] = c.cluster_key
            created.clusters.append(c)

        for d in zo.domains:
            d.domain_key = ""
            d.zone_key = zone_key
            d.checksum = ""
            d = client.domains.create(d)
            created._domain_keys[d.addr()] = d.domain_key
            created.domains.append(d)

        for p in zo.proxies:
            p.proxy_key = ""
            p.zone_key = zone_key
            p.checksum = ""
            p.domain_keys = [created._domain_keys[dk] for dk in p.domain_keys]
            created.proxies.append(client.proxies.create(p))

        for sr in zo.shared_rules:
            sr.shared_rules_key = ""
            sr.zone_key = zone_key
            sr.checksum = ""
            created._rewrite_constraints(sr.default)
            created._rewrite_rules(sr.rules)
            sr = client.shared_rules.create(sr)
            created._shared_rules_keys[sr.name] = sr.shared_rules_key
            created.shared_rules.append(sr)

        for r in zo.routes:
            r.route_key = ""
            r.zone_key = zone_key
            r.checksum = ""
            r.domain_key = created._domain_keys[r.domain_key]
            r.shared_rules_key = created._shared_rules_keys[r.shared_rules_key]
            created._rewrite_rules(r.rules)
            created.routes.append(client.routes.create(r))
    except TrafficCtlError as e:
        logger.error(f"Import of zone {name} failed after creating {created.counts()}")
        raise PartialFailureError(
            f"import of zone {name} failed part way through: {e}; the objects created so far "
            f"remain in zone {zone_key} and may require manual cleanup",
            partial=created,
        ) from e

    logger.info(f"Imported zone {name}: {created.counts()}")
    return created
