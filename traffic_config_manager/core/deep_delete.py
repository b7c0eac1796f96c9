"""
Deep Delete - cascading deletion along the object dependency graph

Collection walks the graph from a starting zone, domain, route or shared
rules object and records everything that has to go (or, for proxies, be
modified) so that no reference is left dangling. Execution then applies the
plan leaves first, so the store's own referential checks never fire.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..errors import (
    OperationCancelled,
    PartialFailureError,
    TrafficCtlError,
    ValidationError,
)
from ..object_types import ObjectType
from ..objects import (
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
    Zone,
)

logger = logging.getLogger(__name__)

PLAN_HEADER = "Deep deletion will delete the following objects:"
MODS_HEADER = "Additionally, the following proxies will be modified:"


@dataclass
class ProxyModification:
    proxy: Proxy
    domains_to_remove: Dict[str, Domain] = field(default_factory=dict)

    def remaining_domain_keys(self) -> List[str]:
        return [dk for dk in self.proxy.domain_keys if dk not in self.domains_to_remove]


@dataclass
class DeletionPlan:
    """Everything one deep delete will touch, keyed by object key."""

    zone: Optional[Zone] = None
    clusters: Dict[str, Cluster] = field(default_factory=dict)
    domains: Dict[str, Domain] = field(default_factory=dict)
    routes: Dict[str, Route] = field(default_factory=dict)
    shared_rules: Dict[str, SharedRules] = field(default_factory=dict)
    proxies: Dict[str, Proxy] = field(default_factory=dict)
    proxy_mods: Dict[str, ProxyModification] = field(default_factory=dict)

    # Domains shown next to their routes; not necessarily being deleted.
    domains_for_report: Dict[str, Domain] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return self.zone is None and not any(
            (
                self.clusters,
                self.domains,
                self.routes,
                self.shared_rules,
                self.proxies,
                self.proxy_mods,
            )
        )


def cluster_str(c: Cluster) -> str:
    return f"Cluster({c.cluster_key}:{c.name})"


def route_str(r: Route, d: Optional[Domain]) -> str:
    d = d or Domain()
    return f"Route({r.route_key}:{d.name}:{d.port}{r.path})"


def shared_rules_str(sr: SharedRules) -> str:
    return f"SharedRules({sr.shared_rules_key}:{sr.name})"


def domain_str(d: Domain) -> str:
    return f"Domain({d.domain_key}:{d.name}:{d.port})"


def proxy_str(p: Proxy) -> str:
    return f"Proxy({p.proxy_key}:{p.name})"


def zone_str(z: Zone) -> str:
    return f"Zone({z.zone_key}:{z.name})"


def proxy_mod_str(pm: ProxyModification, indent: str = "", verb: str = "Remove") -> str:
    names = [f"{dk}:{d.name}:{d.port}" for dk, d in pm.domains_to_remove.items()]
    noun = "Domains" if len(names) > 1 else "Domain"
    return f"{indent}{proxy_str(pm.proxy)}:\n{indent}  {verb} {noun}: {', '.join(names)}"


class DependencyCollector:
    """Fills a DeletionPlan by walking the object graph through an ApiClient."""

    def __init__(self, client):
        self.client = client

    def add_zone_key(self, plan: DeletionPlan, zone_key: str) -> None:
        if plan.zone is not None:
            raise ValidationError("cannot delete more than one zone")
        plan.zone = self.client.zones.get(zone_key)
        logger.debug(f"Collecting objects in {zone_str(plan.zone)}")

        for c in self.client.clusters.index(ClusterFilter(zone_key=zone_key)):
            plan.clusters[c.cluster_key] = c
        for r in self.client.routes.index(RouteFilter(zone_key=zone_key)):
            plan.routes[r.route_key] = r
        for sr in self.client.shared_rules.index(SharedRulesFilter(zone_key=zone_key)):
            plan.shared_rules[sr.shared_rules_key] = sr
        for d in self.client.domains.index(DomainFilter(zone_key=zone_key)):
            plan.domains[d.domain_key] = d
            plan.domains_for_report[d.domain_key] = d
        for p in self.client.proxies.index(ProxyFilter(zone_key=zone_key)):
            plan.proxies[p.proxy_key] = p

    def add_domain_key(self, plan: DeletionPlan, domain_key: str) -> None:
        if domain_key in plan.domains:
            return
        self.add_domain(plan, self.client.domains.get(domain_key))

    def add_domain(self, plan: DeletionPlan, domain: Domain) -> None:
        dk = domain.domain_key
        if dk in plan.domains:
            return
        plan.domains[dk] = domain

        for r in self.client.routes.index(RouteFilter(domain_key=dk)):
            self.add_route(plan, r)

        for p in self.client.proxies.index(ProxyFilter(domain_keys=[dk])):
            mod = plan.proxy_mods.get(p.proxy_key)
            if mod is None:
                plan.proxy_mods[p.proxy_key] = ProxyModification(p, {dk: domain})
            else:
                mod.domains_to_remove[dk] = domain

    def add_route_key(self, plan: DeletionPlan, route_key: str) -> None:
        if route_key in plan.routes:
            return
        self.add_route(plan, self.client.routes.get(route_key))

    def add_route(self, plan: DeletionPlan, route: Route) -> None:
        plan.routes.setdefault(route.route_key, route)

        if route.domain_key in plan.domains_for_report:
            return
        domain = plan.domains.get(route.domain_key)
        if domain is None:
            domain = self.client.domains.get(route.domain_key)
        plan.domains_for_report[route.domain_key] = domain

    def add_shared_rules_key(self, plan: DeletionPlan, shared_rules_key: str) -> None:
        if shared_rules_key in plan.shared_rules:
            return
        self.add_shared_rules(plan, self.client.shared_rules.get(shared_rules_key))

    def add_shared_rules(self, plan: DeletionPlan, shared_rules: SharedRules) -> None:
        srk = shared_rules.shared_rules_key
        if srk in plan.shared_rules:
            return
        plan.shared_rules[srk] = shared_rules

        for r in self.client.routes.index(RouteFilter(shared_rules_key=srk)):
            self.add_route(plan, r)

    def add_orphans(self, plan: DeletionPlan) -> None:
        """
        Add shared rules referenced only by routes already in the plan.

        A shared rules object still used by any route outside the plan is
        kept.
        """
        candidates = {r.shared_rules_key for r in plan.routes.values() if r.shared_rules_key}
        if not candidates:
            return

        filters = [RouteFilter(shared_rules_key=srk) for srk in sorted(candidates)]
        for r in self.client.routes.index(*filters):
            if r.route_key not in plan.routes:
                candidates.discard(r.shared_rules_key)

        for srk in sorted(candidates):
            if srk not in plan.shared_rules:
                logger.debug(f"Adding orphaned shared_rules {srk}")
            self.add_shared_rules_key(plan, srk)


def collect(client, object_type: ObjectType, key: str) -> DeletionPlan:
    """Build the deletion plan for a zone, domain, route or shared rules key."""
    collector = DependencyCollector(client)
    plan = DeletionPlan()

    if object_type == ObjectType.ZONE:
        collector.add_zone_key(plan, key)
        collector.add_orphans(plan)
    elif object_type == ObjectType.DOMAIN:
        collector.add_domain_key(plan, key)
    elif object_type == ObjectType.ROUTE:
        collector.add_route_key(plan, key)
    elif object_type == ObjectType.SHARED_RULES:
        collector.add_shared_rules_key(plan, key)
    else:
        raise ValidationError(f"deep delete is not defined for {object_type}")

    return plan


def render_plan(plan: DeletionPlan) -> str:
    """Render the plan as text, grouped by kind in execution order."""
    lines = [PLAN_HEADER]
    for r in plan.routes.values():
        lines.append("  " + route_str(r, plan.domains_for_report.get(r.domain_key)))
    for sr in plan.shared_rules.values():
        lines.append("  " + shared_rules_str(sr))
    for p in plan.proxies.values():
        lines.append("  " + proxy_str(p))
    for d in plan.domains.values():
        lines.append("  " + domain_str(d))
    for c in plan.clusters.values():
        lines.append("  " + cluster_str(c))
    if plan.zone is not None:
        lines.append("  " + zone_str(plan.zone))

    if plan.proxy_mods:
        lines.append(MODS_HEADER)
        for pm in plan.proxy_mods.values():
            lines.append(proxy_mod_str(pm, "  "))

    return "\n".join(lines)


def _steps(client, plan: DeletionPlan):
    """Yield (description, action) pairs in execution order."""
    for r in plan.routes.values():
        yield (
            route_str(r, plan.domains_for_report.get(r.domain_key)),
            lambda r=r: client.routes.delete(r.route_key, r.checksum),
        )
    for sr in plan.shared_rules.values():
        yield (
            shared_rules_str(sr),
            lambda sr=sr: client.shared_rules.delete(sr.shared_rules_key, sr.checksum),
        )
    for p in plan.proxies.values():
        yield proxy_str(p), lambda p=p: client.proxies.delete(p.proxy_key, p.checksum)
    for pm in plan.proxy_mods.values():

        def modify(pm=pm):
            proxy = Proxy.from_dict(pm.proxy.to_dict())
            proxy.domain_keys = pm.remaining_domain_keys()
            client.proxies.modify(proxy)

        yield proxy_mod_str(pm, "", "Remove"), modify
    for d in plan.domains.values():
        yield domain_str(d), lambda d=d: client.domains.delete(d.domain_key, d.checksum)
    for c in plan.clusters.values():
        yield cluster_str(c), lambda c=c: client.clusters.delete(c.cluster_key, c.checksum)
    if plan.zone is not None:
        z = plan.zone
        yield zone_str(z), lambda: client.zones.delete(z.zone_key, z.checksum)


def execute_plan(client, plan: DeletionPlan) -> List[str]:
    """
    Apply a deletion plan, stopping at the first failure.

    Returns:
        Descriptions of the steps applied, in order

    Raises:
        PartialFailureError: If a step failed after earlier steps were applied
    """
    applied = []
    for description, action in _steps(client, plan):
        logger.info(f"Deleting {description}")
        try:
            action()
        except TrafficCtlError as e:
            if not applied:
                raise
            logger.error(f"Deep deletion stopped at {description} after {len(applied)} step(s)")
            raise PartialFailureError(
                f"deep deletion failed at {description}: {e}; {len(applied)} step(s) were "
                f"already applied and manual cleanup may be required",
                applied=applied,
            ) from e
        logger.info(f"Deleted {description}")
        applied.append(description)
    return applied


def deep_delete(
    client,
    object_type: ObjectType,
    key: str,
    confirm: Optional[Callable[[DeletionPlan], bool]] = None,
) -> List[str]:
    """
    Delete an object and everything that depends on it.

    Args:
        client: ApiClient used for lookups and mutations
        object_type: Kind of the starting object
        key: Key of the starting object
        confirm: Called with the plan before anything changes; a false
            result cancels. None skips confirmation.

    Returns:
        Descriptions of the steps applied

    Raises:
        OperationCancelled: If confirm declined the plan
    """
    if object_type not in (
        ObjectType.ZONE,
        ObjectType.DOMAIN,
        ObjectType.ROUTE,
        ObjectType.SHARED_RULES,
    ):
        logger.warning(f"--deep ignored for {object_type} delete")
        service = client.service(object_type)
        record = service.get(key)
        service.delete(key, service.checksum(record))
        return [f"{object_type}({key})"]

    plan = collect(client, object_type, key)
    if confirm is not None and not confirm(plan):
        raise OperationCancelled("canceled deep deletion")

    return execute_plan(client, plan)
