"""
Step definitions for traffic-ctl integration tests.
"""

from behave import given, then, when

from traffic_config_manager.core.deep_delete import deep_delete
from traffic_config_manager.core.init_zone import ZoneInitializer, parse_proxies, parse_routes
from traffic_config_manager.core.zone_porter import export_zone, import_zone
from traffic_config_manager.errors import OperationCancelled, ValidationError
from traffic_config_manager.object_types import ObjectType
from traffic_config_manager.objects import (
    ClusterFilter,
    DomainFilter,
    ProxyFilter,
    RouteFilter,
    SharedRulesFilter,
    ZoneFilter,
)
from traffic_config_manager.parsers.document import decode, encode
from traffic_config_manager.providers.api_client import ApiClient


def _zone(context, name):
    zones = context.client.zones.index(ZoneFilter(name=name))
    assert len(zones) == 1, f"expected one zone named {name}, found {len(zones)}"
    return zones[0]


def _topology(client, zone_key):
    """A zone's reference graph by names and paths, independent of keys."""
    clusters = {c.cluster_key: c.name for c in client.clusters.index(ClusterFilter(zone_key=zone_key))}
    domains = {d.domain_key: d.addr() for d in client.domains.index(DomainFilter(zone_key=zone_key))}
    srs = {
        sr.shared_rules_key: sr
        for sr in client.shared_rules.index(SharedRulesFilter(zone_key=zone_key))
    }
    return {
        "clusters": sorted(clusters.values()),
        "proxies": sorted(
            (p.name, tuple(sorted(domains[dk] for dk in p.domain_keys)))
            for p in client.proxies.index(ProxyFilter(zone_key=zone_key))
        ),
        "routes": sorted(
            (
                domains[r.domain_key],
                r.path,
                srs[r.shared_rules_key].name,
                tuple(sorted((clusters[c.cluster_key], c.weight) for c in srs[r.shared_rules_key].default.all())),
            )
            for r in client.routes.index(RouteFilter(zone_key=zone_key))
        ),
    }


@given("traffic-ctl is configured with the mock provider")
def step_impl(context):
    """Create an API client backed by an empty in-memory store."""
    context.client = ApiClient(context.test_config)
    context.provider = context.client.provider
    assert not context.client.zones.index()


@given('a zone "{name}" initialized with routes:')
def step_impl(context, name):
    """Initialize a zone from the route declarations in the table."""
    routes = parse_routes([row["route"] for row in context.table])
    ZoneInitializer(context.client).run(name, routes)


@given('proxy "{proxy}" serving "{domains}" in zone "{name}"')
def step_impl(context, proxy, domains, name):
    declarations = [f"{proxy}={addr}" for addr in domains.split(",")]
    zone_key = _zone(context, name).zone_key
    domain_keys = {d.addr(): d.domain_key for d in context.client.domains.index(DomainFilter(zone_key=zone_key))}
    for spec in parse_proxies(declarations):
        ZoneInitializer(context.client).add_proxy(zone_key, spec, domain_keys)


@given('the first route of zone "{name}" uses the shared rules of zone "{other}"')
def step_impl(context, name, other):
    route = context.client.routes.index(RouteFilter(zone_key=_zone(context, name).zone_key))[0]
    shared = context.client.shared_rules.index(
        SharedRulesFilter(zone_key=_zone(context, other).zone_key)
    )[0]
    route.shared_rules_key = shared.shared_rules_key
    context.client.routes.modify(route)
    context.borrowed_shared_rules_key = shared.shared_rules_key


@when('I export zone "{name}" as "{codec}"')
def step_impl(context, name, codec):
    context.codec = codec
    context.exported.append(encode(export_zone(context.client, name), codec))


@when('I export zone "{name}" as "{codec}" again')
def step_impl(context, name, codec):
    context.exported.append(encode(export_zone(context.client, name), codec))


@when('I point the first route at shared rules "{name}"')
def step_impl(context, name):
    document = decode(context.exported[-1], context.codec)
    document["routes"][0]["shared_rules_key"] = name
    context.exported[-1] = encode(document, context.codec)


@when('I import the exported document as zone "{name}"')
def step_impl(context, name):
    import_zone(context.client, name, context.exported[-1], context.codec)


@when('I try to import the exported document as zone "{name}"')
def step_impl(context, name):
    try:
        import_zone(context.client, name, context.exported[-1], context.codec)
    except ValidationError as e:
        context.error = e


@when('I deep delete the domain "{addr}" in zone "{name}"')
def step_impl(context, addr, name):
    host, port = addr.split(":")
    domain = context.client.domains.index(
        DomainFilter(name=host, port=int(port), zone_key=_zone(context, name).zone_key)
    )[0]
    deep_delete(context.client, ObjectType.DOMAIN, domain.domain_key)


@when('I deep delete zone "{name}"')
def step_impl(context, name):
    context.mutations_before = len(context.provider.mutations())
    deep_delete(context.client, ObjectType.ZONE, _zone(context, name).zone_key)


@when('I deep delete zone "{name}" and decline the confirmation')
def step_impl(context, name):
    try:
        deep_delete(
            context.client,
            ObjectType.ZONE,
            _zone(context, name).zone_key,
            confirm=lambda plan: False,
        )
    except OperationCancelled as e:
        context.error = e


@then("the exported document has {clusters:d} clusters, {domains:d} domains, {proxies:d} proxies, {routes:d} routes and {shared_rules:d} shared_rules")
def step_impl(context, clusters, domains, proxies, routes, shared_rules):
    document = decode(context.exported[-1], context.codec)
    counts = {kind: len(document[kind]) for kind in ("clusters", "domains", "proxies", "routes", "shared_rules")}
    assert counts == {
        "clusters": clusters,
        "domains": domains,
        "proxies": proxies,
        "routes": routes,
        "shared_rules": shared_rules,
    }, counts


@then("the exported route keys are:")
def step_impl(context):
    document = decode(context.exported[-1], context.codec)
    got = sorted(r["route_key"] for r in document["routes"])
    want = sorted(row["route_key"] for row in context.table)
    assert got == want, got


@then("the exported document has no checksums")
def step_impl(context):
    document = decode(context.exported[-1], context.codec)
    assert document["zone"]["checksum"] == ""
    for kind in ("clusters", "domains", "proxies", "routes", "shared_rules"):
        for obj in document[kind]:
            assert obj["checksum"] == "", obj
    for cluster in document["clusters"]:
        assert cluster["instances"] == [], cluster


@then("both exported documents are identical")
def step_impl(context):
    assert len(context.exported) == 2
    assert context.exported[0] == context.exported[1]


@then('zone "{copy}" has the same topology as zone "{original}"')
def step_impl(context, copy, original):
    got = _topology(context.client, _zone(context, copy).zone_key)
    want = _topology(context.client, _zone(context, original).zone_key)
    assert got == want, f"{got} != {want}"


@then('the import fails with a validation error mentioning "{text}"')
def step_impl(context, text):
    assert isinstance(context.error, ValidationError), context.error
    assert text in str(context.error), str(context.error)


@then('no zone named "{name}" exists')
def step_impl(context, name):
    assert not context.client.zones.index(ZoneFilter(name=name))


@then('zone "{name}" has {count:d} routes')
def step_impl(context, name, count):
    routes = context.client.routes.index(RouteFilter(zone_key=_zone(context, name).zone_key))
    assert len(routes) == count, len(routes)


@then('no domain "{addr}" exists in zone "{name}"')
def step_impl(context, addr, name):
    zone_key = _zone(context, name).zone_key
    addrs = [d.addr() for d in context.client.domains.index(DomainFilter(zone_key=zone_key))]
    assert addr not in addrs, addrs


@then('proxy "{proxy}" only serves "{addr}"')
def step_impl(context, proxy, addr):
    (p,) = context.client.proxies.index(ProxyFilter(name=proxy))
    addrs = [context.client.domains.get(dk).addr() for dk in p.domain_keys]
    assert addrs == [addr], addrs


@then("the store holds no clusters, domains, proxies, routes or shared rules")
def step_impl(context):
    for object_type in (
        ObjectType.CLUSTER,
        ObjectType.DOMAIN,
        ObjectType.PROXY,
        ObjectType.ROUTE,
        ObjectType.SHARED_RULES,
    ):
        remaining = context.client.service(object_type).index()
        assert not remaining, f"{object_type}: {remaining}"


@then("the deletions ran routes, shared rules, proxies, domains, clusters, then the zone")
def step_impl(context):
    rank = {
        ObjectType.ROUTE: 0,
        ObjectType.SHARED_RULES: 1,
        ObjectType.PROXY: 2,
        ObjectType.DOMAIN: 3,
        ObjectType.CLUSTER: 4,
        ObjectType.ZONE: 5,
    }
    trace = [rank[call[1]] for call in context.provider.mutations()[context.mutations_before:]]
    assert trace == sorted(trace), trace
    assert trace[-1] == rank[ObjectType.ZONE]


@then('zone "{name}" still has its shared rules')
def step_impl(context, name):
    zone_key = _zone(context, name).zone_key
    keys = [sr.shared_rules_key for sr in context.client.shared_rules.index(SharedRulesFilter(zone_key=zone_key))]
    assert context.borrowed_shared_rules_key in keys, keys


@then("the deletion is canceled")
def step_impl(context):
    assert isinstance(context.error, OperationCancelled), context.error
