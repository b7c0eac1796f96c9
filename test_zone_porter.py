#!/usr/bin/env python3
"""
Tests for zone export and import.
"""

import json
import unittest
from unittest.mock import patch

import yaml

from traffic_config_manager.core.zone_porter import (
    ZoneObjects,
    export_zone,
    find_dangling_references,
    import_zone,
)
from traffic_config_manager.errors import (
    ApiError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from traffic_config_manager.object_types import ObjectType
from traffic_config_manager.objects import (
    AllConstraints,
    Cluster,
    ClusterConstraint,
    Domain,
    Instance,
    Metadatum,
    Proxy,
    Route,
    Rule,
    SharedRules,
    Zone,
    ZoneFilter,
)
from traffic_config_manager.parsers.document import encode
from traffic_config_manager.providers.api_client import ApiClient
from traffic_config_manager.providers.mock_provider import MockConfigProvider


def build_zone(client, name="prod"):
    """Create a small zone: two clusters, two domains, a proxy, shared rules and routes."""
    zone = client.zones.create(Zone(name=name))
    zk = zone.zone_key

    api = client.clusters.create(
        Cluster(zone_key=zk, name="api", instances=[Instance(host="10.0.0.1", port=8080)])
    )
    web = client.clusters.create(Cluster(zone_key=zk, name="web"))

    www = client.domains.create(Domain(zone_key=zk, name="www.example.com", port=80))
    apid = client.domains.create(
        Domain(zone_key=zk, name="api.example.com", port=443, aliases=["api2.example.com"])
    )

    client.proxies.create(
        Proxy(zone_key=zk, name="edge", domain_keys=[www.domain_key, apid.domain_key])
    )

    sr_api = client.shared_rules.create(
        SharedRules(
            zone_key=zk,
            name="api-rules",
            default=AllConstraints(
                light=[
                    ClusterConstraint(
                        constraint_key="ck-1",
                        cluster_key=api.cluster_key,
                        metadata=[Metadatum("stage", "prod")],
                        weight=3,
                    )
                ]
            ),
            rules=[
                Rule(
                    rule_key="rk-1",
                    methods=["GET"],
                    constraints=AllConstraints(
                        dark=[ClusterConstraint(constraint_key="ck-2", cluster_key=web.cluster_key, weight=1)]
                    ),
                )
            ],
        )
    )
    sr_web = client.shared_rules.create(
        SharedRules(
            zone_key=zk,
            name="web-rules",
            default=AllConstraints(light=[ClusterConstraint(cluster_key=web.cluster_key, weight=1)]),
        )
    )

    client.routes.create(
        Route(zone_key=zk, domain_key=www.domain_key, path="/", shared_rules_key=sr_web.shared_rules_key)
    )
    client.routes.create(
        Route(
            zone_key=zk,
            domain_key=apid.domain_key,
            path="/users",
            shared_rules_key=sr_api.shared_rules_key,
            rules=[
                Rule(
                    rule_key="rk-2",
                    constraints=AllConstraints(
                        light=[ClusterConstraint(constraint_key="ck-3", cluster_key=api.cluster_key, weight=5)]
                    ),
                )
            ],
        )
    )
    return zone


def topology(client, zone_key):
    """Describe a zone's reference graph by names, independent of keys."""
    clusters = {c.cluster_key: c.name for c in client.clusters.index() if c.zone_key == zone_key}
    domains = {d.domain_key: d.addr() for d in client.domains.index() if d.zone_key == zone_key}
    srs = {s.shared_rules_key: s for s in client.shared_rules.index() if s.zone_key == zone_key}

    def constraints(ac):
        return sorted((c.cluster_key and clusters[c.cluster_key], c.weight) for c in ac.all())

    return {
        "clusters": sorted(clusters.values()),
        "domains": sorted(domains.values()),
        "proxies": sorted(
            (p.name, tuple(sorted(domains[dk] for dk in p.domain_keys)))
            for p in client.proxies.index()
            if p.zone_key == zone_key
        ),
        "shared_rules": sorted(
            (s.name, tuple(constraints(s.default)), tuple(tuple(constraints(r.constraints)) for r in s.rules))
            for s in srs.values()
        ),
        "routes": sorted(
            (
                domains[r.domain_key],
                r.path,
                srs[r.shared_rules_key].name,
                tuple(tuple(constraints(rule.constraints)) for rule in r.rules),
            )
            for r in client.routes.index()
            if r.zone_key == zone_key
        ),
    }


class TestExportZone(unittest.TestCase):
    """Test export_zone key translation."""

    def setUp(self):
        self.client = ApiClient({}, provider=MockConfigProvider())
        self.zone = build_zone(self.client)

    def test_keys_are_replaced_with_names(self):
        zo = export_zone(self.client, "prod")

        self.assertEqual(zo.zone.zone_key, "prod")
        self.assertEqual(sorted(c.cluster_key for c in zo.clusters), ["api", "web"])
        self.assertEqual(
            sorted(d.domain_key for d in zo.domains),
            ["api.example.com:443", "www.example.com:80"],
        )
        self.assertEqual([p.proxy_key for p in zo.proxies], ["edge"])
        self.assertEqual(
            sorted(zo.proxies[0].domain_keys), ["api.example.com:443", "www.example.com:80"]
        )
        self.assertEqual(
            sorted(r.route_key for r in zo.routes),
            ["api.example.com:443/users", "www.example.com:80/"],
        )
        for obj in zo.clusters + zo.domains + zo.proxies + zo.routes + zo.shared_rules:
            self.assertEqual(obj.zone_key, "prod")

    def test_references_inside_rules_are_translated(self):
        zo = export_zone(self.client, "prod")
        sr = next(s for s in zo.shared_rules if s.name == "api-rules")
        self.assertEqual(sr.default.light[0].cluster_key, "api")
        self.assertEqual(sr.default.light[0].constraint_key, "")
        self.assertEqual(sr.rules[0].rule_key, "")
        self.assertEqual(sr.rules[0].constraints.dark[0].cluster_key, "web")

        route = next(r for r in zo.routes if r.path == "/users")
        self.assertEqual(route.domain_key, "api.example.com:443")
        self.assertEqual(route.shared_rules_key, "api-rules")
        self.assertEqual(route.rules[0].rule_key, "")
        self.assertEqual(route.rules[0].constraints.light[0].cluster_key, "api")
        self.assertEqual(route.rules[0].constraints.light[0].constraint_key, "")

    def test_checksums_and_instances_are_stripped(self):
        zo = export_zone(self.client, "prod")
        self.assertEqual(zo.zone.checksum, "")
        for obj in zo.clusters + zo.domains + zo.proxies + zo.routes + zo.shared_rules:
            self.assertEqual(obj.checksum, "")
        for c in zo.clusters:
            self.assertEqual(c.instances, [])

    def test_resolves_zone_by_key(self):
        zo = export_zone(self.client, self.zone.zone_key)
        self.assertEqual(zo.zone.name, "prod")
        self.assertEqual(len(zo.routes), 2)

    def test_unknown_zone_is_not_found(self):
        with self.assertRaises(NotFoundError):
            export_zone(self.client, "nope")

    def test_export_is_deterministic(self):
        first = encode(export_zone(self.client, "prod"), "json")
        second = encode(export_zone(self.client, "prod"), "json")
        self.assertEqual(first, second)
        self.assertEqual(
            encode(export_zone(self.client, "prod"), "yaml"),
            encode(export_zone(self.client, "prod"), "yaml"),
        )

    def test_document_schema(self):
        data = json.loads(encode(export_zone(self.client, "prod"), "json"))
        self.assertEqual(
            list(data.keys()),
            ["zone", "clusters", "domains", "proxies", "routes", "shared_rules"],
        )
        self.assertNotIn("_cluster_keys", data)

    def test_untranslatable_reference_is_left_with_warning(self):
        zk = self.zone.zone_key
        www = self.client.domains.index()[0]
        self.client.routes.create(
            Route(zone_key=zk, domain_key=www.domain_key, path="/x", shared_rules_key="elsewhere")
        )
        with self.assertLogs("traffic_config_manager.core.zone_porter", level="WARNING") as logs:
            zo = export_zone(self.client, "prod")
        route = next(r for r in zo.routes if r.path == "/x")
        self.assertEqual(route.shared_rules_key, "elsewhere")
        self.assertTrue(any("elsewhere" in line for line in logs.output))

    def test_index_failure_aborts_export(self):
        with patch.object(
            self.client.provider, "index", side_effect=ApiError("boom", status=500)
        ):
            with self.assertRaises(ApiError):
                export_zone(self.client, "prod")


class TestImportZone(unittest.TestCase):
    """Test import_zone remapping and failure behavior."""

    def setUp(self):
        self.provider = MockConfigProvider()
        self.client = ApiClient({}, provider=self.provider)
        self.zone = build_zone(self.client)

    def test_round_trip_reproduces_topology(self):
        document = encode(export_zone(self.client, "prod"), "yaml")

        target = ApiClient({}, provider=MockConfigProvider())
        created = import_zone(target, "prod", document, "yaml")

        self.assertEqual(
            topology(target, created.zone.zone_key),
            topology(self.client, self.zone.zone_key),
        )

    def test_import_into_same_store_under_new_name(self):
        zo = export_zone(self.client, "prod")
        created = import_zone(self.client, "staging", zo)

        self.assertEqual(created.zone.name, "staging")
        self.assertNotEqual(created.zone.zone_key, self.zone.zone_key)
        self.assertEqual(
            created.counts(),
            {"clusters": 2, "domains": 2, "proxies": 1, "routes": 2, "shared_rules": 2},
        )
        self.assertEqual(
            topology(self.client, created.zone.zone_key),
            topology(self.client, self.zone.zone_key),
        )

    def test_existing_zone_name_is_rejected(self):
        before = len(self.provider.mutations())

        with self.assertRaises(ValidationError) as ctx:
            import_zone(self.client, "prod", export_zone(self.client, "prod"))

        self.assertIn("zone prod already exists", str(ctx.exception))
        self.assertEqual(len(self.provider.mutations()), before)
        self.assertEqual(len(self.client.zones.index(ZoneFilter(name="prod"))), 1)

    def test_creation_order(self):
        document = export_zone(self.client, "prod").to_dict()
        target = MockConfigProvider()
        import_zone(ApiClient({}, provider=target), "copy", document)

        kinds = [call[1] for call in target.mutations()]
        order = [
            ObjectType.ZONE,
            ObjectType.CLUSTER,
            ObjectType.DOMAIN,
            ObjectType.PROXY,
            ObjectType.SHARED_RULES,
            ObjectType.ROUTE,
        ]
        self.assertEqual(kinds, sorted(kinds, key=order.index))
        self.assertTrue(all(call[0] == "create" for call in target.mutations()))

    def test_created_objects_get_new_keys_and_zone(self):
        created = import_zone(self.client, "copy", export_zone(self.client, "prod"))
        zk = created.zone.zone_key
        for obj in created.clusters + created.domains + created.proxies + created.routes:
            self.assertEqual(obj.zone_key, zk)
        self.assertNotIn("api", [c.cluster_key for c in created.clusters])
        self.assertNotIn("api.example.com:443/users", [r.route_key for r in created.routes])

    def test_dangling_reference_creates_nothing(self):
        document = export_zone(self.client, "prod").to_dict()
        document["proxies"][0]["domain_keys"].append("missing.example.com:80")
        document["routes"][0]["shared_rules_key"] = "no-such-rules"

        target = MockConfigProvider()
        with self.assertRaises(ValidationError) as ctx:
            import_zone(ApiClient({}, provider=target), "copy", document)

        self.assertIn("missing.example.com:80", str(ctx.exception))
        self.assertIn("no-such-rules", str(ctx.exception))
        self.assertEqual(target.mutations(), [])

    def test_find_dangling_references_checks_constraints(self):
        zo = export_zone(self.client, "prod")
        self.assertEqual(find_dangling_references(zo), [])
        zo.shared_rules[0].default.light.append(ClusterConstraint(cluster_key="ghost"))
        problems = find_dangling_references(zo)
        self.assertEqual(len(problems), 1)
        self.assertIn("ghost", problems[0])

    def test_malformed_text_is_validation_error(self):
        with self.assertRaises(ValidationError):
            import_zone(self.client, "copy", "{not json", "json")
        with self.assertRaises(ValidationError):
            import_zone(self.client, "copy", "- just\n- a list\n", "yaml")

    def test_zone_create_failure_propagates_unchanged(self):
        with patch.object(
            self.provider, "create", side_effect=ApiError("rejected", status=400)
        ):
            with self.assertRaises(ApiError) as ctx:
                import_zone(self.client, "copy", export_zone(self.client, "prod"))
        self.assertNotIsInstance(ctx.exception, PartialFailureError)

    def test_route_create_failure_is_partial(self):
        document = export_zone(self.client, "prod")
        real_create = self.provider.create

        def failing_create(object_type, record):
            if object_type == ObjectType.ROUTE:
                raise ApiError("route rejected", status=500)
            return real_create(object_type, record)

        with patch.object(self.provider, "create", side_effect=failing_create):
            with self.assertRaises(PartialFailureError) as ctx:
                import_zone(self.client, "copy", document)

        err = ctx.exception
        self.assertIsInstance(err.__cause__, ApiError)
        self.assertIn("manual cleanup", str(err))
        self.assertEqual(err.partial.zone.name, "copy")
        self.assertEqual(len(err.partial.clusters), 2)
        self.assertEqual(len(err.partial.shared_rules), 2)
        self.assertEqual(err.partial.routes, [])

        # what was created stays in the store
        zones = [z.name for z in self.client.zones.index()]
        self.assertIn("copy", zones)
        copy_key = err.partial.zone.zone_key
        self.assertEqual(
            len([c for c in self.client.clusters.index() if c.zone_key == copy_key]), 2
        )


class TestZoneObjects(unittest.TestCase):
    """Test the zone document aggregate."""

    def test_from_dict_rejects_non_mapping(self):
        with self.assertRaises(ValidationError):
            ZoneObjects.from_dict(["zone"])

    def test_from_dict_tolerates_missing_sections(self):
        zo = ZoneObjects.from_dict({"zone": {"name": "z"}})
        self.assertEqual(zo.zone.name, "z")
        self.assertEqual(zo.counts()["routes"], 0)

    def test_yaml_document_loads(self):
        text = yaml.safe_dump({"zone": {"name": "z"}, "clusters": [{"name": "c"}]})
        client = ApiClient({}, provider=MockConfigProvider())
        created = import_zone(client, "z2", text, "yaml")
        self.assertEqual(created.clusters[0].name, "c")


if __name__ == "__main__":
    unittest.main()
