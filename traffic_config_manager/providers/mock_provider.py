"""
Mock configuration API provider for testing and demonstration.

This module provides a mock provider that stores objects in memory and
enforces the same key and checksum rules as the real API.
"""

import logging
from collections import defaultdict
from typing import Dict, List

from .base_provider import ConfigProvider
from ..errors import ApiError, ConflictError, NotFoundError, ValidationError
from ..object_types import ObjectType
from ..objects import copy_record

logger = logging.getLogger(__name__)


class MockConfigProvider(ConfigProvider):
    """In-memory provider for tests, demos and dry runs."""

    def __init__(self, config: Dict = None):
        """Initialize mock provider."""
        self.objects = defaultdict(dict)
        self.calls = []
        self._key_counters = defaultdict(int)
        self._checksum_counter = 0
        logger.info("Mock config provider initialized")

    def _next_key(self, object_type) -> str:
        self._key_counters[object_type] += 1
        return f"{object_type.type_name}-{self._key_counters[object_type]}"

    def _next_checksum(self) -> str:
        self._checksum_counter += 1
        return f"cs-{self._checksum_counter}"

    def _existing(self, object_type, key: str):
        existing = self.objects[object_type].get(key)
        if existing is None:
            raise NotFoundError(f"no {object_type} found for key {key}", status=404)
        return existing

    def create(self, object_type, record):
        """Create a new object."""
        self.calls.append(("create", object_type, object_type.key_of(record)))
        if object_type.key_of(record):
            raise ValidationError(f"{object_type} key must be empty on create")

        stored = copy_record(record)
        setattr(stored, object_type.key_field, self._next_key(object_type))
        stored.checksum = self._next_checksum()
        self.objects[object_type][object_type.key_of(stored)] = stored
        logger.info(f"Mock: Created {object_type} {object_type.key_of(stored)}")
        return copy_record(stored)

    def get(self, object_type, key: str):
        """Get an object by key."""
        self.calls.append(("get", object_type, key))
        return copy_record(self._existing(object_type, key))

    def modify(self, object_type, record):
        """Modify an existing object."""
        key = object_type.key_of(record)
        self.calls.append(("modify", object_type, key))
        existing = self._existing(object_type, key)
        if existing.checksum != record.checksum:
            raise ConflictError(
                f"checksum mismatch modifying {object_type} {key}", status=409
            )

        stored = copy_record(record)
        stored.checksum = self._next_checksum()
        self.objects[object_type][key] = stored
        logger.info(f"Mock: Modified {object_type} {key}")
        return copy_record(stored)

    def delete(self, object_type, key: str, checksum: str) -> None:
        """Delete an object."""
        self.calls.append(("delete", object_type, key))
        existing = self._existing(object_type, key)
        if existing.checksum != checksum:
            raise ConflictError(
                f"checksum mismatch deleting {object_type} {key}", status=409
            )

        dependents = self._dependents(object_type, key)
        if dependents:
            raise ApiError(
                f"{object_type} {key} is still referenced by {', '.join(dependents)}",
                status=400,
            )

        del self.objects[object_type][key]
        logger.info(f"Mock: Deleted {object_type} {key}")

    def index(self, object_type, *filters) -> List:
        """List objects matching any of the filters."""
        self.calls.append(("index", object_type, filters))
        records = list(self.objects[object_type].values())
        if filters:
            records = [r for r in records if any(f.matches(r) for f in filters)]
        logger.info(f"Mock: Retrieved {len(records)} {object_type} objects")
        return [copy_record(r) for r in records]

    def mutations(self) -> List:
        """The create/modify/delete calls made so far, in order."""
        return [c for c in self.calls if c[0] in ("create", "modify", "delete")]

    def _dependents(self, object_type, key: str) -> List[str]:
        """Objects that would be left dangling if the given object went away."""
        found = []

        def refs(kind, predicate):
            for record in self.objects[kind].values():
                if predicate(record):
                    found.append(f"{kind} {kind.key_of(record)}")

        def constraint_clusters(rules, default=None):
            constraints = default.all() if default is not None else []
            for rule in rules:
                constraints.extend(rule.constraints.all())
            return {c.cluster_key for c in constraints}

        if object_type == ObjectType.ZONE:
            for kind in (
                ObjectType.CLUSTER,
                ObjectType.DOMAIN,
                ObjectType.PROXY,
                ObjectType.ROUTE,
                ObjectType.SHARED_RULES,
            ):
                refs(kind, lambda r: r.zone_key == key)
        elif object_type == ObjectType.DOMAIN:
            refs(ObjectType.ROUTE, lambda r: r.domain_key == key)
            refs(ObjectType.PROXY, lambda p: key in p.domain_keys)
        elif object_type == ObjectType.SHARED_RULES:
            refs(ObjectType.ROUTE, lambda r: r.shared_rules_key == key)
        elif object_type == ObjectType.CLUSTER:
            refs(
                ObjectType.SHARED_RULES,
                lambda sr: key in constraint_clusters(sr.rules, sr.default),
            )
            refs(ObjectType.ROUTE, lambda r: key in constraint_clusters(r.rules))

        return found
