"""
Config Manager - orchestrates traffic-ctl commands

This module ties the API client to the zone porter, the deep deleter, zone
initialization and the document codec. Command results are written to the
output stream; progress, plans and prompts go to stderr.
"""

import logging
import sys
from typing import Dict, List, Optional, TextIO

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text

from ..errors import NotFoundError, ValidationError
from ..object_types import ObjectType, object_type_from_name
from ..objects import AccessToken, AccessTokenFilter
from ..parsers.document import SUPPORTED_CODECS, encode
from ..providers.api_client import ApiClient
from ..utils.formatters import format_records, print_rows
from ..utils.validators import validate_zone_name
from .deep_delete import (
    DeletionPlan,
    cluster_str,
    deep_delete,
    domain_str,
    proxy_str,
    render_plan,
    route_str,
    shared_rules_str,
    zone_str,
)
from .filters import describe_fields
from .init_zone import ZoneInitializer, parse_domains, parse_proxies, parse_routes
from .zone_porter import ZoneObjects, export_zone, import_zone

console = Console(stderr=True)
logger = logging.getLogger(__name__)


class ConfigManager:
    """Main traffic-ctl class that runs one command against the API."""

    def __init__(
        self,
        config: Dict,
        client: Optional[ApiClient] = None,
        token: Optional[str] = None,
        out: Optional[TextIO] = None,
    ):
        """Initialize the manager with configuration."""
        self.config = config
        self.client = client or ApiClient(config, token=token)
        self.codec = config.get("codec", "json")
        if self.codec not in SUPPORTED_CODECS:
            raise ValidationError(f"unknown format {self.codec!r}")
        self.out = out or sys.stdout

    def emit(self, obj) -> None:
        """Write a result to the output stream in the configured codec."""
        text = encode(obj, self.codec)
        self.out.write(text if text.endswith("\n") else text + "\n")

    def list_objects(
        self,
        type_name: str,
        attrs: Dict[str, str],
        slice_sep: str = ",",
        fmt: Optional[str] = None,
        header: Optional[str] = None,
    ) -> List:
        """List objects of a type, narrowed by filter attributes."""
        object_type = object_type_from_name(type_name)
        records = self.client.service(object_type).filtered_index(attrs, slice_sep)
        logger.info(f"Retrieved {len(records)} {object_type} objects")

        if fmt:
            rows = format_records(self.client, object_type, records, fmt, header)
            print_rows(rows, Console(file=self.out, soft_wrap=True))
        else:
            self.emit(records)
        return records

    def filter_fields(self, type_name: str) -> Dict[str, str]:
        object_type = object_type_from_name(type_name)
        return describe_fields(object_type.filter_cls)

    def get_object(self, type_name: str, key: str):
        record = self.client.service(object_type_from_name(type_name)).get(key)
        self.emit(record)
        return record

    def create_object(self, type_name: str, text: str):
        service = self.client.service(object_type_from_name(type_name))
        record = service.from_text(text, self.codec)
        created = service.create(record)
        console.print(f"[green]Created {service.object_type} {service.key_of(created)}[/green]")
        self.emit(created)
        return created

    def current_text(self, type_name: str, key: str) -> str:
        """The encoded form of an object, as presented for editing."""
        record = self.client.service(object_type_from_name(type_name)).get(key)
        return encode(record, self.codec)

    def edit_object(self, type_name: str, text: str, key: Optional[str] = None):
        """
        Modify an object from its edited document.

        The document carries the checksum it was read with, so a concurrent
        change surfaces as a ConflictError.
        """
        service = self.client.service(object_type_from_name(type_name))
        record = service.from_text(text, self.codec)
        if key and not service.key_of(record):
            setattr(record, service.object_type.key_field, key)
        elif key and service.key_of(record) != key:
            raise ValidationError(
                f"document key {service.key_of(record)} does not match {key}"
            )
        if not service.key_of(record):
            raise ValidationError(f"{service.object_type} key must be set to edit")

        modified = service.modify(record)
        console.print(f"[green]Modified {service.object_type} {service.key_of(modified)}[/green]")
        self.emit(modified)
        return modified

    def delete_object(
        self, type_name: str, key: str, deep: bool = False, assume_yes: bool = False
    ) -> List[str]:
        object_type = object_type_from_name(type_name)
        if deep:
            confirm = None if assume_yes else self._confirm_deletion
            applied = deep_delete(self.client, object_type, key, confirm)
            console.print(f"[green]Deep deletion applied {len(applied)} step(s)[/green]")
            return applied

        service = self.client.service(object_type)
        record = service.get(key)
        service.delete(key, service.checksum(record))
        console.print(f"[green]Deleted {object_type} {key}[/green]")
        return [f"{object_type}({key})"]

    def _display_plan_summary(self, plan: DeletionPlan) -> None:
        table = Table(title="Deep Deletion Plan")
        table.add_column("Operation", style="cyan")
        table.add_column("Kind", style="magenta")
        table.add_column("Objects", style="white")

        report = plan.domains_for_report
        rows = [
            ("Delete", "Route", [route_str(r, report.get(r.domain_key)) for r in plan.routes.values()]),
            ("Delete", "SharedRules", [shared_rules_str(sr) for sr in plan.shared_rules.values()]),
            ("Delete", "Proxy", [proxy_str(p) for p in plan.proxies.values()]),
            ("Modify", "Proxy", [proxy_str(pm.proxy) for pm in plan.proxy_mods.values()]),
            ("Delete", "Domain", [domain_str(d) for d in plan.domains.values()]),
            ("Delete", "Cluster", [cluster_str(c) for c in plan.clusters.values()]),
        ]
        if plan.zone is not None:
            rows.append(("Delete", "Zone", [zone_str(plan.zone)]))

        for operation, kind, objects in rows:
            if objects:
                table.add_row(operation, kind, Text("\n".join(objects)))
        console.print(table)

    def _confirm_deletion(self, plan: DeletionPlan) -> bool:
        """Show the plan and ask the operator to confirm it."""
        if plan.is_empty():
            console.print("[yellow]Nothing to delete[/yellow]")
            return False
        self._display_plan_summary(plan)
        console.print(Text(render_plan(plan)))
        return Confirm.ask("Proceed?", console=console, default=False)

    def export_zone(self, key_or_name: str) -> ZoneObjects:
        zo = export_zone(self.client, key_or_name)
        self.emit(zo)
        return zo

    def import_zone(self, name: str, text: str) -> ZoneObjects:
        if not validate_zone_name(name):
            raise ValidationError(f"invalid zone name {name!r}")
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Importing zone {name}...", total=None)
            zo = import_zone(self.client, name, text, self.codec)
        console.print(f"[green]Imported zone {name}: {zo.counts()}[/green]")
        self.emit(zo)
        return zo

    def init_zone(
        self,
        name: str,
        routes: List[str],
        proxies: List[str],
        domains: List[str],
        replace: bool = False,
    ) -> str:
        if not validate_zone_name(name):
            raise ValidationError(f"invalid zone name {name!r}")
        route_specs = parse_routes(routes)
        proxy_specs = parse_proxies(proxies)
        domain_specs = parse_domains(domains)

        console.print(f"ZONE NAME: {name}")
        console.print(f"ROUTES: {len(route_specs)}  PROXIES: {len(proxy_specs)}  DOMAINS: {len(domain_specs)}")
        zone_key = ZoneInitializer(self.client, replace=replace).run(
            name, route_specs, proxy_specs, domain_specs
        )
        console.print(f"[green]Zone {name} initialized ({zone_key})[/green]")
        return zone_key

    def access_tokens(self, command: str, argument: Optional[str] = None):
        """Run an access-tokens subcommand: list, add or remove."""
        service = self.client.service(ObjectType.ACCESS_TOKEN)

        if command == "list":
            result = service.index()
        elif command == "add":
            if not argument:
                raise ValidationError("description should be provided summarizing intended token use")
            result = service.create(AccessToken(description=argument))
        elif command == "remove":
            if not argument:
                raise ValidationError("access token to be removed must be specified")
            current = service.index(AccessTokenFilter(access_token_key=argument))
            if len(current) != 1:
                raise NotFoundError(f"unable to locate access token {argument}", status=404)
            service.delete(argument, current[0].checksum)
            result = current[0]
        else:
            raise ValidationError(f"{command!r} is not a valid access-tokens command")

        self.emit(result)
        return result
