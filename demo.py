#!/usr/bin/env python3
"""
Traffic Config Manager - Demo Script

This script demonstrates zone initialization, export/import and deep
deletion using the mock provider for safe testing and demonstration.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from traffic_config_manager.core.deep_delete import collect, execute_plan, render_plan
from traffic_config_manager.core.init_zone import ZoneInitializer, parse_proxies, parse_routes
from traffic_config_manager.core.zone_porter import export_zone, import_zone
from traffic_config_manager.object_types import OBJECT_TYPE_LIST, ObjectType
from traffic_config_manager.parsers.document import encode
from traffic_config_manager.providers.api_client import ApiClient

# Initialize rich console
console = Console()


def show_store(client: ApiClient, title: str):
    """Display object counts per type."""
    table = Table(title=title)
    table.add_column("Type", style="cyan")
    table.add_column("Count", style="magenta")
    for ot in OBJECT_TYPE_LIST:
        table.add_row(str(ot), str(len(client.service(ot).index())))
    console.print(table)


def main():
    """Run the demo."""
    console.print(Panel("Traffic Config Manager Demo", style="bold blue"))

    client = ApiClient({"api": {"provider": "mock"}})

    routes = parse_routes(
        [
            "example.com:80=exampleService",
            "api.example.com:443=apiService",
            "api.example.com:443/users=userService:stage=prod:version=1.0",
        ]
    )
    proxies = parse_proxies(["main-proxy=example.com:80", "main-proxy=api.example.com:443"])
    zone_key = ZoneInitializer(client).run("demo", routes, proxies)
    show_store(client, "After init-zone demo")

    document = export_zone(client, "demo")
    console.print(Panel(encode(document, "yaml"), title="export-zone demo"))

    import_zone(client, "demo-copy", document)
    show_store(client, "After import-zone demo-copy")

    api_domain = client.domains.index(
        ObjectType.DOMAIN.filter_cls(name="api.example.com", zone_key=zone_key)
    )[0]
    plan = collect(client, ObjectType.DOMAIN, api_domain.domain_key)
    console.print(Panel(render_plan(plan), title="delete --deep domain"))
    execute_plan(client, plan)
    show_store(client, "After deep delete")


if __name__ == "__main__":
    main()
