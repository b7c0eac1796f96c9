"""
List output formats

Pre-defined formats are tab-separated ``str.format`` templates per object
type. A custom template is given on the command line with a leading ``+``.
Templates see every serialized field of the record, plus ``zone_name``,
``domain_addr`` and ``instance_count``; zone and domain lookups go through a
memoizing getter that lives for one command.
"""

import logging
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..errors import NotFoundError, ValidationError
from ..object_types import ObjectType

logger = logging.getLogger(__name__)

HEADERS = {
    ObjectType.CLUSTER: {"summary": "Cluster Key\tInstances\tZone\tName"},
    ObjectType.SHARED_RULES: {"summary": "SharedRulesKey\tZone\tName"},
    ObjectType.ROUTE: {
        "summary": "Route Key\tPath\tName:port\tZone",
        "path-only": "Route Key\tPath",
    },
    ObjectType.USER: {"summary": "User Key\tEmail"},
}

FORMATS = {
    ObjectType.CLUSTER: {"summary": "{cluster_key}\t{instance_count}\t{zone_name}\t{name}"},
    ObjectType.SHARED_RULES: {"summary": "{shared_rules_key}\t{zone_name}\t{name}"},
    ObjectType.ROUTE: {
        "summary": "{route_key}\t{path}\t{domain_addr}\t{zone_name}",
        "path-only": "{route_key}\t{path}",
    },
    ObjectType.USER: {"summary": "{user_key}\t{login_email}"},
}


def predefined_formats_help() -> str:
    return "; ".join(f"{ot}: {', '.join(names)}" for ot, names in FORMATS.items())


class RecordContext(dict):
    """Template namespace for one record, resolving derived names lazily."""

    def __init__(self, record, get_zone, get_domain):
        super().__init__(record.to_dict())
        self.record = record
        self.get_zone = get_zone
        self.get_domain = get_domain

    def __missing__(self, name):
        if name == "zone_name":
            return self._lookup(self.get_zone, self.get("zone_key"), lambda z: z.name)
        if name == "domain_addr":
            return self._lookup(self.get_domain, self.get("domain_key"), lambda d: d.addr())
        if name == "instance_count":
            return len(self.get("instances") or [])
        raise KeyError(name)

    @staticmethod
    def _lookup(getter, key, attr):
        if not key:
            return ""
        try:
            return attr(getter(key))
        except NotFoundError:
            logger.warning(f"Unable to resolve {key} while formatting")
            return ""


def resolve_template(object_type: ObjectType, fmt: str, header: Optional[str] = None):
    """
    Resolve a format name or ``+template`` into (template, header).

    Raises:
        ValidationError: If no pre-defined format of that name exists for the type
    """
    if fmt.startswith("+"):
        return fmt[1:], header or ""
    template = FORMATS.get(object_type, {}).get(fmt)
    if template is None:
        raise ValidationError(
            f"No available format strings for object '{object_type}' by name of '{fmt}'"
        )
    return template, HEADERS.get(object_type, {}).get(fmt, "")


def format_records(client, object_type: ObjectType, records: List, fmt: str, header: Optional[str] = None) -> List[List[str]]:
    """Render records into rows of cells; the first row is the header, if any."""
    template, header = resolve_template(object_type, fmt, header)
    get_zone = client.zones.cached_getter()
    get_domain = client.domains.cached_getter()

    rows = []
    if header:
        rows.append(header.split("\t"))
    for record in records:
        try:
            line = template.format_map(RecordContext(record, get_zone, get_domain))
        except (KeyError, IndexError, ValueError) as e:
            raise ValidationError(f"failed to apply format string {template!r}: {e}")
        rows.append(line.split("\t"))
    return rows


def print_rows(rows: List[List[str]], console: Console) -> None:
    """Print rows as aligned columns."""
    if not rows:
        return
    table = Table(box=None, show_header=False, pad_edge=False, padding=(0, 1, 0, 0))
    for _ in range(max(len(r) for r in rows)):
        table.add_column(no_wrap=True, overflow="ignore")
    for row in rows:
        table.add_row(*(Text(cell) for cell in row))
    console.print(table)


def print_filter_fields(filter_cls, fields: Dict[str, str], console: Console) -> None:
    """Print the filterable attribute names of a filter class and their types."""
    console.print(
        f"Listing results may be filtered by setting attributes of a {filter_cls.__name__}"
    )
    console.print("\nThe filterable attribute names and their types:")
    table = Table(box=box.SIMPLE, show_header=True)
    table.add_column("NAME", style="cyan")
    table.add_column("TYPE")
    for name, label in fields.items():
        table.add_row(name, label)
    console.print(table)
