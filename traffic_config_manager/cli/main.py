#!/usr/bin/env python3
"""
Traffic Config Manager - Command Line Interface

Main entry point for traffic-ctl.
"""

import argparse
import logging
import os
import subprocess
import sys
import tempfile
from typing import Dict, List, Optional

import yaml
from rich.prompt import Prompt

from ..core.manager import ConfigManager, console
from ..errors import OperationCancelled, TrafficCtlError, ValidationError
from ..object_types import object_type_from_name, object_type_names
from ..parsers.document import SUPPORTED_CODECS
from ..utils.formatters import predefined_formats_help, print_filter_fields
from ..utils.token_cache import TokenCache, login, logout
from ..utils.validators import validate_hostname, validate_port

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "configs/config.yaml"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BAD_INPUT = 2
EXIT_CANCELED = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="traffic-ctl",
        description="Traffic Config Manager - administer zones, routes and proxies through the configuration API",
    )

    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help=f"Configuration file path (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--api-key", help="API key (default: $TRAFFIC_CTL_API_KEY)")
    parser.add_argument("--api-host", help="API host name")
    parser.add_argument("--api-port", type=int, help="API port")
    parser.add_argument(
        "--api-insecure", action="store_true", help="Talk to the API over plain HTTP"
    )
    parser.add_argument(
        "--format", choices=SUPPORTED_CODECS, help="Input and output document format"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True
    type_help = f"object type, one of: {object_type_names()}"

    p = sub.add_parser("list", help="list objects of a type")
    p.add_argument("type", help=type_help)
    p.add_argument("attrs", nargs="*", metavar="name=value", help="filter attributes")
    p.add_argument(
        "--show-filter-fields",
        action="store_true",
        help="show the attributes that can be used to filter this object type",
    )
    p.add_argument(
        "--filter-slice-separator",
        default=",",
        help="delimiter between elements of a list-valued filter attribute",
    )
    fmt = p.add_mutually_exclusive_group()
    fmt.add_argument(
        "--format-name",
        help=f"pre-defined output format ({predefined_formats_help()})",
    )
    fmt.add_argument(
        "--template",
        help="custom output format, prefixed with '+', e.g. '+{name}\\t{zone_name}'",
    )
    p.add_argument("--header", help="header line for a custom --template")

    p = sub.add_parser("get", help="get an object by key")
    p.add_argument("type", help=type_help)
    p.add_argument("key", nargs="?")
    p.add_argument("--key", dest="key_flag")

    p = sub.add_parser("create", help="create an object from stdin or $EDITOR")
    p.add_argument("type", help=type_help)

    p = sub.add_parser("edit", help="edit an object from stdin or in $EDITOR")
    p.add_argument("type", help=type_help)
    p.add_argument("key", nargs="?")
    p.add_argument("--key", dest="key_flag")

    p = sub.add_parser("delete", help="delete an object")
    p.add_argument("type", help=type_help)
    p.add_argument("key", nargs="?")
    p.add_argument("--key", dest="key_flag")
    p.add_argument(
        "--deep",
        action="store_true",
        help="also delete or modify every object that depends on this one",
    )
    p.add_argument("--yes", "-y", action="store_true", help="do not ask for confirmation")

    p = sub.add_parser("init-zone", help="initialize a zone from route and proxy declarations")
    p.add_argument("zone_name")
    p.add_argument(
        "--routes",
        action="append",
        default=[],
        help='"domain:port[/path]=cluster[:key=value]*,...", repeatable',
    )
    p.add_argument(
        "--proxies", action="append", default=[], help='"proxy=domain:port,...", repeatable'
    )
    p.add_argument(
        "--domains",
        action="append",
        default=[],
        help='"domain:port=alias[:alias]*,...", repeatable',
    )
    p.add_argument(
        "--replace",
        action="store_true",
        help="replace existing routes, shared rules and proxies instead of leaving them as is",
    )

    p = sub.add_parser("export-zone", help="export a zone with keys replaced by names")
    p.add_argument("zone", metavar="zone-name|zone-key")

    p = sub.add_parser("import-zone", help="import an exported zone from stdin or $EDITOR")
    p.add_argument("zone_name")

    p = sub.add_parser("access-tokens", help="manage access tokens for your account")
    p.add_argument("action", choices=["list", "add", "remove"])
    p.add_argument("argument", nargs="?", help="description (add) or key (remove)")

    p = sub.add_parser("login", help="obtain an authentication token")
    p.add_argument("--username")
    p.add_argument("--password")

    sub.add_parser("logout", help="discard the cached authentication token")

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        apply_overrides(config, args)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_BAD_INPUT)
    except TrafficCtlError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    config_logger(config, args.verbose)
    sys.exit(run(args, config))


def run(args, config: Dict, manager: Optional[ConfigManager] = None) -> int:
    """Run a parsed command and return its exit code."""
    try:
        if args.command == "login":
            return _login(args, config)
        if args.command == "logout":
            logout(TokenCache.load())
            console.print("Logged out")
            return EXIT_OK

        if manager is None:
            token = None
            if not config["api"].get("key"):
                token = TokenCache.load().access_token()
            manager = ConfigManager(config, token=token)
        _dispatch(manager, args)
        return EXIT_OK

    except OperationCancelled:
        print("canceled", file=sys.stderr)
        return EXIT_CANCELED
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return EXIT_ERROR


def _key(args) -> str:
    key = args.key_flag or args.key
    if not key:
        raise ValidationError(f"{args.command} requires an object key")
    return key


def _dispatch(manager: ConfigManager, args) -> None:
    command = args.command

    if command == "list":
        if args.show_filter_fields:
            fields = manager.filter_fields(args.type)
            print_filter_fields(object_type_from_name(args.type).filter_cls, fields, console)
            return
        fmt = args.template or args.format_name
        if args.template and not args.template.startswith("+"):
            fmt = "+" + args.template
        manager.list_objects(
            args.type,
            args_to_attrs(args.attrs),
            args.filter_slice_separator,
            fmt=fmt,
            header=args.header,
        )
    elif command == "get":
        manager.get_object(args.type, _key(args))
    elif command == "create":
        manager.create_object(args.type, read_document(manager.codec))
    elif command == "edit":
        key = args.key_flag or args.key
        text = read_stdin()
        if not text:
            if not key:
                raise ValidationError("edit requires an object key when nothing is piped to stdin")
            text = edit_text(manager.current_text(args.type, key), manager.codec)
        manager.edit_object(args.type, text, key)
    elif command == "delete":
        manager.delete_object(args.type, _key(args), deep=args.deep, assume_yes=args.yes)
    elif command == "init-zone":
        manager.init_zone(args.zone_name, args.routes, args.proxies, args.domains, args.replace)
    elif command == "export-zone":
        manager.export_zone(args.zone)
    elif command == "import-zone":
        manager.import_zone(args.zone_name, read_document(manager.codec))
    elif command == "access-tokens":
        manager.access_tokens(args.action, args.argument)
    else:
        raise ValidationError(f"unknown command {command}")


def _login(args, config: Dict) -> int:
    cache = TokenCache.load()
    auth = config.get("auth", {})
    cache.provider_url = auth.get("provider_url", cache.provider_url)
    cache.client_id = auth.get("client_id", cache.client_id)

    username = args.username or Prompt.ask("Username", default=cache.username or None, console=console)
    password = args.password or Prompt.ask("Password", password=True, console=console)
    login(cache, (username or "").strip(), password)
    console.print(f"[green]Logged in as {cache.username}[/green]")
    return EXIT_OK


def args_to_attrs(args: List[str]) -> Dict[str, str]:
    """Split name=value arguments at the first '='."""
    attrs = {}
    for kv in args:
        name, _, value = kv.partition("=")
        attrs[name] = value
    return attrs


def read_stdin() -> str:
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read().strip()


def edit_text(initial: str, codec: str) -> str:
    """Open $EDITOR on the given text and return what was saved."""
    editor = os.environ.get("EDITOR", "vi")
    with tempfile.NamedTemporaryFile("w", suffix=f".{codec}", delete=False) as f:
        f.write(initial)
        path = f.name
    try:
        result = subprocess.call([editor, path])
        if result != 0:
            raise TrafficCtlError(f"{editor} exited with status {result}")
        with open(path, "r") as f:
            return f.read().strip()
    finally:
        os.unlink(path)


def read_document(codec: str) -> str:
    """Read a document from stdin, falling back to $EDITOR."""
    text = read_stdin() or edit_text("", codec)
    if not text:
        raise ValidationError("no input document given")
    return text


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load configuration from YAML file.

    A missing default config file falls back to the defaults; a missing file
    that was named explicitly is an error.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    config = get_default_config()
    try:
        with open(path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        logger.info(f"Configuration loaded from {path}")
    except FileNotFoundError:
        if config_path:
            raise TrafficCtlError(f"Configuration file '{config_path}' not found")
        logger.warning(f"Config file {path} not found, using defaults")
        return config
    except yaml.YAMLError as e:
        raise ValidationError(f"Error parsing config file {path}: {e}")

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config


def get_default_config() -> Dict:
    """Return default configuration."""
    return {
        "api": {
            "provider": "http",
            "host": "api.turbinelabs.io",
            "port": 443,
            "ssl": True,
            "key": "",
        },
        "auth": {
            "provider_url": "https://login.turbinelabs.io/auth/realms/turbine-labs",
            "client_id": "traffic-ctl",
        },
        "codec": "json",
        "logging": {"level": "WARNING"},
    }


def apply_overrides(config: Dict, args) -> Dict:
    """Apply command-line flags on top of file configuration."""
    api = config.setdefault("api", {})
    if args.api_key:
        api["key"] = args.api_key
    if args.api_host:
        if not validate_hostname(args.api_host):
            raise ValidationError(f"invalid API host {args.api_host!r}")
        api["host"] = args.api_host
    if args.api_port is not None:
        if not validate_port(args.api_port):
            raise ValidationError(f"invalid API port {args.api_port}")
        api["port"] = args.api_port
    if args.api_insecure:
        api["ssl"] = False
        if args.api_port is None and api.get("port") == 443:
            api["port"] = 80
    if args.format:
        config["codec"] = args.format
    return config


def config_logger(config: Dict, verbose: bool = False):
    """Configure logging; log output goes to stderr so stdout carries only results."""
    logging_config = config.get("logging") or {}
    log_level = "DEBUG" if verbose else logging_config.get("level", "WARNING")
    handlers = [logging.StreamHandler(sys.stderr)]
    log_file = logging_config.get("file")
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


if __name__ == "__main__":
    main()
