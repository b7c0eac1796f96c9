"""
Validators - Input validation for hosts, ports and zone names

This module provides validation functions used by zone initialization and
the API connection settings.
"""

import logging
import re

logger = logging.getLogger(__name__)

_LABEL = re.compile(r"^[a-zA-Z0-9_]([a-zA-Z0-9_-]*[a-zA-Z0-9_])?$")


def validate_hostname(host: str) -> bool:
    """
    Validate a host name such as ``api.example.com`` or ``localhost``.

    Args:
        host: The host name to validate

    Returns:
        True if valid, False otherwise
    """
    if not host or not isinstance(host, str):
        return False

    if len(host) > 253:
        logger.warning(f"Host name too long: {host}")
        return False

    labels = host.split(".")
    if any(label == "" for label in labels):
        logger.warning(f"Host name contains empty labels: {host}")
        return False

    for label in labels:
        if len(label) > 63 or not _LABEL.match(label):
            logger.warning(f"Invalid label '{label}' in host name: {host}")
            return False

    return True


def validate_port(port) -> bool:
    """
    Validate a TCP port number.

    Args:
        port: The port, as an int or a decimal string

    Returns:
        True if valid, False otherwise
    """
    try:
        value = int(port)
    except (TypeError, ValueError):
        return False
    return 0 < value <= 65535


def validate_zone_name(zone: str) -> bool:
    """Zone names must be non-empty and free of whitespace."""
    if not zone or not isinstance(zone, str):
        return False
    if zone != zone.strip() or any(c.isspace() for c in zone):
        logger.warning(f"Zone name contains whitespace: {zone!r}")
        return False
    return True
