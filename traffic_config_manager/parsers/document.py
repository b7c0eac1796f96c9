"""
Document codec - JSON and YAML encoding of API objects

Objects exposing ``to_dict`` (records, zone documents, errors) are encoded
through their dict form; lists of them are encoded element by element.
"""

import json
import logging
from typing import Any

import yaml

from ..errors import ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_CODECS = ("json", "yaml")


def to_plain(obj: Any) -> Any:
    """Convert records (and lists/dicts of records) into plain data."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, (list, tuple)):
        return [to_plain(o) for o in obj]
    if isinstance(obj, dict):
        return {k: to_plain(v) for k, v in obj.items()}
    return obj


def _check_codec(codec: str) -> None:
    if codec not in SUPPORTED_CODECS:
        raise ValidationError(
            f"unknown format {codec!r}, expected one of: {', '.join(SUPPORTED_CODECS)}"
        )


def encode(obj: Any, codec: str = "json") -> str:
    """Encode an object as JSON or YAML text."""
    _check_codec(codec)
    data = to_plain(obj)
    if codec == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    return json.dumps(data, indent=2)


def decode(text: str, codec: str = "json") -> Any:
    """Decode JSON or YAML text into plain data."""
    _check_codec(codec)
    try:
        if codec == "yaml":
            return yaml.safe_load(text)
        return json.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        logger.error(f"Error parsing {codec} input: {e}")
        raise ValidationError(f"unable to parse {codec} input: {e}")
