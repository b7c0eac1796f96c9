"""
Filter population - key=value arguments into typed index filters

Every filter class declares its fields up front as a tuple of FilterField
entries. Each field has a kind drawn from a closed set (a scalar, an optional
value, or a list), and each kind has exactly one conversion function in the
tables below. Nothing here inspects Python types at runtime.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from ..errors import ValidationError

logger = logging.getLogger(__name__)

TIME_LABEL = "time (milliseconds since Unix epoch)"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
_TRUTHY = ("true", "t", "yes", "y", "1")


class Scalar(NamedTuple):
    name: str
    tag: str = "scalar"


class OptionalOf(NamedTuple):
    inner: Any
    tag: str = "optional"


class ListOf(NamedTuple):
    inner: Any
    tag: str = "list"


STRING = Scalar("string")
BOOL = Scalar("bool")
INT = Scalar("int")
INT8 = Scalar("int8")
INT16 = Scalar("int16")
INT32 = Scalar("int32")
INT64 = Scalar("int64")
UINT = Scalar("uint")
UINT8 = Scalar("uint8")
UINT16 = Scalar("uint16")
UINT32 = Scalar("uint32")
UINT64 = Scalar("uint64")
FLOAT32 = Scalar("float32")
FLOAT64 = Scalar("float64")
TIME = Scalar("time")


class FilterField(NamedTuple):
    """A filterable attribute: the dataclass attribute, its kind and wire name."""

    attr: str
    kind: Any
    json_name: Optional[str] = None
    match: Optional[Callable[[Any, Any], bool]] = None

    @property
    def name(self) -> str:
        return self.json_name or self.attr


def boolish(value: str) -> bool:
    """Parse a boolean leniently: true, t, yes, y or 1 (any case) are true."""
    return value.lower() in _TRUTHY


def _integer(bits: int, signed: bool) -> Callable[[str], int]:
    if signed:
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    else:
        low, high = 0, (1 << bits) - 1

    def convert(value: str) -> int:
        if not _INTEGER_RE.match(value):
            raise ValueError(f"invalid integer {value!r}")
        number = int(value)
        if number < low or number > high:
            raise ValueError(f"{value} out of range [{low}, {high}]")
        return number

    return convert


def _float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"invalid float {value!r}")


def from_unix_millis(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


def to_unix_millis(when: datetime) -> int:
    return (when - _EPOCH) // timedelta(milliseconds=1)


def _time(value: str) -> datetime:
    if not _INTEGER_RE.match(value):
        raise ValueError(f"time must be provided as MS since Unix epoch, got {value!r}")
    try:
        return from_unix_millis(int(value))
    except OverflowError:
        raise ValueError(f"time {value} out of range")


_SCALAR_CONVERTERS: Dict[str, Callable[[str], Any]] = {
    "string": lambda value: value,
    "bool": boolish,
    "int": _integer(64, True),
    "int8": _integer(8, True),
    "int16": _integer(16, True),
    "int32": _integer(32, True),
    "int64": _integer(64, True),
    "uint": _integer(64, False),
    "uint8": _integer(8, False),
    "uint16": _integer(16, False),
    "uint32": _integer(32, False),
    "uint64": _integer(64, False),
    "float32": _float,
    "float64": _float,
    "time": _time,
}


def _convert_scalar(kind: Scalar, value: str, slice_sep: str) -> Any:
    converter = _SCALAR_CONVERTERS.get(kind.name)
    if converter is None:
        raise TypeError(f"{kind.name} is not a supported filter field type")
    return converter(value)


def _convert_optional(kind: OptionalOf, value: str, slice_sep: str) -> Any:
    return convert_value(kind.inner, value, slice_sep)


def _convert_list(kind: ListOf, value: str, slice_sep: str) -> List[Any]:
    result = []
    for element in value.split(slice_sep):
        try:
            result.append(convert_value(kind.inner, element, slice_sep))
        except ValueError as e:
            raise ValueError(f"unable to assign element {element!r} in slice: {e}")
    return result


_CONVERTERS = {
    "scalar": _convert_scalar,
    "optional": _convert_optional,
    "list": _convert_list,
}


def convert_value(kind: Any, value: str, slice_sep: str = ",") -> Any:
    """Convert a command-line string into the native value for a field kind."""
    converter = _CONVERTERS.get(getattr(kind, "tag", None))
    if converter is None:
        raise TypeError(f"{kind!r} is not a supported filter field kind")
    return converter(kind, value, slice_sep)


def _short_name(kind: Any) -> str:
    tag = getattr(kind, "tag", None)
    if tag == "scalar":
        return kind.name
    if tag == "optional":
        return _short_name(kind.inner)
    if tag == "list":
        return f"slice<{_short_name(kind.inner)}>"
    raise TypeError(f"{kind!r} is not a supported filter field kind")


def describe_kind(kind: Any) -> str:
    """Human-readable label for a field kind, e.g. ``slice<int>``."""
    tag = getattr(kind, "tag", None)
    if tag == "scalar":
        if kind.name not in _SCALAR_CONVERTERS:
            raise TypeError(f"{kind.name} is not a supported filter field type")
        return TIME_LABEL if kind == TIME else kind.name
    if tag == "optional":
        return describe_kind(kind.inner)
    if tag == "list":
        return f"slice<{_short_name(kind.inner)}>"
    raise TypeError(f"{kind!r} is not a supported filter field kind")


def describe_fields(filter_cls) -> Dict[str, str]:
    """Map each filterable attribute name of a filter class to its type label."""
    return {field.name: describe_kind(field.kind) for field in filter_cls.FIELDS}


def populate_filter(filter_cls, attrs: Dict[str, str], slice_sep: str = ","):
    """
    Build a filter instance from string attributes.

    Args:
        filter_cls: Filter class declaring FIELDS
        attrs: Mapping of attribute name to command-line value
        slice_sep: Separator between elements of list-valued attributes

    Returns:
        An instance of filter_cls with the matching attributes set

    Raises:
        ValidationError: If a value cannot be converted to its field kind
        TypeError: If a field declares a kind with no conversion
    """
    by_name = {field.name: field for field in filter_cls.FIELDS}
    values = {}

    for name, raw in attrs.items():
        field = by_name.get(name)
        if field is None:
            logger.debug(f"Ignoring unknown {filter_cls.__name__} attribute {name!r}")
            continue
        try:
            values[field.attr] = convert_value(field.kind, raw, slice_sep)
        except ValueError as e:
            raise ValidationError(f"Unable to set {name}: {e}")

    return filter_cls(**values)


class IndexFilter:
    """
    Base for index filters.

    Subclasses are dataclasses whose attributes all default to None; a None
    attribute does not constrain the query.
    """

    FIELDS = ()

    def is_empty(self) -> bool:
        return all(getattr(self, field.attr) is None for field in self.FIELDS)

    def matches(self, record) -> bool:
        for field in self.FIELDS:
            wanted = getattr(self, field.attr)
            if wanted is None:
                continue
            if field.match is not None:
                if not field.match(record, wanted):
                    return False
            elif getattr(record, field.attr, None) != wanted:
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for field in self.FIELDS:
            value = getattr(self, field.attr)
            if value is None:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            result[field.name] = value
        return result
