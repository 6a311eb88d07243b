"""
Setting data model: typed desktop settings, lookup results and apply outcomes.

Values are rendered into GVariant text literals according to an explicit type
tag chosen by whoever writes the configuration data, so a numeric-looking
string is never mistaken for a number.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence, Tuple, Union


class ValueType(Enum):
    """Type tag carried by every setting."""

    BOOLEAN = "boolean"
    INT32 = "int32"
    UINT32 = "uint32"
    STRING = "string"
    STRING_LIST = "string-list"
    TUPLE_LIST = "tuple-list"


class SettingOutcome(Enum):
    """Result of applying one setting."""

    UNSUPPORTED = "unsupported"
    UNCHANGED = "unchanged"
    APPLIED = "applied"


@dataclass(frozen=True)
class Found:
    """The key exists; ``value`` is its current literal."""

    value: str


@dataclass(frozen=True)
class NotFound:
    """The key does not exist in the backend's schema."""

    key: str


LookupResult = Union[Found, NotFound]


@dataclass(frozen=True)
class Setting:
    """A namespace-qualified key with a typed desired value."""

    key: str
    value: Any
    type: ValueType

    @property
    def literal(self) -> str:
        return format_literal(self.value, self.type)


def boolean(key: str, value: bool) -> Setting:
    return Setting(key, value, ValueType.BOOLEAN)


def int32(key: str, value: int) -> Setting:
    return Setting(key, value, ValueType.INT32)


def uint32(key: str, value: int) -> Setting:
    return Setting(key, value, ValueType.UINT32)


def string(key: str, value: str) -> Setting:
    return Setting(key, value, ValueType.STRING)


def string_list(key: str, value: Sequence[str]) -> Setting:
    return Setting(key, tuple(value), ValueType.STRING_LIST)


def tuple_list(key: str, value: Sequence[Sequence[str]]) -> Setting:
    return Setting(key, tuple(tuple(item) for item in value), ValueType.TUPLE_LIST)


# ----------------------------------------------------------------
# Literal Formatting
# ----------------------------------------------------------------
def quote_string(value: str) -> str:
    """Quote a string the way GVariant's text format prints it."""
    if "'" in value and '"' not in value:
        return '"' + value.replace("\\", "\\\\") + '"'
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def format_literal(value: Any, value_type: ValueType) -> str:
    """
    Render a value as a GVariant text literal.

    Args:
        value: The desired value
        value_type: Type tag deciding the rendering

    Returns:
        The literal string passed to the settings backend
    """
    if value_type is ValueType.BOOLEAN:
        if not isinstance(value, bool):
            raise TypeError(f"Expected bool, got {value!r}")
        return "true" if value else "false"
    if value_type is ValueType.INT32:
        return str(int(value))
    if value_type is ValueType.UINT32:
        if int(value) < 0:
            raise ValueError(f"uint32 value cannot be negative: {value!r}")
        return f"uint32 {int(value)}"
    if value_type is ValueType.STRING:
        return quote_string(str(value))
    if value_type is ValueType.STRING_LIST:
        if isinstance(value, str):
            raise TypeError(f"Expected a sequence of strings, got {value!r}")
        return "[" + ", ".join(quote_string(str(item)) for item in value) + "]"
    if value_type is ValueType.TUPLE_LIST:
        items = []
        for item in value:
            items.append("(" + ", ".join(quote_string(str(part)) for part in item) + ")")
        return "[" + ", ".join(items) + "]"
    raise ValueError(f"Unknown value type: {value_type!r}")


def split_key(key: str) -> Tuple[str, str]:
    """
    Split a setting key into schema and key name.

    Accepts ``"org.gnome.desktop.interface color-scheme"`` as well as the dotted
    form ``"org.gnome.desktop.interface.color-scheme"``.
    """
    key = key.strip()
    if " " in key:
        schema, name = key.rsplit(" ", 1)
        return schema.strip(), name
    schema, sep, name = key.rpartition(".")
    if not sep or not schema or not name:
        raise ValueError(f"Setting key has no schema: {key!r}")
    return schema, name
