from __future__ import annotations

import binascii
import json
import logging
import re
from abc import ABCMeta, abstractmethod
from collections.abc import Callable
from copy import deepcopy
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from dateutil.parser import isoparse

from pydbi.util import strtobool

_logger = logging.getLogger(__name__)

# Canonical type names understood by the default converter.
_CANONICAL_TYPES: frozenset[str] = frozenset(
    {"integer", "real", "text", "blob", "boolean", "date", "timestamp", "decimal", "json", "null"}
)

# Declared type names that map onto a canonical name without affinity rules.
_TYPE_ALIASES: dict[str, str] = {
    "bool": "boolean",
    "datetime": "timestamp",
    "timestamp with time zone": "timestamp",
    "timestamp without time zone": "timestamp",
    "numeric": "decimal",
    "string": "text",
    "jsonb": "json",
}

_TYPE_PARAMETERS_RE: re.Pattern[str] = re.compile(r"\s*\(.*\)\s*$")


def normalize_type(type_: str | None) -> str:
    """Reduce a declared SQL type name to a canonical converter key.

    Parameters such as ``(10, 2)`` are dropped, then aliases are resolved and
    finally SQLite's column affinity rules are applied, so ``VARCHAR(20)``
    becomes ``text`` and ``UNSIGNED BIG INT`` becomes ``integer``. Names that
    match none of these are returned lower-cased and unchanged.
    """
    if not type_:
        return "null"
    name = _TYPE_PARAMETERS_RE.sub("", type_.strip().lower())
    if name in _CANONICAL_TYPES:
        return name
    if name in _TYPE_ALIASES:
        return _TYPE_ALIASES[name]
    if "int" in name:
        return "integer"
    if any(t in name for t in ("char", "clob", "text")):
        return "text"
    if "blob" in name:
        return "blob"
    if any(t in name for t in ("real", "floa", "doub")):
        return "real"
    return name


def _to_int(value: Any | None) -> int | None:
    if value is None:
        return None
    return int(value)


def _to_float(value: Any | None) -> float | None:
    if value is None:
        return None
    return float(value)


def _to_text(value: Any | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    return str(value)


def _to_binary(value: Any | None) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, str):
        return binascii.a2b_hex("".join(value.split(" ")))
    return bytes(value)


def _to_boolean(value: Any | None) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return strtobool(value)
    return bool(value)


def _to_date(value: Any | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).date()
    return isoparse(value).date()


def _to_datetime(value: Any | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return isoparse(value)


def _to_decimal(value: Any | None) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def _to_json(value: Any | None) -> Any | None:
    if value is None:
        return None
    if isinstance(value, (str, bytes, bytearray)):
        return json.loads(value)
    return value


def _to_default(value: Any | None) -> Any | None:
    return value


_DEFAULT_CONVERTERS: dict[str, Callable[[Any | None], Any | None]] = {
    "integer": _to_int,
    "real": _to_float,
    "text": _to_text,
    "blob": _to_binary,
    "boolean": _to_boolean,
    "date": _to_date,
    "timestamp": _to_datetime,
    "decimal": _to_decimal,
    "json": _to_json,
}

_DEFAULT_TYPES: dict[str, type[Any]] = {
    "integer": int,
    "real": float,
    "text": str,
    "blob": bytes,
    "boolean": bool,
    "date": date,
    "timestamp": datetime,
    "decimal": Decimal,
}

# Column dtypes of fetched frames, keyed by mapped Python type.
# Anything missing here is stored with the object dtype.
_PANDAS_DTYPES: dict[type[Any], str] = {
    int: "Int64",
    float: "float64",
    bool: "boolean",
}


class Converter(metaclass=ABCMeta):
    """Abstract base class for converting backend values to Python objects.

    A converter maps declared type names to conversion functions and to the
    Python type reported in a column descriptor. Lookups go through
    :func:`normalize_type`, so every spelling of a type resolves to the same
    entry.

    Attributes:
        mappings: Dictionary mapping canonical type names to conversion functions.
        default: Conversion function for unmapped types.
        types: Dictionary mapping canonical type names to Python types.
    """

    def __init__(
        self,
        mappings: dict[str, Callable[[Any | None], Any | None]],
        default: Callable[[Any | None], Any | None] = _to_default,
        types: dict[str, type[Any]] | None = None,
    ) -> None:
        if mappings:
            self._mappings = mappings
        else:
            self._mappings = {}
        self._default = default
        if types:
            self._types = types
        else:
            self._types = {}

    @property
    def mappings(self) -> dict[str, Callable[[Any | None], Any | None]]:
        return self._mappings

    @property
    def types(self) -> dict[str, type[Any]]:
        return self._types

    def get(self, type_: str) -> Callable[[Any | None], Any | None]:
        """Get the conversion function for a declared type, or the default one."""
        return self.mappings.get(normalize_type(type_), self._default)

    def set(self, type_: str, converter: Callable[[Any | None], Any | None]) -> None:
        self.mappings[normalize_type(type_)] = converter

    def remove(self, type_: str) -> None:
        self.mappings.pop(normalize_type(type_), None)

    def update(self, mappings: dict[str, Callable[[Any | None], Any | None]]) -> None:
        for type_, converter in mappings.items():
            self.set(type_, converter)

    def get_dtype(self, type_: str) -> type[Any]:
        """Get the Python type values of a declared type are converted to.

        Returns:
            The mapped type, or ``object`` when the type is unknown.
        """
        return self._types.get(normalize_type(type_), object)

    @staticmethod
    def get_pandas_dtype(data_type: type[Any]) -> str:
        return _PANDAS_DTYPES.get(data_type, "object")

    @abstractmethod
    def convert(self, type_: str, value: Any | None) -> Any | None:
        raise NotImplementedError  # pragma: no cover


class DefaultTypeConverter(Converter):
    """Default converter for values read through the standard library drivers.

    Supported conversions:
        - Numeric types: integer, real, decimal (``NUMERIC`` and ``DECIMAL(p, s)``)
        - String and binary types: text, blob
        - Date/time types: date, timestamp (ISO 8601 strings or Unix epochs)
        - Boolean: boolean (0/1 integers or truth strings)
        - JSON: json

    Example:
        >>> converter = DefaultTypeConverter()
        >>> converter.convert("VARCHAR(10)", 42)
        '42'
        >>> converter.convert("date", "2023-01-15")
        datetime.date(2023, 1, 15)
    """

    def __init__(self) -> None:
        super().__init__(
            mappings=deepcopy(_DEFAULT_CONVERTERS),
            default=_to_default,
            types=dict(_DEFAULT_TYPES),
        )

    def convert(self, type_: str, value: Any | None) -> Any | None:
        if value is None:
            return None
        converter = self.get(type_)
        return converter(value)
