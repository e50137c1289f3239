"""Conversion of database column values into JSON values.

Two stages, in order:

1. Driver-reported column type (asyncpg attribute type names, Oracle
   DbType names). A recognised type family selects the decoder directly.
2. Fixed probe order when there is no usable type metadata (SQLite, or
   an unrecognised type): string, integer, floating point, boolean.

A value nothing can decode becomes JSON null. That is a defined fallback,
not an error.
"""

import datetime
import math
import uuid
from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import Any

JsonValue = str | int | float | bool | None

_TEXT_TYPES = frozenset({
    "text", "varchar", "bpchar", "char", "name", "citext", "uuid", "json", "jsonb", "xml",
    "db_type_varchar", "db_type_nvarchar", "db_type_char", "db_type_nchar",
    "db_type_long", "db_type_clob", "db_type_nclob", "db_type_rowid",
})
_INTEGER_TYPES = frozenset({"int2", "int4", "int8", "smallint", "integer", "bigint", "oid"})
_FLOAT_TYPES = frozenset({
    "float4", "float8", "real", "double precision",
    "db_type_binary_float", "db_type_binary_double",
})
_NUMERIC_TYPES = frozenset({"numeric", "decimal", "money", "db_type_number"})
_BOOLEAN_TYPES = frozenset({"bool", "boolean", "db_type_boolean"})
_TEMPORAL_TYPES = frozenset({
    "date", "time", "timetz", "timestamp", "timestamptz", "interval",
    "db_type_date", "db_type_timestamp", "db_type_timestamp_tz", "db_type_timestamp_ltz",
    "db_type_interval_ds",
})


def _finite(value: float) -> float | None:
    return value if math.isfinite(value) else None


def _numeric(value: Any) -> JsonValue:
    """Exact numbers: int when integral, else float."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    number = Decimal(str(value)) if not isinstance(value, Decimal) else value
    if not number.is_finite():
        return None
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def _temporal(value: Any) -> JsonValue:
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    return str(value)


def _text(value: Any) -> JsonValue:
    if isinstance(value, str):
        return value
    read = getattr(value, "read", None)
    if callable(read):
        # Oracle LOB locator
        return _text(read())
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _decode_bytes(value)
    return str(value)


def _decode_bytes(value: bytes | bytearray | memoryview) -> str | None:
    try:
        return bytes(value).decode("utf-8")
    except UnicodeDecodeError:
        return None


_FAMILY_DECODERS: dict[frozenset[str], Callable[[Any], JsonValue]] = {
    _TEXT_TYPES: _text,
    _INTEGER_TYPES: int,
    _FLOAT_TYPES: lambda v: _finite(float(v)),
    _NUMERIC_TYPES: _numeric,
    _BOOLEAN_TYPES: bool,
    _TEMPORAL_TYPES: _temporal,
}


def decoder_for(type_name: str | None) -> Callable[[Any], JsonValue] | None:
    """Decoder for a driver-reported type name, or None if unrecognised."""
    if not type_name:
        return None
    key = type_name.lower()
    for family, decoder in _FAMILY_DECODERS.items():
        if key in family:
            return decoder
    return None


def probe_value(value: Any) -> JsonValue:
    """Decode a value without type metadata.

    Probe order is fixed: string, integer, floating point, boolean.
    Driver-native types outside the probe set (Decimal, date/time, UUID,
    bytes) get their natural JSON form; anything else is null.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float):
        return _finite(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        return _numeric(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time, datetime.timedelta)):
        return _temporal(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _decode_bytes(value)
    return None


def coerce_value(value: Any, type_name: str | None = None) -> JsonValue:
    """Convert one column value to JSON, preferring type metadata.

    Args:
        value: Value as returned by the driver
        type_name: Driver-reported column type name, if known

    Returns:
        JSON-compatible scalar
    """
    if value is None:
        return None
    decoder = decoder_for(type_name)
    if decoder is not None:
        try:
            return decoder(value)
        except (TypeError, ValueError, ArithmeticError):
            pass
    return probe_value(value)


def coerce_row(
    values: Sequence[Any],
    columns: Sequence[str],
    type_names: Sequence[str | None] | None = None,
) -> dict[str, JsonValue]:
    """Build a column-name -> JSON value map for one row.

    Duplicate column names keep the last value, matching a JSON object.
    """
    types = type_names if type_names is not None else [None] * len(columns)
    return {
        name: coerce_value(value, type_name)
        for name, value, type_name in zip(columns, values, types, strict=True)
    }
