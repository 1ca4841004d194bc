"""
Native PostgreSQL type mapping for tablesync.

The mapping is fixed and total: a native type that is not listed here
fails discovery instead of degrading to a generic type.
"""

import re
from typing import Callable, Dict, Optional

from ..exceptions import UnrecognizedNativeTypeError
from .types import (
    BinaryType,
    ColumnType,
    DecimalType,
    FloatType,
    IntegerType,
    PrimitiveKind,
    PrimitiveType,
    StringType,
)


_Builder = Callable[[Optional[int], Optional[int]], ColumnType]


def _integer(bits: int) -> _Builder:
    return lambda precision, scale: IntegerType(bits)


def _float(bits: int) -> _Builder:
    return lambda precision, scale: FloatType(bits)


def _primitive(kind: PrimitiveKind) -> _Builder:
    return lambda precision, scale: PrimitiveType(kind)


def _decimal(precision: Optional[int], scale: Optional[int]) -> ColumnType:
    return DecimalType(precision, scale)


def _varchar(precision: Optional[int], scale: Optional[int]) -> ColumnType:
    return StringType(precision, fixed=False)


def _char(precision: Optional[int], scale: Optional[int]) -> ColumnType:
    # character without a length is character(1)
    return StringType(precision or 1, fixed=True)


def _text(precision: Optional[int], scale: Optional[int]) -> ColumnType:
    return StringType()


def _bytea(precision: Optional[int], scale: Optional[int]) -> ColumnType:
    return BinaryType()


NATIVE_TYPES: Dict[str, _Builder] = {
    "smallint": _integer(16),
    "int2": _integer(16),
    "integer": _integer(32),
    "int": _integer(32),
    "int4": _integer(32),
    "bigint": _integer(64),
    "int8": _integer(64),
    "real": _float(32),
    "float4": _float(32),
    "double precision": _float(64),
    "float8": _float(64),
    "numeric": _decimal,
    "decimal": _decimal,
    "character varying": _varchar,
    "varchar": _varchar,
    "character": _char,
    "char": _char,
    "bpchar": _char,
    "text": _text,
    "bytea": _bytea,
    "boolean": _primitive(PrimitiveKind.BOOLEAN),
    "bool": _primitive(PrimitiveKind.BOOLEAN),
    "date": _primitive(PrimitiveKind.DATE),
    "time": _primitive(PrimitiveKind.TIME),
    "time without time zone": _primitive(PrimitiveKind.TIME),
    "time with time zone": _primitive(PrimitiveKind.TIME_TZ),
    "timetz": _primitive(PrimitiveKind.TIME_TZ),
    "timestamp": _primitive(PrimitiveKind.TIMESTAMP),
    "timestamp without time zone": _primitive(PrimitiveKind.TIMESTAMP),
    "timestamp with time zone": _primitive(PrimitiveKind.TIMESTAMP_TZ),
    "timestamptz": _primitive(PrimitiveKind.TIMESTAMP_TZ),
    "interval": _primitive(PrimitiveKind.INTERVAL),
    "json": _primitive(PrimitiveKind.JSON),
    "jsonb": _primitive(PrimitiveKind.JSONB),
    "uuid": _primitive(PrimitiveKind.UUID),
}


def normalize_native_type(native_type: str) -> str:
    """Lower-case a native type name and collapse internal whitespace."""
    return re.sub(r"\s+", " ", native_type.strip().lower())


def to_column_type(
    native_type: str,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
    origin: Optional[str] = None,
    column: Optional[str] = None,
) -> ColumnType:
    """
    Translate a native type name into a ColumnType.

    Args:
        native_type: Type name as reported by the catalog (``data_type``)
        precision: Declared length or numeric precision, if any
        scale: Declared numeric scale, if any
        origin: Table the column belongs to, used in error messages
        column: Column name, used in error messages

    Raises:
        UnrecognizedNativeTypeError: If the type has no mapping
    """
    builder = NATIVE_TYPES.get(normalize_native_type(native_type or ""))
    if builder is None:
        raise UnrecognizedNativeTypeError(native_type, origin=origin, column=column)

    try:
        return builder(precision, scale)
    except (ValueError, TypeError) as e:
        raise UnrecognizedNativeTypeError(
            f"{native_type}(precision={precision}, scale={scale})",
            origin=origin,
            column=column,
        ) from e
