"""
Column type model for tablesync.

A ColumnType is an immutable tagged value. The family decides which
other types it may be compared with when widening.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TypeFamily(str, Enum):
    """Families that widening comparisons are restricted to."""

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    BINARY = "binary"
    DECIMAL = "decimal"
    PRIMITIVE = "primitive"


class PrimitiveKind(str, Enum):
    """Primitive kinds that are only compatible with themselves."""

    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    TIME_TZ = "time_tz"
    TIMESTAMP = "timestamp"
    TIMESTAMP_TZ = "timestamp_tz"
    INTERVAL = "interval"
    JSON = "json"
    JSONB = "jsonb"
    UUID = "uuid"


class ColumnType:
    """Base class for all column types."""

    family: TypeFamily

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class IntegerType(ColumnType):
    """Fixed-width signed integer."""

    bits: int

    family = TypeFamily.INTEGER

    def __post_init__(self):
        if self.bits not in (8, 16, 32, 64):
            raise ValueError(f"Unsupported integer width: {self.bits}")

    def __str__(self) -> str:
        return {8: "TINYINT", 16: "SMALLINT", 32: "INT", 64: "BIGINT"}[self.bits]

    def to_dict(self) -> Dict[str, Any]:
        return {"family": self.family.value, "bits": self.bits}


@dataclass(frozen=True)
class FloatType(ColumnType):
    """IEEE floating point number."""

    bits: int

    family = TypeFamily.FLOAT

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError(f"Unsupported floating point width: {self.bits}")

    def __str__(self) -> str:
        return "FLOAT" if self.bits == 32 else "DOUBLE"

    def to_dict(self) -> Dict[str, Any]:
        return {"family": self.family.value, "bits": self.bits}


@dataclass(frozen=True)
class StringType(ColumnType):
    """Character string. A length of None means unbounded."""

    length: Optional[int] = None
    fixed: bool = False

    family = TypeFamily.STRING

    def __post_init__(self):
        if self.length is not None and self.length < 1:
            raise ValueError(f"String length must be positive, got {self.length}")

    def __str__(self) -> str:
        if self.length is None:
            return "STRING"
        return f"{'CHAR' if self.fixed else 'VARCHAR'}({self.length})"

    def to_dict(self) -> Dict[str, Any]:
        return {"family": self.family.value, "length": self.length, "fixed": self.fixed}


@dataclass(frozen=True)
class BinaryType(ColumnType):
    """Byte string. A length of None means unbounded."""

    length: Optional[int] = None
    fixed: bool = False

    family = TypeFamily.BINARY

    def __post_init__(self):
        if self.length is not None and self.length < 1:
            raise ValueError(f"Binary length must be positive, got {self.length}")

    def __str__(self) -> str:
        if self.length is None:
            return "BYTES"
        return f"{'BINARY' if self.fixed else 'VARBINARY'}({self.length})"

    def to_dict(self) -> Dict[str, Any]:
        return {"family": self.family.value, "length": self.length, "fixed": self.fixed}


@dataclass(frozen=True)
class DecimalType(ColumnType):
    """Exact numeric. None for precision or scale means unbounded."""

    precision: Optional[int] = None
    scale: Optional[int] = None

    family = TypeFamily.DECIMAL

    def __post_init__(self):
        if self.precision is not None and self.precision < 1:
            raise ValueError(f"Decimal precision must be positive, got {self.precision}")
        if self.scale is not None and self.scale < 0:
            raise ValueError(f"Decimal scale must not be negative, got {self.scale}")
        if (
            self.precision is not None
            and self.scale is not None
            and self.scale > self.precision
        ):
            raise ValueError(
                f"Decimal scale {self.scale} exceeds precision {self.precision}"
            )

    def __str__(self) -> str:
        if self.precision is None and self.scale is None:
            return "DECIMAL"
        precision = "*" if self.precision is None else self.precision
        scale = "*" if self.scale is None else self.scale
        return f"DECIMAL({precision}, {scale})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "family": self.family.value,
            "precision": self.precision,
            "scale": self.scale,
        }


@dataclass(frozen=True)
class PrimitiveType(ColumnType):
    """Any other primitive kind."""

    kind: PrimitiveKind

    family = TypeFamily.PRIMITIVE

    def __str__(self) -> str:
        return self.kind.name

    def to_dict(self) -> Dict[str, Any]:
        return {"family": self.family.value, "kind": self.kind.value}


# Shorthands used throughout the code and the tests
TINYINT = IntegerType(8)
SMALLINT = IntegerType(16)
INT = IntegerType(32)
BIGINT = IntegerType(64)
FLOAT = FloatType(32)
DOUBLE = FloatType(64)
STRING = StringType()
BYTES = BinaryType()
BOOLEAN = PrimitiveType(PrimitiveKind.BOOLEAN)
DATE = PrimitiveType(PrimitiveKind.DATE)
TIMESTAMP = PrimitiveType(PrimitiveKind.TIMESTAMP)


def column_type_from_dict(data: Dict[str, Any]) -> ColumnType:
    """Rebuild a ColumnType from its ``to_dict`` form."""
    try:
        family = TypeFamily(data["family"])
        if family == TypeFamily.INTEGER:
            return IntegerType(int(data["bits"]))
        if family == TypeFamily.FLOAT:
            return FloatType(int(data["bits"]))
        if family == TypeFamily.STRING:
            return StringType(data.get("length"), bool(data.get("fixed", False)))
        if family == TypeFamily.BINARY:
            return BinaryType(data.get("length"), bool(data.get("fixed", False)))
        if family == TypeFamily.DECIMAL:
            return DecimalType(data.get("precision"), data.get("scale"))
        return PrimitiveType(PrimitiveKind(data["kind"]))
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid column type definition: {data!r}") from e
