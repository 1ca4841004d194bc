"""
Type widening rules for tablesync.

``can_widen(a, b)`` is true when every value of ``a`` can be stored in
``b`` without loss. The relation is reflexive and transitive but not
total: two types may be mutually incomparable.
"""

from typing import Optional

from .types import (
    BinaryType,
    ColumnType,
    DecimalType,
    FloatType,
    IntegerType,
    StringType,
)


def _bound_covers(wider: Optional[int], narrower: Optional[int]) -> bool:
    """Compare two optional bounds where None means unbounded."""
    if wider is None:
        return True
    if narrower is None:
        return False
    return wider >= narrower


def can_widen(from_type: ColumnType, to_type: ColumnType) -> bool:
    """Check whether ``from_type`` can be losslessly represented as ``to_type``."""
    if from_type.family != to_type.family:
        return False

    if isinstance(from_type, (StringType, BinaryType)):
        return _bound_covers(to_type.length, from_type.length)

    if isinstance(from_type, (IntegerType, FloatType)):
        return to_type.bits >= from_type.bits

    if isinstance(from_type, DecimalType):
        return _bound_covers(to_type.precision, from_type.precision) and _bound_covers(
            to_type.scale, from_type.scale
        )

    return from_type == to_type


def can_apply_change(old_type: ColumnType, new_type: ColumnType) -> bool:
    """Runtime policy: a live type change is applied only when it widens."""
    return can_widen(old_type, new_type)
