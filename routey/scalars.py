"""
Sized numeric types.

Python's int and float are unbounded, so params that need a fixed width
declare one of these aliases. Parsers enforce the range and the schemer
emits the matching format.
"""

from typing import Any, Dict, NewType, Optional, Tuple

Int8 = NewType("Int8", int)
Int16 = NewType("Int16", int)
Int32 = NewType("Int32", int)
Int64 = NewType("Int64", int)

UInt = NewType("UInt", int)
UInt8 = NewType("UInt8", int)
UInt16 = NewType("UInt16", int)
UInt32 = NewType("UInt32", int)
UInt64 = NewType("UInt64", int)

Float32 = NewType("Float32", float)
Float64 = NewType("Float64", float)

SIGNED_RANGES: Dict[Any, Tuple[int, int]] = {
    Int8: (-(2**7), 2**7 - 1),
    Int16: (-(2**15), 2**15 - 1),
    Int32: (-(2**31), 2**31 - 1),
    Int64: (-(2**63), 2**63 - 1),
}

UNSIGNED_RANGES: Dict[Any, Tuple[int, int]] = {
    UInt: (0, 2**64 - 1),
    UInt8: (0, 2**8 - 1),
    UInt16: (0, 2**16 - 1),
    UInt32: (0, 2**32 - 1),
    UInt64: (0, 2**64 - 1),
}

FLOAT_TYPES = (float, Float32, Float64)

FLOAT32_MAX = 3.4028234663852886e38


def is_signed(value_type: Any) -> bool:
    return value_type is int or value_type in SIGNED_RANGES


def is_unsigned(value_type: Any) -> bool:
    return value_type in UNSIGNED_RANGES


def int_range(value_type: Any) -> Optional[Tuple[int, int]]:
    """Return the (min, max) bounds for a sized int, or None for plain int."""
    if value_type in SIGNED_RANGES:
        return SIGNED_RANGES[value_type]
    return UNSIGNED_RANGES.get(value_type)
