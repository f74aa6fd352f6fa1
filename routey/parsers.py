"""
Parsers convert raw request strings into typed values.

A parser is any callable `parser(value_type, values) -> value`. A parser
that does not handle `value_type` raises InvalidParamTypeError so a
Parsers chain can fall through to the next one. Any other exception is
a real parse failure and stops the chain.
"""

import datetime
import decimal
import uuid
from enum import Enum
from typing import Any, Callable, List, Sequence, get_args, get_origin

from .exceptions import InvalidParamTypeError
from .scalars import FLOAT32_MAX, FLOAT_TYPES, Float32, int_range, is_signed, is_unsigned

Parser = Callable[[Any, Sequence[str]], Any]

TRUE_VALUES = frozenset(["1", "t", "T", "TRUE", "true", "True"])
FALSE_VALUES = frozenset(["0", "f", "F", "FALSE", "false", "False"])

SEQUENCE_TYPES = (list, set, frozenset, tuple)


class Parsers:
    """An ordered chain of parsers that is itself a parser.

    Each parser is tried in turn. The first result that is not an
    InvalidParamTypeError, success or failure, is final. When every parser
    declines, the last InvalidParamTypeError is raised.
    """

    def __init__(self, *parsers: Parser):
        self.parsers: List[Parser] = list(parsers)

    def append(self, parser: Parser):
        self.parsers.append(parser)

    def parse(self, value_type: Any, values: Sequence[str]) -> Any:
        last_error = InvalidParamTypeError(value_type)
        for parser in self.parsers:
            try:
                return parser(value_type, values)
            except InvalidParamTypeError as err:
                last_error = err
        raise last_error

    __call__ = parse

    def __len__(self) -> int:
        return len(self.parsers)


def _first(values: Sequence[str]) -> str:
    return values[0] if values else ""


def parse_int(value_type: Any, values: Sequence[str]) -> int:
    if not is_signed(value_type):
        raise InvalidParamTypeError(value_type)

    raw = _first(values)
    value = int(raw, 10)
    bounds = int_range(value_type)
    if bounds and not bounds[0] <= value <= bounds[1]:
        raise ValueError(f"value out of range: {raw!r}")
    return value


def parse_uint(value_type: Any, values: Sequence[str]) -> int:
    if not is_unsigned(value_type):
        raise InvalidParamTypeError(value_type)

    raw = _first(values)
    value = int(raw, 10)
    low, high = int_range(value_type)
    if not low <= value <= high:
        raise ValueError(f"value out of range: {raw!r}")
    return value


def parse_float(value_type: Any, values: Sequence[str]) -> float:
    if value_type not in FLOAT_TYPES:
        raise InvalidParamTypeError(value_type)

    raw = _first(values)
    value = float(raw)
    if value_type is Float32 and abs(value) > FLOAT32_MAX and value != float("inf"):
        raise ValueError(f"value out of range: {raw!r}")
    return value


def parse_str(value_type: Any, values: Sequence[str]) -> str:
    if value_type is not str:
        raise InvalidParamTypeError(value_type)
    return _first(values)


def parse_bool(value_type: Any, values: Sequence[str]) -> bool:
    if value_type is not bool:
        raise InvalidParamTypeError(value_type)

    raw = _first(values)
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    raise ValueError(f"invalid syntax: {raw!r}")


def _parse_enum(value_type: Any, raw: str) -> Enum:
    for member in value_type:
        if str(member.value) == raw:
            return member
    raise ValueError(f"{raw!r} is not a valid {value_type.__name__}")


def parse_text(value_type: Any, values: Sequence[str]) -> Any:
    """Parse types that know how to build themselves from text.

    Covers classes with a `from_text(str)` classmethod plus the stdlib
    value types that have a canonical text form.
    """
    if get_origin(value_type) is not None or not isinstance(value_type, type):
        raise InvalidParamTypeError(value_type)

    raw = _first(values)
    if hasattr(value_type, "from_text"):
        return value_type.from_text(raw)
    if issubclass(value_type, Enum):
        return _parse_enum(value_type, raw)
    if value_type is uuid.UUID:
        return uuid.UUID(raw)
    if value_type is decimal.Decimal:
        try:
            return decimal.Decimal(raw)
        except decimal.InvalidOperation as err:
            raise ValueError(f"invalid decimal: {raw!r}") from err
    if value_type in (datetime.datetime, datetime.date, datetime.time):
        return value_type.fromisoformat(raw)
    raise InvalidParamTypeError(value_type)


def new_sequence_parser(element_parser: Parser) -> Parser:
    """Create a parser for list, set, frozenset and tuple targets.

    A single raw value is split on commas first. Every element is then
    parsed with `element_parser`.
    """

    def parse_sequence(value_type: Any, values: Sequence[str]) -> Any:
        origin = get_origin(value_type) or value_type
        if origin not in SEQUENCE_TYPES:
            raise InvalidParamTypeError(value_type)

        if len(values) == 1:
            values = values[0].split(",")

        element_types = _element_types(origin, get_args(value_type), len(values))
        items = []
        for index, (element_type, raw) in enumerate(zip(element_types, values)):
            try:
                items.append(element_parser(element_type, [raw]))
            except InvalidParamTypeError:
                raise
            except (ValueError, TypeError) as err:
                raise ValueError(f"error parsing array item {index} ({raw!r}): {err}") from err
        return origin(items)

    return parse_sequence


def _element_types(origin: Any, args: tuple, count: int) -> List[Any]:
    if not args:
        return [str] * count
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return [args[0]] * count
        if len(args) != count:
            raise ValueError(f"expected {len(args)} items, got {count}")
        return list(args)
    return [args[0]] * count


def default_parser() -> Parsers:
    """Build the parser chain used by a Router unless told otherwise."""
    parsers = Parsers(
        parse_text,
        parse_int,
        parse_uint,
        parse_float,
        parse_str,
        parse_bool,
    )
    return Parsers(parsers, new_sequence_parser(parsers))
