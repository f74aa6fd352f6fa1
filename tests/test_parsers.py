"""Tests for parsers and the parser chain."""

import datetime
import uuid
from enum import Enum

import pytest

from routey import Float32, InvalidParamTypeError, Int8, Parsers, UInt, UInt8, default_parser
from routey.parsers import new_sequence_parser, parse_int, parse_str


class Size(Enum):
    SMALL = "s"
    LARGE = "l"


def decline(value_type, values):
    raise InvalidParamTypeError(value_type)


def constant(value):
    def parse(value_type, values):
        return value

    return parse


def failing(value_type, values):
    raise ValueError("boom")


class TestParsersChain:
    """Test the fallback law of a parser chain."""

    def test_first_success_wins(self):
        chain = Parsers(constant(1), constant(2))
        assert chain(int, ["x"]) == 1

    def test_declined_falls_through(self):
        chain = Parsers(decline, decline, constant(3))
        assert chain(int, ["x"]) == 3

    def test_error_stops_chain(self):
        chain = Parsers(decline, failing, constant(3))
        with pytest.raises(ValueError, match="boom"):
            chain(int, ["x"])

    def test_all_declined_raises_last_sentinel(self):
        last = InvalidParamTypeError(str)

        def decline_last(value_type, values):
            raise last

        chain = Parsers(decline, decline_last)
        with pytest.raises(InvalidParamTypeError) as exc_info:
            chain(int, ["x"])
        assert exc_info.value is last

    def test_empty_chain_declines(self):
        with pytest.raises(InvalidParamTypeError):
            Parsers()(int, ["1"])

    def test_chains_nest(self):
        inner = Parsers(decline, decline)
        chain = Parsers(inner, Parsers(decline, constant("nested")))
        assert chain(int, []) == "nested"

    def test_append(self):
        chain = Parsers(decline)
        chain.append(constant(5))
        assert len(chain) == 2
        assert chain(int, []) == 5


class TestDefaultParser:
    """Test the built in parsers."""

    def setup_method(self):
        self.parse = default_parser()

    def test_int(self):
        assert self.parse(int, ["42"]) == 42
        assert self.parse(int, ["-7"]) == -7

    def test_int_syntax_error_is_not_masked(self):
        with pytest.raises(ValueError, match="invalid literal"):
            self.parse(int, ["1."])

    def test_sized_int_range(self):
        assert self.parse(Int8, ["127"]) == 127
        with pytest.raises(ValueError, match="out of range"):
            self.parse(Int8, ["200"])

    def test_unsigned(self):
        assert self.parse(UInt8, ["255"]) == 255
        with pytest.raises(ValueError, match="out of range"):
            self.parse(UInt, ["-1"])

    def test_float(self):
        assert self.parse(float, ["1.5"]) == 1.5
        assert self.parse(Float32, ["2"]) == 2.0
        with pytest.raises(ValueError):
            self.parse(float, ["abc"])

    def test_bool(self):
        assert self.parse(bool, ["true"]) is True
        assert self.parse(bool, ["1"]) is True
        assert self.parse(bool, ["F"]) is False
        with pytest.raises(ValueError, match="invalid syntax"):
            self.parse(bool, ["yes"])

    def test_str(self):
        assert self.parse(str, ["hello"]) == "hello"
        assert self.parse(str, []) == ""

    def test_enum(self):
        assert self.parse(Size, ["l"]) is Size.LARGE
        with pytest.raises(ValueError):
            self.parse(Size, ["xl"])

    def test_stdlib_text_types(self):
        value = uuid.uuid4()
        assert self.parse(uuid.UUID, [str(value)]) == value
        assert self.parse(datetime.date, ["2024-02-29"]) == datetime.date(2024, 2, 29)

    def test_unknown_type_declines(self):
        with pytest.raises(InvalidParamTypeError):
            self.parse(object, ["x"])


class TestSequenceParser:
    """Test parsing repeated and comma separated values."""

    def setup_method(self):
        self.parse = default_parser()

    def test_single_value_split_on_commas(self):
        assert self.parse(list[int], ["1,2,3"]) == [1, 2, 3]

    def test_repeated_values(self):
        assert self.parse(list[int], ["1", "2"]) == [1, 2]

    def test_set(self):
        assert self.parse(set[int], ["1,1,2"]) == {1, 2}

    def test_fixed_tuple(self):
        assert self.parse(tuple[int, str], ["1,a"]) == (1, "a")
        with pytest.raises(ValueError, match="expected 2 items"):
            self.parse(tuple[int, str], ["1,a,b"])

    def test_item_error_names_item(self):
        with pytest.raises(ValueError, match="error parsing array item 1"):
            self.parse(list[int], ["1,x"])

    def test_unknown_element_type_declines(self):
        with pytest.raises(InvalidParamTypeError):
            self.parse(list[object], ["x"])

    def test_non_sequence_declines(self):
        parse_sequence = new_sequence_parser(Parsers(parse_int, parse_str))
        with pytest.raises(InvalidParamTypeError):
            parse_sequence(int, ["1"])
