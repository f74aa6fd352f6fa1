"""Tests for param discovery on handler input dataclasses."""

from dataclasses import dataclass

import pytest

from routey import (
    JSON,
    Header,
    InvalidParamError,
    NonStructArgumentError,
    NoParserProvidedError,
    ParamOpts,
    Path,
    Query,
    default_parser,
    info_from_struct,
    namer_capitals,
    param,
)
from routey.params import SOURCE_BODY, SOURCE_HEADER, SOURCE_PATH, SOURCE_QUERY, split_by_capitals


@dataclass
class Paging:
    page: Query[int]
    per_page: Query[int]


@dataclass
class ListInput:
    id: Path[int]
    paging: Paging
    note: str
    token: Header[str] = param("X-Token")


@dataclass
class Color:
    hex: str

    @classmethod
    def from_text(cls, text):
        if not text.startswith("#"):
            raise ValueError(f"not a color: {text!r}")
        return cls(text)


class TestNamer:
    """Test the default field namer."""

    def test_capitalized_words(self):
        assert namer_capitals("QueryValue", SOURCE_QUERY) == "query_value"

    def test_single_lowercase_word(self):
        assert namer_capitals("first", SOURCE_QUERY) == "first"

    def test_capital_run_stays_joined(self):
        assert namer_capitals("FIRSTSecond", SOURCE_QUERY) == "firstsecond"

    def test_lower_then_upper(self):
        assert namer_capitals("lowerUpper", SOURCE_QUERY) == "lower_upper"

    def test_snake_case_unchanged(self):
        assert namer_capitals("per_page", SOURCE_QUERY) == "per_page"

    def test_split_by_capitals(self):
        assert split_by_capitals("OtherInt") == ["Other", "Int"]
        assert split_by_capitals("") == []


class TestInfoFromStruct:
    """Test walking a dataclass for params."""

    def test_params_in_declaration_order(self):
        infos = info_from_struct(ListInput, namer_capitals, default_parser())

        assert [info.name for info in infos] == ["id", "page", "per_page", "X-Token"]
        assert [info.source for info in infos] == [SOURCE_PATH, SOURCE_QUERY, SOURCE_QUERY, SOURCE_HEADER]

    def test_value_type_is_inner_type(self):
        infos = info_from_struct(ListInput, namer_capitals, default_parser())
        assert infos[0].type is int
        assert infos[3].type is str

    def test_nested_params_record_parent_fields(self):
        infos = info_from_struct(ListInput, namer_capitals, default_parser())

        page = infos[1]
        assert [f.name for f in page.parent_fields] == ["paging"]
        assert page.struct is Paging
        assert infos[0].parent_fields == []

    def test_unclassified_fields_are_skipped(self):
        infos = info_from_struct(ListInput, namer_capitals, default_parser())
        assert "note" not in [info.field.name for info in infos]

    def test_body_param(self):
        @dataclass
        class Item:
            name: str

        @dataclass
        class Input:
            item: JSON[Item]

        infos = info_from_struct(Input, namer_capitals, default_parser())
        assert len(infos) == 1
        assert infos[0].source == SOURCE_BODY
        assert infos[0].type is Item

    def test_non_struct_input(self):
        with pytest.raises(NonStructArgumentError):
            info_from_struct(int, namer_capitals, default_parser())

    def test_no_parser(self):
        with pytest.raises(NoParserProvidedError):
            info_from_struct(Paging, namer_capitals, None)

    def test_unparseable_type(self):
        @dataclass
        class Input:
            value: Query[object]

        with pytest.raises(InvalidParamError) as exc_info:
            info_from_struct(Input, namer_capitals, default_parser())

        err = exc_info.value
        assert err.struct is Input
        assert err.field.name == "value"
        assert err.param_type is object
        assert err.message == "cannot determine how to parse param"

    def test_from_text_type_is_parseable(self):
        @dataclass
        class Input:
            color: Query[Color]

        infos = info_from_struct(Input, namer_capitals, default_parser())
        assert infos[0].type is Color

    def test_default_is_kept(self):
        @dataclass
        class Input:
            field: Query[int] = param(default="1")

        infos = info_from_struct(Input, namer_capitals, default_parser())
        assert infos[0].default == "1"

    def test_unparseable_default(self):
        @dataclass
        class Input:
            field: Query[int] = param(default="1.")

        with pytest.raises(InvalidParamError) as exc_info:
            info_from_struct(Input, namer_capitals, default_parser())

        assert exc_info.value.message == "default value cannot be parsed: 1."
        assert "invalid literal" in exc_info.value.error

    def test_custom_namer(self):
        @dataclass
        class Input:
            QueryValue: Query[str]

        infos = info_from_struct(Input, lambda name, source: f"{source}-{name}", default_parser())
        assert infos[0].name == "query-QueryValue"


class TestParamOpts:
    """Test parsing values through ParamOpts."""

    def test_no_values_no_default(self):
        opts = ParamOpts(name="page", type=int, parser=default_parser())
        assert opts.parse([]) is None

    def test_default_used_when_missing(self):
        opts = ParamOpts(name="page", type=int, parser=default_parser(), default="3")
        assert opts.parse([]) == 3

    def test_values_win_over_default(self):
        opts = ParamOpts(name="page", type=int, parser=default_parser(), default="3")
        assert opts.parse(["7"]) == 7
