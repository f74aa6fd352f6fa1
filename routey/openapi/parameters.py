"""
OpenAPI parameter objects and the style rules that govern them.

https://spec.openapis.org/oas/v3.1.0#style-values
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..diagnostics import ascii_table
from ..exceptions import InvalidParamStyleError
from ..params import SOURCE_COOKIE, SOURCE_HEADER, SOURCE_PATH, SOURCE_QUERY, ParameterInfo, StructField, get_source_and_type
from ..parsers import FALSE_VALUES, TRUE_VALUES
from ..schema import TYPE_ARRAY, TYPE_BOOLEAN, TYPE_INTEGER, TYPE_NULL, TYPE_NUMBER, TYPE_OBJECT, TYPE_STRING, Schemer

STYLE_MATRIX = "matrix"
STYLE_LABEL = "label"
STYLE_FORM = "form"
STYLE_SIMPLE = "simple"
STYLE_SPACE_DELIMITED = "spaceDelimited"
STYLE_PIPE_DELIMITED = "pipeDelimited"
STYLE_DEEP_OBJECT = "deepObject"

STYLES = (
    STYLE_MATRIX,
    STYLE_LABEL,
    STYLE_FORM,
    STYLE_SIMPLE,
    STYLE_SPACE_DELIMITED,
    STYLE_PIPE_DELIMITED,
    STYLE_DEEP_OBJECT,
)

LOCATIONS = (SOURCE_PATH, SOURCE_QUERY, SOURCE_HEADER, SOURCE_COOKIE)

DATA_TYPE_PRIMITIVE = "primitive"
DATA_TYPE_ARRAY = "array"
DATA_TYPE_OBJECT = "object"

SCHEMA_DATA_TYPES = {
    TYPE_INTEGER: DATA_TYPE_PRIMITIVE,
    TYPE_NUMBER: DATA_TYPE_PRIMITIVE,
    TYPE_STRING: DATA_TYPE_PRIMITIVE,
    TYPE_BOOLEAN: DATA_TYPE_PRIMITIVE,
    TYPE_NULL: DATA_TYPE_PRIMITIVE,
    TYPE_OBJECT: DATA_TYPE_OBJECT,
    TYPE_ARRAY: DATA_TYPE_ARRAY,
}

DEFAULT_STYLES = {
    SOURCE_HEADER: STYLE_SIMPLE,
    SOURCE_PATH: STYLE_SIMPLE,
    SOURCE_QUERY: STYLE_FORM,
    SOURCE_COOKIE: STYLE_FORM,
}


@dataclass(frozen=True)
class StyleRule:
    locations: Sequence[str]
    types: Sequence[str]


ALL_DATA_TYPES = (DATA_TYPE_ARRAY, DATA_TYPE_OBJECT, DATA_TYPE_PRIMITIVE)

STYLE_RULES: Dict[str, StyleRule] = {
    STYLE_DEEP_OBJECT: StyleRule(locations=(SOURCE_QUERY,), types=(DATA_TYPE_OBJECT,)),
    STYLE_SPACE_DELIMITED: StyleRule(locations=(SOURCE_QUERY,), types=(DATA_TYPE_ARRAY, DATA_TYPE_OBJECT)),
    STYLE_PIPE_DELIMITED: StyleRule(locations=(SOURCE_QUERY,), types=(DATA_TYPE_ARRAY, DATA_TYPE_OBJECT)),
    STYLE_SIMPLE: StyleRule(locations=(SOURCE_PATH, SOURCE_HEADER), types=ALL_DATA_TYPES),
    STYLE_FORM: StyleRule(locations=(SOURCE_QUERY, SOURCE_COOKIE), types=ALL_DATA_TYPES),
    STYLE_LABEL: StyleRule(locations=(SOURCE_PATH,), types=ALL_DATA_TYPES),
    STYLE_MATRIX: StyleRule(locations=(SOURCE_PATH,), types=ALL_DATA_TYPES),
}


def valid_types(style: str) -> List[str]:
    rule = STYLE_RULES.get(style)
    return list(rule.types) if rule else []


def valid_styles_for_type(data_type: str) -> List[str]:
    return sorted(style for style, rule in STYLE_RULES.items() if data_type in rule.types)


def valid_styles_for_location(location: str) -> List[str]:
    return sorted(style for style, rule in STYLE_RULES.items() if location in rule.locations)


def build_help_text(style: str, data_type: str, location: str) -> str:
    """Tables of what the given style, data type and location each support."""
    sections = [
        ("style", style, lambda: ascii_table("type", valid_types(style))),
        ("type", data_type, lambda: ascii_table("style", valid_styles_for_type(data_type))),
        ("location", location, lambda: ascii_table("style", valid_styles_for_location(location))),
    ]
    parts = [f"{name} {value!r} supports:\n{table()}" for name, value, table in sections if value]
    return "\n\n".join(parts)


class InvalidTagError(ValueError):
    def __init__(self, tag: str, value: Any, reason: str):
        self.tag = tag
        super().__init__(f"{tag!r}: {reason}: {value!r}")


def parse_bool_tag(tag: str, value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    text = str(value)
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise InvalidTagError(tag, value, "invalid syntax")


def parse_int_tag(tag: str, value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value), 0)
    except ValueError as err:
        raise InvalidTagError(tag, value, "invalid syntax") from err


def parse_style_tag(value: Any) -> str:
    if value is None or value == "":
        return ""
    if value not in STYLES:
        raise InvalidTagError("style", value, "invalid parameter style")
    return value


def style_from_field(struct_field: StructField) -> str:
    """The style named by a field's tags, or "" when none is set.

    Raises:
        InvalidTagError: the style is not one OpenAPI defines
    """
    return parse_style_tag(struct_field.tag("style"))


def trim_lines(text: str) -> str:
    return "\n".join(line.strip() for line in text.split("\n"))


@dataclass
class Parameter:
    """An OpenAPI parameter object."""

    name: str
    location: str
    schema: Dict[str, Any] = field(default_factory=dict)
    description: str = ""
    required: bool = False
    deprecated: bool = False
    allow_reserved: bool = False
    style: str = ""
    explode: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "in": self.location}
        if self.description:
            data["description"] = self.description
        if self.required:
            data["required"] = True
        if self.deprecated:
            data["deprecated"] = True
        if self.allow_reserved:
            data["allowReserved"] = True
        if self.style:
            data["style"] = self.style
        if self.explode or self.style == STYLE_FORM:
            data["explode"] = self.explode
        data["schema"] = self.schema
        return data


def schema_data_type(schema: Dict[str, Any]) -> str:
    """Classify a schema as primitive, array or object by its first known type."""
    types = schema.get("type", [])
    if isinstance(types, str):
        types = [types]
    for schema_type in types:
        data_type = SCHEMA_DATA_TYPES.get(schema_type)
        if data_type:
            return data_type
    return ""


def _update_from_tags(parameter: Parameter, struct_field: StructField):
    explode = parse_bool_tag("explode", struct_field.tag("explode"))
    if explode is not None:
        parameter.explode = explode

    deprecated = parse_bool_tag("deprecated", struct_field.tag("deprecated"))
    if deprecated is not None:
        parameter.deprecated = deprecated

    required = parse_bool_tag("required", struct_field.tag("required"))
    if required is not None:
        parameter.required = required

    reserved = parse_bool_tag("reserved", struct_field.tag("reserved"))
    if reserved is not None:
        parameter.allow_reserved = reserved

    style = parse_style_tag(struct_field.tag("style"))
    if style:
        parameter.style = style

    minimum = parse_int_tag("minimum", struct_field.tag("minimum"))
    if minimum is not None:
        parameter.schema["minimum"] = minimum

    description = struct_field.tag("description")
    if description:
        parameter.description = trim_lines(description)


def _set_defaults(parameter: Parameter, struct_field: StructField):
    if not parameter.style:
        parameter.style = DEFAULT_STYLES[parameter.location]

    # form style explodes unless told otherwise
    if parameter.style == STYLE_FORM and struct_field.tag("explode") in ("", None):
        parameter.explode = True

    if parameter.location == SOURCE_PATH:
        parameter.required = True


def _style_error(info: ParameterInfo, parameter: Parameter, data_type: str, kind: str, error: str = "") -> InvalidParamStyleError:
    param_type = info.field.type
    if kind == "type":
        _, param_type, _ = get_source_and_type(info.field.type)

    return InvalidParamStyleError(
        struct=info.struct,
        field=info.field,
        kind=kind,
        style=parameter.style,
        location=parameter.location,
        data_type=data_type,
        error=error,
        param_type=param_type,
        help_text=build_help_text(parameter.style, data_type, parameter.location),
    )


def from_info(info: ParameterInfo, schemer: Schemer) -> Parameter:
    """Build the parameter object for a discovered param.

    Raises:
        InvalidParamStyleError: the field's tags cannot be parsed, or its
            style does not allow its location or data type
    """
    schema = schemer.get(info.type).to_dict()
    if info.default and "default" not in schema:
        schema["default"] = info.default

    parameter = Parameter(name=info.name, location=info.source, schema=schema)
    data_type = schema_data_type(schema)

    try:
        _update_from_tags(parameter, info.field)
    except InvalidTagError as err:
        raise _style_error(info, parameter, data_type, "tag", str(err)) from err

    if parameter.location not in LOCATIONS:
        raise _style_error(info, parameter, data_type, "tag", f"invalid parameter location: {parameter.location!r}")

    _set_defaults(parameter, info.field)

    rule = STYLE_RULES[parameter.style]
    if parameter.location not in rule.locations:
        raise _style_error(info, parameter, data_type, "location")
    if data_type not in rule.types:
        raise _style_error(info, parameter, data_type, "type")
    return parameter
