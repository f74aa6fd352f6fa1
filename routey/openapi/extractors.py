"""
Extractors that read requests the way the OpenAPI document describes them.

`Query` follows the parameter's style: "form" (exploded, or
comma-separated when explode is false) and "deepObject"
(`filter[field]=value`). Both `Query` and `JSON` validate the extracted
value against the compiled schema when request validation is on.
"""

import logging
from typing import Any, Dict, List, Optional, TypeVar

from pydantic_core import to_jsonable_python

from .. import extractors
from ..exceptions import UNPARSABLE_DEFAULT, InvalidParamError, InvalidParamTypeError, ParamExtractionError
from ..models import Request
from ..params import ParamOpts, StructField, is_struct, struct_fields
from ..parsers import Parser
from ..schema import Schemer, json_field_name, unwrap_optional
from ..validation import ValidationError, Validator
from .document import OpenAPI
from .operation import Operation
from .parameters import STYLE_DEEP_OBJECT, STYLE_FORM, InvalidTagError, Parameter, style_from_field
from .router import body_schema_name, context_from_route, operation_from_context, param_schema_name

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parseable(parser: Parser, value_type: Any) -> bool:
    try:
        parser(value_type, [""])
    except InvalidParamTypeError:
        return False
    except Exception:
        return True
    return True


def default_value(struct_field: StructField, schema: Dict[str, Any]) -> str:
    """A field's default from its tag, else from its schema property."""
    default = struct_field.tag("default")
    if default:
        return default

    prop = schema.get("properties", {}).get(json_field_name(struct_field))
    if not prop or "default" not in prop:
        return ""
    value = prop["default"]
    return value if isinstance(value, str) else str(value)


def valid_deep_object_type(parser: Parser, value_type: Any):
    """Check that every field of a deepObject dataclass can be parsed.

    Raises:
        InvalidParamTypeError: value_type is not a dataclass
        InvalidParamError: a field, or its default, cannot be parsed
    """
    value_type = unwrap_optional(value_type) or value_type
    if not is_struct(value_type):
        raise InvalidParamTypeError(value_type)

    schema = Schemer().get(value_type).spec
    for struct_field in struct_fields(value_type):
        if struct_field.name.startswith("_"):
            raise InvalidParamError(
                struct=value_type,
                field=struct_field,
                error="field is private",
                underline_all=True,
            )

        if not parseable(parser, struct_field.type):
            raise InvalidParamError(struct=value_type, field=struct_field, param_type=struct_field.type)

        default = default_value(struct_field, schema)
        if not default:
            continue
        try:
            parser(struct_field.type, [default])
        except Exception as err:
            raise InvalidParamError(
                struct=value_type,
                field=struct_field,
                param_type=struct_field.type,
                message=f"{UNPARSABLE_DEFAULT}: {default}",
                error=str(err),
            ) from err


def _validate(validator: Validator, name: str, location: str, value: Any):
    try:
        validator.validate(name, to_jsonable_python(value))
    except ValidationError as err:
        err.location = location
        raise


class Query(extractors.Query[T]):
    """A query param parsed by its OpenAPI style and validated by its schema."""

    @classmethod
    def can_parse(cls, parser: Parser, field: StructField, value_type: Any) -> None:
        if parseable(parser, value_type):
            return

        try:
            style = style_from_field(field)
        except InvalidTagError:
            # reported with more detail when the parameter is built
            return

        if style != STYLE_DEEP_OBJECT:
            raise InvalidParamTypeError(value_type)
        valid_deep_object_type(parser, value_type)

    def extract(self, request: Request, route_info: Any, opts: ParamOpts) -> None:
        ctx = context_from_route(route_info.context)
        operation = operation_from_context(route_info.context)

        parameter = operation.get_parameter(opts.name, self.source())
        if parameter is None:
            missing = LookupError(f"no param found: {route_info.method} {route_info.full_pattern}")
            raise ParamExtractionError(opts.name, self.source(), missing)

        values = extractors.query_values(request)
        if parameter.style == STYLE_FORM:
            self.value = self._parse_form(values, opts, parameter)
            document_value = self.value
        elif parameter.style == STYLE_DEEP_OBJECT:
            self.value, document_value = self._parse_deep_object(values, opts, parameter, ctx.document)
        else:
            # spaceDelimited and pipeDelimited are described but not extracted
            return

        if ctx.validator is None:
            return

        if self.value is None:
            if parameter.required:
                raise ParamExtractionError(opts.name, self.source(), ValueError("required param missing"))
            return

        name = param_schema_name(operation.operation_id, parameter.location, parameter.name)
        _validate(ctx.validator, name, f"#/parameters/{parameter.location}/{parameter.name}", document_value)

    def _parse_form(self, values: Dict[str, List[str]], opts: ParamOpts, parameter: Parameter) -> Any:
        raw = values.get(opts.name, [])
        if not parameter.explode and raw:
            raw = raw[0].split(",")
        return extractors.parse_param(opts, raw)

    def _parse_deep_object(
        self,
        values: Dict[str, List[str]],
        opts: ParamOpts,
        parameter: Parameter,
        document: OpenAPI,
    ) -> tuple:
        value_type = unwrap_optional(opts.type) or opts.type
        schema = document.resolve_schema(parameter.schema)

        target = value_type.__new__(value_type)
        document_value: Dict[str, Any] = {}
        for struct_field in struct_fields(value_type):
            field_name = json_field_name(struct_field)
            name = f"{parameter.name}[{field_name}]"
            field_opts = ParamOpts(
                name=name,
                type=struct_field.type,
                parser=opts.parser,
                default=default_value(struct_field, schema),
                pather=opts.pather,
                source=opts.source,
            )
            value = extractors.parse_param(field_opts, values.get(name, []))
            object.__setattr__(target, struct_field.name, value)
            if value is not None and field_name:
                document_value[field_name] = value
        return target, document_value


class JSON(extractors.JSON[T]):
    """A JSON body, validated against the operation's body schema after decoding."""

    def extract(self, request: Request, route_info: Any) -> None:
        ctx = context_from_route(route_info.context)
        operation = operation_from_context(route_info.context)

        super().extract(request, route_info)
        if ctx.validator is None:
            return

        if self.value is None and not _body_required(operation):
            return
        _validate(ctx.validator, body_schema_name(operation.operation_id), "#/body", self.value)


def _body_required(operation: Operation) -> bool:
    body: Optional[Dict[str, Any]] = operation.request_body
    return bool(body and body.get("required"))
