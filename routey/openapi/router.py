"""
Keeps an OpenAPI document in sync with a Router.

`add_spec_to_router` installs an on_route_add hook that describes every
registered route as an operation: its params, request body, default
response and operation id. With request validation turned on, the same
schemas are compiled into a Validator used by the validating extractors.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic_core import to_jsonable_python

from ..exceptions import (
    UNPARSABLE_DEFAULT,
    DuplicateOperationIDError,
    InvalidParamError,
    MissingContextError,
    MissingOperationIDError,
)
from ..params import SOURCE_BODY, Namer, ParameterInfo
from ..parsers import Parser
from ..router import RouteInfo, Router
from ..validation import Validator
from .document import JSON_CONTENT_TYPE, OpenAPI
from .operation import Operation, PathItem
from .parameters import STYLE_DEEP_OBJECT, InvalidTagError, Parameter, from_info, parse_bool_tag, trim_lines

logger = logging.getLogger(__name__)

CONTEXT_KEY = "routey.openapi.context"
OPERATION_KEY = "routey.openapi.operation"


@dataclass
class OpenAPIContext:
    """OpenAPI state shared by every route of a router."""

    document: OpenAPI
    parser: Parser
    namer: Namer
    validator: Optional[Validator] = None


def operation_from_context(context: Dict[Any, Any]) -> Operation:
    """Return the route's operation, creating it on first use."""
    operation = context.get(OPERATION_KEY)
    if operation is None:
        operation = Operation()
        context[OPERATION_KEY] = operation
    return operation


def context_from_route(context: Dict[Any, Any]) -> OpenAPIContext:
    ctx = context.get(CONTEXT_KEY)
    if ctx is None:
        raise MissingContextError()
    return ctx


def param_schema_name(operation_id: str, location: str, name: str) -> str:
    return f"{operation_id}.param.{location}.{name}"


def body_schema_name(operation_id: str) -> str:
    return f"{operation_id}.body"


def public_function_name(fn: Any) -> str:
    """The handler's name, or "" for private functions and lambdas."""
    name = getattr(fn, "__name__", "")
    if not name or name.startswith("_") or name == "<lambda>":
        return ""
    return name


def _route_path(info: RouteInfo) -> str:
    return f"{info.method} {info.full_pattern}"


def ensure_no_duplicate_operation_id(document: OpenAPI, operation: Operation):
    for pattern, path in document.paths.items():
        for method, existing in path.get_operations():
            if existing is not operation and existing.operation_id == operation.operation_id:
                raise DuplicateOperationIDError(operation.operation_id, f"{method} {pattern}")


def ensure_operation_id(document: OpenAPI, operation: Operation, info: RouteInfo):
    if not operation.operation_id:
        operation.operation_id = public_function_name(info.handler)

    if not document.strict:
        return
    if not operation.operation_id:
        raise MissingOperationIDError()
    ensure_no_duplicate_operation_id(document, operation)


def compile_param_schema(ctx: OpenAPIContext, operation: Operation, parameter: Parameter):
    if ctx.validator is None:
        return
    name = param_schema_name(operation.operation_id, parameter.location, parameter.name)
    ctx.validator.add(name, ctx.document.standalone_schema(parameter.schema))


def compile_body_schema(ctx: OpenAPIContext, operation: Operation, schema: Dict[str, Any]):
    if ctx.validator is None:
        return
    name = body_schema_name(operation.operation_id)
    ctx.validator.add(name, ctx.document.standalone_schema(schema))


def add_param_to_op(ctx: OpenAPIContext, info: ParameterInfo, operation: Operation):
    """Describe a path, query, header or cookie param on the operation."""
    document = ctx.document
    parameter = from_info(info, document.schemer)

    if info.default:
        try:
            default = ctx.parser(info.type, [info.default])
        except Exception as err:
            raise InvalidParamError(
                struct=info.struct,
                field=info.field,
                param_type=info.type,
                message=f"{UNPARSABLE_DEFAULT}: {info.default}",
                error=str(err),
            ) from err
        parameter.schema["default"] = to_jsonable_python(default)

    if operation.has_parameter(parameter):
        return

    if parameter.style == STYLE_DEEP_OBJECT:
        parameter.schema = document.get_schema_or_ref(info.type, ignore_add_schema_errors=True)

    operation.add_parameter(parameter)
    compile_param_schema(ctx, operation, parameter)


def add_body_to_op(ctx: OpenAPIContext, info: ParameterInfo, operation: Operation):
    """Describe a JSON request body on the operation."""
    schema = ctx.document.get_schema_or_ref(info.type, ignore_add_schema_errors=True)
    body: Dict[str, Any] = {"content": {JSON_CONTENT_TYPE: {"schema": schema}}}

    description = info.field.tag("description")
    if description:
        body["description"] = trim_lines(description)

    try:
        required = parse_bool_tag("required", info.field.tag("required"))
    except InvalidTagError as err:
        raise InvalidParamError(
            struct=info.struct,
            field=info.field,
            message=f"failed parsing tag: {err}",
            underline_all=True,
        ) from err
    if required is not None:
        body["required"] = required

    operation.set_request_body(body)
    compile_body_schema(ctx, operation, schema)


def new_on_route_add(document: OpenAPI) -> Callable[[RouteInfo], None]:
    def on_route_add(info: RouteInfo):
        operation = operation_from_context(info.context)
        if operation.ignore:
            logger.debug(f"Ignoring {_route_path(info)} in the OpenAPI document")
            return

        ensure_operation_id(document, operation, info)
        ctx = context_from_route(info.context)

        for param_info in info.params:
            if param_info.source == SOURCE_BODY:
                add_body_to_op(ctx, param_info, operation)
            else:
                add_param_to_op(ctx, param_info, operation)

        default_response = document.get_default_response()
        if default_response is not None:
            operation.set_default_response(default_response)

        path = document.get_path(info.full_pattern) or PathItem()
        path.set_operation(info.method, operation)
        document.set_path(info.full_pattern, path)
        logger.debug(f"Added operation {operation.operation_id!r} for {_route_path(info)}")

    return on_route_add


def add_spec_to_router(
    router: Router,
    default_content_type: str = JSON_CONTENT_TYPE,
    validate_requests: bool = False,
    strict: bool = False,
    document: Optional[OpenAPI] = None,
) -> OpenAPI:
    """Describe every route registered on `router` from now on in an OpenAPI document.

    Args:
        router: Router to hook into
        default_content_type: Content type used when an option names none
        validate_requests: Compile param and body schemas so the validating
            extractors can check requests. Turns strict mode on, because
            compiled schemas are keyed by operation id.
        strict: Require a unique operation id on every operation
        document: Document to populate instead of a new one

    Returns:
        The document being populated
    """
    document = document or OpenAPI()
    document.strict = strict or validate_requests
    if default_content_type:
        document.default_content_type = default_content_type

    ctx = OpenAPIContext(
        document=document,
        parser=router.params.parser,
        namer=router.params.namer,
        validator=Validator() if validate_requests else None,
    )
    router.context[CONTEXT_KEY] = ctx
    router.on_route_add = new_on_route_add(document)
    return document


def new_router(**kwargs: Any) -> Tuple[Router, OpenAPI]:
    """A Router with an OpenAPI document attached."""
    router = Router(**kwargs)
    return router, add_spec_to_router(router)
