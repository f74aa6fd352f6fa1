"""
Route options that describe operations.

Options are passed to Router.handle (or the method decorators) and run
once when the route is registered:

    @router.post(
        "/items",
        options.summary("Create an item"),
        options.response(Item, 201, "The created item"),
    )
    def create_item(params: CreateItem) -> Item:
        ...
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Sequence

from ..params import info_from_struct
from ..router import RouteInfo, RouteOption
from .operation import Operation
from .parameters import trim_lines
from .router import OpenAPIContext, context_from_route, operation_from_context

OPTION_CONTEXT_KEY = "routey.openapi.option_context"


class NoContent:
    """Marks a response that has no body."""


@dataclass
class OptionContext:
    """Per-route state shared by the options of one route."""

    openapi: OpenAPIContext
    info: RouteInfo
    content_type: List[str] = field(default_factory=list)
    no_ref: bool = False

    def content_types(self, given: Sequence[str]) -> Sequence[str]:
        if given:
            return given
        if self.content_type:
            return self.content_type
        if self.openapi.document.default_content_type:
            return [self.openapi.document.default_content_type]
        return []

    def media_type(self, value_type: Any) -> Dict[str, Any]:
        schema = self.openapi.document.get_schema_or_ref(
            value_type,
            force_no_ref=self.no_ref,
            ignore_add_schema_errors=True,
        )
        return {"schema": schema}


def option_context(info: RouteInfo) -> OptionContext:
    ctx = info.context.get(OPTION_CONTEXT_KEY)
    if ctx is None or ctx.info is not info:
        ctx = OptionContext(openapi=context_from_route(info.context), info=info)
        info.context[OPTION_CONTEXT_KEY] = ctx
    return ctx


def new(fn: Callable[[OptionContext, Operation], None]) -> RouteOption:
    """Turn a function of (option context, operation) into a route option."""

    def option(info: RouteInfo):
        fn(option_context(info), operation_from_context(info.context))

    return option


def params(value_type: Any) -> RouteOption:
    """Describe the params declared on a dataclass, for handlers that read requests themselves."""

    def set_params(ctx: OptionContext, operation: Operation):
        ctx.info.params = info_from_struct(value_type, ctx.openapi.namer, ctx.openapi.parser)

    return new(set_params)


def body(value_type: Any, description: str = "", required: bool = False, *content_types: str) -> RouteOption:
    def set_body(ctx: OptionContext, operation: Operation):
        request_body: Dict[str, Any] = {}
        if description:
            request_body["description"] = trim_lines(description)
        media_type = ctx.media_type(value_type)
        request_body["content"] = {content_type: dict(media_type) for content_type in ctx.content_types(content_types)}
        if required:
            request_body["required"] = True
        operation.set_request_body(request_body)

    return new(set_body)


@contextmanager
def _scoped(ctx: OptionContext, **values: Any) -> Iterator[None]:
    saved = {key: getattr(ctx, key) for key in values}
    for key, value in values.items():
        setattr(ctx, key, value)
    try:
        yield
    finally:
        for key, value in saved.items():
            setattr(ctx, key, value)


def content_type(content_types: Sequence[str], *options: RouteOption) -> RouteOption:
    """Run options with `content_types` as their default content types."""

    def option(info: RouteInfo):
        ctx = option_context(info)
        with _scoped(ctx, content_type=list(content_types)):
            for inner in options:
                inner(info)

    return option


def no_ref(*options: RouteOption) -> RouteOption:
    """Run options with every type inlined instead of referenced from the components."""

    def option(info: RouteInfo):
        ctx = option_context(info)
        with _scoped(ctx, no_ref=True):
            for inner in options:
                inner(info)

    return option


def response(value_type: Any, code: int, description: str = "", *content_types: str) -> RouteOption:
    """Describe the response sent with status `code`."""

    def add_response(ctx: OptionContext, operation: Operation):
        resp: Dict[str, Any] = {"description": trim_lines(description)}
        if value_type not in (Any, NoContent, None):
            media_type = ctx.media_type(value_type)
            resp["content"] = {ct: dict(media_type) for ct in ctx.content_types(content_types)}
        operation.add_response(code, resp)

    return new(add_response)


def operation_id(value: str) -> RouteOption:
    def set_id(ctx: OptionContext, operation: Operation):
        operation.operation_id = value

    return new(set_id)


def ignore() -> RouteOption:
    """Leave the route out of the document."""

    def set_ignore(ctx: OptionContext, operation: Operation):
        operation.ignore = True

    return new(set_ignore)


def deprecated() -> RouteOption:
    def set_deprecated(ctx: OptionContext, operation: Operation):
        operation.deprecated = True

    return new(set_deprecated)


def summary(text: str) -> RouteOption:
    def set_summary(ctx: OptionContext, operation: Operation):
        operation.summary = trim_lines(text)

    return new(set_summary)


def tags(*names: str) -> RouteOption:
    def set_tags(ctx: OptionContext, operation: Operation):
        operation.tags.extend(name for name in names if name not in operation.tags)

    return new(set_tags)
