"""Router module binding typed handlers to routes."""

import functools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic_core import to_jsonable_python

from .diagnostics import ANSI_COLORS, NO_COLORS, Colors, render_error
from .exceptions import BodyDecodeError, HandlerError, ParamExtractionError, RouteyError, TypeExtractionError
from .extractors import (
    ExtractorRegistry,
    HandlerParams,
    HandlerResult,
    ResponseHandler,
    handler,
    handler_types,
)
from .models import HTTPMethod, Request, Response, ResponseWriter
from .params import Namer, ParameterInfo, Pather, RequestPather, info_from_struct, namer_capitals
from .parsers import Parser, default_parser
from .validation import ValidationError

logger = logging.getLogger(__name__)

RequestHandler = Callable[[ResponseWriter, Request], None]


@dataclass
class RouteInfo:
    """Everything known about a registered route.

    `context` is a per-route bag that collaborators such as the OpenAPI
    layer use to attach their own state.
    """

    handler: Any
    method: str
    full_pattern: str
    pattern: str
    params: List[ParameterInfo] = field(default_factory=list)
    return_type: Any = None
    context: Dict[Any, Any] = field(default_factory=dict)
    options: List["RouteOption"] = field(default_factory=list)


RouteOption = Callable[[RouteInfo], None]


@dataclass
class ParamConfig:
    parser: Parser = field(default_factory=default_parser)
    namer: Namer = namer_capitals


@dataclass
class ErrorConfig:
    colored: bool = False
    collect_all: bool = False

    def colors(self) -> Colors:
        return ANSI_COLORS if self.colored else NO_COLORS


class RouteNode:
    """A node in the route trie.

    Static children are tried before the path parameter child.
    """

    def __init__(self):
        self.static_children: Dict[str, "RouteNode"] = {}
        self.param_child: Optional[Tuple[str, "RouteNode"]] = None
        self.handlers: Dict[str, Tuple[RouteInfo, RequestHandler]] = {}

    def add_route(self, segments: List[str], method: str, info: RouteInfo, handle: RequestHandler) -> None:
        if not segments:
            self.handlers[method] = (info, handle)
            return

        segment, remaining = segments[0], segments[1:]
        if segment.startswith("{") and segment.endswith("}"):
            if self.param_child is None:
                self.param_child = (segment[1:-1], RouteNode())
            _, child = self.param_child
            child.add_route(remaining, method, info, handle)
            return

        if segment not in self.static_children:
            self.static_children[segment] = RouteNode()
        self.static_children[segment].add_route(remaining, method, info, handle)

    def match(
        self, segments: List[str], method: str
    ) -> Optional[Tuple[Tuple[RouteInfo, RequestHandler], Dict[str, str]]]:
        """Match a path against the trie.

        Returns:
            ((RouteInfo, handler), path_params) if matched, None otherwise
        """
        if not segments:
            route = self.handlers.get(method)
            return (route, {}) if route else None

        segment, remaining = segments[0], segments[1:]
        if segment in self.static_children:
            result = self.static_children[segment].match(remaining, method)
            if result:
                return result

        if self.param_child:
            name, child = self.param_child
            result = child.match(remaining, method)
            if result:
                route, params = result
                params[name] = segment
                return route, params

        return None

    def has_path(self, segments: List[str]) -> bool:
        if not segments:
            return bool(self.handlers)

        segment, remaining = segments[0], segments[1:]
        if segment in self.static_children and self.static_children[segment].has_path(remaining):
            return True
        if self.param_child:
            return self.param_child[1].has_path(remaining)
        return False


def split_path(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


def join_patterns(prefix: str, pattern: str) -> str:
    """Join a mount prefix and a route pattern without doubling slashes.

    Examples:
        join_patterns("/api", "/users") -> "/api/users"
        join_patterns("/api/", "/") -> "/api"
        join_patterns("", "/users") -> "/users"
    """
    if not prefix:
        return pattern
    if pattern == "/":
        return prefix.rstrip("/") or "/"

    prefix = prefix.rstrip("/")
    pattern = pattern.lstrip("/")
    if not pattern:
        return prefix or "/"
    return f"{prefix}/{pattern}"


def default_error_sink(err: BaseException, colors: Colors = NO_COLORS):
    """Log a registration error and stop the process."""
    logger.error(render_error(err, colors))
    raise SystemExit(1) from err


REQUEST_ERRORS = (ParamExtractionError, BodyDecodeError, TypeExtractionError, ValidationError)


def _leaf_errors(err: BaseException) -> List[BaseException]:
    if isinstance(err, BaseExceptionGroup):
        leaves: List[BaseException] = []
        for child in err.exceptions:
            leaves.extend(_leaf_errors(child))
        return leaves
    return [err]


def default_response_handler(writer: ResponseWriter, request: Request, result: HandlerResult):
    """Write handler results as JSON.

    Extraction and validation errors become 400 responses listing every
    error. Any other error is a 500.
    """
    if writer.written:
        return

    if result.error is not None:
        errors = _leaf_errors(result.error)
        writer.headers["Content-Type"] = "application/json"
        if all(isinstance(err, REQUEST_ERRORS) for err in errors):
            logger.warning(f"{request.method.value} {request.path}: {result.error}")
            writer.write_header(400)
            writer.write(json.dumps({"errors": [str(err) for err in errors]}))
            return

        logger.error(f"{request.method.value} {request.path}: handler failed: {result.error!r}")
        writer.write_header(500)
        writer.write(json.dumps({"error": "Internal Server Error"}))
        return

    if result.response is None:
        writer.write_header(204)
        return

    writer.headers["Content-Type"] = "application/json"
    writer.write_header(200)
    writer.write(json.dumps(to_jsonable_python(result.response)))


class Router:
    """Registers typed handlers and dispatches requests to them.

    Example:
        router = Router()

        @dataclass
        class Input:
            page: Query[int] = param(default="1")

        @router.get("/items")
        def list_items(params: Input) -> list:
            return items[: params.page.value]
    """

    def __init__(
        self,
        error_sink: Optional[Callable[[BaseException], None]] = None,
        response: Optional[ResponseHandler] = default_response_handler,
        params: Optional[ParamConfig] = None,
        errors: Optional[ErrorConfig] = None,
        on_route_add: Optional[Callable[[RouteInfo], None]] = None,
        context: Optional[Dict[Any, Any]] = None,
        pather: Optional[Pather] = None,
    ):
        self.response = response
        self.params = params or ParamConfig()
        self.errors = errors or ErrorConfig()
        self.error_sink = error_sink or functools.partial(default_error_sink, colors=self.errors.colors())
        self.on_route_add = on_route_add
        self.context: Dict[Any, Any] = context if context is not None else {}
        self.pather: Pather = pather or RequestPather()
        self.extractors = ExtractorRegistry()
        self._routes: List[RouteInfo] = []
        self._route_tree = RouteNode()

    def routes(self) -> List[RouteInfo]:
        return list(self._routes)

    def handle_error(self, err: BaseException):
        """Send a registration error to the error sink."""
        if self.error_sink is not None:
            self.error_sink(err)

    def _handler_error(self, err: BaseException, method: str, pattern: str, fn: Any) -> HandlerError:
        if isinstance(err, HandlerError):
            return err
        return HandlerError(f"{method} {pattern}".strip(), fn, err)

    def handle(self, method: Union[str, HTTPMethod], pattern: str, fn: Callable, *options: RouteOption) -> Callable:
        """Register `fn` for a method and pattern.

        Registration failures are sent to the error sink. The function is
        returned unchanged so this can back decorators.
        """
        method = method.value if isinstance(method, HTTPMethod) else method.upper()

        try:
            input_type, return_type = handler_types(fn)
            params = []
            if input_type is not None:
                params = info_from_struct(input_type, self.params.namer, self.params.parser)
        except (RouteyError, TypeError) as err:
            self.handle_error(self._handler_error(err, method, pattern, fn))
            return fn

        info = RouteInfo(
            handler=fn,
            method=method,
            full_pattern=pattern,
            pattern=pattern,
            params=params,
            return_type=return_type,
            context=dict(self.context),
            options=list(options),
        )

        handle = handler(
            fn,
            HandlerParams(
                response=self.response,
                error_sink=lambda err: self.handle_error(self._handler_error(err, method, pattern, fn)),
                parser=self.params.parser,
                namer=self.params.namer,
                pather=self.pather,
                route_info=info,
                collect_all_errors=self.errors.collect_all,
                registry=self.extractors,
            ),
        )
        if handle is None:
            return fn

        for option in options:
            try:
                option(info)
            except RouteyError as err:
                self.handle_error(self._handler_error(err, method, pattern, fn))
                return fn

        self._routes.append(info)
        self._route_tree.add_route(split_path(pattern), method, info, handle)
        logger.debug(f"Registered route {method} {pattern} -> {getattr(fn, '__name__', fn)}")
        self._route_added(info)
        return fn

    def _route_added(self, info: RouteInfo):
        if self.on_route_add is None:
            return
        try:
            self.on_route_add(info)
        except RouteyError as err:
            self.handle_error(self._handler_error(err, info.method, info.full_pattern, info.handler))

    def route(self, method: Union[str, HTTPMethod], pattern: str, *options: RouteOption):
        def decorator(fn: Callable) -> Callable:
            return self.handle(method, pattern, fn, *options)

        return decorator

    def get(self, pattern: str, *options: RouteOption):
        return self.route(HTTPMethod.GET, pattern, *options)

    def put(self, pattern: str, *options: RouteOption):
        return self.route(HTTPMethod.PUT, pattern, *options)

    def post(self, pattern: str, *options: RouteOption):
        return self.route(HTTPMethod.POST, pattern, *options)

    def patch(self, pattern: str, *options: RouteOption):
        return self.route(HTTPMethod.PATCH, pattern, *options)

    def delete(self, pattern: str, *options: RouteOption):
        return self.route(HTTPMethod.DELETE, pattern, *options)

    def mount(self, prefix: str, router: "Router"):
        """Serve every route of another router under a prefix.

        Mounted routes take this router's context, have their options run
        again against it, and are announced to this router's on_route_add
        hook.
        """
        for info in router.routes():
            match = router._route_tree.match(split_path(info.full_pattern), info.method)
            if match is None:
                continue
            (_, handle), _ = match

            info.full_pattern = join_patterns(prefix, info.full_pattern)
            info.context = dict(self.context)
            try:
                for option in info.options:
                    option(info)
            except RouteyError as err:
                self.handle_error(self._handler_error(err, info.method, info.full_pattern, info.handler))
                continue

            self._routes.append(info)
            self._route_tree.add_route(split_path(info.full_pattern), info.method, info, handle)
            self._route_added(info)

    def execute(self, request: Request) -> Response:
        """Dispatch a request to its handler and return the response."""
        segments = split_path(request.path)
        matched = self._route_tree.match(segments, request.method.value)

        if matched is None:
            status = 405 if self._route_tree.has_path(segments) else 404
            body = "Method Not Allowed" if status == 405 else "Not Found"
            return Response(status, json.dumps({"error": body}), content_type="application/json")

        (_, handle), path_params = matched
        request.path_params = path_params
        writer = ResponseWriter()
        handle(writer, request)
        return writer.to_response()
