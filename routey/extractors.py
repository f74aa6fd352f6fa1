"""
Request extraction.

`compile_extractor` turns a handler input dataclass into a function that
builds an instance of it from a request. All type inspection happens at
compile time. The returned function only runs the per-field steps.
"""

import dataclasses
import functools
import inspect
import logging
import types
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union, get_args, get_origin, get_type_hints
from urllib.parse import parse_qs

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    BodyDecodeError,
    NonStructArgumentError,
    ParamExtractionError,
    RouteyError,
    TypeExtractionError,
    UnknownFieldTypeError,
)
from .models import Request, ResponseWriter
from .params import (
    SOURCE_BODY,
    SOURCE_COOKIE,
    SOURCE_HEADER,
    SOURCE_PATH,
    SOURCE_QUERY,
    Namer,
    ParamOpts,
    Pather,
    StructField,
    get_source_and_type,
    is_struct,
    name_from_field,
    struct_fields,
)
from .parsers import Parser

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUERY_VALUES_KEY = "routey.query_values"

ExtractorFn = Callable[[ResponseWriter, Request], Any]
Step = Callable[[ResponseWriter, Request, Any], None]


def query_values(request: Request) -> Dict[str, List[str]]:
    """Parse the query string once per request and cache it on the request."""
    values = request.context.get(QUERY_VALUES_KEY)
    if values is None:
        values = parse_qs(request.query_string or "", keep_blank_values=True)
        request.context[QUERY_VALUES_KEY] = values
    return values


def generic_argument(owner: Any) -> Any:
    """Return T for Wrapper[T], a Wrapper[T] instance, or a subclass of Wrapper[T]."""
    args = get_args(owner)
    if args:
        return args[0]

    orig_class = getattr(owner, "__orig_class__", None)
    if orig_class is not None:
        return get_args(orig_class)[0]

    cls = owner if isinstance(owner, type) else type(owner)
    for klass in cls.__mro__:
        for base in getattr(klass, "__orig_bases__", ()):
            args = get_args(base)
            if args and not isinstance(args[0], TypeVar):
                return args[0]
    return Any


class Extractor(ABC):
    """A field that populates itself from the whole request."""

    @abstractmethod
    def extract(self, request: Request, route_info: Any) -> None:
        pass


class ParamExtractor(ABC):
    """A field that populates itself from one named request param."""

    @classmethod
    @abstractmethod
    def source(cls) -> str:
        pass

    @abstractmethod
    def extract(self, request: Request, route_info: Any, opts: ParamOpts) -> None:
        pass


def parse_param(opts: ParamOpts, values: List[str]) -> Any:
    try:
        return opts.parse(values)
    except (ValueError, TypeError, ArithmeticError, RouteyError) as err:
        raise ParamExtractionError(opts.name, opts.source, err) from err


class Param(ParamExtractor, Generic[T]):
    """Base for the typed param wrappers; the parsed value is in `.value`."""

    def __init__(self, value: Optional[T] = None):
        self.value = value

    @classmethod
    def inner_type(cls, annotation: Any) -> Any:
        return generic_argument(annotation)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Param):
            return NotImplemented
        return type(self) is type(other) and self.value == other.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class Path(Param[T]):
    """A path variable, e.g. `{id}` in `/users/{id}`."""

    @classmethod
    def source(cls) -> str:
        return SOURCE_PATH

    def extract(self, request: Request, route_info: Any, opts: ParamOpts) -> None:
        raw = opts.path_value(request)
        self.value = parse_param(opts, [raw] if raw is not None else [])


class Query(Param[T]):
    """A query string param. Repeated keys parse into sequences."""

    @classmethod
    def source(cls) -> str:
        return SOURCE_QUERY

    def extract(self, request: Request, route_info: Any, opts: ParamOpts) -> None:
        self.value = parse_param(opts, query_values(request).get(opts.name, []))


class Header(Param[T]):
    """A request header, matched case-insensitively."""

    @classmethod
    def source(cls) -> str:
        return SOURCE_HEADER

    def extract(self, request: Request, route_info: Any, opts: ParamOpts) -> None:
        raw = request.get_header(opts.name)
        self.value = parse_param(opts, [raw] if raw is not None else [])


class Cookie(Param[T]):
    """A cookie value from the Cookie header."""

    @classmethod
    def source(cls) -> str:
        return SOURCE_COOKIE

    def extract(self, request: Request, route_info: Any, opts: ParamOpts) -> None:
        raw = request.cookies().get(opts.name)
        self.value = parse_param(opts, [raw] if raw is not None else [])


@functools.lru_cache(maxsize=None)
def _type_adapter(value_type: Any) -> TypeAdapter:
    return TypeAdapter(value_type)


class JSON(Extractor, Generic[T]):
    """The request body decoded from JSON into `.value`."""

    def __init__(self, value: Optional[T] = None):
        self.value = value

    @classmethod
    def source(cls) -> str:
        return SOURCE_BODY

    @classmethod
    def inner_type(cls, annotation: Any) -> Any:
        return generic_argument(annotation)

    @classmethod
    def can_parse(cls, parser: Parser, field: StructField, value_type: Any) -> None:
        return None

    def value_type(self) -> Any:
        return generic_argument(self)

    def extract(self, request: Request, route_info: Any) -> None:
        self.value = decode_body_json(request, self.value_type())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JSON):
            return NotImplemented
        return self.value == other.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


def decode_body_json(request: Request, value_type: Any) -> Any:
    """Decode the request body into `value_type`; None when there is no body."""
    body = request.body_stream().read()
    if not body:
        return None

    try:
        return _type_adapter(value_type).validate_json(body)
    except PydanticValidationError as err:
        raise BodyDecodeError(value_type, err) from err


class ExtractorRegistry:
    """Extractor functions for types that cannot extract themselves.

    Example:
        registry.register(User, lambda request: load_user(request))
    """

    def __init__(self):
        self._extractors: Dict[Any, Callable[[Request], Any]] = {}

    def register(self, value_type: Any, fn: Optional[Callable[[Request], Any]] = None):
        """Register `fn` for `value_type`; usable as a decorator when fn is omitted."""
        if fn is None:

            def decorator(func: Callable[[Request], Any]) -> Callable[[Request], Any]:
                self._extractors[value_type] = func
                return func

            return decorator

        self._extractors[value_type] = fn
        return fn

    def get(self, value_type: Any) -> Optional[Callable[[Request], Any]]:
        try:
            return self._extractors.get(value_type)
        except TypeError:
            return None

    def __contains__(self, value_type: Any) -> bool:
        return self.get(value_type) is not None


@dataclass
class ExtractorOpts:
    namer: Namer
    parser: Parser
    pather: Optional[Pather] = None
    route_info: Any = None
    collect_all_errors: bool = False
    registry: Optional[ExtractorRegistry] = None


def _field_class(annotation: Any) -> Any:
    origin = get_origin(annotation) or annotation
    return origin if isinstance(origin, type) else None


def _setter(name: str) -> Callable[[Any, Any], None]:
    def set_field(target: Any, value: Any):
        object.__setattr__(target, name, value)

    return set_field


def _extract_request(struct_field: StructField, opts: ExtractorOpts) -> Optional[Step]:
    if struct_field.type is not Request:
        return None
    set_field = _setter(struct_field.name)

    def step(writer: ResponseWriter, request: Request, target: Any):
        set_field(target, request)

    return step


def _extract_response_writer(struct_field: StructField, opts: ExtractorOpts) -> Optional[Step]:
    if struct_field.type is not ResponseWriter:
        return None
    set_field = _setter(struct_field.name)

    def step(writer: ResponseWriter, request: Request, target: Any):
        set_field(target, writer)

    return step


def _extract_extractor(struct_field: StructField, opts: ExtractorOpts) -> Optional[Step]:
    cls = _field_class(struct_field.type)
    if cls is None or not issubclass(cls, Extractor):
        return None

    factory = struct_field.type
    set_field = _setter(struct_field.name)

    def step(writer: ResponseWriter, request: Request, target: Any):
        value = factory()
        value.extract(request, opts.route_info)
        set_field(target, value)

    return step


def _extract_param_extractor(struct_field: StructField, opts: ExtractorOpts) -> Optional[Step]:
    cls = _field_class(struct_field.type)
    if cls is None or not issubclass(cls, ParamExtractor):
        return None

    source, value_type, _ = get_source_and_type(struct_field.type)
    param_opts = ParamOpts(
        name=name_from_field(struct_field, opts.namer, source),
        type=value_type,
        parser=opts.parser,
        default=struct_field.tag("default"),
        pather=opts.pather,
        source=source,
    )
    factory = struct_field.type
    set_field = _setter(struct_field.name)

    def step(writer: ResponseWriter, request: Request, target: Any):
        value = factory()
        value.extract(request, opts.route_info, param_opts)
        set_field(target, value)

    return step


def _extract_registered(struct_field: StructField, opts: ExtractorOpts) -> Optional[Step]:
    if opts.registry is None:
        return None
    fn = opts.registry.get(struct_field.type)
    if fn is None:
        return None

    value_type = struct_field.type
    set_field = _setter(struct_field.name)

    def step(writer: ResponseWriter, request: Request, target: Any):
        try:
            value = fn(request)
        except Exception as err:
            raise TypeExtractionError(value_type, err) from err
        set_field(target, value)

    return step


def _extract_nested(struct_field: StructField, opts: ExtractorOpts) -> Optional[Step]:
    if not is_struct(struct_field.type):
        return None

    extract = compile_extractor(struct_field.type, opts)
    set_field = _setter(struct_field.name)

    def step(writer: ResponseWriter, request: Request, target: Any):
        set_field(target, extract(writer, request))

    return step


FIELD_STRATEGIES = (
    _extract_request,
    _extract_response_writer,
    _extract_extractor,
    _extract_param_extractor,
    _extract_registered,
    _extract_nested,
)


def _extractor_from_field(struct_field: StructField, opts: ExtractorOpts) -> Step:
    for strategy in FIELD_STRATEGIES:
        step = strategy(struct_field, opts)
        if step is not None:
            return step
    raise UnknownFieldTypeError(field=struct_field)


def _related_types(struct_field: StructField) -> List[Any]:
    candidates = [Optional[struct_field.type]]
    if get_origin(struct_field.type) in (Union, types.UnionType):
        args = [arg for arg in get_args(struct_field.type) if arg is not type(None)]
        if len(args) == 1:
            candidates.append(args[0])
    return candidates


def find_related_extractors(struct_field: StructField, opts: ExtractorOpts) -> List[Any]:
    """Types close to the field's type that would have been extractable."""
    related = []
    for candidate in _related_types(struct_field):
        try:
            _extractor_from_field(dataclasses.replace(struct_field, type=candidate), opts)
        except RouteyError:
            continue
        related.append(candidate)
    return related


def compile_extractor(input_type: Any, opts: ExtractorOpts) -> ExtractorFn:
    """Compile a function building `input_type` from a request.

    Raises:
        NonStructArgumentError: input_type is not a dataclass
        UnknownFieldTypeError: a field has no extraction strategy
    """
    if not is_struct(input_type):
        raise NonStructArgumentError(input_type)

    steps: List[Step] = []
    for struct_field in struct_fields(input_type):
        try:
            steps.append(_extractor_from_field(struct_field, opts))
        except UnknownFieldTypeError as err:
            if err.struct is None:
                err.struct = input_type
                err.related_found = find_related_extractors(struct_field, opts)
            raise

    collect_all = opts.collect_all_errors
    logger.debug(f"Compiled extractor for {input_type.__name__} with {len(steps)} steps")

    def extract(writer: ResponseWriter, request: Request) -> Any:
        target = input_type.__new__(input_type)
        if not collect_all:
            for step in steps:
                step(writer, request, target)
            return target

        errors: List[Exception] = []
        for step in steps:
            try:
                step(writer, request, target)
            except ExceptionGroup as group:
                errors.extend(group.exceptions)
            except Exception as err:
                errors.append(err)

        if errors:
            raise ExceptionGroup("failed to extract params", errors)
        return target

    return extract


@dataclass
class HandlerResult:
    """What a compiled handler hands to the response callback."""

    response: Any
    error: Optional[BaseException]
    info: Any = None


ResponseHandler = Callable[[ResponseWriter, Request, HandlerResult], None]


@dataclass
class HandlerParams:
    response: Optional[ResponseHandler]
    error_sink: Callable[[BaseException], None]
    parser: Parser
    namer: Namer
    pather: Optional[Pather] = None
    route_info: Any = None
    collect_all_errors: bool = False
    registry: Optional[ExtractorRegistry] = None


def handler_types(fn: Callable) -> tuple:
    """Return (input type or None, return type) for a handler function.

    Handlers take at most one argument: the input dataclass.
    """
    parameters = list(inspect.signature(fn).parameters.values())
    if len(parameters) > 1:
        raise TypeError(f"handler {fn.__name__} must take at most one argument, got {len(parameters)}")

    hints = get_type_hints(fn)
    return_type = hints.get("return", Any)
    if not parameters:
        return None, return_type

    input_type = hints.get(parameters[0].name)
    if input_type is None:
        raise NonStructArgumentError(inspect.Parameter.empty)
    return input_type, return_type


def handler(fn: Callable, params: HandlerParams) -> Optional[Callable[[ResponseWriter, Request], None]]:
    """Compile a typed handler into a request handler.

    Compile failures go to `params.error_sink` and None is returned.
    """
    try:
        input_type, _ = handler_types(fn)
        extract_inputs = None
        if input_type is not None:
            extract_inputs = compile_extractor(
                input_type,
                ExtractorOpts(
                    namer=params.namer,
                    parser=params.parser,
                    pather=params.pather,
                    route_info=params.route_info,
                    collect_all_errors=params.collect_all_errors,
                    registry=params.registry,
                ),
            )
    except RouteyError as err:
        params.error_sink(err)
        return None

    def handle(writer: ResponseWriter, request: Request):
        response = None
        error: Optional[BaseException] = None
        try:
            if extract_inputs is None:
                response = fn()
            else:
                response = fn(extract_inputs(writer, request))
        except Exception as err:
            error = err

        if params.response is None:
            if error is not None:
                raise error
            return
        params.response(writer, request, HandlerResult(response, error, params.route_info))

    return handle
