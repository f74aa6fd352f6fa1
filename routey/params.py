"""
Parameter discovery for handler input dataclasses.

A handler's input is a dataclass whose fields are either params (their
type provides a `source()` classmethod, like Query[int]), nested
dataclasses of params, or raw request objects. `info_from_struct` walks
that shape once at registration and describes every param it finds.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    get_origin,
    get_type_hints,
    runtime_checkable,
)

from .exceptions import (
    UNPARSABLE_DEFAULT,
    InvalidParamError,
    InvalidParamTypeError,
    NonStructArgumentError,
    NoParserProvidedError,
)
from .parsers import Parser

logger = logging.getLogger(__name__)

Namer = Callable[[str, str], str]

SOURCE_PATH = "path"
SOURCE_QUERY = "query"
SOURCE_HEADER = "header"
SOURCE_COOKIE = "cookie"
SOURCE_BODY = "body"

SOURCES = (SOURCE_PATH, SOURCE_QUERY, SOURCE_HEADER, SOURCE_COOKIE, SOURCE_BODY)

TAG_KEYS = (
    "name",
    "default",
    "description",
    "doc",
    "required",
    "explode",
    "deprecated",
    "reserved",
    "style",
    "minimum",
    "json",
)


@runtime_checkable
class SourceProvider(Protocol):
    """A field type that identifies itself as a param from a request location."""

    @classmethod
    def source(cls) -> str: ...


@runtime_checkable
class InnerTypeProvider(Protocol):
    """A param wrapper that parses into a different value type than itself."""

    @classmethod
    def inner_type(cls, annotation: Any) -> Any: ...


@runtime_checkable
class CustomParser(Protocol):
    """A param wrapper that decides for itself whether a value type is parseable.

    `can_parse` raises InvalidParamTypeError or InvalidParamError when it
    cannot handle the type.
    """

    @classmethod
    def can_parse(cls, parser: Parser, field: "StructField", value_type: Any) -> None: ...


@dataclass(frozen=True)
class StructField:
    """A dataclass field with its resolved annotation and tags."""

    name: str
    type: Any
    metadata: Mapping[str, Any] = field(default_factory=dict)
    embedded: bool = False

    def tag(self, key: str, default: Any = "") -> Any:
        value = self.metadata.get(key)
        if value is None:
            return default
        return value


@dataclass
class ParameterInfo:
    """Describes a single param discovered on a handler input."""

    name: str
    source: str
    default: str
    type: Any
    field: StructField
    struct: Any
    parent_fields: List[StructField] = field(default_factory=list)


def param(
    name: Optional[str] = None,
    *,
    default: Optional[str] = None,
    description: Optional[str] = None,
    doc: Optional[str] = None,
    required: Any = None,
    explode: Any = None,
    deprecated: Any = None,
    reserved: Any = None,
    style: Optional[str] = None,
    minimum: Any = None,
    json: Optional[str] = None,
    **extra: Any,
) -> Any:
    """Declare a dataclass field carrying param tags.

    Example:
        @dataclass
        class Input:
            page: Query[int] = param("p", default="1")
    """
    tags: Dict[str, Any] = {
        "name": name,
        "default": default,
        "description": description,
        "doc": doc,
        "required": required,
        "explode": explode,
        "deprecated": deprecated,
        "reserved": reserved,
        "style": style,
        "minimum": minimum,
        "json": json,
    }
    tags.update(extra)
    metadata = {key: value for key, value in tags.items() if value is not None}
    return dataclasses.field(kw_only=True, metadata=metadata)


def embed(**tags: Any) -> Any:
    """Declare a dataclass field whose properties are flattened into its parent."""
    return dataclasses.field(kw_only=True, metadata={"embed": True, **tags})


def is_struct(value_type: Any) -> bool:
    return isinstance(value_type, type) and dataclasses.is_dataclass(value_type)


def struct_fields(struct: Any) -> List[StructField]:
    """List a dataclass's fields in declaration order with resolved annotations."""
    hints = get_type_hints(struct, include_extras=True)
    return [
        StructField(
            name=f.name,
            type=hints.get(f.name, f.type),
            metadata=f.metadata,
            embedded=bool(f.metadata.get("embed")),
        )
        for f in dataclasses.fields(struct)
    ]


def split_by_capitals(value: str) -> List[str]:
    """Split a name wherever an uppercase letter follows a non-uppercase one."""
    if not value:
        return []

    words = []
    start = 0
    for i in range(1, len(value)):
        if value[i].isupper() and not value[i - 1].isupper():
            words.append(value[start:i])
            start = i
    words.append(value[start:])
    return words


def namer_capitals(name: str, source: str) -> str:
    """Default namer: QueryValue -> query_value."""
    return "_".join(word.lower() for word in split_by_capitals(name))


def name_from_field(struct_field: StructField, namer: Namer, source: str) -> str:
    name = struct_field.tag("name")
    if not name:
        name = namer(struct_field.name, source)
    return name


def _field_class(annotation: Any) -> Any:
    origin = get_origin(annotation) or annotation
    return origin if isinstance(origin, type) else None


def get_source_and_type(annotation: Any) -> Tuple[str, Any, bool]:
    """Return (source, value type, is_param) for a field annotation.

    The value type is the wrapper's inner type when the wrapper provides
    one, otherwise the annotation itself.
    """
    cls = _field_class(annotation)
    if cls is None or not issubclass(cls, SourceProvider):
        return "", None, False

    value_type = annotation
    if issubclass(cls, InnerTypeProvider):
        inner = cls.inner_type(annotation)
        if inner is not None:
            value_type = inner
    return cls.source(), value_type, True


def can_parse_type(parser: Parser, value_type: Any, struct_field: StructField):
    """Raise unless `parser` or the field's wrapper type handles `value_type`."""
    try:
        parser(value_type, [""])
        return
    except InvalidParamTypeError:
        pass
    except Exception:
        # a failed parse of "" still means the type was recognised
        return

    cls = _field_class(struct_field.type)
    if cls is not None and issubclass(cls, CustomParser):
        cls.can_parse(parser, struct_field, value_type)
        return

    raise InvalidParamTypeError(value_type)


def info_from_struct(struct: Any, namer: Namer, parser: Optional[Parser]) -> List[ParameterInfo]:
    """Walk a dataclass and describe every param it declares.

    Args:
        struct: The handler input dataclass
        namer: Computes a param name when the field has no name tag
        parser: Parser chain used to check every param type and default

    Returns:
        Params in field declaration order, nested params inline

    Raises:
        NonStructArgumentError: struct is not a dataclass
        NoParserProvidedError: parser is None
        InvalidParamError: a param type or its default cannot be parsed
    """
    if not is_struct(struct):
        raise NonStructArgumentError(struct)

    infos: List[ParameterInfo] = []
    for struct_field in struct_fields(struct):
        infos.extend(_info_from_field(struct, struct_field, namer, parser))

    logger.debug(f"Found {len(infos)} params on {struct.__name__}")
    return infos


def _info_from_field(
    struct: Any, struct_field: StructField, namer: Namer, parser: Optional[Parser]
) -> List[ParameterInfo]:
    source, value_type, is_param = get_source_and_type(struct_field.type)
    if not is_param:
        return _params_from_nested(struct_field, namer, parser)

    if parser is None:
        raise NoParserProvidedError()

    try:
        can_parse_type(parser, value_type, struct_field)
    except InvalidParamError:
        raise
    except InvalidParamTypeError as err:
        raise InvalidParamError(struct=struct, field=struct_field, param_type=value_type) from err

    default = struct_field.tag("default")
    if default:
        try:
            parser(value_type, [default])
        except Exception as err:
            raise InvalidParamError(
                struct=struct,
                field=struct_field,
                param_type=value_type,
                message=f"{UNPARSABLE_DEFAULT}: {default}",
                error=str(err),
            ) from err

    return [
        ParameterInfo(
            name=name_from_field(struct_field, namer, source),
            source=source,
            default=default,
            type=value_type,
            field=struct_field,
            struct=struct,
        )
    ]


def _params_from_nested(
    struct_field: StructField, namer: Namer, parser: Optional[Parser]
) -> List[ParameterInfo]:
    if parser is None:
        raise NoParserProvidedError()

    if not is_struct(struct_field.type):
        return []

    infos = info_from_struct(struct_field.type, namer, parser)
    return [dataclasses.replace(info, parent_fields=[struct_field, *info.parent_fields]) for info in infos]


class Pather(Protocol):
    """Reads a path variable captured by the router."""

    def param(self, name: str, request: Any) -> Optional[str]: ...


class RequestPather:
    """Pather reading the path params the router stored on the request."""

    def param(self, name: str, request: Any) -> Optional[str]:
        return request.path_param(name)


@dataclass
class ParamOpts:
    """Resolved options handed to a param extractor for one field."""

    name: str
    type: Any
    parser: Parser
    default: str = ""
    pather: Optional[Pather] = None
    source: str = ""

    def parse(self, values: Sequence[str]) -> Any:
        """Parse raw values, falling back to the default when none were sent.

        Returns None when there are no values and no default.
        """
        if not values:
            if not self.default:
                return None
            values = [self.default]
        return self.parser(self.type, values)

    def path_value(self, request: Any) -> Optional[str]:
        if self.pather is None:
            return request.path_param(self.name)
        return self.pather.param(self.name, request)
