"""
Exceptions raised while compiling routes and extracting request data.
"""
from typing import Any, List, Optional


class RouteyError(Exception):
    """Base exception for routey errors."""

    pass


class NonStructArgumentError(RouteyError):
    """Raised when a handler input is not a dataclass."""

    def __init__(self, value_type: Any):
        self.value_type = value_type
        super().__init__(f"handler argument should be a struct: got: {value_type!r}")


class NoParserProvidedError(RouteyError):
    """Raised when nested param structs are walked without a parser."""

    def __init__(self, message: str = "no parser provided"):
        super().__init__(message)


class InvalidParamTypeError(RouteyError):
    """Signals that a parser does not handle the requested type.

    Parsers raise this to let the next parser in a chain try instead.
    """

    def __init__(self, value_type: Any = None):
        self.value_type = value_type
        message = "invalid param type"
        if value_type is not None:
            message = f"{message}: {getattr(value_type, '__name__', value_type)}"
        super().__init__(message)


UNPARSABLE_DEFAULT = "default value cannot be parsed"


class InvalidParamError(RouteyError):
    """Raised at registration when a param type or its default cannot be parsed.

    Attributes:
        struct: The dataclass owning the field
        field: The offending StructField
        param_type: The value type the parser was asked about
        message: Headline for the failure
        error: Detail from the underlying parser, if any
        underline_all: Underline the whole field instead of only its type
    """

    def __init__(
        self,
        struct: Any = None,
        field: Any = None,
        param_type: Any = None,
        message: str = "",
        error: str = "",
        underline_all: bool = False,
    ):
        self.struct = struct
        self.field = field
        self.param_type = param_type
        self.message = message or "cannot determine how to parse param"
        self.error = error
        self.underline_all = underline_all
        super().__init__(self.message)

    def render(self, colors: Any = None) -> str:
        from . import diagnostics

        return diagnostics.render_invalid_param(self, colors or diagnostics.NO_COLORS)

    def __str__(self) -> str:
        return self.render()


class UnknownFieldTypeError(RouteyError):
    """Raised when no extraction strategy exists for a field.

    `related_found` lists extractor capabilities matched by the
    Optional-wrapped or unwrapped form of the field type.
    """

    def __init__(self, struct: Any = None, field: Any = None, related_found: Optional[List[str]] = None):
        self.struct = struct
        self.field = field
        self.related_found = related_found or []
        super().__init__("cannot determine how to extract field")

    def render(self, colors: Any = None) -> str:
        from . import diagnostics

        return diagnostics.render_unknown_field(self, colors or diagnostics.NO_COLORS)

    def __str__(self) -> str:
        return self.render()


class InvalidMapKeyError(RouteyError):
    """Raised when a mapping with non-string keys is given to the schemer."""

    def __init__(self, key_type: Any):
        self.key_type = key_type
        super().__init__(f"invalid map key type, only str is supported: got {key_type!r}")


class UnknownSchemaTypeError(RouteyError):
    """Raised when no schema can be derived for a type."""

    def __init__(self, value_type: Any, reason: str = "unsupported type"):
        self.value_type = value_type
        super().__init__(f"cannot create schema for {value_type!r}: {reason}")


class InvalidParamStyleError(RouteyError):
    """Raised when a param's style, location and data type do not combine.

    `kind` is one of "location", "type" or "tag", naming the violated axis.
    """

    def __init__(
        self,
        struct: Any = None,
        field: Any = None,
        kind: str = "",
        style: str = "",
        location: str = "",
        data_type: str = "",
        error: str = "",
        param_type: Any = None,
        help_text: str = "",
    ):
        self.struct = struct
        self.field = field
        self.kind = kind
        self.style = style
        self.location = location
        self.data_type = data_type
        self.error = error
        self.param_type = param_type
        self.help_text = help_text
        if kind == "location":
            self.message = f"invalid location for style {style!r}: {location}"
            self.underline_message = f"style {style!r} is not valid in {location}"
        elif kind == "type":
            self.message = f"invalid type for style {style!r}: {data_type}"
            self.underline_message = f"style {style!r} does not support {data_type}"
        else:
            self.message = f"failed parsing tag: {error}"
            self.underline_message = error
        super().__init__(self.message)

    def render(self, colors: Any = None) -> str:
        from . import diagnostics

        return diagnostics.render_param_style(self, colors or diagnostics.NO_COLORS)

    def __str__(self) -> str:
        return self.render()


class ParamExtractionError(RouteyError):
    """Raised when a request value cannot be parsed into its param."""

    def __init__(self, name: str, source: str, error: BaseException):
        self.name = name
        self.source = source
        self.error = error
        super().__init__(f"failed to extract param: {source}.{name}: {error}")


class TypeExtractionError(RouteyError):
    """Raised when a registered type extractor fails."""

    def __init__(self, value_type: Any, error: BaseException):
        self.value_type = value_type
        self.error = error
        name = getattr(value_type, "__name__", repr(value_type))
        super().__init__(f"error extracting type {name}: {error}")


class BodyDecodeError(RouteyError):
    """Raised when a request body cannot be decoded."""

    def __init__(self, value_type: Any, error: BaseException):
        self.value_type = value_type
        self.error = error
        super().__init__(f"failed to decode body: {error}")


class SchemaNotFoundError(RouteyError):
    """Raised when validating against a schema name that was never added."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"schema not found: {name}")


class SchemaLoadError(RouteyError):
    """Raised when a schema document cannot be added to a validator."""

    pass


class DuplicateSchemaError(RouteyError):
    """Raised when a different schema is already registered under a name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name}: already exists in the schema")


class MissingOperationIDError(RouteyError):
    """Raised in strict mode when an operation has no id."""

    def __init__(self):
        super().__init__("operation id required")


class DuplicateOperationIDError(RouteyError):
    """Raised in strict mode when an operation id is already in use."""

    def __init__(self, operation_id: str, path: str):
        self.operation_id = operation_id
        self.path = path
        super().__init__(f"{operation_id!r} operation id already exists: path={path!r}")


class MissingContextError(RouteyError):
    """Raised when a route's context holds no OpenAPI state."""

    def __init__(self):
        super().__init__("openapi context not found in route context")


class HandlerError(RouteyError):
    """A registration failure tied to a specific route and handler.

    Attributes:
        pattern: "METHOD /full/pattern" of the route
        handler: The handler function
        error: The underlying exception
    """

    def __init__(self, pattern: str, handler: Any, error: BaseException):
        self.pattern = pattern
        self.handler = handler
        self.error = error
        super().__init__(pattern)

    def render(self, colors: Any = None) -> str:
        from . import diagnostics

        return diagnostics.render_handler_error(self, colors or diagnostics.NO_COLORS)

    def __str__(self) -> str:
        return self.render()
