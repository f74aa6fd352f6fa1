"""
Typed request handlers for HTTP routers.

Handlers take a single dataclass argument. Its fields declare where each
value comes from (Path, Query, Header, Cookie, JSON), and the same
declaration drives request extraction, OpenAPI parameters and JSON Schema
validation.
"""

from .diagnostics import ANSI_COLORS, NO_COLORS, Colors, render_error
from .exceptions import (
    BodyDecodeError,
    DuplicateOperationIDError,
    DuplicateSchemaError,
    HandlerError,
    InvalidMapKeyError,
    InvalidParamError,
    InvalidParamStyleError,
    InvalidParamTypeError,
    MissingContextError,
    MissingOperationIDError,
    NonStructArgumentError,
    NoParserProvidedError,
    ParamExtractionError,
    RouteyError,
    SchemaLoadError,
    SchemaNotFoundError,
    TypeExtractionError,
    UnknownFieldTypeError,
    UnknownSchemaTypeError,
)
from .extractors import (
    JSON,
    Cookie,
    Extractor,
    ExtractorRegistry,
    Header,
    HandlerParams,
    HandlerResult,
    ParamExtractor,
    Path,
    Query,
    compile_extractor,
    handler,
)
from .models import HTTPMethod, Request, Response, ResponseWriter
from .params import ParameterInfo, ParamOpts, embed, info_from_struct, namer_capitals, param
from .parsers import Parsers, default_parser
from .router import ErrorConfig, ParamConfig, RouteInfo, Router, default_error_sink, default_response_handler
from .scalars import Float32, Float64, Int8, Int16, Int32, Int64, UInt, UInt8, UInt16, UInt32, UInt64
from .schema import Builder, Schema, Schemer
from .validation import ValidationError, Validator

__version__ = "0.1.0"

__all__ = [
    "ANSI_COLORS",
    "BodyDecodeError",
    "Builder",
    "Colors",
    "Cookie",
    "DuplicateOperationIDError",
    "DuplicateSchemaError",
    "ErrorConfig",
    "Extractor",
    "ExtractorRegistry",
    "Float32",
    "Float64",
    "HTTPMethod",
    "HandlerError",
    "HandlerParams",
    "HandlerResult",
    "Header",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "InvalidMapKeyError",
    "InvalidParamError",
    "InvalidParamStyleError",
    "InvalidParamTypeError",
    "JSON",
    "MissingContextError",
    "MissingOperationIDError",
    "NO_COLORS",
    "NoParserProvidedError",
    "NonStructArgumentError",
    "ParamConfig",
    "ParamExtractionError",
    "ParamExtractor",
    "ParamOpts",
    "ParameterInfo",
    "Parsers",
    "Path",
    "Query",
    "Request",
    "Response",
    "ResponseWriter",
    "RouteInfo",
    "Router",
    "RouteyError",
    "Schema",
    "SchemaLoadError",
    "SchemaNotFoundError",
    "Schemer",
    "TypeExtractionError",
    "UInt",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "UnknownFieldTypeError",
    "UnknownSchemaTypeError",
    "ValidationError",
    "Validator",
    "compile_extractor",
    "default_error_sink",
    "default_parser",
    "default_response_handler",
    "embed",
    "handler",
    "info_from_struct",
    "namer_capitals",
    "param",
    "render_error",
]
