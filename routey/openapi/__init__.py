"""
OpenAPI 3.1 support: document generation from registered routes, route
options describing operations, and validating extractors.
"""

from . import options
from .document import COMPONENT_REF_PATH, JSON_CONTENT_TYPE, OPENAPI_VERSION, OpenAPI
from .extractors import JSON, Query
from .operation import Operation, PathItem, schema_from_operation
from .parameters import (
    DATA_TYPE_ARRAY,
    DATA_TYPE_OBJECT,
    DATA_TYPE_PRIMITIVE,
    STYLE_DEEP_OBJECT,
    STYLE_FORM,
    STYLE_LABEL,
    STYLE_MATRIX,
    STYLE_PIPE_DELIMITED,
    STYLE_SIMPLE,
    STYLE_SPACE_DELIMITED,
    Parameter,
    build_help_text,
    from_info,
)
from .router import (
    OpenAPIContext,
    add_spec_to_router,
    context_from_route,
    new_router,
    operation_from_context,
)

__all__ = [
    "COMPONENT_REF_PATH",
    "DATA_TYPE_ARRAY",
    "DATA_TYPE_OBJECT",
    "DATA_TYPE_PRIMITIVE",
    "JSON",
    "JSON_CONTENT_TYPE",
    "OPENAPI_VERSION",
    "OpenAPI",
    "OpenAPIContext",
    "Operation",
    "Parameter",
    "PathItem",
    "Query",
    "STYLE_DEEP_OBJECT",
    "STYLE_FORM",
    "STYLE_LABEL",
    "STYLE_MATRIX",
    "STYLE_PIPE_DELIMITED",
    "STYLE_SIMPLE",
    "STYLE_SPACE_DELIMITED",
    "add_spec_to_router",
    "build_help_text",
    "context_from_route",
    "from_info",
    "new_router",
    "operation_from_context",
    "options",
    "schema_from_operation",
]
