"""OpenAPI operations and path items."""

import copy
from typing import Any, Dict, List, Optional

from ..schema import TYPE_OBJECT, Builder, Schema
from .parameters import Parameter

# order operations are listed in
METHODS = ("GET", "PUT", "POST", "PATCH", "DELETE", "HEAD", "TRACE", "OPTIONS")


class RequestBodyMissingSchemaError(ValueError):
    def __init__(self, content_type: str):
        super().__init__(f"no schema or ref on request body for {content_type!r}")


class Operation:
    """An OpenAPI operation.

    `ignore` keeps the operation out of the document.
    """

    def __init__(self):
        self.operation_id = ""
        self.summary = ""
        self.description = ""
        self.deprecated = False
        self.tags: List[str] = []
        self.parameters: List[Parameter] = []
        self.request_body: Optional[Dict[str, Any]] = None
        self.responses: Dict[str, Dict[str, Any]] = {}
        self.default_response: Optional[Dict[str, Any]] = None
        self.ignore = False

    def get_parameter(self, name: str, location: str = "") -> Optional[Parameter]:
        """Find a parameter by name, and by location when one is given."""
        for parameter in self.parameters:
            if parameter.name != name:
                continue
            if not location or parameter.location == location:
                return parameter
        return None

    def has_parameter(self, parameter: Parameter) -> bool:
        return self.get_parameter(parameter.name, parameter.location) is not None

    def add_parameter(self, parameter: Parameter):
        self.parameters.append(parameter)

    def set_request_body(self, body: Dict[str, Any]):
        self.request_body = body

    def add_response(self, code: int, response: Dict[str, Any]):
        self.responses[str(code)] = response

    def set_default_response(self, response: Dict[str, Any]):
        self.default_response = response

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.tags:
            data["tags"] = list(self.tags)
        if self.summary:
            data["summary"] = self.summary
        if self.description:
            data["description"] = self.description
        if self.operation_id:
            data["operationId"] = self.operation_id
        if self.parameters:
            data["parameters"] = [parameter.to_dict() for parameter in self.parameters]
        if self.request_body is not None:
            data["requestBody"] = self.request_body

        responses: Dict[str, Any] = {}
        if self.default_response is not None:
            responses["default"] = self.default_response
        responses.update(self.responses)
        if responses:
            data["responses"] = responses

        if self.deprecated:
            data["deprecated"] = True
        return copy.deepcopy(data)


class PathItem:
    """The operations registered for one path, keyed by HTTP method."""

    def __init__(self):
        self.operations: Dict[str, Operation] = {}

    def get_operation(self, method: str) -> Optional[Operation]:
        return self.operations.get(method.upper())

    def set_operation(self, method: str, operation: Operation):
        self.operations[method.upper()] = operation

    def get_operations(self) -> List[tuple]:
        """(method, operation) pairs in a stable order."""
        return [(method, self.operations[method]) for method in METHODS if method in self.operations]

    def to_dict(self) -> Dict[str, Any]:
        return {method.lower(): operation.to_dict() for method, operation in self.get_operations()}


def _parameter_schema(parameter: Parameter) -> Schema:
    if "$ref" in parameter.schema:
        return Builder().reference(parameter.schema["$ref"])
    return Schema(copy.deepcopy(parameter.schema))


def _add_params_to_schema(schema: Builder, parameters: List[Parameter]):
    if not parameters:
        return

    params_schema = Builder().type(TYPE_OBJECT).description("Contains the parameters")

    by_location: Dict[str, List[Parameter]] = {}
    for parameter in parameters:
        by_location.setdefault(parameter.location, []).append(parameter)

    for location, location_params in by_location.items():
        location_schema = Builder().type(TYPE_OBJECT)
        for parameter in location_params:
            location_schema.property(parameter.name, _parameter_schema(parameter))
            if parameter.required:
                location_schema.required(parameter.name)
                params_schema.required(location)
        params_schema.property(location, location_schema.build())

    schema.required("parameters").property("parameters", params_schema.build())


def _add_body_to_schema(schema: Builder, request_body: Optional[Dict[str, Any]], content_type: str):
    if request_body is None:
        return

    media_type = request_body.get("content", {}).get(content_type, {})
    body_schema = media_type.get("schema")
    if not body_schema:
        raise RequestBodyMissingSchemaError(content_type)

    if "$ref" in body_schema:
        schema.property("body", Builder().reference(body_schema["$ref"]))
    else:
        schema.property("body", Schema(copy.deepcopy(body_schema)))

    if request_body.get("required"):
        schema.required("body")


def schema_from_operation(operation: Operation, content_type: str) -> Schema:
    """Build one schema describing an operation's whole request.

    The result is an object with a "parameters" property, grouped by
    location, and a "body" property for the given content type.

    Raises:
        RequestBodyMissingSchemaError: the body has no schema for content_type
    """
    schema = Builder().type(TYPE_OBJECT).description("Contains the request body and all parameters")
    _add_params_to_schema(schema, operation.parameters)
    _add_body_to_schema(schema, operation.request_body, content_type)
    return schema.build()
