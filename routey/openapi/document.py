"""
The OpenAPI 3.1 document.

Component schemas are registered as types are referenced by routes.
Named types are stored once under components/schemas and referenced
with `$ref` from everywhere else.
"""

import copy
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from ..exceptions import DuplicateSchemaError
from ..schema import Schema, Schemer
from .operation import PathItem

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.1.1"
JSON_CONTENT_TYPE = "application/json"
COMPONENT_REF_PATH = "#/components/schemas/"


def default_response_name(code: int) -> str:
    return str(code) if code else "default"


def _refs(spec: Any) -> Iterable[str]:
    if isinstance(spec, dict):
        for key, value in spec.items():
            if key == "$ref" and isinstance(value, str):
                yield value
            else:
                yield from _refs(value)
    elif isinstance(spec, list):
        for item in spec:
            yield from _refs(item)


class OpenAPI:
    """An OpenAPI document populated from registered routes.

    Attributes:
        info: The document's info object
        paths: PathItems keyed by route pattern
        schemas: components/schemas
        responses: components/responses
        schemer: Generates schemas with references into components/schemas
        default_content_type: Content type for bodies and responses when an
            option names none
        strict: Require a unique operation id on every operation
    """

    def __init__(
        self,
        title: str = "",
        version: str = "",
        description: str = "",
        default_content_type: str = JSON_CONTENT_TYPE,
        strict: bool = False,
        schemer: Optional[Schemer] = None,
    ):
        self.info: Dict[str, Any] = {"title": title, "version": version}
        if description:
            self.info["description"] = description
        self.paths: Dict[str, PathItem] = {}
        self.schemas: Dict[str, Dict[str, Any]] = {}
        self.responses: Dict[str, Dict[str, Any]] = {}
        self.schemer = schemer or Schemer(ref_path=COMPONENT_REF_PATH)
        self.default_content_type = default_content_type
        self.strict = strict

    def get_path(self, pattern: str) -> Optional[PathItem]:
        return self.paths.get(pattern)

    def set_path(self, pattern: str, path: PathItem):
        self.paths[pattern] = path

    def add_schema(self, name: str, schema: Union[Schema, Dict[str, Any]]):
        """Store a component schema.

        Raises:
            DuplicateSchemaError: a different schema already has this name
        """
        spec = schema.to_dict() if isinstance(schema, Schema) else copy.deepcopy(schema)
        existing = self.schemas.get(name)
        if existing is not None:
            if existing == spec:
                return
            raise DuplicateSchemaError(name)

        self.schemas[name] = spec
        logger.debug(f"Added component schema {name!r}")

    def _referenced_schemas(self, schema: Schema) -> List[Schema]:
        found: List[Schema] = []
        seen = set()
        pending = list(_refs(schema.spec))
        while pending:
            ref = pending.pop(0)
            if ref in seen:
                continue
            seen.add(ref)
            referenced = self.schemer.get_schema_by_ref(ref)
            if referenced is None:
                continue
            found.append(referenced)
            pending.extend(_refs(referenced.spec))
        return found

    def get_schema_or_ref(
        self,
        value_type: Any,
        force_no_ref: bool = False,
        ignore_add_schema_errors: bool = False,
    ) -> Dict[str, Any]:
        """Return the schema for a type, or a reference to it.

        Every schema it references is added to the components. When the
        schema itself is named, and references are allowed, it is added too
        and a `$ref` is returned in its place.

        Raises:
            DuplicateSchemaError: unless ignore_add_schema_errors is set
        """
        schema = self.schemer.get(value_type)

        def add(named: Schema):
            try:
                self.add_schema(named.name, named)
            except DuplicateSchemaError:
                if not ignore_add_schema_errors:
                    raise

        for referenced in self._referenced_schemas(schema):
            add(referenced)

        if schema.name and not schema.no_ref and not force_no_ref:
            add(schema)
            return {"$ref": self.schemer.new_ref(schema.name)}
        return schema.to_dict()

    def resolve_schema(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        """Follow a top level component `$ref`; other schemas come back as is."""
        ref = spec.get("$ref")
        if not ref or not ref.startswith(COMPONENT_REF_PATH):
            return spec
        return self.schemas.get(ref[len(COMPONENT_REF_PATH) :], spec)

    def standalone_schema(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        """A copy of a schema that carries the components its references point at."""
        resolved = copy.deepcopy(self.resolve_schema(spec))
        if self.schemas:
            resolved["components"] = {"schemas": copy.deepcopy(self.schemas)}
        return resolved

    def register_type(self, value_type: Any, schema: Schema, name: str = "", no_ref: Optional[bool] = None):
        """Use `schema` for `value_type` and add it to the components when it is referenced."""
        self.schemer.set(value_type, schema, name=name, no_ref=no_ref)
        self.get_schema_or_ref(value_type)

    def set_default_response(self, value_type: Any, code: int = 0, *content_types: str):
        """Register a response every operation gets; code 0 is the "default" response."""
        schema = self.get_schema_or_ref(value_type, ignore_add_schema_errors=True)
        response = {
            "description": "",
            "content": {
                content_type: {"schema": copy.deepcopy(schema)}
                for content_type in (content_types or (self.default_content_type,))
            },
        }
        self.responses[default_response_name(code)] = response

    def get_default_response(self, code: int = 0) -> Optional[Dict[str, Any]]:
        response = self.responses.get(default_response_name(code))
        return copy.deepcopy(response) if response is not None else None

    def to_dict(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": copy.deepcopy(self.info)}
        if self.paths:
            document["paths"] = {pattern: path.to_dict() for pattern, path in self.paths.items()}

        components: Dict[str, Any] = {}
        if self.schemas:
            components["schemas"] = copy.deepcopy(self.schemas)
        if self.responses:
            components["responses"] = copy.deepcopy(self.responses)
        if components:
            document["components"] = components
        return document

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)
