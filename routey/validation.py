"""
Named JSON Schema validators.

Schemas are added once, while routes are registered, and validated
against on every request. References are resolved only against schemas
added to the same Validator; nothing is ever fetched remotely.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import jsonschema
from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.exceptions import Unresolvable, Unretrievable
from referencing.jsonschema import DRAFT202012

from .exceptions import RouteyError, SchemaLoadError, SchemaNotFoundError

logger = logging.getLogger(__name__)


def _refuse_remote(uri: str) -> Resource:
    raise SchemaLoadError(f"remote schemas are not supported: {uri}")


class ValidationError(RouteyError):
    """A failed validation with a tree of causes.

    Leaf causes carry a message and a JSON pointer location. The root
    aggregates them.
    """

    def __init__(
        self,
        message: str = "",
        location: str = "",
        causes: Optional[List["ValidationError"]] = None,
        original_error: Optional[jsonschema.ValidationError] = None,
    ):
        self.message = message
        self.location = location
        self.causes = causes or []
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        location = self.location or "/"
        location = location[location.find("#") + 1 :]
        lines = [f"[#{location}]" + (f" {self.message}" if self.message else "")]
        for cause in self.causes:
            lines.extend("  " + line for line in str(cause).split("\n"))
        return "\n".join(lines)


def _pointer(path: Iterable[Any]) -> str:
    parts = [str(part).replace("~", "~0").replace("/", "~1") for part in path]
    return "/" + "/".join(parts)


def _leaf_causes(error: jsonschema.ValidationError) -> List[ValidationError]:
    if not error.context:
        return [ValidationError(message=error.message, location=_pointer(error.absolute_path))]

    causes = []
    for child in error.context:
        causes.extend(_leaf_causes(child))
    return causes


def convert_errors(errors: List[jsonschema.ValidationError]) -> ValidationError:
    """Flatten validation engine errors into one ValidationError."""
    causes: List[ValidationError] = []
    for error in errors:
        causes.extend(_leaf_causes(error))

    return ValidationError(causes=causes, original_error=errors[0] if errors else None)


def _refs(contents: Any) -> Iterable[str]:
    if isinstance(contents, Mapping):
        for key, value in contents.items():
            if key == "$ref" and isinstance(value, str):
                yield value
            else:
                yield from _refs(value)
    elif isinstance(contents, list):
        for item in contents:
            yield from _refs(item)


class Validator:
    """Compiles schemas by name and validates JSON documents against them."""

    def __init__(self):
        self._registry: Registry = Registry(retrieve=_refuse_remote)
        self._schemas: Dict[str, Draft202012Validator] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def add(self, name: str, schema: Union[str, bytes, Mapping[str, Any]]):
        """Compile and register a schema under a name.

        Raises:
            SchemaLoadError: the schema is not valid JSON, is not a valid
                schema, or references something that cannot be resolved
        """
        contents = schema
        if isinstance(schema, (str, bytes)):
            try:
                contents = json.loads(schema)
            except json.JSONDecodeError as err:
                raise SchemaLoadError(f"invalid schema json({name}): {err}") from err

        try:
            Draft202012Validator.check_schema(contents)
        except jsonschema.SchemaError as err:
            raise SchemaLoadError(f"invalid schema({name}): {err.message}") from err

        resource = Resource.from_contents(contents, default_specification=DRAFT202012)
        registry = self._registry.with_resource(name, resource)

        resolver = registry.resolver(base_uri=name)
        for ref in _refs(contents):
            try:
                resolver.lookup(ref)
            except (Unresolvable, Unretrievable) as err:
                raise SchemaLoadError(f"compile({name}): cannot resolve {ref!r}") from err

        self._registry = registry
        self._schemas[name] = Draft202012Validator(contents, registry=registry)
        logger.debug(f"Compiled schema {name!r}")

    def validate(self, name: str, data: Union[str, bytes, Any]):
        """Validate a JSON document, or an already decoded value.

        Raises:
            SchemaNotFoundError: no schema was added under this name
            ValidationError: the document does not match the schema
        """
        validator = self._schemas.get(name)
        if validator is None:
            raise SchemaNotFoundError(name)

        instance = json.loads(data) if isinstance(data, (str, bytes)) else data
        errors = list(validator.iter_errors(instance))
        if errors:
            raise convert_errors(errors)
