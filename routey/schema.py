"""
JSON Schema generation from Python types.

The Schemer turns type annotations (primitives, sequences, mappings,
Optional, Literal, Enum and dataclasses) into JSON Schema documents.
Named types are generated once, cached per Schemer, and referenced with
`$ref` wherever they appear again.
"""

import copy
import dataclasses
import datetime
import decimal
import logging
import types
import uuid
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Set, Union, get_args, get_origin

from .exceptions import InvalidMapKeyError, UnknownSchemaTypeError
from .params import StructField, is_struct, struct_fields
from .scalars import Float32, Float64, Int32, Int64, UInt32, UInt64, is_signed, is_unsigned

logger = logging.getLogger(__name__)

TYPE_STRING = "string"
TYPE_NUMBER = "number"
TYPE_INTEGER = "integer"
TYPE_OBJECT = "object"
TYPE_ARRAY = "array"
TYPE_BOOLEAN = "boolean"
TYPE_NULL = "null"

FORMAT_INT32 = "int32"
FORMAT_INT64 = "int64"
FORMAT_FLOAT = "float"
FORMAT_DOUBLE = "double"
FORMAT_PASSWORD = "password"
FORMAT_DATE_TIME = "date-time"
FORMAT_DATE = "date"
FORMAT_TIME = "time"
FORMAT_DURATION = "duration"
FORMAT_EMAIL = "email"
FORMAT_HOSTNAME = "hostname"
FORMAT_IPV4 = "ipv4"
FORMAT_IPV6 = "ipv6"
FORMAT_UUID = "uuid"
FORMAT_URI = "uri"
FORMAT_URI_REFERENCE = "uri-reference"
FORMAT_REGEX = "regex"

NoneType = type(None)
SEQUENCE_TYPES = (list, set, frozenset, tuple)
MAPPING_TYPES = (dict,)


class Schema:
    """A JSON Schema document plus the naming data used for references.

    Attributes:
        spec: The JSON Schema keywords
        name: Component name; empty for anonymous schemas
        no_ref: Always inline this schema, even when named
        ref: When set, this schema serializes as {"$ref": ref}
    """

    def __init__(self, spec: Optional[Dict[str, Any]] = None, name: str = "", no_ref: bool = False, ref: str = ""):
        self.spec: Dict[str, Any] = spec if spec is not None else {}
        self.name = name
        self.no_ref = no_ref
        self.ref = ref

    def to_dict(self) -> Dict[str, Any]:
        if self.ref:
            return {"$ref": self.ref}
        return copy.deepcopy(self.spec)

    def copy(self) -> "Schema":
        return Schema(copy.deepcopy(self.spec), name=self.name, no_ref=self.no_ref, ref=self.ref)

    @property
    def types(self) -> List[str]:
        value = self.spec.get("type")
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return list(value)

    def has_type(self) -> bool:
        return bool(self.types)

    def add_type(self, value: str):
        current = self.types
        if value in current:
            return
        current.append(value)
        self.spec["type"] = current[0] if len(current) == 1 else current

    def property(self, name: str) -> "Builder":
        """Return a builder that edits an existing property in place.

        Raises:
            KeyError: no such property
            ValueError: the property is a reference and cannot be edited
        """
        properties = self.spec.get("properties", {})
        if name not in properties:
            raise KeyError(f"{self.name}: property does not exist: {name}\nhave: {sorted(properties)}")

        prop = properties[name]
        if "$ref" in prop:
            raise ValueError(f"empty spec for {name!r}, references({prop['$ref']}) not supported")
        return Builder(prop)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self.to_dict() == other.to_dict() and self.name == other.name

    def __repr__(self) -> str:
        return f"Schema(name={self.name!r}, spec={self.to_dict()!r})"


class Builder:
    """Fluent construction of schemas.

    Example:
        schema = Builder().type(TYPE_STRING).min_length(1).max_length(64).build()
    """

    def __init__(self, spec: Optional[Dict[str, Any]] = None):
        self._spec: Dict[str, Any] = spec if spec is not None else {}

    def build(self) -> Schema:
        return Schema(self._spec)

    def reference(self, ref: str) -> Schema:
        return Schema({"$ref": ref})

    def _set(self, key: str, value: Any) -> "Builder":
        self._spec[key] = value
        return self

    def type(self, *types: str) -> "Builder":
        return self._set("type", types[0] if len(types) == 1 else list(types))

    def description(self, value: str) -> "Builder":
        return self._set("description", value)

    def title(self, value: str) -> "Builder":
        return self._set("title", value)

    def default(self, value: Any) -> "Builder":
        return self._set("default", value)

    def const(self, value: Any) -> "Builder":
        return self._set("const", value)

    def examples(self, *values: Any) -> "Builder":
        return self._set("examples", list(values))

    def enum(self, *values: Any) -> "Builder":
        return self._set("enum", list(values))

    def deprecated(self, value: bool = True) -> "Builder":
        return self._set("deprecated", value)

    def read_only(self, value: bool = True) -> "Builder":
        return self._set("readOnly", value)

    def write_only(self, value: bool = True) -> "Builder":
        return self._set("writeOnly", value)

    # strings

    def format(self, value: str) -> "Builder":
        return self._set("format", value)

    def pattern(self, value: str) -> "Builder":
        return self._set("pattern", value)

    def min_length(self, n: int) -> "Builder":
        return self._set("minLength", n)

    def max_length(self, n: int) -> "Builder":
        return self._set("maxLength", n)

    def length(self, n: int) -> "Builder":
        return self.min_length(n).max_length(n)

    # numbers

    def multiple_of(self, n: Union[int, float]) -> "Builder":
        return self._set("multipleOf", n)

    def minimum(self, n: Union[int, float]) -> "Builder":
        return self._set("minimum", n)

    def maximum(self, n: Union[int, float]) -> "Builder":
        return self._set("maximum", n)

    def exclusive_minimum(self, n: Union[int, float]) -> "Builder":
        return self._set("exclusiveMinimum", n)

    def exclusive_maximum(self, n: Union[int, float]) -> "Builder":
        return self._set("exclusiveMaximum", n)

    # arrays

    def items(self, schema: Union[Schema, Dict[str, Any]]) -> "Builder":
        return self._set("items", _as_dict(schema))

    def min_items(self, n: int) -> "Builder":
        return self._set("minItems", n)

    def max_items(self, n: int) -> "Builder":
        return self._set("maxItems", n)

    def unique_items(self, value: bool = True) -> "Builder":
        return self._set("uniqueItems", value)

    def min_contains(self, n: int) -> "Builder":
        return self._set("minContains", n)

    def max_contains(self, n: int) -> "Builder":
        return self._set("maxContains", n)

    # objects

    def property(self, name: str, schema: Union[Schema, Dict[str, Any]]) -> "Builder":
        self._spec.setdefault("properties", {})[name] = _as_dict(schema)
        return self

    def required(self, *names: str) -> "Builder":
        required = self._spec.setdefault("required", [])
        for name in names:
            if name not in required:
                required.append(name)
        return self

    def additional_properties(self, schema: Union[bool, Schema, Dict[str, Any]]) -> "Builder":
        value = schema if isinstance(schema, bool) else _as_dict(schema)
        return self._set("additionalProperties", value)

    def min_properties(self, n: int) -> "Builder":
        return self._set("minProperties", n)

    def max_properties(self, n: int) -> "Builder":
        return self._set("maxProperties", n)


def _as_dict(schema: Union[Schema, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(schema, Schema):
        return schema.to_dict()
    return schema


def date_time_schema() -> Schema:
    return Builder().type(TYPE_STRING).format(FORMAT_DATE_TIME).build()


def get_type_name(value_type: Any) -> str:
    """Name used for a type's component schema."""
    value_type = unwrap_optional(value_type) or value_type
    return getattr(value_type, "__name__", "")


def json_field_name(struct_field: StructField) -> str:
    """Property name for a field; empty means the field is skipped."""
    tag = struct_field.tag("json")
    if tag == "-":
        return ""
    name = tag.split(",")[0] if tag else ""
    return name or struct_field.name


def unwrap_optional(value_type: Any) -> Any:
    """Return T for Optional[T], otherwise None."""
    if get_origin(value_type) not in (Union, types.UnionType):
        return None
    args = [arg for arg in get_args(value_type) if arg is not NoneType]
    if len(args) == 1 and len(get_args(value_type)) == 2:
        return args[0]
    return None


class Schemer:
    """Generates and caches schemas for types.

    Attributes:
        ref_path: Prefix for generated references. Empty disables references.
        default_struct_require: Mark every non-Optional dataclass field required.
        type_namer: Computes the component name of a type.
    """

    def __init__(
        self,
        ref_path: str = "/schemas/",
        default_struct_require: bool = False,
        type_namer: Callable[[Any], str] = get_type_name,
    ):
        self.ref_path = ref_path
        self.default_struct_require = default_struct_require
        self.type_namer = type_namer
        self._types: Dict[Any, Schema] = {}
        self._in_progress: Set[Any] = set()

    @property
    def use_refs(self) -> bool:
        return self.ref_path != ""

    def has(self, value_type: Any) -> bool:
        return value_type in self._types

    def get(self, value_type: Any) -> Schema:
        """Return the schema for a type.

        Raises:
            InvalidMapKeyError: a mapping with non-str keys was found
            UnknownSchemaTypeError: a type has no schema representation
        """
        return self._schema_from_type(value_type).copy()

    def get_schema_by_ref(self, ref: str) -> Optional[Schema]:
        for schema in self._types.values():
            if schema.name and self.new_ref(schema.name) == ref:
                return schema.copy()
        return None

    def set(self, value_type: Any, schema: Schema, name: str = "", no_ref: Optional[bool] = None) -> Schema:
        """Register an explicit schema for a type."""
        schema = schema.copy()
        if name:
            schema.name = name
        if no_ref is not None:
            schema.no_ref = no_ref
        if not schema.name:
            schema.name = self.type_namer(value_type)
        self._types[value_type] = schema
        logger.debug(f"Registered schema {schema.name!r} for {value_type!r}")
        return schema

    def new_ref(self, name: str) -> str:
        if not name:
            return ""
        return self.ref_path + name

    def ref_or_spec(self, value_type: Any, schema: Schema, use_ref: bool) -> Dict[str, Any]:
        """Return a reference to a cached named type, otherwise the inline schema."""
        cached = self._types.get(value_type)
        if cached is not None and use_ref and cached.name:
            return {"$ref": self.new_ref(cached.name)}
        if value_type in self._in_progress:
            raise UnknownSchemaTypeError(value_type, "recursive type requires references")
        return copy.deepcopy(schema.spec)

    def _schema_from_type(self, value_type: Any) -> Schema:
        if value_type is None or value_type is NoneType:
            return Schema({"type": TYPE_NULL})

        if value_type in self._types:
            return self._types[value_type]

        if isinstance(value_type, type) and hasattr(value_type, "json_schema"):
            schema = value_type.json_schema()
            if not schema.name:
                schema.name = self.type_namer(value_type)
            self._types[value_type] = schema
            return self._apply_extensions(value_type, schema)

        schema = self._create_schema(value_type)
        return self._apply_extensions(value_type, schema)

    def _apply_extensions(self, value_type: Any, schema: Schema) -> Schema:
        extend = getattr(value_type, "json_schema_extend", None) if isinstance(value_type, type) else None
        if extend is None:
            return schema

        extend(schema)
        if value_type in self._types:
            self._types[value_type] = schema
        return schema

    def _create_schema(self, value_type: Any) -> Schema:
        origin = get_origin(value_type)

        if origin is Annotated:
            return self._schema_from_type(get_args(value_type)[0])
        if value_type is Any or value_type is object:
            return Schema()
        if origin is Literal:
            return self._create_literal_schema(value_type)
        if origin in (Union, types.UnionType):
            return self._create_union_schema(value_type)
        if value_type in SEQUENCE_TYPES or origin in SEQUENCE_TYPES:
            return self._create_array_schema(value_type)
        if value_type in MAPPING_TYPES or origin in MAPPING_TYPES:
            return self._create_map_schema(value_type)
        if is_struct(value_type):
            return self._create_struct_schema(value_type)
        if isinstance(value_type, type) and issubclass(value_type, Enum):
            return self._create_enum_schema(value_type)

        schema = _create_scalar_schema(value_type)
        if schema is not None:
            return schema

        supertype = getattr(value_type, "__supertype__", None)
        if supertype is not None:
            return self._schema_from_type(supertype)

        if isinstance(value_type, type):
            for base in (bool, str, int, float):
                if issubclass(value_type, base):
                    return _create_scalar_schema(base)

        raise UnknownSchemaTypeError(value_type)

    def _create_literal_schema(self, value_type: Any) -> Schema:
        values = list(get_args(value_type))
        schema = Schema({"enum": values})
        value_types = {_json_type(value) for value in values}
        if len(value_types) == 1:
            schema.spec["type"] = value_types.pop()
        return schema

    def _create_enum_schema(self, value_type: Any) -> Schema:
        schema = self._create_literal_schema(Literal[tuple(member.value for member in value_type)])
        schema.name = self.type_namer(value_type)
        self._types[value_type] = schema
        return schema

    def _create_union_schema(self, value_type: Any) -> Schema:
        inner = unwrap_optional(value_type)
        if inner is None:
            any_of = []
            for arg in get_args(value_type):
                arg_schema = self._schema_from_type(arg)
                any_of.append(self.ref_or_spec(arg, arg_schema, self.use_refs and not arg_schema.no_ref))
            return Schema({"anyOf": any_of})

        if inner in self._in_progress:
            ref = self.ref_or_spec(inner, self._types[inner], self.use_refs)
            return Schema({"anyOf": [ref, {"type": TYPE_NULL}]})

        schema = self._schema_from_type(inner).copy()
        schema.name = ""
        if schema.has_type():
            schema.add_type(TYPE_NULL)
        if "enum" in schema.spec and None not in schema.spec["enum"]:
            schema.spec["enum"].append(None)
        return schema

    def _create_array_schema(self, value_type: Any) -> Schema:
        origin = get_origin(value_type) or value_type
        args = get_args(value_type)
        schema = Schema({"type": TYPE_ARRAY})
        if origin in (set, frozenset):
            schema.spec["uniqueItems"] = True

        if origin is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            schema.spec["prefixItems"] = [self._item_schema(arg) for arg in args]
            schema.spec["minItems"] = len(args)
            schema.spec["maxItems"] = len(args)
            return schema

        if args:
            item = self._item_schema(args[0])
            if item:
                schema.spec["items"] = item
        return schema

    def _item_schema(self, item_type: Any) -> Dict[str, Any]:
        item_schema = self._schema_from_type(item_type)
        if not item_schema.spec and item_type not in self._types:
            return {}
        return self.ref_or_spec(item_type, item_schema, self.use_refs and not item_schema.no_ref)

    def _create_map_schema(self, value_type: Any) -> Schema:
        args = get_args(value_type)
        schema = Schema({"type": TYPE_OBJECT})
        if not args:
            return schema

        key_type, item_type = args
        if key_type is not str:
            raise InvalidMapKeyError(key_type)

        item = self._item_schema(item_type)
        if item:
            schema.spec["additionalProperties"] = item
        return schema

    def _create_struct_schema(self, value_type: Any) -> Schema:
        name = self.type_namer(value_type)
        no_ref = bool(getattr(value_type, "json_schema_no_ref", False))

        self._types[value_type] = Schema({"type": TYPE_OBJECT}, name=name, no_ref=no_ref)
        self._in_progress.add(value_type)
        try:
            schema = self._schema_from_struct(value_type)
        except Exception:
            del self._types[value_type]
            raise
        finally:
            self._in_progress.discard(value_type)

        schema.name = name
        schema.no_ref = no_ref
        self._types[value_type] = schema
        logger.debug(f"Created schema {name!r}")
        return schema

    def _schema_from_struct(self, value_type: Any) -> Schema:
        schema = Schema({"type": TYPE_OBJECT, "properties": {}})
        fields = struct_fields(value_type)

        for struct_field in fields:
            if struct_field.name.startswith("_"):
                continue

            had_type = struct_field.type in self._types
            field_schema = self._schema_from_type(struct_field.type)

            if struct_field.embedded:
                if not had_type:
                    self._types.pop(struct_field.type, None)

                if len(fields) == 1:
                    schema = field_schema.copy()
                else:
                    embedded = field_schema.spec.get("properties", {})
                    schema.spec["properties"].update(copy.deepcopy(embedded))
                continue

            self._add_property(schema, struct_field, field_schema)

        return schema

    def _add_property(self, schema: Schema, struct_field: StructField, field_schema: Schema):
        name = json_field_name(struct_field)
        if not name:
            return

        use_ref = self.use_refs and not field_schema.no_ref
        prop = self.ref_or_spec(struct_field.type, field_schema, use_ref)
        _load_schema_options(struct_field, prop)
        schema.spec["properties"][name] = prop

        if self.default_struct_require and unwrap_optional(struct_field.type) is None:
            schema.spec.setdefault("required", []).append(name)


def _load_schema_options(struct_field: StructField, prop: Dict[str, Any]):
    default = struct_field.tag("default")
    if default != "":
        prop["default"] = default

    doc = struct_field.tag("doc")
    if doc:
        prop["description"] = doc


def _json_type(value: Any) -> str:
    if value is None:
        return TYPE_NULL
    if isinstance(value, bool):
        return TYPE_BOOLEAN
    if isinstance(value, int):
        return TYPE_INTEGER
    if isinstance(value, float):
        return TYPE_NUMBER
    return TYPE_STRING


def _create_scalar_schema(value_type: Any) -> Optional[Schema]:
    if value_type is bool:
        return Schema({"type": TYPE_BOOLEAN})
    if value_type is str:
        return Schema({"type": TYPE_STRING})
    if is_signed(value_type):
        return _create_int_schema(value_type)
    if is_unsigned(value_type):
        schema = _create_int_schema(value_type)
        schema.spec["minimum"] = 0
        return schema
    if value_type is Float32:
        return Schema({"type": TYPE_NUMBER, "format": FORMAT_FLOAT})
    if value_type in (float, Float64):
        return Schema({"type": TYPE_NUMBER, "format": FORMAT_DOUBLE})
    if value_type is decimal.Decimal:
        return Schema({"type": TYPE_NUMBER})
    if value_type is datetime.datetime:
        return date_time_schema()
    if value_type is datetime.date:
        return Schema({"type": TYPE_STRING, "format": FORMAT_DATE})
    if value_type is datetime.time:
        return Schema({"type": TYPE_STRING, "format": FORMAT_TIME})
    if value_type is uuid.UUID:
        return Schema({"type": TYPE_STRING, "format": FORMAT_UUID})
    return None


def _create_int_schema(value_type: Any) -> Schema:
    schema = Schema({"type": TYPE_INTEGER})
    if value_type in (Int32, UInt32):
        schema.spec["format"] = FORMAT_INT32
    elif value_type in (Int64, UInt64):
        schema.spec["format"] = FORMAT_INT64
    return schema
