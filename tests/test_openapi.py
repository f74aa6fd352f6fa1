"""
Tests for OpenAPI document generation, route options and request validation.
"""

import json
from dataclasses import dataclass

import pytest
from openapi_spec_validator import OpenAPIV31SpecValidator, validate

from routey import (
    DuplicateOperationIDError,
    DuplicateSchemaError,
    Header,
    HTTPMethod,
    InvalidParamError,
    InvalidParamStyleError,
    MissingContextError,
    MissingOperationIDError,
    Path,
    Router,
    Schema,
    default_parser,
    info_from_struct,
    namer_capitals,
    param,
)
from routey.openapi import (
    COMPONENT_REF_PATH,
    JSON,
    JSON_CONTENT_TYPE,
    OPENAPI_VERSION,
    OpenAPI,
    Operation,
    Query,
    add_spec_to_router,
    build_help_text,
    from_info,
    new_router,
    options,
    schema_from_operation,
)
from routey.openapi.operation import RequestBodyMissingSchemaError
from routey.openapi.parameters import valid_styles_for_location, valid_styles_for_type
from routey.schema import Schemer


@dataclass
class Item:
    name: str
    price: float

    @classmethod
    def json_schema_extend(cls, schema):
        schema.property("price").minimum(0)


@dataclass
class LineItem:
    item: Item
    quantity: int


@dataclass
class Order:
    lines: list[LineItem]


@dataclass
class ErrorBody:
    message: str


@dataclass
class PriceFilter:
    low: int
    high: int

    @classmethod
    def json_schema_extend(cls, schema):
        schema.property("low").minimum(0)


class Code:
    def __init__(self, value):
        self.value = value

    @classmethod
    def from_text(cls, raw):
        return cls(raw)

    @classmethod
    def json_schema(cls):
        return Schema({"type": "string"})

    @classmethod
    def json_schema_extend(cls, schema):
        schema.spec["default"] = "schema"


@dataclass
class Paging:
    page: int

    @classmethod
    def json_schema_extend(cls, schema):
        schema.property("page").default("1.")


@dataclass
class ItemPath:
    id: Path[int]


@dataclass
class ListItems:
    limit: Query[int] = param(default="10", minimum=1, description="Page size")
    tags: Query[list[str]] = param(explode=False)
    token: Header[str] = param("X-Token")


@dataclass
class CreateItem:
    item: JSON[Item] = param(required=True, description="The item to create")


@dataclass
class Search:
    q: Query[str] = param(required=True)


@dataclass
class FilterItems:
    price: Query[PriceFilter] = param(style="deepObject")


def item_ref():
    return {"$ref": f"{COMPONENT_REF_PATH}Item"}


def params_of(struct):
    return info_from_struct(struct, namer_capitals, default_parser())


def parameter_for(struct, index=0):
    return from_info(params_of(struct)[index], Schemer(ref_path=COMPONENT_REF_PATH))


def style_error(struct):
    with pytest.raises(InvalidParamStyleError) as exc_info:
        parameter_for(struct)
    return exc_info.value


@pytest.fixture
def api(sink):
    router = Router(error_sink=sink)
    document = add_spec_to_router(router, document=OpenAPI(title="Items", version="1.0"))
    return router, document


class TestStyleRules:
    """Test which styles each location and data type allow."""

    def test_styles_for_location(self):
        assert valid_styles_for_location("path") == ["label", "matrix", "simple"]
        assert valid_styles_for_location("query") == ["deepObject", "form", "pipeDelimited", "spaceDelimited"]
        assert valid_styles_for_location("header") == ["simple"]
        assert valid_styles_for_location("cookie") == ["form"]

    def test_styles_for_type(self):
        assert valid_styles_for_type("primitive") == ["form", "label", "matrix", "simple"]
        assert "deepObject" in valid_styles_for_type("object")

    def test_help_text(self):
        text = build_help_text("deepObject", "primitive", "query")
        sections = text.split("\n\n")

        assert len(sections) == 3
        assert sections[0].startswith("style 'deepObject' supports:")
        assert "| object |" in sections[0]
        assert sections[1].startswith("type 'primitive' supports:")
        assert sections[2].startswith("location 'query' supports:")

    def test_help_text_skips_empty_axes(self):
        assert build_help_text("form", "", "").startswith("style 'form' supports:")
        assert "\n\n" not in build_help_text("form", "", "")


class TestParameters:
    """Test building parameter objects from params."""

    def test_query_defaults_to_exploded_form(self):
        parameter = parameter_for(ListItems)

        assert parameter.to_dict() == {
            "name": "limit",
            "in": "query",
            "description": "Page size",
            "style": "form",
            "explode": True,
            "schema": {"type": "integer", "default": "10", "minimum": 1},
        }

    def test_explode_tag(self):
        parameter = parameter_for(ListItems, 1)

        assert parameter.explode is False
        assert parameter.to_dict()["explode"] is False
        assert parameter.schema == {"type": "array", "items": {"type": "string"}}

    def test_header_defaults_to_simple(self):
        parameter = parameter_for(ListItems, 2)

        assert parameter.name == "X-Token"
        assert parameter.to_dict() == {"name": "X-Token", "in": "header", "style": "simple", "schema": {"type": "string"}}

    def test_path_is_always_required(self):
        @dataclass
        class Input:
            id: Path[int] = param(required="false")

        assert parameter_for(Input).required is True

    def test_boolean_tags(self):
        @dataclass
        class Input:
            q: Query[str] = param(required="true", deprecated=True, reserved="1")

        data = parameter_for(Input).to_dict()
        assert data["required"] is True
        assert data["deprecated"] is True
        assert data["allowReserved"] is True

    def test_schema_default_beats_tag(self):
        @dataclass
        class Input:
            code: Query[Code] = param(default="tag")

        assert parameter_for(Input).schema == {"type": "string", "default": "schema"}

    def test_tag_default_fills_missing_schema_default(self):
        assert parameter_for(ListItems).schema["default"] == "10"

    def test_style_not_allowed_for_type(self):
        @dataclass
        class Input:
            value: Query[int] = param(style="deepObject")

        err = style_error(Input)
        assert err.kind == "type"
        assert err.data_type == "primitive"
        assert err.message == "invalid type for style 'deepObject': primitive"
        assert "style 'deepObject' supports:" in err.help_text

    def test_style_not_allowed_in_location(self):
        @dataclass
        class Input:
            value: Query[int] = param(style="matrix")

        err = style_error(Input)
        assert err.kind == "location"
        assert err.location == "query"
        assert str(err).startswith("error: openapi: invalid location for style 'matrix': query")

    def test_unknown_style(self):
        @dataclass
        class Input:
            value: Query[int] = param(style="bogus")

        err = style_error(Input)
        assert err.kind == "tag"
        assert err.message == "failed parsing tag: 'style': invalid parameter style: 'bogus'"

    def test_unparseable_bool_tag(self):
        @dataclass
        class Input:
            value: Query[int] = param(explode="maybe")

        assert style_error(Input).message == "failed parsing tag: 'explode': invalid syntax: 'maybe'"

    def test_deep_object_parameter(self):
        parameter = parameter_for(FilterItems)
        assert parameter.style == "deepObject"
        assert parameter.schema["type"] == "object"


class TestDocument:
    """Test the document built from registered routes."""

    def register(self, router):
        @router.get(
            "/items",
            options.summary("List items"),
            options.tags("items"),
            options.response(list[Item], 200, "The items"),
        )
        def list_items(params: ListItems) -> list:
            return []

        @router.get("/items/{id}", options.response(Item, 200, "The item"))
        def get_item(params: ItemPath) -> Item:
            return Item(name="lamp", price=1.0)

        @router.post("/items", options.response(Item, 201, "Created"))
        def create_item(params: CreateItem) -> Item:
            return params.item.value

    def test_document_is_valid(self, api, sink):
        router, document = api
        self.register(router)

        assert sink.errors == []
        validate(document.to_dict(), cls=OpenAPIV31SpecValidator)

    def test_header(self, api):
        _, document = api
        data = document.to_dict()

        assert data["openapi"] == OPENAPI_VERSION
        assert data["info"] == {"title": "Items", "version": "1.0"}

    def test_operations(self, api):
        router, document = api
        self.register(router)
        paths = document.to_dict()["paths"]

        assert list(paths) == ["/items", "/items/{id}"]
        assert list(paths["/items"]) == ["get", "post"]

        list_op = paths["/items"]["get"]
        assert list_op["operationId"] == "list_items"
        assert list_op["summary"] == "List items"
        assert list_op["tags"] == ["items"]
        assert [p["name"] for p in list_op["parameters"]] == ["limit", "tags", "X-Token"]

    def test_parameter_defaults_are_typed(self, api):
        router, document = api
        self.register(router)

        limit = document.to_dict()["paths"]["/items"]["get"]["parameters"][0]
        assert limit["schema"]["default"] == 10

    def test_path_parameter(self, api):
        router, document = api
        self.register(router)

        assert document.to_dict()["paths"]["/items/{id}"]["get"]["parameters"] == [
            {"name": "id", "in": "path", "required": True, "style": "simple", "schema": {"type": "integer"}}
        ]

    def test_request_body(self, api):
        router, document = api
        self.register(router)

        assert document.to_dict()["paths"]["/items"]["post"]["requestBody"] == {
            "content": {JSON_CONTENT_TYPE: {"schema": item_ref()}},
            "description": "The item to create",
            "required": True,
        }

    def test_responses(self, api):
        router, document = api
        self.register(router)
        paths = document.to_dict()["paths"]

        assert paths["/items"]["post"]["responses"] == {
            "201": {"description": "Created", "content": {JSON_CONTENT_TYPE: {"schema": item_ref()}}}
        }
        assert paths["/items"]["get"]["responses"]["200"]["content"][JSON_CONTENT_TYPE]["schema"] == {
            "type": "array",
            "items": item_ref(),
        }

    def test_components_hold_each_schema_once(self, api):
        router, document = api
        self.register(router)

        schemas = document.to_dict()["components"]["schemas"]
        assert list(schemas) == ["Item"]
        assert schemas["Item"]["properties"]["price"] == {"type": "number", "format": "double", "minimum": 0}

    def test_default_response(self, api, sink):
        router, document = api
        document.set_default_response(ErrorBody)
        self.register(router)
        data = document.to_dict()

        responses = data["paths"]["/items"]["post"]["responses"]
        assert list(responses) == ["default", "201"]
        assert responses["default"]["content"][JSON_CONTENT_TYPE]["schema"] == {
            "$ref": f"{COMPONENT_REF_PATH}ErrorBody"
        }
        assert "default" in data["components"]["responses"]
        validate(data, cls=OpenAPIV31SpecValidator)

    def test_to_json(self, api):
        router, document = api
        self.register(router)
        assert json.loads(document.to_json(indent=2)) == document.to_dict()

    def test_new_router(self):
        router, document = new_router()

        @router.get("/ping")
        def ping():
            return "pong"

        assert "/ping" in document.paths

    def test_style_errors_reach_the_sink(self, api, sink):
        router, document = api

        @dataclass
        class Input:
            value: Query[int] = param(style="deepObject")

        @router.get("/bad")
        def bad(params: Input):
            pass

        assert isinstance(sink.errors[0].error, InvalidParamStyleError)
        assert "/bad" not in document.paths

    def test_mounted_routes_are_documented(self, api, sink):
        router, document = api
        child = Router(error_sink=sink)
        add_spec_to_router(child)

        @child.get("/items/{id}", options.summary("Show an item"))
        def show_item(params: ItemPath):
            return {}

        router.mount("/api", child)

        operation = document.to_dict()["paths"]["/api/items/{id}"]["get"]
        assert operation["summary"] == "Show an item"
        assert operation["parameters"][0]["name"] == "id"


class TestOperationIDs:
    """Test operation ids."""

    def test_defaults_to_function_name(self, api):
        router, document = api

        @router.get("/items")
        def list_items():
            return []

        assert document.paths["/items"].get_operation("GET").operation_id == "list_items"

    def test_option_overrides(self, api):
        router, document = api

        @router.get("/items", options.operation_id("itemsIndex"))
        def list_items():
            return []

        assert document.paths["/items"].get_operation("GET").operation_id == "itemsIndex"

    def test_anonymous_handlers_have_no_id(self, api, sink):
        router, document = api
        router.handle("GET", "/ping", lambda: "pong")

        assert sink.errors == []
        assert "operationId" not in document.to_dict()["paths"]["/ping"]["get"]

    def test_strict_requires_id(self, sink):
        router = Router(error_sink=sink)
        add_spec_to_router(router, strict=True)
        router.handle("GET", "/ping", lambda: "pong")

        assert isinstance(sink.errors[0].error, MissingOperationIDError)

    def test_strict_rejects_duplicates(self, sink):
        router = Router(error_sink=sink)
        add_spec_to_router(router, strict=True)

        def make_handler():
            def show():
                return {}

            return show

        router.get("/a")(make_handler())
        router.get("/b")(make_handler())

        assert len(sink.errors) == 1
        err = sink.errors[0].error
        assert isinstance(err, DuplicateOperationIDError)
        assert err.operation_id == "show"
        assert err.path == "GET /a"

    def test_validation_implies_strict(self, sink):
        router = Router(error_sink=sink)
        document = add_spec_to_router(router, validate_requests=True)
        assert document.strict is True


class TestOptions:
    """Test route options."""

    def operation(self, document, pattern, method="GET"):
        return document.to_dict()["paths"][pattern][method.lower()]

    def test_ignore(self, api):
        router, document = api

        @router.get("/internal", options.ignore())
        def internal():
            return {}

        assert "/internal" not in document.paths
        assert router.routes()[0].full_pattern == "/internal"

    def test_deprecated(self, api):
        router, document = api

        @router.get("/old", options.deprecated())
        def old():
            return {}

        assert self.operation(document, "/old")["deprecated"] is True

    def test_summary_is_trimmed(self, api):
        router, document = api

        @router.get("/items", options.summary("  List items\n    for a store  "))
        def list_items():
            return []

        assert self.operation(document, "/items")["summary"] == "List items\nfor a store"

    def test_tags_are_unique(self, api):
        router, document = api

        @router.get("/items", options.tags("items", "store"), options.tags("items"))
        def list_items():
            return []

        assert self.operation(document, "/items")["tags"] == ["items", "store"]

    def test_no_content_response(self, api):
        router, document = api

        @router.delete("/items/{id}", options.response(options.NoContent, 204, "Deleted"))
        def delete_item(params: ItemPath):
            return None

        assert self.operation(document, "/items/{id}", "DELETE")["responses"] == {"204": {"description": "Deleted"}}

    def test_no_ref_inlines(self, api):
        router, document = api

        @router.get("/item", options.no_ref(options.response(ErrorBody, 200, "Inline")))
        def item():
            return {}

        schema = self.operation(document, "/item")["responses"]["200"]["content"][JSON_CONTENT_TYPE]["schema"]
        assert schema == {"type": "object", "properties": {"message": {"type": "string"}}}

    def test_content_type_scope(self, api):
        router, document = api

        @router.get(
            "/item",
            options.content_type(["application/xml"], options.response(Item, 200, "XML")),
            options.response(ErrorBody, 400, "JSON"),
        )
        def item():
            return {}

        responses = self.operation(document, "/item")["responses"]
        assert list(responses["200"]["content"]) == ["application/xml"]
        assert list(responses["400"]["content"]) == [JSON_CONTENT_TYPE]

    def test_explicit_content_types(self, api):
        router, document = api

        @router.get("/item", options.response(Item, 200, "Both", "application/json", "application/yaml"))
        def item():
            return {}

        responses = self.operation(document, "/item")["responses"]
        assert list(responses["200"]["content"]) == ["application/json", "application/yaml"]

    def test_body(self, api):
        router, document = api

        @router.put("/items/{id}", options.body(Item, "  The new item ", True))
        def replace_item(params: ItemPath):
            return None

        assert self.operation(document, "/items/{id}", "PUT")["requestBody"] == {
            "description": "The new item",
            "content": {JSON_CONTENT_TYPE: {"schema": item_ref()}},
            "required": True,
        }

    def test_params(self, api):
        router, document = api

        @router.get("/search", options.params(ListItems))
        def search():
            return []

        names = [p["name"] for p in self.operation(document, "/search")["parameters"]]
        assert names == ["limit", "tags", "X-Token"]

    def test_options_need_openapi(self, router, sink):
        @router.get("/items", options.summary("List items"))
        def list_items():
            return []

        assert router.routes() == []
        assert isinstance(sink.errors[0].error, MissingContextError)


class TestDocumentSchemas:
    """Test component schema bookkeeping."""

    def test_referenced_schemas_are_added(self):
        document = OpenAPI()

        assert document.get_schema_or_ref(Order) == {"$ref": f"{COMPONENT_REF_PATH}Order"}
        assert sorted(document.schemas) == ["Item", "LineItem", "Order"]

    def test_force_no_ref(self):
        document = OpenAPI()
        spec = document.get_schema_or_ref(Order, force_no_ref=True)

        assert spec["properties"]["lines"]["items"] == {"$ref": f"{COMPONENT_REF_PATH}LineItem"}
        assert sorted(document.schemas) == ["Item", "LineItem"]

    def test_duplicate_schema(self):
        document = OpenAPI()
        document.add_schema("Thing", {"type": "string"})
        document.add_schema("Thing", {"type": "string"})

        with pytest.raises(DuplicateSchemaError):
            document.add_schema("Thing", {"type": "integer"})

    def test_register_type(self):
        document = OpenAPI()
        document.register_type(ErrorBody, Schema({"type": "string"}), name="Problem")

        assert document.schemas["Problem"] == {"type": "string"}
        assert document.get_schema_or_ref(ErrorBody) == {"$ref": f"{COMPONENT_REF_PATH}Problem"}

    def test_standalone_schema_carries_components(self):
        document = OpenAPI()
        ref = document.get_schema_or_ref(Order)
        standalone = document.standalone_schema(ref)

        assert standalone["type"] == "object"
        assert sorted(standalone["components"]["schemas"]) == ["Item", "LineItem", "Order"]


class TestSchemaFromOperation:
    """Test the combined request schema of an operation."""

    def test_params_grouped_by_location(self, api):
        router, document = api

        @router.get("/items/{id}")
        def get_item(params: ItemPath):
            return {}

        operation = document.paths["/items/{id}"].get_operation("GET")
        schema = schema_from_operation(operation, JSON_CONTENT_TYPE).to_dict()

        assert schema["description"] == "Contains the request body and all parameters"
        assert schema["required"] == ["parameters"]
        parameters = schema["properties"]["parameters"]
        assert parameters["required"] == ["path"]
        assert parameters["properties"]["path"] == {
            "type": "object",
            "properties": {"id": {"type": "integer"}},
            "required": ["id"],
        }
        assert "body" not in schema["properties"]

    def test_body(self, api):
        router, document = api

        @router.post("/items")
        def create_item(params: CreateItem):
            return {}

        operation = document.paths["/items"].get_operation("POST")
        schema = schema_from_operation(operation, JSON_CONTENT_TYPE).to_dict()

        assert schema["properties"]["body"] == item_ref()
        assert schema["required"] == ["body"]
        assert "parameters" not in schema["properties"]

    def test_body_without_schema(self):
        operation = Operation()
        operation.set_request_body({"content": {}})

        with pytest.raises(RequestBodyMissingSchemaError):
            schema_from_operation(operation, JSON_CONTENT_TYPE)


class TestRequestValidation:
    """Test validating requests against the document's schemas."""

    @pytest.fixture
    def validating(self, sink):
        router = Router(error_sink=sink)
        add_spec_to_router(router, validate_requests=True)

        @router.get("/items")
        def list_items(params: ListItems):
            return {"limit": params.limit.value, "tags": params.tags.value}

        @router.post("/items")
        def create_item(params: CreateItem):
            return params.item.value

        @router.get("/search")
        def search(params: Search):
            return params.q.value

        @router.get("/filter")
        def filter_items(params: FilterItems):
            return {"low": params.price.value.low, "high": params.price.value.high}

        assert sink.errors == []
        return router

    def errors(self, response):
        assert response.status_code == 400
        return json.loads(response.body)["errors"]

    def test_valid_query(self, validating, make_request):
        response = validating.execute(make_request("/items", query="limit=5&tags=a,b"))

        assert response.status_code == 200
        assert json.loads(response.body) == {"limit": 5, "tags": ["a", "b"]}

    def test_defaults_apply(self, validating, make_request):
        response = validating.execute(make_request("/items"))
        assert json.loads(response.body) == {"limit": 10, "tags": None}

    def test_invalid_query(self, validating, make_request):
        errors = self.errors(validating.execute(make_request("/items", query="limit=0")))

        assert len(errors) == 1
        assert errors[0].startswith("[#/parameters/query/limit]")
        assert "0 is less than the minimum of 1" in errors[0]

    def test_unparseable_query(self, validating, make_request):
        errors = self.errors(validating.execute(make_request("/items", query="limit=ten")))
        assert errors[0].startswith("failed to extract param: query.limit:")

    def test_required_query(self, validating, make_request):
        errors = self.errors(validating.execute(make_request("/search")))
        assert "required param missing" in errors[0]

    def test_deep_object(self, validating, make_request):
        response = validating.execute(make_request("/filter", query="price[low]=1&price[high]=5"))

        assert response.status_code == 200
        assert json.loads(response.body) == {"low": 1, "high": 5}

    def test_invalid_deep_object(self, validating, make_request):
        errors = self.errors(validating.execute(make_request("/filter", query="price[low]=-1&price[high]=5")))

        assert errors[0].startswith("[#/parameters/query/price]")
        assert "-1 is less than the minimum of 0" in errors[0]

    def test_valid_body(self, validating, make_request):
        request = make_request("/items", method=HTTPMethod.POST, body='{"name": "lamp", "price": 12.5}')
        response = validating.execute(request)

        assert response.status_code == 200
        assert json.loads(response.body) == {"name": "lamp", "price": 12.5}

    def test_invalid_body(self, validating, make_request):
        request = make_request("/items", method=HTTPMethod.POST, body='{"name": "lamp", "price": -1}')
        errors = self.errors(validating.execute(request))

        assert errors[0].startswith("[#/body]")
        assert "is less than the minimum of 0" in errors[0]

    def test_missing_required_body(self, validating, make_request):
        errors = self.errors(validating.execute(make_request("/items", method=HTTPMethod.POST)))
        assert errors[0].startswith("[#/body]")


class TestDeepObjectRegistration:
    """Test checking deepObject params at registration."""

    def test_private_fields_are_rejected(self, api, sink):
        router, _ = api

        @dataclass
        class Filter:
            _secret: str

        @dataclass
        class Input:
            filter: Query[Filter] = param(style="deepObject")

        @router.get("/filter")
        def filter_items(params: Input):
            return {}

        err = sink.errors[0].error
        assert err.struct is Filter
        assert err.error == "field is private"

    def test_struct_needs_deep_object_style(self, api, sink):
        router, _ = api

        @dataclass
        class Input:
            price: Query[PriceFilter]

        @router.get("/filter")
        def filter_items(params: Input):
            return {}

        assert sink.errors[0].error.param_type is PriceFilter

    def test_unparsable_schema_default(self, api, sink):
        router, _ = api

        @dataclass
        class Input:
            paging: Query[Paging] = param(style="deepObject")

        @router.get("/pages")
        def list_pages(params: Input):
            return {}

        err = sink.errors[0].error
        assert isinstance(err, InvalidParamError)
        assert err.struct is Paging
        assert err.field.name == "page"
        assert err.message == "default value cannot be parsed: 1."
