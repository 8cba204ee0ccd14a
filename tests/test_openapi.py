"""Unit tests for OpenAPI loading and upstream tool generation."""

import json

import httpx
import pytest
from pydantic import ValidationError

from openapi_tool_bridge.openapi import (
    OpenAPILoader,
    SpecLoadError,
    build_input_model,
    default_server_url,
    extract_operations,
    generate_execution_parameter_tools,
    generate_mapper_tools,
)


ITEMS_YAML = """\
openapi: 3.0.0
info:
  title: Items
  version: "1.0"
servers:
  - url: https://api.example.com/v1
paths:
  /items/{id}:
    get:
      operationId: getItem
      parameters:
        - name: id
          in: path
          required: true
          schema:
            type: string
"""


class TestExtractOperations:
    def test_operations_follow_document_order(self, items_spec):
        operations = list(extract_operations(items_spec))
        assert [(op.method, op.path) for op in operations] == [
            ("get", "/items/{id}"),
            ("put", "/items/{id}"),
            ("get", "/items"),
        ]

    def test_shared_parameters_are_merged(self, items_spec):
        get_item = next(extract_operations(items_spec))
        names = [parameter["name"] for parameter in get_item.parameters]
        assert names == ["id", "verbose", "X-Trace-Id", "session"]

    def test_fallback_operation_id(self, items_spec):
        operations = list(extract_operations(items_spec))
        assert operations[-1].operation_id == "get_items"
        assert operations[-1].description == "List items"

    def test_default_server_url(self, items_spec):
        assert default_server_url(items_spec) == "https://api.example.com/v1"
        assert default_server_url({"paths": {}}) is None


class TestGenerators:
    def test_mapper_tools_shape(self, items_spec):
        tools = generate_mapper_tools(items_spec)
        get_item = tools[0]
        assert get_item["name"] == "getItem"
        assert get_item["metadata"] == {"path": "/items/{id}", "method": "get"}
        assert {"inputKey": "id", "type": "path", "key": "id"} in get_item["mapper"]
        assert get_item["inputSchema"]["required"] == ["id"]

    def test_mapper_tools_body_mapping(self, items_spec):
        update_item = generate_mapper_tools(items_spec)[1]
        assert update_item["mapper"][-1] == {"inputKey": "body", "type": "body", "key": "body"}
        assert update_item["inputSchema"]["properties"]["body"]["type"] == "object"
        assert update_item["inputSchema"]["required"] == ["id", "body"]

    def test_execution_parameter_tools_shape(self, items_spec):
        tools = generate_execution_parameter_tools(items_spec)
        update_item = tools[1]
        assert update_item["method"] == "put"
        assert update_item["pathTemplate"] == "/items/{id}"
        assert update_item["executionParameters"] == [{"name": "id", "in": "path"}]
        assert update_item["requestBodyContentType"] == "application/json"
        assert "requestBody" in update_item["inputSchema"]["properties"]
        assert tools[0]["requestBodyContentType"] is None

    def test_swagger_body_parameter_is_explicit(self):
        document = {
            "swagger": "2.0",
            "paths": {
                "/notes": {
                    "post": {
                        "operationId": "createNote",
                        "parameters": [
                            {"name": "note", "in": "body", "schema": {"type": "object"}},
                            {"name": "draft", "in": "query", "type": "boolean"},
                        ],
                    }
                }
            },
        }
        tool = generate_execution_parameter_tools(document)[0]
        assert tool["executionParameters"] == [
            {"name": "note", "in": "body"},
            {"name": "draft", "in": "query"},
        ]
        assert tool["inputSchema"]["properties"]["draft"] == {"type": "boolean"}


class TestBuildInputModel:
    def test_aliases_keep_original_property_names(self, items_spec):
        schema = generate_mapper_tools(items_spec)[0]["inputSchema"]
        model = build_input_model("getItem", schema)

        payload = model.model_validate({"id": "7", "X-Trace-Id": "abc"})
        assert payload.model_dump(by_alias=True, exclude_none=True) == {
            "id": "7",
            "X-Trace-Id": "abc",
        }
        assert "X-Trace-Id" in model.model_json_schema()["properties"]

    def test_required_fields_are_enforced(self, items_spec):
        schema = generate_mapper_tools(items_spec)[0]["inputSchema"]
        model = build_input_model("getItem", schema)
        with pytest.raises(ValidationError):
            model.model_validate({})


class TestOpenAPILoader:
    @pytest.mark.asyncio
    async def test_load_inline_dict_and_string(self, items_spec):
        loader = OpenAPILoader()
        assert await loader.load_document(spec=items_spec) == items_spec
        assert await loader.load_document(spec=json.dumps(items_spec)) == items_spec

    @pytest.mark.asyncio
    async def test_load_from_url(self, items_spec):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://specs.example.com/items.json"
            return httpx.Response(200, json=items_spec)

        loader = OpenAPILoader(transport=httpx.MockTransport(handler))
        document = await loader.load_document(spec_url="https://specs.example.com/items.json")
        assert document["info"]["title"] == "Items"

    @pytest.mark.asyncio
    async def test_url_takes_precedence_over_inline_spec(self, items_spec):
        loader = OpenAPILoader(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=items_spec))
        )
        document = await loader.load_document(spec={"paths": {}}, spec_url="https://x/spec")
        assert document == items_spec

    @pytest.mark.asyncio
    async def test_fetch_failure_raises(self):
        loader = OpenAPILoader(
            transport=httpx.MockTransport(lambda request: httpx.Response(503, text="down"))
        )
        with pytest.raises(SpecLoadError, match="HTTP 503"):
            await loader.load_document(spec_url="https://specs.example.com/items.json")

    @pytest.mark.asyncio
    async def test_malformed_document_raises(self):
        loader = OpenAPILoader()
        with pytest.raises(SpecLoadError):
            await loader.load_document(spec="{not json")
        with pytest.raises(SpecLoadError):
            await loader.load_document(spec={"paths": ["not", "a", "map"]})
        with pytest.raises(SpecLoadError):
            await loader.load_document()

    @pytest.mark.asyncio
    async def test_inline_yaml_document(self):
        document = await OpenAPILoader().load_document(spec=ITEMS_YAML)
        assert default_server_url(document) == "https://api.example.com/v1"
        assert [op.operation_id for op in extract_operations(document)] == ["getItem"]

    @pytest.mark.asyncio
    async def test_yaml_document_by_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"content-type": "application/yaml"}, text=ITEMS_YAML
            )

        loader = OpenAPILoader(transport=httpx.MockTransport(handler))
        document = await loader.load_document(spec_url="https://specs.example.com/items.yaml")
        tools = generate_mapper_tools(document)
        assert tools[0]["name"] == "getItem"
        assert tools[0]["metadata"] == {"path": "/items/{id}", "method": "get"}

    @pytest.mark.asyncio
    async def test_broken_yaml_raises(self):
        with pytest.raises(SpecLoadError, match="Malformed OpenAPI document"):
            await OpenAPILoader().load_document(spec="paths: [unclosed")
