"""OpenAPI document loader and upstream tool generators.

The two generators produce the upstream tool shapes consumed by the
converters:

* mapper tools: ``{name, description, inputSchema, mapper, metadata}``
  with ``mapper`` entries keyed by location (``{inputKey, type, key}``)
  and path/method nested under ``metadata``.
* execution-parameter tools: ``{name, description, inputSchema, method,
  pathTemplate, executionParameters, requestBodyContentType}`` with
  ``executionParameters`` entries shaped ``{name, in}``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import httpx
import yaml
from pydantic import BaseModel, ConfigDict, Field, create_model


logger = logging.getLogger(__name__)

_HTTP_METHODS = {"get", "post", "put", "patch", "delete", "head", "options"}


class SpecLoadError(Exception):
    pass


@dataclass(frozen=True)
class OpenAPIOperation:
    operation_id: str
    method: str
    path: str
    description: str
    parameters: List[Dict[str, Any]] = field(default_factory=list)
    request_body: Optional[Dict[str, Any]] = None


class OpenAPILoader:
    def __init__(
        self,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def load_document(
        self, spec: Any = None, spec_url: Optional[str] = None
    ) -> Dict[str, Any]:
        if spec_url:
            document = await self._fetch(spec_url)
        elif isinstance(spec, str):
            document = _parse_document(spec, "Malformed OpenAPI document")
        elif spec is not None:
            document = spec
        else:
            raise SpecLoadError("Either spec or specUrl required")

        if not isinstance(document, dict) or not isinstance(document.get("paths", {}), dict):
            raise SpecLoadError("Malformed OpenAPI document: expected an object with 'paths'")
        return document

    async def _fetch(self, url: str) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise SpecLoadError(f"Failed to fetch OpenAPI spec {url}: {exc}") from exc

        if response.status_code != 200:
            logger.warning("Failed to fetch OpenAPI spec: %s (%s)", url, response.status_code)
            raise SpecLoadError(
                f"Failed to fetch OpenAPI spec {url}: HTTP {response.status_code}"
            )
        return _parse_document(response.text, f"Malformed OpenAPI document at {url}")


def _parse_document(text: str, error_prefix: str) -> Any:
    """Parse a JSON or YAML document."""
    try:
        return json.loads(text)
    except ValueError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SpecLoadError(f"{error_prefix}: {exc}") from exc


def default_server_url(document: Dict[str, Any]) -> Optional[str]:
    servers = document.get("servers") or []
    if not servers:
        return None
    server = servers[0]
    if isinstance(server, dict):
        return server.get("url")
    return None


def extract_operations(document: Dict[str, Any]) -> Iterator[OpenAPIOperation]:
    paths = document.get("paths") or {}

    for path, methods in paths.items():
        methods = methods or {}
        shared_parameters = methods.get("parameters") or []
        for method, operation in methods.items():
            if method.lower() not in _HTTP_METHODS or not isinstance(operation, dict):
                continue
            operation_id = operation.get("operationId") or _fallback_operation_id(method, path)
            description = operation.get("description") or operation.get("summary") or ""
            yield OpenAPIOperation(
                operation_id=operation_id,
                method=method.lower(),
                path=path,
                description=description,
                parameters=_merge_parameters(shared_parameters, operation.get("parameters") or []),
                request_body=operation.get("requestBody"),
            )


def generate_mapper_tools(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    tools: List[Dict[str, Any]] = []
    for op in extract_operations(document):
        properties: Dict[str, Any] = {}
        required: List[str] = []
        mapper: List[Dict[str, str]] = []

        for parameter in op.parameters:
            name = parameter["name"]
            location = parameter.get("in", "query")
            if location == "body":
                name = "body"
            properties[name] = _parameter_schema(parameter)
            if parameter.get("required"):
                required.append(name)
            mapper.append({"inputKey": name, "type": location, "key": parameter["name"]})

        if op.request_body and "body" not in properties:
            _, body_schema = _request_body_content(op.request_body)
            properties["body"] = body_schema or {"type": "object"}
            if op.request_body.get("required"):
                required.append("body")
            mapper.append({"inputKey": "body", "type": "body", "key": "body"})

        tools.append(
            {
                "name": op.operation_id,
                "description": op.description,
                "inputSchema": _object_schema(properties, required),
                "mapper": mapper,
                "metadata": {"path": op.path, "method": op.method},
            }
        )
    return tools


def generate_execution_parameter_tools(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    tools: List[Dict[str, Any]] = []
    for op in extract_operations(document):
        properties: Dict[str, Any] = {}
        required: List[str] = []
        execution_parameters: List[Dict[str, str]] = []

        for parameter in op.parameters:
            name = parameter["name"]
            properties[name] = _parameter_schema(parameter)
            if parameter.get("required"):
                required.append(name)
            execution_parameters.append({"name": name, "in": parameter.get("in", "query")})

        content_type: Optional[str] = None
        if op.request_body:
            content_type, body_schema = _request_body_content(op.request_body)
            properties["requestBody"] = body_schema or {"type": "object"}
            if op.request_body.get("required"):
                required.append("requestBody")

        tools.append(
            {
                "name": op.operation_id,
                "description": op.description,
                "inputSchema": _object_schema(properties, required),
                "method": op.method,
                "pathTemplate": op.path,
                "executionParameters": execution_parameters,
                "requestBodyContentType": content_type,
            }
        )
    return tools


def build_input_model(tool_name: str, input_schema: Dict[str, Any]) -> type[BaseModel]:
    """Build a permissive pydantic model mirroring a tool's input schema.

    Field names are sanitised; the original property names are kept as
    aliases so the published JSON schema matches the tool's input schema.
    """
    fields: Dict[str, Tuple[Any, Any]] = {}
    required = set(input_schema.get("required") or [])

    for name, schema in (input_schema.get("properties") or {}).items():
        field_name = f"p_{_sanitize_name(name)}"
        field_type = _schema_to_type(schema or {})
        if name in required:
            default = Field(..., alias=name, description=(schema or {}).get("description"))
        else:
            field_type = Optional[field_type]
            default = Field(None, alias=name, description=(schema or {}).get("description"))
        fields[field_name] = (field_type, default)

    model_config = ConfigDict(extra="allow")
    model_name = f"{_sanitize_name(tool_name)}Input"
    return create_model(model_name, __config__=model_config, **fields)


def _merge_parameters(
    shared: List[Dict[str, Any]], own: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for parameter in [*shared, *own]:
        if not isinstance(parameter, dict) or not parameter.get("name"):
            continue
        merged[(parameter["name"], parameter.get("in", "query"))] = parameter
    return list(merged.values())


def _parameter_schema(parameter: Dict[str, Any]) -> Dict[str, Any]:
    schema = dict(parameter.get("schema") or {})
    # Swagger 2 keeps the type on the parameter itself
    if not schema and parameter.get("type"):
        schema["type"] = parameter["type"]
    if parameter.get("description") and "description" not in schema:
        schema["description"] = parameter["description"]
    return schema


def _request_body_content(request_body: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
    content = request_body.get("content") or {}
    if "application/json" in content:
        return "application/json", (content["application/json"] or {}).get("schema") or {}
    for content_type, media in content.items():
        return content_type, (media or {}).get("schema") or {}
    return None, {}


def _object_schema(properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _schema_to_type(schema: Dict[str, Any]) -> Any:
    schema_type = schema.get("type")
    if schema_type == "integer":
        return int
    if schema_type == "number":
        return float
    if schema_type == "boolean":
        return bool
    if schema_type == "array":
        return List[Any]
    if schema_type == "object":
        return Dict[str, Any]
    if schema_type == "string":
        return str
    return Any


def _fallback_operation_id(method: str, path: str) -> str:
    sanitized = path.strip("/").replace("/", "_").replace("{", "").replace("}", "")
    return f"{method.lower()}_{sanitized or 'root'}"


def _sanitize_name(name: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in name)
