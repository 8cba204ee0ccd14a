"""Tool converters: normalise upstream tool shapes and execute them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from .executors import (
    ExecutionError,
    HttpExecutor,
    MissingParameterError,
    build_request,
    normalize_response,
)
from .logging import redact_payload
from .models import ParameterLocation, ParameterMapping, ResultEnvelope, ToolDefinition
from .openapi import (
    OpenAPILoader,
    default_server_url,
    generate_execution_parameter_tools,
    generate_mapper_tools,
)

logger = logging.getLogger(__name__)

_LOCATIONS = {location.value: location for location in ParameterLocation}


class UnknownConverterError(ValueError):
    pass


@dataclass(frozen=True)
class ToolCatalog:
    base_url: str
    tools: List[ToolDefinition]
    upstream: List[Dict[str, Any]]

    def find(self, tool_name: str) -> Optional[ToolDefinition]:
        return next((tool for tool in self.tools if tool.name == tool_name), None)


class ToolConverter:
    """Loads a catalog from one upstream tool shape and executes its tools.

    Subclasses provide ``generate`` (document to upstream tool objects),
    ``normalize`` (upstream object to ``ToolDefinition``) and ``snapshot``
    (the fields kept in the debug dump).
    """

    name: str = ""

    def __init__(self, loader: OpenAPILoader, executor: HttpExecutor) -> None:
        self.loader = loader
        self.executor = executor

    def generate(self, document: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def normalize(self, upstream_tool: Dict[str, Any]) -> ToolDefinition:
        raise NotImplementedError

    def snapshot(self, upstream_tool: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def list_tools(
        self, spec: Any = None, spec_url: Optional[str] = None, base_url: Optional[str] = None
    ) -> ToolCatalog:
        document = await self.loader.load_document(spec=spec, spec_url=spec_url)
        upstream = self.generate(document)
        tools = [self.normalize(item) for item in upstream]
        effective_base_url = base_url or default_server_url(document) or ""
        logger.info(
            "Loaded %s tools with converter=%s base_url=%s",
            len(tools),
            self.name,
            effective_base_url,
        )
        return ToolCatalog(base_url=effective_base_url, tools=tools, upstream=upstream)

    async def execute(
        self,
        catalog: ToolCatalog,
        tool_name: str,
        payload: Dict[str, Any],
        credential: Optional[str] = None,
        strict: bool = False,
    ) -> ResultEnvelope:
        tool = catalog.find(tool_name)
        if not tool:
            return ResultEnvelope.error(f'Tool "{tool_name}" not found')

        logger.info("Executing tool=%s payload=%s", tool.name, redact_payload(payload))
        try:
            request = build_request(tool, catalog.base_url, payload, credential, strict=strict)
            response = await self.executor.send(request)
        except (ExecutionError, MissingParameterError) as exc:
            logger.error("Tool execution failed: %s", exc)
            return ResultEnvelope.error(str(exc))

        return normalize_response(response)


class MapperConverter(ToolConverter):
    name = "mapper"

    def generate(self, document: Dict[str, Any]) -> List[Dict[str, Any]]:
        return generate_mapper_tools(document)

    def normalize(self, upstream_tool: Dict[str, Any]) -> ToolDefinition:
        metadata = upstream_tool.get("metadata") or {}
        mappings = [
            ParameterMapping(
                input_key=entry["inputKey"],
                location=_LOCATIONS[entry["type"]],
                target_key=entry.get("key") or entry["inputKey"],
            )
            for entry in upstream_tool.get("mapper") or []
            if entry.get("type") in _LOCATIONS
        ]
        return ToolDefinition(
            name=upstream_tool["name"],
            description=upstream_tool.get("description") or "",
            http_method=(metadata.get("method") or "get").upper(),
            path_template=metadata.get("path") or "",
            parameter_mappings=tuple(mappings),
            input_schema=upstream_tool.get("inputSchema") or {"type": "object"},
        )

    def snapshot(self, upstream_tool: Dict[str, Any]) -> Dict[str, Any]:
        metadata = upstream_tool.get("metadata") or {}
        return {
            "name": upstream_tool.get("name"),
            "description": upstream_tool.get("description"),
            "inputSchema": upstream_tool.get("inputSchema"),
            "mapper": upstream_tool.get("mapper"),
            "path": metadata.get("path"),
            "method": metadata.get("method"),
        }


class ExecutionParameterConverter(ToolConverter):
    name = "execution-parameters"

    def generate(self, document: Dict[str, Any]) -> List[Dict[str, Any]]:
        return generate_execution_parameter_tools(document)

    def normalize(self, upstream_tool: Dict[str, Any]) -> ToolDefinition:
        mappings = [
            ParameterMapping(
                input_key=parameter["name"],
                location=_LOCATIONS[parameter["in"]],
                target_key=parameter["name"],
            )
            for parameter in upstream_tool.get("executionParameters") or []
            if parameter.get("in") in _LOCATIONS
        ]
        return ToolDefinition(
            name=upstream_tool["name"],
            description=upstream_tool.get("description") or "",
            http_method=(upstream_tool.get("method") or "get").upper(),
            path_template=upstream_tool.get("pathTemplate") or "",
            parameter_mappings=tuple(mappings),
            input_schema=upstream_tool.get("inputSchema") or {"type": "object"},
            accepts_body=bool(upstream_tool.get("requestBodyContentType")),
        )

    def snapshot(self, upstream_tool: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": upstream_tool.get("name"),
            "description": upstream_tool.get("description"),
            "inputSchema": upstream_tool.get("inputSchema"),
            "path": upstream_tool.get("pathTemplate"),
            "method": upstream_tool.get("method"),
            "executionParameters": upstream_tool.get("executionParameters"),
        }


CONVERTERS: Dict[str, Type[ToolConverter]] = {
    MapperConverter.name: MapperConverter,
    ExecutionParameterConverter.name: ExecutionParameterConverter,
    # Identifiers accepted by earlier clients of the catalog route.
    "mcp-from-openapi": MapperConverter,
    "openapi-mcp-generator": ExecutionParameterConverter,
}


def get_converter(name: str, loader: OpenAPILoader, executor: HttpExecutor) -> ToolConverter:
    converter_cls = CONVERTERS.get(name)
    if not converter_cls:
        raise UnknownConverterError(
            f"Unknown converter '{name}'. Use one of: {', '.join(CONVERTERS)}"
        )
    return converter_cls(loader, executor)
