"""Tool catalog service: list and execute tools generated from OpenAPI specs."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .converters import ToolCatalog, ToolConverter, UnknownConverterError, get_converter
from .executors import HttpExecutor
from .openapi import OpenAPILoader

logger = logging.getLogger(__name__)

ACTIONS = ("list", "execute")


class BridgeInputError(ValueError):
    pass


class CatalogRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    spec: Optional[Any] = None
    spec_url: Optional[str] = Field(default=None, alias="specUrl")
    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    tool: Optional[str] = None
    input: Dict[str, Any] = Field(default_factory=dict)
    converter: str = "mapper"
    auth_token: Optional[str] = Field(default=None, alias="authToken")
    strict: bool = False


class ToolCatalogService:
    """
    Orchestrates tool listing and execution for one request at a time.

    Every call re-loads the OpenAPI document and re-derives the catalog;
    nothing is cached between calls.
    """

    def __init__(
        self,
        settings: Settings,
        loader: Optional[OpenAPILoader] = None,
        executor: Optional[HttpExecutor] = None,
    ) -> None:
        self.settings = settings
        self.loader = loader or OpenAPILoader(timeout_seconds=settings.bridge_http_timeout_seconds)
        self.executor = executor or HttpExecutor(
            timeout_seconds=settings.bridge_http_timeout_seconds
        )

    async def handle(self, request: CatalogRequest) -> Dict[str, Any]:
        if request.action not in ACTIONS:
            raise BridgeInputError('Invalid action. Use "list" or "execute"')
        if not request.spec_url and request.spec is None:
            raise BridgeInputError("Either spec or specUrl required")

        if request.action == "list":
            return await self.list_tools(
                spec=request.spec,
                spec_url=request.spec_url,
                base_url=request.base_url,
                converter=request.converter,
            )

        if not request.tool:
            raise BridgeInputError("Tool name required")
        return await self.execute_tool(
            spec=request.spec,
            spec_url=request.spec_url,
            base_url=request.base_url,
            converter=request.converter,
            tool_name=request.tool,
            payload=request.input,
            credential=request.auth_token,
            strict=request.strict,
        )

    async def list_tools(
        self,
        spec: Any = None,
        spec_url: Optional[str] = None,
        base_url: Optional[str] = None,
        converter: str = "mapper",
    ) -> Dict[str, Any]:
        tool_converter = self._converter(converter)
        catalog = await tool_converter.list_tools(spec=spec, spec_url=spec_url, base_url=base_url)
        await self._write_snapshot(tool_converter, catalog)
        return {
            "baseUrl": catalog.base_url,
            "converter": tool_converter.name,
            "tools": [tool.to_listing() for tool in catalog.tools],
        }

    async def execute_tool(
        self,
        tool_name: str,
        payload: Optional[Dict[str, Any]] = None,
        spec: Any = None,
        spec_url: Optional[str] = None,
        base_url: Optional[str] = None,
        converter: str = "mapper",
        credential: Optional[str] = None,
        strict: bool = False,
    ) -> Dict[str, Any]:
        tool_converter = self._converter(converter)
        catalog = await tool_converter.list_tools(spec=spec, spec_url=spec_url, base_url=base_url)
        await self._write_snapshot(tool_converter, catalog)
        result = await tool_converter.execute(
            catalog, tool_name, payload or {}, credential=credential, strict=strict
        )
        return result.to_dict()

    def _converter(self, name: str) -> ToolConverter:
        try:
            return get_converter(name, self.loader, self.executor)
        except UnknownConverterError as exc:
            raise BridgeInputError(str(exc)) from exc

    async def _write_snapshot(self, converter: ToolConverter, catalog: ToolCatalog) -> None:
        dump_path = self.settings.bridge_tools_dump_path
        if not dump_path:
            return
        snapshot = [converter.snapshot(item) for item in catalog.upstream]
        try:
            await asyncio.to_thread(_write_json, Path(dump_path), snapshot)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to write tools snapshot to %s: %s", dump_path, exc)


def _write_json(path: Path, payload: List[Dict[str, Any]]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle)
