"""MCP server setup for the OpenAPI Tool Bridge."""

import logging
from typing import Any, Awaitable, Callable, Dict

from fastmcp import FastMCP
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .config import Settings
from .executors import HttpExecutor
from .http_api import mount_bridge_api
from .openapi import OpenAPILoader, build_input_model
from .registry import RegistryCache, RegistryQueryEngine, json_file_loader
from .service import ToolCatalogService

logger = logging.getLogger(__name__)

# Keyword arguments for FastMCP.http_app, keyed by BRIDGE_TRANSPORT. Any other
# value runs the server over stdio.
HTTP_TRANSPORTS: Dict[str, Dict[str, Any]] = {
    "http": {"transport": "http", "stateless_http": True, "json_response": True},
    "streamable-http": {
        "transport": "streamable-http",
        "stateless_http": True,
        "json_response": True,
    },
    "sse": {"transport": "sse"},
}
HTTP_TRANSPORTS["streamablehttp"] = HTTP_TRANSPORTS["streamable-http"]

_PUBLIC_PATHS = {"/health"}


async def build_server(settings: Settings) -> tuple[FastMCP, object | None]:
    loader = OpenAPILoader(timeout_seconds=settings.bridge_http_timeout_seconds)
    executor = HttpExecutor(timeout_seconds=settings.bridge_http_timeout_seconds)
    service = ToolCatalogService(settings, loader, executor)
    registry = RegistryQueryEngine(
        RegistryCache(json_file_loader(settings.registry_root), settings.registry_index_file)
    )

    mcp = FastMCP(settings.service_name, instructions=_instructions())
    app = _get_http_app(mcp, settings)
    if app is not None:
        _attach_auth(app, settings)
        _attach_healthcheck(app)
        mount_bridge_api(app, service, registry)

    if settings.bridge_spec_url:
        await register_spec_tools(mcp, service, settings)
    else:
        logger.info("BRIDGE_SPEC_URL not set; no MCP tools registered")

    return mcp, app


async def register_spec_tools(
    mcp: FastMCP, service: ToolCatalogService, settings: Settings
) -> None:
    listing = await service.list_tools(
        spec_url=settings.bridge_spec_url,
        base_url=settings.bridge_base_url,
        converter=settings.bridge_converter,
    )
    for tool in listing["tools"]:
        handler = _tool_handler(service, settings, tool)
        mcp.tool(name=tool["name"], description=tool["description"] or None)(handler)
        logger.info("Registered tool: %s (%s %s)", tool["name"], tool["method"], tool["path"])


def _tool_handler(
    service: ToolCatalogService, settings: Settings, tool: Dict[str, Any]
) -> Callable[[Any], Awaitable[Dict[str, Any]]]:
    input_model = build_input_model(tool["name"], tool["inputSchema"])
    tool_name = tool["name"]

    async def handler(payload: input_model) -> Dict[str, Any]:  # type: ignore[valid-type]
        return await service.execute_tool(
            tool_name,
            payload.model_dump(by_alias=True, exclude_none=True),
            spec_url=settings.bridge_spec_url,
            base_url=settings.bridge_base_url,
            converter=settings.bridge_converter,
            credential=settings.bridge_upstream_token,
        )

    handler.__name__ = tool_name
    return handler


def _attach_auth(app, settings: Settings) -> None:  # type: ignore[no-untyped-def]
    @app.middleware("http")
    async def auth_middleware(request, call_next):  # type: ignore[no-untyped-def]
        if request.method == "OPTIONS" or request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        expected = settings.bridge_service_token
        if not expected:
            request.state.auth = {"type": "anonymous"}
            return await call_next(request)

        if _bearer_token(request.headers.get("authorization", "")) != expected:
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        request.state.auth = {"type": "service"}
        return await call_next(request)


def _bearer_token(header: str) -> str:
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def _healthcheck(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    app.add_route("/health", _healthcheck, methods=["GET"])


def _instructions() -> str:
    return (
        "OpenAPI Tool Bridge. "
        "Each tool is an HTTP operation generated from an OpenAPI document; "
        "calls are forwarded to the upstream API and returned as text content."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    options = HTTP_TRANSPORTS.get(settings.bridge_transport.lower())
    if options is None:
        return None
    app = mcp.http_app(**options)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    return app
