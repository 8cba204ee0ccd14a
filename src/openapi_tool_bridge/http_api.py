"""HTTP routes for the tool catalog and the server registry."""

from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from .openapi import SpecLoadError
from .registry import RegistryQueryEngine
from .service import BridgeInputError, CatalogRequest, ToolCatalogService


logger = logging.getLogger(__name__)


def mount_bridge_api(  # type: ignore[no-untyped-def]
    app, service: ToolCatalogService, registry: RegistryQueryEngine
) -> None:
    async def catalog(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            return JSONResponse({"error": "Request body must be JSON"}, status_code=400)
        if not isinstance(payload, dict):
            return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

        try:
            catalog_request = CatalogRequest.model_validate(payload)
            result = await service.handle(catalog_request)
        except ValidationError as exc:
            return JSONResponse(
                {"error": "Invalid payload", "details": exc.errors(include_url=False)},
                status_code=400,
            )
        except BridgeInputError as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)
        except SpecLoadError as exc:
            logger.warning("OpenAPI spec could not be loaded: %s", exc)
            return JSONResponse({"error": str(exc)}, status_code=502)
        except Exception as exc:
            logger.exception("Catalog request failed")
            return JSONResponse({"error": str(exc) or "Unknown error"}, status_code=500)
        return JSONResponse(result)

    async def list_servers(request: Request) -> JSONResponse:
        params = request.query_params
        try:
            limit = _parse_limit(params.get("limit"))
            result = registry.list_servers(
                limit=limit,
                cursor=params.get("cursor") or None,
                updated_since=params.get("updated_since") or None,
            )
        except Exception as exc:
            logger.exception("Failed to list servers")
            return JSONResponse({"error": str(exc) or "Failed to list servers"}, status_code=500)
        return JSONResponse(result)

    async def get_server_version(request: Request) -> JSONResponse:
        server_name = request.path_params["server_name"]
        version = request.path_params["version"]
        try:
            detail = registry.find_server_version(server_name, version)
        except Exception as exc:
            logger.exception("Failed to get server version: %s@%s", server_name, version)
            return JSONResponse(
                {"error": str(exc) or "Failed to get server version"}, status_code=500
            )
        if detail is None:
            return JSONResponse({"error": "Server or version not found"}, status_code=404)
        return JSONResponse(detail)

    app.add_route("/api/mcp", catalog, methods=["POST"])
    app.add_route("/v0.1/servers", list_servers, methods=["GET"])
    app.add_route(
        "/v0.1/servers/{server_name:path}/versions/{version}",
        get_server_version,
        methods=["GET"],
    )


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
