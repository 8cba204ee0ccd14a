"""Print the tool catalog generated from an OpenAPI document."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict

import yaml

from openapi_tool_bridge.config import get_settings
from openapi_tool_bridge.converters import CONVERTERS
from openapi_tool_bridge.service import ToolCatalogService


def _load_spec(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


async def _list(args: argparse.Namespace) -> Dict[str, Any]:
    service = ToolCatalogService(get_settings())
    if args.spec.startswith(("http://", "https://")):
        return await service.list_tools(
            spec_url=args.spec, base_url=args.base_url, converter=args.converter
        )

    spec_path = Path(args.spec).expanduser().resolve()
    if not spec_path.exists():
        raise SystemExit(f"Spec file not found: {spec_path}")
    return await service.list_tools(
        spec=_load_spec(spec_path), base_url=args.base_url, converter=args.converter
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="List MCP tools generated from an OpenAPI spec")
    parser.add_argument("spec", help="Path or URL of the OpenAPI document (JSON or YAML)")
    parser.add_argument(
        "--base-url",
        default=os.getenv("BRIDGE_BASE_URL") or None,
        help="Upstream base URL (default: first server in the document)",
    )
    parser.add_argument(
        "--converter",
        default="mapper",
        choices=sorted(CONVERTERS),
        help="Tool shape used to normalise the operations",
    )
    parser.add_argument(
        "--names-only",
        action="store_true",
        help="Print only METHOD path name lines",
    )

    args = parser.parse_args()
    listing = asyncio.run(_list(args))

    if args.names_only:
        for tool in listing["tools"]:
            print(f"{tool['method']:7} {tool['path']}  {tool['name']}")
        print(f"Tools: {len(listing['tools'])} (base URL: {listing['baseUrl'] or '-'})")
        return
    print(json.dumps(listing, indent=2))


if __name__ == "__main__":
    main()
