"""CLI entry point for the OpenAPI Tool Bridge."""

from __future__ import annotations

import asyncio

import uvicorn

from .config import get_settings
from .logging import configure_logging
from .server import build_server


async def _run() -> None:
    settings = get_settings()
    configure_logging(settings.bridge_log_level)

    mcp, app = await build_server(settings)
    if app is None:
        await mcp.run_stdio_async()
        return

    config = uvicorn.Config(
        app,
        host=settings.bridge_host,
        port=settings.bridge_port,
        log_level=settings.bridge_log_level.lower(),
    )
    await uvicorn.Server(config).serve()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
