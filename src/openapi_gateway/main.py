"""CLI entry point for the OpenAPI MCP gateway."""

from __future__ import annotations

import asyncio

import uvicorn

from .config import get_settings
from .logging import configure_logging
from .server import build_server


async def _run() -> None:
    settings = get_settings()
    configure_logging(settings.gateway_log_level)

    app = build_server(settings)
    config = uvicorn.Config(app, host=settings.gateway_host, port=settings.gateway_port)
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
