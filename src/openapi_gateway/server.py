"""Starlette application serving the MCP gateway."""

from __future__ import annotations

import logging
from pathlib import Path

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .config import Settings
from .errors import MissingSpecError
from .gateway import MCPGateway
from .loader import URL_EXP, from_openapi
from .transport import HTTPAdapter

logger = logging.getLogger(__name__)

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_gateway(settings: Settings) -> MCPGateway:
    spec_url = settings.gateway_spec_url
    if not spec_url:
        raise MissingSpecError("gateway_spec_url is not configured")

    http = HTTPAdapter(
        verify_ssl=settings.gateway_verify_ssl,
        timeout_seconds=settings.gateway_timeout_seconds,
    )
    source = spec_url if URL_EXP.match(spec_url) else Path(spec_url)
    client = from_openapi(
        source,
        http=http,
        base_url=settings.gateway_base_url,
        headers=settings.upstream_headers(),
    )
    gateway = MCPGateway(
        client,
        name=settings.gateway_server_name,
        version=settings.gateway_server_version,
        instructions=settings.gateway_instructions,
        forward_headers=settings.forward_headers(),
    )
    for operation in client.registry:
        logger.info("Registered tool: %s", operation.name)
    return gateway


def build_app(gateway: MCPGateway, path: str = "/") -> Starlette:
    async def mcp_endpoint(request: Request) -> Response:
        body = await request.body()
        result = await run_in_threadpool(gateway.handle, request.method, request.headers.raw, body)
        return Response(content=result.body, status_code=result.status, headers=result.headers)

    async def healthcheck(_request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return Starlette(
        routes=[
            Route("/health", healthcheck, methods=["GET"]),
            Route(path, mcp_endpoint, methods=_ALL_METHODS),
        ]
    )


def build_server(settings: Settings) -> Starlette:
    return build_app(build_gateway(settings))
