"""Load OpenAPI documents and build dispatch clients from them."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from .client import REQUEST_HEADERS, Client
from .errors import InvalidSpecError, MissingHTTPSpecError, MissingSpecError
from .parser import parse_document
from .registry import build_registry
from .transport import HTTPAdapter, Transport


logger = logging.getLogger(__name__)

URL_EXP = re.compile(r"^https?://", re.IGNORECASE)


def from_openapi(
    source: Any,
    http: Optional[Transport] = None,
    base_url: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> Client:
    """Build a Client from an OpenAPI document.

    ``source`` may be a parsed document, a JSON string, a file-like object, a
    ``Path``, or an ``http(s)://`` URL fetched through ``http``.
    """
    http = http if http is not None else HTTPAdapter()
    raw, spec_url = load_document(source, http)
    document = parse_document(raw)
    registry = build_registry(document)
    resolved_base_url = resolve_base_url(document, spec_url=spec_url, base_url=base_url)

    logger.info(
        "Loaded OpenAPI spec %r with %s operations (base_url=%s)",
        document["info"].get("title", ""),
        len(registry),
        resolved_base_url,
    )
    return Client(registry, resolved_base_url, info=document["info"], http=http, headers=headers)


def load_document(source: Any, http: Transport) -> Tuple[Any, Optional[str]]:
    if isinstance(source, Mapping):
        return dict(source), None

    if isinstance(source, str) and URL_EXP.match(source):
        response = http.get(source, headers=REQUEST_HEADERS)
        if not 200 <= int(response.status) < 300:
            raise MissingHTTPSpecError(response)
        body = response.body
        if isinstance(body, (str, bytes)):
            body = _decode(body, source)
        return body, source

    if isinstance(source, Path):
        if not source.is_file():
            raise MissingSpecError(f"OpenAPI spec file not found: {source}")
        return _decode(source.read_text(encoding="utf-8"), str(source)), None

    if hasattr(source, "read"):
        return _decode(source.read(), "stream"), None

    if isinstance(source, (str, bytes)):
        return _decode(source, "string"), None

    raise TypeError(f"Unhandled spec source: {source!r}")


def resolve_base_url(
    document: Dict[str, Any],
    spec_url: Optional[str] = None,
    base_url: Optional[str] = None,
) -> str:
    if base_url:
        return base_url

    servers = document.get("servers") or []
    if servers:
        server_url = servers[0]["url"]
        if URL_EXP.match(server_url):
            return server_url
        if spec_url:
            return str(httpx.URL(spec_url).join(server_url))
        raise InvalidSpecError(
            f"Server URL {server_url!r} is relative; pass base_url to resolve it"
        )

    if spec_url:
        url = httpx.URL(spec_url)
        return f"{url.scheme}://{url.netloc.decode('ascii')}"

    raise InvalidSpecError("OpenAPI spec declares no servers; pass base_url")


def _decode(content: Any, origin: str) -> Any:
    try:
        return json.loads(content)
    except ValueError as exc:
        raise InvalidSpecError(f"OpenAPI spec from {origin} is not valid JSON: {exc}") from exc
