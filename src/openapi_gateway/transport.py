"""HTTP transport adapters used by the dispatch client."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx


logger = logging.getLogger(__name__)

JSON_MIME = "application/json"


@dataclass
class Response:
    status: int
    content_type: str
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    def get(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response: ...

    def put(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response: ...

    def post(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response: ...

    def patch(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response: ...

    def delete(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response: ...


class HTTPAdapter:
    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        verify_ssl: bool = True,
        timeout_seconds: float = 30,
    ) -> None:
        self.client = client or httpx.Client(verify=verify_ssl, timeout=timeout_seconds)

    def get(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response:
        return self.request("GET", url, body, headers)

    def put(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response:
        return self.request("PUT", url, body, headers)

    def post(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response:
        return self.request("POST", url, body, headers)

    def patch(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response:
        return self.request("PATCH", url, body, headers)

    def delete(self, url: str, body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Response:
        return self.request("DELETE", url, body, headers)

    def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Response:
        request_headers = dict(headers or {})
        content = self._encode_body(body, request_headers)

        logger.debug("%s %s", method, url)
        response = self.client.request(method, url, headers=request_headers, content=content)
        content_type = response.headers.get("content-type", "")

        payload: Any = response.text
        if _is_json(content_type) and response.content:
            payload = response.json()

        return Response(
            status=response.status_code,
            content_type=content_type,
            body=payload,
            headers=dict(response.headers),
        )

    def close(self) -> None:
        self.client.close()

    def _encode_body(self, body: Any, headers: Dict[str, str]) -> Optional[bytes]:
        if body is None or (hasattr(body, "__len__") and len(body) == 0):
            return None
        if isinstance(body, bytes):
            return body
        if isinstance(body, (dict, list)):
            if not any(key.lower() == "content-type" for key in headers):
                headers["Content-Type"] = JSON_MIME
            return json.dumps(body).encode("utf-8")
        return str(body).encode("utf-8")


class InprocAdapter(HTTPAdapter):
    """Send requests straight into an ASGI application without a network hop."""

    def __init__(self, app: Any, base_url: str = "http://testserver") -> None:
        from starlette.testclient import TestClient

        super().__init__(client=TestClient(app, base_url=base_url))


def _is_json(content_type: str) -> bool:
    mime = content_type.split(";")[0].strip().lower()
    return mime == JSON_MIME or mime.endswith("+json")
