"""MCP Streamable HTTP gateway exposing compiled operations as tools."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import httpx
from pydantic import ValidationError

from . import jsonrpc
from .client import Client, Err
from .logging import redact_headers
from .operation import Operation
from .sessions import InMemorySessionStore, Session, SessionStore


logger = logging.getLogger(__name__)

JSON_MIME = "application/json"
SESSION_HEADER = "MCP-Session-Id"
ALLOWED_METHODS = "POST, DELETE, OPTIONS"
DEFAULT_FORWARD_HEADERS = ("Authorization",)

JSON_SCHEMA_TYPES = {
    "string": "string",
    "integer": "integer",
    "int": "integer",
    "number": "number",
    "float": "number",
    "double": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "object": "object",
}

HeaderInput = Union[Mapping[str, str], Sequence[Any], None]


@dataclass
class GatewayResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class _Reply:
    message: Optional[Dict[str, Any]] = None
    status: int = 200
    session_id: Optional[str] = None


def json_schema_type(param_type: Any) -> str:
    return JSON_SCHEMA_TYPES.get(str(param_type), "string")


def operation_to_tool(operation: Operation) -> Dict[str, Any]:
    by_name = {param.name: param for param in operation.parameters}
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for name, param in by_name.items():
        prop: Dict[str, Any] = {"type": json_schema_type(param.type)}
        if param.description:
            prop["description"] = param.description
        properties[name] = prop
        if param.required:
            required.append(name)

    tool: Dict[str, Any] = {
        "name": operation.name,
        "inputSchema": {"type": "object", "properties": properties},
    }
    if operation.description:
        tool["description"] = operation.description
    if required:
        tool["inputSchema"]["required"] = required
    return tool


class MCPGateway:
    """Session-oriented JSON-RPC 2.0 endpoint over a dispatch Client.

    ``handle`` takes one HTTP request (method, headers, raw body) and returns
    the HTTP response to send. Each request is routed synchronously; tool
    calls block until the upstream API answers.
    """

    def __init__(
        self,
        client: Client,
        name: Optional[str] = None,
        version: str = "1.0",
        instructions: Optional[str] = None,
        forward_headers: Iterable[str] = DEFAULT_FORWARD_HEADERS,
        sessions: Optional[SessionStore] = None,
    ) -> None:
        self.client = client
        self.name = name or client.info.get("title") or "OpenAPI MCP Gateway"
        self.version = version
        self.instructions = instructions
        self.forward_headers = [header.lower() for header in forward_headers]
        self.sessions = sessions if sessions is not None else InMemorySessionStore()
        self._handlers: Dict[str, Callable[..., _Reply]] = {
            "initialize": self._initialize,
            "notifications/initialized": self._initialized,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "ping": self._ping,
        }

    def handle(self, method: str, headers: HeaderInput = None, body: bytes = b"") -> GatewayResponse:
        request_headers = httpx.Headers(headers or {})
        try:
            verb = method.upper()
            if verb == "POST":
                return self._handle_post(request_headers, body)
            if verb == "DELETE":
                return self._handle_delete(request_headers)
            if verb == "OPTIONS":
                return self._handle_options()
            return GatewayResponse(405, {"Allow": ALLOWED_METHODS})
        except Exception as exc:
            logger.exception("Unhandled error while routing MCP request")
            return self._json_response(jsonrpc.error(None, jsonrpc.INTERNAL_ERROR, str(exc)))

    def _handle_post(self, headers: httpx.Headers, body: bytes) -> GatewayResponse:
        accept = headers.get("accept", "")
        if accept and JSON_MIME not in accept and "*/*" not in accept:
            return GatewayResponse(
                406,
                {"Content-Type": JSON_MIME},
                json.dumps({"error": "Not Acceptable"}).encode("utf-8"),
            )

        if not body or not body.strip():
            return self._json_response(
                jsonrpc.error(None, jsonrpc.PARSE_ERROR, "Empty request body")
            )
        try:
            message = json.loads(body)
        except ValueError:
            return self._json_response(jsonrpc.error(None, jsonrpc.PARSE_ERROR, "Parse error"))

        session_id = headers.get(SESSION_HEADER)
        forwarded = self._forwarded_headers(headers)
        return self._route(message, session_id, forwarded)

    def _handle_delete(self, headers: httpx.Headers) -> GatewayResponse:
        session_id = headers.get(SESSION_HEADER)
        if not session_id:
            return GatewayResponse(400)
        if self.sessions.delete(session_id):
            logger.info("Deleted MCP session %s", session_id)
            return GatewayResponse(204)
        return GatewayResponse(404)

    def _handle_options(self) -> GatewayResponse:
        allowed_headers = ["Content-Type", SESSION_HEADER, "Accept"]
        allowed_headers.extend(_canonical_header(name) for name in self.forward_headers)
        return GatewayResponse(
            204,
            {
                "Allow": ALLOWED_METHODS,
                "Access-Control-Allow-Methods": ALLOWED_METHODS,
                "Access-Control-Allow-Headers": ", ".join(allowed_headers),
            },
        )

    def _route(
        self, message: Any, session_id: Optional[str], forwarded: Dict[str, str]
    ) -> GatewayResponse:
        if isinstance(message, list):
            if not message:
                return self._json_response(
                    jsonrpc.error(None, jsonrpc.INVALID_REQUEST, "Invalid request")
                )
            replies = [self._process(item, session_id, forwarded) for item in message]
            responses = [reply.message for reply in replies if reply.message is not None]
            if not responses:
                return GatewayResponse(204)
            new_session = next((reply.session_id for reply in replies if reply.session_id), None)
            return self._json_response(responses, new_session)

        reply = self._process(message, session_id, forwarded)
        if reply.message is None:
            return GatewayResponse(reply.status)
        return self._json_response(reply.message, reply.session_id, reply.status)

    def _process(
        self, message: Any, session_id: Optional[str], forwarded: Dict[str, str]
    ) -> _Reply:
        if not isinstance(message, dict):
            return _Reply(jsonrpc.error(None, jsonrpc.INVALID_REQUEST, "Invalid request"))

        request_id = message.get("id")
        if message.get("jsonrpc") != jsonrpc.JSON_RPC_VERSION:
            return _Reply(
                jsonrpc.error(request_id, jsonrpc.INVALID_REQUEST, "Invalid JSON-RPC version")
            )

        method = message.get("method")
        params = message.get("params")
        if params is None:
            params = {}
        logger.debug("MCP %s id=%s session=%s", method, request_id, session_id)

        handler = self._handlers.get(method) if isinstance(method, str) else None
        if handler is None:
            if request_id is None:
                return _Reply(status=204)
            return _Reply(
                jsonrpc.error(request_id, jsonrpc.METHOD_NOT_FOUND, f"Method not found: {method}")
            )
        if not isinstance(params, dict):
            if request_id is None:
                params = {}
            else:
                return _Reply(jsonrpc.error(request_id, jsonrpc.INVALID_PARAMS, "Invalid params"))

        return handler(request_id, params, session_id, forwarded)

    def _initialize(self, request_id: Any, params: Dict[str, Any], *_: Any) -> _Reply:
        version = jsonrpc.negotiate_version(params.get("protocolVersion"))
        session = Session(protocol_version=version)
        self.sessions.put(session)
        logger.info("Created MCP session %s (protocol %s)", session.id, version)

        payload: Dict[str, Any] = {
            "protocolVersion": version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.name, "version": self.version},
        }
        if self.instructions:
            payload["instructions"] = self.instructions
        return _Reply(jsonrpc.result(request_id, payload), session_id=session.id)

    def _initialized(
        self, request_id: Any, params: Dict[str, Any], session_id: Optional[str], *_: Any
    ) -> _Reply:
        session = self.sessions.get(session_id) if session_id else None
        if session is not None:
            session.initialized = True
            self.sessions.put(session)
        return _Reply(status=202)

    def _tools_list(self, request_id: Any, *_: Any) -> _Reply:
        tools = [operation_to_tool(operation) for operation in self.client.registry]
        return _Reply(jsonrpc.result(request_id, {"tools": tools}))

    def _tools_call(
        self,
        request_id: Any,
        params: Dict[str, Any],
        session_id: Optional[str],
        forwarded: Dict[str, str],
    ) -> _Reply:
        try:
            call = jsonrpc.ToolCallParams.model_validate(params)
        except ValidationError as exc:
            details = [
                {"loc": list(item["loc"]), "msg": item["msg"]} for item in exc.errors(include_url=False)
            ]
            return _Reply(
                jsonrpc.error(request_id, jsonrpc.INVALID_PARAMS, "Invalid params", details)
            )

        if call.name not in self.client:
            return _Reply(
                jsonrpc.error(request_id, jsonrpc.INVALID_PARAMS, f"Unknown tool: {call.name}")
            )

        client = self.client.with_headers(forwarded) if forwarded else self.client
        if forwarded:
            logger.debug("Forwarding headers for %s: %s", call.name, redact_headers(forwarded))
        outcome = client[call.name].invoke(call.arguments)

        if isinstance(outcome, Err):
            text, is_error = outcome.message, True
        else:
            value = outcome.value
            text = value if isinstance(value, str) else json.dumps(value, default=str)
            is_error = False

        return _Reply(
            jsonrpc.result(
                request_id,
                {"content": [{"type": "text", "text": text}], "isError": is_error},
            )
        )

    def _ping(self, request_id: Any, *_: Any) -> _Reply:
        return _Reply(jsonrpc.result(request_id, {}))

    def _forwarded_headers(self, headers: httpx.Headers) -> Dict[str, str]:
        forwarded: Dict[str, str] = {}
        for name in self.forward_headers:
            value = headers.get(name)
            if value is not None:
                forwarded[_canonical_header(name)] = value
        return forwarded

    def _json_response(
        self, payload: Any, session_id: Optional[str] = None, status: int = 200
    ) -> GatewayResponse:
        headers = {"Content-Type": JSON_MIME}
        if session_id:
            headers[SESSION_HEADER] = session_id
        return GatewayResponse(status, headers, json.dumps(payload).encode("utf-8"))


def _canonical_header(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))
