"""JSON-RPC 2.0 envelopes and MCP protocol constants."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


JSON_RPC_VERSION = "2.0"

PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_VERSIONS = ("2025-03-26", "2024-11-05")

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class ToolCallParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


def result(request_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": JSON_RPC_VERSION, "id": request_id, "result": payload}


def error(request_id: Any, code: int, message: str, data: Optional[Any] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        body["data"] = data
    return {"jsonrpc": JSON_RPC_VERSION, "id": request_id, "error": body}


def negotiate_version(requested: Any) -> str:
    if requested in SUPPORTED_VERSIONS:
        return requested
    return PROTOCOL_VERSION
