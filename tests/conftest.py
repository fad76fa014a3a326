"""Shared fixtures for the gateway test suite."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

import pytest

from openapi_gateway.transport import Response


USERS_SPEC: Dict[str, Any] = {
    "openapi": "3.0.0",
    "info": {
        "title": "Users API",
        "description": "API for managing users",
        "version": "0.0.1",
    },
    "servers": [
        {"url": "http://localhost:9292", "description": "prod server"},
        {"url": "https://staging.api.com", "description": "Staging server"},
    ],
    "paths": {
        "/users": {
            "get": {
                "operationId": "users",
                "description": "List users",
                "parameters": [
                    {
                        "name": "q",
                        "in": "query",
                        "description": "search by name",
                        "example": "bill",
                        "required": False,
                    },
                    {"name": "cat", "in": "query", "description": "search by category", "required": False},
                ],
            },
            "post": {
                "operationId": "create_user",
                "description": "Create a user",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "name": {"type": "string", "description": "User name"},
                                    "age": {"type": "integer"},
                                },
                            }
                        }
                    },
                },
            },
        },
        "/users/{id}": {
            "put": {
                "operationId": "updateUser",
                "description": "Update a user",
                "parameters": [
                    {
                        "name": "id",
                        "in": "path",
                        "description": None,
                        "required": True,
                        "schema": {"type": "string"},
                    }
                ],
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/User"}}
                    },
                },
                "responses": {"200": {"description": "OK"}},
            }
        },
    },
    "components": {
        "schemas": {
            "User": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "User name", "example": "Joe"},
                    "age": {"type": "integer", "example": 30},
                    "file": {"type": "string", "format": "byte"},
                },
                "required": ["name", "age"],
            }
        }
    },
}


class FakeHTTP:
    """Records outbound calls and answers each with ``response``.

    Set ``response`` to an exception instance to make every call fail.
    """

    def __init__(self, response: Any = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.response = response or Response(200, "application/json", {"ok": True, "id": 123})

    def _send(self, verb: str, url: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        self.calls.append({"verb": verb, "url": url, "body": body, "headers": dict(headers or {})})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def get(self, url: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self._send("get", url, body, headers)

    def put(self, url: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self._send("put", url, body, headers)

    def post(self, url: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self._send("post", url, body, headers)

    def patch(self, url: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self._send("patch", url, body, headers)

    def delete(self, url: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self._send("delete", url, body, headers)


@pytest.fixture
def users_spec() -> Dict[str, Any]:
    return copy.deepcopy(USERS_SPEC)


@pytest.fixture
def fake_http() -> FakeHTTP:
    return FakeHTTP()
