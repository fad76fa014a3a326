"""Exceptions raised while loading and compiling OpenAPI documents."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple


class GatewayError(Exception):
    pass


class MissingSpecError(GatewayError):
    pass


class MissingHTTPSpecError(MissingSpecError):
    def __init__(self, response: Any) -> None:
        self.response = response
        super().__init__(f"Failed to fetch OpenAPI spec: HTTP {response.status}")


class InvalidSpecError(GatewayError):
    pass


class SpecValidationError(InvalidSpecError):
    """The document does not match the OpenAPI grammar.

    ``path`` points at the first offending node and ``expected`` describes the
    shape that was expected there. ``errors`` holds every failure reported.
    """

    def __init__(
        self,
        path: Sequence[Any],
        expected: str,
        errors: List[Dict[str, Any]] | None = None,
    ) -> None:
        self.path: Tuple[Any, ...] = tuple(path)
        self.expected = expected
        self.errors = errors or []
        location = " -> ".join(str(part) for part in self.path) or "<document>"
        super().__init__(f"Invalid OpenAPI document at {location}: {expected}")
