"""Compile a normalized OpenAPI document into Operation records."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .operation import Operation, ParameterSpec, build_parameter
from .parser import VERBS


logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_NON_WORD = re.compile(r"[^a-zA-Z0-9_]")
_LEADING = re.compile(r"\A[\d_]+")
_REPEATED_UNDERSCORES = re.compile(r"_+")
_TRAILING = re.compile(r"_+\Z")

_ROUTED_LOCATIONS = {"path", "query"}

Endpoint = Tuple[str, str, Dict[str, Any], List[Dict[str, Any]]]


def to_method_name(raw: str) -> str:
    """Normalize an operation id or synthesized name into a snake_case identifier."""
    name = _CAMEL_BOUNDARY.sub(r"\1_\2", str(raw))
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _NON_WORD.sub("_", name)
    name = name.lower()
    name = _LEADING.sub("", name)
    name = _REPEATED_UNDERSCORES.sub("_", name)
    return _TRAILING.sub("", name)


def iter_endpoints(document: Dict[str, Any]) -> Iterator[Endpoint]:
    for path, item in (document.get("paths") or {}).items():
        shared = item.get("parameters") or []
        for verb, details in item.items():
            if verb not in VERBS or not details:
                continue
            yield path, verb, details, shared


def compile_operations(document: Dict[str, Any]) -> List[Operation]:
    operations: List[Operation] = []
    for path, verb, details, shared in iter_endpoints(document):
        raw_name = (details.get("operationId") or "").strip() or f"{verb}_{path}"
        name = to_method_name(raw_name)
        if not name:
            logger.warning("Skipping %s %s: operation name %r normalizes to nothing", verb.upper(), path, raw_name)
            continue

        parameters = _declared_parameters(shared, details.get("parameters") or [])
        parameters.extend(_body_parameters(details))
        operations.append(
            Operation(
                name=name,
                verb=verb,
                path=path,
                description=details.get("description") or details.get("summary") or "",
                parameters=tuple(parameters),
            )
        )
        logger.debug("Compiled operation %s (%s %s)", name, verb.upper(), path)

    return operations


def _declared_parameters(
    shared: List[Dict[str, Any]], own: List[Dict[str, Any]]
) -> List[ParameterSpec]:
    merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for declaration in [*shared, *own]:
        merged[(declaration["name"], declaration["in"])] = declaration

    parameters: List[ParameterSpec] = []
    for declaration in merged.values():
        if declaration["in"] not in _ROUTED_LOCATIONS:
            continue
        schema = declaration.get("schema") or {}
        parameters.append(
            build_parameter(
                name=declaration["name"],
                location=declaration["in"],
                type=schema.get("type"),
                description=declaration.get("description"),
                example=declaration.get("example"),
                required=declaration.get("required", False),
            )
        )
    return parameters


def _body_parameters(details: Dict[str, Any]) -> List[ParameterSpec]:
    schema = _json_body_schema(details)
    if not schema or schema.get("type") != "object":
        return []

    required = set(schema.get("required") or [])
    parameters: List[ParameterSpec] = []
    for name, prop in (schema.get("properties") or {}).items():
        prop = prop if isinstance(prop, dict) else {}
        parameters.append(
            build_parameter(
                name=name,
                location="body",
                type=prop.get("type"),
                description=prop.get("description"),
                example=prop.get("example"),
                required=name in required,
            )
        )
    return parameters


def _json_body_schema(details: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    content = (details.get("requestBody") or {}).get("content") or {}
    media = content.get("application/json")
    if media is None:
        media = next(
            (value for key, value in content.items() if key.split(";")[0].strip().endswith("+json")),
            None,
        )
    if not media:
        return None
    return media.get("schema")
