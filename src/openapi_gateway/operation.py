"""Compiled operation records and request argument extraction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .logging import redact_payload


logger = logging.getLogger(__name__)

LOCATIONS = ("path", "query", "body")

Arguments = Dict[str, Any]


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    location: str
    type: str = "string"
    description: str = ""
    example: Optional[str] = None
    required: bool = False


def build_parameter(
    name: str,
    location: str,
    type: Optional[str] = None,
    description: Optional[str] = None,
    example: Any = None,
    required: bool = False,
) -> ParameterSpec:
    """Build a ParameterSpec, folding the example into its description."""
    if location not in LOCATIONS:
        raise ValueError(f"Unsupported parameter location: {location}")
    text = description or ""
    example_text = None if example is None else str(example)
    if example_text:
        text = f"{text} (eg {example_text})"
    return ParameterSpec(
        name=name,
        location=location,
        type=type or "string",
        description=text,
        example=example_text,
        required=bool(required),
    )


@dataclass(frozen=True)
class RequestParts:
    path: str
    query: Arguments
    payload: Arguments


@dataclass(frozen=True)
class Operation:
    name: str
    verb: str
    path: str
    description: str = ""
    parameters: Tuple[ParameterSpec, ...] = ()
    _by_location: Dict[str, Tuple[ParameterSpec, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))
        object.__setattr__(
            self,
            "_by_location",
            {
                location: tuple(p for p in self.parameters if p.location == location)
                for location in LOCATIONS
            },
        )

    def __repr__(self) -> str:
        return f"<Operation {self.name} {self.verb.upper()} {self.path} [{len(self.parameters)} params]>"

    def params_in(self, location: str) -> Tuple[ParameterSpec, ...]:
        return self._by_location.get(location, ())

    def parameter(self, name: str) -> Optional[ParameterSpec]:
        found = None
        for param in self.parameters:
            if param.name == name:
                found = param
        return found

    def path_for(self, args: Mapping[str, Any]) -> Tuple[str, Arguments]:
        """Substitute path parameters present in ``args`` into the path template.

        Returns the expanded path and the arguments that were not consumed.
        Placeholders whose argument is missing are left in place.
        """
        remaining = dict(args)
        path = self.path
        for param in self.params_in("path"):
            if param.name in remaining:
                path = path.replace("{" + param.name + "}", str(remaining.pop(param.name)))
        return path, remaining

    def query_for(self, args: Mapping[str, Any]) -> Tuple[Arguments, Arguments]:
        return _take(self.params_in("query"), args)

    def payload_for(self, args: Mapping[str, Any]) -> Tuple[Arguments, Arguments]:
        return _take(self.params_in("body"), args)

    def split_arguments(self, args: Mapping[str, Any]) -> RequestParts:
        """Split caller arguments into path, query and body, in that order.

        Arguments no parameter claims are dropped.
        """
        path, remaining = self.path_for(args)
        query, remaining = self.query_for(remaining)
        payload, remaining = self.payload_for(remaining)
        if remaining:
            logger.debug(
                "Dropping unknown arguments for %s: %s", self.name, redact_payload(remaining)
            )
        return RequestParts(path=path, query=query, payload=payload)


def _take(params: Tuple[ParameterSpec, ...], args: Mapping[str, Any]) -> Tuple[Arguments, Arguments]:
    remaining = dict(args)
    consumed: Arguments = {}
    for param in params:
        if param.name in remaining:
            consumed[param.name] = remaining.pop(param.name)
    return consumed, remaining
