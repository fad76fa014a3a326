"""OpenAPI document grammar, normalization and schema reference resolution."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from .errors import SpecValidationError


logger = logging.getLogger(__name__)

VERBS = ("get", "put", "post", "patch", "delete")


def _blank_if_none(value: Any) -> Any:
    return "" if value is None else value


def _stringify_example(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


Description = Annotated[Optional[str], BeforeValidator(_blank_if_none)]
Example = Annotated[Optional[str], BeforeValidator(_stringify_example)]


def ref_path(ref: str) -> List[str]:
    """Turn a local reference such as ``#/components/schemas/User`` into its key path."""
    pointer = ref[2:] if ref.startswith("#/") else ref
    return [part.replace("~1", "/").replace("~0", "~") for part in pointer.split("/")]


class _Node(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class _SchemaBase(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ObjectNode(_SchemaBase):
    type: Literal["object"]
    required: List[str] = Field(default_factory=list)
    properties: Dict[str, SchemaNode] = Field(default_factory=dict)


class ArrayNode(_SchemaBase):
    type: Literal["array"]
    items: Any


class ScalarNode(_SchemaBase):
    type: str
    description: Description = None
    example: Optional[Any] = None
    nullable: Optional[bool] = None
    format: Optional[str] = None
    enum: Optional[List[Any]] = None


class RefNode(_SchemaBase):
    ref: List[str] = Field(alias="$ref")

    @field_validator("ref", mode="before")
    @classmethod
    def _split_ref(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ref_path(value)
        return value


def _schema_kind(value: Any) -> str:
    if isinstance(value, dict):
        if "$ref" in value:
            return "ref"
        node_type = value.get("type")
    elif isinstance(value, RefNode):
        return "ref"
    else:
        node_type = getattr(value, "type", None)
    if node_type == "object":
        return "object"
    if node_type == "array":
        return "array"
    return "scalar"


SchemaNode = Annotated[
    Union[
        Annotated[ObjectNode, Tag("object")],
        Annotated[ArrayNode, Tag("array")],
        Annotated[ScalarNode, Tag("scalar")],
        Annotated[RefNode, Tag("ref")],
    ],
    Discriminator(_schema_kind),
]

ObjectNode.model_rebuild()

_SCHEMA_NODE: TypeAdapter[Any] = TypeAdapter(SchemaNode)


class ParameterSchemaNode(_SchemaBase):
    type: str = "string"
    default: Optional[Any] = None
    enum: Optional[List[Any]] = None


class ParameterNode(_Node):
    name: str
    in_: Literal["query", "path", "header"] = Field(alias="in")
    description: Description = None
    example: Example = None
    required: bool = False
    schema_: ParameterSchemaNode = Field(
        default_factory=lambda: ParameterSchemaNode(type="string"), alias="schema"
    )


class BodyContentNode(_Node):
    schema_: Optional[SchemaNode] = Field(default=None, alias="schema")


class RequestBodyNode(_Node):
    description: Description = None
    required: Optional[bool] = None
    content: Dict[str, BodyContentNode] = Field(default_factory=dict)


class VerbNode(_Node):
    summary: Optional[str] = None
    operation_id: Optional[str] = Field(default=None, alias="operationId")
    description: Description = None
    tags: List[str] = Field(default_factory=list)
    parameters: List[ParameterNode] = Field(default_factory=list)
    request_body: Optional[RequestBodyNode] = Field(default=None, alias="requestBody")


class PathNode(_Node):
    get: Optional[VerbNode] = None
    put: Optional[VerbNode] = None
    post: Optional[VerbNode] = None
    patch: Optional[VerbNode] = None
    delete: Optional[VerbNode] = None
    parameters: List[ParameterNode] = Field(default_factory=list)


class ServerNode(_Node):
    url: str
    description: Description = None

    @field_validator("url")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("server url must not be blank")
        return value


class TagNode(_Node):
    name: str
    description: Description = None


class InfoNode(_Node):
    title: str
    description: Description = ""
    version: str = ""


class OpenAPIDocument(_Node):
    openapi: str
    info: InfoNode = Field(default_factory=lambda: InfoNode(title=""))
    servers: List[ServerNode] = Field(default_factory=list)
    tags: List[TagNode] = Field(default_factory=list)
    paths: Dict[str, PathNode]
    components: Dict[str, Any] = Field(default_factory=dict)


def parse_document(raw: Any) -> Dict[str, Any]:
    """Validate and normalize an OpenAPI document.

    Defaults are applied, request body ``$ref`` schemas are replaced by the
    subtree they point at, and the ``components`` table is dropped. Raises
    ``SpecValidationError`` when the document does not fit the grammar.
    """
    raw = _inline_parameter_refs(raw)
    try:
        model = OpenAPIDocument.model_validate(raw)
    except ValidationError as exc:
        errors = exc.errors(include_url=False)
        first = errors[0]
        raise SpecValidationError(first["loc"], first["msg"], errors) from exc

    document = model.model_dump(by_alias=True, exclude_none=True)
    for path, item in document["paths"].items():
        document["paths"][path] = _document_order(item, raw["paths"][path])
    return resolve_refs(document)


def resolve_refs(document: Dict[str, Any]) -> Dict[str, Any]:
    for item in (document.get("paths") or {}).values():
        for verb in VERBS:
            details = item.get(verb)
            if not details:
                continue
            content = (details.get("requestBody") or {}).get("content") or {}
            for media in content.values():
                schema = media.get("schema")
                if isinstance(schema, dict):
                    media["schema"] = _resolve_node(document, schema, ())

    document.pop("components", None)
    return document


def _resolve_node(
    document: Dict[str, Any], node: Dict[str, Any], stack: Tuple[Tuple[str, ...], ...]
) -> Dict[str, Any]:
    ref = node.get("$ref")
    if ref is not None:
        key_path = tuple(ref if isinstance(ref, list) else ref_path(ref))
        pointer = "#/" + "/".join(key_path)
        if key_path in stack:
            logger.debug("Leaving recursive schema reference unresolved: %s", pointer)
            return node
        target = _dig(document, key_path)
        if target is None:
            logger.warning("Unresolvable schema reference: %s", pointer)
            return node
        try:
            resolved = _SCHEMA_NODE.dump_python(
                _SCHEMA_NODE.validate_python(target), by_alias=True, exclude_none=True
            )
        except ValidationError as exc:
            logger.warning("Schema reference %s does not point at a schema: %s", pointer, exc)
            return node
        return _resolve_node(document, resolved, stack + (key_path,))

    properties = node.get("properties")
    if node.get("type") == "object" and isinstance(properties, dict):
        node["properties"] = {
            name: _resolve_node(document, child, stack) if isinstance(child, dict) else child
            for name, child in properties.items()
        }

    items = node.get("items")
    if node.get("type") == "array" and isinstance(items, dict):
        node["items"] = _resolve_node(document, _normalize(items), stack)
    return node


def _normalize(node: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return _SCHEMA_NODE.dump_python(
            _SCHEMA_NODE.validate_python(node), by_alias=True, exclude_none=True
        )
    except ValidationError:
        return node


def _dig(document: Any, key_path: Sequence[str]) -> Any:
    current = document
    for key in key_path:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _document_order(item: Dict[str, Any], raw_item: Dict[str, Any]) -> Dict[str, Any]:
    ordered = {key: item[key] for key in raw_item if key in item}
    ordered.update((key, value) for key, value in item.items() if key not in ordered)
    return ordered


def _inline_parameter_refs(raw: Any) -> Any:
    if not isinstance(raw, dict) or not isinstance(raw.get("paths"), dict):
        return raw

    paths: Dict[str, Any] = {}
    for path, item in raw["paths"].items():
        if not isinstance(item, dict):
            paths[path] = item
            continue
        inlined = dict(item)
        for key, value in item.items():
            if key == "parameters":
                inlined[key] = _inline_parameters(raw, value)
            elif key in VERBS and isinstance(value, dict) and "parameters" in value:
                inlined[key] = {**value, "parameters": _inline_parameters(raw, value["parameters"])}
        paths[path] = inlined
    return {**raw, "paths": paths}


def _inline_parameters(raw: Dict[str, Any], parameters: Any) -> Any:
    if not isinstance(parameters, list):
        return parameters
    inlined = []
    for parameter in parameters:
        if isinstance(parameter, dict) and isinstance(parameter.get("$ref"), str):
            target = _dig(raw, ref_path(parameter["$ref"]))
            if isinstance(target, dict):
                parameter = target
        inlined.append(parameter)
    return inlined
