"""Dispatch client binding compiled operations to an HTTP transport."""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

import httpx

from .config import VERSION
from .logging import redact_payload
from .operation import Operation
from .registry import OperationRegistry
from .transport import HTTPAdapter, Response, Transport


logger = logging.getLogger(__name__)

REQUEST_HEADERS: Dict[str, str] = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": f"openapi-gateway/{VERSION} (Python/{platform.python_version()})",
}


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Err:
    message: str
    code: Optional[int] = None


Result = Union[Ok, Err]


class RunnableOperation:
    """An Operation bound to a base URL, a transport and request headers."""

    def __init__(
        self,
        operation: Operation,
        base_url: str,
        http: Transport,
        headers: Mapping[str, str],
    ) -> None:
        self.operation = operation
        self.base_url = base_url
        self.http = http
        self.headers = dict(headers)

    def __getattr__(self, name: str) -> Any:
        operation = self.__dict__.get("operation")
        if operation is None:
            raise AttributeError(name)
        return getattr(operation, name)

    def __repr__(self) -> str:
        return f"<RunnableOperation {self.operation.name} {self.base_url}>"

    def url_for(self, path: str, query: Mapping[str, Any]) -> str:
        url = self.base_url.rstrip("/") + "/" + path.lstrip("/")
        if query:
            url = str(httpx.URL(url, params=query))
        return url

    def run(self, args: Optional[Mapping[str, Any]] = None) -> Response:
        parts = self.operation.split_arguments({str(key): value for key, value in (args or {}).items()})
        url = self.url_for(parts.path, parts.query)
        send = getattr(self.http, self.operation.verb)
        return send(url, body=parts.payload, headers=self.headers)

    def call(self, args: Optional[Mapping[str, Any]] = None) -> Any:
        return self.run(args).body

    def invoke(self, args: Optional[Mapping[str, Any]] = None) -> Result:
        try:
            return Ok(self.call(args))
        except Exception as exc:
            logger.warning(
                "Operation %s failed: %s args=%s",
                self.operation.name,
                exc,
                redact_payload(dict(args or {})),
            )
            return Err(str(exc) or exc.__class__.__name__)


class Client:
    """Callable front end over an OperationRegistry.

    Every operation is reachable as ``client[name]`` and as a method named after
    its canonical name, e.g. ``client.update_user(id=1, name="Joe")``.
    """

    def __init__(
        self,
        registry: OperationRegistry,
        base_url: str,
        info: Optional[Mapping[str, Any]] = None,
        http: Optional[Transport] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.registry = registry
        self.base_url = base_url
        self.info: Dict[str, Any] = dict(info or {})
        self.http: Transport = http if http is not None else HTTPAdapter()
        self.headers: Dict[str, str] = dict(headers or {})
        request_headers = {**REQUEST_HEADERS, **self.headers}
        self._operations: Dict[str, RunnableOperation] = {
            operation.name: RunnableOperation(operation, base_url, self.http, request_headers)
            for operation in registry
        }

    def __getitem__(self, name: str) -> RunnableOperation:
        return self._operations[str(name)]

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[RunnableOperation]:
        return iter(self._operations.values())

    def __getattr__(self, name: str) -> Callable[..., Response]:
        operations = self.__dict__.get("_operations") or {}
        if name not in operations:
            raise AttributeError(f"{type(self).__name__!s} has no operation {name!r}")
        runnable = operations[name]

        def dispatch(**kwargs: Any) -> Response:
            return runnable.run(kwargs)

        dispatch.__name__ = name
        dispatch.__doc__ = runnable.operation.description
        return dispatch

    def __dir__(self) -> List[str]:
        return [*super().__dir__(), *self._operations]

    def __repr__(self) -> str:
        title = self.info.get("title", "")
        version = self.info.get("version", "")
        return f'<Client {self.base_url} "{title}"/{version} [{len(self)} operations]>'

    def with_headers(self, headers: Mapping[str, str]) -> "Client":
        return Client(
            self.registry,
            base_url=self.base_url,
            info=self.info,
            http=self.http,
            headers={**self.headers, **headers},
        )

    def to_llm_tools(self) -> List[RunnableOperation]:
        return list(self._operations.values())
