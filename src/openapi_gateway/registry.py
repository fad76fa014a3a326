"""Operation registry keyed by canonical operation name."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .compiler import compile_operations
from .operation import Operation


logger = logging.getLogger(__name__)


class OperationRegistry:
    """Ordered collection of operations.

    Names are unique. Adding an operation under a name that is already taken
    replaces the earlier one (last wins) while keeping its position.
    """

    def __init__(self) -> None:
        self._operations: Dict[str, Operation] = {}

    @classmethod
    def from_operations(cls, operations: Iterable[Operation]) -> "OperationRegistry":
        registry = cls()
        for operation in operations:
            registry.add(operation)
        return registry

    def add(self, operation: Operation) -> "OperationRegistry":
        existing = self._operations.get(operation.name)
        if existing is not None:
            logger.warning(
                "Operation name collision for %s: %s %s replaces %s %s",
                operation.name,
                operation.verb.upper(),
                operation.path,
                existing.verb.upper(),
                existing.path,
            )
        self._operations[operation.name] = operation
        return self

    def get(self, name: str) -> Optional[Operation]:
        return self._operations.get(name)

    def names(self) -> List[str]:
        return list(self._operations)

    def __getitem__(self, name: str) -> Operation:
        return self._operations[name]

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)

    def __repr__(self) -> str:
        return f"<OperationRegistry [{len(self)} operations]>"


def build_registry(document: Dict[str, Any]) -> OperationRegistry:
    return OperationRegistry.from_operations(compile_operations(document))
