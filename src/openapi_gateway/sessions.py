"""MCP session state storage."""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class Session:
    protocol_version: str
    initialized: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class SessionStore(ABC):
    """Storage for MCP sessions, keyed by session id.

    Swap in an external implementation when several processes serve the same
    gateway.
    """

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    @abstractmethod
    def put(self, session: Session) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def put(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
