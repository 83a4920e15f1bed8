"""Protocol session model.

A Session binds one opaque identifier to one transport instance and walks
a one-way lifecycle: initializing → active → closed. Session objects are
owned by the session store; nothing else keeps them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionStateError(RuntimeError):
    pass


@dataclass
class Session:
    id: str
    transport: Any
    state: SessionState = SessionState.INITIALIZING
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def activate(self) -> None:
        if self.state is SessionState.ACTIVE:
            return
        if self.state is not SessionState.INITIALIZING:
            raise SessionStateError(f"Session {self.id} cannot be activated from state {self.state.value!r}.")
        self.state = SessionState.ACTIVE

    def close(self) -> None:
        self.state = SessionState.CLOSED

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED
