from __future__ import annotations
import enum
import threading
from dataclasses import dataclass, field
from typing import List, Optional


class SessionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    DRAINING = "draining"
    CLOSED = "closed"


class StopReason(enum.Enum):
    INTERRUPTED = "interrupted"
    ROUTER_CLOSED = "router-closed"
    LIMIT_REACHED = "limit-reached"


@dataclass(frozen=True)
class InvocationPolicy:
    """How a registered procedure answers calls"""
    invoke_count: Optional[int] = None   # None or 0: unlimited
    delay: float = 0.0                   # seconds before REGISTER
    commands: List[str] = field(default_factory=list)
    script: Optional[str] = None
    shell: str = "bash"

    @property
    def command_line(self) -> str:
        return "; ".join(self.commands)


class InvocationCounter:
    """
    Remaining-invocation counter shared by concurrent invocations.

    take() is the only mutation and never goes below zero.
    """

    def __init__(self, remaining: int) -> None:
        self._remaining = remaining
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        return self._remaining

    def take(self) -> Optional[int]:
        """Consume one invocation; None once the counter is exhausted"""
        with self._lock:
            if self._remaining <= 0:
                return None
            self._remaining -= 1
            return self._remaining
