"""
Audit Records

Every state-changing operation of the policy layer appends one AuditEvent to
the wallet's AuditLog. The log is the only audit trail the core produces:
events carry the actor, what changed (subject + action) and either the new
value, the commitment hash, or both.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..logger import get_logger

logger = get_logger(__name__)


class AuditAction(str, Enum):
    """What happened to the subject."""
    INITIALIZED = "initialized"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXECUTED = "executed"
    TRANSFERRED = "transferred"


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (tuple, list)):
        return [_jsonable(v) for v in value]
    if isinstance(value, int) and not isinstance(value, bool):
        # Wei amounts overflow JSON number precision
        return str(value)
    return value


@dataclass(frozen=True)
class AuditEvent:
    """
    One entry of the audit trail.

    Attributes:
        subject: Policy or operation family (e.g. "spend_limit", "whitelist_addition")
        action: AuditAction
        actor: Address that triggered the change
        value: New value, pending payload or transfer details
        commitment: Commitment hash for hash-committed payloads
        timestamp: Clock reading at the time of the change
    """
    subject: str
    action: AuditAction
    actor: str
    value: Any = None
    commitment: Optional[str] = None
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @property
    def name(self) -> str:
        return f"{self.subject}/{self.action.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.name,
            "subject": self.subject,
            "action": self.action.value,
            "actor": self.actor,
            "value": _jsonable(self.value),
            "commitment": self.commitment,
            "timestamp": self.timestamp,
        }


class AuditLog:
    """
    Append-only, ordered list of AuditEvents.

    Listeners registered with `subscribe` are called synchronously for every
    new event, after it has been appended. A listener that raises is logged
    and skipped; the remaining listeners still run.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock
        self._events: List[AuditEvent] = []
        self._listeners: List[Callable[[AuditEvent], None]] = []

    def record(
        self,
        subject: str,
        action: AuditAction,
        actor: str,
        value: Any = None,
        commitment: Optional[str] = None,
    ) -> AuditEvent:
        kwargs = {}
        if self._clock is not None:
            kwargs["timestamp"] = int(self._clock())
        event = AuditEvent(
            subject=subject,
            action=action,
            actor=actor,
            value=value,
            commitment=commitment,
            **kwargs,
        )
        self._events.append(event)

        details = f" value={value}" if value is not None else ""
        if commitment is not None:
            details += f" commitment={commitment}"
        logger.info(f"[{event.name}] actor={actor}{details}")

        # The change is already applied; a failing listener must not turn it
        # into an error for the caller.
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Audit listener {listener!r} failed on [{event.name}]")
        return event

    def subscribe(self, listener: Callable[[AuditEvent], None]) -> None:
        self._listeners.append(listener)

    @property
    def events(self) -> List[AuditEvent]:
        return list(self._events)

    def filter(
        self,
        subject: Optional[str] = None,
        action: Optional[AuditAction] = None,
    ) -> List[AuditEvent]:
        return [
            e for e in self._events
            if (subject is None or e.subject == subject)
            and (action is None or e.action == action)
        ]

    @property
    def last(self) -> Optional[AuditEvent]:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[AuditEvent]:
        return iter(list(self._events))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": len(self._events),
            "events": [e.to_dict() for e in self._events],
        }
