"""JSONL audit trail for mapping verifications and schema overlay writes.

Every line is one event:

    {"timestamp": ..., "session_id": ..., "event": "verify", "payload": {...}}

Event names are fixed (AUDIT_EVENTS) so the log can be filtered reliably;
entry_payload() gives all entry-related events the same identifying keys.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from ifc_mapper.mapping.models import MappingEntry

AuditEventName = Literal[
    "verify",
    "adopt_class",
    "adopt_property",
    "property_set_changed",
    "mappings_cleared",
    "mappings_forgotten",
]
AUDIT_EVENTS: tuple[AuditEventName, ...] = (
    "verify",
    "adopt_class",
    "adopt_property",
    "property_set_changed",
    "mappings_cleared",
    "mappings_forgotten",
)


@dataclass
class AuditEvent:
    """One mapping or overlay change, attributed to a session."""

    timestamp: str
    session_id: str
    event: AuditEventName
    payload: dict[str, Any]

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json(cls, line: str) -> AuditEvent:
        data = json.loads(line)
        return cls(
            timestamp=data["timestamp"],
            session_id=data["session_id"],
            event=data["event"],
            payload=data.get("payload") or {},
        )


def entry_payload(entry: MappingEntry, **extra: Any) -> dict[str, Any]:
    """Identifying fields of a mapping entry, plus event-specific extras."""
    payload: dict[str, Any] = {
        "kind": entry.kind,
        "source": entry.source,
        "target": entry.target,
        "property_set": entry.property_set,
        "predefined_type": entry.predefined_type,
    }
    payload.update(extra)
    return payload


def to_audit_event(
    event: AuditEventName,
    session_id: str,
    payload: dict[str, Any] | None = None,
) -> AuditEvent:
    """Create an audit event stamped with the current UTC time.

    Args:
        event: One of AUDIT_EVENTS
        session_id: Identifier of the mapping session that caused it
        payload: Optional event-specific data

    Raises:
        ValueError: For an event name outside AUDIT_EVENTS
    """
    if event not in AUDIT_EVENTS:
        raise ValueError(f"Unknown audit event: {event!r}")
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        session_id=session_id,
        event=event,
        payload=payload or {},
    )


class AuditWriter:
    """Append-only JSONL writer; usable as a context manager."""

    def __init__(self, path: Path) -> None:
        """Initialize audit writer.

        Args:
            path: Output file path (opened in append mode, parents created)
        """
        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def write(self, event: AuditEvent) -> None:
        self._file.write(event.to_json())
        self._file.write("\n")
        self._file.flush()

    def record(
        self,
        event: AuditEventName,
        session_id: str,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Stamp, write and return an event."""
        audit_event = to_audit_event(event, session_id, payload)
        self.write(audit_event)
        return audit_event

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> AuditWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def read_audit_events(path: Path) -> list[AuditEvent]:
    """Load every event of an audit log; blank lines are skipped."""
    with path.open(encoding="utf-8") as handle:
        return [AuditEvent.from_json(line) for line in handle if line.strip()]
