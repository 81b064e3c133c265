"""
Audit trail

The engine hands every write to an AuditSink together with the old/new value
of each changed field. Sinks are constructed by the application and passed in;
there is no global instance.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass
class FieldDiff:
    field: str
    old: object
    new: object


@dataclass
class AuditEntry:
    actor: str
    action: str
    entity_type: str
    entity_id: str
    changes: list[FieldDiff] = field(default_factory=list)
    description: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def diff_fields(old: dict, new: dict) -> list[FieldDiff]:
    """Old/new pair for every key of new whose value differs from old."""
    return [FieldDiff(key, old.get(key), value) for key, value in new.items() if old.get(key) != value]


class AuditSink:
    """Interface of an audit destination."""

    def record(
        self,
        actor: str,
        action: str,
        entity_type: str,
        entity_id: str,
        changes: list[FieldDiff],
        description: str,
    ) -> None:
        raise NotImplementedError


class InMemoryAuditSink(AuditSink):
    """Keeps the most recent entries in memory, oldest first."""

    def __init__(self, max_entries: int = 1000):
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)

    def record(self, actor, action, entity_type, entity_id, changes, description) -> None:
        self._entries.append(AuditEntry(actor, action, entity_type, entity_id, list(changes), description))

    @property
    def entries(self) -> list[AuditEntry]:
        return list(self._entries)

    def for_entity(self, entity_type: str, entity_id: str) -> list[AuditEntry]:
        return [e for e in self._entries if e.entity_type == entity_type and e.entity_id == entity_id]


class LoggingAuditSink(AuditSink):
    """Writes each entry to the audit logger."""

    def __init__(self, audit_logger: logging.Logger | None = None):
        self.logger = audit_logger or logger

    def record(self, actor, action, entity_type, entity_id, changes, description) -> None:
        changed = ", ".join(f"{c.field}: {c.old} -> {c.new}" for c in changes)
        self.logger.info(f"[{action}] {entity_type} {entity_id} by {actor}: {description} ({changed})")
