"""
Observability & Audit Layer

RESPONSIBILITY: Record the outcome of every operation attempt
ALLOWED INPUTS: Operation name, caller, Result
OUTPUTS: AuditLogEntry stream, outcome counters, audit report

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Filter or interpret events (only record them)
- Make decisions based on logged data
- Retry or recover failed operations

The ledger core emits no log lines; callers observe the returned
Result. This collector keeps an append-only copy of those outcomes.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from enum import Enum

from ..contracts.base import Identity, Result


class AuditEventType(Enum):
    """Explicit audit event types."""
    MUTATION = "mutation"      # operation committed
    REJECTION = "rejection"    # operation refused by a check
    SYSTEM = "system"          # lifecycle (hydration, startup)


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    operation: str
    actor: Optional[str]
    logical_time: Optional[int] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            'entry_id': self.entry_id,
            'event_type': self.event_type.value,
            'operation': self.operation,
            'actor': self.actor,
            'logical_time': self.logical_time,
            'error_code': self.error_code,
            'message': self.message,
            'metadata': dict(self.metadata),
        }


@dataclass
class ObservabilityConfig:
    """Configuration for the audit collector."""
    max_entries: Optional[int] = None  # None = keep everything


class AuditCollector:
    """
    Append-only collector of operation outcomes.

    When max_entries is set, only the newest entries are retained;
    counters always cover the full history.
    """

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()
        self._entries: List[AuditLogEntry] = []
        self._sequence: int = 0
        self._counters: Dict[Tuple[str, str], int] = {}

    def _next_id(self) -> str:
        self._sequence += 1
        return f"audit_{self._sequence:08d}"

    def _append(self, entry: AuditLogEntry) -> AuditLogEntry:
        self._entries.append(entry)
        limit = self._config.max_entries
        if limit is not None and len(self._entries) > limit:
            del self._entries[:len(self._entries) - limit]
        return entry

    def record_outcome(
        self,
        operation: str,
        actor: Optional[Identity],
        result: Result,
        logical_time: Optional[int] = None
    ) -> AuditLogEntry:
        """Record a committed or rejected operation."""
        if result.is_success:
            event_type = AuditEventType.MUTATION
            outcome = "committed"
            error_code = None
            message = None
            metadata: Tuple[Tuple[str, str], ...] = ()
        else:
            event_type = AuditEventType.REJECTION
            outcome = result.error.code.name
            error_code = result.error.code.name
            message = result.error.message
            metadata = result.error.context

        key = (operation, outcome)
        self._counters[key] = self._counters.get(key, 0) + 1

        return self._append(AuditLogEntry(
            entry_id=self._next_id(),
            event_type=event_type,
            operation=operation,
            actor=actor.value if actor else None,
            logical_time=logical_time,
            error_code=error_code,
            message=message,
            metadata=metadata
        ))

    def record_system(self, action: str, **metadata: str) -> AuditLogEntry:
        return self._append(AuditLogEntry(
            entry_id=self._next_id(),
            event_type=AuditEventType.SYSTEM,
            operation=action,
            actor=None,
            metadata=tuple(sorted((k, str(v)) for k, v in metadata.items()))
        ))

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None,
        operation: Optional[str] = None,
        actor: Optional[Identity] = None
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        entries = self._entries

        if event_type:
            entries = [e for e in entries if e.event_type == event_type]
        if operation:
            entries = [e for e in entries if e.operation == operation]
        if actor:
            entries = [e for e in entries if e.actor == actor.value]

        return list(entries)

    def count(self, operation: str, outcome: str = "committed") -> int:
        return self._counters.get((operation, outcome), 0)

    def generate_report(self) -> Dict:
        """Per-operation outcome counts."""
        report: Dict[str, Dict[str, int]] = {}
        for (operation, outcome), total in sorted(self._counters.items()):
            report.setdefault(operation, {})[outcome] = total
        return {
            'total_entries': self._sequence,
            'retained_entries': len(self._entries),
            'operations': report,
        }

    @property
    def entry_count(self) -> int:
        return len(self._entries)


__all__ = [
    'AuditEventType',
    'AuditLogEntry',
    'ObservabilityConfig',
    'AuditCollector',
]
