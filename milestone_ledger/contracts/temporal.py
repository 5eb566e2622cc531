from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Tuple
import hashlib

from .base import Identity


@dataclass(frozen=True)
class LogSequence:
    """
    Immutable sequence position in the operation log.
    """
    value: int

    def next(self) -> 'LogSequence':
        return LogSequence(self.value + 1)

    def __lt__(self, other: 'LogSequence') -> bool:
        return self.value < other.value

    def __le__(self, other: 'LogSequence') -> bool:
        return self.value <= other.value


def compute_entry_hash(
    sequence: LogSequence,
    operation: str,
    actor: Identity,
    logical_time: int,
    record_keys: Tuple[str, ...],
    previous_hash: str
) -> str:
    hash_content = (
        f"{sequence.value}|"
        f"{operation}|"
        f"{actor.value}|"
        f"{logical_time}|"
        f"{','.join(record_keys)}|"
        f"{previous_hash}"
    )
    return hashlib.sha256(hash_content.encode()).hexdigest()


@dataclass(frozen=True)
class LogEntry:
    """
    Immutable record of one committed operation.
    INVARIANTS:
    - Once written, never modified.
    - Entries form a hash chain for integrity verification.
    """
    sequence: LogSequence
    operation: str
    actor: Identity
    logical_time: int
    record_keys: Tuple[str, ...]
    previous_hash: str
    entry_hash: str

    @staticmethod
    def create(
        sequence: LogSequence,
        operation: str,
        actor: Identity,
        logical_time: int,
        record_keys: Tuple[str, ...],
        previous_hash: str
    ) -> 'LogEntry':
        """Factory for deterministic entry creation."""
        return LogEntry(
            sequence=sequence,
            operation=operation,
            actor=actor,
            logical_time=logical_time,
            record_keys=record_keys,
            previous_hash=previous_hash,
            entry_hash=compute_entry_hash(
                sequence, operation, actor, logical_time, record_keys, previous_hash
            )
        )

    @property
    def key(self) -> str:
        return str(self.sequence.value)

    def to_dict(self) -> dict:
        return {
            'sequence': self.sequence.value,
            'operation': self.operation,
            'actor': self.actor.value,
            'logical_time': self.logical_time,
            'record_keys': list(self.record_keys),
            'previous_hash': self.previous_hash,
            'entry_hash': self.entry_hash,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'LogEntry':
        return LogEntry(
            sequence=LogSequence(data['sequence']),
            operation=data['operation'],
            actor=Identity(data['actor']),
            logical_time=data['logical_time'],
            record_keys=tuple(data['record_keys']),
            previous_hash=data['previous_hash'],
            entry_hash=data['entry_hash'],
        )
