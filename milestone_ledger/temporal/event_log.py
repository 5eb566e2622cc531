"""
Operation Log
=============

Append-only, hash-chained record of every committed ledger operation.

INVARIANTS:
- No updates or deletes - append only
- Every entry has monotonic sequence number
- Hash chain for integrity verification
- Entries are only loaded AFTER the storage commit that carries them succeeded

The stores hold the records; this log holds the order in which they
were committed and by whom.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from ..contracts.base import Identity, Error, ErrorCode
from ..contracts.temporal import LogSequence, LogEntry, compute_entry_hash


class LogIntegrityError(ValueError):
    """Raised when an entry cannot be appended without breaking the chain."""
    pass


@dataclass(frozen=True)
class LogState:
    """
    Immutable snapshot of log state.
    """
    head_sequence: LogSequence
    head_hash: str
    entry_count: int

    @staticmethod
    def empty() -> 'LogState':
        return LogState(
            head_sequence=LogSequence(0),
            head_hash="",
            entry_count=0
        )


class OperationLog:
    """
    Append-only operation log.

    GUARANTEES:
    ===========
    1. NO updates - entries are immutable once written
    2. NO deletes - log only grows
    3. Verifiable - hash chain ensures integrity
    """

    def __init__(self):
        self._entries: List[LogEntry] = []
        self._sequence_counter = LogSequence(0)
        self._head_hash = ""

        # Derived index, not authoritative
        self._actor_index: Dict[str, List[LogSequence]] = {}

    @property
    def state(self) -> LogState:
        """Get current log state (immutable snapshot)."""
        return LogState(
            head_sequence=self._sequence_counter,
            head_hash=self._head_hash,
            entry_count=len(self._entries)
        )

    def prepare(
        self,
        operation: str,
        actor: Identity,
        logical_time: int,
        record_keys: Tuple[str, ...]
    ) -> LogEntry:
        """
        Build the next entry without appending it.

        The engine commits the entry together with the records it
        describes, then calls load_verified_entry().
        """
        return LogEntry.create(
            sequence=self._sequence_counter.next(),
            operation=operation,
            actor=actor,
            logical_time=logical_time,
            record_keys=record_keys,
            previous_hash=self._head_hash
        )

    def load_verified_entry(self, entry: LogEntry) -> bool:
        """
        Append an entry after verifying it extends the chain.

        VERIFIES:
        1. Sequence is monotonic (next in line)
        2. Previous hash matches current head
        3. Entry hash is valid for its content

        Used both after a commit and for hydration from storage.
        """
        expected_seq = self._sequence_counter.next()
        if entry.sequence.value != expected_seq.value:
            raise LogIntegrityError(
                f"Invalid sequence load: expected {expected_seq.value}, got {entry.sequence.value}"
            )

        if entry.previous_hash != self._head_hash:
            raise LogIntegrityError(
                f"Broken hash chain at {entry.sequence.value}: "
                f"prev {entry.previous_hash} != head {self._head_hash}"
            )

        computed_hash = compute_entry_hash(
            entry.sequence, entry.operation, entry.actor,
            entry.logical_time, entry.record_keys, entry.previous_hash
        )
        if computed_hash != entry.entry_hash:
            raise LogIntegrityError(f"Corrupt entry at {entry.sequence.value}: Hash mismatch")

        self._entries.append(entry)
        self._sequence_counter = entry.sequence
        self._head_hash = entry.entry_hash
        self._actor_index.setdefault(entry.actor.value, []).append(entry.sequence)

        return True

    def replay(
        self,
        from_seq: Optional[LogSequence] = None,
        until_seq: Optional[LogSequence] = None
    ) -> Iterator[LogEntry]:
        """
        Replay entries in sequence order.

        Args:
            from_seq: Start from this sequence (inclusive), None = start
            until_seq: Stop at this sequence (inclusive), None = end
        """
        start = (from_seq.value if from_seq else 1)
        end = (until_seq.value if until_seq else len(self._entries))

        for entry in self._entries:
            if entry.sequence.value < start:
                continue
            if entry.sequence.value > end:
                break
            yield entry

    def get_entry(self, sequence: LogSequence) -> Optional[LogEntry]:
        """Get specific entry by sequence number."""
        if sequence.value < 1 or sequence.value > len(self._entries):
            return None
        return self._entries[sequence.value - 1]

    def entries_by_actor(self, actor: Identity) -> List[LogEntry]:
        return [
            self._entries[seq.value - 1]
            for seq in self._actor_index.get(actor.value, [])
        ]

    def verify_integrity(self) -> Tuple[bool, Optional[Error]]:
        """
        Verify hash chain integrity.

        Returns (is_valid, error) tuple.
        Error contains details if integrity check fails.
        """
        expected_previous = ""

        for entry in self._entries:
            if entry.previous_hash != expected_previous:
                return (False, Error(
                    code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                    message=f"Hash chain broken at sequence {entry.sequence.value}",
                    context=(
                        ("expected_hash", expected_previous),
                        ("actual_hash", entry.previous_hash),
                    )
                ))
            recomputed = compute_entry_hash(
                entry.sequence, entry.operation, entry.actor,
                entry.logical_time, entry.record_keys, entry.previous_hash
            )
            if recomputed != entry.entry_hash:
                return (False, Error(
                    code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                    message=f"Entry hash mismatch at sequence {entry.sequence.value}",
                    context=(("sequence", str(entry.sequence.value)),)
                ))
            expected_previous = entry.entry_hash

        return (True, None)

    def compute_state_hash(self, at_sequence: Optional[LogSequence] = None) -> str:
        """
        Hash of the ledger at a given sequence.

        Same committed operations in the same order -> same hash.
        """
        if at_sequence is None:
            at_sequence = self._sequence_counter

        entry = self.get_entry(at_sequence)
        if entry:
            return entry.entry_hash
        return ""

    def __len__(self) -> int:
        return len(self._entries)
