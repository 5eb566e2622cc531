"""
Storage Layer

RESPONSIBILITY: Atomic, durable key-value maps scoped per record type
ALLOWED INPUTS: StorageWrite batches staged by the core
OUTPUTS: Records by key, ordered scans, StorageWriteResult

WHAT THIS LAYER MUST NOT DO:
============================
- Validate business rules (existence, authorization, prerequisites)
- Allocate identifiers
- Delete data
- Apply part of a batch

BOUNDARY ENFORCEMENT:
=====================
- commit() applies every write of a batch or none of them
- Reads never observe a half-applied batch
- Scans return records in first-write order
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import json
import os

from ..contracts.base import Error, ErrorCode
from ..contracts.records import (
    USERS, RELATIONSHIPS, FORESTS, MILESTONES, PREREQUISITES, COMPLETIONS,
    COUNTERS, EVENTS,
    User, Relationship, Forest, Milestone, PrerequisiteEdge, Completion,
    StorageWrite, StorageWriteResult,
)
from ..contracts.temporal import LogEntry


# Record type per map; COUNTERS holds plain integers
MAP_RECORD_TYPES = {
    USERS: User,
    RELATIONSHIPS: Relationship,
    FORESTS: Forest,
    MILESTONES: Milestone,
    PREREQUISITES: PrerequisiteEdge,
    COMPLETIONS: Completion,
    EVENTS: LogEntry,
    COUNTERS: int,
}


@dataclass
class StorageConfig:
    """Configuration for the storage substrate."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None


# =============================================================================
# STORAGE INTERFACES (Dependency Inversion)
# =============================================================================

class StorageBackend:
    """
    Abstract storage backend interface.

    Implementations can use different storage systems (memory, file, database)
    while maintaining the same all-or-nothing batch semantics.
    """

    def get(self, map_name: str, key: str) -> Optional[Any]:
        raise NotImplementedError

    def contains(self, map_name: str, key: str) -> bool:
        return self.get(map_name, key) is not None

    def scan(self, map_name: str, prefix: str = "") -> List[Tuple[str, Any]]:
        """All (key, value) pairs in a map whose key starts with prefix."""
        raise NotImplementedError

    def count(self, map_name: str) -> int:
        return len(self.scan(map_name))

    def commit(self, writes: Sequence[StorageWrite]) -> StorageWriteResult:
        """Apply a batch of single-key upserts atomically."""
        raise NotImplementedError

    @staticmethod
    def _validate_batch(writes: Sequence[StorageWrite]) -> Optional[Error]:
        for write in writes:
            expected = MAP_RECORD_TYPES.get(write.map_name)
            if expected is None:
                return Error(
                    code=ErrorCode.STORAGE_FAILURE,
                    message=f"Unknown map: {write.map_name}",
                    context=(("key", write.key),)
                )
            if not isinstance(write.value, expected) or isinstance(write.value, bool):
                return Error(
                    code=ErrorCode.STORAGE_FAILURE,
                    message=f"Map {write.map_name} does not accept {type(write.value).__name__}",
                    context=(("key", write.key),)
                )
        return None


# =============================================================================
# IN-MEMORY STORAGE BACKEND (Reference Implementation)
# =============================================================================

class InMemoryStorageBackend(StorageBackend):
    """
    In-memory implementation of storage backend.

    Suitable for testing and single-process deployments.
    """

    def __init__(self):
        self._maps: Dict[str, Dict[str, Any]] = {name: {} for name in MAP_RECORD_TYPES}
        self._transaction_counter: int = 0

    def get(self, map_name: str, key: str) -> Optional[Any]:
        return self._maps.get(map_name, {}).get(key)

    def scan(self, map_name: str, prefix: str = "") -> List[Tuple[str, Any]]:
        return [
            (key, value) for key, value in self._maps.get(map_name, {}).items()
            if key.startswith(prefix)
        ]

    def commit(self, writes: Sequence[StorageWrite]) -> StorageWriteResult:
        error = self._validate_batch(writes)
        if error:
            return StorageWriteResult(success=False, error=error)

        self._apply(writes)
        self._transaction_counter += 1

        return StorageWriteResult(
            success=True,
            transaction=self._transaction_counter,
            keys_written=tuple(f"{w.map_name}/{w.key}" for w in writes)
        )

    def _apply(self, writes: Sequence[StorageWrite]) -> None:
        for write in writes:
            self._maps[write.map_name][write.key] = write.value


# =============================================================================
# FILE-BASED STORAGE BACKEND
# =============================================================================

class FileStorageBackend(InMemoryStorageBackend):
    """
    File-based implementation of storage backend.

    Each committed batch is one JSON line in transactions.jsonl, so a
    batch is durable as a unit. In-memory maps are rebuilt on load.
    A torn final line (crash mid-write) is an uncommitted batch and is
    discarded; a malformed line anywhere else is corruption.
    """

    def __init__(self, storage_dir: str):
        super().__init__()
        self._storage_dir = storage_dir
        self._transactions_file = os.path.join(storage_dir, "transactions.jsonl")

        os.makedirs(storage_dir, exist_ok=True)

        self._rebuild_maps()

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    def _rebuild_maps(self):
        """
        Replay every committed batch from the transactions file.

        A batch counts as committed once its line and trailing newline
        are on disk. An unterminated or unparseable final line is cut off
        so the next append starts on a clean line.
        """
        if not os.path.exists(self._transactions_file):
            return

        with open(self._transactions_file, 'rb') as f:
            lines = f.readlines()

        committed_bytes = 0
        for index, line in enumerate(lines):
            is_last = index == len(lines) - 1
            if not line.endswith(b'\n'):
                break
            if line.strip():
                try:
                    data = json.loads(line.decode('utf-8'))
                except ValueError:
                    if is_last:
                        break
                    raise ValueError(
                        f"Corrupt transaction at line {index + 1} of {self._transactions_file}"
                    )
                self._apply([self._deserialize_write(w) for w in data['writes']])
                self._transaction_counter = data['tx']
            committed_bytes += len(line)

        if committed_bytes < sum(len(line) for line in lines):
            with open(self._transactions_file, 'r+b') as f:
                f.truncate(committed_bytes)
                f.flush()
                os.fsync(f.fileno())

    @staticmethod
    def _serialize_write(write: StorageWrite) -> dict:
        value = write.value if write.map_name == COUNTERS else write.value.to_dict()
        return {'map': write.map_name, 'key': write.key, 'value': value}

    @staticmethod
    def _deserialize_write(data: dict) -> StorageWrite:
        map_name = data['map']
        record_type = MAP_RECORD_TYPES[map_name]
        if record_type is int:
            value = int(data['value'])
        else:
            value = record_type.from_dict(data['value'])
        return StorageWrite(map_name=map_name, key=data['key'], value=value)

    def commit(self, writes: Sequence[StorageWrite]) -> StorageWriteResult:
        """Append batch to the transactions file, then apply in memory."""
        error = self._validate_batch(writes)
        if error:
            return StorageWriteResult(success=False, error=error)

        transaction = self._transaction_counter + 1
        line = json.dumps({
            'tx': transaction,
            'writes': [self._serialize_write(w) for w in writes],
        }, sort_keys=True)

        try:
            with open(self._transactions_file, 'a', encoding='utf-8') as f:
                f.write(line + '\n')
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            return StorageWriteResult(
                success=False,
                error=Error(
                    code=ErrorCode.STORAGE_FAILURE,
                    message=f"Failed to write transaction: {str(e)}",
                    context=(("transaction", str(transaction)),)
                )
            )

        self._apply(writes)
        self._transaction_counter = transaction

        return StorageWriteResult(
            success=True,
            transaction=transaction,
            keys_written=tuple(f"{w.map_name}/{w.key}" for w in writes)
        )


def create_storage_backend(config: Optional[StorageConfig] = None) -> StorageBackend:
    """Build the backend named by the config."""
    config = config or StorageConfig()
    if config.backend_type == "memory":
        return InMemoryStorageBackend()
    if config.backend_type == "file":
        if not config.storage_dir:
            raise ValueError("File storage requires storage_dir")
        return FileStorageBackend(config.storage_dir)
    raise ValueError(f"Unknown storage backend: {config.backend_type}")


__all__ = [
    'MAP_RECORD_TYPES',
    'StorageConfig',
    'StorageBackend',
    'InMemoryStorageBackend',
    'FileStorageBackend',
    'create_storage_backend',
]
