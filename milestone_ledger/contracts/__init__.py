"""
Contracts Module

This module defines the explicit interfaces and data transfer objects
that form the contracts between layers. All inter-layer communication
MUST use these contracts. No layer may import implementation details
from another layer.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses)
2. All operations report failure through Result/Error, never exceptions
3. Identifiers are typed wrappers, never bare strings or ints
4. Timestamps are logical clock readings supplied by the environment
"""

from .base import (
    ErrorCode, Error, Result, Identity, ForestId, MilestoneId,
    Role, RelationshipKind, MIN_DIFFICULTY, MAX_DIFFICULTY,
)
from .records import (
    User, Relationship, Forest, Milestone, PrerequisiteEdge, Completion,
    StorageWrite, StorageWriteResult, Mutation,
)
from .temporal import LogSequence, LogEntry

__all__ = [
    'ErrorCode',
    'Error',
    'Result',
    'Identity',
    'ForestId',
    'MilestoneId',
    'Role',
    'RelationshipKind',
    'MIN_DIFFICULTY',
    'MAX_DIFFICULTY',
    'User',
    'Relationship',
    'Forest',
    'Milestone',
    'PrerequisiteEdge',
    'Completion',
    'StorageWrite',
    'StorageWriteResult',
    'Mutation',
    'LogSequence',
    'LogEntry',
]
