"""
Ledger Record Contracts
=======================

Immutable records owned by the core stores, plus the write contract
between the core and the storage substrate.

INVARIANTS:
- Records are created once and never updated or deleted
- Every record carries the logical time at which it was committed
- Storage keys are derived from record identity, never assigned externally
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .base import (
    Error, Identity, ForestId, MilestoneId, Role, RelationshipKind,
)


# =============================================================================
# STORAGE MAP NAMES
# =============================================================================

USERS = "users"
RELATIONSHIPS = "relationships"
FORESTS = "forests"
MILESTONES = "milestones"
PREREQUISITES = "prerequisites"
COMPLETIONS = "completions"
COUNTERS = "counters"
EVENTS = "events"

FOREST_COUNTER = "forest"
MILESTONE_COUNTER = "milestone"

KEY_SEPARATOR = "|"
KEY_ESCAPE = "\\"


def escape_key_part(part: object) -> str:
    """Escape so an unescaped separator only ever ends a key component."""
    text = str(part)
    return text.replace(KEY_ESCAPE, KEY_ESCAPE * 2).replace(KEY_SEPARATOR, KEY_ESCAPE + KEY_SEPARATOR)


def key_prefix(first: object) -> str:
    """Scan prefix matching every pair_key whose first component is first."""
    return escape_key_part(first) + KEY_SEPARATOR


def pair_key(first: object, second: object) -> str:
    """Composite key for records keyed by an ordered pair."""
    return key_prefix(first) + escape_key_part(second)


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class User:
    """One record per registered identity. Role is immutable."""
    identity: Identity
    role: Role
    name: str
    registered_at: int

    @property
    def key(self) -> str:
        return self.identity.value

    def to_dict(self) -> dict:
        return {
            'identity': self.identity.value,
            'role': self.role.value,
            'name': self.name,
            'registered_at': self.registered_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> User:
        return User(
            identity=Identity(data['identity']),
            role=Role(data['role']),
            name=data['name'],
            registered_at=data['registered_at'],
        )


@dataclass(frozen=True)
class Relationship:
    """Delegated authority: manager acts on behalf of subject."""
    manager: Identity
    subject: Identity
    kind: RelationshipKind
    created_at: int

    @property
    def key(self) -> str:
        return pair_key(self.manager.value, self.subject.value)

    def to_dict(self) -> dict:
        return {
            'manager': self.manager.value,
            'subject': self.subject.value,
            'kind': self.kind.value,
            'created_at': self.created_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Relationship:
        return Relationship(
            manager=Identity(data['manager']),
            subject=Identity(data['subject']),
            kind=RelationshipKind(data['kind']),
            created_at=data['created_at'],
        )


@dataclass(frozen=True)
class Forest:
    """Named collection of milestones (a curriculum subject area)."""
    forest_id: ForestId
    name: str
    description: str
    created_by: Identity
    created_at: int

    @property
    def key(self) -> str:
        return str(self.forest_id.value)

    def to_dict(self) -> dict:
        return {
            'forest_id': self.forest_id.value,
            'name': self.name,
            'description': self.description,
            'created_by': self.created_by.value,
            'created_at': self.created_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Forest:
        return Forest(
            forest_id=ForestId(data['forest_id']),
            name=data['name'],
            description=data['description'],
            created_by=Identity(data['created_by']),
            created_at=data['created_at'],
        )


@dataclass(frozen=True)
class Milestone:
    """
    A single learning achievement.

    Tree placement (parent_milestone_id) and prerequisite gating are
    independent: prerequisites live in their own edge map.
    """
    milestone_id: MilestoneId
    title: str
    description: str
    category: str
    difficulty: int
    forest_id: ForestId
    created_by: Identity
    created_at: int
    parent_milestone_id: Optional[MilestoneId] = None

    @property
    def key(self) -> str:
        return str(self.milestone_id.value)

    def to_dict(self) -> dict:
        return {
            'milestone_id': self.milestone_id.value,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'difficulty': self.difficulty,
            'forest_id': self.forest_id.value,
            'parent_milestone_id': (
                self.parent_milestone_id.value if self.parent_milestone_id else None
            ),
            'created_by': self.created_by.value,
            'created_at': self.created_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Milestone:
        parent = data.get('parent_milestone_id')
        return Milestone(
            milestone_id=MilestoneId(data['milestone_id']),
            title=data['title'],
            description=data['description'],
            category=data['category'],
            difficulty=data['difficulty'],
            forest_id=ForestId(data['forest_id']),
            parent_milestone_id=MilestoneId(parent) if parent is not None else None,
            created_by=Identity(data['created_by']),
            created_at=data['created_at'],
        )


@dataclass(frozen=True)
class PrerequisiteEdge:
    """prerequisite_id must be completed before milestone_id."""
    milestone_id: MilestoneId
    prerequisite_id: MilestoneId
    added_at: int

    @property
    def key(self) -> str:
        return pair_key(self.milestone_id.value, self.prerequisite_id.value)

    def to_dict(self) -> dict:
        return {
            'milestone_id': self.milestone_id.value,
            'prerequisite_id': self.prerequisite_id.value,
            'added_at': self.added_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PrerequisiteEdge:
        return PrerequisiteEdge(
            milestone_id=MilestoneId(data['milestone_id']),
            prerequisite_id=MilestoneId(data['prerequisite_id']),
            added_at=data['added_at'],
        )


@dataclass(frozen=True)
class Completion:
    """Immutable proof that a learner finished a milestone."""
    milestone_id: MilestoneId
    learner: Identity
    completed_at: int
    verified_by: Identity
    evidence_url: Optional[str] = None

    @property
    def key(self) -> str:
        return pair_key(self.milestone_id.value, self.learner.value)

    @property
    def is_self_verified(self) -> bool:
        return self.learner == self.verified_by

    def to_dict(self) -> dict:
        return {
            'milestone_id': self.milestone_id.value,
            'learner': self.learner.value,
            'completed_at': self.completed_at,
            'verified_by': self.verified_by.value,
            'evidence_url': self.evidence_url,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Completion:
        return Completion(
            milestone_id=MilestoneId(data['milestone_id']),
            learner=Identity(data['learner']),
            completed_at=data['completed_at'],
            verified_by=Identity(data['verified_by']),
            evidence_url=data.get('evidence_url'),
        )


# =============================================================================
# WRITE CONTRACT (core -> storage)
# =============================================================================

@dataclass(frozen=True)
class StorageWrite:
    """A single-key upsert into one named map."""
    map_name: str
    key: str
    value: Any


@dataclass(frozen=True)
class Mutation:
    """
    Writes staged by a core component after all checks passed.

    The engine commits `writes` as one atomic transaction and only
    then hands `value` back to the caller.
    """
    operation: str
    actor: Identity
    logical_time: int
    writes: Tuple[StorageWrite, ...]
    value: Any = None

    @property
    def record_keys(self) -> Tuple[str, ...]:
        return tuple(
            pair_key(w.map_name, w.key) for w in self.writes
            if w.map_name != COUNTERS
        )


@dataclass(frozen=True)
class StorageWriteResult:
    """Immutable result of a storage commit."""
    success: bool
    transaction: int = 0
    error: Optional[Error] = None
    keys_written: Tuple[str, ...] = field(default_factory=tuple)
