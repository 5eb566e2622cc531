"""
Relationship Store
==================

Directed edges (manager, subject) -> kind. The manager gains authority
to record completions on the subject's behalf.

Role appropriateness (Educator/Parent managing a Child) is NOT checked
here; only existence of both identities is.
"""

from __future__ import annotations
from typing import List, Optional, Union

from ..contracts.base import Identity, RelationshipKind, Result, ErrorCode
from ..contracts.records import (
    RELATIONSHIPS, Relationship, StorageWrite, Mutation, key_prefix, pair_key,
)
from ..storage import StorageBackend
from ..temporal.clock import LogicalClock
from .identity import IdentityStore


class RelationshipStore:

    def __init__(self, storage: StorageBackend, clock: LogicalClock, identities: IdentityStore):
        self._storage = storage
        self._clock = clock
        self._identities = identities

    def get(self, manager: Identity, subject: Identity) -> Optional[Relationship]:
        rel = self._storage.get(RELATIONSHIPS, pair_key(manager.value, subject.value))
        if rel is None or rel.manager != manager or rel.subject != subject:
            return None
        return rel

    def exists(self, manager: Identity, subject: Identity) -> bool:
        return self.get(manager, subject) is not None

    def subjects_of(self, manager: Identity) -> List[Relationship]:
        """Relationships in which identity is the manager, oldest first."""
        prefix = key_prefix(manager.value)
        return [
            rel for _, rel in self._storage.scan(RELATIONSHIPS, prefix)
            if rel.manager == manager
        ]

    def plan_create(
        self,
        caller: Identity,
        subject: Identity,
        kind: Union[RelationshipKind, str]
    ) -> Result:
        parsed_kind = RelationshipKind.parse(kind)
        if parsed_kind is None:
            return Result.fail(
                ErrorCode.INVALID_PARAMETERS,
                "Relationship kind must be 'parent-child' or 'educator-child'",
                kind=kind
            )

        if not self._identities.is_registered(caller):
            return Result.fail(
                ErrorCode.USER_NOT_FOUND,
                "Manager identity is not registered",
                identity=caller.value
            )

        if not self._identities.is_registered(subject):
            return Result.fail(
                ErrorCode.CHILD_NOT_REGISTERED,
                "Subject identity is not registered",
                identity=subject.value
            )

        if self.exists(caller, subject):
            return Result.fail(
                ErrorCode.DUPLICATE_RELATIONSHIP,
                "Relationship already exists",
                manager=caller.value,
                subject=subject.value
            )

        relationship = Relationship(
            manager=caller,
            subject=subject,
            kind=parsed_kind,
            created_at=self._clock.now()
        )
        return Result.success(Mutation(
            operation="create_relationship",
            actor=caller,
            logical_time=relationship.created_at,
            writes=(StorageWrite(RELATIONSHIPS, relationship.key, relationship),),
            value=relationship
        ))
