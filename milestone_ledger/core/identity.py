"""
Identity & Role Store
=====================

One record per registered identity. Leaf dependency for every other
store. Records are never updated; in particular the role chosen at
registration is permanent.
"""

from __future__ import annotations
from typing import Optional, Union

from ..contracts.base import Identity, Role, Result, ErrorCode
from ..contracts.records import USERS, User, StorageWrite, Mutation
from ..storage import StorageBackend
from ..temporal.clock import LogicalClock
from .validation import FieldLimits, check_text


class IdentityStore:

    def __init__(self, storage: StorageBackend, clock: LogicalClock, limits: FieldLimits):
        self._storage = storage
        self._clock = clock
        self._limits = limits

    def get(self, identity: Identity) -> Optional[User]:
        return self._storage.get(USERS, identity.value)

    def is_registered(self, identity: Identity) -> bool:
        return self._storage.contains(USERS, identity.value)

    def plan_register(self, caller: Identity, name: str, role: Union[Role, int]) -> Result:
        """
        Stage a new user record.

        Fails INVALID_USER_ROLE, INVALID_PARAMETERS or USER_ALREADY_EXISTS,
        in that order.
        """
        parsed_role = Role.parse(role)
        if parsed_role is None:
            return Result.fail(
                ErrorCode.INVALID_USER_ROLE,
                "Role must be one of 1 (Admin), 2 (Educator), 3 (Parent), 4 (Child)",
                role=role
            )

        error = check_text(name, "name", self._limits.max_name_length, required=True)
        if error:
            return Result.failure(error)

        if self.is_registered(caller):
            return Result.fail(
                ErrorCode.USER_ALREADY_EXISTS,
                "Identity is already registered",
                identity=caller.value
            )

        user = User(
            identity=caller,
            role=parsed_role,
            name=name,
            registered_at=self._clock.now()
        )
        return Result.success(Mutation(
            operation="register",
            actor=caller,
            logical_time=user.registered_at,
            writes=(StorageWrite(USERS, user.key, user),),
            value=user
        ))
