"""
Authorization Engine
====================

Pure decision: may `manager` act on behalf of `subject`?

ALLOWED:
- Platform owner (fixed at deployment) manages everyone
- A relationship record (manager, subject) of any kind grants authority

NOT GATED HERE:
- Forest, milestone and prerequisite creation are open to any caller
- Relationship creation is open to any registered caller
These are the current policy boundary, not an oversight to patch
locally; role checks belong in a policy layer above this one.
"""

from __future__ import annotations
from typing import Optional

from ..contracts.base import Identity
from .relationships import RelationshipStore


class AuthorizationEngine:

    def __init__(self, relationships: RelationshipStore, platform_owner: Optional[Identity] = None):
        self._relationships = relationships
        self._platform_owner = platform_owner

    @property
    def platform_owner(self) -> Optional[Identity]:
        return self._platform_owner

    def is_platform_owner(self, identity: Identity) -> bool:
        return self._platform_owner is not None and identity == self._platform_owner

    def can_manage(self, manager: Identity, subject: Identity) -> bool:
        """No side effects; reads the relationship store only."""
        if self.is_platform_owner(manager):
            return True
        return self._relationships.exists(manager, subject)
