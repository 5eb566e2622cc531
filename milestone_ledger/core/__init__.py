"""
Core Ledger Layer

RESPONSIBILITY: Authorization and validation of every mutating operation
ALLOWED INPUTS: Caller identity, operation parameters, storage reads
OUTPUTS: Result carrying a staged Mutation, or an explicit Error

WHAT THIS LAYER MUST NOT DO:
============================
- Write to storage (the engine commits staged mutations)
- Authenticate identities (the caller identity is trusted input)
- Advance an id allocator before every check has passed
- Cache derived facts such as prerequisite satisfaction

COMPONENTS (leaves first):
==========================
identity -> relationships -> authorization -> allocators -> catalog
-> completions; topology is a read-only view over the catalog.
"""

from .validation import FieldLimits
from .identity import IdentityStore
from .relationships import RelationshipStore
from .authorization import AuthorizationEngine
from .allocators import IdAllocator
from .catalog import Catalog
from .completions import CompletionLedger
from .topology import PrerequisiteTopology

__all__ = [
    'FieldLimits',
    'IdentityStore',
    'RelationshipStore',
    'AuthorizationEngine',
    'IdAllocator',
    'Catalog',
    'CompletionLedger',
    'PrerequisiteTopology',
]
