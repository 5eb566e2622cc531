"""
Milestone Ledger

Records educational-achievement progress as append-only ledger records:
users, forests (curriculum containers), milestones arranged in trees and
gated by prerequisites, and verified completions.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Immutable ids, enums, records, Error/ErrorCode/Result
   - MUST NOT: depend on any other layer

2. TEMPORAL (temporal/)
   - Logical clock and the hash-chained operation log
   - MUST NOT: interpret records

3. STORAGE (storage/)
   - Atomic per-map key-value substrate (memory, JSONL file)
   - MUST NOT: validate business rules, allocate ids, apply partial batches

4. CORE (core/)
   - Identity, relationships, authorization, catalog, completions, allocators
   - Outputs: staged Mutations or explicit Errors
   - MUST NOT: write to storage directly

5. QUERY (query/)
   - Read-only progress and catalog views

6. OBSERVABILITY (observability/)
   - Append-only audit of operation outcomes
   - MUST NOT: modify system behavior

7. ENGINE (engine.py)
   - LedgerContext: the writer lock and the public operation surface

8. API (api/)
   - FastAPI adapter; caller identity comes from the X-Caller-Id header

CONSTRAINTS ENFORCED:
=====================
- Create-once records: nothing is updated or deleted
- Explicit errors: every rejection is a typed ErrorCode, first failing check wins
- All-or-nothing commits: records, id allocation and log entry land together
- Prerequisite satisfaction is recomputed at completion time, never cached
"""

from .contracts.base import (
    ErrorCode, Error, Result, Identity, ForestId, MilestoneId, Role, RelationshipKind,
)
from .engine import LedgerConfig, LedgerContext

__version__ = "0.1.0"

__all__ = [
    'ErrorCode',
    'Error',
    'Result',
    'Identity',
    'ForestId',
    'MilestoneId',
    'Role',
    'RelationshipKind',
    'LedgerConfig',
    'LedgerContext',
]
