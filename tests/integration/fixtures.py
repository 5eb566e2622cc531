"""
Integration Test Fixtures

Explicit, deterministic ledger setups shared by the integration tests.
All fixtures use a counting clock - no wall-clock time, no randomness.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from milestone_ledger import LedgerConfig, LedgerContext
from milestone_ledger.contracts.base import Role
from milestone_ledger.temporal.clock import LogicalClock


# =============================================================================
# FIXED IDENTITIES
# =============================================================================

OWNER = "platform-owner"
EDUCATOR = "educator-ada"
PARENT = "parent-grace"
CHILD = "child-alan"
OTHER_CHILD = "child-kurt"
STRANGER = "stranger-eve"


def new_ledger(owner: Optional[str] = OWNER) -> LedgerContext:
    """Fresh in-memory ledger with a deterministic clock."""
    return LedgerContext(LedgerConfig(
        platform_owner=owner,
        clock=LogicalClock.counting()
    ))


def caller_headers(identity: str) -> Dict[str, str]:
    return {"X-Caller-Id": identity}


# =============================================================================
# SEEDED CLASSROOM
# =============================================================================

@dataclass(frozen=True)
class Classroom:
    """
    Seeded state:

    - EDUCATOR manages CHILD (educator-child)
    - PARENT manages CHILD (parent-child)
    - OTHER_CHILD and STRANGER are registered, unmanaged
    - forest "Arithmetic" holds counting -> addition -> multiplication
      (each gated by the previous one)
    """
    ledger: LedgerContext
    forest_id: int
    counting: int
    addition: int
    multiplication: int


def seed_classroom(ledger: Optional[LedgerContext] = None) -> Classroom:
    ledger = ledger or new_ledger()

    for identity, name, role in (
        (EDUCATOR, "Ada", Role.EDUCATOR),
        (PARENT, "Grace", Role.PARENT),
        (CHILD, "Alan", Role.CHILD),
        (OTHER_CHILD, "Kurt", Role.CHILD),
        (STRANGER, "Eve", Role.PARENT),
    ):
        assert ledger.register(identity, name, role).is_success

    assert ledger.create_relationship(EDUCATOR, CHILD, "educator-child").is_success
    assert ledger.create_relationship(PARENT, CHILD, "parent-child").is_success

    forest_id = ledger.create_forest(EDUCATOR, "Arithmetic", "Numbers first").value.value

    def milestone(title: str, difficulty: int, parent: Optional[int] = None) -> int:
        result = ledger.create_milestone(
            EDUCATOR, title, f"Learn {title.lower()}", "math",
            difficulty, forest_id, parent
        )
        assert result.is_success, result.error
        return result.value.value

    counting = milestone("Counting", 1)
    addition = milestone("Addition", 2, counting)
    multiplication = milestone("Multiplication", 3, addition)

    assert ledger.add_prerequisite(EDUCATOR, addition, counting).is_success
    assert ledger.add_prerequisite(EDUCATOR, multiplication, addition).is_success

    return Classroom(
        ledger=ledger,
        forest_id=forest_id,
        counting=counting,
        addition=addition,
        multiplication=multiplication
    )
