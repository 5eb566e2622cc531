"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior, no side effects, no dependencies.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Closed error taxonomy for every ledger operation.
    No silent fallbacks - every rejection reason is enumerated.
    """
    # Authorization
    NOT_AUTHORIZED = auto()

    # Identity & relationships
    USER_NOT_FOUND = auto()
    USER_ALREADY_EXISTS = auto()
    INVALID_USER_ROLE = auto()
    CHILD_NOT_REGISTERED = auto()
    DUPLICATE_RELATIONSHIP = auto()

    # Catalog
    FOREST_NOT_FOUND = auto()
    FOREST_ALREADY_EXISTS = auto()
    MILESTONE_NOT_FOUND = auto()
    MILESTONE_ALREADY_EXISTS = auto()
    PARENT_MILESTONE_NOT_FOUND = auto()
    PREREQUISITE_NOT_FOUND = auto()

    # Completion ledger
    MILESTONE_ALREADY_COMPLETED = auto()
    PREREQUISITES_NOT_COMPLETED = auto()

    # Parameters
    INVALID_PARAMETERS = auto()

    # Substrate
    STORAGE_FAILURE = auto()
    STRUCTURAL_INCONSISTENCY = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @property
    def error_code(self) -> Optional[ErrorCode]:
        return self.error.code if self.error else None

    @staticmethod
    def success(value: object = None) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)

    @staticmethod
    def fail(code: ErrorCode, message: str, **context: object) -> Result:
        """Shorthand for a failure carrying string-valued context."""
        return Result.failure(Error(
            code=code,
            message=message,
            context=tuple((k, str(v)) for k, v in context.items())
        ))


# =============================================================================
# IDENTITY TYPES (Immutable)
# =============================================================================

@dataclass(frozen=True)
class Identity:
    """
    Opaque caller identity.

    Supplied by the authentication substrate; the ledger never
    authenticates it, only compares it.
    """
    value: str

    def __post_init__(self):
        if not self.value or not isinstance(self.value, str):
            raise ValueError("Identity value must be a non-empty string")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, order=True)
class ForestId:
    """Allocated forest identifier (starts at 1)."""
    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 1:
            raise ValueError("ForestId must be a positive integer")

    def next(self) -> ForestId:
        return ForestId(self.value + 1)


@dataclass(frozen=True, order=True)
class MilestoneId:
    """Allocated milestone identifier (starts at 1)."""
    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 1:
            raise ValueError("MilestoneId must be a positive integer")

    def next(self) -> MilestoneId:
        return MilestoneId(self.value + 1)


# =============================================================================
# CLOSED ENUMERATIONS
# =============================================================================

class Role(Enum):
    """
    Registered user roles. Numeric values are part of the external
    contract (register accepts 1..4).
    """
    ADMIN = 1
    EDUCATOR = 2
    PARENT = 3
    CHILD = 4

    @classmethod
    def parse(cls, raw: Union[Role, int]) -> Optional[Role]:
        """Return the matching role, or None for anything outside 1..4."""
        if isinstance(raw, Role):
            return raw
        if isinstance(raw, bool) or not isinstance(raw, int):
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


class RelationshipKind(Enum):
    """Delegated-authority edge kinds."""
    PARENT_CHILD = "parent-child"
    EDUCATOR_CHILD = "educator-child"

    @classmethod
    def parse(cls, raw: Union[RelationshipKind, str]) -> Optional[RelationshipKind]:
        if isinstance(raw, RelationshipKind):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


# Difficulty bounds for milestones (inclusive)
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
