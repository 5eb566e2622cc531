"""
Engine Orchestration Module

This module provides the unified interface for every ledger operation
while maintaining strict boundary separation.

DESIGN PRINCIPLES:
==================
1. One LedgerContext owns all state; no module-level singletons
2. Every operation runs check-then-commit under a single writer lock
3. Core components stage writes; only the engine commits them
4. A commit carries the records, the allocator advance and the
   operation-log entry together, so it lands whole or not at all
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple, Union
import os
import threading

from .contracts.base import (
    Identity, ForestId, MilestoneId, Role, RelationshipKind, Result, Error, ErrorCode,
)
from .contracts.records import (
    EVENTS, FOREST_COUNTER, MILESTONE_COUNTER,
    User, Relationship, Forest, Milestone, Completion, StorageWrite, Mutation,
)
from .core import (
    FieldLimits, IdentityStore, RelationshipStore, AuthorizationEngine,
    IdAllocator, Catalog, CompletionLedger, PrerequisiteTopology,
)
from .observability import AuditCollector, ObservabilityConfig
from .query import QueryEngine
from .storage import StorageBackend, StorageConfig, create_storage_backend
from .temporal.clock import LogicalClock
from .temporal.event_log import OperationLog


IdentityLike = Union[Identity, str]
ForestIdLike = Union[ForestId, int]
MilestoneIdLike = Union[MilestoneId, int]

OWNER_ENV = "MILESTONE_LEDGER_OWNER"
STORAGE_DIR_ENV = "MILESTONE_LEDGER_STORAGE_DIR"
AUDIT_MAX_ENV = "MILESTONE_LEDGER_AUDIT_MAX_ENTRIES"

# Long-running processes keep a bounded audit window
DEFAULT_AUDIT_MAX_ENTRIES = 10000


@dataclass
class LedgerConfig:
    """Unified configuration for the ledger."""
    platform_owner: Optional[str] = None
    limits: FieldLimits = None
    storage: StorageConfig = None
    observability: ObservabilityConfig = None
    clock: Optional[LogicalClock] = None

    def __post_init__(self):
        self.limits = self.limits or FieldLimits()
        self.storage = self.storage or StorageConfig()
        self.observability = self.observability or ObservabilityConfig()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'LedgerConfig':
        """
        Build config from environment variables.

        MILESTONE_LEDGER_OWNER              platform owner identity (optional)
        MILESTONE_LEDGER_STORAGE_DIR        enables the file backend when set
        MILESTONE_LEDGER_AUDIT_MAX_ENTRIES  audit entries retained in memory
        """
        environ = os.environ if environ is None else environ
        storage_dir = environ.get(STORAGE_DIR_ENV)
        storage = (
            StorageConfig(backend_type="file", storage_dir=storage_dir)
            if storage_dir else StorageConfig()
        )
        raw_max = environ.get(AUDIT_MAX_ENV)
        max_entries = int(raw_max) if raw_max else DEFAULT_AUDIT_MAX_ENTRIES
        if max_entries < 0:
            raise ValueError(f"{AUDIT_MAX_ENV} must not be negative")
        return cls(
            platform_owner=environ.get(OWNER_ENV) or None,
            storage=storage,
            observability=ObservabilityConfig(max_entries=max_entries)
        )


# =============================================================================
# ARGUMENT COERCION
# =============================================================================

def _as_identity(raw: object) -> Optional[Identity]:
    if isinstance(raw, Identity):
        return raw
    if isinstance(raw, str) and raw:
        return Identity(raw)
    return None


def _as_forest_id(raw: object) -> Optional[ForestId]:
    if isinstance(raw, ForestId):
        return raw
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        return None
    return ForestId(raw)


def _as_milestone_id(raw: object) -> Optional[MilestoneId]:
    if isinstance(raw, MilestoneId):
        return raw
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        return None
    return MilestoneId(raw)


def _invalid_identity(field_name: str, raw: object) -> Result:
    return Result.fail(
        ErrorCode.INVALID_PARAMETERS,
        f"{field_name} must be a non-empty identity",
        value=raw
    )


class LedgerContext:
    """
    Explicitly constructed ledger state plus the public operation surface.

    LAYER FLOW (mutations):
    =======================
    1. Coerce arguments
    2. Core component checks and stages a Mutation
    3. Engine commits writes + log entry as one storage batch
    4. Operation log appends the entry; audit records the outcome

    Fresh context per test; no process-wide reset needed.
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        storage: Optional[StorageBackend] = None
    ):
        self._config = config or LedgerConfig()
        self._lock = threading.RLock()

        self._storage = storage or create_storage_backend(self._config.storage)
        self._clock = self._config.clock or LogicalClock.live()
        limits = self._config.limits

        owner = _as_identity(self._config.platform_owner)

        self._identities = IdentityStore(self._storage, self._clock, limits)
        self._relationships = RelationshipStore(self._storage, self._clock, self._identities)
        self._authorization = AuthorizationEngine(self._relationships, owner)
        self._forest_ids = IdAllocator(self._storage, FOREST_COUNTER)
        self._milestone_ids = IdAllocator(self._storage, MILESTONE_COUNTER)
        self._catalog = Catalog(
            self._storage, self._clock, limits, self._forest_ids, self._milestone_ids
        )
        self._ledger = CompletionLedger(
            self._storage, self._clock, limits, self._catalog, self._authorization
        )
        self._query = QueryEngine(self._catalog, self._ledger)
        self._audit = AuditCollector(self._config.observability)
        self._event_log = OperationLog()

        self._hydrate_event_log()

    def _hydrate_event_log(self) -> None:
        """Reload committed operation-log entries, verifying the chain."""
        entries = sorted(
            (entry for _, entry in self._storage.scan(EVENTS)),
            key=lambda e: e.sequence.value
        )
        for entry in entries:
            self._event_log.load_verified_entry(entry)
        self._audit.record_system("hydrated", entries=str(len(entries)))

    # =========================================================================
    # COMMIT PIPELINE
    # =========================================================================

    def _execute(
        self,
        operation: str,
        caller: Optional[Identity],
        plan: Callable[[], Result]
    ) -> Result:
        with self._lock:
            planned = plan()
            if planned.is_failure:
                self._audit.record_outcome(operation, caller, planned)
                return planned

            mutation: Mutation = planned.value
            entry = self._event_log.prepare(
                mutation.operation, mutation.actor,
                mutation.logical_time, mutation.record_keys
            )
            write_result = self._storage.commit(
                mutation.writes + (StorageWrite(EVENTS, entry.key, entry),)
            )
            if not write_result.success:
                failure = Result.failure(write_result.error or Error(
                    code=ErrorCode.STORAGE_FAILURE,
                    message="Storage rejected the batch"
                ))
                self._audit.record_outcome(operation, caller, failure)
                return failure

            self._event_log.load_verified_entry(entry)
            result = Result.success(mutation.value)
            self._audit.record_outcome(
                mutation.operation, caller, result, mutation.logical_time
            )
            return result

    # =========================================================================
    # MUTATING OPERATIONS
    # =========================================================================

    def register(self, caller: IdentityLike, name: str, role: Union[Role, int]) -> Result:
        """Register caller with a permanent role. Success value: User."""
        identity = _as_identity(caller)
        if identity is None:
            return _invalid_identity("caller", caller)
        return self._execute(
            "register", identity,
            lambda: self._identities.plan_register(identity, name, role)
        )

    def create_relationship(
        self,
        caller: IdentityLike,
        subject: IdentityLike,
        kind: Union[RelationshipKind, str]
    ) -> Result:
        """Caller becomes manager of subject. Success value: Relationship."""
        identity = _as_identity(caller)
        if identity is None:
            return _invalid_identity("caller", caller)
        subject_identity = _as_identity(subject)
        if subject_identity is None:
            return _invalid_identity("subject", subject)
        return self._execute(
            "create_relationship", identity,
            lambda: self._relationships.plan_create(identity, subject_identity, kind)
        )

    def create_forest(self, caller: IdentityLike, name: str, description: str) -> Result:
        """Success value: the newly allocated ForestId."""
        identity = _as_identity(caller)
        if identity is None:
            return _invalid_identity("caller", caller)
        return self._execute(
            "create_forest", identity,
            lambda: self._catalog.plan_create_forest(identity, name, description)
        )

    def create_milestone(
        self,
        caller: IdentityLike,
        title: str,
        description: str,
        category: str,
        difficulty: int,
        forest_id: ForestIdLike,
        parent_milestone_id: Optional[MilestoneIdLike] = None
    ) -> Result:
        """Success value: the newly allocated MilestoneId."""
        identity = _as_identity(caller)
        if identity is None:
            return _invalid_identity("caller", caller)

        def plan() -> Result:
            forest = _as_forest_id(forest_id)
            if forest is None:
                return Result.fail(
                    ErrorCode.FOREST_NOT_FOUND, "Forest does not exist", forest_id=forest_id
                )
            parent = None
            if parent_milestone_id is not None:
                parent = _as_milestone_id(parent_milestone_id)
                if parent is None:
                    # Keep the documented check order: forest, parameters, parent
                    error = self._catalog.check_milestone_parameters(
                        title, description, category, difficulty, forest
                    )
                    if error:
                        return Result.failure(error)
                    return Result.fail(
                        ErrorCode.PARENT_MILESTONE_NOT_FOUND,
                        "Parent milestone does not exist",
                        parent_milestone_id=parent_milestone_id
                    )
            return self._catalog.plan_create_milestone(
                identity, title, description, category, difficulty, forest, parent
            )

        return self._execute("create_milestone", identity, plan)

    def add_prerequisite(
        self,
        caller: IdentityLike,
        milestone_id: MilestoneIdLike,
        prerequisite_id: MilestoneIdLike
    ) -> Result:
        """prerequisite_id must be completed before milestone_id. Success value: PrerequisiteEdge."""
        identity = _as_identity(caller)
        if identity is None:
            return _invalid_identity("caller", caller)

        def plan() -> Result:
            milestone = _as_milestone_id(milestone_id)
            if milestone is None:
                return Result.fail(
                    ErrorCode.MILESTONE_NOT_FOUND, "Milestone does not exist",
                    milestone_id=milestone_id
                )
            prerequisite = _as_milestone_id(prerequisite_id)
            if prerequisite is None:
                if not self._catalog.milestone_exists(milestone):
                    return Result.fail(
                        ErrorCode.MILESTONE_NOT_FOUND, "Milestone does not exist",
                        milestone_id=milestone.value
                    )
                return Result.fail(
                    ErrorCode.PREREQUISITE_NOT_FOUND, "Prerequisite milestone does not exist",
                    prerequisite_id=prerequisite_id
                )
            return self._catalog.plan_add_prerequisite(identity, milestone, prerequisite)

        return self._execute("add_prerequisite", identity, plan)

    def complete_milestone(
        self,
        caller: IdentityLike,
        milestone_id: MilestoneIdLike,
        learner: IdentityLike,
        evidence_url: Optional[str] = None
    ) -> Result:
        """Caller verifies learner's completion. Success value: Completion."""
        identity = _as_identity(caller)
        if identity is None:
            return _invalid_identity("caller", caller)
        learner_identity = _as_identity(learner)
        if learner_identity is None:
            return _invalid_identity("learner", learner)

        def plan() -> Result:
            milestone = _as_milestone_id(milestone_id)
            if milestone is None:
                return Result.fail(
                    ErrorCode.MILESTONE_NOT_FOUND, "Milestone does not exist",
                    milestone_id=milestone_id
                )
            return self._ledger.plan_complete(identity, milestone, learner_identity, evidence_url)

        return self._execute("complete_milestone", identity, plan)

    def self_complete_milestone(
        self,
        caller: IdentityLike,
        milestone_id: MilestoneIdLike,
        evidence_url: Optional[str] = None
    ) -> Result:
        """Caller records their own completion. Success value: Completion."""
        identity = _as_identity(caller)
        if identity is None:
            return _invalid_identity("caller", caller)

        def plan() -> Result:
            milestone = _as_milestone_id(milestone_id)
            if milestone is None:
                return Result.fail(
                    ErrorCode.MILESTONE_NOT_FOUND, "Milestone does not exist",
                    milestone_id=milestone_id
                )
            return self._ledger.plan_self_complete(identity, milestone, evidence_url)

        return self._execute("self_complete_milestone", identity, plan)

    # =========================================================================
    # READ-ONLY LOOKUPS
    # =========================================================================

    def get_user(self, identity: IdentityLike) -> Optional[User]:
        identity = _as_identity(identity)
        if identity is None:
            return None
        with self._lock:
            return self._identities.get(identity)

    def get_forest(self, forest_id: ForestIdLike) -> Optional[Forest]:
        forest = _as_forest_id(forest_id)
        if forest is None:
            return None
        with self._lock:
            return self._catalog.get_forest(forest)

    def get_milestone(self, milestone_id: MilestoneIdLike) -> Optional[Milestone]:
        milestone = _as_milestone_id(milestone_id)
        if milestone is None:
            return None
        with self._lock:
            return self._catalog.get_milestone(milestone)

    def is_milestone_completed(self, milestone_id: MilestoneIdLike, learner: IdentityLike) -> bool:
        return self.get_milestone_completion(milestone_id, learner) is not None

    def get_milestone_completion(
        self,
        milestone_id: MilestoneIdLike,
        learner: IdentityLike
    ) -> Optional[Completion]:
        milestone = _as_milestone_id(milestone_id)
        learner_identity = _as_identity(learner)
        if milestone is None or learner_identity is None:
            return None
        with self._lock:
            return self._ledger.get(milestone, learner_identity)

    def get_user_relationship(
        self,
        manager: IdentityLike,
        subject: IdentityLike
    ) -> Optional[Relationship]:
        manager_identity = _as_identity(manager)
        subject_identity = _as_identity(subject)
        if manager_identity is None or subject_identity is None:
            return None
        with self._lock:
            return self._relationships.get(manager_identity, subject_identity)

    def can_manage(self, manager: IdentityLike, subject: IdentityLike) -> bool:
        manager_identity = _as_identity(manager)
        subject_identity = _as_identity(subject)
        if manager_identity is None or subject_identity is None:
            return False
        with self._lock:
            return self._authorization.can_manage(manager_identity, subject_identity)

    def subjects_of(self, manager: IdentityLike) -> List[Relationship]:
        manager_identity = _as_identity(manager)
        if manager_identity is None:
            return []
        with self._lock:
            return self._relationships.subjects_of(manager_identity)

    def get_prerequisites(self, milestone_id: MilestoneIdLike) -> Tuple[MilestoneId, ...]:
        milestone = _as_milestone_id(milestone_id)
        if milestone is None:
            return ()
        with self._lock:
            return self._catalog.get_prerequisites(milestone)

    def missing_prerequisites(
        self,
        milestone_id: MilestoneIdLike,
        learner: IdentityLike
    ) -> List[MilestoneId]:
        milestone = _as_milestone_id(milestone_id)
        learner_identity = _as_identity(learner)
        if milestone is None or learner_identity is None:
            return []
        with self._lock:
            return self._ledger.missing_prerequisites(milestone, learner_identity)

    def milestones_in_forest(self, forest_id: ForestIdLike) -> List[Milestone]:
        forest = _as_forest_id(forest_id)
        if forest is None:
            return []
        with self._lock:
            return self._catalog.milestones_in_forest(forest)

    def child_milestones(self, parent_id: MilestoneIdLike) -> List[Milestone]:
        parent = _as_milestone_id(parent_id)
        if parent is None:
            return []
        with self._lock:
            return self._catalog.child_milestones(parent)

    # =========================================================================
    # QUERY INTERFACE
    # =========================================================================

    def _forest_query(self, forest_id: ForestIdLike, run: Callable[[ForestId], Result]) -> Result:
        forest = _as_forest_id(forest_id)
        if forest is None:
            return Result.fail(
                ErrorCode.FOREST_NOT_FOUND, "Forest does not exist", forest_id=forest_id
            )
        with self._lock:
            return run(forest)

    def learner_progress(self, learner: IdentityLike, forest_id: ForestIdLike) -> Result:
        learner_identity = _as_identity(learner)
        if learner_identity is None:
            return _invalid_identity("learner", learner)
        return self._forest_query(
            forest_id, lambda f: self._query.learner_progress(learner_identity, f)
        )

    def available_milestones(self, learner: IdentityLike, forest_id: ForestIdLike) -> Result:
        learner_identity = _as_identity(learner)
        if learner_identity is None:
            return _invalid_identity("learner", learner)
        return self._forest_query(
            forest_id, lambda f: self._query.available_milestones(learner_identity, f)
        )

    def forest_tree(self, forest_id: ForestIdLike) -> Result:
        return self._forest_query(forest_id, self._query.forest_tree)

    def prerequisite_topology(self) -> PrerequisiteTopology:
        """Fresh graph snapshot of all milestones and prerequisite edges."""
        topology = PrerequisiteTopology()
        with self._lock:
            topology.build_graph(
                (m.milestone_id for m in self._catalog.all_milestones()),
                self._catalog.all_prerequisite_edges()
            )
        return topology

    # =========================================================================
    # OBSERVABILITY INTERFACE
    # =========================================================================

    def verify_integrity(self) -> Result:
        with self._lock:
            is_valid, error = self._event_log.verify_integrity()
        if not is_valid:
            return Result.failure(error)
        return Result.success(True)

    def state_hash(self) -> str:
        with self._lock:
            return self._event_log.compute_state_hash()

    @property
    def audit(self) -> AuditCollector:
        return self._audit

    @property
    def event_log(self) -> OperationLog:
        return self._event_log

    @property
    def platform_owner(self) -> Optional[Identity]:
        return self._authorization.platform_owner

    @property
    def clock(self) -> LogicalClock:
        return self._clock
