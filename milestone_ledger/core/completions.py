"""
Completion Ledger
=================

Append-only record of (milestone, learner) -> completion.

STATE MACHINE (per milestone, learner):
=======================================
    UNATTEMPTED --complete--> COMPLETED (terminal)

There is no in-progress state and no way back. Prerequisite
satisfaction is recomputed from the edge set at completion time and
never cached.
"""

from __future__ import annotations
from typing import List, Optional

from ..contracts.base import Identity, MilestoneId, Result, ErrorCode
from ..contracts.records import (
    COMPLETIONS, Completion, StorageWrite, Mutation, pair_key,
)
from ..storage import StorageBackend
from ..temporal.clock import LogicalClock
from .authorization import AuthorizationEngine
from .catalog import Catalog
from .validation import FieldLimits, check_text


class CompletionLedger:

    def __init__(
        self,
        storage: StorageBackend,
        clock: LogicalClock,
        limits: FieldLimits,
        catalog: Catalog,
        authorization: AuthorizationEngine
    ):
        self._storage = storage
        self._clock = clock
        self._limits = limits
        self._catalog = catalog
        self._authorization = authorization

    def get(self, milestone_id: MilestoneId, learner: Identity) -> Optional[Completion]:
        return self._storage.get(COMPLETIONS, pair_key(milestone_id.value, learner.value))

    def is_completed(self, milestone_id: MilestoneId, learner: Identity) -> bool:
        return self.get(milestone_id, learner) is not None

    def missing_prerequisites(self, milestone_id: MilestoneId, learner: Identity) -> List[MilestoneId]:
        """Prerequisites of milestone_id that learner has not completed."""
        return [
            prerequisite_id
            for prerequisite_id in self._catalog.get_prerequisites(milestone_id)
            if not self.is_completed(prerequisite_id, learner)
        ]

    def prerequisites_satisfied(self, milestone_id: MilestoneId, learner: Identity) -> bool:
        # No edges -> trivially satisfied
        return not self.missing_prerequisites(milestone_id, learner)

    def plan_complete(
        self,
        caller: Identity,
        milestone_id: MilestoneId,
        learner: Identity,
        evidence_url: Optional[str] = None,
        require_authorization: bool = True
    ) -> Result:
        """
        Stage a completion verified by caller on behalf of learner.

        CHECK ORDER:
        0. INVALID_PARAMETERS (evidence URL bound)
        1. MILESTONE_NOT_FOUND
        2. NOT_AUTHORIZED (skipped for self-completion)
        3. MILESTONE_ALREADY_COMPLETED
        4. PREREQUISITES_NOT_COMPLETED
        """
        if evidence_url is not None:
            error = check_text(evidence_url, "evidence_url", self._limits.max_evidence_url_length)
            if error:
                return Result.failure(error)

        if not self._catalog.milestone_exists(milestone_id):
            return Result.fail(
                ErrorCode.MILESTONE_NOT_FOUND,
                "Milestone does not exist",
                milestone_id=milestone_id.value
            )

        if require_authorization and not self._authorization.can_manage(caller, learner):
            return Result.fail(
                ErrorCode.NOT_AUTHORIZED,
                "Caller may not verify completions for this learner",
                caller=caller.value,
                learner=learner.value
            )

        if self.is_completed(milestone_id, learner):
            return Result.fail(
                ErrorCode.MILESTONE_ALREADY_COMPLETED,
                "Milestone already completed by learner",
                milestone_id=milestone_id.value,
                learner=learner.value
            )

        missing = self.missing_prerequisites(milestone_id, learner)
        if missing:
            return Result.fail(
                ErrorCode.PREREQUISITES_NOT_COMPLETED,
                "Learner has not completed every prerequisite",
                milestone_id=milestone_id.value,
                missing=",".join(str(m.value) for m in missing)
            )

        completion = Completion(
            milestone_id=milestone_id,
            learner=learner,
            completed_at=self._clock.now(),
            verified_by=caller,
            evidence_url=evidence_url
        )
        return Result.success(Mutation(
            operation="complete_milestone" if require_authorization else "self_complete_milestone",
            actor=caller,
            logical_time=completion.completed_at,
            writes=(StorageWrite(COMPLETIONS, completion.key, completion),),
            value=completion
        ))

    def plan_self_complete(
        self,
        caller: Identity,
        milestone_id: MilestoneId,
        evidence_url: Optional[str] = None
    ) -> Result:
        """Learner and verifier are both the caller."""
        return self.plan_complete(
            caller, milestone_id, caller, evidence_url, require_authorization=False
        )
