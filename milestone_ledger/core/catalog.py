"""
Forest/Milestone Catalog
========================

Sole writer of forests, milestones and prerequisite edges.

STRUCTURE:
==========
- A forest is a named collection; every milestone belongs to exactly one
- A milestone MAY have a tree parent (organizational placement)
- A milestone MAY have prerequisite edges (completion gating)
Tree placement and prerequisites are independent: a parent is not an
implicit prerequisite, and prerequisites may cross forests.

NO CYCLE DETECTION:
===================
Prerequisite edges are accepted in both directions, including
self-edges. A cyclic milestone can never be completed. Cycles are
reported by core.topology, never rejected here.
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from ..contracts.base import (
    Identity, ForestId, MilestoneId, Result, Error, ErrorCode,
)
from ..contracts.records import (
    FORESTS, MILESTONES, PREREQUISITES, key_prefix,
    Forest, Milestone, PrerequisiteEdge, StorageWrite, Mutation, pair_key,
)
from ..storage import StorageBackend
from ..temporal.clock import LogicalClock
from .allocators import IdAllocator
from .validation import FieldLimits, check_text, check_difficulty


class Catalog:

    def __init__(
        self,
        storage: StorageBackend,
        clock: LogicalClock,
        limits: FieldLimits,
        forest_ids: IdAllocator,
        milestone_ids: IdAllocator
    ):
        self._storage = storage
        self._clock = clock
        self._limits = limits
        self._forest_ids = forest_ids
        self._milestone_ids = milestone_ids

    # =========================================================================
    # READS
    # =========================================================================

    def get_forest(self, forest_id: ForestId) -> Optional[Forest]:
        return self._storage.get(FORESTS, str(forest_id.value))

    def get_milestone(self, milestone_id: MilestoneId) -> Optional[Milestone]:
        return self._storage.get(MILESTONES, str(milestone_id.value))

    def forest_exists(self, forest_id: ForestId) -> bool:
        return self.get_forest(forest_id) is not None

    def milestone_exists(self, milestone_id: MilestoneId) -> bool:
        return self.get_milestone(milestone_id) is not None

    def all_forests(self) -> List[Forest]:
        return [forest for _, forest in self._storage.scan(FORESTS)]

    def all_milestones(self) -> List[Milestone]:
        return [milestone for _, milestone in self._storage.scan(MILESTONES)]

    def milestones_in_forest(self, forest_id: ForestId) -> List[Milestone]:
        return [m for m in self.all_milestones() if m.forest_id == forest_id]

    def child_milestones(self, parent_id: MilestoneId) -> List[Milestone]:
        """Milestones placed directly under parent_id in the tree."""
        return [m for m in self.all_milestones() if m.parent_milestone_id == parent_id]

    def get_prerequisite_edges(self, milestone_id: MilestoneId) -> List[PrerequisiteEdge]:
        """Full scan of the edges gating milestone_id."""
        prefix = key_prefix(milestone_id.value)
        return [edge for _, edge in self._storage.scan(PREREQUISITES, prefix)]

    def get_prerequisites(self, milestone_id: MilestoneId) -> Tuple[MilestoneId, ...]:
        return tuple(edge.prerequisite_id for edge in self.get_prerequisite_edges(milestone_id))

    def all_prerequisite_edges(self) -> List[PrerequisiteEdge]:
        return [edge for _, edge in self._storage.scan(PREREQUISITES)]

    def has_prerequisite_edge(self, milestone_id: MilestoneId, prerequisite_id: MilestoneId) -> bool:
        return self._storage.contains(
            PREREQUISITES, pair_key(milestone_id.value, prerequisite_id.value)
        )

    # =========================================================================
    # STAGED WRITES
    # =========================================================================

    def plan_create_forest(self, caller: Identity, name: str, description: str) -> Result:
        """No existence preconditions beyond field bounds."""
        error = (
            check_text(name, "name", self._limits.max_name_length, required=True)
            or check_text(description, "description", self._limits.max_description_length)
        )
        if error:
            return Result.failure(error)

        forest_id = self._forest_ids.peek()
        forest = Forest(
            forest_id=ForestId(forest_id),
            name=name,
            description=description,
            created_by=caller,
            created_at=self._clock.now()
        )
        return Result.success(Mutation(
            operation="create_forest",
            actor=caller,
            logical_time=forest.created_at,
            writes=(
                StorageWrite(FORESTS, forest.key, forest),
                self._forest_ids.claim(forest_id),
            ),
            value=forest.forest_id
        ))

    def check_milestone_parameters(
        self,
        title: str,
        description: str,
        category: str,
        difficulty: int,
        forest_id: ForestId
    ) -> Optional[Error]:
        """Checks 1 and 2 of plan_create_milestone, without staging anything."""
        if not self.forest_exists(forest_id):
            return Error(
                code=ErrorCode.FOREST_NOT_FOUND,
                message="Forest does not exist",
                context=(("forest_id", str(forest_id.value)),)
            )

        return (
            check_difficulty(difficulty)
            or check_text(title, "title", self._limits.max_title_length, required=True)
            or check_text(description, "description", self._limits.max_description_length)
            or check_text(category, "category", self._limits.max_category_length)
        )

    def plan_create_milestone(
        self,
        caller: Identity,
        title: str,
        description: str,
        category: str,
        difficulty: int,
        forest_id: ForestId,
        parent_milestone_id: Optional[MilestoneId] = None
    ) -> Result:
        """
        Stage a milestone record.

        CHECK ORDER:
        1. FOREST_NOT_FOUND
        2. INVALID_PARAMETERS (difficulty, then text bounds)
        3. PARENT_MILESTONE_NOT_FOUND
        """
        error = self.check_milestone_parameters(
            title, description, category, difficulty, forest_id
        )
        if error:
            return Result.failure(error)

        if parent_milestone_id is not None and not self.milestone_exists(parent_milestone_id):
            return Result.fail(
                ErrorCode.PARENT_MILESTONE_NOT_FOUND,
                "Parent milestone does not exist",
                parent_milestone_id=parent_milestone_id.value
            )

        milestone_id = self._milestone_ids.peek()
        milestone = Milestone(
            milestone_id=MilestoneId(milestone_id),
            title=title,
            description=description,
            category=category,
            difficulty=difficulty,
            forest_id=forest_id,
            parent_milestone_id=parent_milestone_id,
            created_by=caller,
            created_at=self._clock.now()
        )
        return Result.success(Mutation(
            operation="create_milestone",
            actor=caller,
            logical_time=milestone.created_at,
            writes=(
                StorageWrite(MILESTONES, milestone.key, milestone),
                self._milestone_ids.claim(milestone_id),
            ),
            value=milestone.milestone_id
        ))

    def plan_add_prerequisite(
        self,
        caller: Identity,
        milestone_id: MilestoneId,
        prerequisite_id: MilestoneId
    ) -> Result:
        if not self.milestone_exists(milestone_id):
            return Result.fail(
                ErrorCode.MILESTONE_NOT_FOUND,
                "Milestone does not exist",
                milestone_id=milestone_id.value
            )

        if not self.milestone_exists(prerequisite_id):
            return Result.fail(
                ErrorCode.PREREQUISITE_NOT_FOUND,
                "Prerequisite milestone does not exist",
                prerequisite_id=prerequisite_id.value
            )

        if self.has_prerequisite_edge(milestone_id, prerequisite_id):
            return Result.fail(
                ErrorCode.DUPLICATE_RELATIONSHIP,
                "Prerequisite edge already exists",
                milestone_id=milestone_id.value,
                prerequisite_id=prerequisite_id.value
            )

        edge = PrerequisiteEdge(
            milestone_id=milestone_id,
            prerequisite_id=prerequisite_id,
            added_at=self._clock.now()
        )
        return Result.success(Mutation(
            operation="add_prerequisite",
            actor=caller,
            logical_time=edge.added_at,
            writes=(StorageWrite(PREREQUISITES, edge.key, edge),),
            value=edge
        ))
