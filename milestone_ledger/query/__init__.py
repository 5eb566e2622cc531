"""
Query & Analysis Interfaces

RESPONSIBILITY: Read-only progress and catalog views
ALLOWED INPUTS: Explicit identifiers (forest, learner)
OUTPUTS: Result carrying immutable view objects

WHAT THIS LAYER MUST NOT DO:
============================
- Mutate any state
- Write to storage
- Cache prerequisite satisfaction (always recomputed)
- Rank learners or milestones
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from ..contracts.base import Identity, ForestId, MilestoneId, Result, ErrorCode
from ..contracts.records import Milestone
from ..core.catalog import Catalog
from ..core.completions import CompletionLedger


@dataclass(frozen=True)
class LearnerProgress:
    """Completion state of one learner across one forest."""
    learner: Identity
    forest_id: ForestId
    completed: Tuple[MilestoneId, ...]
    remaining: Tuple[MilestoneId, ...]

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.remaining)

    @property
    def completion_ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return len(self.completed) / self.total


@dataclass(frozen=True)
class TreeNode:
    """A milestone and the milestones placed under it."""
    milestone: Milestone
    children: Tuple['TreeNode', ...] = field(default_factory=tuple)

    def walk(self) -> Iterator[Tuple['TreeNode', Optional['TreeNode'], int]]:
        """Pre-order (node, parent, depth) triples, without recursion."""
        stack: List[Tuple[TreeNode, Optional[TreeNode], int]] = [(self, None, 0)]
        while stack:
            node, parent, depth = stack.pop()
            yield node, parent, depth
            stack.extend((child, node, depth + 1) for child in reversed(node.children))

    def to_dict(self) -> dict:
        # Children are finished before their parent; chains may be arbitrarily deep
        finished: Dict[int, dict] = {}
        stack: List[Tuple[TreeNode, bool]] = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if not expanded:
                stack.append((node, True))
                stack.extend((child, False) for child in node.children)
                continue
            finished[id(node)] = {
                'milestone_id': node.milestone.milestone_id.value,
                'title': node.milestone.title,
                'children': [finished.pop(id(child)) for child in node.children],
            }
        return finished[id(self)]


class QueryEngine:

    def __init__(self, catalog: Catalog, ledger: CompletionLedger):
        self._catalog = catalog
        self._ledger = ledger

    def _forest_missing(self, forest_id: ForestId) -> Result:
        return Result.fail(
            ErrorCode.FOREST_NOT_FOUND,
            "Forest does not exist",
            forest_id=forest_id.value
        )

    def learner_progress(self, learner: Identity, forest_id: ForestId) -> Result:
        if not self._catalog.forest_exists(forest_id):
            return self._forest_missing(forest_id)

        completed: List[MilestoneId] = []
        remaining: List[MilestoneId] = []
        for milestone in self._catalog.milestones_in_forest(forest_id):
            if self._ledger.is_completed(milestone.milestone_id, learner):
                completed.append(milestone.milestone_id)
            else:
                remaining.append(milestone.milestone_id)

        return Result.success(LearnerProgress(
            learner=learner,
            forest_id=forest_id,
            completed=tuple(completed),
            remaining=tuple(remaining)
        ))

    def available_milestones(self, learner: Identity, forest_id: ForestId) -> Result:
        """Uncompleted milestones whose prerequisites are all completed."""
        if not self._catalog.forest_exists(forest_id):
            return self._forest_missing(forest_id)

        return Result.success(tuple(
            milestone.milestone_id
            for milestone in self._catalog.milestones_in_forest(forest_id)
            if not self._ledger.is_completed(milestone.milestone_id, learner)
            and self._ledger.prerequisites_satisfied(milestone.milestone_id, learner)
        ))

    def forest_tree(self, forest_id: ForestId) -> Result:
        """
        Milestones of a forest nested by tree placement.

        A milestone whose parent lives in another forest is shown as a
        root of this forest.
        """
        if not self._catalog.forest_exists(forest_id):
            return self._forest_missing(forest_id)

        milestones = self._catalog.milestones_in_forest(forest_id)
        in_forest = {m.milestone_id for m in milestones}
        children: Dict[MilestoneId, List[Milestone]] = {}
        roots: List[Milestone] = []
        for milestone in milestones:
            parent = milestone.parent_milestone_id
            if parent is not None and parent in in_forest:
                children.setdefault(parent, []).append(milestone)
            else:
                roots.append(milestone)

        built: Dict[MilestoneId, TreeNode] = {}
        for root in roots:
            stack: List[Tuple[Milestone, bool]] = [(root, False)]
            while stack:
                milestone, expanded = stack.pop()
                below = children.get(milestone.milestone_id, [])
                if not expanded:
                    stack.append((milestone, True))
                    stack.extend((child, False) for child in below)
                    continue
                built[milestone.milestone_id] = TreeNode(
                    milestone=milestone,
                    children=tuple(built.pop(child.milestone_id) for child in below)
                )

        return Result.success(tuple(built.pop(root.milestone_id) for root in roots))


__all__ = ['LearnerProgress', 'TreeNode', 'QueryEngine']
