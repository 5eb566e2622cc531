"""
Prerequisite Topology
=====================

Structural analysis of the prerequisite graph using networkx.

READ-ONLY FENCE POST:
=====================
This engine DESCRIBES the graph, it never gates writes.

ALLOWED:
- Cycle detection (reporting milestones that can never be completed)
- Transitive prerequisite closure
- Topological learning order

FORBIDDEN:
- Rejecting or rewriting edges
- Caching completion eligibility
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Set
import networkx as nx

from ..contracts.base import MilestoneId
from ..contracts.records import PrerequisiteEdge


class PrerequisiteTopology:
    """
    Directed graph with an edge prerequisite -> milestone for every
    prerequisite record, so edges point in learning order.
    """

    def __init__(self):
        self._graph = nx.DiGraph()

    def build_graph(
        self,
        milestone_ids: Iterable[MilestoneId],
        edges: Iterable[PrerequisiteEdge]
    ) -> None:
        """
        Build graph from milestones and prerequisite edges.

        Replaces internal graph state.
        """
        self._graph = nx.DiGraph()

        for milestone_id in milestone_ids:
            self._graph.add_node(milestone_id.value)

        for edge in edges:
            self._graph.add_edge(
                edge.prerequisite_id.value,
                edge.milestone_id.value,
                added_at=edge.added_at
            )

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self._graph)

    def find_cycles(self) -> List[List[MilestoneId]]:
        """
        Every elementary cycle, each as a list of milestone ids.
        Self-edges are reported as single-element cycles.
        """
        return [
            [MilestoneId(node) for node in cycle]
            for cycle in nx.simple_cycles(self._graph)
        ]

    def blocked_milestones(self) -> Set[MilestoneId]:
        """Milestones on a cycle or downstream of one (never completable)."""
        blocked: Set[int] = set()
        for component in nx.strongly_connected_components(self._graph):
            node = next(iter(component))
            if len(component) > 1 or self._graph.has_edge(node, node):
                blocked.update(component)
        for node in list(blocked):
            blocked.update(nx.descendants(self._graph, node))
        return {MilestoneId(node) for node in blocked}

    def transitive_prerequisites(self, milestone_id: MilestoneId) -> Set[MilestoneId]:
        """Everything that must be completed, directly or indirectly, first."""
        if milestone_id.value not in self._graph:
            return set()
        return {
            MilestoneId(node)
            for node in nx.ancestors(self._graph, milestone_id.value)
        }

    def dependents(self, milestone_id: MilestoneId) -> Set[MilestoneId]:
        """Milestones gated (directly or indirectly) by milestone_id."""
        if milestone_id.value not in self._graph:
            return set()
        return {
            MilestoneId(node)
            for node in nx.descendants(self._graph, milestone_id.value)
        }

    def learning_order(self) -> Optional[List[MilestoneId]]:
        """
        A completion order honoring every edge; ties broken by lowest id.
        None when the graph is cyclic.
        """
        if not self.is_acyclic():
            return None
        return [
            MilestoneId(node)
            for node in nx.lexicographical_topological_sort(self._graph)
        ]

    def clear(self):
        self._graph.clear()
