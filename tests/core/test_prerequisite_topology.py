"""
Tests for Prerequisite Topology.

The graph describes prerequisite structure; it never gates writes.
"""

from milestone_ledger import LedgerConfig, LedgerContext
from milestone_ledger.contracts.base import MilestoneId
from milestone_ledger.contracts.records import PrerequisiteEdge
from milestone_ledger.core.topology import PrerequisiteTopology
from milestone_ledger.temporal.clock import LogicalClock


def create_edge(milestone: int, prerequisite: int) -> PrerequisiteEdge:
    """Helper: 'prerequisite' must be completed before 'milestone'."""
    return PrerequisiteEdge(
        milestone_id=MilestoneId(milestone),
        prerequisite_id=MilestoneId(prerequisite),
        added_at=1
    )


def build(nodes, edges) -> PrerequisiteTopology:
    topology = PrerequisiteTopology()
    topology.build_graph(
        [MilestoneId(n) for n in nodes],
        [create_edge(m, p) for m, p in edges]
    )
    return topology


def ids(*values):
    return {MilestoneId(v) for v in values}


class TestAcyclicGraph:

    def test_counts(self):
        topology = build([1, 2, 3, 4], [(2, 1), (3, 2)])

        assert topology.node_count == 4
        assert topology.edge_count == 2

    def test_chain_learning_order(self):
        topology = build([1, 2, 3], [(3, 2), (2, 1)])

        assert topology.is_acyclic()
        assert topology.learning_order() == [MilestoneId(1), MilestoneId(2), MilestoneId(3)]

    def test_learning_order_breaks_ties_by_lowest_id(self):
        topology = build([1, 2, 3, 4], [(4, 3)])

        assert topology.learning_order() == [MilestoneId(n) for n in (1, 2, 3, 4)]

    def test_transitive_prerequisites(self):
        topology = build([1, 2, 3, 4], [(2, 1), (3, 2), (4, 1)])

        assert topology.transitive_prerequisites(MilestoneId(3)) == ids(1, 2)
        assert topology.transitive_prerequisites(MilestoneId(1)) == set()

    def test_dependents(self):
        topology = build([1, 2, 3, 4], [(2, 1), (3, 2), (4, 1)])

        assert topology.dependents(MilestoneId(1)) == ids(2, 3, 4)
        assert topology.dependents(MilestoneId(3)) == set()

    def test_unknown_milestone_has_no_relations(self):
        topology = build([1], [])

        assert topology.transitive_prerequisites(MilestoneId(9)) == set()
        assert topology.dependents(MilestoneId(9)) == set()

    def test_nothing_blocked(self):
        topology = build([1, 2, 3], [(2, 1), (3, 2)])

        assert topology.find_cycles() == []
        assert topology.blocked_milestones() == set()


class TestCyclicGraph:

    def test_two_cycle_reported(self):
        topology = build([1, 2, 3], [(2, 1), (1, 2), (3, 2)])

        assert not topology.is_acyclic()
        cycles = topology.find_cycles()
        assert len(cycles) == 1
        assert set(cycles[0]) == ids(1, 2)
        assert topology.learning_order() is None

    def test_self_edge_is_a_cycle(self):
        topology = build([1, 2], [(1, 1)])

        assert topology.find_cycles() == [[MilestoneId(1)]]
        assert topology.blocked_milestones() == ids(1)

    def test_blocked_includes_downstream(self):
        topology = build([1, 2, 3, 4, 5], [(2, 1), (1, 2), (3, 2), (4, 3)])

        assert topology.blocked_milestones() == ids(1, 2, 3, 4)

    def test_clear(self):
        topology = build([1, 2], [(1, 2), (2, 1)])

        topology.clear()

        assert topology.node_count == 0
        assert topology.is_acyclic()


class TestLedgerSnapshot:

    def test_snapshot_reflects_ledger_edges(self):
        ledger = LedgerContext(LedgerConfig(clock=LogicalClock.counting()))
        ledger.create_forest("author", "Math", "")
        for title in ("A", "B", "C"):
            ledger.create_milestone("author", title, "", "", 1, 1)
        ledger.add_prerequisite("author", 2, 1)
        ledger.add_prerequisite("author", 1, 2)

        topology = ledger.prerequisite_topology()

        assert topology.node_count == 3
        assert topology.edge_count == 2
        assert topology.blocked_milestones() == ids(1, 2)
        assert ledger.get_prerequisites(1) == (MilestoneId(2),)

    def test_snapshot_is_detached(self):
        ledger = LedgerContext(LedgerConfig(clock=LogicalClock.counting()))
        ledger.create_forest("author", "Math", "")
        ledger.create_milestone("author", "A", "", "", 1, 1)

        topology = ledger.prerequisite_topology()
        ledger.create_milestone("author", "B", "", "", 1, 1)

        assert topology.node_count == 1
