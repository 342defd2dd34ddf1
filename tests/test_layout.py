from collections import defaultdict

import pytest

from happy_tree.cycles import Cycle, find_cycles
from happy_tree.graph import Graph
from happy_tree.layout import TreeLayoutEngine, WedgeInstruction, cycle_levels, partition_span
from happy_tree.subtree import SubtreeAnalyzer


class TestPartitionSpan:

    def test_proportional_and_contiguous(self):
        spans = partition_span([3, 1, 4], 0.25, 0.75)
        assert spans[0][0] == 0.25
        assert spans[-1][1] == 0.75
        for (_, e), (s, _) in zip(spans, spans[1:]):
            assert e == s
        widths = [e - s for s, e in spans]
        assert widths == pytest.approx([0.5 * 3 / 8, 0.5 * 1 / 8, 0.5 * 4 / 8])

    def test_zero_total_single_member_gets_everything(self):
        assert partition_span([0], 0.0, 1.0) == [(0.0, 1.0)]

    def test_zero_total_is_shared(self):
        assert partition_span([0, 0], 0.0, 1.0) == [(0.0, 0.5), (0.5, 1.0)]

    def test_empty(self):
        assert partition_span([], 0.0, 1.0) == []


class TestLayoutBranch:

    def test_preorder_and_levels(self, square16):
        engine = TreeLayoutEngine(square16)
        zero = Cycle([0])
        wedges = list(engine.layout_branch(0, zero, level=1, start=0.0, end=1.0))
        assert [w.node for w in wedges] == [0, 4, 2, 6, 10, 14, 8, 12]
        assert [w.level for w in wedges] == [1, 2, 3, 3, 3, 3, 2, 2]
        assert wedges[0] == WedgeInstruction(0, 1, 0.0, 1.0)
        assert wedges[1].start == 0.0
        assert wedges[1].end == pytest.approx(5 / 7)
        assert wedges[-1].end == 1.0

    def test_children_tile_parent(self, hex_graph, hex_cycles):
        engine = TreeLayoutEngine(hex_graph)
        for level, cycle in enumerate(hex_cycles):
            wedges = {}
            for w in engine.layout_cycle(cycle, level):
                assert w.node not in wedges
                wedges[w.node] = w
            children = defaultdict(list)
            for w in wedges.values():
                parent = int(hex_graph.dst[w.node])
                if w.node not in cycle:
                    children[parent].append(wedges[w.node])
            for parent, kids in children.items():
                pw = wedges[parent]
                kids.sort(key=lambda k: k.start)
                assert kids[0].start == pw.start
                assert kids[-1].end == pw.end
                assert sum(k.width for k in kids) == pytest.approx(pw.width, abs=1e-12)
                for a, b in zip(kids, kids[1:]):
                    assert a.end == b.start
                    assert a.level == b.level == pw.level + 1

    def test_color_is_node_id(self):
        assert WedgeInstruction(0x12AB34, 0, 0.0, 1.0).color == 0x12AB34


class TestCycleSpans:

    def test_single_member_covers_full_turn(self, square16):
        engine = TreeLayoutEngine(square16)
        zero, _ = find_cycles(square16)
        assert engine.cycle_spans(zero) == [(0, 0.0, 1.0)]
        first = next(engine.layout_cycle(zero, 1))
        assert (first.level, first.start, first.end) == (1, 0.0, 1.0)

    def test_isolated_self_loop_falls_back_to_full_span(self):
        # 2 -> 2 with nothing feeding it
        g = Graph.from_dst([0, 0, 2])
        engine = TreeLayoutEngine(g)
        lonely = Cycle([2])
        assert engine.cycle_spans(lonely) == [(2, 0.0, 1.0)]
        assert list(engine.layout_cycle(lonely, 3)) == [WedgeInstruction(2, 3, 0.0, 1.0)]

    def test_isolated_cycle_is_shared(self):
        g = Graph.from_dst([1, 0])
        engine = TreeLayoutEngine(g)
        assert engine.cycle_spans(Cycle([0, 1])) == [(0, 0.0, 0.5), (1, 0.5, 1.0)]

    def test_member_shares_follow_subtree_size(self):
        # 2-cycle 0 <-> 1, with 2 and 3 feeding 0 and 4 feeding 1
        g = Graph.from_dst([1, 0, 0, 0, 1])
        engine = TreeLayoutEngine(g)
        spans = engine.cycle_spans(Cycle([0, 1]))
        assert spans[0][0] == 0.0 and spans[-1][2] == 1.0
        assert spans[0][2] == pytest.approx(3 / 5)

    def test_member_without_feeders_stays_visible(self):
        # 0 <-> 1, only 0 is fed (by 2)
        g = Graph.from_dst([1, 0, 0])
        engine = TreeLayoutEngine(g)
        spans = engine.cycle_spans(Cycle([0, 1]))
        assert spans[0] == (0, 0.0, pytest.approx(2 / 3))
        assert spans[1][0] == 1
        assert spans[1][2] - spans[1][1] == pytest.approx(1 / 3)
        assert all(w.width > 0 for w in engine.layout_cycle(Cycle([0, 1]), 1))


def test_cycle_levels(square16):
    analyzer = SubtreeAnalyzer(square16)
    cycles = find_cycles(square16)
    assert cycle_levels(analyzer, cycles, start_level=1) == [1, 5]
    assert cycle_levels(analyzer, cycles, start_level=0) == [0, 4]
