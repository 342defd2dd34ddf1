import networkx as nx
import pytest

from happy_tree.cycles import Cycle, basin_labels, find_cycles
from happy_tree.graph import Graph, to_networkx


class TestFindCycles:

    def test_square_mod_16(self, square16):
        cycles = find_cycles(square16)
        assert cycles == [Cycle([0]), Cycle([1])]

    def test_permutation(self):
        g = Graph.from_dst([1, 2, 0, 4, 3, 5])
        assert [c.members for c in find_cycles(g)] == [(0, 1, 2), (3, 4), (5,)]

    def test_rotation_starts_at_smallest_member(self):
        # 1 -> 0 -> 5 -> 4 -> 2 -> 5, and 3 -> 3
        g = Graph.from_dst([5, 0, 5, 3, 2, 4])
        cycles = find_cycles(g)
        assert [c.members for c in cycles] == [(2, 5, 4), (3,)]
        assert all(c.closes_under(g) for c in cycles)

    def test_self_loop(self):
        cycles = find_cycles(Graph.from_dst([0]))
        assert len(cycles) == 1 and len(cycles[0]) == 1

    def test_disjoint(self, hex_cycles):
        members = [m for c in hex_cycles for m in c]
        assert len(members) == len(set(members))

    def test_every_trajectory_reaches_a_cycle(self, hex_graph, hex_cycles):
        periodic = {m for c in hex_cycles for m in c}
        dst = hex_graph.dst.tolist()
        n = len(dst)
        for start in range(n):
            i = start
            for _ in range(n):
                if i in periodic:
                    break
                i = dst[i]
            assert i in periodic, f"{start:06X} never reached a cycle"

    def test_matches_networkx(self, hex_graph, hex_cycles):
        expected = sorted(sorted(c) for c in nx.simple_cycles(to_networkx(hex_graph)))
        assert sorted(sorted(c.members) for c in hex_cycles) == expected

    def test_hex_fixed_point_one(self, hex_cycles):
        # 1 is a fixed point of every digit-power sum
        assert Cycle([1]) in hex_cycles


class TestCycle:

    def test_membership_and_exclusion(self):
        c = Cycle([3, 7, 5])
        assert 7 in c and 4 not in c
        assert c.member_set == frozenset({3, 5, 7})
        assert list(c) == [3, 7, 5]

    def test_rejects_duplicates(self):
        with pytest.raises(ValueError):
            Cycle([1, 2, 1])

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            Cycle([])


def test_basin_labels(hex_graph, hex_cycles):
    labels = basin_labels(hex_graph, hex_cycles)
    assert (labels >= 0).all()
    for ci, c in enumerate(hex_cycles):
        assert all(labels[m] == ci for m in c)
