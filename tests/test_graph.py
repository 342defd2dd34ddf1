import networkx as nx
import numpy as np
import pytest

from happy_tree.errors import ConfigError, TransformRangeError
from happy_tree.graph import Graph, build_graph, export_graphml, to_networkx
from happy_tree.transforms import DigitPowerSum


class TestBuildGraph:

    def test_forward_and_reverse_edges(self, square16):
        assert square16.dst.tolist() == [(i * i) % 16 for i in range(16)]
        assert square16.src_list(0) == [0, 4, 8, 12]
        assert square16.src_list(1) == [1, 7, 9, 15]
        assert square16.src_list(4) == [2, 6, 10, 14]
        assert square16.src_list(2) == []

    def test_total_in_degree_equals_domain(self, hex_graph):
        assert sum(hex_graph.in_degree(i) for i in range(len(hex_graph))) == len(hex_graph)

    def test_srcs_ascending_and_consistent(self, hex_graph):
        for i in range(0, len(hex_graph), 7):
            srcs = hex_graph.src_list(i)
            assert srcs == sorted(srcs)
            assert all(int(hex_graph.dst[s]) == i for s in srcs)

    def test_scalar_transform(self):
        g = build_graph(10, lambda i: (i + 1) % 10)
        assert g.dst.tolist() == [1, 2, 3, 4, 5, 6, 7, 8, 9, 0]
        assert g.src_list(0) == [9]

    def test_out_of_range_is_fatal(self):
        # 4 * 4 == 16 leaves a one-digit domain
        with pytest.raises(TransformRangeError) as ei:
            build_graph(16, DigitPowerSum(base=16, power=2))
        assert ei.value.node_id == 4
        assert ei.value.value == 16

    def test_empty_domain(self):
        with pytest.raises(ConfigError):
            build_graph(0, lambda i: i)

    def test_read_only(self, square16):
        with pytest.raises(ValueError):
            square16.dst[0] = 3

    def test_node_record(self, square16):
        node = square16.node(4)
        assert (node.id, node.dst, node.srcs) == (4, 0, (2, 6, 10, 14))
        assert str(node) == "{000004 -> 000000 (4 srcs)}"

    def test_constructor_rejects_mismatched_arrays(self):
        with pytest.raises(ValueError):
            Graph(np.zeros(3, dtype=np.int32), np.zeros(3, dtype=np.int64), np.zeros(3, dtype=np.int32))


class TestNetworkx:

    def test_to_networkx(self, square16):
        G = to_networkx(square16)
        assert G.number_of_nodes() == 16
        assert G.number_of_edges() == 16
        assert G.has_edge(4, 0) and G.has_edge(0, 0)
        assert G.nodes[15]["color"] == "#00000F"

    def test_size_limit(self, square16):
        with pytest.raises(ConfigError):
            to_networkx(square16, max_nodes=8)

    def test_export_graphml(self, square16, tmp_path):
        path = export_graphml(square16, tmp_path / "g.graphml", cycles=[[0], [1]])
        H = nx.read_graphml(path, node_type=int)
        assert H.number_of_edges() == 16
        assert H.nodes[0]["cycle"] == 0
        assert H.nodes[1]["cycle"] == 1
        assert H.nodes[4]["cycle"] == -1
