import pytest

from happy_tree.cycles import find_cycles
from happy_tree.graph import Graph, build_graph
from happy_tree.transforms import DigitPowerSum, SquareMod


@pytest.fixture
def square16() -> Graph:
    """(i * i) mod 16 over a single hex digit."""
    return build_graph(16, SquareMod(16))


@pytest.fixture(scope="session")
def hex_graph() -> Graph:
    """Hex digit-square-sum over three hex digits (max image 3 * 15**2 = 675)."""
    return build_graph(0x1000, DigitPowerSum(base=16, power=2))


@pytest.fixture(scope="session")
def hex_cycles(hex_graph):
    return find_cycles(hex_graph)


@pytest.fixture
def chain_graph() -> Graph:
    """3 -> 2 -> 1 -> 0 -> 0"""
    return Graph.from_dst([0, 0, 1, 2])
