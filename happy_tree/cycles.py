"""
Cycle (attractor) discovery on a functional graph.

Every forward walk in a finite functional graph ends in exactly one cycle.
find_cycles walks forward from each id in ascending order, never re-walking a
node: per-node state says whether the node is unvisited, on the current walk,
or settled by an earlier walk.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Iterator, List, Sequence, Tuple

import numpy as np

from .graph import Graph

_LOG = logging.getLogger(__name__)

_UNVISITED = 0
_ON_WALK = 1
_SETTLED = 2


class Cycle:
    """
    Ordered cycle members: graph.dst[members[k]] == members[k + 1], wrapping.

    Also serves as the exclusion set when analysing the cycle's own members.
    """

    __slots__ = ("members", "_member_set")

    def __init__(self, members: Iterable[int]) -> None:
        self.members: Tuple[int, ...] = tuple(int(m) for m in members)
        if not self.members:
            raise ValueError("a cycle needs at least one member")
        self._member_set = frozenset(self.members)
        if len(self._member_set) != len(self.members):
            raise ValueError(f"duplicate members in cycle {self.members}")

    @property
    def member_set(self) -> frozenset:
        return self._member_set

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> Iterator[int]:
        return iter(self.members)

    def __getitem__(self, k: int) -> int:
        return self.members[k]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._member_set

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Cycle):
            return self.members == other.members
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.members)

    def __repr__(self) -> str:
        return "Cycle[" + " -> ".join(f"{m:06X}" for m in self.members) + "]"

    def closes_under(self, graph: Graph) -> bool:
        dst = graph.dst
        n = len(self.members)
        return all(int(dst[self.members[k]]) == self.members[(k + 1) % n] for k in range(n))


def _rotate_to_min(path: Sequence[int]) -> List[int]:
    k = min(range(len(path)), key=lambda j: path[j])
    return list(path[k:]) + list(path[:k])


def find_cycles(graph: Graph, *, log_every: int = 0x1000) -> List[Cycle]:
    """
    All cycles of `graph`, node-disjoint, ordered by smallest member; each
    cycle starts at its smallest member and follows dst.
    """
    dst = graph.dst.tolist()
    n = len(dst)
    state = bytearray(n)
    cycles: List[Cycle] = []

    for origin in range(n):
        if log_every and origin % log_every == 0:
            _LOG.debug("find_cycles: %06X", origin)
        if state[origin] != _UNVISITED:
            continue

        path: List[int] = []
        i = origin
        while state[i] == _UNVISITED:
            state[i] = _ON_WALK
            path.append(i)
            i = dst[i]

        if state[i] == _ON_WALK:
            # the walk closed on itself; everything before i is a tail into it
            cycles.append(Cycle(_rotate_to_min(path[path.index(i):])))
        # otherwise the walk ran into territory settled earlier: a transient tail

        for j in path:
            state[j] = _SETTLED

    cycles.sort(key=lambda c: c.members[0])
    _LOG.info("find_cycles: %d cycles, %d periodic nodes", len(cycles), sum(len(c) for c in cycles))
    return cycles


def basin_labels(graph: Graph, cycles: Sequence[Cycle]) -> np.ndarray:
    """
    For every node, the index into `cycles` of the cycle its trajectory ends
    in. Nodes not reached from any given cycle keep -1.
    """
    labels = np.full(len(graph), -1, dtype=np.int64)
    queue: deque = deque()
    for ci, cyc in enumerate(cycles):
        for m in cyc:
            labels[m] = ci
            queue.append(m)
    while queue:
        u = queue.popleft()
        lab = labels[u]
        for v in graph.src_list(u):
            if labels[v] < 0:
                labels[v] = lab
                queue.append(v)
    return labels
