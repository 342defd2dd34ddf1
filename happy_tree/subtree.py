"""
Inbound subtree measures over the reverse edges of a Graph.

subtree_size(n)   nodes whose trajectory passes through n before its cycle, n included
subtree_depth(n)  longest inbound chain ending at n, counted in nodes
loop_depth(c)     rings needed by cycle c's branches
total_depth(cs)   rings needed by all cycles, one spacer ring each

`excluding` applies to the direct children of the queried node only; it is
how a cycle member is measured without walking back into its own cycle.
Below that boundary every node is transient, so results are memoised per
node for the lifetime of the analyzer (one analyzer per render pass).
"""

from __future__ import annotations

from typing import Container, List, Sequence, Tuple

import numpy as np

from .cycles import Cycle
from .errors import AnalysisError
from .graph import Graph

_NOTHING: frozenset = frozenset()


class SubtreeAnalyzer:
    def __init__(self, graph: Graph) -> None:
        self.graph = graph
        n = len(graph)
        self._size = np.zeros(n, dtype=np.int64)
        self._depth = np.zeros(n, dtype=np.int64)
        self._busy = bytearray(n)

    # ---- memoised traversal ---------------------------------------------

    def _ensure(self, root: int) -> None:
        size, depth, busy = self._size, self._depth, self._busy
        if size[root]:
            return
        graph = self.graph
        stack: List[Tuple[int, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                kids = graph.srcs(node)
                if kids.size:
                    size[node] = 1 + int(size[kids].sum())
                    depth[node] = 1 + int(depth[kids].max())
                else:
                    size[node] = 1
                    depth[node] = 1
                busy[node] = 0
                continue
            if size[node]:
                continue
            busy[node] = 1
            stack.append((node, True))
            for child in graph.src_list(node):
                if busy[child]:
                    self._reset_busy(stack)
                    raise AnalysisError(
                        f"node {child:06X} feeds back into its own subtree via {node:06X}; "
                        "measure cycle members with excluding=<their cycle>"
                    )
                if not size[child]:
                    stack.append((child, False))

    def _reset_busy(self, stack: List[Tuple[int, bool]]) -> None:
        for node, _ in stack:
            self._busy[node] = 0

    # ---- queries --------------------------------------------------------

    def subtree_size(self, node: int, excluding: Container[int] = _NOTHING) -> int:
        if not excluding:
            self._ensure(node)
            return int(self._size[node])
        return 1 + sum(size for _, size in self.child_weights(node, excluding))

    def subtree_depth(self, node: int, excluding: Container[int] = _NOTHING) -> int:
        if not excluding:
            self._ensure(node)
            return int(self._depth[node])
        deepest = 0
        for child in self.graph.src_list(node):
            if child in excluding:
                continue
            self._ensure(child)
            deepest = max(deepest, int(self._depth[child]))
        return deepest + 1

    def child_weights(self, node: int, excluding: Container[int] = _NOTHING) -> List[Tuple[int, int]]:
        """(child, subtree_size) for each child not excluded, in srcs order."""
        out: List[Tuple[int, int]] = []
        for child in self.graph.src_list(node):
            if excluding and child in excluding:
                continue
            self._ensure(child)
            out.append((child, int(self._size[child])))
        return out

    def loop_depth(self, cycle: Cycle) -> int:
        return max(self.subtree_depth(m, cycle) for m in cycle)

    def total_depth(self, cycles: Sequence[Cycle]) -> int:
        return sum(self.loop_depth(c) + 1 for c in cycles)
