"""
Sunburst layout: angular spans proportional to inbound subtree size.

A branch is laid out depth-first, parent before children, children in srcs
order. Each child gets a contiguous slice of its parent's span, so the
slices of one sibling group tile the parent exactly and the layout is a
pure function of the Graph and the Cycle.

Angles are fractions of a full turn; levels are ring indices.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Container, Iterator, List, Optional, Sequence, Tuple

from .cycles import Cycle
from .graph import Graph
from .subtree import SubtreeAnalyzer

_NOTHING: frozenset = frozenset()


@dataclass(frozen=True)
class WedgeInstruction:
    node: int
    level: int
    start: float
    end: float

    @property
    def color(self) -> int:
        # the id is the packed RGB value
        return self.node & 0xFFFFFF

    @property
    def width(self) -> float:
        return self.end - self.start


def partition_span(weights: Sequence[int], start: float, end: float) -> List[Tuple[float, float]]:
    """
    Split [start, end) into len(weights) contiguous slices proportional to
    `weights`. The last slice ends exactly at `end`.

    A group whose total weight is zero shares the span equally; with a single
    member that is the whole span.
    """
    n = len(weights)
    if n == 0:
        return []
    total = sum(weights)
    if total > 0:
        fractions = [w / total for w in weights]
    else:
        fractions = [1.0 / n] * n

    span = end - start
    out: List[Tuple[float, float]] = []
    cursor = start
    for k, fract in enumerate(fractions):
        stop = end if k == n - 1 else cursor + fract * span
        out.append((cursor, stop))
        cursor = stop
    return out


class TreeLayoutEngine:
    def __init__(self, graph: Graph, analyzer: Optional[SubtreeAnalyzer] = None) -> None:
        self.graph = graph
        self.analyzer = analyzer or SubtreeAnalyzer(graph)

    def layout_branch(
        self,
        node: int,
        excluding: Container[int] = _NOTHING,
        level: int = 0,
        start: float = 0.0,
        end: float = 1.0,
    ) -> Iterator[WedgeInstruction]:
        stack = [(int(node), excluding, int(level), float(start), float(end))]
        analyzer = self.analyzer
        while stack:
            n, excl, lvl, s, e = stack.pop()
            yield WedgeInstruction(n, lvl, s, e)

            weighted = analyzer.child_weights(n, excl)
            if not weighted:
                continue
            spans = partition_span([w for _, w in weighted], s, e)
            # reversed so the first child is popped first
            for (child, _), (cs, ce) in reversed(list(zip(weighted, spans))):
                stack.append((child, _NOTHING, lvl + 1, cs, ce))

    def cycle_spans(self, cycle: Cycle) -> List[Tuple[int, float, float]]:
        """(member, start, end) sharing the full turn by each member's subtree size."""
        weights = [self.analyzer.subtree_size(m, cycle) for m in cycle]
        spans = partition_span(weights, 0.0, 1.0)
        return [(m, s, e) for m, (s, e) in zip(cycle, spans)]

    def layout_cycle(self, cycle: Cycle, level: int) -> Iterator[WedgeInstruction]:
        for member, s, e in self.cycle_spans(cycle):
            yield from self.layout_branch(member, cycle, level, s, e)


def cycle_levels(analyzer: SubtreeAnalyzer, cycles: Sequence[Cycle], start_level: int = 1) -> List[int]:
    """Innermost ring of each cycle; each cycle keeps one empty ring after its deepest ring."""
    levels: List[int] = []
    level = int(start_level)
    for cyc in cycles:
        levels.append(level)
        level += analyzer.loop_depth(cyc) + 1
    return levels
