# happy_tree/graph.py
"""
Functional graph of a transform over the domain [0, N).

Public API
----------
build_graph(domain_size, transform) -> Graph
Graph.from_dst(dst) -> Graph
to_networkx(graph, max_nodes=...) -> nx.DiGraph
export_graphml(graph, path, cycles=None) -> str

Layout
------
Every node has exactly one forward edge, so the graph is the `dst` array.
Reverse edges are kept compressed: the sources of node i are
`src_ids[src_offsets[i]:src_offsets[i + 1]]`, in ascending id order (the
order sequential appends over ascending ids would give).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import networkx as nx
import numpy as np

from .errors import ConfigError, TransformRangeError

_LOG = logging.getLogger(__name__)

# networkx holds a Python dict per node; beyond this the conversion is pointless.
NX_MAX_NODES = 1 << 17


@dataclass(frozen=True)
class Node:
    id: int
    dst: int
    srcs: Tuple[int, ...]

    def __str__(self) -> str:
        return f"{{{self.id:06X} -> {self.dst:06X} ({len(self.srcs)} srcs)}}"


def _index_dtype(n: int):
    return np.int32 if n < (1 << 31) else np.int64


class Graph:
    """Immutable forward/reverse adjacency over [0, N)."""

    def __init__(self, dst: np.ndarray, src_offsets: np.ndarray, src_ids: np.ndarray) -> None:
        n = int(dst.shape[0])
        if src_offsets.shape[0] != n + 1 or src_ids.shape[0] != n:
            raise ValueError(
                f"inconsistent graph arrays: dst={n}, src_offsets={src_offsets.shape[0]}, src_ids={src_ids.shape[0]}"
            )
        self.dst = dst
        self.src_offsets = src_offsets
        self.src_ids = src_ids
        for arr in (self.dst, self.src_offsets, self.src_ids):
            arr.setflags(write=False)

    @classmethod
    def from_dst(cls, dst: Sequence[int]) -> "Graph":
        dst = np.asarray(dst)
        n = int(dst.shape[0])
        dtype = _index_dtype(max(n, 1))
        dst = dst.astype(dtype, copy=True)
        # stable sort keeps sources of the same target in ascending id order
        src_ids = np.argsort(dst, kind="stable").astype(dtype)
        counts = np.bincount(dst, minlength=n)
        src_offsets = np.zeros(n + 1, dtype=np.int64)
        np.cumsum(counts, out=src_offsets[1:])
        return cls(dst, src_offsets, src_ids)

    def __len__(self) -> int:
        return int(self.dst.shape[0])

    @property
    def domain_size(self) -> int:
        return len(self)

    def srcs(self, i: int) -> np.ndarray:
        return self.src_ids[self.src_offsets[i]:self.src_offsets[i + 1]]

    def src_list(self, i: int) -> List[int]:
        return self.srcs(i).tolist()

    def in_degree(self, i: int) -> int:
        return int(self.src_offsets[i + 1] - self.src_offsets[i])

    def node(self, i: int) -> Node:
        return Node(id=int(i), dst=int(self.dst[i]), srcs=tuple(self.src_list(i)))

    def __repr__(self) -> str:
        return f"Graph(domain_size={len(self):#x})"


# ---- Builder -----------------------------------------------------------------

def build_graph(domain_size: int, transform: Callable[[int], int]) -> Graph:
    """
    Apply `transform` to every id in [0, domain_size) and index the result.

    Raises TransformRangeError for the first id whose image leaves the domain.
    """
    domain_size = int(domain_size)
    if domain_size < 1:
        raise ConfigError(f"domain_size must be >= 1, got {domain_size}")

    apply_array = getattr(transform, "apply_array", None)
    if apply_array is not None:
        dst = np.asarray(apply_array(np.arange(domain_size, dtype=np.int64)), dtype=np.int64)
    else:
        dst = np.fromiter(
            (transform(i) for i in range(domain_size)), dtype=np.int64, count=domain_size
        )

    bad = np.flatnonzero((dst < 0) | (dst >= domain_size))
    if bad.size:
        i = int(bad[0])
        raise TransformRangeError(i, int(dst[i]), domain_size)

    graph = Graph.from_dst(dst)
    _LOG.debug("built graph: %r (%d distinct targets)", graph, int(np.count_nonzero(np.diff(graph.src_offsets))))
    return graph


# ---- networkx export ---------------------------------------------------------

def _check_nx_size(graph: Graph, max_nodes: int) -> None:
    if len(graph) > max_nodes:
        raise ConfigError(
            f"graph has {len(graph)} nodes; networkx export is limited to {max_nodes}"
        )


def to_networkx(graph: Graph, *, max_nodes: int = NX_MAX_NODES) -> nx.DiGraph:
    """Forward edges as an nx.DiGraph; node attribute `color` is the id as #RRGGBB."""
    _check_nx_size(graph, max_nodes)
    G = nx.DiGraph()
    for i in range(len(graph)):
        G.add_node(i, color=f"#{i & 0xFFFFFF:06X}")
    G.add_edges_from((i, int(d)) for i, d in enumerate(graph.dst.tolist()))
    return G


def export_graphml(
    graph: Graph,
    path: Union[str, Path],
    cycles: Optional[Sequence[Sequence[int]]] = None,
    *,
    max_nodes: int = NX_MAX_NODES,
) -> str:
    """
    Write GraphML. With `cycles`, each node gets a `cycle` attribute holding the
    index of the cycle it belongs to, or -1 for transient nodes.
    """
    P = str(Path(path).absolute())
    G = to_networkx(graph, max_nodes=max_nodes)
    if cycles is not None:
        membership = {n: -1 for n in G.nodes}
        for ci, cyc in enumerate(cycles):
            for m in cyc:
                membership[int(m)] = ci
        nx.set_node_attributes(G, membership, "cycle")
    Path(P).parent.mkdir(parents=True, exist_ok=True)
    nx.write_graphml(G, P)
    return P
