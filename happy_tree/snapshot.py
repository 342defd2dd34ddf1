"""
Graph and cycle snapshots.

The format follows the file suffix:

  .npz   numpy arrays (dst / src_offsets / src_ids, cycle members / offsets)
  .json  records {"id", "dst", "srcs"}: a list of them for a graph, a list of
         lists of them for cycles

Both round-trip integers exactly. Anything that cannot be read back into a
consistent Graph or cycle list raises SnapshotError with path and operation.
"""

from __future__ import annotations

import json
import logging
import zipfile
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from .cycles import Cycle
from .errors import ConfigError, SnapshotError
from .graph import Graph
from .schemas import NodeRecord

_LOG = logging.getLogger(__name__)

GRAPH_FORMAT = "happy-tree-graph/1"
CYCLES_FORMAT = "happy-tree-cycles/1"

_READ_ERRORS = (OSError, ValueError, KeyError, TypeError, EOFError, zipfile.BadZipFile)

PathLike = Union[str, Path]


def _suffix(path: PathLike, operation: str) -> str:
    ext = Path(path).suffix.lower()
    if ext not in {".npz", ".json"}:
        raise SnapshotError(str(path), operation, f"unsupported suffix '{ext}' (use .npz or .json)")
    return ext


def _record(graph: Graph, i: int) -> dict:
    return {"id": int(i), "dst": int(graph.dst[i]), "srcs": graph.src_list(i)}


def _write_json(path: Path, payload, operation: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, separators=(",", ":")), encoding="utf-8")
    except OSError as e:
        raise SnapshotError(str(path), operation, str(e)) from e


# ---- Graph -------------------------------------------------------------------

def save_graph(graph: Graph, path: PathLike) -> str:
    path = Path(path)
    op = "save graph"
    if _suffix(path, op) == ".json":
        _write_json(path, [_record(graph, i) for i in range(len(graph))], op)
    else:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as f:
                np.savez_compressed(
                    f,
                    format=np.array(GRAPH_FORMAT),
                    dst=graph.dst,
                    src_offsets=graph.src_offsets,
                    src_ids=graph.src_ids,
                )
        except OSError as e:
            raise SnapshotError(str(path), op, str(e)) from e
    _LOG.info("stored graph: %s (%d nodes)", path, len(graph))
    return str(path)


def _graph_from_records(records: List[NodeRecord], path: Path, op: str) -> Graph:
    records = sorted(records, key=lambda r: r.id)
    for k, rec in enumerate(records):
        if rec.id != k:
            raise SnapshotError(str(path), op, f"node ids are not dense: expected {k}, found {rec.id}")
    dst = np.asarray([r.dst for r in records], dtype=np.int64)
    _check_range(dst, len(records), path, op, what="dst")
    graph = Graph.from_dst(dst)
    for rec in records:
        if graph.src_list(rec.id) != rec.srcs:
            raise SnapshotError(str(path), op, f"srcs of node {rec.id} disagree with the dst edges")
    return graph


def _check_range(values: np.ndarray, n: int, path: Path, op: str, *, what: str) -> None:
    if values.size and (int(values.min()) < 0 or int(values.max()) >= n):
        raise SnapshotError(str(path), op, f"{what} values fall outside [0, {n})")


def load_graph(path: PathLike) -> Graph:
    path = Path(path)
    op = "load graph"
    ext = _suffix(path, op)
    try:
        if ext == ".json":
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, list) or not raw:
                raise SnapshotError(str(path), op, "expected a non-empty list of node records")
            graph = _graph_from_records([NodeRecord(**r) for r in raw], path, op)
        else:
            with np.load(path, allow_pickle=False) as data:
                fmt = str(data["format"])
                if fmt != GRAPH_FORMAT:
                    raise SnapshotError(str(path), op, f"unexpected format '{fmt}'")
                dst = data["dst"]
                src_offsets = data["src_offsets"]
                src_ids = data["src_ids"]
            _check_range(dst, len(dst), path, op, what="dst")
            graph = Graph.from_dst(dst)
            # stored reverse edges must match the ones implied by dst
            if not (np.array_equal(graph.src_offsets, src_offsets) and np.array_equal(graph.src_ids, src_ids)):
                raise SnapshotError(str(path), op, "reverse edges disagree with the dst edges")
    except SnapshotError:
        raise
    except _READ_ERRORS as e:
        raise SnapshotError(str(path), op, f"{type(e).__name__}: {e}") from e
    _LOG.info("loaded graph: %s (%d nodes)", path, len(graph))
    return graph


# ---- Cycles ------------------------------------------------------------------

def save_cycles(cycles: Sequence[Cycle], path: PathLike, graph: Optional[Graph] = None) -> str:
    path = Path(path)
    op = "save cycles"
    if _suffix(path, op) == ".json":
        if graph is None:
            raise ConfigError("JSON cycle snapshots embed node records and need the graph")
        _write_json(path, [[_record(graph, m) for m in cyc] for cyc in cycles], op)
    else:
        members = np.asarray([m for cyc in cycles for m in cyc], dtype=np.int64)
        offsets = np.zeros(len(cycles) + 1, dtype=np.int64)
        offsets[1:] = np.cumsum([len(cyc) for cyc in cycles], dtype=np.int64)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as f:
                np.savez_compressed(f, format=np.array(CYCLES_FORMAT), members=members, offsets=offsets)
        except OSError as e:
            raise SnapshotError(str(path), op, str(e)) from e
    _LOG.info("stored cycles: %s (%d cycles)", path, len(cycles))
    return str(path)


def load_cycles(path: PathLike, graph: Optional[Graph] = None) -> List[Cycle]:
    """
    Read cycles back. With `graph`, also check that each one closes under its
    dst edges and that embedded JSON node records match the graph.
    """
    path = Path(path)
    op = "load cycles"
    ext = _suffix(path, op)
    records: Optional[List[List[NodeRecord]]] = None
    try:
        if ext == ".json":
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise SnapshotError(str(path), op, "expected a list of cycles")
            records = [[NodeRecord(**r) for r in cyc] for cyc in raw]
            cycles = [Cycle(rec.id for rec in cyc) for cyc in records]
        else:
            with np.load(path, allow_pickle=False) as data:
                fmt = str(data["format"])
                if fmt != CYCLES_FORMAT:
                    raise SnapshotError(str(path), op, f"unexpected format '{fmt}'")
                members = data["members"].tolist()
                offsets = data["offsets"].tolist()
            if not offsets or offsets[0] != 0 or offsets[-1] != len(members):
                raise SnapshotError(str(path), op, "cycle offsets do not cover the member list")
            cycles = [Cycle(members[a:b]) for a, b in zip(offsets, offsets[1:])]
    except SnapshotError:
        raise
    except _READ_ERRORS as e:
        raise SnapshotError(str(path), op, f"{type(e).__name__}: {e}") from e

    seen = set()
    for ci, cyc in enumerate(cycles):
        if seen & cyc.member_set:
            raise SnapshotError(str(path), op, f"{cyc!r} shares members with an earlier cycle")
        seen |= cyc.member_set
        if graph is not None:
            if max(cyc) >= len(graph):
                raise SnapshotError(str(path), op, f"{cyc!r} references nodes outside the graph")
            if not cyc.closes_under(graph):
                raise SnapshotError(str(path), op, f"{cyc!r} does not close under the graph's dst edges")
            if records is not None:
                for rec in records[ci]:
                    if rec.dst != int(graph.dst[rec.id]) or rec.srcs != graph.src_list(rec.id):
                        raise SnapshotError(str(path), op, f"record of node {rec.id} disagrees with the graph")
    _LOG.info("loaded cycles: %s (%d cycles)", path, len(cycles))
    return cycles
