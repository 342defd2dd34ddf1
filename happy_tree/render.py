"""
Concurrent sunburst rendering.

One task per cycle member: the member's wedge plus its whole inbound branch,
drawn on a private transparent canvas. Tasks run on a bounded pool; the
caller waits for every task, then composites the private canvases onto one
output canvas in submission order and flattens it over the background.

Branches never share angular ranges on a ring, and each canvas belongs to
exactly one task, so no locking is needed beyond the final barrier.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import FIRST_EXCEPTION, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ._perf import LevelCounter, timed
from .canvas import Canvas, composite_over, draw_wedge, new_canvas, persist
from .cycles import Cycle
from .errors import ConfigError, RenderError
from .graph import Graph
from .layout import TreeLayoutEngine, cycle_levels
from .schemas import RenderSettings
from .subtree import SubtreeAnalyzer

_LOG = logging.getLogger(__name__)


# ---- Geometry ----------------------------------------------------------------

@dataclass(frozen=True)
class RingGeometry:
    width: int
    height: int
    rings: int

    @property
    def ring_width(self) -> float:
        return min(self.width, self.height) / 2.0 / self.rings

    @classmethod
    def plan(cls, width: int, height: int, rings: int) -> "RingGeometry":
        if rings < 1:
            raise ConfigError(f"need at least one ring, got {rings}")
        geom = cls(int(width), int(height), int(rings))
        if geom.ring_width < 1.0:
            raise ConfigError(
                f"ring width is too small! {geom.ring_width:.3f}px for {rings} rings on a {width}x{height} canvas"
            )
        return geom


# ---- Branch tasks ------------------------------------------------------------

@dataclass(frozen=True)
class BranchTask:
    member: int
    cycle_index: int
    level: int
    start: float
    end: float

    def label(self) -> str:
        return f"cycle {self.cycle_index} member {self.member:06X}"


@dataclass
class BranchResult:
    task: BranchTask
    canvas: Canvas
    level_counts: Dict[int, int] = field(default_factory=dict)


class BranchRenderer:
    def __init__(
        self,
        graph: Graph,
        cycles: Sequence[Cycle],
        geometry: RingGeometry,
        analyzer: Optional[SubtreeAnalyzer] = None,
    ) -> None:
        self.cycles = tuple(cycles)
        self.geometry = geometry
        self.engine = TreeLayoutEngine(graph, analyzer)

    def render(self, task: BranchTask) -> BranchResult:
        geom = self.geometry
        ring_width = geom.ring_width
        canvas = new_canvas(geom.width, geom.height)
        counts: Counter = Counter()
        cycle = self.cycles[task.cycle_index]
        for wedge in self.engine.layout_branch(task.member, cycle, task.level, task.start, task.end):
            draw_wedge(canvas, wedge.level, ring_width, wedge.color, wedge.start, wedge.end)
            counts[wedge.level] += 1
        return BranchResult(task=task, canvas=canvas, level_counts=dict(counts))


# Process workers build their own renderer once, from pickled inputs.
_WORKER_RENDERER: Optional[BranchRenderer] = None


def _init_worker(graph: Graph, cycles: Sequence[Cycle], geometry: RingGeometry) -> None:
    global _WORKER_RENDERER
    _WORKER_RENDERER = BranchRenderer(graph, cycles, geometry)


def _render_in_worker(task: BranchTask) -> BranchResult:
    if _WORKER_RENDERER is None:
        raise RenderError("worker process was not initialised")
    return _WORKER_RENDERER.render(task)


# ---- Pool --------------------------------------------------------------------

class BranchPool:
    """
    Bounded pool with submit() and a blocking join().

    join() returns results in submission order. The first failed task cancels
    whatever has not started and is re-raised as RenderError, so a branch is
    never silently missing from the image.
    """

    def __init__(
        self,
        workers: int,
        backend: str = "thread",
        *,
        initializer: Optional[Callable[..., None]] = None,
        initargs: Tuple[Any, ...] = (),
    ) -> None:
        backend = str(backend or "thread").strip().lower()
        if backend not in {"thread", "process"}:
            raise ConfigError(f"Unknown backend='{backend}'")
        self.workers = max(1, int(workers))
        self.backend = backend
        if backend == "process":
            self._executor = ProcessPoolExecutor(
                max_workers=self.workers, initializer=initializer, initargs=initargs
            )
        else:
            self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="branch")
        self._submitted: List[Tuple[str, Future]] = []

    def submit(self, fn: Callable[..., Any], *args: Any, label: str = "") -> Future:
        fut = self._executor.submit(fn, *args)
        self._submitted.append((label or f"task {len(self._submitted)}", fut))
        return fut

    def join(self) -> List[Any]:
        futures = [f for _, f in self._submitted]
        wait(futures, return_when=FIRST_EXCEPTION)
        for label, fut in self._submitted:
            if fut.done() and not fut.cancelled() and fut.exception() is not None:
                for other in futures:
                    other.cancel()
                exc = fut.exception()
                raise RenderError(f"{label} failed: {type(exc).__name__}: {exc}") from exc
        return [f.result() for f in futures]

    def close(self) -> None:
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> "BranchPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ---- Render pass -------------------------------------------------------------

@dataclass
class RenderReport:
    output_path: str
    rings: int
    ring_width: float
    branches: int
    wedges_per_ring: Dict[int, int]

    @property
    def total_wedges(self) -> int:
        return sum(self.wedges_per_ring.values())


def plan_branches(
    engine: TreeLayoutEngine,
    cycles: Sequence[Cycle],
    start_level: int = 1,
) -> Tuple[List[BranchTask], int]:
    """Branch tasks for every cycle member, and the number of rings they need."""
    analyzer = engine.analyzer
    levels = cycle_levels(analyzer, cycles, start_level)
    tasks: List[BranchTask] = []
    for ci, (cyc, level) in enumerate(zip(cycles, levels)):
        for member, s, e in engine.cycle_spans(cyc):
            tasks.append(BranchTask(member=member, cycle_index=ci, level=level, start=s, end=e))
    rings = int(start_level) + analyzer.total_depth(cycles)
    return tasks, rings


def render_pass(
    graph: Graph,
    cycles: Sequence[Cycle],
    settings: RenderSettings,
    out_path: Union[str, Path],
    *,
    counter: Optional[LevelCounter] = None,
) -> RenderReport:
    if not cycles:
        raise ConfigError("nothing to render: no cycles given")
    cycles = tuple(cycles)
    counter = counter or LevelCounter(logger=_LOG)

    analyzer = SubtreeAnalyzer(graph)
    engine = TreeLayoutEngine(graph, analyzer)
    with timed(_LOG, "render.plan", cycles=len(cycles)):
        tasks, rings = plan_branches(engine, cycles, settings.start_level)
        geometry = RingGeometry.plan(settings.width, settings.height, rings)
    _LOG.info("totalLevels: %d | ring_width=%.3f | branches=%d", rings, geometry.ring_width, len(tasks))

    workers = settings.resolved_workers()

    def _count(fut: Future) -> None:
        if not fut.cancelled() and fut.exception() is None:
            counter.merge(fut.result().level_counts)

    def _run_with_backend(backend: str) -> List[BranchResult]:
        if backend == "process":
            pool = BranchPool(
                workers, "process", initializer=_init_worker, initargs=(graph, cycles, geometry)
            )
            run: Callable[[BranchTask], BranchResult] = _render_in_worker
        else:
            pool = BranchPool(workers, "thread")
            run = BranchRenderer(graph, cycles, geometry, analyzer).render
        with timed(_LOG, "render.branches", tasks=len(tasks), workers=workers, backend=backend):
            with pool:
                for task in tasks:
                    pool.submit(run, task, label=task.label()).add_done_callback(_count)
                return pool.join()

    if settings.backend == "process":
        try:
            results = _run_with_backend("process")
        except PermissionError:
            _LOG.warning("process pool unavailable; falling back to thread pool")
            results = _run_with_backend("thread")
    else:
        results = _run_with_backend("thread")

    with timed(_LOG, "render.composite", canvases=len(results)):
        final = new_canvas(geometry.width, geometry.height)
        for res in results:
            composite_over(final, res.canvas)
        path = persist(final, out_path, settings.background)

    counter.log_summary()
    return RenderReport(
        output_path=path,
        rings=rings,
        ring_width=geometry.ring_width,
        branches=len(tasks),
        wedges_per_ring=counter.snapshot(),
    )
