"""happy_tree.cli

Command line driver.

  build-graph     apply a transform to the whole domain and store the graph
  find-cycles     find every cycle of a stored graph and store them
  render          draw the sunburst for a stored graph + cycles
  run             build/find whatever snapshot is missing, then render
  export-graphml  write a small graph (optionally with cycle labels) as GraphML
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
from pydantic import ValidationError

from ._perf import LevelCounter, timed
from .cycles import basin_labels, find_cycles
from .errors import ConfigError, HappyTreeError
from .graph import build_graph, export_graphml
from .plotting import save_level_histogram
from .render import render_pass
from .schemas import RenderSettings
from .snapshot import load_cycles, load_graph, save_cycles, save_graph
from .transforms import TRANSFORM_NAMES, get_transform

DEFAULT_DOMAIN_SIZE = 0x1000000
NODES_FILE = "nodes.npz"
LOOPS_FILE = "loops.npz"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
QUIET_LOGGERS = ("PIL", "matplotlib")


def _log_handlers(level: int, log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    fmt = logging.Formatter(LOG_FORMAT)
    for h in handlers:
        h.setFormatter(fmt)
        h.setLevel(level)
    return handlers


def _setup_logger(*, log_level: str, log_file: Optional[str]) -> logging.Logger:
    """Route the package and library loggers to stderr (and `log_file`) through the root logger."""
    level = getattr(logging, log_level)
    logging.basicConfig(level=level, handlers=_log_handlers(level, log_file), force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    logger = logging.getLogger("happy_tree")
    logger.setLevel(level)
    return logger


def _int_auto(s: str) -> int:
    """Accept 16777216, 0x1000000 or 0o100000000."""
    try:
        return int(s, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {s!r}") from None


def _settings_from_args(args: argparse.Namespace) -> RenderSettings:
    try:
        return RenderSettings(
            width=args.width,
            height=args.height,
            start_level=args.start_level,
            workers=args.workers,
            backend=args.backend,
            background=args.background,
        )
    except ValidationError as e:
        raise ConfigError(f"invalid render settings: {e}") from e


# ---- Commands ----------------------------------------------------------------

def _build(args: argparse.Namespace, logger: logging.Logger):
    transform = get_transform(args.transform, args.domain_size)
    with timed(logger, "build_graph", domain_size=args.domain_size, transform=repr(transform)) as stats:
        graph = build_graph(args.domain_size, transform)
        stats["fixed_points"] = int((graph.dst == np.arange(len(graph))).sum())
    return graph


def _find(graph, logger: logging.Logger):
    with timed(logger, "find_cycles", domain_size=len(graph)) as stats:
        cycles = find_cycles(graph)
        stats["cycles"] = len(cycles)
        stats["periodic"] = sum(len(c) for c in cycles)
    return cycles


def cmd_build_graph(args: argparse.Namespace, logger: logging.Logger) -> int:
    save_graph(_build(args, logger), args.out)
    return 0


def cmd_find_cycles(args: argparse.Namespace, logger: logging.Logger) -> int:
    graph = load_graph(args.graph)
    cycles = _find(graph, logger)
    labels = basin_labels(graph, cycles)
    for ci, cyc in enumerate(cycles):
        logger.info("cycle %d: %r | basin=%d", ci, cyc, int((labels == ci).sum()))
        for m in cyc:
            logger.debug("cycle %d member %s", ci, graph.node(m))
    save_cycles(cycles, args.out, graph=graph)
    return 0


def _render(graph, cycles, args: argparse.Namespace, logger: logging.Logger) -> int:
    settings = _settings_from_args(args)
    counter = LevelCounter(logger=logger)
    with timed(logger, "render", out=args.out, width=settings.width, height=settings.height) as stats:
        report = render_pass(graph, cycles, settings, args.out, counter=counter)
        stats["rings"] = report.rings
        stats["wedges"] = report.total_wedges
    logger.info("wrote %s | branches=%d", report.output_path, report.branches)
    if args.levels_plot:
        p = save_level_histogram(counts=report.wedges_per_ring, out_path=args.levels_plot)
        if p:
            logger.info("wrote ring histogram: %s", p)
    return 0


def cmd_render(args: argparse.Namespace, logger: logging.Logger) -> int:
    graph = load_graph(args.graph)
    cycles = load_cycles(args.cycles, graph=graph)
    return _render(graph, cycles, args, logger)


def cmd_run(args: argparse.Namespace, logger: logging.Logger) -> int:
    graph_path, cycles_path = Path(args.graph), Path(args.cycles)

    if graph_path.exists():
        logger.info("loading in nodes")
        graph = load_graph(graph_path)
    else:
        logger.info("creating nodes")
        graph = _build(args, logger)
        save_graph(graph, graph_path)

    if cycles_path.exists():
        logger.info("loading in loops")
        cycles = load_cycles(cycles_path, graph=graph)
    else:
        logger.info("finding loops")
        cycles = _find(graph, logger)
        save_cycles(cycles, cycles_path, graph=graph)

    return _render(graph, cycles, args, logger)


def cmd_export_graphml(args: argparse.Namespace, logger: logging.Logger) -> int:
    graph = load_graph(args.graph)
    cycles = load_cycles(args.cycles, graph=graph) if args.cycles else None
    path = export_graphml(graph, args.out, cycles=cycles)
    logger.info("wrote GraphML: %s", path)
    return 0


# ---- Parser ------------------------------------------------------------------

def _add_render_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--out", default="happy-tree.png", help="Output image (format from suffix).")
    p.add_argument("--width", type=int, default=1000)
    p.add_argument("--height", type=int, default=1000)
    p.add_argument("--workers", type=int, default=None, help="Branch workers (default: CPU count).")
    p.add_argument("--backend", default="thread", choices=["thread", "process"])
    p.add_argument("--start-level", type=int, default=1,
                   help="Ring of the first cycle; rings below it stay empty.")
    p.add_argument("--background", type=_int_auto, default=0xFFFFFF, help="Background as packed RGB.")
    p.add_argument("--levels-plot", default=None, help="Optional PNG with a wedges-per-ring histogram.")


def _add_domain_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--domain-size", type=_int_auto, default=DEFAULT_DOMAIN_SIZE)
    p.add_argument("--transform", default="hex-square-sum", choices=list(TRANSFORM_NAMES))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="happy-tree",
        description="Map every cycle of a transform's state graph and draw its inbound trees as a sunburst.",
    )
    ap.add_argument("--log-level", default="INFO", type=str.upper, choices=LOG_LEVELS)
    ap.add_argument("--log-file", default=None)
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("build-graph", help="Build and store the functional graph.")
    _add_domain_args(p)
    p.add_argument("--out", default=NODES_FILE, help="Graph snapshot (.npz or .json).")
    p.set_defaults(func=cmd_build_graph)

    p = sub.add_parser("find-cycles", help="Find and store every cycle of a stored graph.")
    p.add_argument("--graph", default=NODES_FILE)
    p.add_argument("--out", default=LOOPS_FILE, help="Cycle snapshot (.npz or .json).")
    p.set_defaults(func=cmd_find_cycles)

    p = sub.add_parser("render", help="Render stored graph + cycles.")
    p.add_argument("--graph", default=NODES_FILE)
    p.add_argument("--cycles", default=LOOPS_FILE)
    _add_render_args(p)
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("run", help="Build or load snapshots as needed, then render.")
    p.add_argument("--graph", default=NODES_FILE)
    p.add_argument("--cycles", default=LOOPS_FILE)
    _add_domain_args(p)
    _add_render_args(p)
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("export-graphml", help="Export a small stored graph to GraphML.")
    p.add_argument("--graph", default=NODES_FILE)
    p.add_argument("--cycles", default=None)
    p.add_argument("--out", default="graph.graphml")
    p.set_defaults(func=cmd_export_graphml)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = _setup_logger(log_level=args.log_level, log_file=args.log_file)
    try:
        return int(args.func(args, logger))
    except HappyTreeError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
