"""
Attractor maps for deterministic transforms over a finite domain.

Exports:
- build_graph, Graph: the functional graph and its reverse edges
- find_cycles, Cycle: every terminal cycle
- SubtreeAnalyzer: inbound subtree sizes and depths
- TreeLayoutEngine: size-weighted sunburst layout
- render_pass, RenderSettings: concurrent rendering to an image file
"""

from .cycles import Cycle, find_cycles
from .graph import Graph, build_graph
from .layout import TreeLayoutEngine, WedgeInstruction
from .render import render_pass
from .schemas import RenderSettings
from .subtree import SubtreeAnalyzer

__all__ = [
    "Cycle",
    "Graph",
    "RenderSettings",
    "SubtreeAnalyzer",
    "TreeLayoutEngine",
    "WedgeInstruction",
    "build_graph",
    "find_cycles",
    "render_pass",
]
