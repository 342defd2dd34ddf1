"""happy_tree.plotting

Ring statistics plots. Matplotlib is imported on first use and pinned to the
Agg backend so nothing needs a display.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional


def save_level_histogram(
    *,
    counts: Mapping[int, int],
    out_path: str,
    title: str = "wedges per ring",
    log_scale: bool = True,
) -> Optional[str]:
    """Bar chart of drawn wedges per ring. Returns the path or None if there is nothing to plot."""

    levels = sorted(k for k, v in counts.items() if v > 0)
    if not levels:
        return None

    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    xs = list(range(levels[0], levels[-1] + 1))
    ys = [int(counts.get(x, 0)) for x in xs]

    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots()
    ax.bar(xs, ys, color="#0984E3")
    if log_scale:
        ax.set_yscale("log")
    ax.set_title(title)
    ax.set_xlabel("ring")
    ax.set_ylabel("wedges")
    fig.tight_layout()
    fig.savefig(str(p), dpi=160)
    plt.close(fig)
    return str(p)
