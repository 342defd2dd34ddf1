from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

_LOG = logging.getLogger(__name__)


def _kv(fields: Mapping[str, Any]) -> str:
    if not fields:
        return ""
    parts = []
    for k, v in sorted(fields.items()):
        s = f"{v:#x}" if k.endswith("domain_size") and isinstance(v, int) else str(v)
        parts.append(f"{k}={s if len(s) <= 120 else s[:120] + '...'}")
    return " | " + " ".join(parts)


@contextmanager
def timed(
    logger: logging.Logger,
    stage: str,
    *,
    warn_ms: Optional[float] = None,
    **fields: Any,
) -> Iterator[Dict[str, Any]]:
    """
    Log `<stage>.start` and `<stage>.end` around a pipeline stage.

    The yielded dict collects outcome fields for the end line, next to the
    input fields and `dt_ms`:

        with timed(log, "find_cycles", domain_size=n) as out:
            out["cycles"] = len(find_cycles(graph))

    The end line is logged at WARNING once `dt_ms` reaches `warn_ms`.
    """
    logger.info("%s.start%s", stage, _kv(fields))
    outcome: Dict[str, Any] = {}
    t0 = time.perf_counter()
    try:
        yield outcome
    finally:
        dt_ms = int((time.perf_counter() - t0) * 1000.0)
        slow = warn_ms is not None and dt_ms >= warn_ms
        logger.log(
            logging.WARNING if slow else logging.INFO,
            "%s.end%s", stage, _kv({**fields, **outcome, "dt_ms": dt_ms}),
        )


class LevelCounter:
    """
    Thread-safe count of drawn wedges per ring.

    Replaces a fire-and-forget progress channel: nothing synchronises on it,
    it only feeds progress logs and the per-ring summary.
    """

    def __init__(self, *, log_every: int = 0x1000, logger: Optional[logging.Logger] = None) -> None:
        self._lock = threading.Lock()
        self._d: Dict[int, int] = {}
        self._total = 0
        self._log_every = max(1, int(log_every))
        self._logger = logger or _LOG

    def inc(self, level: int, n: int = 1) -> None:
        with self._lock:
            before = self._total
            self._d[level] = self._d.get(level, 0) + int(n)
            self._total += int(n)
            after = self._total
        if after // self._log_every > before // self._log_every:
            self._logger.info("drawn: %06X", after)

    def merge(self, counts: Mapping[int, int]) -> None:
        for level in sorted(counts):
            self.inc(level, counts[level])

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def snapshot(self) -> Dict[int, int]:
        with self._lock:
            return dict(self._d)

    def log_summary(self) -> None:
        snap = self.snapshot()
        if not snap:
            return
        for level in range(min(snap), max(snap) + 1):
            self._logger.info("level %d -> %d", level, snap.get(level, 0))
