"""Stage timing data structures and presentation utilities.

The engine times every pipeline stage with StageTimer; the resulting
mapping ends up in ``Diagnostics.timings`` and can be rendered with
format_diagnostics_table.
"""
from __future__ import annotations
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict

STAGES = ('collect', 'extract', 'build', 'enforce', 'validate', 'filter', 'emit')


@dataclass
class StageTimer:
    timings: Dict[str, float] = field(default_factory=dict)

    @contextmanager
    def stage(self, name: str):
        t0 = time.perf_counter()
        try:
            yield
        finally:
            dt = time.perf_counter() - t0
            self.timings[name] = self.timings.get(name, 0.0) + dt


def _ordered(names):
    known = [s for s in STAGES if s in names]
    return known + sorted(n for n in names if n not in STAGES)


def format_diagnostics_table(diagnostics) -> str:
    """Return a human readable multi-line table of stage timings and counts.

    Accepts a Diagnostics object or a plain ``{stage: seconds}`` mapping.
    """
    timings = getattr(diagnostics, 'timings', diagnostics)
    if not timings:
        return "<no timings>"
    total = sum(timings.values())
    header = ["stage", "ms", "share%"]
    rows = []
    for name in _ordered(timings.keys()):
        t = timings[name]
        pct = (t / total * 100.0) if total else 0.0
        rows.append([name, f"{t * 1000.0:10.3f}", f"{pct:6.2f}"])
    rows.append(["total", f"{total * 1000.0:10.3f}", f"{100.0 if total else 0.0:6.2f}"])
    col_w = [len(h) for h in header]
    for r in rows:
        for i, v in enumerate(r):
            if len(v) > col_w[i]: col_w[i] = len(v)
    def fmt(r):
        return " ".join(r[0].ljust(col_w[0]) if i == 0 else r[i].rjust(col_w[i]) for i in range(len(r)))
    sep = "-" * (sum(col_w) + len(col_w) - 1)
    lines = [fmt(header), sep] + [fmt(r) for r in rows[:-1]] + [sep, fmt(rows[-1])]
    counts = diagnostics.summary_counts() if hasattr(diagnostics, 'summary_counts') else None
    if counts:
        lines.append("")
        width = max(len(k) for k in counts)
        for k, v in counts.items():
            lines.append(f"{k.ljust(width)} {v}")
    return "\n".join(lines)


__all__ = ["StageTimer", "STAGES", "format_diagnostics_table"]
