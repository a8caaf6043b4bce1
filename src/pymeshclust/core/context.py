"""Per-run diagnostics context shared by every clustering stage."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from pymeshclust.math.parallel import resolve_workers

logger = logging.getLogger(__name__)

STAGES = (
    ("initialization", "Initialization (excl. density & maxima)"),
    ("density", "Density calculation"),
    ("maxima", "Maxima finding"),
    ("clustering", "Clustering"),
    ("coherence", "Coherent clustering"),
    ("reassignment", "Unassigned triangles assignment"),
    ("parameters", "Cluster parameters calculation"),
)


@dataclass
class RunContext:
    """Diagnostics, timing and randomness for a single clustering run.

    Attributes:
        rng: Random generator for all stochastic choices in the run.
        num_workers: Worker threads for per-direction maps.
        messages: Plain diagnostic lines for an external log sink.
        timings: Accumulated wall time per stage, in milliseconds.
    """

    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    num_workers: int | None = None
    messages: list[str] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)

    @classmethod
    def create(cls, seed: int | None = None, num_workers: int | None = None) -> "RunContext":
        return cls(rng=np.random.default_rng(seed),
                   num_workers=resolve_workers(num_workers))

    def log(self, message: str, level: int = logging.INFO) -> None:
        """Record a diagnostic line and forward it to ``logging``."""
        self.messages.append(message)
        logger.log(level, "%s", message)

    def log_lines(self, lines: list[str], level: int = logging.INFO) -> None:
        self.log("\n".join(lines), level=level)

    def warn(self, message: str) -> None:
        self.log(message, level=logging.WARNING)

    @contextmanager
    def timer(self, stage: str) -> Iterator[None]:
        """Accumulate the wall time of the enclosed block under ``stage``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - start) * 1000.0
            self.timings[stage] = self.timings.get(stage, 0.0) + elapsed

    def elapsed(self, stage: str) -> float:
        return self.timings.get(stage, 0.0)

    def log_execution_times(self, algorithm_name: str, total_ms: float) -> None:
        """Log the per-stage time table with each stage's share of the total."""
        lines = [f"Execution times ({algorithm_name}):"]
        measured = 0.0
        for i, (key, label) in enumerate(STAGES, start=1):
            value = self.elapsed(key)
            measured += value
            share = value / total_ms if total_ms > 0 else 0.0
            lines.append(f"{i}. {label}: {value:.2f} ms ({share:.2%})")
        lines.append(f"{len(STAGES) + 1}. Total execution time: {total_ms:.2f} ms")

        difference = total_ms - measured
        if total_ms > 0 and abs(difference / total_ms) > 0.01:
            kind = "positive" if difference > 0 else "negative"
            lines.append(f"Warning: Significant {kind} time measurement discrepancy detected")
            lines.append(f"- Sum of measured times: {measured:.2f} ms")
            lines.append(f"- Difference: {difference:.2f} ms ({difference / total_ms:.2%})")
        self.log_lines(lines)
