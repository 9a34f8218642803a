"""
Stage timing for tessellation runs.

Each pipeline stage (sampling, tessellation, half-edge build, evaluation) is
wrapped in ``timed_stage``, which appends a ``StageTiming`` to the run log.
"""

from __future__ import annotations

import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

logger = logging.getLogger("implicitmesh.timing")


@dataclass
class StageTiming:
    """Wall time of one pipeline stage."""
    stage: str
    seconds: float = 0.0
    ok: bool = False
    error: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.stage}: {self.seconds:.3f}s [{'OK' if self.ok else 'ERROR'}]"


@dataclass
class RunTimings:
    """Stages recorded since the last reset."""
    stages: list[StageTiming] = field(default_factory=list)
    started: float = field(default_factory=time.perf_counter)

    def record(self, timing: StageTiming) -> None:
        self.stages.append(timing)
        logger.info(str(timing))

    def total_time(self) -> float:
        return time.perf_counter() - self.started

    def stage_names(self) -> list[str]:
        return [t.stage for t in self.stages]


_run_timings: Optional[RunTimings] = None


def get_run_timings() -> RunTimings:
    """Timings of the current run, created on first use."""
    global _run_timings
    if _run_timings is None:
        _run_timings = RunTimings()
    return _run_timings


def reset_run_timings() -> RunTimings:
    global _run_timings
    _run_timings = RunTimings()
    return _run_timings


@contextmanager
def timed_stage(stage: str, record: bool = True) -> Iterator[StageTiming]:
    """
    Time a pipeline stage.

    Args:
        stage: Stage name shown in logs and the CLI timing table
        record: Whether to append the result to the current run timings

    Yields:
        StageTiming filled in when the block exits, including on error
    """
    timing = StageTiming(stage=stage)
    start = time.perf_counter()
    try:
        yield timing
        timing.ok = True
    except Exception as e:
        timing.error = str(e)
        raise
    finally:
        timing.seconds = time.perf_counter() - start
        if record:
            get_run_timings().record(timing)


class ProgressTimer:
    """Logs how far the cell loop has got, at most every ``log_interval`` seconds."""

    def __init__(self, total: int, operation_name: str = "Processing", log_interval: float = 5.0):
        self.total = total
        self.operation_name = operation_name
        self.log_interval = log_interval
        self.done = 0
        self.started = time.perf_counter()
        self._last_log = self.started

    def update(self, n: int = 1) -> None:
        self.done += n
        now = time.perf_counter()
        if now - self._last_log >= self.log_interval and self.total > 0:
            elapsed = now - self.started
            eta = elapsed * (self.total - self.done) / self.done
            logger.info(
                f"{self.operation_name}: {self.done}/{self.total} cells "
                f"({elapsed:.1f}s, ~{eta:.1f}s left)"
            )
            self._last_log = now

    def finish(self) -> float:
        """Log the final rate and return the elapsed seconds."""
        elapsed = time.perf_counter() - self.started
        logger.debug(f"{self.operation_name}: {self.total} cells in {elapsed:.3f}s")
        return elapsed
