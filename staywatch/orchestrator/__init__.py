"""Check scheduling, concurrency control and per-listing failure isolation.

Public API
----------
* :func:`~staywatch.orchestrator.scheduler.run_continuous`: default runtime
  entry-point; fires a cycle every ``CHECK_INTERVAL_S`` seconds.
* :func:`~staywatch.orchestrator.runner.run_once`: a single cycle, used by
  ``--once``.
* :func:`~staywatch.orchestrator.runner.open_runner`: component wiring.
* :class:`~staywatch.orchestrator.batch.BatchRunner`: one cycle over the
  due listings, with transition-gated alerts.
* :class:`~staywatch.orchestrator.checker.AvailabilityChecker`: one listing,
  with bounded retries.
* :class:`~staywatch.orchestrator.limiter.ConcurrencyLimiter`: FIFO bounded
  concurrency.
"""

from staywatch.orchestrator.batch import (
    BatchRunner,
    CycleStats,
    ListingOutcome,
    build_transition_event,
    is_transition,
    status_for_result,
)
from staywatch.orchestrator.checker import AvailabilityChecker
from staywatch.orchestrator.limiter import ConcurrencyLimiter
from staywatch.orchestrator.runner import open_runner, run_once
from staywatch.orchestrator.scheduler import run_continuous, run_ticks

__all__ = [
    # Scheduling
    "run_continuous",
    "run_ticks",
    "run_once",
    "open_runner",
    # Cycle
    "BatchRunner",
    "CycleStats",
    "ListingOutcome",
    "build_transition_event",
    "is_transition",
    "status_for_result",
    # Check primitives
    "AvailabilityChecker",
    "ConcurrencyLimiter",
]
