"""
Metrics aggregator holding per-stage counters and duration samples.
"""

import threading
import logging
from typing import Dict, List, Tuple
from dataclasses import dataclass

from paybench.persistence.record import Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterSnapshot:
    """Read-only copy of a stage's counters."""

    stage_name: str
    sent: int
    completed: int
    failed: int
    durations: Tuple[float, ...]

    @property
    def errors(self) -> int:
        return self.sent - self.completed


class CounterSet:
    """Counters and duration samples of a single stage.

    Every mutation takes the set's lock, so workers of the same stage can
    record concurrently (from coroutines or threads) without lost updates.
    """

    def __init__(self, stage_name: str):
        self.stage_name = stage_name
        self.sent = 0
        self.completed = 0
        self.failed = 0
        self.in_flight = 0
        self.durations: List[float] = []
        self.lock = threading.Lock()

    def begin_call(self) -> None:
        with self.lock:
            self.in_flight += 1

    def end_call(self) -> None:
        with self.lock:
            self.in_flight -= 1

    def record(self, outcome: Outcome) -> None:
        """Count one returned invocation.

        `sent` moves together with `completed`/`failed`, so an iteration that
        never returns is not counted anywhere.
        """
        with self.lock:
            self.sent += 1
            if outcome.completed:
                self.completed += 1
            else:
                self.failed += 1
            self.durations.append(outcome.elapsed)

    def snapshot(self) -> CounterSnapshot:
        with self.lock:
            return CounterSnapshot(
                stage_name=self.stage_name,
                sent=self.sent,
                completed=self.completed,
                failed=self.failed,
                durations=tuple(self.durations),
            )

    def __repr__(self) -> str:
        return (
            f"CounterSet(stage='{self.stage_name}', sent={self.sent}, "
            f"completed={self.completed}, failed={self.failed}, in_flight={self.in_flight})"
        )


class MetricsAggregator:
    """Registry of per-stage counter sets for one run."""

    def __init__(self):
        """Initialize an empty aggregator."""
        self.counter_sets: Dict[str, CounterSet] = {}
        self.closed = False
        self.lock = threading.Lock()

        logger.debug("Initialized MetricsAggregator")

    def counter_set(self, stage_name: str) -> CounterSet:
        """Get the counter set of a stage, creating it on first use.

        Args:
            stage_name: Stage identifier

        Returns:
            The stage's CounterSet
        """
        with self.lock:
            counters = self.counter_sets.get(stage_name)
            if counters is None:
                counters = CounterSet(stage_name)
                self.counter_sets[stage_name] = counters
            return counters

    def record(self, outcome: Outcome) -> None:
        """Record an outcome against its stage.

        Args:
            outcome: Outcome of one returned invocation

        Raises:
            RuntimeError: If the run has already been declared finished
        """
        if self.closed:
            raise RuntimeError(
                f"Aggregator is closed; cannot record outcome for stage {outcome.stage_name}"
            )
        self.counter_set(outcome.stage_name).record(outcome)

    def close(self) -> None:
        """Declare the run finished; counters become read-only."""
        with self.lock:
            self.closed = True
        logger.debug(f"Closed MetricsAggregator with {len(self.counter_sets)} stages")

    def snapshot(self, stage_name: str) -> CounterSnapshot:
        """Get a read-only view of one stage's counters (zeros if it recorded nothing)."""
        return self.counter_set(stage_name).snapshot()

    def snapshots(self) -> Dict[str, CounterSnapshot]:
        """Get read-only views of every stage that has counters."""
        with self.lock:
            counter_sets = list(self.counter_sets.values())
        return {counters.stage_name: counters.snapshot() for counters in counter_sets}
