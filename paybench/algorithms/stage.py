"""
Stage: a time-boxed batch of identical concurrent workers.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from paybench.configuration import PROGRESS_INTERVAL_SECONDS
from paybench.common.invoker import RequestInvoker
from paybench.common.run_clock import RunClock
from paybench.common.stage_spec import StageSpec
from paybench.common.worker import Worker
from paybench.errors import HarnessError
from paybench.persistence.metrics_aggregator import MetricsAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResult:
    """Timing of a finished stage.

    `started_at`/`finished_at` are run-clock offsets; both are None for a stage
    that never started because the run was cut short.
    """

    spec: StageSpec
    started_at: Optional[float]
    finished_at: Optional[float]
    observed_duration: float
    timed_out: bool

    @property
    def started(self) -> bool:
        return self.started_at is not None


class StageHandle:
    """Running stage: its worker tasks and the deadline they race against."""

    def __init__(self, spec: StageSpec, clock: RunClock, workers: List[Worker], tasks: List[asyncio.Task]):
        self.spec = spec
        self.clock = clock
        self.workers = workers
        self.tasks = tasks
        if clock.run_start is None:
            clock.start()
        self.started_at = clock.now()
        self.deadline = self.started_at + spec.max_duration
        self.result: Optional[StageResult] = None

    async def wait(self) -> StageResult:
        """Wait until every worker is done or max_duration has elapsed.

        Returns:
            The stage result; on timeout the observed duration is max_duration
        """
        pending = set(self.tasks)
        counters = self.workers[0].counters

        try:
            while pending:
                remaining = self.deadline - self.clock.now()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending, timeout=min(PROGRESS_INTERVAL_SECONDS, remaining)
                )
                self._check_failed_tasks(done)

                if pending:
                    logger.info(
                        f"Stage {self.spec.name}: {counters.sent}/{self.spec.target_requests} sent, "
                        f"{counters.in_flight} in flight, {len(pending)} workers running"
                    )
        except asyncio.CancelledError:
            await self._cancel(pending)
            raise

        if pending:
            await self._cancel(pending)
            logger.warning(
                f"Stage {self.spec.name} hit max duration {self.spec.max_duration:.2f}s; "
                f"abandoned {len(pending)} workers"
            )
            return self._finish(self.spec.max_duration, timed_out=True)

        observed = self.clock.now() - self.started_at
        logger.info(f"Stage {self.spec.name} finished in {observed:.2f}s")
        return self._finish(observed, timed_out=False)

    def abort(self) -> StageResult:
        """Result for a stage whose wait was cancelled from outside (run timeout)."""
        if self.result is None:
            observed = min(self.clock.now() - self.started_at, self.spec.max_duration)
            self._finish(observed, timed_out=True)
        return self.result

    def _finish(self, observed: float, timed_out: bool) -> StageResult:
        self.result = StageResult(
            spec=self.spec,
            started_at=self.started_at - self.clock.run_start,
            finished_at=self.started_at - self.clock.run_start + observed,
            observed_duration=observed,
            timed_out=timed_out,
        )
        return self.result

    async def _cancel(self, tasks) -> None:
        for task in tasks:
            task.cancel()
        # Cancelled iterations never reach the aggregator
        await asyncio.gather(*tasks, return_exceptions=True)

    def _check_failed_tasks(self, done) -> None:
        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                logger.error(f"Stage {self.spec.name}: worker task {task.get_name()} crashed: {exc!r}")


class Stage:
    """Launches the workers of one stage spec."""

    def __init__(
        self,
        spec: StageSpec,
        invoker: RequestInvoker,
        aggregator: MetricsAggregator,
        timeout: float,
    ):
        """Initialize the stage.

        Args:
            spec: Stage specification
            invoker: Invoker bound to this stage's status whitelist
            aggregator: Run-wide aggregator injected into every worker
            timeout: Per-call timeout for the stage's workers
        """
        self.spec = spec
        self.invoker = invoker
        self.aggregator = aggregator
        self.timeout = timeout

    def launch(self, clock: RunClock) -> StageHandle:
        """Spawn all workers at once.

        Raises:
            HarnessError: If no worker task could be started
        """
        spec = self.spec
        workers = [
            Worker(
                worker_id=worker_id,
                stage_name=spec.name,
                operation=spec.operation,
                iterations=spec.iterations,
                timeout=self.timeout,
                invoker=self.invoker,
                aggregator=self.aggregator,
            )
            for worker_id in range(spec.workers)
        ]

        tasks: List[asyncio.Task] = []
        try:
            for worker in workers:
                tasks.append(
                    asyncio.create_task(worker.run(), name=f"{spec.name}-worker-{worker.worker_id}")
                )
        except RuntimeError as e:
            for task in tasks:
                task.cancel()
            raise HarnessError(f"Stage {spec.name}: cannot start workers: {e}") from e

        logger.info(
            f"Launched stage {spec.name}: {spec.workers} workers x {spec.iterations} "
            f"{spec.operation.value} iterations (max {spec.max_duration:.2f}s, "
            f"call timeout {self.timeout:.2f}s)"
        )
        return StageHandle(spec, clock, workers, tasks)
