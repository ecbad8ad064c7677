"""
Scheduler: starts every stage at its offset and waits for all of them.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from paybench.configuration import DEFAULT_ACCEPTED_STATUS_CODES, REQUEST_TIMEOUT_SECONDS
from paybench.algorithms.stage import Stage, StageHandle, StageResult
from paybench.common.invoker import RequestInvoker
from paybench.common.run_clock import RunClock
from paybench.common.stage_spec import OperationKind, StageSpec
from paybench.errors import ConfigurationError
from paybench.persistence.metrics_aggregator import MetricsAggregator
from paybench.reporting.reducer import RunReport, reduce

logger = logging.getLogger(__name__)


class Scheduler:
    """Runs a set of possibly overlapping stages against one target."""

    def __init__(
        self,
        target,
        aggregator: MetricsAggregator = None,
        timeout: float = None,
        accepted_status_codes: Mapping[OperationKind, Iterable[int]] = None,
        run_timeout: Optional[float] = None,
        clock: RunClock = None,
    ):
        """Initialize the scheduler.

        Args:
            target: Target system with async read/write methods
            aggregator: Aggregator for this run (a fresh one by default)
            timeout: Default per-call timeout for stages without their own
            accepted_status_codes: Default status whitelist per operation
            run_timeout: Optional cap on the whole run in seconds
            clock: Run clock (a fresh one by default)
        """
        self.target = target
        self.aggregator = aggregator or MetricsAggregator()
        self.timeout = timeout or REQUEST_TIMEOUT_SECONDS
        codes = accepted_status_codes or DEFAULT_ACCEPTED_STATUS_CODES
        self.accepted_status_codes = {
            OperationKind.parse(kind): frozenset(values) for kind, values in codes.items()
        }
        self.run_timeout = run_timeout
        self.clock = clock or RunClock()

        self.handles: Dict[str, StageHandle] = {}
        self.results: List[StageResult] = []

    def build_stage(self, spec: StageSpec) -> Stage:
        """Create the stage with its own invoker and status whitelist."""
        accepted = dict(self.accepted_status_codes)
        if spec.accepted_status_codes is not None:
            accepted[spec.operation] = spec.accepted_status_codes
        invoker = RequestInvoker(self.target, spec.name, accepted)
        return Stage(spec, invoker, self.aggregator, spec.timeout or self.timeout)

    async def _run_stage(self, spec: StageSpec) -> StageResult:
        await self.clock.sleep_until(spec.start_offset)
        late = self.clock.elapsed() - spec.start_offset
        logger.info(
            f"Starting stage {spec.name} at offset {spec.start_offset:.3f}s "
            f"(late by {late * 1000:.1f} ms)"
        )

        handle = self.build_stage(spec).launch(self.clock)
        self.handles[spec.name] = handle
        return await handle.wait()

    async def run(self, stage_specs: Sequence[StageSpec]) -> RunReport:
        """Execute all stages and reduce their counters into a report.

        Args:
            stage_specs: Stages in run order

        Returns:
            RunReport computed after every stage has finished

        Raises:
            ConfigurationError: If there are no stages or names repeat
            HarnessError: If a stage cannot start its workers
        """
        specs = list(stage_specs)
        self._validate(specs)

        self.clock.start()
        logger.info(f"Run started with {len(specs)} stages")

        tasks = {
            spec.name: asyncio.create_task(self._run_stage(spec), name=f"stage-{spec.name}")
            for spec in specs
        }
        await self._wait_for_stages(tasks)

        self.results = [self._result_of(spec, tasks[spec.name]) for spec in specs]
        total_duration = self.clock.elapsed()
        self.aggregator.close()
        logger.info(f"Run finished in {total_duration:.2f}s")

        return reduce(self.aggregator, self.results, total_duration)

    async def _wait_for_stages(self, tasks: Dict[str, asyncio.Task]) -> None:
        deadline = None if self.run_timeout is None else self.clock.now() + self.run_timeout
        pending = set(tasks.values())

        try:
            while pending:
                timeout = None if deadline is None else max(deadline - self.clock.now(), 0)
                done, pending = await asyncio.wait(
                    pending, timeout=timeout, return_when=asyncio.FIRST_EXCEPTION
                )
                for task in done:
                    if not task.cancelled() and task.exception() is not None:
                        # Harness fault: nothing else is worth finishing
                        await self._cancel(pending)
                        raise task.exception()
                if pending and deadline is not None and self.clock.now() >= deadline:
                    logger.warning(
                        f"Run timeout of {self.run_timeout:.2f}s reached; "
                        f"cancelling {len(pending)} stages"
                    )
                    await self._cancel(pending)
                    break
        except asyncio.CancelledError:
            await self._cancel(pending)
            raise

    async def _cancel(self, tasks) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _result_of(self, spec: StageSpec, task: asyncio.Task) -> StageResult:
        if not task.cancelled():
            return task.result()

        handle = self.handles.get(spec.name)
        if handle is not None:
            return handle.abort()

        logger.warning(f"Stage {spec.name} never started before the run timeout")
        return StageResult(
            spec=spec, started_at=None, finished_at=None, observed_duration=0.0, timed_out=True
        )

    def _validate(self, specs: List[StageSpec]) -> None:
        if not specs:
            raise ConfigurationError("At least one stage is required")
        seen = set()
        for spec in specs:
            if spec.name in seen:
                raise ConfigurationError(f"Duplicate stage name: {spec.name}")
            seen.add(spec.name)
