"""
Worker: one sequential loop of invocations, run concurrently with other workers.
"""

import time
import logging

from paybench.common.invoker import RequestInvoker
from paybench.common.stage_spec import OperationKind
from paybench.persistence.metrics_aggregator import MetricsAggregator
from paybench.persistence.record import Classification, Outcome

logger = logging.getLogger(__name__)


class Worker:
    """Runs a fixed number of invocations back to back and records each outcome."""

    def __init__(
        self,
        worker_id: int,
        stage_name: str,
        operation: OperationKind,
        iterations: int,
        timeout: float,
        invoker: RequestInvoker,
        aggregator: MetricsAggregator,
    ):
        self.worker_id = worker_id
        self.stage_name = stage_name
        self.operation = operation
        self.iterations = iterations
        self.timeout = timeout
        self.invoker = invoker
        self.aggregator = aggregator
        self.counters = aggregator.counter_set(stage_name)
        self.iterations_done = 0

    async def run(self) -> None:
        """Execute all iterations; failures are recorded, never retried."""
        for iteration in range(self.iterations):
            outcome = await self._invoke_once(iteration)
            self.aggregator.record(outcome)
            self.iterations_done += 1

        logger.debug(
            f"Worker {self.worker_id} of stage {self.stage_name} finished "
            f"{self.iterations_done} iterations"
        )

    async def _invoke_once(self, iteration: int) -> Outcome:
        sent_at = time.time()
        start = time.perf_counter()
        self.counters.begin_call()
        try:
            return await self.invoker.invoke(
                self.operation, self.timeout, worker_id=self.worker_id, iteration=iteration
            )
        except Exception as e:
            # A faulty invoker costs this iteration only
            logger.warning(
                f"Worker {self.worker_id} of stage {self.stage_name} iteration {iteration} "
                f"raised {type(e).__name__}: {e}"
            )
            return Outcome(
                stage_name=self.stage_name,
                worker_id=self.worker_id,
                iteration=iteration,
                sent_at=sent_at,
                elapsed=time.perf_counter() - start,
                classification=Classification.FAILED,
                error=type(e).__name__,
            )
        finally:
            self.counters.end_call()
