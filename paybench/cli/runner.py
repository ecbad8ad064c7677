"""
Load test runner wiring a scenario to the payments target and the scheduler.
"""

import logging

from paybench.algorithms.scheduler import Scheduler
from paybench.common.scenario import Scenario
from paybench.persistence.metrics_aggregator import MetricsAggregator
from paybench.reporting.reducer import RunReport
from paybench.systems.payments import PaymentsService

logger = logging.getLogger(__name__)


class LoadTestRunner:
    """Runs one scenario end to end and returns its report."""

    def __init__(
        self,
        scenario: Scenario,
        run_timeout: float = None,
        connection_limit: int = None,
    ):
        self.scenario = scenario
        self.run_timeout = run_timeout
        self.target = PaymentsService(
            scenario.base_url,
            read_limit=scenario.read_limit,
            connection_limit=connection_limit,
            connection_reuse=scenario.connection_reuse,
        )
        self.aggregator = MetricsAggregator()

        logger.info(
            f"Initialized load test runner: {len(scenario.stages)} stages against {scenario.base_url}"
        )

    async def run(self) -> RunReport:
        """Resolve the target, run every stage and reduce the counters.

        Raises:
            HarnessError: If the target cannot be resolved or a stage cannot start
        """
        await self.target.resolve()

        async with self.target:
            scheduler = Scheduler(
                self.target,
                aggregator=self.aggregator,
                timeout=self.scenario.timeout,
                accepted_status_codes=self.scenario.accepted_status_codes,
                run_timeout=self.run_timeout,
            )
            return await scheduler.run(self.scenario.stages)
