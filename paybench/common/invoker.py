"""
Request invoker: one timed, classified call against the target.
"""

import asyncio
import time
import logging
from typing import Dict, FrozenSet, Iterable, Mapping

import aiohttp

from paybench.common.stage_spec import OperationKind
from paybench.persistence.record import Classification, Outcome

logger = logging.getLogger(__name__)


class RequestInvoker:
    """Issues single calls for one stage and classifies their outcome.

    The target only needs async `read(timeout)` and `write(timeout)` methods
    returning an HTTP status code.
    """

    def __init__(
        self,
        target,
        stage_name: str,
        accepted_status_codes: Mapping[OperationKind, Iterable[int]],
    ):
        self.target = target
        self.stage_name = stage_name
        self.accepted_status_codes: Dict[OperationKind, FrozenSet[int]] = {
            OperationKind.parse(kind): frozenset(codes)
            for kind, codes in accepted_status_codes.items()
        }

    def accepts(self, operation: OperationKind, status: int) -> bool:
        return status in self.accepted_status_codes.get(operation, frozenset())

    async def invoke(
        self,
        operation: OperationKind,
        timeout: float,
        worker_id: int = 0,
        iteration: int = 0,
    ) -> Outcome:
        """Perform one call and classify it.

        Args:
            operation: read or write
            timeout: Budget for the whole call in seconds
            worker_id: Issuing worker, copied into the outcome
            iteration: Iteration index, copied into the outcome

        Returns:
            Outcome classified as completed when the status is whitelisted for
            the operation, failed on any other status, timeout or connection error
        """
        if operation is OperationKind.READ:
            call = self.target.read
        else:
            call = self.target.write

        sent_at = time.time()
        start = time.perf_counter()
        status = None
        error = None

        try:
            # The client enforces the timeout too; this bounds anything it misses
            status = await asyncio.wait_for(call(timeout), timeout=timeout)
        except asyncio.TimeoutError:
            error = "timeout"
        except aiohttp.ClientError as e:
            error = f"{type(e).__name__}: {e}"

        elapsed = time.perf_counter() - start

        if status is not None and self.accepts(operation, status):
            classification = Classification.COMPLETED
        else:
            classification = Classification.FAILED
            if error is None:
                error = f"status {status}"
            logger.debug(
                f"Stage {self.stage_name} worker {worker_id} iteration {iteration} "
                f"{operation.value} failed after {elapsed * 1000:.1f} ms: {error}"
            )

        return Outcome(
            stage_name=self.stage_name,
            worker_id=worker_id,
            iteration=iteration,
            sent_at=sent_at,
            elapsed=elapsed,
            classification=classification,
            status=status,
            error=error,
        )
