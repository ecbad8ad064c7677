"""
Payments REST service as a load test target.
"""

import logging

from paybench.configuration import READ_ALL_PATH, READ_LIMIT, READ_PATH, WRITE_PATH
from paybench.systems.base import TargetSystem

logger = logging.getLogger(__name__)


class PaymentsService(TargetSystem):
    """Payments API: bounded/unbounded reads and fetch-and-save writes."""

    def __init__(self, base_url: str, read_limit: int = None, **kwargs):
        super().__init__(base_url, **kwargs)
        self.read_limit = READ_LIMIT if read_limit is None else read_limit

    async def read(self, timeout: float) -> int:
        """Read the latest payments (all of them when read_limit <= 0)."""
        if self.read_limit > 0:
            return await self.request(
                "GET", READ_PATH, timeout, params={"limit": str(self.read_limit)}
            )
        return await self.request("GET", READ_ALL_PATH, timeout)

    async def write(self, timeout: float) -> int:
        """Fetch a payment from upstream and save it (no request body)."""
        return await self.request("POST", WRITE_PATH, timeout)
