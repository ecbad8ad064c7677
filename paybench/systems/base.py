"""
Async base class for HTTP target systems with a shared connection pool.
"""

import asyncio
import socket
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import aiohttp

from paybench.configuration import (
    CONNECTION_LIMIT,
    CONNECTION_LIMIT_PER_HOST,
    PREFLIGHT_TIMEOUT_SECONDS,
)
from paybench.errors import TargetUnreachableError

logger = logging.getLogger(__name__)


class TargetSystem:
    """Async HTTP target sharing one aiohttp session across all workers of a run."""

    def __init__(
        self,
        base_url: str,
        connection_limit: int = None,
        connection_limit_per_host: int = None,
        connection_reuse: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self.connection_limit = CONNECTION_LIMIT if connection_limit is None else connection_limit
        self.connection_limit_per_host = (
            CONNECTION_LIMIT_PER_HOST if connection_limit_per_host is None else connection_limit_per_host
        )
        self.connection_reuse = connection_reuse
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info(
            f"Initialized target {self.base_url} "
            f"(limit={self.connection_limit or 'unlimited'}, "
            f"per_host={self.connection_limit_per_host or 'unlimited'}, "
            f"reuse={self.connection_reuse})"
        )

    async def __aenter__(self):
        """Async context manager entry."""
        connector = aiohttp.TCPConnector(
            limit=self.connection_limit,
            limit_per_host=self.connection_limit_per_host,
            force_close=not self.connection_reuse,
        )
        self.session = aiohttp.ClientSession(connector=connector)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()
            self.session = None

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def resolve(self) -> None:
        """Check that the base URL is well formed and its host resolves.

        Raises:
            TargetUnreachableError: If the URL is malformed or DNS lookup fails
        """
        parts = urlsplit(self.base_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise TargetUnreachableError(f"Invalid base URL: {self.base_url!r}")

        try:
            port = parts.port or (443 if parts.scheme == "https" else 80)
        except ValueError as e:
            raise TargetUnreachableError(f"Invalid port in base URL {self.base_url!r}: {e}") from e

        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.getaddrinfo(parts.hostname, port, type=socket.SOCK_STREAM),
                timeout=PREFLIGHT_TIMEOUT_SECONDS,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise TargetUnreachableError(
                f"Cannot resolve host {parts.hostname!r} of {self.base_url}: {e}"
            ) from e

        logger.info(f"Resolved target host {parts.hostname}:{port}")

    async def request(
        self,
        method: str,
        path: str,
        timeout: float,
        params: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Issue one request and drain its body.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            timeout: Total budget for the call in seconds
            params: Optional query parameters

        Returns:
            The response status code

        Raises:
            asyncio.TimeoutError: If the call exceeds its budget
            aiohttp.ClientError: On connection or protocol failures
        """
        if self.session is None:
            raise RuntimeError("Target session not initialized. Use async context manager.")

        async with self.session.request(
            method,
            self.url(path),
            params=params,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            # Bodies are discarded, but reading them keeps the call's timing honest
            await response.read()
            return response.status
