"""
In-memory targets and invokers for orchestration tests.
"""

import asyncio

from aiohttp import web


class FakeTarget:
    """Target answering every call with fixed statuses after an optional delay."""

    def __init__(self, read_status=200, write_status=200, delay=0.0):
        self.read_status = read_status
        self.write_status = write_status
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def _call(self, status):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
            return status
        finally:
            self.in_flight -= 1

    async def read(self, timeout):
        return await self._call(self.read_status)

    async def write(self, timeout):
        return await self._call(self.write_status)


class PaymentsStub:
    """aiohttp application mimicking the payments API."""

    def __init__(self, read_status=200, write_status=201, delay=0.0):
        self.read_status = read_status
        self.write_status = write_status
        self.delay = delay
        self.read_limits = []
        self.read_all_calls = 0
        self.write_calls = 0
        self.write_bodies = []

    async def _pause(self):
        if self.delay:
            await asyncio.sleep(self.delay)

    async def latest(self, request):
        self.read_limits.append(request.query.get("limit"))
        await self._pause()
        return web.json_response([{"transactionId": "t-1"}], status=self.read_status)

    async def all(self, request):
        self.read_all_calls += 1
        await self._pause()
        return web.json_response([], status=self.read_status)

    async def fetch_and_save(self, request):
        self.write_calls += 1
        self.write_bodies.append(await request.read())
        await self._pause()
        return web.json_response(
            {"transactionId": f"t-{self.write_calls}", "createdAt": "2024-01-01T00:00:00Z"},
            status=self.write_status,
        )

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/payments", self.latest)
        app.router.add_get("/api/payments/all", self.all)
        app.router.add_post("/api/payments/fetch-and-save", self.fetch_and_save)
        return app
