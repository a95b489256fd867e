"""Tests for ebo/readiness.py against a local aiohttp server."""

from __future__ import annotations

import asyncio
import socket

import pytest
from aiohttp import web

from ebo.errors import ServiceUnavailable
from ebo.mocks import MockClock
from ebo.readiness import ReadinessProber, service_url


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _serve(port, statuses):
    """Serve GET / answering with *statuses* in turn (last one repeats)."""
    hits = []

    async def handler(request):
        status = statuses[min(len(hits), len(statuses) - 1)]
        hits.append(status)
        return web.Response(status=status, text="ok")

    app = web.Application()
    app.router.add_get("/", handler)
    runner = web.AppRunner(app)
    await runner.setup()
    await web.TCPSite(runner, "127.0.0.1", port).start()
    return runner, hits


class TestServiceUrl:
    def test_format(self):
        assert service_url(8081) == "http://localhost:8081/"


class TestWaitUntilReady:
    def test_retries_until_2xx(self):
        port = _free_port()
        clock = MockClock()

        async def scenario():
            runner, hits = await _serve(port, [503, 503, 200])
            try:
                prober = ReadinessProber(attempts=5, delay_s=0.5, clock=clock)
                await prober.wait_until_ready(service_url(port, "127.0.0.1"))
            finally:
                await runner.cleanup()
            return hits

        hits = asyncio.run(scenario())
        assert hits == [503, 503, 200]
        assert clock.sleeps == [0.5, 0.5]

    def test_closed_port_exhausts_attempts(self):
        port = _free_port()
        clock = MockClock()
        prober = ReadinessProber(attempts=3, delay_s=1.0, request_timeout_s=0.5, clock=clock)

        with pytest.raises(ServiceUnavailable) as exc_info:
            asyncio.run(prober.wait_until_ready(service_url(port, "127.0.0.1")))

        assert exc_info.value.attempts == 3
        assert str(port) in exc_info.value.url
        assert clock.sleeps == [1.0, 1.0]


class TestWaitAll:
    def test_all_ready(self):
        ports = [_free_port(), _free_port()]

        async def scenario():
            runners = [(await _serve(p, [200]))[0] for p in ports]
            try:
                await ReadinessProber(attempts=2, clock=MockClock()).wait_all(ports, host="127.0.0.1")
            finally:
                for r in runners:
                    await r.cleanup()

        asyncio.run(scenario())

    def test_one_unavailable_fails(self):
        up, down = _free_port(), _free_port()

        async def scenario():
            runner, _ = await _serve(up, [200])
            try:
                await ReadinessProber(attempts=2, clock=MockClock()).wait_all([up, down], host="127.0.0.1")
            finally:
                await runner.cleanup()

        with pytest.raises(ServiceUnavailable) as exc_info:
            asyncio.run(scenario())
        assert str(down) in exc_info.value.url

    def test_no_ports(self):
        asyncio.run(ReadinessProber(clock=MockClock()).wait_all([]))
