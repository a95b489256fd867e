"""Readiness prober: poll component HTTP endpoints until they answer 2xx."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

import aiohttp

from ebo.errors import ServiceUnavailable
from ebo.interfaces import ClockInterface

logger = logging.getLogger(__name__)


def service_url(port: int, host: str = "localhost") -> str:
    return f"http://{host}:{port}/"


class ReadinessProber:
    """Polls ``GET /`` with a fixed attempt budget and inter-attempt delay."""

    def __init__(
        self,
        attempts: int = 30,
        delay_s: float = 1.0,
        request_timeout_s: float = 2.0,
        clock: Optional[ClockInterface] = None,
    ):
        if clock is None:
            from ebo.implementations import RealClock
            clock = RealClock()
        self._attempts = max(1, attempts)
        self._delay_s = delay_s
        self._timeout = aiohttp.ClientTimeout(total=request_timeout_s)
        self._clock = clock

    async def _check_once(self, session: aiohttp.ClientSession, url: str) -> bool:
        try:
            async with session.get(url, timeout=self._timeout) as response:
                return 200 <= response.status < 300
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Probe of %s failed: %s", url, e)
            return False

    async def wait_until_ready(self, url: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        """Block until *url* answers 2xx.

        Raises:
            ServiceUnavailable: When every attempt failed.
        """
        if session is None:
            async with aiohttp.ClientSession() as own:
                return await self.wait_until_ready(url, own)

        logger.info("Waiting for service at %s to be available...", url)
        for attempt in range(1, self._attempts + 1):
            logger.debug("Checking service status at %s, attempt %d", url, attempt)
            if await self._check_once(session, url):
                logger.info("Service at %s is responding.", url)
                return
            if attempt < self._attempts:
                logger.info("Waiting for service %s... (%d/%d)", url, attempt, self._attempts)
                await self._clock.sleep(self._delay_s)

        logger.error("Service at %s did not become available in time.", url)
        raise ServiceUnavailable(url, self._attempts)

    async def wait_all(self, ports: Iterable[int], host: str = "localhost") -> None:
        """Probe every port concurrently; all must become ready.

        Raises:
            ServiceUnavailable: For the first endpoint that never answered.
        """
        urls = [service_url(port, host) for port in ports]
        if not urls:
            return
        async with aiohttp.ClientSession() as session:
            results = await asyncio.gather(
                *(self.wait_until_ready(url, session) for url in urls),
                return_exceptions=True,
            )
        for result in results:
            if isinstance(result, BaseException):
                raise result
