"""Service launcher: start one component and wait for its ready marker.

Each launch is a small state machine driven by events pushed onto a
per-component queue by the output pump:

    AWAITING_READY --output with ready marker--> READY
    AWAITING_READY --startup timer fired-------> TIMED_OUT  (process killed)
    AWAITING_READY --process exited------------> EXITED

The pump reads fixed-size chunks rather than lines, so arbitrarily long
lines never stall it. Ready markers are matched against a rolling window of
the raw output (they may arrive without a newline, inside a ``\\r``-refreshed
progress line, or split across chunks). Every output line is relayed to the
``ebo.component.<name>`` logger, with error-looking lines raised to ERROR.
The launcher never retries; failures are surfaced to the batch runner.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import re
from enum import Enum
from typing import Any, Optional

from ebo.config import OrchestratorConfig
from ebo.errors import PrematureExit, StartupTimeout
from ebo.interfaces import LaunchState
from ebo.pattern_matcher import PatternMatcher
from ebo.process_utils import stop_process

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536
# Longest line relayed as one log record; longer lines are split.
MAX_LOG_LINE = 65536

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class LaunchEvent(Enum):
    OUTPUT = "output"
    EXITED = "exited"


def split_lines(pending: str) -> tuple[list[str], str]:
    """Split *pending* into complete lines and the unterminated tail.

    A tail longer than ``MAX_LOG_LINE`` is flushed in pieces so one endless
    line cannot grow without bound.
    """
    *lines, tail = _LINE_BREAK.split(pending)
    while len(tail) > MAX_LOG_LINE:
        lines.append(tail[:MAX_LOG_LINE])
        tail = tail[MAX_LOG_LINE:]
    return lines, tail


class ComponentHandle:
    """A running component process, owned by the batch runner that started it."""

    def __init__(self, component: str, port: int, process: asyncio.subprocess.Process):
        self.component = component
        self.port = port
        self.process = process
        self.state = LaunchState.AWAITING_READY
        self.pump: Optional[asyncio.Task] = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    async def terminate(self, force: bool = False, timeout_s: float = 5.0) -> None:
        """Stop the component's process group and collect its output pump."""
        await stop_process(self.process, timeout_s=timeout_s, force=force)
        if self.pump is not None:
            try:
                await asyncio.wait_for(self.pump, timeout=timeout_s)
            except asyncio.TimeoutError:
                logger.warning("%s output relay did not finish within %gs", self.component, timeout_s)
            except Exception as e:
                logger.error("%s output relay failed: %r", self.component, e)
        logger.info("%s process fully exited", self.component)

    def __repr__(self) -> str:
        return f"ComponentHandle({self.component!r}, port={self.port}, state={self.state.value})"


class ServiceLauncher:
    """Starts component processes with their allocated port injected."""

    def __init__(self, config: OrchestratorConfig, cwd: Optional[str] = None):
        self._config = config
        self._cwd = cwd
        self._ready = PatternMatcher.from_literals(config.ready_markers)
        self._errors = PatternMatcher.from_literals(config.error_keywords)
        # Enough trailing output to catch a marker split across two chunks.
        self._window = max((len(m) for m in config.ready_markers), default=1)

    def build_command(self, component: str, port: int) -> str:
        return self._config.start_command.format(component=component, port=port)

    async def launch(self, component: str, port: int) -> ComponentHandle:
        """Start *component* on *port* and wait until it reports ready.

        Raises:
            StartupTimeout: No ready marker within the startup timeout.
            PrematureExit: The process exited before a ready marker.
        """
        env = dict(os.environ)
        env["PORT"] = str(port)
        command = self.build_command(component, port)

        logger.info("Starting component: %s on port %d", component, port)
        logger.debug("[%s] command: %s", component, command)
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=env,
            cwd=self._cwd,
            start_new_session=True,
        )

        handle = ComponentHandle(component, port, process)
        events: asyncio.Queue = asyncio.Queue()
        handle.pump = asyncio.create_task(self._pump_output(handle, events))

        try:
            await self._await_ready(handle, events)
        except BaseException:
            await handle.terminate(force=True)
            raise
        return handle

    async def _await_ready(self, handle: ComponentHandle, events: asyncio.Queue) -> None:
        loop = asyncio.get_running_loop()
        timeout_s = self._config.startup_timeout_s
        deadline = loop.time() + timeout_s

        while True:
            remaining = deadline - loop.time()
            try:
                if remaining <= 0:
                    raise asyncio.TimeoutError
                kind, payload = await asyncio.wait_for(events.get(), timeout=remaining)
            except asyncio.TimeoutError:
                handle.state = LaunchState.TIMED_OUT
                logger.error("%s timed out after %g seconds", handle.component, timeout_s)
                raise StartupTimeout(handle.component, timeout_s) from None

            if kind is LaunchEvent.OUTPUT and self._ready.matches(payload):
                handle.state = LaunchState.READY
                logger.info("%s is fully ready!", handle.component)
                return
            if kind is LaunchEvent.EXITED:
                handle.state = LaunchState.EXITED
                logger.error("%s exited unexpectedly with code %s", handle.component, payload)
                raise PrematureExit(handle.component, payload)

    async def _pump_output(self, handle: ComponentHandle, events: asyncio.Queue) -> None:
        """Relay output until EOF, feeding events while awaiting readiness."""
        out = logging.getLogger(f"ebo.component.{handle.component}")
        stream = handle.process.stdout
        assert stream is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        keep = self._window - 1
        pending = ""
        tail = ""

        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if handle.state is LaunchState.AWAITING_READY:
                window = tail + text
                self._emit(handle, events, LaunchEvent.OUTPUT, window)
                tail = window[-keep:] if keep else ""
            lines, pending = split_lines(pending + text)
            for line in lines:
                self._relay(out, handle.component, line)

        pending += decoder.decode(b"", final=True)
        self._relay(out, handle.component, pending)

        code = await handle.process.wait()
        self._emit(handle, events, LaunchEvent.EXITED, code)

    @staticmethod
    def _emit(handle: ComponentHandle, events: asyncio.Queue, kind: LaunchEvent, payload: Any) -> None:
        # Only the launch waiter consumes events; once it has decided, stop queueing.
        if handle.state is LaunchState.AWAITING_READY:
            events.put_nowait((kind, payload))

    def _relay(self, out: logging.Logger, component: str, line: str) -> None:
        line = line.rstrip()
        if not line:
            return
        if self._errors.matches(line):
            out.error("[%s ERROR] %s", component, line)
        else:
            out.info("[%s LOG] %s", component, line)
