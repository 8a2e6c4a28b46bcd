"""Lifecycle of the ephemeral local development server."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog

from .config import ServerConfig
from .errors import ServerStartupError

logger = structlog.get_logger(__name__)

PROBE_TIMEOUT = 2.0
POLL_INTERVAL = 0.5


class DevServer:
    """Starts the configured server command for the duration of an ``async with`` block.

    An instance that already answers on ``base_url`` is reused and left running.
    """

    def __init__(self, config: ServerConfig, base_url: str, client: httpx.AsyncClient, log: Any = None):
        self.config = config
        self.base_url = base_url
        self.client = client
        self.log = log or logger
        self.process: asyncio.subprocess.Process | None = None
        self.reused = False
        self._ready = asyncio.Event()
        self._drain_task: asyncio.Task | None = None
        self._stopped = False

    async def __aenter__(self) -> "DevServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def probe(self) -> bool:
        try:
            await self.client.get(self.base_url, timeout=PROBE_TIMEOUT, follow_redirects=False)
        except httpx.RequestError:
            return False
        return True

    async def _drain(self, stream: asyncio.StreamReader) -> None:
        while True:
            raw = await stream.readline()
            if not raw:
                return
            line = raw.decode("utf-8", errors="replace").rstrip()
            self.log.debug("Server output", line=line)
            if any(marker in line for marker in self.config.ready_markers):
                self._ready.set()

    async def start(self) -> None:
        if await self.probe():
            self.reused = True
            self.log.info("Reusing running server", base_url=self.base_url)
            return

        self.log.info("Starting development server", command=" ".join(self.config.command))
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.config.command,
                cwd=self.config.working_directory,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ServerStartupError(f"Could not start server: {e}") from e
        self._drain_task = asyncio.create_task(self._drain(self.process.stdout))

        deadline = time.monotonic() + self.config.startup_timeout
        while time.monotonic() < deadline:
            try:
                await asyncio.wait_for(self._ready.wait(), timeout=POLL_INTERVAL)
            except asyncio.TimeoutError:
                pass
            if self._ready.is_set():
                await asyncio.sleep(self.config.settle_seconds)
                break
            if self.process.returncode is not None:
                code = self.process.returncode
                await self.stop()
                raise ServerStartupError(f"Server exited during startup with code {code}")
            if await self.probe():
                break
        else:
            await self.stop()
            raise ServerStartupError(f"Server not ready within {self.config.startup_timeout:.0f}s")

        self.log.info("Development server ready", base_url=self.base_url)

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True

        proc = self.process
        if proc is not None and proc.returncode is None:
            self.log.info("Stopping development server", pid=proc.pid)
            try:
                proc.terminate()
                await asyncio.wait_for(proc.wait(), timeout=self.config.stop_timeout)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                self.log.warning("Server did not exit, killing", pid=proc.pid)
                proc.kill()
                await proc.wait()

        if self._drain_task is not None:
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
