from __future__ import annotations

import sys

import httpx
import pytest

from sitemap_monitor.config import ServerConfig
from sitemap_monitor.errors import ServerStartupError
from sitemap_monitor.server import DevServer


@pytest.mark.asyncio
async def test_reuses_running_server(local_server_base_url: str) -> None:
    async with httpx.AsyncClient() as client:
        async with DevServer(ServerConfig(command=["false"]), local_server_base_url, client) as server:
            assert server.reused is True
            assert server.process is None


@pytest.mark.asyncio
async def test_missing_command_raises(closed_port_url: str) -> None:
    config = ServerConfig(command=["sitemap-monitor-no-such-binary"], startup_timeout=2)
    async with httpx.AsyncClient() as client:
        with pytest.raises(ServerStartupError):
            await DevServer(config, closed_port_url, client).start()


@pytest.mark.asyncio
async def test_early_exit_raises(closed_port_url: str) -> None:
    config = ServerConfig(command=[sys.executable, "-c", "raise SystemExit(3)"], startup_timeout=10)
    async with httpx.AsyncClient() as client:
        with pytest.raises(ServerStartupError, match="code 3"):
            await DevServer(config, closed_port_url, client).start()


@pytest.mark.asyncio
async def test_ready_marker_then_stop(closed_port_url: str) -> None:
    script = "import time; print('Ready in 1s', flush=True); time.sleep(30)"
    config = ServerConfig(command=[sys.executable, "-c", script], startup_timeout=10, settle_seconds=0, stop_timeout=5)
    async with httpx.AsyncClient() as client:
        server = DevServer(config, closed_port_url, client)
        async with server:
            assert server.reused is False
            assert server.process is not None
            assert server.process.returncode is None
        assert server.process.returncode is not None
