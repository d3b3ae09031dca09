"""Tunnel lifecycle: detect, start, resolve the public URL, stop."""

from __future__ import annotations

import asyncio

import httpx

from ..config import NgrokConfig
from ..errors import ControlApiError, NoSecureTunnelError, TunnelNotReadyError
from ..shared.logging import get_logger
from .api import NgrokApiClient, TunnelInfo
from .process import TunnelProcess

logger = get_logger(__name__)


class TunnelController:
    """Drive the ngrok agent through its process and control API."""

    def __init__(
        self,
        config: NgrokConfig,
        process: TunnelProcess | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize controller.

        Args:
            config: Resolved plugin settings
            process: Process launcher (defaults to one for config.binary)
            transport: Optional httpx transport for the control API client
        """
        self.config = config
        self.process = process or TunnelProcess(config.binary)
        self.transport = transport
        self._lock = asyncio.Lock()

    def _client(self) -> NgrokApiClient:
        return NgrokApiClient(
            base_url=self.config.api_url,
            timeout=self.config.request_timeout,
            transport=self.transport,
        )

    async def list_tunnels(self) -> list[TunnelInfo]:
        """List tunnels from the control API.

        Raises:
            ControlApiError: If the control API cannot be queried
        """
        async with self._client() as client:
            return await client.list_tunnels()

    async def is_running(self) -> bool:
        """Check whether ngrok already serves at least one tunnel.

        Any failure talking to the control API counts as not running.
        """
        try:
            tunnels = await self.list_tunnels()
        except ControlApiError as e:
            logger.debug("Control API unavailable", error=e.message)
            return False
        return len(tunnels) > 0

    @property
    def process_alive(self) -> bool:
        """Whether the ngrok process launched by this controller is alive."""
        return self.process.is_alive

    async def ensure_active(self) -> str | None:
        """Make sure a tunnel is running.

        Only one caller runs the check-and-start sequence at a time; a caller
        that waited on another sees the tunnel as running.

        Returns:
            Public https URL of a newly started tunnel, or None if a tunnel
            was already running

        Raises:
            TunnelError: If the tunnel could not be started or resolved
        """
        async with self._lock:
            if await self.is_running():
                logger.info("Tunnel already running")
                return None

            logger.info("Starting tunnel", port=self.config.port)
            self.start()
            return await self.wait_for_public_url()

    def start(self) -> int:
        """Launch ngrok for the configured port.

        Returns:
            PID of the launched process
        """
        return self.process.start(self.config.port)

    async def wait_for_public_url(self) -> str:
        """Wait for the launched agent to report an https tunnel.

        Sleeps for the fixed startup delay, then polls the control API until
        the startup timeout runs out.

        Raises:
            NoSecureTunnelError: The last answer listed tunnels, none of them https
            TunnelNotReadyError: The control API never listed a tunnel
        """
        await asyncio.sleep(self.config.startup_delay)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.startup_timeout
        last_error: Exception | None = None

        while True:
            try:
                tunnels = await self.list_tunnels()
            except ControlApiError as e:
                last_error = e
            else:
                url = _first_secure_url(tunnels)
                if url:
                    return url
                last_error = NoSecureTunnelError() if tunnels else None

            if loop.time() >= deadline:
                break
            await asyncio.sleep(self.config.poll_interval)

        if isinstance(last_error, NoSecureTunnelError):
            raise last_error
        reason = last_error or "no tunnels reported"
        raise TunnelNotReadyError(
            f"Tunnel did not become ready within {self.config.startup_timeout}s: {reason}"
        )

    async def resolve_public_url(self) -> str:
        """Get the public URL of the first https tunnel.

        Raises:
            NoSecureTunnelError: If no tunnel uses https
            ControlApiError: If the control API cannot be queried
        """
        url = _first_secure_url(await self.list_tunnels())
        if not url:
            raise NoSecureTunnelError()
        return url

    async def stop(self) -> bool:
        """Ask ngrok to tear down its tunnels.

        Best effort: every failure is ignored.

        Returns:
            True if the control API accepted the request
        """
        try:
            async with self._client() as client:
                stopped = await client.delete_tunnels()
        except ControlApiError as e:
            logger.debug("Tunnel stop skipped", error=e.message)
            return False

        if stopped:
            logger.info("Tunnel stopped")
        return stopped


def _first_secure_url(tunnels: list[TunnelInfo]) -> str | None:
    """Public URL of the first https tunnel that has one."""
    for tunnel in tunnels:
        if tunnel.is_secure and tunnel.public_url:
            return tunnel.public_url
    return None
