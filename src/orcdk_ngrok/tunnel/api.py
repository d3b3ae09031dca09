"""HTTP client for the ngrok local control API.

ngrok serves an inspection API on localhost:4040 while it runs. Only the
tunnel listing and deletion endpoints are used here.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from ..config import DEFAULT_API_URL, DEFAULT_REQUEST_TIMEOUT
from ..errors import ControlApiError

TUNNELS_PATH = "/api/tunnels"


@dataclass
class TunnelInfo:
    """One tunnel entry reported by the control API."""

    proto: str
    public_url: str
    name: str | None = None

    @property
    def is_secure(self) -> bool:
        return self.proto == "https"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TunnelInfo":
        return cls(
            proto=str(data.get("proto", "")),
            public_url=str(data.get("public_url", "")),
            name=data.get("name"),
        )


class NgrokApiClient:
    """Async client for the ngrok control API.

    Use as an async context manager.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            base_url: Control API URL (e.g., http://localhost:4040)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "NgrokApiClient":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ControlApiError("Client not initialized. Use 'async with' context.")
        return self._client

    async def _request(self, method: str, path: str) -> httpx.Response:
        """Make a request to the control API.

        Raises:
            ControlApiError: On connection errors, timeouts or HTTP error status
        """
        client = self._ensure_client()
        try:
            response = await client.request(method, path)
            response.raise_for_status()
            return response
        except httpx.ConnectError:
            raise ControlApiError(
                f"Cannot connect to ngrok control API at {self.base_url}. Is ngrok running?"
            )
        except httpx.TimeoutException:
            raise ControlApiError(f"Request timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            raise ControlApiError(
                f"Control API returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise ControlApiError(f"Control API request failed: {e}")

    async def list_tunnels(self) -> list[TunnelInfo]:
        """List tunnels known to the running ngrok agent.

        Returns:
            Tunnel entries in the order the API reports them
        """
        response = await self._request("GET", TUNNELS_PATH)
        try:
            data = response.json()
        except ValueError:
            raise ControlApiError("Control API returned a non-JSON body")

        tunnels = data.get("tunnels") if isinstance(data, dict) else None
        if not isinstance(tunnels, list):
            return []
        return [TunnelInfo.from_dict(t) for t in tunnels if isinstance(t, dict)]

    async def delete_tunnels(self) -> bool:
        """Ask ngrok to tear down its tunnels.

        Returns:
            True if the API accepted the request
        """
        response = await self._request("DELETE", TUNNELS_PATH)
        return response.is_success
