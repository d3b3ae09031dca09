"""ngrok tunnel management.

- api: client for the local control API (localhost:4040)
- process: detached agent launcher
- controller: detect / start / resolve / stop
"""

from .api import NgrokApiClient, TunnelInfo
from .controller import TunnelController
from .process import TunnelProcess

__all__ = [
    "NgrokApiClient",
    "TunnelInfo",
    "TunnelController",
    "TunnelProcess",
]
