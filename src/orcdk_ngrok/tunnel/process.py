"""Launcher for the ngrok agent process.

The agent is started in its own session with stdio discarded so it outlives
the orchestrator. The handle is kept only to answer liveness queries;
teardown goes through the control API, never through signals.
"""

import subprocess

from ..config import DEFAULT_BINARY
from ..errors import TunnelStartError
from ..shared.logging import get_logger

logger = get_logger(__name__)


class TunnelProcess:
    """Detached `ngrok http <port>` process."""

    def __init__(self, binary: str = DEFAULT_BINARY):
        self.binary = binary
        self._process: subprocess.Popen[bytes] | None = None

    def build_command(self, port: int) -> list[str]:
        return [self.binary, "http", str(port)]

    def start(self, port: int) -> int:
        """Launch the agent for a local port.

        Args:
            port: Local port to expose

        Returns:
            PID of the launched process

        Raises:
            TunnelStartError: If the binary is missing or cannot be executed
        """
        command = self.build_command(port)
        logger.info("Launching ngrok", command=" ".join(command))
        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except FileNotFoundError:
            raise TunnelStartError(
                f"ngrok binary not found: {self.binary}. Is ngrok installed and on PATH?"
            )
        except OSError as e:
            raise TunnelStartError(f"Failed to launch ngrok: {e}") from e

        logger.debug("ngrok launched", pid=self._process.pid)
        return self._process.pid

    @property
    def is_alive(self) -> bool:
        """Whether the launched process is still running."""
        if self._process is None:
            return False
        return self._process.poll() is None

    @property
    def pid(self) -> int | None:
        """PID of the launched process, if one was launched."""
        if self._process is None:
            return None
        return self._process.pid
