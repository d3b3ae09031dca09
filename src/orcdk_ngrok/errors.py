"""Exceptions raised by the ngrok plugin.

Environment mismatches (no active environment, cloud environment, stack not
enabled) are not errors and never raise. Only tunnel setup failures surface
as exceptions; stop and cleanup paths swallow everything.
"""


class NgrokPluginError(Exception):
    """Base error for the ngrok plugin."""


class ConfigurationError(NgrokPluginError):
    """Plugin or host configuration is invalid."""


class TunnelError(NgrokPluginError):
    """Base error for tunnel setup failures."""


class ControlApiError(TunnelError):
    """The ngrok local control API could not be queried."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class TunnelStartError(TunnelError):
    """The ngrok process could not be launched."""


class NoSecureTunnelError(TunnelError):
    """The control API reported no tunnel with the https protocol."""

    def __init__(self, message: str = "No HTTPS tunnel found"):
        super().__init__(message)


class TunnelNotReadyError(TunnelError):
    """The tunnel did not register with the control API within the timeout."""
