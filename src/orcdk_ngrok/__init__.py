"""orcdk-ngrok - ngrok development tunnel plugin for the orcdk orchestrator."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("orcdk-plugin-ngrok")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .plugin import NgrokPlugin

# Orchestrator loads plugins through the module's default export
default = NgrokPlugin

__all__ = ["NgrokPlugin", "__version__"]
