"""NgrokPlugin - local development tunnel for orchestrated stacks.

Listens to the orchestrator's lifecycle events:
- Before a stack deploys, starts an ngrok tunnel if the active environment is
  local and the stack is enabled, then writes the public URL to the
  environment's .env file
- Logs plugin errors reported on the bus
"""

from __future__ import annotations

from typing import Any

import httpx

from .config import NgrokConfig, OrcdkConfig, PluginConfig, get_active_environment, load_ngrok_config
from .envfile import EnvFileWriter
from .errors import TunnelError
from .events import Event, EventBus, EventDispatcher, EventTypes, Subscription
from .shared.logging import get_logger
from .tunnel.controller import TunnelController
from .tunnel.process import TunnelProcess

logger = get_logger(__name__)

SETUP_CONTEXT = "ngrok:setup"


class NgrokPlugin:
    """Orchestrator plugin managing an ngrok tunnel for local stacks."""

    name = "@orcdkestrator/orcdk-plugin-ngrok"
    version = "1.0.0"

    def __init__(
        self,
        process: TunnelProcess | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the plugin.

        Args:
            process: ngrok process launcher (defaults to the configured binary)
            transport: Optional httpx transport for the control API client
        """
        self.plugin_config: PluginConfig | None = None
        self.orcdk_config: OrcdkConfig | None = None
        self.config: NgrokConfig | None = None
        self.controller: TunnelController | None = None
        self.env_file: EnvFileWriter | None = None
        self.dispatcher: EventDispatcher | None = None
        self._process = process
        self._transport = transport
        self._subscriptions: list[Subscription] = []

    async def initialize(
        self,
        plugin_config: PluginConfig,
        orcdk_config: OrcdkConfig,
        dispatcher: EventDispatcher | None = None,
    ) -> None:
        """Initialize plugin with configuration and subscribe to events.

        Args:
            plugin_config: This plugin's entry from the orchestrator config
            orcdk_config: Orchestrator configuration (environment topology)
            dispatcher: Event dispatcher; defaults to the process-wide EventBus

        Raises:
            ConfigurationError: If the plugin options are invalid
        """
        self.plugin_config = plugin_config
        self.orcdk_config = orcdk_config
        self.config = load_ngrok_config(plugin_config.config)
        self.controller = TunnelController(
            self.config, process=self._process, transport=self._transport
        )
        self.env_file = EnvFileWriter(self.config.env_file_path)
        self.dispatcher = dispatcher or EventBus.get_instance()

        logger.debug(
            "ngrok plugin initialized",
            port=self.config.port,
            enabled_stacks=sorted(self.config.enabled_stacks),
            env_file=str(self.config.env_file_path),
        )
        self._subscribe()

    def _subscribe(self) -> None:
        if not self.dispatcher:
            return
        self._subscriptions = [
            self.dispatcher.subscribe(EventTypes.BEFORE_STACK_DEPLOY, self._on_before_stack_deploy),
            self.dispatcher.subscribe(EventTypes.PLUGIN_ERROR, self._on_plugin_error),
        ]

    async def _on_before_stack_deploy(self, event: Event) -> None:
        stack_name = event.data.get("stackName")
        if not stack_name:
            return

        try:
            await self.setup_for_stack(stack_name)
        except TunnelError as e:
            logger.warning("Tunnel setup failed", stack=stack_name)
            if self.dispatcher:
                await self.dispatcher.emit(
                    EventTypes.PLUGIN_ERROR,
                    {"error": e, "context": SETUP_CONTEXT},
                    source=self.name,
                )

    def _on_plugin_error(self, event: Event) -> None:
        error: Any = event.data.get("error")
        context = event.data.get("context", "unknown")
        logger.error(f"Error in {context}", context=context, error=str(error))

    def should_setup(self, stack_name: str) -> bool:
        """Decide whether a stack needs the tunnel.

        Requires an active environment that is marked local and a stack that
        is enabled in the plugin config.
        """
        if not self.orcdk_config or not self.config:
            return False

        environment = get_active_environment()
        if not environment:
            return False

        if not self.orcdk_config.is_local(environment):
            return False

        return stack_name in self.config.enabled_stacks

    async def setup_for_stack(self, stack_name: str) -> bool:
        """Set up the tunnel for a stack that requires it.

        Returns:
            True if tunnel setup ran, False if the stack does not need it

        Raises:
            TunnelError: If the tunnel could not be started or resolved
        """
        if not self.should_setup(stack_name):
            logger.debug("Skipping tunnel setup", stack=stack_name)
            return False

        logger.info("Setting up tunnel for stack", stack=stack_name)
        await self.setup_tunnel()
        return True

    async def setup_tunnel(self) -> str | None:
        """Start the tunnel if needed and publish its URL to the env file.

        Returns:
            Public URL written to the env file, or None if a tunnel was
            already running
        """
        if not self.controller or not self.config or not self.env_file:
            return None

        url = await self.controller.ensure_active()
        if url is None:
            return None

        self.env_file.set(self.config.env_key, url)
        logger.info("Tunnel established", url=url, env_file=str(self.config.env_file_path))
        return url

    async def stop_tunnel(self) -> None:
        """Stop the tunnel. Never raises."""
        if self.controller:
            await self.controller.stop()

    async def cleanup(self) -> None:
        """Stop the tunnel and drop this plugin's event subscriptions."""
        await self.stop_tunnel()

        if self.dispatcher:
            for subscription in self._subscriptions:
                self.dispatcher.unsubscribe(subscription)
        self._subscriptions = []
