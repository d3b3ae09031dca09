"""CLI main entry point.

Developer commands for inspecting and driving the same tunnel the plugin
manages, outside of an orchestrator run.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from . import __version__
from .config import (
    DEFAULT_ENV_KEY,
    ENVIRONMENT_VAR,
    OrcdkConfig,
    find_plugin_config,
    get_active_environment,
    load_ngrok_config,
    load_orcdk_config,
)
from .envfile import read_env_var, upsert_env_var
from .errors import ConfigurationError, ControlApiError, TunnelError
from .plugin import NgrokPlugin
from .shared.logging import configure_logging
from .tunnel.controller import TunnelController

LOG_LEVELS = {0: "warning", 1: "info"}


@click.group()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Orchestrator config file (YAML or JSON)",
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--api-url", type=str, help="ngrok control API URL")
@click.version_option(__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    verbose: int,
    json_output: bool,
    api_url: str | None,
) -> None:
    """Manage the local ngrok development tunnel."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["json_output"] = json_output
    ctx.obj["api_url"] = api_url
    configure_logging(level=LOG_LEVELS.get(verbose, "debug"))


def _plugin_options(ctx: click.Context) -> dict[str, Any]:
    """Plugin options from the orchestrator config file, if one was given."""
    config_path = ctx.obj.get("config_path")
    if not config_path:
        return {}
    plugin = find_plugin_config(config_path, NgrokPlugin.name)
    return dict(plugin.config) if plugin else {}


def _controller(ctx: click.Context, **overrides: Any) -> TunnelController:
    try:
        options = _plugin_options(ctx)
        if ctx.obj.get("api_url"):
            options["apiUrl"] = ctx.obj["api_url"]
        options.update({k: v for k, v in overrides.items() if v is not None})
        config = load_ngrok_config(options)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return TunnelController(config)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show tunnels reported by the ngrok control API."""
    controller = _controller(ctx)
    try:
        tunnels = asyncio.run(controller.list_tunnels())
    except ControlApiError as e:
        if ctx.obj["json_output"]:
            click.echo(json.dumps({"running": False, "tunnels": []}))
        else:
            click.echo(f"ngrok is not running ({e.message})")
        return

    if ctx.obj["json_output"]:
        data = {
            "running": bool(tunnels),
            "tunnels": [{"proto": t.proto, "public_url": t.public_url} for t in tunnels],
        }
        click.echo(json.dumps(data, indent=2))
        return

    if not tunnels:
        click.echo("ngrok is running with no tunnels")
        return
    for tunnel in tunnels:
        click.echo(f"{tunnel.proto:6} {tunnel.public_url}")


@cli.command()
@click.option("--port", type=int, help="Local port to expose")
@click.option("--env-file", type=click.Path(path_type=Path), help="Env file to update")
@click.option("--key", default=DEFAULT_ENV_KEY, show_default=True, help="Variable to set")
@click.pass_context
def up(ctx: click.Context, port: int | None, env_file: Path | None, key: str) -> None:
    """Start a tunnel unless one is running, and record its URL."""
    controller = _controller(ctx, port=port, envFile=env_file, envKey=key)
    config = controller.config
    try:
        url = asyncio.run(controller.ensure_active())
    except TunnelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if url is None:
        click.echo("Tunnel already running")
        current = read_env_var(config.env_file_path, config.env_key)
        if current:
            click.echo(f"{config.env_key}={current} ({config.env_file_path})")
        return

    upsert_env_var(config.env_file_path, config.env_key, url)
    click.echo(f"Tunnel established: {url}")
    click.echo(f"Wrote {config.env_key} to {config.env_file_path}")


@cli.command()
@click.pass_context
def down(ctx: click.Context) -> None:
    """Stop the tunnel (best effort)."""
    controller = _controller(ctx)
    if asyncio.run(controller.stop()):
        click.echo("Tunnel stopped")
    else:
        click.echo("No tunnel to stop")


@cli.command()
@click.argument("stack")
@click.pass_context
def check(ctx: click.Context, stack: str) -> None:
    """Tell whether deploying STACK would set up the tunnel."""
    config_path = ctx.obj.get("config_path")
    try:
        orcdk_config = load_orcdk_config(config_path) if config_path else OrcdkConfig()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    plugin = NgrokPlugin()
    plugin.orcdk_config = orcdk_config
    try:
        plugin.config = load_ngrok_config(_plugin_options(ctx))
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    environment = get_active_environment()
    required = plugin.should_setup(stack)

    if ctx.obj["json_output"]:
        click.echo(json.dumps({"stack": stack, "environment": environment, "tunnel": required}))
        return

    if required:
        click.echo(f"Deploying {stack} in {environment} starts the tunnel")
    elif not environment:
        click.echo(f"{ENVIRONMENT_VAR} is not set; no tunnel")
    else:
        click.echo(f"Deploying {stack} in {environment} does not need the tunnel")


@cli.command("set-env")
@click.argument("key")
@click.argument("value")
@click.option(
    "--env-file",
    type=click.Path(path_type=Path),
    required=True,
    help="Env file to update",
)
def set_env(key: str, value: str, env_file: Path) -> None:
    """Set KEY=VALUE in an env file, keeping other lines."""
    try:
        upsert_env_var(env_file, key, value)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Set {key} in {env_file}")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
