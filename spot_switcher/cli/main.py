"""
Main CLI entry point for Spot Switcher.

Provides the ``spot-switcher`` command group.
"""

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from spot_switcher import __version__
from spot_switcher.core.config import Config, ConfigManager
from spot_switcher.cli.interactive import InteractiveFlow
from spot_switcher.core.exceptions import (
    CommandRejected,
    ConfigurationError,
    GatewayError,
    SpotSwitchError,
    UserCancelled,
    ValidationError,
)
from spot_switcher.gateway.base import BackendGateway
from spot_switcher.gateway.http import HttpBackendGateway
from spot_switcher.switching.models import DispatchOutcome


console = Console()

# Exit codes for different error types
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_BACKEND_ERROR = 4
EXIT_COMMAND_REJECTED = 5
EXIT_USER_CANCELLED = 130

FIELD_ALIASES = {
    "enabled": "enabled",
    "auto-switch": "auto_switch_enabled",
    "auto-terminate": "auto_terminate_enabled",
}


def configure_logging(verbose: bool) -> None:
    """Send log records through rich; DEBUG when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


def build_gateway(config: Config) -> BackendGateway:
    return HttpBackendGateway.from_config(config)


def _require_config(config_manager: ConfigManager) -> Config:
    try:
        config = config_manager.resolve_config()
    except ValueError as e:
        raise ConfigurationError(str(e))
    if config is None:
        raise ConfigurationError(
            "No backend configured. Run 'spot-switcher configure' first."
        )
    return config


def run_with_gateway(ctx: click.Context, flow: Callable[[InteractiveFlow, BackendGateway, Config], Awaitable]):
    """Resolve config, open a gateway, run ``flow`` and map errors to exit codes."""
    try:
        config_manager = ctx.obj["config_manager"]
        interactive_flow = InteractiveFlow(console, config_manager)
        config = _require_config(config_manager)

        async def runner():
            gateway = build_gateway(config)
            try:
                return await flow(interactive_flow, gateway, config)
            finally:
                await gateway.aclose()

        return asyncio.run(runner())

    except (KeyboardInterrupt, UserCancelled):
        console.print("\n⚠️  [yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except ConfigurationError as e:
        console.print(f"❌ [red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except ValidationError as e:
        console.print(f"❌ [red]{e}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)
    except GatewayError as e:
        console.print(f"❌ [red]Backend error: {e}[/red]")
        sys.exit(EXIT_BACKEND_ERROR)
    except CommandRejected as e:
        console.print(f"❌ [red]{e}[/red]")
        sys.exit(EXIT_COMMAND_REJECTED)
    except SpotSwitchError as e:
        console.print(f"❌ [red]{e}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)
    except Exception as e:
        console.print(f"💥 [red]Unexpected error: {e}[/red]")
        console.print("[dim]Please report this issue with the full error message.[/dim]")
        sys.exit(EXIT_GENERAL_ERROR)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool = False) -> None:
    """
    🔀 Spot Switcher - Spot placement control

    Inspect where an instance runs and queue a switch to a cheaper spot pool
    or to on-demand.
    """
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("config_manager", ConfigManager())


@main.command()
@click.pass_context
def configure(ctx: click.Context) -> None:
    """Set the backend URL, client ID and API token."""
    try:
        interactive_flow = InteractiveFlow(console, ctx.obj["config_manager"])
        config = interactive_flow.setup_config()

        async def runner():
            gateway = build_gateway(config)
            try:
                return await interactive_flow.check_connectivity(gateway)
            finally:
                await gateway.aclose()

        asyncio.run(runner())
    except (KeyboardInterrupt, UserCancelled):
        console.print("\n⚠️  [yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except ConfigurationError as e:
        console.print(f"❌ [red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except OSError as e:
        console.print(f"❌ [red]{e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)


@main.command()
@click.option("--status", default="all", help="Filter by status (active, terminated)")
@click.option("--mode", default="all", help="Filter by mode (spot, ondemand)")
@click.option("--search", default="", help="Search instance ids")
@click.pass_context
def instances(ctx: click.Context, status: str, mode: str, search: str) -> None:
    """List the client's instances."""
    filters = {"status": status, "mode": mode, "search": search}
    run_with_gateway(ctx, lambda flow, gateway, config: flow.list_instances(gateway, config, filters))


@main.command()
@click.argument("instance_id")
@click.option("--show-fallback", is_flag=True, help="Show the on-demand fallback option")
@click.pass_context
def inspect(ctx: click.Context, instance_id: str, show_fallback: bool) -> None:
    """Show pricing, ranked pools, metrics and price history for an instance."""
    view = run_with_gateway(
        ctx, lambda flow, gateway, config: flow.inspect(gateway, config, instance_id, show_fallback)
    )
    if view is not None and view.error:
        sys.exit(EXIT_BACKEND_ERROR)


@main.command()
@click.argument("instance_id")
@click.option("--pool", "pool_id", help="Target spot pool id (defaults to the best offered pool)")
@click.option("--on-demand", is_flag=True, help="Switch to on-demand")
@click.option("--instance-type", help="Change the instance type with a pool switch")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def switch(
    ctx: click.Context,
    instance_id: str,
    pool_id: Optional[str],
    on_demand: bool,
    instance_type: Optional[str],
    assume_yes: bool,
) -> None:
    """Queue a force switch for an instance."""
    if on_demand and (pool_id or instance_type):
        raise click.UsageError("--on-demand cannot be combined with --pool or --instance-type")

    result = run_with_gateway(
        ctx,
        lambda flow, gateway, config: flow.switch(
            gateway, config, instance_id,
            pool_id=pool_id, on_demand=on_demand, instance_type=instance_type,
            assume_yes=assume_yes,
        ),
    )
    if result is not None and result.outcome in (DispatchOutcome.CONFLICT, DispatchOutcome.REJECTED):
        sys.exit(EXIT_COMMAND_REJECTED)


@main.group()
def agents() -> None:
    """Manage the client's agents."""


@agents.command("list")
@click.pass_context
def agents_list(ctx: click.Context) -> None:
    """List agents with their status and settings."""
    run_with_gateway(ctx, lambda flow, gateway, config: flow.show_agents(gateway, config))


@agents.command("toggle")
@click.argument("agent_id")
@click.option(
    "--field",
    type=click.Choice(sorted(FIELD_ALIASES)),
    default="enabled",
    show_default=True,
    help="Setting to flip",
)
@click.pass_context
def agents_toggle(ctx: click.Context, agent_id: str, field: str) -> None:
    """Flip an agent setting."""
    field_name = FIELD_ALIASES[field]
    accepted = run_with_gateway(
        ctx, lambda flow, gateway, config: flow.toggle_agent(gateway, config, agent_id, field_name)
    )
    if not accepted:
        sys.exit(EXIT_BACKEND_ERROR)


@agents.command("config")
@click.argument("agent_id")
@click.option(
    "--terminate-wait-minutes",
    type=int,
    required=True,
    help="Minutes to wait before terminating the replaced instance",
)
@click.pass_context
def agents_config(ctx: click.Context, agent_id: str, terminate_wait_minutes: int) -> None:
    """Write an agent's configuration."""
    saved = run_with_gateway(
        ctx,
        lambda flow, gateway, config: flow.configure_agent(
            gateway, config, agent_id, terminate_wait_minutes
        ),
    )
    if not saved:
        sys.exit(EXIT_BACKEND_ERROR)


@main.command()
@click.argument("dashboard", type=click.Choice(["decisions", "health"]))
@click.option("--interval", type=float, help="Seconds between refreshes (default from config)")
@click.option("--iterations", type=int, help="Stop after this many refreshes")
@click.pass_context
def watch(ctx: click.Context, dashboard: str, interval: Optional[float], iterations: Optional[int]) -> None:
    """Live view of agent decisions or system health."""
    if interval is not None and interval <= 0:
        raise click.BadParameter("must be positive", param_hint="--interval")
    run_with_gateway(
        ctx,
        lambda flow, gateway, config: flow.watch(gateway, config, dashboard, interval, iterations),
    )


if __name__ == "__main__":
    main()
