"""Interactive CLI flows and rendering for Spot Switcher."""

import asyncio
from typing import Callable, Dict, List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from spot_switcher.core.config import Config, ConfigManager
from spot_switcher.core.exceptions import (
    ConfigurationError,
    SpotSwitchError,
    UserCancelled,
    ValidationError,
)
from spot_switcher.gateway.base import BackendGateway
from spot_switcher.gateway.models import Agent, AgentConfig, Decision, Instance, SystemHealth
from spot_switcher.switching.agents import AgentSettingsSync
from spot_switcher.switching.dispatcher import (
    ConfirmationProvider,
    Notifier,
    StaticConfirmation,
    SwitchCommandDispatcher,
)
from spot_switcher.switching.models import (
    DetailState,
    DetailView,
    DispatchOutcome,
    DispatchResult,
    SwitchCommand,
)
from spot_switcher.switching.orchestrator import DetailOrchestrator
from spot_switcher.switching.polling import PollingRefresher
from spot_switcher.switching.status import Variant, badge, badge_markup, enabled_badge


class RichConfirmation(ConfirmationProvider):
    """Confirmation through a rich yes/no prompt."""

    def __init__(self, console: Console):
        self.console = console

    def confirm(self, message: str) -> bool:
        return Confirm.ask(message, console=self.console, default=False)


class ConsoleNotifier(Notifier):
    def __init__(self, console: Console):
        self.console = console

    def success(self, message: str) -> None:
        self.console.print(f"✅ [green]{message}[/green]")

    def error(self, message: str) -> None:
        self.console.print(f"❌ [red]{message}[/red]")


def _money(value, precision: int = 4) -> str:
    return f"${value:.{precision}f}"


def _when(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "Never"


def render_detail(
    view: DetailView,
    precision: int = 4,
    show_fallback: bool = False,
    in_flight: Optional[set] = None,
):
    """Build the renderable for one inspected instance."""
    in_flight = in_flight or set()

    if view.state == DetailState.LOADING:
        return Text(f"Loading {view.instance_id}...", style="dim")
    if view.state == DetailState.ERROR:
        return Panel(
            f"[red]{view.error}[/red]\n\n[dim]Run the command again to retry.[/dim]",
            title=f"Instance {view.instance_id}",
            border_style="red",
        )
    if view.state == DetailState.IDLE:
        return Text("No instance selected", style="dim")

    parts = []

    metrics = view.metrics
    metrics_table = Table.grid(padding=(0, 2))
    metrics_table.add_row("Uptime", f"{metrics.uptime_hours}h")
    metrics_table.add_row(
        "Total Switches",
        f"{metrics.total_switches} ({metrics.switches_last_7_days} in last 7 days)",
    )
    metrics_table.add_row(
        "Total Savings",
        f"[green]{_money(metrics.total_savings, 2)}[/green] "
        f"({_money(metrics.savings_last_30_days, 2)} last 30 days)",
    )
    metrics_table.add_row("Spot", _money(metrics.spot_price, precision))
    metrics_table.add_row("On-Demand", _money(metrics.on_demand_price, precision))
    parts.append(Panel(metrics_table, title="Instance Metrics", border_style="blue", expand=False))

    if show_fallback:
        marker = " [yellow](switching...)[/yellow]" if "ondemand" in in_flight else ""
        parts.append(Panel(
            f"[bold]{_money(view.pricing.on_demand.price, precision)}[/bold]  "
            f"Guaranteed availability{marker}",
            title="On-Demand (Fallback)",
            border_style="red",
            expand=False,
        ))

    pools = Table(title=f"Spot Pools ({len(view.ranked)})")
    pools.add_column("#", justify="right")
    pools.add_column("Pool")
    pools.add_column("Price", justify="right")
    pools.add_column("Savings", justify="right")
    pools.add_column("Per Hour", justify="right")
    pools.add_column("")
    for option in view.ranked:
        notes = []
        if option.best_price:
            notes.append(badge_markup((Variant.SUCCESS, "Best Price")))
        if option.pool.id in in_flight:
            notes.append("[yellow]switching...[/yellow]")
        pools.add_row(
            str(option.rank + 1),
            option.pool.id,
            _money(option.pool.price, precision),
            f"{option.savings_percent:.1f}%",
            f"{_money(option.savings_per_hour, precision)}/hr",
            " ".join(notes),
        )
    parts.append(pools)

    options = view.options
    if options and options.instance_types:
        types = ", ".join(
            f"[bold]{t}[/bold] (current)" if t == options.current_instance_type else t
            for t in options.instance_types
        )
        parts.append(Text.from_markup(f"Instance types: {types}"))

    if view.history:
        lowest = min(point.min_price for point in view.history)
        highest = max(point.max_price for point in view.history)
        latest = view.history[-1]
        parts.append(Panel(
            f"{len(view.history)} points  "
            f"low {_money(lowest, precision)}  high {_money(highest, precision)}  "
            f"latest avg {_money(latest.avg_price, precision)} ({latest.time})",
            title="Price History",
            border_style="blue",
            expand=False,
        ))
    else:
        reason = "Price history data is not available for this instance"
        if view.history_error is not None:
            reason = view.history_error.message
        parts.append(Panel(
            Text(reason, style="dim"),
            title="No Price History",
            border_style="dim",
            expand=False,
        ))

    return Group(*parts)


def render_instances(instances: List[Instance], precision: int = 4) -> Table:
    table = Table(title=f"Instances ({len(instances)})")
    for column in ("Instance", "Type", "AZ", "Mode", "Pool", "Price", "Savings", "Last Switch"):
        table.add_column(column)
    for inst in instances:
        table.add_row(
            inst.id,
            inst.type,
            inst.availability_zone or "-",
            badge_markup(badge(inst.mode)),
            inst.pool_id or "-",
            _money(inst.spot_price, precision),
            f"{inst.savings_percent:.1f}%",
            _when(inst.last_switch),
        )
    return table


def render_agents(agents: List[Agent], unconfirmed: Optional[set] = None) -> Table:
    unconfirmed = unconfirmed or set()
    table = Table(title=f"Agents ({len(agents)} Total)")
    for column in ("Agent", "Status", "Last Heartbeat", "Instances", "State",
                   "Auto Switch", "Auto Terminate", "Terminate Wait"):
        table.add_column(column)

    def flag(agent: Agent, field: str) -> str:
        value = "on" if getattr(agent, field) else "off"
        return f"{value}*" if (agent.id, field) in unconfirmed else value

    for agent in agents:
        table.add_row(
            agent.id,
            badge_markup(badge(agent.status)),
            _when(agent.last_heartbeat),
            str(agent.instance_count),
            badge_markup(enabled_badge(agent.enabled)),
            flag(agent, "auto_switch_enabled"),
            flag(agent, "auto_terminate_enabled"),
            f"{agent.terminate_wait_minutes} min" if agent.terminate_wait_minutes is not None else "-",
        )
    return table


def render_decisions(decisions: List[Decision]) -> Table:
    table = Table(title=f"Agent Decisions ({len(decisions)})")
    for column in ("Time", "Instance", "Decision", "Confidence", "Health", "Outcome", "Reason"):
        table.add_column(column)
    for decision in decisions:
        table.add_row(
            _when(decision.timestamp),
            decision.instance_id,
            decision.decision,
            f"{decision.confidence:.0f}%",
            f"{decision.health:.0f}%",
            badge_markup(badge(decision.outcome)),
            decision.reason,
        )
    return table


def render_health(health: SystemHealth):
    engine = health.decision_engine_status
    models = health.model_status
    engine_state = "[green]Running[/green]" if engine.loaded else "[red]Not Loaded[/red]"
    model_state = "[green]Loaded[/green]" if models.loaded else "[yellow]Not Loaded[/yellow]"

    engine_panel = Panel(
        f"{engine_state}\nType: {engine.type or 'ML-Based'}\nVersion: {engine.version or 'v1.0.0'}",
        title="Decision Engine",
        expand=False,
    )
    if models.active_models:
        active = "\n".join(f"• {m.name} v{m.version or '?'}" for m in models.active_models)
    else:
        active = "[dim]No active models loaded[/dim]"
    model_panel = Panel(
        f"{model_state}\nFiles uploaded: {models.files_uploaded}\n{active}",
        title="ML Models",
        expand=False,
    )
    return Group(engine_panel, model_panel)


class InteractiveFlow:
    """Handles interactive CLI flows for Spot Switcher."""

    def __init__(self, console: Console, config_manager: ConfigManager):
        """Initialize interactive flow.

        Args:
            console: Rich console for output
            config_manager: Configuration manager instance
        """
        self.console = console
        self.config_manager = config_manager

    def setup_config(self) -> Config:
        """Guide the operator through backend configuration."""
        self.console.print("🔧 [bold]Spot Switcher Setup[/bold]")
        self.console.print("━" * 30)
        existing = None
        try:
            existing = self.config_manager.load_config()
        except ValueError:
            self.console.print("[yellow]Existing configuration is invalid and will be replaced.[/yellow]")

        while True:
            api_url = Prompt.ask(
                "Backend URL",
                console=self.console,
                default=existing.api_base_url if existing else None,
            )
            client_id = Prompt.ask(
                "Client ID",
                console=self.console,
                default=existing.client_id if existing else None,
            )
            api_token = Prompt.ask(
                "API token (leave empty for none)", console=self.console, default="", password=True
            )

            try:
                config = Config(
                    api_base_url=api_url or "",
                    client_id=client_id or "",
                    api_token=api_token or None,
                )
            except ValueError as e:
                self.console.print(f"❌ [red]{e}[/red]")
                if not Confirm.ask("Try again?", console=self.console, default=True):
                    raise ConfigurationError("Setup aborted")
                continue

            self.config_manager.save_config(config)
            self.console.print("✅ [green]Configuration saved![/green]")
            self.console.print(f"[dim]{self.config_manager.get_config_path()}[/dim]")
            return config

    async def check_connectivity(self, gateway: BackendGateway) -> bool:
        """Call the backend health endpoint once; a failure only warns."""
        try:
            await gateway.health_check()
        except SpotSwitchError as e:
            self.console.print(f"⚠️  [yellow]Backend not reachable: {e.message}[/yellow]")
            self.console.print("[dim]The configuration was kept; check the URL and token.[/dim]")
            return False
        self.console.print("✅ [green]Backend reachable[/green]")
        return True

    async def list_instances(
        self, gateway: BackendGateway, config: Config, filters: Dict[str, str]
    ) -> List[Instance]:
        instances = await gateway.get_instances(config.client_id, filters)
        if not instances:
            self.console.print("[dim]No instances match your filter criteria[/dim]")
        else:
            self.console.print(render_instances(instances, config.price_precision))
        return instances

    def _orchestrator(self, gateway: BackendGateway, config: Config) -> DetailOrchestrator:
        return DetailOrchestrator(
            gateway,
            history_days=config.history_days,
            history_interval=config.history_interval,
            price_precision=config.price_precision,
        )

    async def inspect(
        self, gateway: BackendGateway, config: Config, instance_id: str, show_fallback: bool = False
    ) -> DetailView:
        """Load and render one instance's placement details."""
        orchestrator = self._orchestrator(gateway, config)
        with self.console.status(f"Loading {instance_id}..."):
            await orchestrator.open(instance_id)
        view = orchestrator.view
        self.console.print(render_detail(view, config.price_precision, show_fallback))
        return view

    async def switch(
        self,
        gateway: BackendGateway,
        config: Config,
        instance_id: str,
        pool_id: Optional[str] = None,
        on_demand: bool = False,
        instance_type: Optional[str] = None,
        assume_yes: bool = False,
    ) -> DispatchResult:
        """Confirm and queue a force switch.

        Pool switches are checked against the instance's available options
        before anything is sent.

        Raises:
            ValidationError: If the target is not on offer
            UserCancelled: If the operator declines the confirmation
        """
        orchestrator = self._orchestrator(gateway, config)

        if on_demand:
            command = SwitchCommand.to_on_demand()
        else:
            with self.console.status(f"Loading {instance_id}..."):
                view = await orchestrator.open(instance_id)
            if view is None or view.state != DetailState.READY:
                raise ValidationError(
                    f"Cannot load switch options for {instance_id}: "
                    f"{orchestrator.view.error or 'load superseded'}"
                )
            command = SwitchCommand.from_selection(view.options, pool_id, instance_type)

        confirmation: ConfirmationProvider = (
            StaticConfirmation(True) if assume_yes else RichConfirmation(self.console)
        )
        dispatcher = SwitchCommandDispatcher(
            gateway,
            confirmation,
            notifier=ConsoleNotifier(self.console),
            on_queued=lambda _result: orchestrator.close(),
        )
        result = await dispatcher.confirm_and_dispatch(instance_id, command)
        if result.outcome == DispatchOutcome.DECLINED:
            raise UserCancelled("Switch cancelled")
        return result

    async def show_agents(self, gateway: BackendGateway, config: Config) -> AgentSettingsSync:
        sync = AgentSettingsSync(gateway, config.client_id, ConsoleNotifier(self.console))
        await sync.load()
        self._print_agents(sync)
        return sync

    async def toggle_agent(
        self, gateway: BackendGateway, config: Config, agent_id: str, field: str
    ) -> bool:
        """Flip one agent flag and show the reconciled list."""
        sync = AgentSettingsSync(gateway, config.client_id, ConsoleNotifier(self.console))
        await sync.load()
        if sync.error:
            self.console.print(f"❌ [red]{sync.error}[/red]")
            return False

        agent = sync.get(agent_id)
        if agent is None:
            raise ValidationError(f"Agent {agent_id} not found for client {config.client_id}")

        accepted = await sync.toggle(agent_id, field, getattr(agent, field))
        self._print_agents(sync)
        return accepted

    async def configure_agent(
        self, gateway: BackendGateway, config: Config, agent_id: str, terminate_wait_minutes: int
    ) -> bool:
        try:
            agent_config = AgentConfig(terminate_wait_minutes=terminate_wait_minutes)
        except ValueError as e:
            raise ValidationError(f"Invalid agent configuration: {e}")

        sync = AgentSettingsSync(gateway, config.client_id, ConsoleNotifier(self.console))
        saved = await sync.update_config(agent_id, agent_config)
        if saved:
            self._print_agents(sync)
        return saved

    def _print_agents(self, sync: AgentSettingsSync) -> None:
        if sync.error and not sync.agents:
            self.console.print(f"❌ [red]{sync.error}[/red]")
        elif not sync.agents:
            self.console.print("[dim]No agents are registered for this client[/dim]")
        else:
            self.console.print(render_agents(sync.agents, sync.unconfirmed))

    async def watch(
        self,
        gateway: BackendGateway,
        config: Config,
        kind: str,
        interval: Optional[float] = None,
        iterations: Optional[int] = None,
    ) -> int:
        """Live dashboard refreshed by a PollingRefresher.

        Runs until ``iterations`` ticks have completed, or until interrupted.

        Returns:
            Number of refreshes applied
        """
        if kind == "decisions":
            fetch = lambda: gateway.get_agent_decisions(config.client_id)
            render: Callable = render_decisions
        elif kind == "health":
            fetch = gateway.get_system_health
            render = render_health
        else:
            raise ValidationError(f"Unknown dashboard: {kind}")

        done = asyncio.Event()
        completed = 0
        applied = 0

        async def counted_fetch():
            nonlocal completed
            try:
                return await fetch()
            finally:
                completed += 1
                if iterations is not None and completed >= iterations:
                    done.set()

        with Live(Text("Loading...", style="dim"), console=self.console, refresh_per_second=4) as live:

            def apply(data) -> None:
                nonlocal applied
                applied += 1
                live.update(render(data))

            def on_error(error: Exception) -> None:
                self.console.print(f"⚠️  [yellow]Refresh failed: {error}[/yellow]")

            refresher = PollingRefresher(
                counted_fetch,
                apply,
                interval=interval or config.poll_interval_seconds,
                on_error=on_error,
                name=kind,
            )
            async with refresher:
                await done.wait()

        return applied
