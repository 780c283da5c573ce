"""End-to-end tests for the CLI entry point against an in-memory backend."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from spot_switcher import __version__
from spot_switcher.cli.main import (
    EXIT_BACKEND_ERROR,
    EXIT_COMMAND_REJECTED,
    EXIT_CONFIG_ERROR,
    EXIT_GENERAL_ERROR,
    EXIT_SUCCESS,
    EXIT_USER_CANCELLED,
    main,
)
from spot_switcher.core.config import ConfigManager
from spot_switcher.core.exceptions import GatewayError
from spot_switcher.gateway.models import Decision, Instance


@pytest.fixture
def backend(gateway, agent_gateway):
    gateway.agents = agent_gateway.agents
    gateway.instances = [
        Instance.model_validate({
            "id": "i-1", "type": "m5.large", "az": "us-east-1a", "mode": "spot",
            "poolId": "p1", "spotPrice": "0.30", "onDemandPrice": "1.00",
            "lastSwitch": "2026-10-18T12:00:00",
        }),
    ]
    gateway.decisions = [
        Decision.model_validate({
            "timestamp": "2026-10-19T07:55:00", "instanceId": "i-1", "decision": "stay",
            "confidence": 91, "health": 88, "reason": "Pool p1 is cheapest", "outcome": "success",
        }),
    ]
    return gateway


@pytest.fixture
def cli(backend, config_manager):
    """Invoke the CLI with the in-memory backend and a temp config."""
    runner = CliRunner()

    def invoke(*args, **kwargs):
        with patch("spot_switcher.cli.main.build_gateway", return_value=backend):
            return runner.invoke(main, list(args), obj={"config_manager": config_manager}, **kwargs)

    return invoke


class TestCLIBasics:

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == EXIT_SUCCESS
        assert __version__ in result.output

    def test_help_lists_commands(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == EXIT_SUCCESS
        for command in ("configure", "instances", "inspect", "switch", "agents", "watch"):
            assert command in result.output

    def test_missing_configuration(self, tmp_path, backend):
        manager = ConfigManager(config_dir=tmp_path / "empty")

        with patch("spot_switcher.cli.main.build_gateway", return_value=backend):
            result = CliRunner().invoke(main, ["instances"], obj={"config_manager": manager})

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "No backend configured" in result.output
        assert backend.calls == []

    def test_configure_saves_answers(self, tmp_path, backend):
        manager = ConfigManager(config_dir=tmp_path)

        answers = ["https://optimizer.example.com", "client-9", ""]
        with patch("spot_switcher.cli.interactive.Prompt.ask", side_effect=answers), \
                patch("spot_switcher.cli.main.build_gateway", return_value=backend):
            result = CliRunner().invoke(main, ["configure"], obj={"config_manager": manager})

        assert result.exit_code == EXIT_SUCCESS
        saved = manager.load_config()
        assert saved.client_id == "client-9"
        assert saved.api_token is None
        assert backend.calls_to("health_check") == [("health_check", None)]
        assert "Backend reachable" in result.output

    def test_configure_keeps_config_when_backend_unreachable(self, tmp_path, backend):
        manager = ConfigManager(config_dir=tmp_path)
        backend.failures["health_check"] = GatewayError("Backend unreachable: connection refused")

        answers = ["https://optimizer.example.com", "client-9", ""]
        with patch("spot_switcher.cli.interactive.Prompt.ask", side_effect=answers), \
                patch("spot_switcher.cli.main.build_gateway", return_value=backend):
            result = CliRunner().invoke(main, ["configure"], obj={"config_manager": manager})

        assert result.exit_code == EXIT_SUCCESS
        assert manager.load_config().client_id == "client-9"
        assert "connection refused" in result.output
        assert "Backend reachable" not in result.output


class TestInstances:

    def test_lists_instances_with_filters(self, cli, backend):
        result = cli("instances", "--mode", "spot")

        assert result.exit_code == EXIT_SUCCESS
        assert "i-1" in result.output
        assert backend.calls_to("get_instances") == [
            ("get_instances", "client-42", {"status": "all", "mode": "spot", "search": ""})
        ]

    def test_backend_failure(self, cli, backend):
        backend.failures["get_instances"] = GatewayError("Service unavailable", status_code=503)

        result = cli("instances")

        assert result.exit_code == EXIT_BACKEND_ERROR
        assert "Service unavailable" in result.output


class TestInspect:

    def test_renders_ranked_pools(self, cli):
        result = cli("inspect", "i-1")

        assert result.exit_code == EXIT_SUCCESS
        assert "Spot Pools" in result.output
        assert "Best Price" in result.output
        assert "p2" in result.output

    def test_fallback_panel_is_optional(self, cli):
        assert "Fallback" not in cli("inspect", "i-1").output
        assert "Fallback" in cli("inspect", "i-1", "--show-fallback").output

    def test_missing_history_is_not_an_error(self, cli, backend):
        backend.history["i-1"] = GatewayError("history offline")

        result = cli("inspect", "i-1")

        assert result.exit_code == EXIT_SUCCESS
        assert "No Price History" in result.output
        assert "history offline" in result.output

    def test_failed_load(self, cli, backend):
        backend.metrics["i-1"] = GatewayError("metrics offline")

        result = cli("inspect", "i-1")

        assert result.exit_code == EXIT_BACKEND_ERROR
        assert "metrics offline" in result.output


class TestSwitch:

    def test_switch_to_best_pool(self, cli, backend):
        result = cli("switch", "i-1", "--yes")

        assert result.exit_code == EXIT_SUCCESS
        assert backend.calls_to("force_switch") == [
            ("force_switch", "i-1", {"target": "pool", "pool_id": "p1"})
        ]
        assert "queued" in result.output

    def test_switch_to_named_pool_with_type(self, cli, backend):
        result = cli("switch", "i-1", "--pool", "p2", "--instance-type", "m5.xlarge", "-y")

        assert result.exit_code == EXIT_SUCCESS
        assert backend.calls_to("force_switch") == [
            ("force_switch", "i-1", {"target": "pool", "pool_id": "p2", "instance_type": "m5.xlarge"})
        ]

    def test_switch_to_on_demand_skips_detail_reads(self, cli, backend):
        result = cli("switch", "i-1", "--on-demand", "--yes")

        assert result.exit_code == EXIT_SUCCESS
        assert [c[0] for c in backend.calls] == ["force_switch"]
        assert backend.calls[0][2] == {"target": "ondemand"}

    def test_confirmation_prompt_names_target(self, cli, backend):
        result = cli("switch", "i-1", "--pool", "p2", input="y\n")

        assert result.exit_code == EXIT_SUCCESS
        assert "Force switch to Pool p2?" in result.output
        assert len(backend.calls_to("force_switch")) == 1

    def test_declined_confirmation(self, cli, backend):
        result = cli("switch", "i-1", "--pool", "p2", input="n\n")

        assert result.exit_code == EXIT_USER_CANCELLED
        assert backend.calls_to("force_switch") == []

    def test_pool_not_on_offer(self, cli, backend):
        result = cli("switch", "i-1", "--pool", "p9", "--yes")

        assert result.exit_code == EXIT_GENERAL_ERROR
        assert "p9" in result.output
        assert backend.calls_to("force_switch") == []

    def test_backend_rejection(self, cli, backend):
        backend.failures["force_switch"] = GatewayError("Agent not connected", status_code=409)

        result = cli("switch", "i-1", "--yes")

        assert result.exit_code == EXIT_COMMAND_REJECTED
        assert "Agent not connected" in result.output

    def test_on_demand_excludes_pool(self, cli, backend):
        result = cli("switch", "i-1", "--on-demand", "--pool", "p1")

        assert result.exit_code != EXIT_SUCCESS
        assert "cannot be combined" in result.output
        assert backend.calls == []


class TestAgents:

    def test_list(self, cli):
        result = cli("agents", "list")

        assert result.exit_code == EXIT_SUCCESS
        assert "agent-1" in result.output
        assert "agent-2" in result.output

    def test_toggle_enabled(self, cli, backend):
        result = cli("agents", "toggle", "agent-1")

        assert result.exit_code == EXIT_SUCCESS
        assert backend.calls_to("toggle_agent_enabled") == [
            ("toggle_agent_enabled", "agent-1", False)
        ]
        assert backend.agents["agent-1"].enabled is False

    def test_toggle_auto_terminate(self, cli, backend):
        result = cli("agents", "toggle", "agent-1", "--field", "auto-terminate")

        assert result.exit_code == EXIT_SUCCESS
        assert backend.calls_to("update_agent_settings") == [
            ("update_agent_settings", "agent-1", {"auto_terminate_enabled": True})
        ]

    def test_rejected_toggle(self, cli, backend):
        backend.failures["toggle_agent_enabled"] = GatewayError("Agent is locked")

        result = cli("agents", "toggle", "agent-1")

        assert result.exit_code == EXIT_BACKEND_ERROR
        assert "Failed to update settings" in result.output
        assert backend.agents["agent-1"].enabled is True

    def test_toggle_unknown_agent(self, cli):
        result = cli("agents", "toggle", "agent-404")

        assert result.exit_code == EXIT_GENERAL_ERROR
        assert "agent-404" in result.output

    def test_config(self, cli, backend):
        result = cli("agents", "config", "agent-1", "--terminate-wait-minutes", "30")

        assert result.exit_code == EXIT_SUCCESS
        assert backend.agents["agent-1"].terminate_wait_minutes == 30

    def test_config_out_of_range(self, cli, backend):
        result = cli("agents", "config", "agent-1", "--terminate-wait-minutes", "5000")

        assert result.exit_code == EXIT_GENERAL_ERROR
        assert backend.calls_to("update_agent_config") == []


class TestWatch:

    def test_decisions_dashboard(self, cli, backend):
        result = cli("watch", "decisions", "--interval", "0.01", "--iterations", "2")

        assert result.exit_code == EXIT_SUCCESS
        assert len(backend.calls_to("get_agent_decisions")) >= 2

    def test_health_dashboard(self, cli, backend):
        result = cli("watch", "health", "--interval", "0.01", "--iterations", "1")

        assert result.exit_code == EXIT_SUCCESS
        assert backend.calls_to("get_system_health")

    def test_interval_must_be_positive(self, cli, backend):
        result = cli("watch", "health", "--interval", "0")

        assert result.exit_code != EXIT_SUCCESS
        assert backend.calls == []
