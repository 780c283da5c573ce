"""Tests for optimistic agent toggles and reload-on-failure."""

import asyncio

import pytest

from spot_switcher.core.exceptions import GatewayError, ValidationError
from spot_switcher.gateway.models import AgentConfig
from spot_switcher.switching.agents import AgentSettingsSync


@pytest.fixture
async def sync(agent_gateway):
    sync = AgentSettingsSync(agent_gateway, "client-42")
    await sync.load()
    agent_gateway.calls.clear()
    return sync


class TestLoad:

    async def test_load_reads_client_agents(self, agent_gateway):
        sync = AgentSettingsSync(agent_gateway, "client-42")

        agents = await sync.load()

        assert [a.id for a in agents] == ["agent-1", "agent-2"]
        assert agent_gateway.calls_to("get_agents") == [("get_agents", "client-42")]
        assert sync.error is None

    async def test_failed_load_keeps_previous_list(self, sync, agent_gateway):
        agent_gateway.failures["get_agents"] = GatewayError("unavailable")

        agents = await sync.load()

        assert [a.id for a in agents] == ["agent-1", "agent-2"]
        assert sync.error == "unavailable"

    async def test_older_load_does_not_overwrite_newer(self, sync, agent_gateway):
        gate = agent_gateway.hold("get_agents", "client-42")
        first = asyncio.ensure_future(sync.load())
        for _ in range(5):
            await asyncio.sleep(0)

        agent_gateway._gates.clear()
        agent_gateway.agents.pop("agent-2")
        await sync.load()
        gate.set()
        await first

        assert [a.id for a in sync.agents] == ["agent-1"]


class TestToggle:

    async def test_accepted_toggle_keeps_optimistic_value(self, sync, agent_gateway):
        accepted = await sync.toggle("agent-1", "enabled", True)

        assert accepted
        assert sync.get("agent-1").enabled is False
        assert sync.unconfirmed == set()
        assert agent_gateway.calls_to("toggle_agent_enabled") == [
            ("toggle_agent_enabled", "agent-1", False)
        ]

    async def test_optimistic_value_is_visible_before_ack(self, sync, agent_gateway):
        gate = agent_gateway.hold("update_agent_settings", "agent-1")

        pending = asyncio.ensure_future(sync.toggle("agent-1", "auto_switch_enabled", True))
        for _ in range(5):
            await asyncio.sleep(0)

        assert sync.get("agent-1").auto_switch_enabled is False
        assert ("agent-1", "auto_switch_enabled") in sync.unconfirmed

        gate.set()
        assert await pending
        assert sync.unconfirmed == set()

    async def test_settings_fields_use_settings_endpoint(self, sync, agent_gateway):
        await sync.toggle("agent-1", "auto_terminate_enabled", False)

        assert agent_gateway.calls_to("update_agent_settings") == [
            ("update_agent_settings", "agent-1", {"auto_terminate_enabled": True})
        ]

    async def test_rejected_toggle_reloads_authoritative_state(self, sync, agent_gateway):
        agent_gateway.failures["toggle_agent_enabled"] = GatewayError("Agent is locked")

        accepted = await sync.toggle("agent-1", "enabled", True)

        assert not accepted
        assert sync.agents == list(agent_gateway.agents.values())
        assert sync.get("agent-1").enabled is True
        assert sync.unconfirmed == set()
        assert len(agent_gateway.calls_to("get_agents")) == 1

    async def test_unexpected_write_fault_also_reloads(self, sync, agent_gateway):
        agent_gateway.failures["toggle_agent_enabled"] = RuntimeError("connection reset")

        accepted = await sync.toggle("agent-1", "enabled", True)

        assert not accepted
        assert sync.get("agent-1").enabled is True
        assert sync.agents == list(agent_gateway.agents.values())
        assert sync.unconfirmed == set()
        assert len(agent_gateway.calls_to("get_agents")) == 1

    async def test_unexpected_load_fault_keeps_previous_list(self, sync, agent_gateway):
        agent_gateway.failures["get_agents"] = RuntimeError("connection reset")

        agents = await sync.load()

        assert [a.id for a in agents] == ["agent-1", "agent-2"]
        assert "connection reset" in sync.error

    async def test_rejection_is_notified(self, agent_gateway):
        messages = []

        class Collect:
            def success(self, message):
                messages.append(("success", message))

            def error(self, message):
                messages.append(("error", message))

        sync = AgentSettingsSync(agent_gateway, "client-42", notifier=Collect())
        await sync.load()
        agent_gateway.failures["update_agent_settings"] = GatewayError("nope")

        await sync.toggle("agent-1", "auto_switch_enabled", True)

        assert messages == [("error", "Failed to update settings: nope")]

    async def test_unknown_field_is_refused(self, sync, agent_gateway):
        with pytest.raises(ValidationError):
            await sync.toggle("agent-1", "status", True)
        assert agent_gateway.calls == []


class TestConfig:

    async def test_config_write_reloads_list(self, sync, agent_gateway):
        saved = await sync.update_config("agent-1", AgentConfig(terminate_wait_minutes=45))

        assert saved
        assert sync.get("agent-1").terminate_wait_minutes == 45
        assert [c[0] for c in agent_gateway.calls] == ["update_agent_config", "get_agents"]

    async def test_failed_config_write_keeps_list(self, sync, agent_gateway):
        agent_gateway.failures["update_agent_config"] = GatewayError("bad config")

        assert not await sync.update_config("agent-1", AgentConfig(terminate_wait_minutes=5))
        assert agent_gateway.calls_to("get_agents") == []
