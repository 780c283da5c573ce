"""
Pytest configuration and shared fixtures for Spot Switcher tests.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

from spot_switcher.core.config import (
    ENV_API_TOKEN,
    ENV_API_URL,
    ENV_CLIENT_ID,
    Config,
    ConfigManager,
)
from spot_switcher.core.exceptions import GatewayError
from spot_switcher.gateway.base import BackendGateway
from spot_switcher.gateway.models import (
    Agent,
    AgentConfig,
    AvailableOptions,
    Decision,
    Instance,
    MetricsSnapshot,
    PriceHistoryPoint,
    PricingSnapshot,
    SystemHealth,
)


class FakeGateway(BackendGateway):
    """In-memory backend.

    Responses are looked up per instance id. A stored exception is raised
    instead of returned. ``hold(method, key)`` returns an Event the call will
    wait on, which lets a test decide the order responses arrive in.
    """

    def __init__(self):
        self.pricing: Dict[str, Any] = {}
        self.metrics: Dict[str, Any] = {}
        self.options: Dict[str, Any] = {}
        self.history: Dict[str, Any] = {}
        self.instances: List[Instance] = []
        self.agents: Dict[str, Agent] = {}
        self.decisions: List[Decision] = []
        self.health = SystemHealth()
        self.failures: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self._gates: Dict[tuple, asyncio.Event] = {}

    def hold(self, method: str, key: Optional[str] = None) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[(method, key)] = gate
        return gate

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    async def _respond(self, method: str, key: Optional[str], value: Any = None, *args) -> Any:
        self.calls.append((method, key, *args))
        gate = self._gates.get((method, key))
        if gate is not None:
            await gate.wait()
        if method in self.failures:
            raise self.failures[method]
        if isinstance(value, Exception):
            raise value
        return value

    def _lookup(self, store: Dict[str, Any], instance_id: str, what: str) -> Any:
        if instance_id not in store:
            return GatewayError(f"No {what} for {instance_id}", status_code=404)
        return store[instance_id]

    async def get_pricing(self, instance_id: str) -> PricingSnapshot:
        return await self._respond("get_pricing", instance_id, self._lookup(self.pricing, instance_id, "pricing"))

    async def get_metrics(self, instance_id: str) -> MetricsSnapshot:
        return await self._respond("get_metrics", instance_id, self._lookup(self.metrics, instance_id, "metrics"))

    async def get_available_options(self, instance_id: str) -> AvailableOptions:
        return await self._respond("get_available_options", instance_id, self._lookup(self.options, instance_id, "options"))

    async def get_price_history(self, instance_id, days=7, interval="hour") -> List[PriceHistoryPoint]:
        value = self.history.get(instance_id, [])
        return await self._respond("get_price_history", instance_id, value, days, interval)

    async def force_switch(self, instance_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._respond("force_switch", instance_id, {"status": "queued"}, body)

    async def get_instances(self, client_id, filters=None) -> List[Instance]:
        return await self._respond("get_instances", client_id, list(self.instances), filters)

    async def get_agents(self, client_id: str) -> List[Agent]:
        return await self._respond("get_agents", client_id, list(self.agents.values()))

    async def toggle_agent_enabled(self, agent_id: str, enabled: bool) -> Dict[str, Any]:
        ack = await self._respond("toggle_agent_enabled", agent_id, {"ok": True}, enabled)
        self.agents[agent_id] = self.agents[agent_id].model_copy(update={"enabled": enabled})
        return ack

    async def update_agent_settings(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        ack = await self._respond("update_agent_settings", agent_id, {"ok": True}, settings)
        self.agents[agent_id] = self.agents[agent_id].model_copy(update=settings)
        return ack

    async def update_agent_config(self, agent_id: str, config: AgentConfig) -> Dict[str, Any]:
        ack = await self._respond("update_agent_config", agent_id, {"ok": True}, config)
        self.agents[agent_id] = self.agents[agent_id].model_copy(
            update={"terminate_wait_minutes": config.terminate_wait_minutes}
        )
        return ack

    async def get_agent_decisions(self, client_id: str) -> List[Decision]:
        return await self._respond("get_agent_decisions", client_id, list(self.decisions))

    async def get_system_health(self) -> SystemHealth:
        return await self._respond("get_system_health", None, self.health)

    async def health_check(self) -> Dict[str, Any]:
        return await self._respond("health_check", None, {"status": "ok"})


def make_pricing(on_demand: str, pools: List[tuple]) -> PricingSnapshot:
    """PricingSnapshot from ('id', 'price', 'savings') tuples, as the backend sends it."""
    return PricingSnapshot.model_validate({
        "onDemand": {"price": on_demand},
        "pools": [{"id": pid, "price": price, "savings": savings} for pid, price, savings in pools],
    })


def make_metrics(spot: str = "0.30", on_demand: str = "1.00") -> MetricsSnapshot:
    return MetricsSnapshot.model_validate({
        "uptimeHours": 120,
        "totalSwitches": 4,
        "switchesLast7Days": 1,
        "totalSavings": 84.5,
        "savingsLast30Days": 21.25,
        "spotPrice": spot,
        "onDemandPrice": on_demand,
    })


def make_options(pool_ids=("p1", "p2"), instance_types=("m5.large", "m5.xlarge"), current="m5.large"):
    return AvailableOptions.model_validate({
        "pools": [{"id": pid, "price": "0.30", "savings": 70} for pid in pool_ids],
        "instanceTypes": list(instance_types),
        "currentInstanceType": current,
    })


def make_history(points: int = 3) -> List[PriceHistoryPoint]:
    return [
        PriceHistoryPoint.model_validate({
            "time": f"2026-10-1{i} 00:00",
            "avgPrice": "0.31",
            "minPrice": "0.29",
            "maxPrice": "0.35",
        })
        for i in range(points)
    ]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the operator's own SPOT_SWITCHER_* variables out of tests."""
    for name in (ENV_API_URL, ENV_CLIENT_ID, ENV_API_TOKEN):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def gateway():
    """Fake backend preloaded with the p1/p2 pricing for i-1 and i-2."""
    fake = FakeGateway()
    for instance_id in ("i-1", "i-2"):
        fake.pricing[instance_id] = make_pricing("1.00", [("p1", "0.30", 70), ("p2", "0.45", 55)])
        fake.metrics[instance_id] = make_metrics()
        fake.options[instance_id] = make_options()
        fake.history[instance_id] = make_history()
    # i-2 is distinguishable from i-1
    fake.pricing["i-2"] = make_pricing("2.00", [("p9", "0.80", 60)])
    fake.metrics["i-2"] = make_metrics(spot="0.80", on_demand="2.00")
    return fake


@pytest.fixture
def agent_gateway():
    """Fake backend with two agents."""
    fake = FakeGateway()
    fake.agents = {
        "agent-1": Agent.model_validate({
            "id": "agent-1", "status": "online", "lastHeartbeat": "2026-10-19T08:00:00",
            "instanceCount": 2, "enabled": True,
            "auto_switch_enabled": True, "auto_terminate_enabled": False,
        }),
        "agent-2": Agent.model_validate({
            "id": "agent-2", "status": "offline", "instanceCount": 0, "enabled": False,
        }),
    }
    return fake


@pytest.fixture
def sample_config():
    """Sample configuration for testing."""
    return {
        "api_base_url": "https://optimizer.example.com",
        "client_id": "client-42",
        "api_token": None,
        "created_at": "2026-01-05T14:30:22Z",
        "version": "1.0.0",
    }


@pytest.fixture
def config():
    return Config(api_base_url="https://optimizer.example.com", client_id="client-42")


@pytest.fixture
def config_manager(tmp_path: Path, config):
    manager = ConfigManager(config_dir=tmp_path)
    manager.save_config(config)
    return manager


@pytest.fixture
def mock_console():
    """Mock Rich console for CLI testing."""
    return Mock()
