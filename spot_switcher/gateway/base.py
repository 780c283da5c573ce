"""
Backend gateway interface consumed by the switch orchestration layer.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import (
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


class BackendGateway(ABC):
    """Abstract contract for every backend read and write.

    All methods are coroutines. Every failure is raised as
    :class:`~spot_switcher.core.exceptions.GatewayError`; callers rely on its
    ``message`` only. Writes are not idempotent and must never be retried
    automatically.
    """

    @abstractmethod
    async def get_pricing(self, instance_id: str) -> PricingSnapshot:
        """Current on-demand price and spot pools, best pool first."""
        pass

    @abstractmethod
    async def get_metrics(self, instance_id: str) -> MetricsSnapshot:
        """Uptime, switch counts and savings for an instance."""
        pass

    @abstractmethod
    async def get_available_options(self, instance_id: str) -> AvailableOptions:
        """Pools and instance types the advanced switch form may offer."""
        pass

    @abstractmethod
    async def get_price_history(
        self, instance_id: str, days: int = 7, interval: str = "hour"
    ) -> List[PriceHistoryPoint]:
        """Bucketed price history; an empty list is a valid answer."""
        pass

    @abstractmethod
    async def force_switch(self, instance_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Queue a switch command for the owning agent.

        Args:
            instance_id: Instance to move
            body: ``{"target": "pool"|"ondemand", "pool_id"?, "instance_type"?}``

        Returns:
            Backend acknowledgement. The agent performs the switch later.
        """
        pass

    @abstractmethod
    async def get_instances(
        self, client_id: str, filters: Optional[Dict[str, str]] = None
    ) -> List[Instance]:
        pass

    @abstractmethod
    async def get_agents(self, client_id: str) -> List[Agent]:
        pass

    @abstractmethod
    async def toggle_agent_enabled(self, agent_id: str, enabled: bool) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def update_agent_settings(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def update_agent_config(self, agent_id: str, config: AgentConfig) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_agent_decisions(self, client_id: str) -> List[Decision]:
        pass

    @abstractmethod
    async def get_system_health(self) -> SystemHealth:
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        pass

    async def aclose(self) -> None:
        """Release transport resources. Default implementation holds none."""
        return None
