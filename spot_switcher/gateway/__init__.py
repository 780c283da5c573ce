"""Backend gateway package."""

from .base import BackendGateway
from .http import HttpBackendGateway
from .models import (
    Agent,
    AgentConfig,
    AgentStatus,
    AvailableOptions,
    Decision,
    DecisionOutcome,
    Instance,
    InstanceMode,
    MetricsSnapshot,
    Pool,
    PriceHistoryPoint,
    PricingSnapshot,
    SystemHealth,
)

__all__ = [
    'BackendGateway',
    'HttpBackendGateway',
    'Agent',
    'AgentConfig',
    'AgentStatus',
    'AvailableOptions',
    'Decision',
    'DecisionOutcome',
    'Instance',
    'InstanceMode',
    'MetricsSnapshot',
    'Pool',
    'PriceHistoryPoint',
    'PricingSnapshot',
    'SystemHealth',
]
