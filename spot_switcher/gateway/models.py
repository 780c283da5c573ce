"""
Wire models for the optimizer backend.

The backend speaks camelCase JSON for instance data and snake_case for agent
flags; aliases keep both readable from Python by field name.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for backend payloads: accepts aliases and Python field names."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class InstanceMode(str, Enum):
    SPOT = "spot"
    ONDEMAND = "ondemand"


class AgentStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class DecisionOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class Pool(WireModel):
    """A spot capacity pool as priced by the backend."""
    id: str
    price: Decimal = Field(..., gt=0)
    savings: Decimal = Field(..., ge=0, le=100)


class OnDemandPrice(WireModel):
    price: Decimal = Field(..., gt=0)


class PricingSnapshot(WireModel):
    """Current prices for one instance; ``pools[0]`` is the backend's best option."""
    on_demand: OnDemandPrice = Field(..., alias="onDemand")
    pools: List[Pool] = Field(default_factory=list)


class MetricsSnapshot(WireModel):
    uptime_hours: float = Field(..., alias="uptimeHours")
    total_switches: int = Field(..., alias="totalSwitches")
    switches_last_7_days: int = Field(0, alias="switchesLast7Days")
    total_savings: Decimal = Field(..., alias="totalSavings")
    savings_last_30_days: Decimal = Field(Decimal("0"), alias="savingsLast30Days")
    spot_price: Decimal = Field(..., alias="spotPrice")
    on_demand_price: Decimal = Field(..., alias="onDemandPrice")


class AvailableOptions(WireModel):
    """Choices offered by the advanced switch form."""
    pools: List[Pool] = Field(default_factory=list)
    instance_types: List[str] = Field(default_factory=list, alias="instanceTypes")
    current_instance_type: Optional[str] = Field(None, alias="currentInstanceType")


class PriceHistoryPoint(WireModel):
    time: str
    avg_price: Decimal = Field(..., alias="avgPrice")
    min_price: Decimal = Field(..., alias="minPrice")
    max_price: Decimal = Field(..., alias="maxPrice")


class Instance(WireModel):
    id: str
    type: str
    availability_zone: Optional[str] = Field(None, alias="az")
    mode: InstanceMode
    pool_id: Optional[str] = Field(None, alias="poolId")
    spot_price: Decimal = Field(..., alias="spotPrice")
    on_demand_price: Decimal = Field(..., alias="onDemandPrice")
    last_switch: Optional[datetime] = Field(None, alias="lastSwitch")

    @property
    def savings_percent(self) -> Decimal:
        """Savings of the current price against on-demand, in percent."""
        if not self.on_demand_price:
            return Decimal("0")
        return (self.on_demand_price - self.spot_price) / self.on_demand_price * 100


# Version 2 of the agent configuration contract: a single retention scalar.
# Version 1 (threshold object) is no longer accepted by the backend.
AGENT_CONFIG_SCHEMA_VERSION = 2


class AgentConfig(WireModel):
    """Agent configuration payload, schema version 2."""
    terminate_wait_minutes: int = Field(..., ge=0, le=1440)

    def to_payload(self) -> dict:
        return {"terminate_wait_minutes": self.terminate_wait_minutes}


class Agent(WireModel):
    id: str
    status: AgentStatus = AgentStatus.OFFLINE
    last_heartbeat: Optional[datetime] = Field(None, alias="lastHeartbeat")
    instance_count: int = Field(0, alias="instanceCount")
    enabled: bool = False
    auto_switch_enabled: bool = False
    auto_terminate_enabled: bool = False
    terminate_wait_minutes: Optional[int] = None


class Decision(WireModel):
    """One entry of the append-only decision audit log."""
    timestamp: datetime
    instance_id: str = Field(..., alias="instanceId")
    decision: str
    confidence: float = Field(..., ge=0, le=100)
    health: float = Field(..., ge=0, le=100)
    reason: str = ""
    outcome: DecisionOutcome = DecisionOutcome.PENDING


class DecisionEngineStatus(WireModel):
    loaded: bool = False
    type: Optional[str] = None
    version: Optional[str] = None


class ActiveModel(WireModel):
    name: str
    version: Optional[str] = None


class ModelStatus(WireModel):
    loaded: bool = False
    files_uploaded: int = Field(0, alias="filesUploaded")
    active_models: List[ActiveModel] = Field(default_factory=list, alias="activeModels")


class SystemHealth(WireModel):
    decision_engine_status: DecisionEngineStatus = Field(
        default_factory=DecisionEngineStatus, alias="decisionEngineStatus"
    )
    model_status: ModelStatus = Field(default_factory=ModelStatus, alias="modelStatus")
