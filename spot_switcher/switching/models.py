"""
Data models for the switch orchestration layer.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.exceptions import DegradedDataError, ValidationError
from ..gateway.models import (
    AvailableOptions,
    MetricsSnapshot,
    Pool,
    PriceHistoryPoint,
    PricingSnapshot,
)


ONDEMAND_KEY = "ondemand"


@dataclass(frozen=True)
class RankedOption:
    """A pool annotated for display."""
    pool: Pool
    rank: int                  # 0 is best
    best_price: bool
    savings_per_hour: Decimal  # on-demand price minus pool price
    savings_percent: Decimal   # as reported by the backend


class DetailState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class DetailView:
    """Everything rendered for one inspected instance.

    Instances are replaced wholesale on every state change, never mutated.
    """
    state: DetailState = DetailState.IDLE
    instance_id: Optional[str] = None
    generation: int = 0
    pricing: Optional[PricingSnapshot] = None
    metrics: Optional[MetricsSnapshot] = None
    options: Optional[AvailableOptions] = None
    ranked: List[RankedOption] = field(default_factory=list)
    history: List[PriceHistoryPoint] = field(default_factory=list)
    history_available: bool = False
    history_error: Optional[DegradedDataError] = None  # set when history degraded
    error: Optional[str] = None

    @property
    def has_history(self) -> bool:
        return bool(self.history)

    def evolve(self, **changes) -> "DetailView":
        return replace(self, **changes)


class SwitchTarget(str, Enum):
    POOL = "pool"
    ONDEMAND = "ondemand"


@dataclass(frozen=True)
class SwitchCommand:
    """A force-switch request built client-side."""
    target: SwitchTarget
    pool_id: Optional[str] = None
    instance_type: Optional[str] = None

    @classmethod
    def to_pool(cls, pool_id: str, instance_type: Optional[str] = None) -> "SwitchCommand":
        return cls(SwitchTarget.POOL, pool_id=pool_id, instance_type=instance_type)

    @classmethod
    def to_on_demand(cls) -> "SwitchCommand":
        return cls(SwitchTarget.ONDEMAND)

    @classmethod
    def from_selection(
        cls,
        options: AvailableOptions,
        pool_id: Optional[str] = None,
        instance_type: Optional[str] = None,
    ) -> "SwitchCommand":
        """Build a pool command from the advanced switch form.

        The pool defaults to the first one offered. The instance type is only
        sent when it differs from the instance's current type.

        Raises:
            ValidationError: If the pool or instance type is not on offer
        """
        offered_pools = [p.id for p in options.pools]
        if pool_id is None:
            if not offered_pools:
                raise ValidationError("No pools are available for this instance")
            pool_id = offered_pools[0]
        elif pool_id not in offered_pools:
            raise ValidationError(f"Pool {pool_id} is not available for this instance")

        if instance_type is not None and instance_type not in options.instance_types:
            raise ValidationError(f"Instance type {instance_type} is not available")
        if instance_type == options.current_instance_type:
            instance_type = None

        return cls.to_pool(pool_id, instance_type=instance_type)

    @property
    def key(self) -> str:
        """In-flight key: the pool id, or the on-demand marker."""
        if self.target == SwitchTarget.ONDEMAND:
            return ONDEMAND_KEY
        return self.pool_id

    @property
    def label(self) -> str:
        """Human-readable target used in prompts and notifications."""
        if self.target == SwitchTarget.ONDEMAND:
            return "On-Demand"
        return f"Pool {self.pool_id}"

    def validate(self) -> None:
        """Check the pool id is present exactly when targeting a pool.

        Raises:
            ValidationError: If the command is malformed
        """
        if not isinstance(self.target, SwitchTarget):
            raise ValidationError(f"Unknown switch target: {self.target}")
        if self.target == SwitchTarget.POOL and not self.pool_id:
            raise ValidationError("A pool switch requires a pool id")
        if self.target == SwitchTarget.ONDEMAND and self.pool_id:
            raise ValidationError("An on-demand switch cannot name a pool")

    def to_payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"target": self.target.value}
        if self.pool_id:
            body["pool_id"] = self.pool_id
        if self.instance_type:
            body["instance_type"] = self.instance_type
        return body


class DispatchOutcome(str, Enum):
    QUEUED = "queued"
    DECLINED = "declined"      # operator did not confirm
    CONFLICT = "conflict"      # same target already in flight
    REJECTED = "rejected"      # backend refused or was unreachable


@dataclass
class DispatchResult:
    """Result of a switch dispatch."""
    outcome: DispatchOutcome
    instance_id: str
    command: SwitchCommand
    message: str
    error: Optional[Exception] = None

    @property
    def queued(self) -> bool:
        return self.outcome == DispatchOutcome.QUEUED
