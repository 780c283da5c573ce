"""
Status to badge mapping.

Each status enum maps through an explicit table; adding a member without a
table entry fails the coverage test instead of falling through to a default.
"""
from enum import Enum
from typing import Dict, Tuple

from .models import DetailState
from ..gateway.models import AgentStatus, DecisionOutcome, InstanceMode


class Variant(str, Enum):
    SUCCESS = "success"
    DANGER = "danger"
    WARNING = "warning"
    INFO = "info"
    NEUTRAL = "neutral"


VARIANT_STYLES: Dict[Variant, str] = {
    Variant.SUCCESS: "bold green",
    Variant.DANGER: "bold red",
    Variant.WARNING: "bold yellow",
    Variant.INFO: "bold blue",
    Variant.NEUTRAL: "dim",
}

AGENT_STATUS_BADGES: Dict[AgentStatus, Tuple[Variant, str]] = {
    AgentStatus.ONLINE: (Variant.SUCCESS, "Online"),
    AgentStatus.OFFLINE: (Variant.DANGER, "Offline"),
}

DECISION_OUTCOME_BADGES: Dict[DecisionOutcome, Tuple[Variant, str]] = {
    DecisionOutcome.SUCCESS: (Variant.SUCCESS, "Success"),
    DecisionOutcome.FAILED: (Variant.DANGER, "Failed"),
    DecisionOutcome.PENDING: (Variant.WARNING, "Pending"),
}

INSTANCE_MODE_BADGES: Dict[InstanceMode, Tuple[Variant, str]] = {
    InstanceMode.SPOT: (Variant.SUCCESS, "spot"),
    InstanceMode.ONDEMAND: (Variant.DANGER, "ondemand"),
}

DETAIL_STATE_BADGES: Dict[DetailState, Tuple[Variant, str]] = {
    DetailState.IDLE: (Variant.NEUTRAL, "Idle"),
    DetailState.LOADING: (Variant.INFO, "Loading"),
    DetailState.READY: (Variant.SUCCESS, "Ready"),
    DetailState.ERROR: (Variant.DANGER, "Error"),
}

BADGE_TABLES = {
    AgentStatus: AGENT_STATUS_BADGES,
    DecisionOutcome: DECISION_OUTCOME_BADGES,
    InstanceMode: INSTANCE_MODE_BADGES,
    DetailState: DETAIL_STATE_BADGES,
}


def badge(status: Enum) -> Tuple[Variant, str]:
    """Variant and label for a status member.

    Raises:
        KeyError: If the enum type or member has no table entry
    """
    return BADGE_TABLES[type(status)][status]


def enabled_badge(enabled: bool) -> Tuple[Variant, str]:
    return (Variant.SUCCESS, "Enabled") if enabled else (Variant.DANGER, "Disabled")


def badge_markup(status_badge: Tuple[Variant, str]) -> str:
    """Rich markup for a (variant, label) pair."""
    variant, label = status_badge
    style = VARIANT_STYLES[variant]
    return f"[{style}]{label}[/{style}]"
