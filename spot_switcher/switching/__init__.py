"""Switch orchestration package."""

from .agents import AgentSettingsSync
from .dispatcher import (
    ConfirmationProvider,
    LoggingNotifier,
    Notifier,
    StaticConfirmation,
    SwitchCommandDispatcher,
)
from .models import (
    DetailState,
    DetailView,
    DispatchOutcome,
    DispatchResult,
    RankedOption,
    SwitchCommand,
    SwitchTarget,
)
from .orchestrator import DetailOrchestrator
from .polling import PollingRefresher
from .ranker import rank_options

__all__ = [
    'AgentSettingsSync',
    'ConfirmationProvider',
    'LoggingNotifier',
    'Notifier',
    'StaticConfirmation',
    'SwitchCommandDispatcher',
    'DetailState',
    'DetailView',
    'DispatchOutcome',
    'DispatchResult',
    'RankedOption',
    'SwitchCommand',
    'SwitchTarget',
    'DetailOrchestrator',
    'PollingRefresher',
    'rank_options',
]
