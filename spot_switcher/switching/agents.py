"""
Agent settings with optimistic local updates and authoritative reloads.
"""
import logging
from typing import Dict, List, Optional, Set, Tuple

from .dispatcher import LoggingNotifier, Notifier
from ..core.exceptions import ReconciliationError, SpotSwitchError, ValidationError
from ..gateway.base import BackendGateway
from ..gateway.models import Agent, AgentConfig


logger = logging.getLogger(__name__)

# Boolean agent fields that can be flipped from the agent list
TOGGLE_FIELDS = ("enabled", "auto_switch_enabled", "auto_terminate_enabled")


class AgentSettingsSync:
    """Local view of a client's agents kept in step with the backend.

    Toggles are applied locally first and tagged unconfirmed. If the write
    fails, the whole list is replaced by a fresh read instead of undoing the
    single field.
    """

    def __init__(self, gateway: BackendGateway, client_id: str, notifier: Optional[Notifier] = None):
        self.gateway = gateway
        self.client_id = client_id
        self.notifier = notifier or LoggingNotifier()

        self.agents: List[Agent] = []
        self.unconfirmed: Set[Tuple[str, str]] = set()
        self.error: Optional[str] = None
        self._generation = 0

    def get(self, agent_id: str) -> Optional[Agent]:
        for agent in self.agents:
            if agent.id == agent_id:
                return agent
        return None

    async def load(self) -> List[Agent]:
        """Replace the local list with the backend's.

        On failure the previous list is kept and ``error`` is set.
        """
        self._generation += 1
        generation = self._generation
        try:
            agents = await self.gateway.get_agents(self.client_id)
        except SpotSwitchError as e:
            if generation == self._generation:
                self.error = e.message
                logger.error(f"Failed to load agents for {self.client_id}: {e.message}")
            return self.agents
        except Exception as e:
            logger.exception(f"Unexpected error loading agents for {self.client_id}")
            if generation == self._generation:
                self.error = f"Unexpected error: {e}"
            return self.agents

        if generation != self._generation:
            logger.debug(f"Dropping stale agent list for {self.client_id}")
            return self.agents

        self.agents = list(agents)
        self.unconfirmed.clear()
        self.error = None
        logger.debug(f"Loaded {len(self.agents)} agents for {self.client_id}")
        return self.agents

    async def toggle(self, agent_id: str, field: str, current_value: bool) -> bool:
        """Flip a boolean agent field.

        Args:
            agent_id: Agent to update
            field: One of TOGGLE_FIELDS
            current_value: Value shown to the operator before the flip

        Returns:
            True if the backend accepted the write

        Raises:
            ValidationError: If ``field`` is not a toggleable field
        """
        if field not in TOGGLE_FIELDS:
            raise ValidationError(f"Unknown agent setting: {field}")

        new_value = not current_value
        self._apply_local(agent_id, {field: new_value})
        self.unconfirmed.add((agent_id, field))

        try:
            if field == "enabled":
                await self.gateway.toggle_agent_enabled(agent_id, new_value)
            else:
                await self.gateway.update_agent_settings(agent_id, {field: new_value})
        except SpotSwitchError as e:
            await self._reconcile(ReconciliationError(f"Failed to update settings: {e.message}"))
            return False
        except Exception as e:
            logger.exception(f"Unexpected error writing {field} for {agent_id}")
            await self._reconcile(ReconciliationError(f"Failed to update settings: {e}", details=repr(e)))
            return False

        self.unconfirmed.discard((agent_id, field))
        return True

    async def update_config(self, agent_id: str, config: AgentConfig) -> bool:
        """Write the agent configuration, then reload the list."""
        try:
            await self.gateway.update_agent_config(agent_id, config)
        except SpotSwitchError as e:
            self.notifier.error(f"Failed to save configuration: {e.message}")
            return False
        except Exception as e:
            logger.exception(f"Unexpected error saving configuration for {agent_id}")
            self.notifier.error(f"Failed to save configuration: {e}")
            return False

        self.notifier.success(f"Configuration saved for {agent_id}")
        await self.load()
        return True

    async def _reconcile(self, failure: ReconciliationError) -> None:
        """Report a rejected write and replace the local list with the backend's."""
        self.notifier.error(failure.message)
        logger.warning(f"{failure.message}; reloading agents for {self.client_id}")
        await self.load()

    def _apply_local(self, agent_id: str, changes: Dict[str, bool]) -> None:
        updated = []
        found = False
        for agent in self.agents:
            if agent.id == agent_id:
                agent = agent.model_copy(update=changes)
                found = True
            updated.append(agent)
        if not found:
            logger.debug(f"Agent {agent_id} not in local list; optimistic update skipped")
        self.agents = updated
