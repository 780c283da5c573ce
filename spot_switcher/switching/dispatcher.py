"""
Switch command dispatch with confirmation and per-target in-flight markers.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Set, Tuple

from .models import DispatchOutcome, DispatchResult, SwitchCommand
from ..core.exceptions import CommandRejected, Conflict, SpotSwitchError, ValidationError
from ..gateway.base import BackendGateway


logger = logging.getLogger(__name__)

AGENT_PICKUP_HINT = "The agent will execute this switch within ~1 minute."
AGENT_CONNECTIVITY_HINT = "Please ensure the agent is online and try again."


class ConfirmationProvider(ABC):
    """Asks the operator to approve a mutating action."""

    @abstractmethod
    def confirm(self, message: str) -> bool:
        pass


class StaticConfirmation(ConfirmationProvider):
    """Answers every prompt the same way (``--yes`` and tests)."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts = []

    def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        return self.answer


class Notifier(ABC):
    """Surfaces outcomes to the operator."""

    @abstractmethod
    def success(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass


class LoggingNotifier(Notifier):
    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


def confirmation_message(command: SwitchCommand) -> str:
    """Prompt text naming the exact target of ``command``."""
    return (
        f"Force switch to {command.label}?\n\n"
        "This will queue a command for the agent to execute on its next check cycle."
    )


class SwitchCommandDispatcher:
    """Queues force-switch commands, at most one per (instance, target)."""

    def __init__(
        self,
        gateway: BackendGateway,
        confirmation: ConfirmationProvider,
        notifier: Optional[Notifier] = None,
        on_queued: Optional[Callable[[DispatchResult], None]] = None,
    ):
        """Initialize the dispatcher.

        Args:
            gateway: Backend gateway receiving the force-switch write
            confirmation: Used by confirm_and_dispatch() only
            notifier: Receives success and error messages
            on_queued: Called after a command was accepted, typically to
                close or refresh the detail view
        """
        self.gateway = gateway
        self.confirmation = confirmation
        self.notifier = notifier or LoggingNotifier()
        self.on_queued = on_queued
        self._in_flight: Set[Tuple[str, str]] = set()

    def is_in_flight(self, instance_id: str, key: str) -> bool:
        """True while a command for this target is outstanding."""
        return (instance_id, key) in self._in_flight

    def in_flight_keys(self, instance_id: str) -> Set[str]:
        return {key for owner, key in self._in_flight if owner == instance_id}

    async def confirm_and_dispatch(self, instance_id: str, command: SwitchCommand) -> DispatchResult:
        """Ask for confirmation naming the target, then dispatch.

        Returns:
            A DECLINED result without any network call if the operator says no
        """
        if not self.confirmation.confirm(confirmation_message(command)):
            logger.info(f"Switch of {instance_id} to {command.label} declined")
            return DispatchResult(
                outcome=DispatchOutcome.DECLINED,
                instance_id=instance_id,
                command=command,
                message="Switch cancelled",
            )
        return await self.dispatch(instance_id, command)

    async def dispatch(self, instance_id: str, command: SwitchCommand) -> DispatchResult:
        """Send one force-switch command.

        The caller must already hold the operator's confirmation. No retries
        are made; a failed dispatch needs a new operator action.

        Args:
            instance_id: Instance to move
            command: Target placement

        Returns:
            DispatchResult describing what happened. Failures are reported
            here and through the notifier, never raised.
        """
        try:
            command.validate()
        except ValidationError as e:
            return self._rejected(instance_id, command, CommandRejected(e.message), hint=None)

        marker = (instance_id, command.key)
        if marker in self._in_flight:
            conflict = Conflict(instance_id, command.key)
            logger.warning(conflict.message)
            self.notifier.error(conflict.message)
            return DispatchResult(
                outcome=DispatchOutcome.CONFLICT,
                instance_id=instance_id,
                command=command,
                message=conflict.message,
                error=conflict,
            )

        self._in_flight.add(marker)
        try:
            await self.gateway.force_switch(instance_id, command.to_payload())
        except SpotSwitchError as e:
            return self._rejected(
                instance_id,
                command,
                CommandRejected(f"Failed to queue switch: {e.message}", details=e.details),
            )
        except Exception as e:
            logger.exception(f"Unexpected error queueing switch for {instance_id}")
            return self._rejected(
                instance_id,
                command,
                CommandRejected(f"Failed to queue switch: {e}", details=repr(e)),
            )
        else:
            message = (
                f"Switch command queued successfully! Target: {command.label}. "
                f"{AGENT_PICKUP_HINT}"
            )
            logger.info(f"Queued switch of {instance_id} to {command.label}")
            result = DispatchResult(
                outcome=DispatchOutcome.QUEUED,
                instance_id=instance_id,
                command=command,
                message=message,
            )
            # the command is queued either way
            try:
                self.notifier.success(message)
                if self.on_queued is not None:
                    self.on_queued(result)
            except Exception:
                logger.exception(f"Post-queue callback failed for {instance_id}")
            return result
        finally:
            self._in_flight.discard(marker)

    def _rejected(
        self,
        instance_id: str,
        command: SwitchCommand,
        error: CommandRejected,
        hint: Optional[str] = AGENT_CONNECTIVITY_HINT,
    ) -> DispatchResult:
        message = f"{error.message}. {hint}" if hint else error.message
        logger.error(f"Switch of {instance_id} to {command.label} rejected: {error.message}")
        self.notifier.error(message)
        return DispatchResult(
            outcome=DispatchOutcome.REJECTED,
            instance_id=instance_id,
            command=command,
            message=message,
            error=error,
        )
