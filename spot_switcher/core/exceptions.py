"""
Core exception classes for Spot Switcher.
"""
from typing import Optional


class SpotSwitchError(Exception):
    """Base exception for all Spot Switcher errors."""

    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(SpotSwitchError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(SpotSwitchError):
    """Raised when input validation fails."""
    pass


class GatewayError(SpotSwitchError):
    """Raised when a backend read or write fails.

    Only ``message`` is meant for display; ``status_code`` and ``details``
    are kept for logging.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, details: str = None):
        super().__init__(message, details=details)
        self.status_code = status_code


class TransientFetchError(SpotSwitchError):
    """Raised when one of the joined detail reads fails."""
    pass


class DegradedDataError(SpotSwitchError):
    """Raised when a secondary read (price history) is unavailable."""
    pass


class DataQualityError(SpotSwitchError):
    """Raised when backend data violates an ordering or range guarantee."""
    pass


class CommandRejected(SpotSwitchError):
    """Raised when a switch command could not be queued."""
    pass


class Conflict(CommandRejected):
    """Raised when the same target already has a command in flight."""

    def __init__(self, instance_id: str, key: str):
        super().__init__(
            f"A switch to {key} is already in progress for {instance_id}"
        )
        self.instance_id = instance_id
        self.key = key


class ReconciliationError(SpotSwitchError):
    """Raised when an optimistic agent setting write is rejected."""
    pass


class UserCancelled(SpotSwitchError):
    """Raised when user cancels operation (Ctrl+C or declined prompt)."""

    def __init__(self, message: str = "Operation cancelled by user"):
        super().__init__(message)
