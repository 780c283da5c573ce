"""
Spot Switcher - Operator console for spot placement switching.

A CLI that shows where an instance runs (spot pool or on-demand), ranks the
alternatives and queues force-switch commands for the instance's agent.
"""

__version__ = "1.0.0"

from spot_switcher.core.exceptions import SpotSwitchError

__all__ = ["SpotSwitchError"]
