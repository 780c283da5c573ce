"""
Detail orchestrator for coordinating the multi-source load of one instance.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from .models import DetailState, DetailView
from .ranker import rank_options
from ..core.exceptions import DegradedDataError, SpotSwitchError, TransientFetchError
from ..gateway.base import BackendGateway
from ..gateway.models import PriceHistoryPoint


logger = logging.getLogger(__name__)


class DetailOrchestrator:
    """Loads pricing, metrics, options and history for the inspected instance.

    Every load cycle captures a generation token when it starts. A result is
    applied only while its token is still the latest one, so a slow response
    for a previously inspected instance can never overwrite newer state.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        history_days: int = 7,
        history_interval: str = "hour",
        price_precision: int = 4,
        on_change: Optional[Callable[[DetailView], None]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            gateway: Backend gateway used for every read
            history_days: Price history lookback window
            history_interval: Price history bucket ('hour' or 'day')
            price_precision: Decimal places used by the ranker
            on_change: Called with each view that gets applied
        """
        self.gateway = gateway
        self.history_days = history_days
        self.history_interval = history_interval
        self.price_precision = price_precision
        self.on_change = on_change

        self._generation = 0
        self._view = DetailView()

    @property
    def view(self) -> DetailView:
        """The currently rendered view."""
        return self._view

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        """True while ``generation`` belongs to the latest open() call."""
        return generation == self._generation

    def _apply(self, generation: int, view: DetailView) -> bool:
        if not self.is_current(generation):
            logger.debug(
                f"Dropping stale result for {view.instance_id} "
                f"(generation {generation}, current {self._generation})"
            )
            return False

        self._view = view
        if self.on_change is not None:
            self.on_change(view)
        return True

    async def open(self, instance_id: str) -> Optional[DetailView]:
        """Start inspecting ``instance_id`` and run one load cycle.

        Pricing, metrics and available options are read concurrently and must
        all succeed. Price history is read afterwards and may fail without
        failing the cycle.

        Args:
            instance_id: Instance to inspect

        Returns:
            The view this cycle applied last, or None if a newer open() or a
            close() superseded it before it finished
        """
        self._generation += 1
        generation = self._generation
        loading = DetailView(
            state=DetailState.LOADING, instance_id=instance_id, generation=generation
        )
        self._apply(generation, loading)
        logger.info(f"Loading details for {instance_id} (generation {generation})")

        try:
            pricing, metrics, options, ranked = await self._load_primary(instance_id)
        except TransientFetchError as e:
            failed = loading.evolve(state=DetailState.ERROR, error=e.message)
            if self._apply(generation, failed):
                logger.error(f"Detail load failed for {instance_id}: {e.message}")
                return failed
            return None

        if not self.is_current(generation):
            logger.debug(f"Load for {instance_id} superseded before history read")
            return None

        history, history_error = await self._load_history(instance_id)

        ready = loading.evolve(
            state=DetailState.READY,
            pricing=pricing,
            metrics=metrics,
            options=options,
            ranked=ranked,
            history=history,
            history_available=history_error is None,
            history_error=history_error,
        )
        if self._apply(generation, ready):
            logger.info(
                f"Details ready for {instance_id}: {len(ranked)} pools, "
                f"{len(history)} history points"
            )
            return ready
        return None

    async def _load_primary(self, instance_id: str) -> Tuple:
        """Join the three required reads and rank the pools.

        Raises:
            TransientFetchError: Carrying the first failure's message
        """
        try:
            pricing, metrics, options = await asyncio.gather(
                self.gateway.get_pricing(instance_id),
                self.gateway.get_metrics(instance_id),
                self.gateway.get_available_options(instance_id),
            )
            ranked = rank_options(pricing, self.price_precision)
        except SpotSwitchError as e:
            raise TransientFetchError(e.message, details=e.details)
        except Exception as e:
            logger.exception(f"Unexpected error loading {instance_id}")
            raise TransientFetchError(f"Unexpected error: {e}", details=repr(e))

        return pricing, metrics, options, ranked

    async def _load_history(
        self, instance_id: str
    ) -> Tuple[List[PriceHistoryPoint], Optional[DegradedDataError]]:
        """Read price history, degrading to an empty series on failure.

        Returns:
            The series and, when degraded, the reason
        """
        try:
            history = await self.gateway.get_price_history(
                instance_id, self.history_days, self.history_interval
            )
            return list(history), None
        except Exception as e:
            degraded = DegradedDataError(f"Price history not available: {e}", details=repr(e))
            logger.warning(f"{degraded.message} (instance {instance_id})")
            return [], degraded

    async def refresh(self) -> Optional[DetailView]:
        """Re-run the load cycle for the inspected instance, if any."""
        if self._view.instance_id is None:
            return None
        return await self.open(self._view.instance_id)

    def close(self) -> None:
        """Stop inspecting. Idempotent; late results of open loads are dropped."""
        if self._view.state == DetailState.IDLE and self._view.instance_id is None:
            return
        self._generation += 1
        logger.debug(f"Closed detail view for {self._view.instance_id}")
        self._view = DetailView(generation=self._generation)
        if self.on_change is not None:
            self.on_change(self._view)
