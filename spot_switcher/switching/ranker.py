"""
Ranking of alternative placements for display.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from .models import RankedOption
from ..core.exceptions import DataQualityError
from ..gateway.models import PricingSnapshot


def quantize_price(value: Decimal, precision: int = 4) -> Decimal:
    """Round a price to ``precision`` decimal places."""
    return value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)


def rank_options(pricing: PricingSnapshot, precision: int = 4) -> List[RankedOption]:
    """Annotate the pools of a pricing snapshot, best first.

    The backend returns pools price-ascending. That order is kept as is: a
    snapshot whose prices go down anywhere is rejected rather than re-sorted.
    Pools with equal prices are ordered by pool id.

    Args:
        pricing: Snapshot as returned by the backend
        precision: Decimal places for the per-hour savings

    Returns:
        One RankedOption per pool; the first is flagged best price

    Raises:
        DataQualityError: If the pools are not in ascending price order
    """
    pools = list(pricing.pools)

    for previous, current in zip(pools, pools[1:]):
        if current.price < previous.price:
            raise DataQualityError(
                f"Pool prices out of order: {current.id} (${current.price}) "
                f"follows {previous.id} (${previous.price})",
                details=", ".join(f"{p.id}={p.price}" for p in pools),
            )

    # stable, so only runs of equal price move
    pools.sort(key=lambda p: (p.price, p.id))

    on_demand = pricing.on_demand.price
    return [
        RankedOption(
            pool=pool,
            rank=idx,
            best_price=idx == 0,
            savings_per_hour=quantize_price(on_demand - pool.price, precision),
            savings_percent=pool.savings,
        )
        for idx, pool in enumerate(pools)
    ]
