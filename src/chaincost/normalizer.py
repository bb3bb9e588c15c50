"""Conversion of raw adapter fees into native-unit and USD cost."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, localcontext

from .config import ChainConfig
from .pricing import PriceCache
from .types import FeeShape, FixedNativeFee, GasFee, LedgerDropFee
from .utils import format_decimal, shift_decimals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedCost:
    """Native and USD cost of one operation, rendered as decimal strings."""

    native_cost: str
    usd_cost: str


def native_cost(fee: FeeShape, decimals: int) -> Decimal:
    """Return the fee in whole native units.

    ``FixedNativeFee`` is used verbatim; gas and ledger fees are decimal
    shifted from the chain's smallest unit.
    """
    if isinstance(fee, FixedNativeFee):
        return fee.amount
    if isinstance(fee, GasFee):
        total = fee.gas_used * fee.gas_price + fee.additional_cost
        return shift_decimals(total, decimals)
    if isinstance(fee, LedgerDropFee):
        return shift_decimals(fee.drops, decimals)
    raise TypeError(f"Unsupported fee shape: {type(fee)!r}")


def usd_cost(native: Decimal, usd_price: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(28, len(native.as_tuple().digits) + len(usd_price.as_tuple().digits) + 2)
        return native * usd_price


class CostNormalizer:
    """Chain-aware fee normalizer bound to one run's price cache."""

    def __init__(self, prices: PriceCache) -> None:
        self._prices = prices

    @property
    def prices(self) -> PriceCache:
        return self._prices

    def native_cost(self, fee: FeeShape, config: ChainConfig) -> str:
        return format_decimal(native_cost(fee, config.native_currency.decimals))

    async def normalize(self, fee: FeeShape, config: ChainConfig) -> NormalizedCost:
        """Convert ``fee`` into native and USD cost for ``config``'s chain.

        Raises:
            PriceUnavailableError: If the native asset price cannot be fetched.
        """
        native = native_cost(fee, config.native_currency.decimals)
        if native.is_zero():
            return NormalizedCost(native_cost="0", usd_cost="0")

        price = await self._prices.get_usd_price(config.price_asset_id)
        usd = usd_cost(native, price)
        logger.debug(
            "Normalized %s fee on %s: native=%s usd=%s",
            type(fee).__name__,
            config.chain.value,
            native,
            usd,
        )
        return NormalizedCost(native_cost=format_decimal(native), usd_cost=format_decimal(usd))
