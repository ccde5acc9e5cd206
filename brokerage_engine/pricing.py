from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple

from Shared_Utils.precision import safe_decimal

PriceSnapshot = Dict[Tuple[str, str], Decimal]


class StockPriceLookup(Protocol):
    """Source of current market prices keyed by (symbol, exchange)."""

    async def snapshot(self, uow) -> PriceSnapshot:
        ...


class StockTablePriceLookup:
    """Reads stocks.current_price, as maintained by the price-file ingester."""

    async def snapshot(self, uow) -> PriceSnapshot:
        return await uow.reference.price_snapshot()


class StaticPriceLookup:
    """Fixed prices, for callers that already hold a quote set."""

    def __init__(self, prices: Optional[Dict[Tuple[str, str], object]] = None):
        self.prices = {
            (symbol.upper(), exchange.upper()): safe_decimal(price)
            for (symbol, exchange), price in (prices or {}).items()
        }

    async def snapshot(self, uow) -> PriceSnapshot:
        return dict(self.prices)
