"""Market data collaborators used by strategies."""
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from agentflow.core.chains import ARBITRUM, BASE, get_token_address


@dataclass(frozen=True)
class PriceQuote:
    """Reference price of a pair on one chain."""
    chain_id: int
    pair: str        # "WETH/USDC"
    price: int       # Quote units, 6 decimals
    liquidity: int   # Quote units, 6 decimals


@dataclass(frozen=True)
class YieldOpportunity:
    """A yield-bearing deposit opportunity."""
    protocol: str
    chain_id: int
    token: str
    apy: float       # Percent
    tvl: int


@runtime_checkable
class MarketDataSource(Protocol):
    """Protocol for price and yield data providers."""

    def get_price(self, chain_id: int, pair: str) -> PriceQuote | None:
        """Get the reference price of `pair` on `chain_id`, or None if unavailable."""
        ...

    def get_yield_opportunities(self) -> list[YieldOpportunity]:
        """Get currently available yield opportunities."""
        ...


class StaticMarketData:
    """Deterministic market data from fixed tables.

    Used as the default source and in tests. Pass `prices` and `yields` to
    override the built-in tables.
    """

    DEFAULT_PRICES = {
        (BASE, "WETH/USDC"): (2_500_000_000, 10_000_000_000_000),
        (ARBITRUM, "WETH/USDC"): (2_498_000_000, 15_000_000_000_000),
    }

    def __init__(
        self,
        prices: dict[tuple[int, str], tuple[int, int]] | None = None,
        yields: list[YieldOpportunity] | None = None,
    ):
        self._prices = dict(self.DEFAULT_PRICES if prices is None else prices)
        self._yields = list(self._default_yields() if yields is None else yields)

    @staticmethod
    def _default_yields() -> list[YieldOpportunity]:
        return [
            YieldOpportunity(
                protocol="aave",
                chain_id=BASE,
                token=get_token_address(BASE, "USDC"),
                apy=5.2,
                tvl=500_000_000_000_000,
            ),
            YieldOpportunity(
                protocol="compound",
                chain_id=ARBITRUM,
                token=get_token_address(ARBITRUM, "USDC"),
                apy=4.8,
                tvl=300_000_000_000_000,
            ),
            YieldOpportunity(
                protocol="aave",
                chain_id=ARBITRUM,
                token=get_token_address(ARBITRUM, "WETH"),
                apy=2.1,
                tvl=800_000_000_000_000,
            ),
        ]

    def get_price(self, chain_id: int, pair: str) -> PriceQuote | None:
        entry = self._prices.get((chain_id, pair))
        if entry is None:
            return None
        price, liquidity = entry
        return PriceQuote(chain_id=chain_id, pair=pair, price=price, liquidity=liquidity)

    def get_yield_opportunities(self) -> list[YieldOpportunity]:
        return list(self._yields)
