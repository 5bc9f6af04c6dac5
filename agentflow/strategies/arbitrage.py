"""Cross-chain arbitrage strategy."""
import logging
from dataclasses import dataclass

from agentflow.core.chains import ARBITRUM, BASE, USDC_UNIT, get_token_address
from agentflow.core.config import ArbitrageConfig
from agentflow.models import Action, Decision, PortfolioState
from agentflow.strategies.base import ExecuteFn, ExecutingStrategy
from agentflow.strategies.market import MarketDataSource

logger = logging.getLogger(__name__)

PAIR = "WETH/USDC"

# Trade size when the source chain holds no USDC
FLOOR_AMOUNT = 100 * USDC_UNIT

PRIORITY = 10


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """A price gap between the two scanned chains."""
    from_chain: int
    to_chain: int
    spread_bps: int
    amount: int


def spread_bps(reference_price: int, other_price: int) -> int:
    """Signed spread of `reference_price` over `other_price`, in basis points.

    Truncates toward zero.
    """
    diff = (reference_price - other_price) * 10_000
    magnitude = abs(diff) // reference_price
    return magnitude if diff >= 0 else -magnitude


class ArbitrageScanner(ExecutingStrategy):
    """Looks for a price spread on the same pair across Base and Arbitrum.

    Funds move from the cheaper chain to the more expensive one. The scan is
    time-sensitive, so decisions carry the highest priority.
    """

    name = "arbitrage"

    def __init__(
        self,
        config: ArbitrageConfig,
        market: MarketDataSource,
        execute_fn: ExecuteFn | None = None,
        chains: tuple[int, int] = (BASE, ARBITRUM),
    ):
        super().__init__(enabled=config.enabled, execute_fn=execute_fn)
        self.config = config
        self.market = market
        self.chains = chains

    def evaluate(self, state: PortfolioState) -> Decision | None:
        if not self.enabled:
            return None

        opportunity = self.find_opportunity(state)
        if opportunity is None:
            return None

        return Decision(
            id=f"{self.name}-{int(state.last_updated * 1000)}",
            strategy=self.name,
            action=Action.BRIDGE,
            from_chain=opportunity.from_chain,
            to_chain=opportunity.to_chain,
            from_token=get_token_address(opportunity.from_chain, "USDC"),
            to_token=get_token_address(opportunity.to_chain, "USDC"),
            amount=opportunity.amount,
            reason=f"Cross-chain arbitrage opportunity: {opportunity.spread_bps}bps spread",
            confidence=min(opportunity.spread_bps / (self.config.min_profit_bps * 2), 1.0),
            priority=PRIORITY,
        )

    def find_opportunity(self, state: PortfolioState) -> ArbitrageOpportunity | None:
        """Compare prices across the two chains and size a trade."""
        first_chain, second_chain = self.chains
        first = self.market.get_price(first_chain, PAIR)
        second = self.market.get_price(second_chain, PAIR)

        if first is None or second is None or first.price <= 0:
            logger.debug(f"Price data unavailable for {PAIR}, skipping arbitrage scan")
            return None

        spread = spread_bps(first.price, second.price)
        if abs(spread) <= self.config.min_profit_bps:
            return None

        # Buy where it is cheap, sell where it is expensive
        if spread > 0:
            from_chain, to_chain = second_chain, first_chain
        else:
            from_chain, to_chain = first_chain, second_chain

        if get_token_address(from_chain, "USDC") is None or get_token_address(to_chain, "USDC") is None:
            return None

        source = state.find_balance(from_chain, "USDC")
        available = source.balance if source is not None else 0
        amount = available // 10 if available > 0 else FLOOR_AMOUNT

        return ArbitrageOpportunity(
            from_chain=from_chain,
            to_chain=to_chain,
            spread_bps=abs(spread),
            amount=amount,
        )
