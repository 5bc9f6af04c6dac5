"""Yield optimizer strategy."""
import logging

from agentflow.core.chains import USDC_UNIT
from agentflow.core.config import YieldConfig
from agentflow.models import Action, Decision, PortfolioState, TokenBalance
from agentflow.strategies.base import ExecuteFn, ExecutingStrategy
from agentflow.strategies.market import MarketDataSource, YieldOpportunity

logger = logging.getLogger(__name__)

# Minimum idle USDC worth deploying
MIN_IDLE_BALANCE = 100 * USDC_UNIT

PRIORITY = 3


class YieldOptimizer(ExecutingStrategy):
    """Deploys idle USDC into the best allow-listed yield opportunity."""

    name = "yield"

    def __init__(
        self,
        config: YieldConfig,
        market: MarketDataSource,
        execute_fn: ExecuteFn | None = None,
    ):
        super().__init__(enabled=config.enabled, execute_fn=execute_fn)
        self.config = config
        self.market = market

    def best_opportunity(self) -> YieldOpportunity | None:
        """Highest-APY allow-listed opportunity meeting the APY floor."""
        candidates = [
            o for o in self.market.get_yield_opportunities()
            if o.protocol in self.config.protocols and o.apy >= self.config.min_apy
        ]
        if not candidates:
            return None
        # Stable: equal APYs keep source order
        return sorted(candidates, key=lambda o: o.apy, reverse=True)[0]

    def evaluate(self, state: PortfolioState) -> Decision | None:
        if not self.enabled:
            return None

        best = self.best_opportunity()
        if best is None:
            return None

        idle = self._idle_balance(state, best.chain_id)
        if idle is None or idle.balance < MIN_IDLE_BALANCE:
            logger.debug(f"Not enough idle USDC on chain {best.chain_id} for {best.protocol}")
            return None

        if self.config.min_apy > 0:
            confidence = min(best.apy / (self.config.min_apy * 2), 1.0)
        else:
            confidence = 1.0

        return Decision(
            id=f"{self.name}-{int(state.last_updated * 1000)}",
            strategy=self.name,
            action=Action.SWAP,
            from_chain=best.chain_id,
            to_chain=best.chain_id,
            from_token=idle.token,
            to_token=best.token,
            amount=idle.balance // 2,
            reason=f"Deploy to {best.protocol} for {best.apy:.2f}% APY",
            confidence=confidence,
            priority=PRIORITY,
        )

    @staticmethod
    def _idle_balance(state: PortfolioState, chain_id: int) -> TokenBalance | None:
        usdc = state.find_balance(chain_id, "USDC")
        if usdc is not None and usdc.balance > 0:
            return usdc
        return None
