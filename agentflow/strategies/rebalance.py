"""Portfolio rebalancing strategy."""
import logging
from decimal import Decimal, ROUND_FLOOR

from agentflow.core.chains import USDC_UNIT, asset_key, get_token_address, parse_asset_key
from agentflow.core.config import RebalanceConfig
from agentflow.models import Action, Decision, PortfolioState
from agentflow.strategies.base import ExecuteFn, ExecutingStrategy

logger = logging.getLogger(__name__)

# Tokens traded against each other on a chain when rebalancing
PAIR_SYMBOLS = ("USDC", "WETH")

PRIORITY = 5


class Rebalancer(ExecutingStrategy):
    """Keeps per-asset allocations close to configured targets.

    Finds the asset whose current allocation deviates most from its target
    and proposes a same-chain trade against its pair token when that
    deviation exceeds the threshold. Ties go to the lexically smallest
    asset key.
    """

    name = "rebalance"

    def __init__(self, config: RebalanceConfig, execute_fn: ExecuteFn | None = None):
        super().__init__(enabled=config.enabled, execute_fn=execute_fn)
        self.config = config

    def current_allocations(self, state: PortfolioState) -> dict[str, float]:
        """Compute each asset's share of the portfolio, in percent."""
        allocations: dict[str, float] = {}
        for chain_id, balances in state.balances.items():
            for balance in balances:
                key = asset_key(chain_id, balance.symbol)
                share = balance.value_usd / state.total_value_usd * 100
                allocations[key] = allocations.get(key, 0.0) + share
        return allocations

    def evaluate(self, state: PortfolioState) -> Decision | None:
        if not self.enabled or state.total_value_usd <= 0:
            return None

        allocations = self.current_allocations(state)

        max_deviation = 0.0
        deviating_asset: str | None = None
        target_allocation = 0.0
        current_allocation = 0.0

        for asset in sorted(self.config.target_allocations):
            target = self.config.target_allocations[asset]
            current = allocations.get(asset, 0.0)
            deviation = abs(current - target)
            if deviation > max_deviation:
                max_deviation = deviation
                deviating_asset = asset
                target_allocation = target
                current_allocation = current

        if deviating_asset is None or max_deviation <= self.config.rebalance_threshold:
            return None

        chain_id, symbol = parse_asset_key(deviating_asset)
        counterpart = self._counterpart(symbol)
        asset_token = get_token_address(chain_id, symbol)
        counterpart_token = get_token_address(chain_id, counterpart)
        if asset_token is None or counterpart_token is None:
            logger.debug(f"No {symbol}/{counterpart} pair on chain {chain_id}, skipping rebalance")
            return None

        # Underweight: buy the asset with its pair token. Overweight: sell it.
        needs_more = current_allocation < target_allocation
        from_token, to_token = (
            (counterpart_token, asset_token) if needs_more else (asset_token, counterpart_token)
        )

        return Decision(
            id=f"{self.name}-{int(state.last_updated * 1000)}",
            strategy=self.name,
            action=Action.REBALANCE,
            from_chain=chain_id,
            to_chain=chain_id,
            from_token=from_token,
            to_token=to_token,
            amount=self.rebalance_amount(state.total_value_usd, max_deviation),
            reason=(
                f"{deviating_asset} allocation is {current_allocation:.1f}%, "
                f"target is {target_allocation:g}%"
            ),
            confidence=min(max_deviation / self.config.rebalance_threshold, 1.0),
            priority=PRIORITY,
        )

    @staticmethod
    def rebalance_amount(total_value_usd: float, deviation: float) -> int:
        """Value to move, in smallest units of the 6-decimal reference asset."""
        value_to_move = Decimal(repr(total_value_usd)) * Decimal(repr(deviation)) / 100
        return int((value_to_move * USDC_UNIT).to_integral_value(rounding=ROUND_FLOOR))

    @staticmethod
    def _counterpart(symbol: str) -> str:
        base, quote = PAIR_SYMBOLS
        return quote if symbol == base else base
