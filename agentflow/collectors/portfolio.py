"""Portfolio state providers."""
import logging
import time
from typing import Callable, Protocol, runtime_checkable

from agentflow.core.chains import TOKEN_DECIMALS, get_token_address
from agentflow.core.config import HoldingSettings
from agentflow.models import PortfolioState, TokenBalance

logger = logging.getLogger(__name__)


@runtime_checkable
class StateProvider(Protocol):
    """Protocol for sources of portfolio snapshots."""

    async def get_state(self) -> PortfolioState:
        """Return a fresh snapshot of the agent's holdings."""
        ...


class StaticPortfolioProvider:
    """Snapshots built from a fixed list of holdings."""

    def __init__(
        self,
        address: str,
        holdings: list[HoldingSettings],
        clock: Callable[[], float] = time.time,
    ):
        self.address = address
        self.holdings = list(holdings)
        self._clock = clock

    async def get_state(self) -> PortfolioState:
        balances: dict[int, list[TokenBalance]] = {}
        for holding in self.holdings:
            token = get_token_address(holding.chain_id, holding.symbol)
            if token is None:
                logger.warning(f"Unknown token {holding.symbol} on chain {holding.chain_id}, skipping")
                continue
            balances.setdefault(holding.chain_id, []).append(TokenBalance(
                token=token,
                symbol=holding.symbol,
                decimals=TOKEN_DECIMALS.get(holding.symbol, 18),
                balance=holding.balance,
                value_usd=holding.value_usd,
            ))

        state = PortfolioState(
            address=self.address,
            balances={chain_id: tuple(items) for chain_id, items in balances.items()},
            total_value_usd=sum(h.value_usd for items in balances.values() for h in items),
            last_updated=self._clock(),
        )
        logger.debug(
            "STATE: Portfolio snapshot",
            extra={
                "extra_data": {
                    "action": "snapshot",
                    "chains": sorted(state.balances),
                    "total_value_usd": state.total_value_usd,
                }
            },
        )
        return state
