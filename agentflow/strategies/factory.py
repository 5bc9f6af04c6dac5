"""Builds the enabled strategies from an agent configuration."""
import logging

from agentflow.core.config import AgentConfig
from agentflow.strategies.arbitrage import ArbitrageScanner
from agentflow.strategies.base import ExecuteFn, Strategy, StrategyKind
from agentflow.strategies.market import MarketDataSource, StaticMarketData
from agentflow.strategies.rebalance import Rebalancer
from agentflow.strategies.yield_optimizer import YieldOptimizer

logger = logging.getLogger(__name__)


def build_strategies(
    config: AgentConfig,
    market: MarketDataSource | None = None,
    execute_fn: ExecuteFn | None = None,
) -> list[Strategy]:
    """Instantiate every enabled strategy, in StrategyKind order.

    Args:
        config: Agent configuration
        market: Price and yield source (defaults to StaticMarketData)
        execute_fn: Function strategies delegate execution to

    Returns:
        List of enabled strategies
    """
    market = market or StaticMarketData()
    strategies_config = config.strategies
    strategies: list[Strategy] = []

    for kind in StrategyKind:
        if kind is StrategyKind.REBALANCE and strategies_config.rebalance.enabled:
            strategies.append(Rebalancer(strategies_config.rebalance, execute_fn))
        elif kind is StrategyKind.ARBITRAGE and strategies_config.arbitrage.enabled:
            strategies.append(ArbitrageScanner(strategies_config.arbitrage, market, execute_fn))
        elif kind is StrategyKind.YIELD and strategies_config.yield_.enabled:
            strategies.append(YieldOptimizer(strategies_config.yield_, market, execute_fn))

    logger.debug(f"Built strategies: {[s.name for s in strategies]}")
    return strategies
