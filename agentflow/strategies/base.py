"""Base protocols and classes for trading strategies."""
import logging
from enum import Enum
from typing import Awaitable, Callable, Protocol, runtime_checkable

from agentflow.models import Decision, ExecutionResult, PortfolioState

logger = logging.getLogger(__name__)

ExecuteFn = Callable[[Decision], Awaitable[ExecutionResult]]


class StrategyKind(Enum):
    """The closed set of strategy kinds, in evaluation order."""
    REBALANCE = "rebalance"
    ARBITRAGE = "arbitrage"
    YIELD = "yield"


@runtime_checkable
class Strategy(Protocol):
    """Protocol for a self-contained evaluation rule.

    Strategies inspect a portfolio snapshot and optionally propose one
    decision, then carry that decision out when asked to.
    """

    name: str
    enabled: bool

    def evaluate(self, state: PortfolioState) -> Decision | None:
        """Evaluate a portfolio snapshot.

        Must be a pure function of `state` and the strategy's configuration.

        Args:
            state: The portfolio snapshot to inspect

        Returns:
            A decision, or None if there is nothing to do
        """
        ...

    async def execute(self, decision: Decision) -> ExecutionResult:
        """Carry out a decision produced by this strategy.

        Failures are reported through the result, never raised.

        Args:
            decision: Decision to execute

        Returns:
            ExecutionResult describing the outcome
        """
        ...


class ExecutingStrategy:
    """Shared execution behaviour for the built-in strategies.

    Execution is delegated to an injected function (normally the Executor).
    Without one the strategy runs dry and reports success.
    """

    name = "base"

    def __init__(self, enabled: bool, execute_fn: ExecuteFn | None = None):
        self.enabled = enabled
        self._execute_fn = execute_fn

    async def execute(self, decision: Decision) -> ExecutionResult:
        logger.info(f"[{self.name}] Executing: {decision.reason}")

        if self._execute_fn is None:
            logger.debug(f"[{self.name}] No executor configured, dry run for {decision.id}")
            return ExecutionResult.succeeded()

        try:
            return await self._execute_fn(decision)
        except Exception as e:
            logger.error(f"[{self.name}] Execution of {decision.id} failed: {e}")
            return ExecutionResult.failed(str(e))
