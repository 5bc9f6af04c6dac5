"""Decision engine: evaluates strategies and drives execution."""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Union

from agentflow.core.config import AgentConfig
from agentflow.core.errors import EvaluationError, NotFoundError, RiskLimitExceeded
from agentflow.core.risk import RiskGate
from agentflow.models import Decision, ExecutionResult, PortfolioState
from agentflow.strategies.base import ExecuteFn, Strategy
from agentflow.strategies.factory import build_strategies
from agentflow.strategies.market import MarketDataSource

logger = logging.getLogger(__name__)

StateProvider = Callable[[], Union[PortfolioState, Awaitable[PortfolioState]]]


@dataclass
class EngineEvents:
    """Observer callbacks invoked by the engine."""

    on_decision: Callable[[Decision], None] | None = None
    on_execution: Callable[[Decision, ExecutionResult], None] | None = None
    on_error: Callable[[Exception, Decision | None], None] | None = None


def rank_decisions(decisions: list[Decision]) -> list[Decision]:
    """Order decisions by priority, highest first.

    The sort is stable, so equal priorities keep evaluation order.
    """
    return sorted(decisions, key=lambda d: d.priority, reverse=True)


class DecisionEngine:
    """Runs the enabled strategies against portfolio snapshots.

    Each cycle evaluates every strategy, ranks the decisions, gates them
    against the risk limits and executes them in priority order, stopping
    at the first failure. `start()` runs cycles periodically with at most
    one cycle in flight.
    """

    def __init__(
        self,
        config: AgentConfig,
        market: MarketDataSource | None = None,
        execute_fn: ExecuteFn | None = None,
        events: EngineEvents | None = None,
        risk_gate: RiskGate | None = None,
        strategies: list[Strategy] | None = None,
    ):
        """Initialize the engine.

        Args:
            config: Agent configuration, fixed for the engine's lifetime
            market: Price and yield source for the strategies
            execute_fn: Function strategies delegate execution to
            events: Observer callbacks
            risk_gate: Risk gate (defaults to one built from config.risk_limits)
            strategies: Strategies to run instead of those built from config
        """
        self.config = config
        self.events = events or EngineEvents()
        self.risk_gate = risk_gate or RiskGate(config.risk_limits)
        self._strategies: list[Strategy] = (
            list(strategies) if strategies is not None
            else build_strategies(config, market, execute_fn)
        )

        self._running = False
        self._timer: asyncio.Task | None = None
        self._cycle: asyncio.Task | None = None

        logger.info(f"Decision engine initialized with strategies: {[s.name for s in self._strategies]}")

    @property
    def is_running(self) -> bool:
        """Check if the periodic loop is running."""
        return self._running

    @property
    def strategies(self) -> list[Strategy]:
        """Enabled strategies, in evaluation order."""
        return list(self._strategies)

    def get_strategy(self, name: str) -> Strategy | None:
        """Get a strategy by name.

        Args:
            name: Strategy name

        Returns:
            Strategy if found, None otherwise
        """
        for strategy in self._strategies:
            if strategy.name == name:
                return strategy
        return None

    # =========================================================================
    # Evaluation and execution
    # =========================================================================

    def evaluate_strategies(self, state: PortfolioState) -> list[Decision]:
        """Evaluate every strategy against a snapshot.

        A strategy that raises is reported and skipped; the others still run.

        Args:
            state: Portfolio snapshot

        Returns:
            Decisions ordered by priority, highest first
        """
        decisions: list[Decision] = []

        for strategy in self._strategies:
            try:
                decision = strategy.evaluate(state)
            except Exception as e:
                logger.error(f"Strategy {strategy.name} failed to evaluate: {e}")
                self._emit_error(EvaluationError(strategy.name, e), None)
                continue

            if decision is not None:
                logger.info(
                    f"Strategy {strategy.name} decision: {decision.action.value.upper()} "
                    f"{decision.amount} {decision.from_chain}->{decision.to_chain} "
                    f"(priority={decision.priority}, confidence={decision.confidence:.0%})"
                )
                decisions.append(decision)
                self._emit(self.events.on_decision, decision)

        return rank_decisions(decisions)

    async def execute_decision(self, decision: Decision) -> ExecutionResult:
        """Execute a decision through its owning strategy.

        Never raises: failures are returned as unsuccessful results.

        Args:
            decision: Decision to execute

        Returns:
            ExecutionResult describing the outcome
        """
        strategy = self.get_strategy(decision.strategy)
        if strategy is None:
            message = f"Strategy {decision.strategy} not found"
            logger.warning(message)
            self._emit_error(NotFoundError(message), decision)
            return ExecutionResult.failed(message)

        try:
            result = await strategy.execute(decision)
        except Exception as e:
            logger.error(f"Execution of {decision.id} raised: {e}")
            self._emit_error(e, decision)
            return ExecutionResult.failed(str(e))

        self._emit(self.events.on_execution, decision, result)
        return result

    async def run_once(self, state: PortfolioState) -> list[ExecutionResult]:
        """Run one evaluation cycle.

        Decisions are executed in priority order. Decisions over a risk
        limit are skipped; the cycle stops after the first failed execution.

        Args:
            state: Portfolio snapshot

        Returns:
            Results of the attempted decisions, in attempt order
        """
        decisions = self.evaluate_strategies(state)
        results: list[ExecutionResult] = []

        for decision in decisions:
            try:
                self.risk_gate.check(decision)
            except RiskLimitExceeded as e:
                logger.warning(f"Skipping {decision.id}: {e}")
                self._emit_error(e, decision)
                continue

            result = await self.execute_decision(decision)
            results.append(result)

            if not result.success:
                logger.warning(
                    f"Execution of {decision.id} failed ({result.error}), "
                    f"stopping cycle with {len(decisions) - len(results)} decision(s) left"
                )
                break

            self.risk_gate.record(decision)

        logger.debug(
            "CYCLE: Evaluation cycle complete",
            extra={
                "extra_data": {
                    "action": "cycle_complete",
                    "decisions": len(decisions),
                    "attempted": len(results),
                    "succeeded": sum(1 for r in results if r.success),
                }
            },
        )

        return results

    # =========================================================================
    # Periodic loop
    # =========================================================================

    def start(self, state_provider: StateProvider, interval: float = 30.0) -> None:
        """Start running cycles every `interval` seconds.

        Must be called from a running event loop. Does nothing if already
        running.

        Args:
            state_provider: Returns (or resolves to) the current snapshot
            interval: Seconds between ticks
        """
        if self._running:
            return

        self._running = True
        self._timer = asyncio.get_running_loop().create_task(
            self._run_periodic(state_provider, interval)
        )
        logger.info(f"Decision engine started (interval={interval}s)")

    def stop(self) -> None:
        """Stop scheduling ticks. An in-flight cycle is allowed to finish."""
        if not self._running and self._timer is None:
            return

        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.info("Decision engine stopped")

    async def wait_idle(self) -> None:
        """Wait for the in-flight cycle, if any, to complete."""
        if self._cycle is not None and not self._cycle.done():
            await asyncio.wait([self._cycle])

    async def _run_periodic(self, state_provider: StateProvider, interval: float) -> None:
        while self._running:
            await asyncio.sleep(interval)
            if not self._running:
                break

            if self._cycle is not None and not self._cycle.done():
                logger.warning("Previous cycle still running, skipping tick")
                continue

            self._cycle = asyncio.create_task(self._tick(state_provider))

    async def _tick(self, state_provider: StateProvider) -> None:
        try:
            state = state_provider()
            if inspect.isawaitable(state):
                state = await state
            await self.run_once(state)
        except Exception as e:
            logger.error(f"Engine tick failed: {e}")
            self._emit_error(e, None)

    # =========================================================================
    # Callbacks
    # =========================================================================

    def _emit_error(self, error: Exception, decision: Decision | None) -> None:
        self._emit(self.events.on_error, error, decision)

    @staticmethod
    def _emit(callback: Callable | None, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Error in engine callback {getattr(callback, '__name__', callback)}: {e}")
