"""Tests for the decision engine."""
import asyncio
import pytest
from unittest.mock import Mock


def make_decision(id, strategy, priority, amount=1_000_000, from_chain=8453, to_chain=8453):
    from agentflow.models import Action, Decision

    return Decision(
        id=id,
        strategy=strategy,
        action=Action.SWAP,
        from_chain=from_chain,
        to_chain=to_chain,
        from_token="0xfrom",
        to_token="0xto",
        amount=amount,
        reason=f"{strategy} test decision",
        confidence=0.5,
        priority=priority,
    )


class FakeStrategy:
    """Strategy returning a fixed decision and result."""

    def __init__(self, name, decision=None, result=None, error=None, gate=None):
        from agentflow.models import ExecutionResult

        self.name = name
        self.enabled = True
        self.decision = decision
        self.result = result or ExecutionResult.succeeded(tx_id=f"tx-{name}")
        self.error = error
        self.gate = gate
        self.executed = []

    def evaluate(self, state):
        if self.error is not None:
            raise self.error
        return self.decision

    async def execute(self, decision):
        self.executed.append(decision.id)
        if self.gate is not None:
            await self.gate.wait()
        return self.result


def make_state():
    from agentflow.models import PortfolioState

    return PortfolioState(address="0xagent", total_value_usd=0.0, last_updated=1_700_000_000.0)


def make_engine(strategies, events=None, limits=None):
    from agentflow.core.config import AgentConfig, RiskLimits
    from agentflow.core.engine import DecisionEngine

    config = AgentConfig(risk_limits=limits or RiskLimits())
    return DecisionEngine(config, events=events, strategies=strategies)


def test_rank_decisions_is_stable():
    from agentflow.core.engine import rank_decisions

    decisions = [
        make_decision("a", "s1", 5),
        make_decision("b", "s2", 10),
        make_decision("c", "s3", 5),
        make_decision("d", "s4", 3),
    ]

    assert [d.id for d in rank_decisions(decisions)] == ["b", "a", "c", "d"]


def test_engine_builds_strategies_from_config():
    from agentflow.core.config import default_agent_config
    from agentflow.core.engine import DecisionEngine

    engine = DecisionEngine(default_agent_config())

    assert [s.name for s in engine.strategies] == ["rebalance", "arbitrage"]
    assert engine.get_strategy("arbitrage") is not None
    assert engine.get_strategy("yield") is None


def test_evaluate_strategies_orders_by_priority():
    engine = make_engine([
        FakeStrategy("low", make_decision("low-1", "low", 3)),
        FakeStrategy("high", make_decision("high-1", "high", 10)),
        FakeStrategy("idle"),
    ])

    decisions = engine.evaluate_strategies(make_state())

    assert [d.id for d in decisions] == ["high-1", "low-1"]


def test_evaluation_failure_is_isolated():
    from agentflow.core.engine import EngineEvents
    from agentflow.core.errors import EvaluationError

    on_error = Mock()
    on_decision = Mock()
    engine = make_engine(
        [
            FakeStrategy("broken", error=ValueError("bad data")),
            FakeStrategy("ok", make_decision("ok-1", "ok", 5)),
        ],
        events=EngineEvents(on_decision=on_decision, on_error=on_error),
    )

    decisions = engine.evaluate_strategies(make_state())

    assert [d.id for d in decisions] == ["ok-1"]
    on_decision.assert_called_once()
    error, decision = on_error.call_args.args
    assert isinstance(error, EvaluationError)
    assert error.strategy == "broken"
    assert decision is None


def test_failing_callback_does_not_break_evaluation():
    from agentflow.core.engine import EngineEvents

    engine = make_engine(
        [FakeStrategy("ok", make_decision("ok-1", "ok", 5))],
        events=EngineEvents(on_decision=Mock(side_effect=RuntimeError("observer"))),
    )

    assert len(engine.evaluate_strategies(make_state())) == 1


@pytest.mark.asyncio
async def test_execute_decision_unknown_strategy():
    from agentflow.core.engine import EngineEvents
    from agentflow.core.errors import NotFoundError

    on_error = Mock()
    engine = make_engine([], events=EngineEvents(on_error=on_error))

    result = await engine.execute_decision(make_decision("x", "ghost", 1))

    assert result.success is False
    assert result.error == "Strategy ghost not found"
    assert isinstance(on_error.call_args.args[0], NotFoundError)


@pytest.mark.asyncio
async def test_execute_decision_reports_execution():
    from agentflow.core.engine import EngineEvents

    on_execution = Mock()
    strategy = FakeStrategy("s", make_decision("s-1", "s", 1))
    engine = make_engine([strategy], events=EngineEvents(on_execution=on_execution))

    result = await engine.execute_decision(strategy.decision)

    assert result.success is True
    on_execution.assert_called_once_with(strategy.decision, result)


@pytest.mark.asyncio
async def test_execute_decision_captures_exceptions():
    strategy = FakeStrategy("s", make_decision("s-1", "s", 1))

    async def explode(decision):
        raise RuntimeError("boom")

    strategy.execute = explode
    engine = make_engine([strategy])

    result = await engine.execute_decision(strategy.decision)

    assert result.success is False
    assert result.error == "boom"


@pytest.mark.asyncio
async def test_run_once_stops_at_first_failure():
    from agentflow.models import ExecutionResult

    first = FakeStrategy("first", make_decision("first-1", "first", 10))
    second = FakeStrategy(
        "second", make_decision("second-1", "second", 5), result=ExecutionResult.failed("rejected")
    )
    third = FakeStrategy("third", make_decision("third-1", "third", 3))
    engine = make_engine([third, second, first])

    results = await engine.run_once(make_state())

    assert len(results) == 2
    assert results[0].success is True
    assert results[1].success is False
    assert first.executed == ["first-1"]
    assert second.executed == ["second-1"]
    assert third.executed == []


@pytest.mark.asyncio
async def test_run_once_skips_decisions_over_trade_size():
    from agentflow.core.config import RiskLimits
    from agentflow.core.engine import EngineEvents
    from agentflow.core.errors import RiskLimitExceeded

    on_error = Mock()
    big = FakeStrategy("big", make_decision("big-1", "big", 10, amount=2_000_000))
    small = FakeStrategy("small", make_decision("small-1", "small", 5, amount=500_000))
    engine = make_engine(
        [big, small],
        events=EngineEvents(on_error=on_error),
        limits=RiskLimits(max_trade_size=1_000_000),
    )

    results = await engine.run_once(make_state())

    assert len(results) == 1
    assert big.executed == []
    assert small.executed == ["small-1"]
    error, decision = on_error.call_args.args
    assert isinstance(error, RiskLimitExceeded)
    assert decision.id == "big-1"


@pytest.mark.asyncio
async def test_run_once_enforces_daily_volume():
    from agentflow.core.config import RiskLimits

    first = FakeStrategy("first", make_decision("first-1", "first", 10, amount=600_000))
    second = FakeStrategy("second", make_decision("second-1", "second", 5, amount=600_000))
    engine = make_engine(
        [first, second],
        limits=RiskLimits(max_trade_size=1_000_000, max_daily_volume=1_000_000),
    )

    results = await engine.run_once(make_state())

    assert len(results) == 1
    assert second.executed == []
    assert engine.risk_gate.daily_volume == 600_000


@pytest.mark.asyncio
async def test_start_runs_periodic_cycles():
    strategy = FakeStrategy("s", make_decision("s-1", "s", 1))
    engine = make_engine([strategy])
    calls = []

    def provider():
        calls.append(1)
        return make_state()

    engine.start(provider, interval=0.01)
    assert engine.is_running is True

    await asyncio.sleep(0.1)
    engine.stop()
    await engine.wait_idle()

    assert engine.is_running is False
    assert len(calls) >= 2
    assert len(strategy.executed) == len(calls)


@pytest.mark.asyncio
async def test_start_accepts_async_provider():
    strategy = FakeStrategy("s", make_decision("s-1", "s", 1))
    engine = make_engine([strategy])

    async def provider():
        return make_state()

    engine.start(provider, interval=0.01)
    await asyncio.sleep(0.05)
    engine.stop()
    await engine.wait_idle()

    assert len(strategy.executed) >= 1


@pytest.mark.asyncio
async def test_overlapping_ticks_are_skipped():
    gate = asyncio.Event()
    strategy = FakeStrategy("slow", make_decision("slow-1", "slow", 1), gate=gate)
    engine = make_engine([strategy])
    calls = []

    def provider():
        calls.append(1)
        return make_state()

    engine.start(provider, interval=0.01)
    await asyncio.sleep(0.1)

    assert len(calls) == 1

    gate.set()
    engine.stop()
    await engine.wait_idle()

    assert strategy.executed == ["slow-1"]


@pytest.mark.asyncio
async def test_provider_failure_is_reported():
    from agentflow.core.engine import EngineEvents

    on_error = Mock()
    engine = make_engine([], events=EngineEvents(on_error=on_error))

    def provider():
        raise ConnectionError("rpc unavailable")

    engine.start(provider, interval=0.01)
    await asyncio.sleep(0.05)
    engine.stop()
    await engine.wait_idle()

    assert on_error.called
    assert isinstance(on_error.call_args.args[0], ConnectionError)


@pytest.mark.asyncio
async def test_stop_is_idempotent():
    engine = make_engine([])

    engine.stop()
    engine.start(make_state, interval=1.0)
    engine.start(make_state, interval=1.0)
    engine.stop()
    engine.stop()

    assert engine.is_running is False
