"""Tests for configuration loading."""
import json
import pytest
import tempfile


SAMPLE_CONFIG = """
agent:
  name: "trader.eth"
  address: "0xabc0000000000000000000000000000000000001"

loop:
  interval_seconds: 15

data_store:
  path: "./data"

session:
  confirmation_timeout_seconds: 5
  signing_key: "test-key"

bridge:
  provider: "lifi"
  slippage_pct: 0.3

registry:
  authorized: true
  max_swap_size: "500000000"

portfolio:
  - {chain_id: 8453, symbol: USDC, balance: 5000000000, value_usd: 5000.0}
  - {chain_id: 42161, symbol: WETH, balance: "200000000000000000", value_usd: 500.0}
"""

MINIMAL_CONFIG = """
agent:
  address: "0xabc0000000000000000000000000000000000001"
loop: {}
data_store: {}
"""


def _write(content: str) -> str:
    f = tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False)
    f.write(content)
    f.close()
    return f.name


def test_load_settings_from_file():
    from agentflow.core.config import load_settings

    settings = load_settings(_write(SAMPLE_CONFIG))

    assert settings.agent.name == "trader.eth"
    assert settings.agent.address == "0xabc0000000000000000000000000000000000001"
    assert settings.loop.interval_seconds == 15.0
    assert settings.session.confirmation_timeout_seconds == 5.0
    assert settings.session.signing_key == "test-key"
    assert settings.bridge.provider == "lifi"
    assert settings.bridge.slippage_pct == 0.3
    assert settings.registry.max_swap_size == 500_000_000


def test_load_settings_portfolio():
    from agentflow.core.config import load_settings

    settings = load_settings(_write(SAMPLE_CONFIG))

    assert len(settings.portfolio) == 2
    assert settings.portfolio[0].chain_id == 8453
    assert settings.portfolio[0].balance == 5_000_000_000
    assert settings.portfolio[1].balance == 200_000_000_000_000_000


def test_load_settings_defaults():
    from agentflow.core.config import load_settings

    settings = load_settings(_write(MINIMAL_CONFIG))

    assert settings.agent.name is None
    assert settings.loop.interval_seconds == 30.0
    assert settings.data_store.path == "./data"
    assert settings.name_service.enabled is False
    assert settings.session.settlement_timeout_seconds == 60.0
    assert settings.session.asset_symbol == "USDC"
    assert settings.bridge.provider == "simulated"
    assert settings.registry.authorized is True
    assert settings.portfolio == []


def test_config_file_not_found():
    from agentflow.core.config import load_settings
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="not found"):
        load_settings("/nonexistent/path/config.yaml")


def test_config_empty_file():
    from agentflow.core.config import load_settings
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="empty"):
        load_settings(_write(""))


def test_config_invalid_yaml():
    from agentflow.core.config import load_settings
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="YAML"):
        load_settings(_write("agent: [unclosed\n"))


def test_config_missing_section():
    from agentflow.core.config import load_settings
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="loop"):
        load_settings(_write("agent:\n  address: '0x1'\ndata_store: {}\n"))


def test_config_missing_address():
    from agentflow.core.config import load_settings
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="agent.address"):
        load_settings(_write("agent:\n  name: x\nloop: {}\ndata_store: {}\n"))


def test_config_unknown_bridge_provider():
    from agentflow.core.config import load_settings
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="bridge provider"):
        load_settings(_write(MINIMAL_CONFIG + "bridge:\n  provider: wormhole\n"))


def test_config_invalid_inline_agent_config():
    from agentflow.core.config import load_settings
    from agentflow.core.errors import ConfigurationError

    content = """
agent:
  address: "0x1"
  config:
    riskLimits:
      maxSlippage: 9
loop: {}
data_store: {}
"""
    with pytest.raises(ConfigurationError, match="maxSlippage"):
        load_settings(_write(content))


def test_default_agent_config():
    from agentflow.core.config import default_agent_config

    config = default_agent_config()

    assert config.strategies.rebalance.enabled is True
    assert config.strategies.rebalance.rebalance_threshold == 5.0
    assert sum(config.strategies.rebalance.target_allocations.values()) == 100.0
    assert config.strategies.arbitrage.min_profit_bps == 10
    assert config.strategies.yield_.enabled is False
    assert config.risk_limits.max_trade_size == 1_000_000_000
    assert config.risk_limits.max_daily_volume == 10_000_000_000
    assert config.yellow_session.deposit_amount == 500_000_000
    assert config.yellow_session.settlement_threshold == 100_000_000


def test_target_allocations_are_read_only():
    from agentflow.core.config import RebalanceConfig, parse_agent_config

    targets = {"8453:USDC": 60.0, "8453:WETH": 40.0}
    rebalance = RebalanceConfig(target_allocations=targets)
    targets["8453:USDC"] = 0.0

    assert rebalance.target_allocations["8453:USDC"] == 60.0
    with pytest.raises(TypeError):
        rebalance.target_allocations["8453:USDC"] = 10.0

    parsed = parse_agent_config({"strategies": {"rebalance": {"targetAllocations": targets}}})
    with pytest.raises(TypeError):
        parsed.strategies.rebalance.target_allocations["8453:WETH"] = 10.0


def test_parse_agent_config_fills_defaults():
    from agentflow.core.config import parse_agent_config

    config = parse_agent_config({"strategies": {"arbitrage": {"minProfitBps": 25}}})

    assert config.strategies.arbitrage.min_profit_bps == 25
    assert config.strategies.arbitrage.max_slippage_bps == 50
    assert config.strategies.rebalance.enabled is True
    assert config.risk_limits.max_slippage == 1.0


def test_parse_agent_config_amounts_from_strings():
    from agentflow.core.config import parse_agent_config

    config = parse_agent_config({
        "riskLimits": {"maxTradeSize": "123456789012345678901234567890"},
        "yellowSession": {"depositAmount": 250000000},
    })

    assert config.risk_limits.max_trade_size == 123456789012345678901234567890
    assert config.yellow_session.deposit_amount == 250_000_000


@pytest.mark.parametrize("data, field", [
    ({"strategies": {"rebalance": {"rebalanceThreshold": 0.5}}}, "rebalanceThreshold"),
    ({"strategies": {"arbitrage": {"minProfitBps": 5000}}}, "minProfitBps"),
    ({"strategies": {"arbitrage": {"maxSlippageBps": 0}}}, "maxSlippageBps"),
    ({"strategies": {"yield": {"minApy": 150}}}, "minApy"),
    ({"riskLimits": {"maxTradeSize": "-5"}}, "maxTradeSize"),
    ({"riskLimits": {"maxDailyVolume": 1.5}}, "maxDailyVolume"),
    ({"yellowSession": {"autoDeposit": "yes"}}, "autoDeposit"),
    ({"strategies": {"rebalance": {"targetAllocations": {"base-usdc": 50}}}}, "asset key"),
])
def test_parse_agent_config_rejects_invalid(data, field):
    from agentflow.core.config import parse_agent_config
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match=field):
        parse_agent_config(data)


def test_agent_config_json_round_trip_is_exact():
    from agentflow.core.config import (
        deserialize_agent_config,
        parse_agent_config,
        serialize_agent_config,
    )

    config = parse_agent_config({
        "name": "trader.eth",
        "strategies": {"yield": {"enabled": True, "protocols": ["aave"]}},
        "riskLimits": {"maxTradeSize": "9007199254740993"},
    })

    text = serialize_agent_config(config)
    restored = deserialize_agent_config(text)

    assert restored == config
    assert restored.risk_limits.max_trade_size == 9007199254740993
    assert json.loads(text)["riskLimits"]["maxTradeSize"] == "9007199254740993"


def test_deserialize_agent_config_invalid_json():
    from agentflow.core.config import deserialize_agent_config
    from agentflow.core.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="JSON"):
        deserialize_agent_config("{not json")
