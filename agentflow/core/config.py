"""Configuration loading and validation.

Two kinds of configuration live here:

* ``AgentConfig``: the agent policy (strategies, risk limits, session
  defaults). It is exchanged as a camelCase mapping of the shape
  ``{strategies, riskLimits, yellowSession}``, e.g. as a name-service text
  record, with integer unit amounts encoded as decimal strings.
* ``Settings``: the process runtime configuration, loaded from YAML.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from agentflow.core.chains import BASE, ARBITRUM, asset_key, parse_asset_key
from agentflow.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_VERSION = "1.0"


# =============================================================================
# Agent policy
# =============================================================================

@dataclass(frozen=True)
class RebalanceConfig:
    """Rebalancer tunables."""

    enabled: bool = True
    target_allocations: Mapping[str, float] = field(default_factory=lambda: {
        asset_key(BASE, "USDC"): 40.0,
        asset_key(BASE, "WETH"): 30.0,
        asset_key(ARBITRUM, "USDC"): 20.0,
        asset_key(ARBITRUM, "WETH"): 10.0,
    })
    rebalance_threshold: float = 5.0  # Percentage points

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "target_allocations", MappingProxyType(dict(self.target_allocations))
        )


@dataclass(frozen=True)
class ArbitrageConfig:
    """Arbitrage scanner tunables."""

    enabled: bool = True
    min_profit_bps: int = 10
    max_slippage_bps: int = 50


@dataclass(frozen=True)
class YieldConfig:
    """Yield optimizer tunables."""

    enabled: bool = False
    min_apy: float = 3.0
    protocols: tuple[str, ...] = ("aave", "compound")


@dataclass(frozen=True)
class StrategiesConfig:
    """Per-strategy configuration."""

    rebalance: RebalanceConfig = field(default_factory=RebalanceConfig)
    arbitrage: ArbitrageConfig = field(default_factory=ArbitrageConfig)
    yield_: YieldConfig = field(default_factory=YieldConfig)


@dataclass(frozen=True)
class RiskLimits:
    """Global risk limits. Amounts are in USDC smallest units."""

    max_trade_size: int = 1_000_000_000      # 1000 USDC
    max_daily_volume: int = 10_000_000_000   # 10000 USDC
    max_slippage: float = 1.0                # Percent


@dataclass(frozen=True)
class SessionDefaults:
    """State channel session defaults. Amounts are in USDC smallest units."""

    auto_deposit: bool = True
    deposit_amount: int = 500_000_000        # 500 USDC
    settlement_threshold: int = 100_000_000  # 100 USDC


@dataclass(frozen=True)
class AgentConfig:
    """Agent policy: immutable for the lifetime of an engine."""

    strategies: StrategiesConfig = field(default_factory=StrategiesConfig)
    risk_limits: RiskLimits = field(default_factory=RiskLimits)
    yellow_session: SessionDefaults = field(default_factory=SessionDefaults)
    version: str = CONFIG_VERSION
    name: str | None = None


def default_agent_config() -> AgentConfig:
    """Get the documented default agent configuration."""
    return AgentConfig()


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Section {key!r} must be a mapping")
    return value


def _parse_amount(value: Any, name: str) -> int:
    """Parse an integer unit amount without going through floats."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer amount, got {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        try:
            amount = int(value.strip())
        except ValueError as e:
            raise ConfigurationError(f"{name} must be an integer amount, got {value!r}") from e
    else:
        raise ConfigurationError(f"{name} must be an integer amount, got {value!r}")

    if amount < 0:
        raise ConfigurationError(f"{name} must be non-negative, got {amount}")
    return amount


def _parse_number(value: Any, name: str, low: float, high: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not low <= value <= high:
        raise ConfigurationError(f"{name} must be between {low} and {high}, got {value}")
    return value


def _parse_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a boolean, got {value!r}")
    return value


def parse_agent_config(data: dict[str, Any] | None) -> AgentConfig:
    """Parse an agent configuration mapping.

    Missing fields are filled from the defaults.

    Args:
        data: Mapping of the shape ``{strategies, riskLimits, yellowSession}``

    Returns:
        Validated AgentConfig

    Raises:
        ConfigurationError: If a value has the wrong type or is out of bounds
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Agent configuration must be a mapping")

    defaults = default_agent_config()
    strategies_raw = _section(data, "strategies")

    # Rebalance
    reb_raw = _section(strategies_raw, "rebalance")
    reb_default = defaults.strategies.rebalance
    targets_raw = reb_raw.get("targetAllocations", reb_default.target_allocations)
    if not isinstance(targets_raw, Mapping):
        raise ConfigurationError("targetAllocations must be a mapping")
    targets: dict[str, float] = {}
    for key, target in targets_raw.items():
        try:
            parse_asset_key(str(key))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        targets[str(key)] = float(_parse_number(target, f"targetAllocations[{key}]", 0, 100))

    rebalance = RebalanceConfig(
        enabled=_parse_bool(reb_raw.get("enabled", reb_default.enabled), "rebalance.enabled"),
        target_allocations=targets,
        rebalance_threshold=float(_parse_number(
            reb_raw.get("rebalanceThreshold", reb_default.rebalance_threshold),
            "rebalanceThreshold", 1, 50,
        )),
    )

    # Arbitrage
    arb_raw = _section(strategies_raw, "arbitrage")
    arb_default = defaults.strategies.arbitrage
    arbitrage = ArbitrageConfig(
        enabled=_parse_bool(arb_raw.get("enabled", arb_default.enabled), "arbitrage.enabled"),
        min_profit_bps=int(_parse_number(
            arb_raw.get("minProfitBps", arb_default.min_profit_bps), "minProfitBps", 1, 1000,
        )),
        max_slippage_bps=int(_parse_number(
            arb_raw.get("maxSlippageBps", arb_default.max_slippage_bps), "maxSlippageBps", 1, 500,
        )),
    )

    # Yield
    yld_raw = _section(strategies_raw, "yield")
    yld_default = defaults.strategies.yield_
    protocols = yld_raw.get("protocols", list(yld_default.protocols))
    if not isinstance(protocols, list) or not all(isinstance(p, str) for p in protocols):
        raise ConfigurationError("yield.protocols must be a list of strings")
    yield_ = YieldConfig(
        enabled=_parse_bool(yld_raw.get("enabled", yld_default.enabled), "yield.enabled"),
        min_apy=float(_parse_number(yld_raw.get("minApy", yld_default.min_apy), "minApy", 0, 100)),
        protocols=tuple(protocols),
    )

    # Risk limits
    risk_raw = _section(data, "riskLimits")
    risk_default = defaults.risk_limits
    risk_limits = RiskLimits(
        max_trade_size=_parse_amount(
            risk_raw.get("maxTradeSize", risk_default.max_trade_size), "maxTradeSize",
        ),
        max_daily_volume=_parse_amount(
            risk_raw.get("maxDailyVolume", risk_default.max_daily_volume), "maxDailyVolume",
        ),
        max_slippage=float(_parse_number(
            risk_raw.get("maxSlippage", risk_default.max_slippage), "maxSlippage", 0.1, 5,
        )),
    )

    # Session defaults
    sess_raw = _section(data, "yellowSession")
    sess_default = defaults.yellow_session
    yellow_session = SessionDefaults(
        auto_deposit=_parse_bool(
            sess_raw.get("autoDeposit", sess_default.auto_deposit), "yellowSession.autoDeposit",
        ),
        deposit_amount=_parse_amount(
            sess_raw.get("depositAmount", sess_default.deposit_amount), "depositAmount",
        ),
        settlement_threshold=_parse_amount(
            sess_raw.get("settlementThreshold", sess_default.settlement_threshold),
            "settlementThreshold",
        ),
    )

    name = data.get("name")
    return AgentConfig(
        strategies=StrategiesConfig(rebalance=rebalance, arbitrage=arbitrage, yield_=yield_),
        risk_limits=risk_limits,
        yellow_session=yellow_session,
        version=str(data.get("version", CONFIG_VERSION)),
        name=str(name) if name is not None else None,
    )


def agent_config_to_dict(config: AgentConfig) -> dict[str, Any]:
    """Convert an AgentConfig to its camelCase mapping.

    Integer amounts are emitted as decimal strings so they survive JSON
    round trips exactly.
    """
    strategies = config.strategies
    d: dict[str, Any] = {
        "version": config.version,
        "strategies": {
            "rebalance": {
                "enabled": strategies.rebalance.enabled,
                "targetAllocations": dict(strategies.rebalance.target_allocations),
                "rebalanceThreshold": strategies.rebalance.rebalance_threshold,
            },
            "arbitrage": {
                "enabled": strategies.arbitrage.enabled,
                "minProfitBps": strategies.arbitrage.min_profit_bps,
                "maxSlippageBps": strategies.arbitrage.max_slippage_bps,
            },
            "yield": {
                "enabled": strategies.yield_.enabled,
                "minApy": strategies.yield_.min_apy,
                "protocols": list(strategies.yield_.protocols),
            },
        },
        "riskLimits": {
            "maxTradeSize": str(config.risk_limits.max_trade_size),
            "maxDailyVolume": str(config.risk_limits.max_daily_volume),
            "maxSlippage": config.risk_limits.max_slippage,
        },
        "yellowSession": {
            "autoDeposit": config.yellow_session.auto_deposit,
            "depositAmount": str(config.yellow_session.deposit_amount),
            "settlementThreshold": str(config.yellow_session.settlement_threshold),
        },
    }
    if config.name is not None:
        d["name"] = config.name
    return d


def serialize_agent_config(config: AgentConfig) -> str:
    """Serialize an AgentConfig to JSON."""
    return json.dumps(agent_config_to_dict(config), indent=2)


def deserialize_agent_config(text: str) -> AgentConfig:
    """Parse an AgentConfig from JSON text.

    Raises:
        ConfigurationError: If the text is not valid JSON or fails validation
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to parse agent configuration JSON: {e}") from e
    return parse_agent_config(data)


# =============================================================================
# Runtime settings
# =============================================================================

@dataclass
class AgentSettings:
    """Agent identity."""

    address: str
    name: str | None = None
    config: dict[str, Any] | None = None  # Inline agent policy


@dataclass
class LoopSettings:
    """Control loop settings."""

    interval_seconds: float = 30.0


@dataclass
class NameServiceSettings:
    """Name-service config source settings."""

    enabled: bool = False
    gateway_url: str = ""
    timeout_seconds: float = 10.0


@dataclass
class SessionSettings:
    """State channel settings."""

    confirmation_timeout_seconds: float = 30.0
    settlement_timeout_seconds: float = 60.0
    confirmation_delay_seconds: float = 1.0
    signing_key: str = "agentflow-dev-key"
    asset_symbol: str = "USDC"
    chain_id: int = BASE


@dataclass
class BridgeSettings:
    """Bridge quote provider settings."""

    provider: str = "simulated"
    api_url: str = "https://li.quest/v1"
    slippage_pct: float = 0.5


@dataclass
class DataStoreSettings:
    """Audit store settings."""

    path: str = "./data"


@dataclass
class HoldingSettings:
    """A static holding for the bundled portfolio provider."""

    chain_id: int
    symbol: str
    balance: int
    value_usd: float


@dataclass
class RegistrySettings:
    """Static on-chain registry view."""

    authorized: bool = True
    max_swap_size: int | None = None
    daily_volume_limit: int | None = None


@dataclass
class Settings:
    """Main runtime configuration container."""

    agent: AgentSettings
    loop: LoopSettings
    data_store: DataStoreSettings
    name_service: NameServiceSettings = field(default_factory=NameServiceSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    bridge: BridgeSettings = field(default_factory=BridgeSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    portfolio: list[HoldingSettings] = field(default_factory=list)


def load_settings(path: str) -> Settings:
    """Load runtime settings from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Settings object with validated configuration

    Raises:
        ConfigurationError: If file not found, invalid YAML, or missing required fields
    """
    config_path = Path(path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    if raw is None:
        raise ConfigurationError("Configuration file is empty")

    # Validate required sections
    required_sections = ["agent", "loop", "data_store"]
    for section in required_sections:
        if section not in raw:
            raise ConfigurationError(f"Missing required configuration section: {section}")

    # Parse agent identity
    agent_raw = raw["agent"] or {}
    if "address" not in agent_raw:
        raise ConfigurationError("Missing required field: agent.address")
    inline_config = agent_raw.get("config")
    if inline_config is not None:
        # Fail early on an invalid inline policy
        parse_agent_config(inline_config)
    agent = AgentSettings(
        address=str(agent_raw["address"]),
        name=agent_raw.get("name"),
        config=inline_config,
    )

    loop_raw = raw["loop"] or {}
    loop = LoopSettings(interval_seconds=float(loop_raw.get("interval_seconds", 30.0)))
    if loop.interval_seconds <= 0:
        raise ConfigurationError("loop.interval_seconds must be positive")

    ds_raw = raw["data_store"] or {}
    data_store = DataStoreSettings(path=ds_raw.get("path", "./data"))

    ns_raw = raw.get("name_service") or {}
    name_service = NameServiceSettings(
        enabled=ns_raw.get("enabled", False),
        gateway_url=ns_raw.get("gateway_url", ""),
        timeout_seconds=float(ns_raw.get("timeout_seconds", 10.0)),
    )
    if name_service.enabled and not name_service.gateway_url:
        raise ConfigurationError("name_service.gateway_url is required when name_service is enabled")

    sess_raw = raw.get("session") or {}
    session = SessionSettings(
        confirmation_timeout_seconds=float(sess_raw.get("confirmation_timeout_seconds", 30.0)),
        settlement_timeout_seconds=float(sess_raw.get("settlement_timeout_seconds", 60.0)),
        confirmation_delay_seconds=float(sess_raw.get("confirmation_delay_seconds", 1.0)),
        signing_key=str(sess_raw.get("signing_key", "agentflow-dev-key")),
        asset_symbol=sess_raw.get("asset_symbol", "USDC"),
        chain_id=int(sess_raw.get("chain_id", BASE)),
    )

    bridge_raw = raw.get("bridge") or {}
    bridge = BridgeSettings(
        provider=bridge_raw.get("provider", "simulated"),
        api_url=bridge_raw.get("api_url", "https://li.quest/v1"),
        slippage_pct=float(bridge_raw.get("slippage_pct", 0.5)),
    )
    if bridge.provider not in ("simulated", "lifi"):
        raise ConfigurationError(f"Unknown bridge provider: {bridge.provider}")

    reg_raw = raw.get("registry") or {}
    registry = RegistrySettings(
        authorized=reg_raw.get("authorized", True),
        max_swap_size=(
            _parse_amount(reg_raw["max_swap_size"], "registry.max_swap_size")
            if reg_raw.get("max_swap_size") is not None else None
        ),
        daily_volume_limit=(
            _parse_amount(reg_raw["daily_volume_limit"], "registry.daily_volume_limit")
            if reg_raw.get("daily_volume_limit") is not None else None
        ),
    )

    # Parse holdings
    portfolio = []
    for holding_raw in raw.get("portfolio") or []:
        try:
            holding = HoldingSettings(
                chain_id=int(holding_raw["chain_id"]),
                symbol=holding_raw["symbol"],
                balance=_parse_amount(holding_raw["balance"], "portfolio.balance"),
                value_usd=float(holding_raw.get("value_usd", 0.0)),
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing required holding field: {e.args[0]}") from e
        portfolio.append(holding)

    settings = Settings(
        agent=agent,
        loop=loop,
        data_store=data_store,
        name_service=name_service,
        session=session,
        bridge=bridge,
        registry=registry,
        portfolio=portfolio,
    )

    logger.info(f"Loaded configuration from {path}")
    logger.debug(f"Agent: {agent.address} (name={agent.name})")
    logger.debug(f"Loop: interval={loop.interval_seconds}s, bridge={bridge.provider}")
    logger.debug(f"Holdings: {[(h.chain_id, h.symbol) for h in portfolio]}")

    return settings
