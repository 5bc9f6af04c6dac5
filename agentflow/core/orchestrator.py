"""Runner for wiring and managing all agent components."""
import asyncio
import logging
from dataclasses import replace

from agentflow.bridge import BridgeRouter, LiFiQuoteProvider, QuoteProvider, SimulatedQuoteProvider
from agentflow.collectors.portfolio import StateProvider, StaticPortfolioProvider
from agentflow.core.audit_store import AuditStore, FileAuditStore
from agentflow.core.chains import get_token_address
from agentflow.core.config import AgentConfig, BridgeSettings, Settings
from agentflow.core.config_source import (
    ConfigSource,
    HttpTextRecordResolver,
    NameServiceConfigSource,
    StaticConfigSource,
)
from agentflow.core.engine import DecisionEngine, EngineEvents
from agentflow.core.errors import ConfigurationError, ExecutionFailure
from agentflow.core.event_bus import EventBus
from agentflow.core.executor import Executor
from agentflow.core.registry import AgentRegistry, RegistryLimits, StaticRegistry, apply_registry_limits
from agentflow.core.wallet import ChainWallet, SimulatedWallet
from agentflow.models import Decision, Event, ExecutionResult, Session, SettlementResult, TradeParams
from agentflow.session import HmacSigner, SessionClient, SessionManager
from agentflow.strategies.market import MarketDataSource

logger = logging.getLogger(__name__)


class AgentRunner:
    """Wires all components together and manages the agent lifecycle.

    Responsibilities:
    1. Load the agent policy and check it against the registry
    2. Build the decision engine on top of the executor
    3. Open a session when the policy asks for an auto deposit
    4. Publish engine and session events to the bus and the audit store
    5. Run the periodic loop until stopped, then settle
    """

    def __init__(
        self,
        settings: Settings,
        config_source: ConfigSource | None = None,
        registry: AgentRegistry | None = None,
        state_provider: StateProvider | None = None,
        wallet: ChainWallet | None = None,
        quote_provider: QuoteProvider | None = None,
        session_client: SessionClient | None = None,
        market: MarketDataSource | None = None,
        audit_store: AuditStore | None = None,
    ):
        """Initialize the runner.

        Collaborators left as None are built from the settings.

        Args:
            settings: Runtime settings
            config_source: Source of the agent policy
            registry: Agent registry
            state_provider: Source of portfolio snapshots
            wallet: Wallet for on-chain swaps and bridges
            quote_provider: Bridge quote source
            session_client: State channel client
            market: Price and yield source for the strategies
            audit_store: Audit trail persistence
        """
        self.settings = settings
        self.address = settings.agent.address
        self.market = market

        self.event_bus = EventBus()
        self.audit_store = audit_store or FileAuditStore(settings.data_store.path)
        self.config_source = config_source or self._build_config_source(settings)
        self.registry = registry or StaticRegistry(
            authorized=settings.registry.authorized,
            limits=RegistryLimits(
                max_swap_size=settings.registry.max_swap_size,
                daily_volume_limit=settings.registry.daily_volume_limit,
            ),
        )
        self.state_provider = state_provider or StaticPortfolioProvider(
            self.address, settings.portfolio
        )
        self.wallet = wallet or SimulatedWallet(self.address)
        self.bridge_router = BridgeRouter(
            quote_provider or self._build_quote_provider(settings.bridge),
            self.wallet,
            quote_slippage_pct=settings.bridge.slippage_pct,
        )

        asset = get_token_address(settings.session.chain_id, settings.session.asset_symbol)
        if asset is None:
            raise ConfigurationError(
                f"Unknown session asset {settings.session.asset_symbol} "
                f"on chain {settings.session.chain_id}"
            )
        client = session_client or SessionClient(
            HmacSigner(settings.session.signing_key),
            confirmation_delay=settings.session.confirmation_delay_seconds,
        )
        self.session_manager = SessionManager(
            client,
            participant=self.address,
            asset=asset,
            confirmation_timeout=settings.session.confirmation_timeout_seconds,
            settlement_timeout=settings.session.settlement_timeout_seconds,
        )

        self.executor = Executor(self._execute_trade, self.bridge_router.bridge_decision)
        self.config: AgentConfig | None = None
        self.engine: DecisionEngine | None = None

        self._running = False
        self._stop_event: asyncio.Event | None = None

        self._wire_audit()
        logger.info(f"Agent runner initialized for {settings.agent.name or self.address}")

    @property
    def is_running(self) -> bool:
        return self._running

    @staticmethod
    def _build_config_source(settings: Settings) -> ConfigSource:
        if settings.agent.config is not None:
            return StaticConfigSource(settings.agent.config)
        if settings.name_service.enabled:
            return NameServiceConfigSource(HttpTextRecordResolver(
                settings.name_service.gateway_url,
                timeout=settings.name_service.timeout_seconds,
            ))
        return StaticConfigSource()

    @staticmethod
    def _build_quote_provider(bridge: BridgeSettings) -> QuoteProvider:
        if bridge.provider == "lifi":
            return LiFiQuoteProvider(bridge.api_url)
        return SimulatedQuoteProvider()

    def _wire_audit(self) -> None:
        """Persist every published event in the audit store."""
        self.event_bus.subscribe(["decision"], self._audit_decision)
        self.event_bus.subscribe(["execution"], self._audit_execution)
        self.event_bus.subscribe(["error", "session"], self.audit_store.log_event)

    def _audit_decision(self, event: Event) -> None:
        self.audit_store.log_decision(event.payload["decision"])

    def _audit_execution(self, event: Event) -> None:
        self.audit_store.log_execution(event.payload["decision"], event.payload["result"])

    # =========================================================================
    # Setup
    # =========================================================================

    async def prepare(self) -> DecisionEngine:
        """Load the policy, apply registry limits and build the engine.

        Returns:
            The decision engine

        Raises:
            ConfigurationError: If the agent is not authorized in the registry
        """
        if not await self.registry.is_authorized(self.address):
            raise ConfigurationError(f"Agent {self.address} is not authorized in the registry")

        config = await self.config_source.load(self.settings.agent.name)
        limits = apply_registry_limits(
            config.risk_limits,
            await self.registry.get_limits(self.address),
            await self.registry.get_remaining_daily_volume(self.address),
        )
        self.config = replace(config, risk_limits=limits)
        self.bridge_router.max_slippage_pct = limits.max_slippage

        self.engine = DecisionEngine(
            self.config,
            market=self.market,
            execute_fn=self.executor.execute,
            events=EngineEvents(
                on_decision=self._on_decision,
                on_execution=self._on_execution,
                on_error=self._on_error,
            ),
        )
        return self.engine

    # =========================================================================
    # Sessions
    # =========================================================================

    async def open_session(self, deposit: int | None = None) -> Session:
        """Open a session, depositing the policy's amount by default."""
        config = self._require_config()
        session = await self.session_manager.create_session(
            deposit if deposit is not None else config.yellow_session.deposit_amount
        )
        self.executor.set_session(session)
        self.event_bus.emit("session", "runner", {
            "status": session.status.value,
            "session_id": session.id,
            "deposit": str(session.deposit),
        })
        return session

    async def settle_session(self) -> SettlementResult:
        """Settle the current session."""
        session = self.session_manager.session
        result = await self.session_manager.settle_session()
        self.executor.set_session(None)
        self.event_bus.emit("session", "runner", {
            "status": "closed",
            "session_id": session.id if session else None,
            "final_balance": str(result.final_balance),
            "tx_hash": result.tx_hash,
        })
        return result

    # =========================================================================
    # Execution paths
    # =========================================================================

    async def _execute_trade(self, decision: Decision, session: Session | None) -> ExecutionResult:
        """Same-chain trade through the session if given, else on-chain."""
        config = self._require_config()
        slippage_bps = round(config.risk_limits.max_slippage * 100)
        min_output = decision.amount * (10_000 - slippage_bps) // 10_000

        if session is None:
            tx_hash = await self.wallet.swap(
                decision.from_chain,
                decision.from_token,
                decision.to_token,
                decision.amount,
                min_output,
            )
            return ExecutionResult.succeeded(tx_id=tx_hash)

        result = await self.session_manager.execute_trade(TradeParams(
            from_token=decision.from_token,
            to_token=decision.to_token,
            amount=decision.amount,
            min_output=min_output,
        ))
        if not result.success:
            return ExecutionResult.failed(f"Session trade for {decision.id} was not accepted")

        threshold = config.yellow_session.settlement_threshold
        if self.session_manager.get_balance() < threshold:
            logger.info(
                f"Session balance {self.session_manager.get_balance()} below {threshold}, settling"
            )
            try:
                await self.settle_session()
            except ExecutionFailure as e:
                # The trade is committed; the session stays active for a retry
                logger.error(f"Auto settlement after {decision.id} failed: {e}")
                self._on_error(e, decision)

        return ExecutionResult.succeeded(tx_id=f"{session.channel_id}:{result.nonce}")

    # =========================================================================
    # Engine callbacks
    # =========================================================================

    def _on_decision(self, decision: Decision) -> None:
        self.event_bus.emit("decision", "engine", {"decision": decision})

    def _on_execution(self, decision: Decision, result: ExecutionResult) -> None:
        self.event_bus.emit("execution", "engine", {"decision": decision, "result": result})

    def _on_error(self, error: Exception, decision: Decision | None) -> None:
        self.event_bus.emit("error", "engine", {
            "error": str(error),
            "error_type": type(error).__name__,
            "decision_id": decision.id if decision else None,
        })

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run_cycle(self) -> list[ExecutionResult]:
        """Evaluate and execute once against a fresh snapshot."""
        if self.engine is None:
            await self.prepare()
        state = await self.state_provider.get_state()
        return await self.engine.run_once(state)

    async def run(self) -> None:
        """Run the agent until stop() is called."""
        engine = await self.prepare()
        self._stop_event = asyncio.Event()
        self._running = True

        try:
            if self.config.yellow_session.auto_deposit:
                await self.open_session()

            engine.start(self.state_provider.get_state, self.settings.loop.interval_seconds)
            logger.info("Agent running")
            await self._stop_event.wait()
        finally:
            self._running = False
            engine.stop()
            await engine.wait_idle()
            if self.session_manager.is_active():
                await self.settle_session()
            logger.info("Agent stopped")

    def stop(self) -> None:
        """Ask a running agent to stop."""
        logger.info("Stopping agent...")
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    def _require_config(self) -> AgentConfig:
        if self.config is None:
            raise ConfigurationError("Agent runner is not prepared")
        return self.config
