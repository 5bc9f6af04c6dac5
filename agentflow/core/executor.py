"""Routes approved decisions to the matching settlement path."""
import logging
from enum import Enum
from typing import Awaitable, Callable

from agentflow.models import Decision, ExecutionResult, Session

logger = logging.getLogger(__name__)

TradeFn = Callable[[Decision, Session | None], Awaitable[ExecutionResult]]
BridgeFn = Callable[[Decision], Awaitable[ExecutionResult]]


class Route(Enum):
    """Settlement path chosen for a decision."""
    SESSION = "session"
    ONCHAIN = "onchain"
    BRIDGE = "bridge"


class Executor:
    """Routes decisions by chain pair.

    Cross-chain decisions go to the bridge path. Same-chain decisions go to
    the trade path, through the active session when there is one and
    on-chain otherwise. The executor only reads the session.
    """

    def __init__(
        self,
        execute_trade: TradeFn,
        execute_bridge: BridgeFn,
        session: Session | None = None,
    ):
        """Initialize the executor.

        Args:
            execute_trade: Same-chain trade path; receives the active session or None
            execute_bridge: Cross-chain bridge path
            session: Current session, if any
        """
        self._execute_trade = execute_trade
        self._execute_bridge = execute_bridge
        self._session = session

    @property
    def session(self) -> Session | None:
        return self._session

    def set_session(self, session: Session | None) -> None:
        """Point the executor at the current session (or clear it)."""
        self._session = session

    def route(self, decision: Decision) -> Route:
        """Decide which path a decision takes."""
        if decision.is_cross_chain:
            return Route.BRIDGE
        if self._session is not None and self._session.is_active:
            return Route.SESSION
        return Route.ONCHAIN

    async def execute(self, decision: Decision) -> ExecutionResult:
        """Execute a decision on its route.

        Args:
            decision: Approved decision

        Returns:
            ExecutionResult from the chosen path
        """
        route = self.route(decision)
        logger.info(f"Routing {decision.id} via {route.value}")

        if route is Route.BRIDGE:
            return await self._execute_bridge(decision)
        if route is Route.SESSION:
            return await self._execute_trade(decision, self._session)
        return await self._execute_trade(decision, None)
