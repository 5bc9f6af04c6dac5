"""State channel session lifecycle.

A session moves strictly through opening -> active -> settling -> closed.
Only one session exists per manager at a time. Every trade is signed
against the session's current nonce; on success the nonce advances by
exactly one and the balance takes the channel's reported value. A failed
trade leaves the session untouched.

If settlement fails the session returns to active with its nonce and
balance unchanged, so the caller can retry.
"""
import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable

from agentflow.core.errors import ExecutionFailure, SessionStateError, SessionTimeout
from agentflow.models import Session, SessionStatus, SettlementResult, TradeParams, TradeResult
from agentflow.session.client import SessionClient

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the current session and serializes all changes to it."""

    def __init__(
        self,
        client: SessionClient,
        participant: str,
        asset: str,
        confirmation_timeout: float = 30.0,
        settlement_timeout: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the session manager.

        Args:
            client: Channel protocol client
            participant: Address of the trading party
            asset: Token address deposits are denominated in
            confirmation_timeout: Seconds to wait for a channel open to confirm
            settlement_timeout: Seconds to wait for settlement to complete
            clock: Time source, seconds
        """
        self.client = client
        self.participant = participant
        self.asset = asset
        self.confirmation_timeout = confirmation_timeout
        self.settlement_timeout = settlement_timeout
        self._clock = clock
        self._session: Session | None = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> Session | None:
        """The current session, if any."""
        return self._session

    def is_active(self) -> bool:
        return self._session is not None and self._session.is_active

    def get_balance(self) -> int:
        return self._session.balance if self._session is not None else 0

    def get_trade_count(self) -> int:
        return self._session.nonce if self._session is not None else 0

    async def create_session(self, deposit: int) -> Session:
        """Open a deposit-backed session and wait for it to become active.

        Args:
            deposit: Amount of the session asset to lock, smallest units

        Returns:
            The active session

        Raises:
            SessionStateError: If a session is already open
            SessionTimeout: If the channel is not confirmed in time
        """
        if deposit <= 0:
            raise ValueError(f"Deposit must be positive, got {deposit}")

        async with self._lock:
            if self._session is not None and self._session.status is not SessionStatus.CLOSED:
                raise SessionStateError(
                    f"Session already {self._session.status.value}; settle first"
                )

            channel_id = await self.client.open_channel(self.participant, self.asset, deposit)

            now = self._clock()
            session = Session(
                id=f"session-{int(now * 1000)}",
                channel_id=channel_id,
                participant=self.participant,
                asset=self.asset,
                deposit=deposit,
                balance=deposit,
                nonce=0,
                status=SessionStatus.OPENING,
                created_at=now,
                last_activity=now,
            )
            self._session = session

            try:
                await asyncio.wait_for(
                    self.client.wait_for_confirmation(channel_id),
                    timeout=self.confirmation_timeout,
                )
            except asyncio.TimeoutError as e:
                self._session = None
                logger.error(f"Channel {channel_id[:10]}... not confirmed within {self.confirmation_timeout}s")
                raise SessionTimeout(
                    f"Channel open not confirmed within {self.confirmation_timeout}s"
                ) from e
            except asyncio.CancelledError:
                self._session = None
                logger.warning(f"Opening of channel {channel_id[:10]}... cancelled")
                raise
            except Exception:
                self._session = None
                raise

            session.status = SessionStatus.ACTIVE
            logger.info(f"Session {session.id} active with deposit {deposit}")
            return session

    async def execute_trade(self, params: TradeParams) -> TradeResult:
        """Sign a trade against the current nonce and apply the result.

        Args:
            params: Trade parameters

        Returns:
            The channel's trade result

        Raises:
            SessionStateError: If there is no active session
            ExecutionFailure: If the channel rejects the trade
        """
        async with self._lock:
            session = self._session
            if session is None or session.status is not SessionStatus.ACTIVE:
                raise SessionStateError("No active session")

            result = await self.client.sign_trade(session.channel_id, params, session.nonce)
            if not result.success:
                logger.warning(f"Trade on session {session.id} was not accepted")
                return result

            if result.nonce != session.nonce + 1:
                raise ExecutionFailure(
                    f"Channel reported nonce {result.nonce}, expected {session.nonce + 1}"
                )

            session.nonce = result.nonce
            session.balance = result.new_balance
            session.last_activity = self._clock()

            logger.info(
                f"Session {session.id} trade #{session.nonce}: "
                f"{result.input_amount} -> {result.output_amount}, balance {session.balance}"
            )
            return result

    async def settle_session(self) -> SettlementResult:
        """Finalize the channel state and settle it on-chain.

        Returns:
            SettlementResult with the final balance

        Raises:
            SessionStateError: If there is no active session to settle
            ExecutionFailure: If settlement fails; the session stays active
        """
        async with self._lock:
            session = self._session
            if session is None:
                raise SessionStateError("No session to settle")
            if session.status is not SessionStatus.ACTIVE:
                raise SessionStateError(f"Cannot settle a session that is {session.status.value}")

            session.status = SessionStatus.SETTLING
            logger.info(f"Settling session {session.id} at nonce {session.nonce}")

            try:
                channel_state = await self.client.get_channel_state(session.channel_id)
                final_state = replace(channel_state, is_final=True)
                tx_hash = await asyncio.wait_for(
                    self.client.settle_channel(session.channel_id, final_state),
                    timeout=self.settlement_timeout,
                )
            except asyncio.TimeoutError as e:
                session.status = SessionStatus.ACTIVE
                logger.error(f"Settlement of {session.id} timed out, session reverted to active")
                raise SessionTimeout(
                    f"Settlement not completed within {self.settlement_timeout}s"
                ) from e
            except asyncio.CancelledError:
                session.status = SessionStatus.ACTIVE
                logger.warning(f"Settlement of {session.id} cancelled, session reverted to active")
                raise
            except ExecutionFailure:
                session.status = SessionStatus.ACTIVE
                logger.error(f"Settlement of {session.id} failed, session reverted to active")
                raise
            except Exception as e:
                session.status = SessionStatus.ACTIVE
                logger.error(f"Settlement of {session.id} failed, session reverted to active: {e}")
                raise ExecutionFailure(f"Settlement failed: {e}") from e

            now = self._clock()
            session.status = SessionStatus.CLOSED
            session.last_activity = now

            return SettlementResult(
                success=True,
                tx_hash=tx_hash,
                final_balance=session.balance,
                settled_at=now,
            )
