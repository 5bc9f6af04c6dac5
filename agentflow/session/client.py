"""Low-level state channel operations.

The clearing house side of each channel is modelled in-process: the client
keeps the channel's recorded nonce and balances, and accepts a signed trade
only when it is bound to exactly the recorded nonce.
"""
import asyncio
import hashlib
import itertools
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable

from agentflow.core.errors import StaleNonceError, TradeRejected
from agentflow.models import ChannelState, SignedTrade, TradeParams, TradeResult
from agentflow.session.signer import Signer

logger = logging.getLogger(__name__)

QuoteFn = Callable[[TradeParams], int]


def one_percent_haircut(params: TradeParams) -> int:
    """Default output quote: 99% of the input."""
    return params.amount * 99 // 100


@dataclass
class _Channel:
    participant: str
    asset: str
    participant_balance: int
    counterparty_balance: int
    nonce: int = 0
    confirmed: bool = False
    is_final: bool = False


class SessionClient:
    """Opens channels, signs and verifies trades, and settles channels."""

    def __init__(
        self,
        signer: Signer,
        quote_fn: QuoteFn | None = None,
        confirmation_delay: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the client.

        Args:
            signer: Signs and verifies trade messages
            quote_fn: Output amount for a trade (defaults to a 1% haircut)
            confirmation_delay: Simulated seconds until a channel open confirms
            clock: Time source, seconds
        """
        self.signer = signer
        self.confirmation_delay = confirmation_delay
        self._quote = quote_fn or one_percent_haircut
        self._clock = clock
        self._channels: dict[str, _Channel] = {}
        self._tx_counter = itertools.count(1)

    async def open_channel(self, participant: str, asset: str, deposit: int) -> str:
        """Open a channel funded with `deposit` units of `asset`.

        Returns:
            Channel identifier (the opening transaction hash)
        """
        if deposit <= 0:
            raise TradeRejected(f"Deposit must be positive, got {deposit}")

        channel_id = self._tx_hash("open", participant, asset, deposit)
        self._channels[channel_id] = _Channel(
            participant=participant,
            asset=asset,
            participant_balance=deposit,
            counterparty_balance=0,
        )
        logger.info(f"Opened channel {channel_id[:10]}... with deposit {deposit}")
        return channel_id

    async def wait_for_confirmation(self, channel_id: str) -> None:
        """Wait until the channel open is confirmed."""
        channel = self._get_channel(channel_id)
        await asyncio.sleep(self.confirmation_delay)
        channel.confirmed = True
        logger.debug(f"Channel {channel_id[:10]}... confirmed")

    async def get_channel_state(self, channel_id: str) -> ChannelState:
        """Get the channel state recorded by the clearing house."""
        channel = self._get_channel(channel_id)
        return ChannelState(
            channel_id=channel_id,
            balances=(channel.participant_balance, channel.counterparty_balance),
            nonce=channel.nonce,
            is_final=channel.is_final,
        )

    def encode_trade_message(self, channel_id: str, params: TradeParams, nonce: int) -> bytes:
        """Canonical bytes signed for a trade."""
        payload = {
            "channelId": channel_id,
            "fromToken": params.from_token,
            "toToken": params.to_token,
            "amount": str(params.amount),
            "minOutput": str(params.min_output),
            "deadline": params.deadline,
            "nonce": str(nonce),
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()

    def sign(self, channel_id: str, params: TradeParams, nonce: int) -> SignedTrade:
        """Sign a trade against `nonce` without submitting it."""
        message = self.encode_trade_message(channel_id, params, nonce)
        return SignedTrade(
            channel_id=channel_id,
            params=params,
            nonce=nonce,
            signature=self.signer.sign(message),
        )

    async def sign_trade(self, channel_id: str, params: TradeParams, nonce: int) -> TradeResult:
        """Sign a trade against `nonce` and submit it to the channel."""
        return await self.submit_trade(self.sign(channel_id, params, nonce))

    async def submit_trade(self, signed: SignedTrade) -> TradeResult:
        """Verify a signed trade and apply it to the channel.

        Raises:
            StaleNonceError: If the channel nonce has moved past the trade's nonce
            TradeRejected: If the trade is otherwise invalid
        """
        channel = self._get_channel(signed.channel_id)
        params = signed.params

        if not channel.confirmed:
            raise TradeRejected(f"Channel {signed.channel_id} is not confirmed")
        if channel.is_final:
            raise TradeRejected(f"Channel {signed.channel_id} is final")
        if signed.nonce < channel.nonce:
            raise StaleNonceError(signed.channel_id, signed.nonce, channel.nonce)
        if signed.nonce > channel.nonce:
            raise TradeRejected(
                f"Trade nonce {signed.nonce} is ahead of channel nonce {channel.nonce}"
            )

        message = self.encode_trade_message(signed.channel_id, params, signed.nonce)
        if not self.signer.verify(message, signed.signature):
            raise TradeRejected("Invalid trade signature")

        now = self._clock()
        if params.deadline is not None and now > params.deadline:
            raise TradeRejected(f"Trade deadline {params.deadline} has passed")
        if params.amount <= 0:
            raise TradeRejected(f"Trade amount must be positive, got {params.amount}")

        output = self._quote(params)
        if output < params.min_output:
            raise TradeRejected(f"Output {output} is below minimum {params.min_output}")

        delta = 0
        if self._same_token(params.from_token, channel.asset):
            delta -= params.amount
        if self._same_token(params.to_token, channel.asset):
            delta += output

        new_balance = channel.participant_balance + delta
        if new_balance < 0:
            raise TradeRejected(
                f"Insufficient channel balance: {channel.participant_balance} < {params.amount}"
            )

        channel.participant_balance = new_balance
        channel.counterparty_balance -= delta
        channel.nonce += 1

        logger.debug(
            "TRADE: Channel trade applied",
            extra={
                "extra_data": {
                    "action": "channel_trade",
                    "channel_id": signed.channel_id,
                    "nonce": channel.nonce,
                    "amount": params.amount,
                    "output": output,
                    "balance": new_balance,
                }
            },
        )

        return TradeResult(
            success=True,
            nonce=channel.nonce,
            input_amount=params.amount,
            output_amount=output,
            new_balance=new_balance,
            signature=signed.signature,
            timestamp=now,
        )

    async def settle_channel(self, channel_id: str, final_state: ChannelState) -> str:
        """Submit the final channel state on-chain.

        Returns:
            Settlement transaction hash
        """
        channel = self._get_channel(channel_id)
        if not final_state.is_final:
            raise TradeRejected("Settlement requires a final channel state")
        if final_state.nonce != channel.nonce:
            raise StaleNonceError(channel_id, final_state.nonce, channel.nonce)

        channel.is_final = True
        tx_hash = self._tx_hash("settle", channel_id, final_state.nonce)
        logger.info(f"Settled channel {channel_id[:10]}... at nonce {final_state.nonce}")
        return tx_hash

    def _get_channel(self, channel_id: str) -> _Channel:
        channel = self._channels.get(channel_id)
        if channel is None:
            raise TradeRejected(f"Unknown channel {channel_id}")
        return channel

    def _tx_hash(self, *parts) -> str:
        seed = ":".join(str(p) for p in (*parts, next(self._tx_counter)))
        return "0x" + hashlib.sha256(seed.encode()).hexdigest()

    @staticmethod
    def _same_token(a: str, b: str) -> bool:
        return a.lower() == b.lower()
