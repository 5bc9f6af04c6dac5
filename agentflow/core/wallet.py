"""On-chain wallet used for direct swaps and bridge transactions."""
import hashlib
import itertools
import logging
from typing import Any, Protocol, runtime_checkable

from agentflow.models import BridgeQuote

logger = logging.getLogger(__name__)


@runtime_checkable
class ChainWallet(Protocol):
    """Protocol for sending transactions on behalf of the agent."""

    address: str

    async def approve(self, chain_id: int, token: str, amount: int, spender: str) -> str:
        """Approve `spender` to move `amount` of `token`. Returns the tx hash."""
        ...

    async def swap(self, chain_id: int, from_token: str, to_token: str, amount: int, min_output: int) -> str:
        """Swap tokens on-chain. Returns the tx hash."""
        ...

    async def send_bridge(self, quote: BridgeQuote) -> str:
        """Send the bridge transaction for a quote. Returns the tx hash."""
        ...


class SimulatedWallet:
    """Wallet that records transactions and returns deterministic hashes."""

    def __init__(self, address: str):
        self.address = address
        self.transactions: list[dict[str, Any]] = []
        self._counter = itertools.count(1)

    async def approve(self, chain_id: int, token: str, amount: int, spender: str) -> str:
        return self._record("approve", chain_id=chain_id, token=token, amount=amount, spender=spender)

    async def swap(self, chain_id: int, from_token: str, to_token: str, amount: int, min_output: int) -> str:
        return self._record(
            "swap",
            chain_id=chain_id,
            from_token=from_token,
            to_token=to_token,
            amount=amount,
            min_output=min_output,
        )

    async def send_bridge(self, quote: BridgeQuote) -> str:
        return self._record(
            "bridge",
            chain_id=quote.from_chain_id,
            to_chain_id=quote.to_chain_id,
            token=quote.from_token,
            amount=quote.from_amount,
            quote_id=quote.id,
        )

    def _record(self, kind: str, **fields: Any) -> str:
        seq = next(self._counter)
        seed = f"{self.address}:{kind}:{seq}:" + ",".join(f"{k}={v}" for k, v in sorted(fields.items()))
        tx_hash = "0x" + hashlib.sha256(seed.encode()).hexdigest()
        self.transactions.append({"type": kind, "tx_hash": tx_hash, **fields})
        logger.debug(f"Simulated {kind} tx {tx_hash[:10]}... on chain {fields.get('chain_id')}")
        return tx_hash
